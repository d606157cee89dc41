from __future__ import annotations

import logging
from typing import List, Optional

from pydantic import BaseModel

from models import Workout, WorkoutExercise, build
from stores import ExerciseStore, ProgressStore, WorkoutStore

log = logging.getLogger("fittrack.workouts")


async def record_completion(
    workout_store: WorkoutStore, progress_store: ProgressStore, workout_id
) -> Workout:
    """Record a stored workout in the progress history and bump the streak."""
    workout = workout_store.get(workout_id)
    if workout is None:
        raise KeyError(workout_id)
    performed = [
        {
            "name": we.exercise.name,
            "weight": we.weight,
            "reps": we.reps,
            "sets": we.sets,
        }
        for we in workout.exercises
    ]
    await progress_store.record_workout_completion(workout.id, workout.name, performed)
    progress_store.update_workout_streak()
    log.info("Recorded completion of %s (%d exercises)", workout.name, len(performed))
    return workout


class WorkoutService:
    """Workout builder flows spanning the exercise, workout and progress stores."""

    def __init__(
        self,
        exercise_store: ExerciseStore,
        workout_store: WorkoutStore,
        progress_store: ProgressStore,
    ) -> None:
        self.exercises = exercise_store
        self.workouts = workout_store
        self.progress = progress_store

    def draft_from_selection(
        self, sets: int = 3, reps: int = 12, weight: float = 0.0
    ) -> List[WorkoutExercise]:
        if not self.exercises.selected:
            raise ValueError("Select at least one exercise")
        return [
            build(
                WorkoutExercise,
                {"exercise": exercise.model_dump(), "sets": sets, "reps": reps, "weight": weight},
            )
            for exercise in self.exercises.selected
        ]

    async def save_workout(
        self, name: str, exercises, workout_id: Optional[str] = None
    ) -> Workout:
        """Save a new or edited workout and count it as completed."""
        name = (name or "").strip()
        if not name:
            raise ValueError("Please enter a workout name")
        entries = [e.model_dump() if isinstance(e, BaseModel) else e for e in exercises]
        if not entries:
            raise ValueError("Please add at least one exercise")

        if workout_id is None:
            saved = await self.workouts.add(
                {
                    "name": name,
                    "date": self.workouts.clock().isoformat(timespec="seconds"),
                    "exercises": entries,
                }
            )
        else:
            if self.workouts.get(workout_id) is None:
                raise KeyError(workout_id)
            saved = await self.workouts.update(
                workout_id, {"name": name, "exercises": entries}
            )

        await record_completion(self.workouts, self.progress, saved.id)
        self.exercises.clear_selection()
        return saved

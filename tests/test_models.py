import os
import sys
import unittest

sys.path.append(os.path.dirname(os.path.dirname(__file__)))
from models import Exercise, ExerciseSession, ProgressExercise, Workout, WorkoutExercise


class RowMappingTest(unittest.TestCase):
    def test_progress_name_column(self) -> None:
        entry = ProgressExercise(
            id="p1", name="Squats", starting_weight=60, current_weight=70, goal_weight=100
        )
        row = entry.to_row(user_id="u1")
        self.assertEqual(row["exercise_name"], "Squats")
        self.assertNotIn("name", row)
        self.assertNotIn("id", row)
        row["id"] = 5
        row["total_sessions"] = None
        back = ProgressExercise.from_row(row)
        self.assertEqual(back.id, "5")
        self.assertEqual(back.name, "Squats")
        self.assertEqual(back.total_sessions, 0)

    def test_workout_row_has_no_children(self) -> None:
        squat = Exercise(id="e1", name="Squats", category="legs", muscle_group="Legs")
        workout = Workout(
            name="Legs",
            date="2024-05-01",
            exercises=[WorkoutExercise(exercise=squat, sets=3, reps=5, weight=100)],
        )
        self.assertEqual(workout.to_row(user_id="u1"), {"name": "Legs", "date": "2024-05-01", "user_id": "u1"})
        child = workout.exercises[0].to_row("w1", 0, "u1")
        self.assertEqual(child["exercise_name"], "Squats")
        self.assertEqual(WorkoutExercise.from_row(child).exercise, squat)

    def test_session_accepts_numeric_workout_id(self) -> None:
        session = ExerciseSession.from_row(
            {"id": 3, "exercise_name": "Plank", "weight": 0, "reps": 1, "sets": 3,
             "date": "2024-05-01", "workout_id": 12, "workout_name": "Core", "user_id": "u1"}
        )
        self.assertEqual((session.id, session.workout_id), ("3", "12"))

    def test_negative_values_rejected(self) -> None:
        squat = Exercise(name="Squats", category="legs", muscle_group="Legs")
        with self.assertRaises(ValueError):
            WorkoutExercise(exercise=squat, sets=-1, reps=5, weight=100)


if __name__ == "__main__":
    unittest.main()

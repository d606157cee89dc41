"""Domain records shared by the stores, the service layer and the CLI.

Every record knows how to translate itself to and from a row of its remote
table. Column names are snake_case like the fields; the few columns that are
named differently are listed in ``ROW_NAMES``.
"""

from __future__ import annotations

from typing import ClassVar, Dict, List, Literal, Optional

from pydantic import BaseModel, ConfigDict, Field, ValidationError, field_validator

Category = Literal["push", "pull", "legs", "cardio", "core"]
WeightUnit = Literal["kg", "lbs"]

CATEGORY_ORDER: tuple[str, ...] = ("push", "pull", "legs", "core", "cardio")


class Record(BaseModel):
    """Base class for records stored in a remote table."""

    model_config = ConfigDict(str_strip_whitespace=True)

    ROW_NAMES: ClassVar[Dict[str, str]] = {}

    id: Optional[str] = None

    def to_row(self, **extra) -> dict:
        """Return the table row for this record without its identifier."""
        data = self.model_dump(exclude={"id"})
        row = {self.ROW_NAMES.get(k, k): v for k, v in data.items()}
        row.update(extra)
        return row

    @classmethod
    def from_row(cls, row: dict):
        reverse = {v: k for k, v in cls.ROW_NAMES.items()}
        data = {reverse.get(k, k): v for k, v in row.items()}
        if data.get("id") is not None:
            data["id"] = str(data["id"])
        return cls.model_validate(data)


class Exercise(Record):
    name: str = Field(min_length=1)
    category: Category
    muscle_group: str = Field(min_length=1)
    equipment: Optional[str] = None

    @field_validator("equipment")
    @classmethod
    def _blank_equipment(cls, value: Optional[str]) -> Optional[str]:
        return value or None


class WorkoutExercise(BaseModel):
    """One configured exercise inside a workout, exercise embedded by value."""

    exercise: Exercise
    sets: int = Field(ge=0)
    reps: int = Field(ge=0)
    weight: float = Field(ge=0)
    notes: Optional[str] = None

    def to_row(self, workout_id: str, position: int, user_id: str) -> dict:
        return {
            "user_id": user_id,
            "workout_id": workout_id,
            "position": position,
            "exercise_id": self.exercise.id,
            "exercise_name": self.exercise.name,
            "category": self.exercise.category,
            "muscle_group": self.exercise.muscle_group,
            "equipment": self.exercise.equipment,
            "sets": self.sets,
            "reps": self.reps,
            "weight": self.weight,
            "notes": self.notes,
        }

    @classmethod
    def from_row(cls, row: dict) -> "WorkoutExercise":
        exercise = Exercise(
            id=str(row["exercise_id"]) if row.get("exercise_id") is not None else None,
            name=row["exercise_name"],
            category=row["category"],
            muscle_group=row["muscle_group"],
            equipment=row.get("equipment"),
        )
        return cls(
            exercise=exercise,
            sets=row["sets"],
            reps=row["reps"],
            weight=row["weight"],
            notes=row.get("notes"),
        )


class Workout(Record):
    name: str = Field(min_length=1)
    date: str
    exercises: List[WorkoutExercise] = Field(default_factory=list)

    def to_row(self, **extra) -> dict:
        row = {"name": self.name, "date": self.date}
        row.update(extra)
        return row


class ProgressExercise(Record):
    ROW_NAMES: ClassVar[Dict[str, str]] = {"name": "exercise_name"}

    name: str = Field(min_length=1)
    starting_weight: float = Field(ge=0)
    current_weight: float = Field(ge=0)
    goal_weight: float = Field(ge=0)
    current_reps: int = Field(0, ge=0)
    target_reps: int = Field(0, ge=0)
    unit: WeightUnit = "kg"
    date_added: Optional[str] = None
    last_updated: Optional[str] = None
    notes: Optional[str] = None
    personal_record: Optional[float] = None
    total_sessions: int = 0

    @field_validator("total_sessions", mode="before")
    @classmethod
    def _null_sessions(cls, value):
        return 0 if value is None else value


class ExerciseSession(Record):
    """Immutable history entry, one per exercise per completed workout."""

    exercise_name: str
    weight: float
    reps: int
    sets: int
    date: str
    workout_id: str
    workout_name: str

    @field_validator("workout_id", mode="before")
    @classmethod
    def _text_workout_id(cls, value):
        return str(value)


class PerformedExercise(BaseModel):
    """What was actually lifted for one exercise in a completed workout."""

    model_config = ConfigDict(str_strip_whitespace=True)

    name: str = Field(min_length=1)
    weight: float = Field(ge=0)
    reps: int = Field(ge=0)
    sets: int = Field(ge=0)


def build(model: type[BaseModel], data: dict):
    """Validate ``data`` as ``model`` and raise ``ValueError`` on failure."""
    try:
        return model.model_validate(data)
    except ValidationError as e:
        raise ValueError(str(e))

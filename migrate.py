import asyncio
import datetime
import logging
import sys

from client import RemoteError, TableClient

log = logging.getLogger("fittrack.migrate")

BATCH_SIZE = 10

# (name, muscle group, equipment)
DEFAULT_EXERCISES = {
    "push": [
        ("Push-ups", "Chest, Triceps, Shoulders", None),
        ("Bench Press", "Chest", "Barbell"),
        ("Shoulder Press", "Shoulders", "Dumbbells"),
        ("Tricep Dips", "Triceps", None),
        ("Incline Bench Press", "Upper Chest", "Barbell"),
        ("Dumbbell Flyes", "Chest", "Dumbbells"),
        ("Overhead Press", "Shoulders", "Barbell"),
        ("Tricep Extensions", "Triceps", "Dumbbells"),
    ],
    "pull": [
        ("Pull-ups", "Back, Biceps", None),
        ("Bent-over Row", "Back", "Barbell"),
        ("Bicep Curls", "Biceps", "Dumbbells"),
        ("Lat Pulldowns", "Back", "Cable Machine"),
        ("Deadlifts", "Back, Hamstrings", "Barbell"),
        ("Chin-ups", "Back, Biceps", None),
        ("Hammer Curls", "Biceps", "Dumbbells"),
        ("Face Pulls", "Rear Delts", "Cable Machine"),
    ],
    "legs": [
        ("Squats", "Quadriceps, Glutes", None),
        ("Romanian Deadlifts", "Hamstrings, Glutes", "Barbell"),
        ("Lunges", "Quadriceps, Glutes", None),
        ("Calf Raises", "Calves", None),
        ("Leg Press", "Quadriceps, Glutes", "Machine"),
        ("Bulgarian Split Squats", "Quadriceps, Glutes", None),
        ("Hip Thrusts", "Glutes", None),
        ("Leg Curls", "Hamstrings", "Machine"),
    ],
    "core": [
        ("Plank", "Core", None),
        ("Crunches", "Abs", None),
        ("Russian Twists", "Obliques", None),
        ("Mountain Climbers", "Core", None),
        ("Dead Bug", "Core", None),
        ("Bicycle Crunches", "Abs, Obliques", None),
        ("Side Plank", "Obliques", None),
        ("Leg Raises", "Lower Abs", None),
    ],
    "cardio": [
        ("Running", "Full Body", None),
        ("Cycling", "Legs", "Bike"),
        ("Rowing", "Full Body", "Rowing Machine"),
        ("Burpees", "Full Body", None),
        ("Jump Rope", "Full Body", "Jump Rope"),
        ("High Knees", "Legs", None),
    ],
}

# Child tables first so nothing is left pointing at a deleted parent.
CLEAR_ORDER = (
    "exercise_history",
    "workout_exercises",
    "workouts",
    "progress",
    "exercises",
    "user_settings",
)


def seed_catalog() -> list[dict]:
    """Return the seed exercises as domain dictionaries, grouped by category."""
    return [
        {"name": name, "category": category, "muscle_group": muscles, "equipment": equipment}
        for category, entries in DEFAULT_EXERCISES.items()
        for name, muscles, equipment in entries
    ]


def seed_rows(user_id: str) -> list[dict]:
    created_at = datetime.datetime.now().isoformat(timespec="seconds")
    return [
        {**exercise, "user_id": user_id, "created_at": created_at}
        for exercise in seed_catalog()
    ]


async def populate_default_exercises(
    client: TableClient, user_id: str, batch_size: int = BATCH_SIZE
) -> bool:
    """Insert the seed catalog when the exercise table is empty."""
    log.info("Starting migration: populating default exercises")
    try:
        existing = await client.select("exercises", columns="id", limit=1)
    except RemoteError as exc:
        log.error("Error checking existing exercises: %s", exc)
        return False
    if existing:
        log.info("Default exercises already exist, skipping migration")
        return True

    rows = seed_rows(user_id)
    batches = [rows[i : i + batch_size] for i in range(0, len(rows), batch_size)]
    for number, batch in enumerate(batches, start=1):
        try:
            await client.insert("exercises", batch)
        except RemoteError as exc:
            log.error("Error inserting exercise batch %d: %s", number, exc)
            return False
        log.info("Inserted batch %d/%d", number, len(batches))
    log.info("Populated %d default exercises", len(rows))
    return True


async def clear_all_data(client: TableClient, user_id: str) -> bool:
    """Delete every row owned by ``user_id``."""
    log.info("Clearing all data for %s", user_id)
    try:
        for table in CLEAR_ORDER:
            await client.delete(table, filters={"user_id": user_id})
    except RemoteError as exc:
        log.error("Error clearing data: %s", exc)
        return False
    return True


async def run_migrations(client: TableClient, user_id: str) -> bool:
    log.info("Running database migrations")
    success = await populate_default_exercises(client, user_id)
    if success:
        log.info("All migrations completed")
    else:
        log.warning("Some migrations failed, check the log above")
    return success


if __name__ == "__main__":
    from config import load_app_config
    from db import SQLiteTableClient

    logging.basicConfig(level=logging.INFO, format="%(asctime)s [%(levelname)s] %(message)s")
    cfg = load_app_config()
    path = sys.argv[1] if len(sys.argv) > 1 else cfg.database_path
    ok = asyncio.run(run_migrations(SQLiteTableClient(path), cfg.user_id))
    sys.exit(0 if ok else 1)

import os
import sys

import pytest

sys.path.append(os.path.dirname(os.path.dirname(__file__)))
from models import WorkoutExercise
from stores import WorkoutStore, default_exercises, is_local_id

USER = "u1"


def _entry(exercise, sets=3, reps=10, weight=50.0):
    return {"exercise": exercise.model_dump(), "sets": sets, "reps": reps, "weight": weight}


@pytest.fixture
def catalog():
    return default_exercises()


@pytest.mark.asyncio
async def test_add_writes_parent_and_children(sqlite_client, storage, catalog, clock):
    store = WorkoutStore(sqlite_client, storage, USER, clock=clock)
    workout = await store.add(
        {
            "name": "Push Day",
            "date": "2024-05-15T18:00:00",
            "exercises": [_entry(catalog[1]), _entry(catalog[0], weight=0)],
        }
    )
    assert not is_local_id(workout.id)
    children = await sqlite_client.select(
        "workout_exercises", filters={"workout_id": workout.id}, order="position"
    )
    assert [c["exercise_name"] for c in children] == ["Bench Press", "Push-ups"]
    assert children[0]["user_id"] == USER

    fresh = WorkoutStore(sqlite_client, storage, USER)
    fresh.set_items([])
    await fresh.load()
    assert fresh.workouts[0].id == workout.id
    assert [we.exercise.name for we in fresh.workouts[0].exercises] == ["Bench Press", "Push-ups"]
    assert fresh.workouts[0].exercises[0].weight == 50.0


@pytest.mark.asyncio
async def test_load_orders_newest_first(sqlite_client, storage, catalog):
    store = WorkoutStore(sqlite_client, storage, USER)
    await store.add({"name": "Old", "date": "2024-05-01", "exercises": [_entry(catalog[0])]})
    await store.add({"name": "New", "date": "2024-05-10", "exercises": [_entry(catalog[0])]})
    await store.load()
    assert [w.name for w in store.workouts] == ["New", "Old"]


@pytest.mark.asyncio
async def test_update_replaces_children(sqlite_client, storage, catalog):
    store = WorkoutStore(sqlite_client, storage, USER)
    workout = await store.add(
        {"name": "Legs", "date": "2024-05-01", "exercises": [_entry(catalog[16])]}
    )
    store.set_current_workout(workout)
    updated = await store.update(
        workout.id,
        {"name": "Leg Day", "exercises": [_entry(catalog[17]), _entry(catalog[18])]},
    )
    assert updated.name == "Leg Day"
    assert store.current_workout == updated
    children = await sqlite_client.select("workout_exercises", filters={"workout_id": workout.id})
    assert sorted(c["exercise_name"] for c in children) == ["Lunges", "Romanian Deadlifts"]
    [parent] = await sqlite_client.select("workouts", filters={"id": workout.id})
    assert parent["name"] == "Leg Day"


@pytest.mark.asyncio
async def test_update_rejects_unknown_fields(sqlite_client, storage, catalog):
    store = WorkoutStore(sqlite_client, storage, USER)
    workout = await store.add({"name": "A", "date": "2024-05-01", "exercises": []})
    with pytest.raises(ValueError):
        await store.update(workout.id, {"duration": 30})
    with pytest.raises(ValueError):
        await store.update(workout.id, {"name": "  "})


@pytest.mark.asyncio
async def test_delete_removes_children_and_current(sqlite_client, storage, catalog):
    store = WorkoutStore(sqlite_client, storage, USER)
    workout = await store.add(
        {"name": "Core", "date": "2024-05-01", "exercises": [_entry(catalog[24])]}
    )
    store.set_current_workout(workout)
    await store.delete(workout.id)
    assert store.workouts == []
    assert store.current_workout is None
    assert await sqlite_client.select("workout_exercises") == []
    assert await sqlite_client.select("workouts") == []


@pytest.mark.asyncio
async def test_offline_add_then_edit_folds_into_pending_add(failing_client, storage, catalog):
    store = WorkoutStore(failing_client, storage, USER)
    workout = await store.add(
        {"name": "Travel", "date": "2024-05-01", "exercises": [_entry(catalog[0])]}
    )
    await store.update(workout.id, {"name": "Hotel Gym"})
    assert store.get(workout.id).name == "Hotel Gym"
    assert len(store.outbox) == 1
    assert store.outbox[0]["payload"]["name"] == "Hotel Gym"

    await store.delete(workout.id)
    assert store.outbox == []
    assert store.workouts == []


@pytest.mark.asyncio
async def test_offline_update_of_unseen_workout_queues_plain_payload(failing_client, storage, catalog):
    store = WorkoutStore(failing_client, storage, USER)
    entry = WorkoutExercise.model_validate(_entry(catalog[2], sets=4))
    assert await store.update("w9", {"exercises": [entry]}) is None
    [queued] = store.outbox
    assert queued["op"] == "update" and queued["id"] == "w9"
    assert queued["payload"]["exercises"] == [entry.model_dump(mode="json")]
    assert storage.get_item("workout-storage")["outbox"] == store.outbox

def test_clear_workouts(failing_client, storage, catalog):
    store = WorkoutStore(failing_client, storage, USER)
    store.set_items([])
    store.set_current_workout(None)
    store.clear_workouts()
    assert store.workouts == [] and store.current_workout is None
    assert storage.get_item("workout-storage")["items"] == []

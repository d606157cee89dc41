"""State containers mirroring the hosted tables with a local persisted copy.

Each store keeps its collection in memory, writes a JSON snapshot to
:class:`db.LocalStorage` on every change and talks to the backend through a
:class:`client.TableClient`. Remote failures never reach the caller: the
local change is applied anyway and queued in the store's outbox so
:meth:`SyncedStore.flush_outbox` can replay it later.
"""

from __future__ import annotations

import asyncio
import datetime
import itertools
import logging
import time
from typing import Callable, Generic, List, Optional, Type, TypeVar

from pydantic import BaseModel

import stats_service
from algorithms import WeightConverter
from client import RemoteError, TableClient
from db import LocalStorage
from migrate import seed_catalog
from models import (
    CATEGORY_ORDER,
    Exercise,
    ExerciseSession,
    PerformedExercise,
    ProgressExercise,
    Record,
    Workout,
    WorkoutExercise,
    build,
)
from settings_schema import SettingsSchema, validate_settings

log = logging.getLogger("fittrack.stores")

DEFAULT_USER_ID = "temp-user-123"
LOCAL_PREFIX = "local-"

_local_counter = itertools.count(1)

T = TypeVar("T", bound=Record)


def local_id() -> str:
    """Return a unique identifier for an entity the backend has not seen."""
    return f"{LOCAL_PREFIX}{int(time.time() * 1000)}-{next(_local_counter)}"


def is_local_id(value) -> bool:
    return isinstance(value, str) and value.startswith(LOCAL_PREFIX)


def _plain(value):
    if isinstance(value, BaseModel):
        return value.model_dump(mode="json")
    if isinstance(value, (list, tuple)):
        return [_plain(v) for v in value]
    if isinstance(value, dict):
        return {k: _plain(v) for k, v in value.items()}
    return value


class SyncedStore:
    """Persistence, change notification and remote-call plumbing."""

    storage_key = ""
    name = "store"

    def __init__(
        self,
        client: TableClient,
        storage: LocalStorage,
        user_id: str = DEFAULT_USER_ID,
        *,
        clock: Callable[[], datetime.datetime] | None = None,
    ) -> None:
        self.client = client
        self.storage = storage
        self.user_id = user_id
        self.clock = clock or datetime.datetime.now
        self.outbox: List[dict] = []
        self.last_updated: Optional[str] = None
        self.last_error: Optional[str] = None
        self._pending_loads = 0
        self._flush_lock = asyncio.Lock()
        self._listeners: List[Callable] = []
        self._restore()

    @property
    def is_loading(self) -> bool:
        return self._pending_loads > 0

    def set_loading(self, loading: bool) -> None:
        self._pending_loads = 1 if loading else 0
        self._notify()

    def subscribe(self, callback: Callable) -> Callable[[], None]:
        """Call ``callback(store)`` after every change; returns an unsubscriber."""
        self._listeners.append(callback)

        def unsubscribe() -> None:
            if callback in self._listeners:
                self._listeners.remove(callback)

        return unsubscribe

    def _notify(self) -> None:
        for callback in list(self._listeners):
            callback(self)

    def _now(self) -> str:
        return self.clock().isoformat(timespec="seconds")

    def _today(self) -> datetime.date:
        return self.clock().date()

    # -- local persistence

    def _snapshot(self) -> dict:
        return {"outbox": self.outbox, "last_updated": self.last_updated}

    def _apply_snapshot(self, blob: dict) -> None:
        self.outbox = [dict(e) for e in blob.get("outbox", [])]
        self.last_updated = blob.get("last_updated")

    def _restore(self) -> None:
        blob = self.storage.get_item(self.storage_key)
        if not blob:
            return
        try:
            self._apply_snapshot(blob)
        except (ValueError, KeyError, TypeError) as exc:
            log.warning("Ignoring unreadable %s: %s", self.storage_key, exc)

    def _commit(self, touched: bool = True) -> None:
        if touched:
            self.last_updated = self._now()
        self.storage.set_item(self.storage_key, self._snapshot())
        self._notify()

    # -- remote plumbing

    async def _remote(self, description: str, call: Callable):
        """Await ``call()``; return ``(True, result)`` or ``(False, None)``."""
        try:
            return True, await call()
        except RemoteError as exc:
            log.warning("%s failed: %s", description, exc)
            self.last_error = f"{description}: {exc}"
        except Exception as exc:
            log.exception("%s failed unexpectedly", description)
            self.last_error = f"{description}: {exc}"
        return False, None

    async def _fetch_remote(self):
        raise NotImplementedError

    def _apply_remote(self, data) -> None:
        raise NotImplementedError

    async def load(self) -> None:
        """Replace local state with the remote copy; keep it if the fetch fails."""
        self._pending_loads += 1
        self._notify()
        try:
            ok, data = await self._remote(f"load {self.name}", self._fetch_remote)
            if ok:
                self.last_error = None
                self._apply_remote(data)
                self._commit(touched=False)
        finally:
            self._pending_loads -= 1
            self._notify()

    # -- outbox

    def _enqueue(self, op: str, entity_id, payload) -> None:
        self.outbox.append({"op": op, "id": entity_id, "payload": payload})

    async def _replay(self, entry: dict):
        raise ValueError(f"unknown outbox operation {entry['op']}")

    def _after_replay(self, entry: dict, result) -> None:
        pass

    async def flush_outbox(self) -> int:
        """Replay queued changes in order, stopping at the first failure."""
        replayed = 0
        async with self._flush_lock:
            while self.outbox:
                entry = self.outbox[0]
                ok, result = await self._remote(
                    f"replay {entry['op']} on {self.name}", lambda: self._replay(entry)
                )
                if not ok:
                    break
                self.outbox = [e for e in self.outbox if e is not entry]
                self._after_replay(entry, result)
                replayed += 1
                self._commit(touched=False)
        if replayed:
            log.info("Replayed %d queued change(s) for %s", replayed, self.name)
        return replayed


class EntityStore(SyncedStore, Generic[T]):
    """One synchronized entity collection.

    Subclasses (or constructor keywords) pick the remote ``table``, the local
    ``storage_key`` and the record ``model``.
    """

    table = ""
    model: Type[T] = Record
    order_by: Optional[str] = None
    descending = False
    filter_by_user = True

    def __init__(
        self,
        client: TableClient,
        storage: LocalStorage,
        user_id: str = DEFAULT_USER_ID,
        *,
        table: str | None = None,
        storage_key: str | None = None,
        model: Type[T] | None = None,
        clock: Callable[[], datetime.datetime] | None = None,
    ) -> None:
        if table:
            self.table = table
        if storage_key:
            self.storage_key = storage_key
        if model:
            self.model = model
        self.name = self.table
        self.items: List[T] = self._initial_items()
        super().__init__(client, storage, user_id, clock=clock)

    def _initial_items(self) -> List[T]:
        return []

    def get(self, entity_id) -> Optional[T]:
        return next((i for i in self.items if i.id == entity_id), None)

    def set_items(self, items: List[T]) -> None:
        self.items = list(items)
        self._commit()

    def _snapshot(self) -> dict:
        data = super()._snapshot()
        data["items"] = [i.model_dump(mode="json") for i in self.items]
        return data

    def _apply_snapshot(self, blob: dict) -> None:
        items = [self.model.model_validate(i) for i in blob.get("items", [])]
        super()._apply_snapshot(blob)
        self.items = items

    def _merged(self, entity: T, changes: dict) -> T:
        return self.model.model_validate({**entity.model_dump(), **changes})

    def _entity_changed(self, entity_id, new_id=None) -> None:
        """Hook run after an entity is updated, deleted or renumbered."""

    # -- remote operations

    def _user_filter(self) -> dict:
        return {"user_id": self.user_id}

    def _owner_filter(self, entity_id) -> dict:
        return {"id": entity_id, "user_id": self.user_id}

    async def _fetch_remote(self) -> List[T]:
        rows = await self.client.select(
            self.table,
            filters=self._user_filter() if self.filter_by_user else None,
            order=self.order_by,
            descending=self.descending,
        )
        return [self.model.from_row(r) for r in rows]

    def _apply_remote(self, data: List[T]) -> None:
        self.items = self._project_outbox(data)

    async def _remote_add(self, entity: T) -> T:
        rows = await self.client.insert(self.table, [entity.to_row(user_id=self.user_id)])
        return self.model.from_row(rows[0])

    async def _remote_update(self, entity_id, changes: dict) -> None:
        names = self.model.ROW_NAMES
        values = {names.get(k, k): v for k, v in changes.items()}
        await self.client.update(self.table, values, filters=self._owner_filter(entity_id))

    async def _remote_delete(self, entity_id) -> None:
        await self.client.delete(self.table, filters=self._owner_filter(entity_id))

    # -- outbox

    def _project_outbox(self, items: List[T]) -> List[T]:
        """Lay the still-queued local changes over a fresh remote copy."""
        items = list(items)
        for entry in self.outbox:
            op, entity_id, payload = entry["op"], entry["id"], entry["payload"]
            if op == "add" and not any(i.id == entity_id for i in items):
                items.append(self.model.model_validate(payload))
            elif op == "update":
                items = [self._merged(i, payload) if i.id == entity_id else i for i in items]
            elif op == "delete":
                items = [i for i in items if i.id != entity_id]
        return items

    def _fold_into_pending_add(self, entity_id, changes: dict) -> None:
        for entry in self.outbox:
            if entry["op"] == "add" and entry["id"] == entity_id:
                entry["payload"] = {**entry["payload"], **changes}

    async def _replay(self, entry: dict):
        op = entry["op"]
        if op == "add":
            return await self._remote_add(self.model.model_validate(entry["payload"]))
        if op == "update":
            return await self._remote_update(entry["id"], entry["payload"])
        if op == "delete":
            return await self._remote_delete(entry["id"])
        return await super()._replay(entry)

    def _after_replay(self, entry: dict, result) -> None:
        if entry["op"] == "add":
            old_id, new_id = entry["id"], result.id
            self.items = [
                i.model_copy(update={"id": new_id}) if i.id == old_id else i
                for i in self.items
            ]
            self._entity_changed(old_id, new_id)

    # -- mutators

    def _draft(self, data) -> T:
        if isinstance(data, BaseModel):
            data = data.model_dump()
        data = dict(data)
        data.pop("id", None)
        return build(self.model, data)

    def _changes(self, entity_id, changes: dict) -> dict:
        changes = dict(changes)
        unknown = [k for k in changes if k == "id" or k not in self.model.model_fields]
        if unknown:
            raise ValueError(f"Unknown fields for {self.name}: {', '.join(unknown)}")
        if "last_updated" in self.model.model_fields:
            changes["last_updated"] = self._now()
        existing = self.get(entity_id)
        if existing is None:
            return {k: _plain(v) for k, v in changes.items()}
        merged = build(self.model, {**existing.model_dump(), **changes})
        dumped = merged.model_dump(mode="json")
        return {k: dumped[k] for k in changes}

    async def add(self, data) -> T:
        """Insert remotely, or keep a local-only copy when the backend fails."""
        draft = self._draft(data)
        ok, created = await self._remote(
            f"add to {self.name}", lambda: self._remote_add(draft)
        )
        if ok:
            entity = created
        else:
            entity = draft.model_copy(update={"id": local_id()})
            self._enqueue("add", entity.id, entity.model_dump(mode="json"))
        self.items = self.items + [entity]
        self._commit()
        return entity

    async def update(self, entity_id, changes: dict) -> Optional[T]:
        """Apply ``changes`` locally regardless of the remote outcome."""
        changes = self._changes(entity_id, changes)
        if is_local_id(entity_id):
            self._fold_into_pending_add(entity_id, changes)
        else:
            ok, _ = await self._remote(
                f"update {self.name} {entity_id}",
                lambda: self._remote_update(entity_id, changes),
            )
            if not ok:
                self._enqueue("update", entity_id, changes)
        self.items = [
            self._merged(i, changes) if i.id == entity_id else i for i in self.items
        ]
        self._entity_changed(entity_id)
        self._commit()
        return self.get(entity_id)

    async def delete(self, entity_id) -> None:
        """Remove the entity locally regardless of the remote outcome."""
        if is_local_id(entity_id):
            self.outbox = [e for e in self.outbox if e["id"] != entity_id]
        else:
            ok, _ = await self._remote(
                f"delete {self.name} {entity_id}",
                lambda: self._remote_delete(entity_id),
            )
            if not ok:
                self.outbox = [
                    e for e in self.outbox
                    if not (e["op"] == "update" and e["id"] == entity_id)
                ]
                self._enqueue("delete", entity_id, None)
        self.items = [i for i in self.items if i.id != entity_id]
        self._entity_changed(entity_id)
        self._commit()


def default_exercises() -> List[Exercise]:
    return [
        Exercise(id=f"default-{n}", **data)
        for n, data in enumerate(seed_catalog(), start=1)
    ]


class ExerciseStore(EntityStore[Exercise]):
    """Exercise library plus the transient selection used to build workouts."""

    table = "exercises"
    storage_key = "exercise-storage"
    model = Exercise
    order_by = "name"
    filter_by_user = False

    def __init__(self, *args, **kwargs) -> None:
        self.selected: List[Exercise] = []
        super().__init__(*args, **kwargs)

    @property
    def exercises(self) -> List[Exercise]:
        return self.items

    def _initial_items(self) -> List[Exercise]:
        return default_exercises()

    def _apply_remote(self, data: List[Exercise]) -> None:
        if not data:
            log.info("No exercises found remotely, using default exercises")
            data = default_exercises()
        super()._apply_remote(data)

    def _entity_changed(self, entity_id, new_id=None) -> None:
        current = self.get(new_id or entity_id)
        selected = []
        for exercise in self.selected:
            if exercise.id != entity_id:
                selected.append(exercise)
            elif current is not None:
                selected.append(current)
        self.selected = selected

    def toggle_selection(self, exercise_id) -> None:
        exercise = self.get(exercise_id)
        if exercise is None:
            return
        if self.is_selected(exercise_id):
            self.selected = [e for e in self.selected if e.id != exercise_id]
        else:
            self.selected = self.selected + [exercise]
        self._notify()

    def clear_selection(self) -> None:
        self.selected = []
        self._notify()

    def is_selected(self, exercise_id) -> bool:
        return any(e.id == exercise_id for e in self.selected)

    def by_category(self, category: str) -> List[Exercise]:
        return [e for e in self.items if e.category == category]

    def sorted_exercises(self) -> List[Exercise]:
        """Exercises grouped by category order, then alphabetically."""
        return sorted(
            self.items,
            key=lambda e: (CATEGORY_ORDER.index(e.category), e.name.casefold()),
        )

    def search(self, query: str = "", category: str = "all") -> List[Exercise]:
        needle = query.strip().casefold()
        results = []
        for exercise in self.sorted_exercises():
            if category != "all" and exercise.category != category:
                continue
            fields = [exercise.name, exercise.muscle_group, exercise.equipment or ""]
            if needle and not any(needle in f.casefold() for f in fields):
                continue
            results.append(exercise)
        return results


class WorkoutStore(EntityStore[Workout]):
    """Workouts with their exercise configurations stored as child rows."""

    table = "workouts"
    children_table = "workout_exercises"
    storage_key = "workout-storage"
    model = Workout
    order_by = "date"
    descending = True

    def __init__(self, *args, **kwargs) -> None:
        self.current_workout: Optional[Workout] = None
        super().__init__(*args, **kwargs)

    @property
    def workouts(self) -> List[Workout]:
        return self.items

    def _snapshot(self) -> dict:
        data = super()._snapshot()
        current = self.current_workout
        data["current_workout"] = current.model_dump(mode="json") if current else None
        return data

    def _apply_snapshot(self, blob: dict) -> None:
        current = blob.get("current_workout")
        current = Workout.model_validate(current) if current else None
        super()._apply_snapshot(blob)
        self.current_workout = current

    def _entity_changed(self, entity_id, new_id=None) -> None:
        if self.current_workout is not None and self.current_workout.id == entity_id:
            self.current_workout = self.get(new_id or entity_id)

    def set_current_workout(self, workout: Optional[Workout]) -> None:
        self.current_workout = workout
        self._commit(touched=False)

    def clear_workouts(self) -> None:
        self.items = []
        self.current_workout = None
        self._commit()

    async def _fetch_remote(self) -> List[Workout]:
        workout_rows, child_rows = await asyncio.gather(
            self.client.select(
                self.table,
                filters=self._user_filter(),
                order=self.order_by,
                descending=self.descending,
            ),
            self.client.select(
                self.children_table, filters=self._user_filter(), order="position"
            ),
        )
        children: dict[str, List[WorkoutExercise]] = {}
        for row in child_rows:
            children.setdefault(str(row["workout_id"]), []).append(
                WorkoutExercise.from_row(row)
            )
        return [
            Workout.from_row(row).model_copy(
                update={"exercises": children.get(str(row["id"]), [])}
            )
            for row in workout_rows
        ]

    async def _replace_children(
        self, workout_id: str, exercises: List[WorkoutExercise], clear: bool = True
    ) -> None:
        # Not transactional: a failure here leaves the parent row written.
        if clear:
            await self.client.delete(
                self.children_table, filters={"workout_id": workout_id}
            )
        rows = [
            we.to_row(workout_id, position, self.user_id)
            for position, we in enumerate(exercises)
        ]
        if rows:
            await self.client.insert(self.children_table, rows)

    async def _remote_add(self, workout: Workout) -> Workout:
        rows = await self.client.insert(
            self.table, [workout.to_row(user_id=self.user_id, created_at=self._now())]
        )
        workout_id = str(rows[0]["id"])
        await self._replace_children(workout_id, workout.exercises, clear=False)
        return workout.model_copy(update={"id": workout_id})

    async def _remote_update(self, workout_id, changes: dict) -> None:
        parent = {k: changes[k] for k in ("name", "date") if k in changes}
        if parent:
            await self.client.update(
                self.table, parent, filters=self._owner_filter(workout_id)
            )
        if "exercises" in changes:
            exercises = [WorkoutExercise.model_validate(e) for e in changes["exercises"]]
            await self._replace_children(workout_id, exercises)

    async def _remote_delete(self, workout_id) -> None:
        await self.client.delete(self.children_table, filters={"workout_id": workout_id})
        await super()._remote_delete(workout_id)


class ProgressStore(EntityStore[ProgressExercise]):
    """Tracked lifts, their completion history, and the workout streak."""

    table = "progress"
    history_table = "exercise_history"
    storage_key = "progress-storage"
    model = ProgressExercise
    order_by = "exercise_name"

    def __init__(self, *args, **kwargs) -> None:
        self.exercise_history: List[ExerciseSession] = []
        self.workout_streak = 0
        self.last_workout_date: Optional[str] = None
        super().__init__(*args, **kwargs)

    @property
    def progress_exercises(self) -> List[ProgressExercise]:
        return self.items

    def _snapshot(self) -> dict:
        data = super()._snapshot()
        data["exercise_history"] = [s.model_dump(mode="json") for s in self.exercise_history]
        data["workout_streak"] = self.workout_streak
        data["last_workout_date"] = self.last_workout_date
        return data

    def _apply_snapshot(self, blob: dict) -> None:
        history = [ExerciseSession.model_validate(s) for s in blob.get("exercise_history", [])]
        streak = int(blob.get("workout_streak", 0))
        super()._apply_snapshot(blob)
        self.exercise_history = history
        self.workout_streak = streak
        self.last_workout_date = blob.get("last_workout_date")

    def _draft(self, data) -> ProgressExercise:
        draft = super()._draft(data)
        now = self._now()
        record = draft.personal_record
        return draft.model_copy(
            update={
                "date_added": draft.date_added or now,
                "last_updated": now,
                "personal_record": draft.current_weight if record is None else record,
                "total_sessions": 0,
            }
        )

    async def _fetch_remote(self):
        progress_rows, history_rows = await asyncio.gather(
            self.client.select(
                self.table, filters=self._user_filter(), order=self.order_by
            ),
            self.client.select(
                self.history_table,
                filters=self._user_filter(),
                order="date",
                descending=True,
            ),
        )
        progress = [ProgressExercise.from_row(r) for r in progress_rows]
        history = [ExerciseSession.from_row(r) for r in history_rows]
        return progress, history

    def _apply_remote(self, data) -> None:
        progress, history = data
        super()._apply_remote(progress)
        known = {s.id for s in history}
        for entry in self.outbox:
            if entry["op"] == "history":
                history = history + [
                    ExerciseSession.model_validate(s)
                    for s in entry["payload"]
                    if s["id"] not in known
                ]
        self.exercise_history = history

    async def _insert_history(self, sessions: List[ExerciseSession]) -> List[ExerciseSession]:
        rows = await self.client.insert(
            self.history_table, [s.to_row(user_id=self.user_id) for s in sessions]
        )
        return [ExerciseSession.from_row(r) for r in rows]

    async def _replay(self, entry: dict):
        if entry["op"] == "history":
            sessions = [
                ExerciseSession.model_validate({**s, "id": None}) for s in entry["payload"]
            ]
            return await self._insert_history(sessions)
        return await super()._replay(entry)

    def _after_replay(self, entry: dict, result) -> None:
        if entry["op"] != "history":
            super()._after_replay(entry, result)
            return
        new_ids = {s["id"]: saved.id for s, saved in zip(entry["payload"], result)}
        self.exercise_history = [
            s.model_copy(update={"id": new_ids[s.id]}) if s.id in new_ids else s
            for s in self.exercise_history
        ]

    # -- workout completion

    @staticmethod
    def _completion_changes(personal_record, total_sessions, performed, now) -> dict:
        return {
            "current_weight": performed.weight,
            "current_reps": performed.reps,
            "personal_record": max(personal_record or 0, performed.weight),
            "total_sessions": (total_sessions or 0) + 1,
            "last_updated": now,
        }

    def _apply_completion(
        self,
        performed: List[PerformedExercise],
        now: str,
        *,
        queue: bool,
        local: Optional[bool] = None,
    ) -> None:
        """Apply a completion to local state.

        ``local`` limits the change to local-only entities (True) or to
        backend entities (False); ``queue`` records backend changes in the
        outbox.
        """
        updated = []
        for entity in self.items:
            if local is not None and is_local_id(entity.id) != local:
                updated.append(entity)
                continue
            matches = [p for p in performed if p.name.casefold() == entity.name.casefold()]
            if not matches:
                updated.append(entity)
                continue
            record, sessions = entity.personal_record, entity.total_sessions
            for match in matches:
                changes = self._completion_changes(record, sessions, match, now)
                record, sessions = changes["personal_record"], changes["total_sessions"]
            if is_local_id(entity.id):
                self._fold_into_pending_add(entity.id, changes)
            elif queue:
                self._enqueue("update", entity.id, changes)
            updated.append(self._merged(entity, changes))
        self.items = updated

    async def _update_remote_progress(
        self, performed: List[PerformedExercise], now: str
    ) -> bool:
        ok, rows = await self._remote(
            "fetch progress for completion",
            lambda: self.client.select(self.table, filters=self._user_filter()),
        )
        if not ok:
            return False
        for exercise in performed:
            for row in rows:
                if str(row["exercise_name"]).casefold() != exercise.name.casefold():
                    continue
                changes = self._completion_changes(
                    row.get("personal_record"), row.get("total_sessions"), exercise, now
                )
                row_id = str(row["id"])
                saved, _ = await self._remote(
                    f"update progress for {exercise.name}",
                    lambda: self.client.update(
                        self.table, changes, filters=self._owner_filter(row_id)
                    ),
                )
                if not saved:
                    self._enqueue("update", row_id, changes)
                row.update(changes)
        return True

    async def record_workout_completion(
        self, workout_id, workout_name: str, exercises
    ) -> None:
        """Log history for a finished workout and roll progress forward."""
        performed = [
            build(PerformedExercise, e.model_dump() if isinstance(e, BaseModel) else e)
            for e in exercises
        ]
        now = self._now()
        sessions = [
            ExerciseSession(
                exercise_name=p.name,
                weight=p.weight,
                reps=p.reps,
                sets=p.sets,
                date=now,
                workout_id=str(workout_id),
                workout_name=workout_name,
            )
            for p in performed
        ]
        ok, saved = await self._remote(
            "record exercise history", lambda: self._insert_history(sessions)
        )
        if not ok:
            sessions = [s.model_copy(update={"id": local_id()}) for s in sessions]
            self._enqueue("history", None, [s.model_dump(mode="json") for s in sessions])
            self.exercise_history = self.exercise_history + sessions
            self._apply_completion(performed, now, queue=True)
            self._commit()
            return

        fetched = await self._update_remote_progress(performed, now)
        if fetched:
            self._apply_completion(performed, now, queue=False, local=True)
        else:
            self._apply_completion(performed, now, queue=True)
        refreshed, data = await self._remote("refresh progress", self._fetch_remote)
        if refreshed:
            self._apply_remote(data)
        else:
            self.exercise_history = self.exercise_history + saved
            if fetched:
                self._apply_completion(performed, now, queue=False, local=False)
        self._commit()

    def set_exercise_history(self, history) -> None:
        self.exercise_history = [
            s if isinstance(s, ExerciseSession) else build(ExerciseSession, s)
            for s in history
        ]
        self._commit()

    # -- derived views

    def get_exercise_history(self, exercise_name: str) -> List[ExerciseSession]:
        name = exercise_name.casefold()
        sessions = [s for s in self.exercise_history if s.exercise_name.casefold() == name]
        return sorted(sessions, key=lambda s: s.date, reverse=True)

    def update_workout_streak(self, today: datetime.date | None = None) -> int:
        self.workout_streak, self.last_workout_date = stats_service.next_streak(
            self.last_workout_date, self.workout_streak, today or self._today()
        )
        self._commit()
        return self.workout_streak

    def get_weekly_stats(self, today: datetime.date | None = None) -> dict[str, int]:
        return stats_service.weekly_stats(self.exercise_history, today or self._today())

    def get_monthly_stats(self, today: datetime.date | None = None) -> dict[str, int]:
        return stats_service.monthly_stats(self.exercise_history, today or self._today())

    def progress_percentage(self, entity_id) -> float:
        entity = self.get(entity_id)
        if entity is None:
            raise KeyError(entity_id)
        return stats_service.progress_percentage(
            entity.starting_weight, entity.current_weight, entity.goal_weight
        )

    async def convert_unit(self, entity_id, unit: str) -> Optional[ProgressExercise]:
        """Switch a tracked lift to ``unit`` converting every stored weight."""
        if unit not in WeightConverter.UNITS:
            raise ValueError(f"Unknown unit: {unit}")
        entity = self.get(entity_id)
        if entity is None:
            raise KeyError(entity_id)
        if entity.unit == unit:
            return entity

        def convert(weight: float) -> float:
            return WeightConverter.convert(weight, entity.unit, unit)

        changes = {
            "unit": unit,
            "starting_weight": convert(entity.starting_weight),
            "current_weight": convert(entity.current_weight),
            "goal_weight": convert(entity.goal_weight),
        }
        if entity.personal_record is not None:
            changes["personal_record"] = convert(entity.personal_record)
        return await self.update(entity_id, changes)


class SettingsStore(SyncedStore):
    """Singleton user settings row."""

    table = "user_settings"
    storage_key = "settings-storage"
    name = "user_settings"

    def __init__(self, *args, **kwargs) -> None:
        self.settings = SettingsSchema()
        super().__init__(*args, **kwargs)

    @property
    def theme(self) -> str:
        return self.settings.theme

    @property
    def default_weight_unit(self) -> str:
        return self.settings.default_weight_unit

    def _snapshot(self) -> dict:
        data = super()._snapshot()
        data["settings"] = self.settings.model_dump()
        return data

    def _apply_snapshot(self, blob: dict) -> None:
        settings = validate_settings(blob.get("settings", {}))
        super()._apply_snapshot(blob)
        self.settings = settings

    async def _fetch_remote(self) -> Optional[SettingsSchema]:
        rows = await self.client.select(
            self.table, filters={"user_id": self.user_id}, limit=1
        )
        if not rows:
            return None
        row = rows[0]
        if not (row.get("theme") or row.get("default_weight_unit")):
            return None
        return validate_settings(
            {
                "theme": row.get("theme") or "light",
                "default_weight_unit": row.get("default_weight_unit") or "kg",
            }
        )

    def _apply_remote(self, data: Optional[SettingsSchema]) -> None:
        if data is None or any(e["op"] == "upsert" for e in self.outbox):
            return
        self.settings = data

    def _validated(self, changes: dict) -> SettingsSchema:
        unknown = [k for k in changes if k not in SettingsSchema.model_fields]
        if unknown:
            raise ValueError(f"Unknown settings: {', '.join(unknown)}")
        return validate_settings({**self.settings.model_dump(), **changes})

    async def _replay(self, entry: dict):
        if entry["op"] == "upsert":
            return await self.client.upsert(
                self.table, entry["payload"], on_conflict="user_id"
            )
        return await super()._replay(entry)

    async def update(self, **changes) -> SettingsSchema:
        settings = self._validated(changes)
        row = {"user_id": self.user_id, **settings.model_dump(), "updated_at": self._now()}
        ok, _ = await self._remote(
            "save settings",
            lambda: self.client.upsert(self.table, row, on_conflict="user_id"),
        )
        if not ok:
            self.outbox = [e for e in self.outbox if e["op"] != "upsert"]
            self._enqueue("upsert", self.user_id, row)
        self.settings = settings
        self._commit()
        return settings

    def set_local(self, **changes) -> SettingsSchema:
        self.settings = self._validated(changes)
        self._commit()
        return self.settings

    async def set_theme(self, theme: str) -> SettingsSchema:
        return await self.update(theme=theme)

    async def set_default_weight_unit(self, unit: str) -> SettingsSchema:
        return await self.update(default_weight_unit=unit)

    async def toggle_theme(self) -> SettingsSchema:
        return await self.set_theme("dark" if self.theme == "light" else "light")

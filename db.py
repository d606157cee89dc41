import sqlite3
import aiosqlite
import json
import uuid
from contextlib import contextmanager, asynccontextmanager
from typing import List, Optional, Tuple

from client import RemoteError, TableClient


class SQLiteTableClient(TableClient):
    """Runs the table client interface against a local SQLite file."""

    _TABLE_DEFINITIONS = {
        "exercises": (
            """CREATE TABLE IF NOT EXISTS exercises (
                    id TEXT PRIMARY KEY,
                    user_id TEXT,
                    name TEXT NOT NULL,
                    category TEXT NOT NULL,
                    muscle_group TEXT NOT NULL,
                    equipment TEXT,
                    created_at TEXT
                );""",
            ["id", "user_id", "name", "category", "muscle_group", "equipment", "created_at"],
        ),
        "workouts": (
            """CREATE TABLE IF NOT EXISTS workouts (
                    id TEXT PRIMARY KEY,
                    user_id TEXT NOT NULL,
                    name TEXT NOT NULL,
                    date TEXT NOT NULL,
                    created_at TEXT
                );""",
            ["id", "user_id", "name", "date", "created_at"],
        ),
        "workout_exercises": (
            """CREATE TABLE IF NOT EXISTS workout_exercises (
                    id TEXT PRIMARY KEY,
                    user_id TEXT,
                    workout_id TEXT NOT NULL,
                    position INTEGER NOT NULL DEFAULT 0,
                    exercise_id TEXT,
                    exercise_name TEXT NOT NULL,
                    category TEXT NOT NULL,
                    muscle_group TEXT NOT NULL,
                    equipment TEXT,
                    sets INTEGER NOT NULL,
                    reps INTEGER NOT NULL,
                    weight REAL NOT NULL,
                    notes TEXT
                );""",
            [
                "id",
                "user_id",
                "workout_id",
                "position",
                "exercise_id",
                "exercise_name",
                "category",
                "muscle_group",
                "equipment",
                "sets",
                "reps",
                "weight",
                "notes",
            ],
        ),
        "progress": (
            """CREATE TABLE IF NOT EXISTS progress (
                    id TEXT PRIMARY KEY,
                    user_id TEXT NOT NULL,
                    exercise_name TEXT NOT NULL,
                    starting_weight REAL NOT NULL,
                    current_weight REAL NOT NULL,
                    goal_weight REAL NOT NULL,
                    current_reps INTEGER NOT NULL DEFAULT 0,
                    target_reps INTEGER NOT NULL DEFAULT 0,
                    unit TEXT NOT NULL DEFAULT 'kg',
                    date_added TEXT,
                    last_updated TEXT,
                    notes TEXT,
                    personal_record REAL,
                    total_sessions INTEGER NOT NULL DEFAULT 0
                );""",
            [
                "id",
                "user_id",
                "exercise_name",
                "starting_weight",
                "current_weight",
                "goal_weight",
                "current_reps",
                "target_reps",
                "unit",
                "date_added",
                "last_updated",
                "notes",
                "personal_record",
                "total_sessions",
            ],
        ),
        "exercise_history": (
            """CREATE TABLE IF NOT EXISTS exercise_history (
                    id TEXT PRIMARY KEY,
                    user_id TEXT NOT NULL,
                    exercise_name TEXT NOT NULL,
                    weight REAL NOT NULL,
                    reps INTEGER NOT NULL,
                    sets INTEGER NOT NULL,
                    date TEXT NOT NULL,
                    workout_id TEXT NOT NULL,
                    workout_name TEXT NOT NULL
                );""",
            [
                "id",
                "user_id",
                "exercise_name",
                "weight",
                "reps",
                "sets",
                "date",
                "workout_id",
                "workout_name",
            ],
        ),
        "user_settings": (
            """CREATE TABLE IF NOT EXISTS user_settings (
                    user_id TEXT PRIMARY KEY,
                    theme TEXT NOT NULL DEFAULT 'light',
                    default_weight_unit TEXT NOT NULL DEFAULT 'kg',
                    updated_at TEXT
                );""",
            ["user_id", "theme", "default_weight_unit", "updated_at"],
        ),
    }

    def __init__(self, db_path: str = "fittrack.db") -> None:
        self._db_path = db_path
        self._schema_ready = False

    @asynccontextmanager
    async def _async_connection(self, table: str):
        try:
            conn = await aiosqlite.connect(self._db_path)
        except sqlite3.Error as exc:
            raise RemoteError(table, str(exc)) from exc
        conn.row_factory = aiosqlite.Row
        try:
            if not self._schema_ready:
                for sql, _columns in self._TABLE_DEFINITIONS.values():
                    await conn.execute(sql)
                self._schema_ready = True
            yield conn
            await conn.commit()
        except sqlite3.Error as exc:
            raise RemoteError(table, str(exc)) from exc
        finally:
            await conn.close()

    def _columns(self, table: str) -> List[str]:
        self._check_table(table)
        return self._TABLE_DEFINITIONS[table][1]

    def _check_columns(self, table: str, names) -> None:
        known = self._columns(table)
        for name in names:
            if name not in known:
                raise RemoteError(table, f"unknown column {name}")

    def _where(self, table: str, filters: Optional[dict]) -> Tuple[str, tuple]:
        if not filters:
            return "", ()
        self._check_columns(table, filters)
        clause = " AND ".join(f"{col} = ?" for col in filters)
        return f" WHERE {clause}", tuple(filters.values())

    async def _fetch(self, conn, table: str, query: str, params: Tuple = ()) -> List[dict]:
        cursor = await conn.execute(query, params)
        rows = await cursor.fetchall()
        return [dict(r) for r in rows]

    async def select(
        self,
        table: str,
        *,
        columns: str = "*",
        filters: Optional[dict] = None,
        order: Optional[str] = None,
        descending: bool = False,
        limit: Optional[int] = None,
    ) -> List[dict]:
        if columns != "*":
            self._check_columns(table, [c.strip() for c in columns.split(",")])
        where, params = self._where(table, filters)
        query = f"SELECT {columns} FROM {table}{where}"
        if order:
            self._check_columns(table, [order])
            query += f" ORDER BY {order} {'DESC' if descending else 'ASC'}"
        if limit is not None:
            query += f" LIMIT {int(limit)}"
        async with self._async_connection(table) as conn:
            return await self._fetch(conn, table, query + ";", params)

    async def insert(self, table: str, rows: List[dict]) -> List[dict]:
        if not rows:
            return []
        ids: List[str] = []
        async with self._async_connection(table) as conn:
            for row in rows:
                values = dict(row)
                if "id" in self._columns(table) and not values.get("id"):
                    values["id"] = uuid.uuid4().hex
                self._check_columns(table, values)
                cols = ", ".join(values)
                marks = ", ".join("?" for _ in values)
                await conn.execute(
                    f"INSERT INTO {table} ({cols}) VALUES ({marks});",
                    tuple(values.values()),
                )
                ids.append(values.get("id"))
            if "id" not in self._columns(table):
                return [dict(r) for r in rows]
            marks = ", ".join("?" for _ in ids)
            created = await self._fetch(
                conn, table, f"SELECT * FROM {table} WHERE id IN ({marks});", tuple(ids)
            )
        by_id = {r["id"]: r for r in created}
        return [by_id[i] for i in ids]

    async def update(self, table: str, values: dict, *, filters: dict) -> List[dict]:
        self._check_columns(table, values)
        where, params = self._where(table, filters)
        assignments = ", ".join(f"{col} = ?" for col in values)
        async with self._async_connection(table) as conn:
            await conn.execute(
                f"UPDATE {table} SET {assignments}{where};",
                tuple(values.values()) + params,
            )
            return await self._fetch(conn, table, f"SELECT * FROM {table}{where};", params)

    async def delete(self, table: str, *, filters: dict) -> None:
        where, params = self._where(table, filters)
        async with self._async_connection(table) as conn:
            await conn.execute(f"DELETE FROM {table}{where};", params)

    async def upsert(self, table: str, row: dict, *, on_conflict: str) -> List[dict]:
        self._check_columns(table, list(row) + [on_conflict])
        cols = ", ".join(row)
        marks = ", ".join("?" for _ in row)
        updates = ", ".join(f"{c}=excluded.{c}" for c in row if c != on_conflict)
        async with self._async_connection(table) as conn:
            await conn.execute(
                f"INSERT INTO {table} ({cols}) VALUES ({marks}) "
                f"ON CONFLICT({on_conflict}) DO UPDATE SET {updates};",
                tuple(row.values()),
            )
            return await self._fetch(
                conn,
                table,
                f"SELECT * FROM {table} WHERE {on_conflict} = ?;",
                (row[on_conflict],),
            )


class LocalStorage:
    """Durable key-value store holding one JSON blob per key."""

    def __init__(self, db_path: str = "fittrack_storage.db") -> None:
        self._db_path = db_path
        with self._connection() as conn:
            conn.execute(
                "CREATE TABLE IF NOT EXISTS kv_store (key TEXT PRIMARY KEY, value TEXT NOT NULL);"
            )

    @contextmanager
    def _connection(self):
        connection = sqlite3.connect(self._db_path)
        try:
            yield connection
            connection.commit()
        finally:
            connection.close()

    def get_item(self, key: str) -> Optional[dict]:
        with self._connection() as conn:
            row = conn.execute(
                "SELECT value FROM kv_store WHERE key = ?;", (key,)
            ).fetchone()
        if row is None:
            return None
        return json.loads(row[0])

    def set_item(self, key: str, value: dict) -> None:
        with self._connection() as conn:
            conn.execute(
                "INSERT INTO kv_store (key, value) VALUES (?, ?) "
                "ON CONFLICT(key) DO UPDATE SET value=excluded.value;",
                (key, json.dumps(value)),
            )

    def remove_item(self, key: str) -> None:
        with self._connection() as conn:
            conn.execute("DELETE FROM kv_store WHERE key = ?;", (key,))

    def keys(self) -> List[str]:
        with self._connection() as conn:
            rows = conn.execute("SELECT key FROM kv_store ORDER BY key;").fetchall()
        return [r[0] for r in rows]

    def clear(self) -> None:
        with self._connection() as conn:
            conn.execute("DELETE FROM kv_store;")

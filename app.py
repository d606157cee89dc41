from __future__ import annotations

import asyncio
import logging
from typing import Iterable, Optional

from client import RestTableClient, TableClient
from config import load_app_config
from db import LocalStorage, SQLiteTableClient
from migrate import run_migrations
from rest_timer import RestTimer
from settings_schema import AppConfigSchema
from stores import ExerciseStore, ProgressStore, SettingsStore, SyncedStore, WorkoutStore
from workout_service import WorkoutService

log = logging.getLogger("fittrack.app")


def make_client(cfg: AppConfigSchema) -> TableClient:
    """Hosted tables when a backend URL is configured, else the SQLite file."""
    if cfg.backend_url:
        log.info("Using hosted backend at %s", cfg.backend_url)
        return RestTableClient(cfg.backend_url, cfg.api_key, timeout=cfg.request_timeout)
    log.info("Using local database %s", cfg.database_path)
    return SQLiteTableClient(cfg.database_path)


class AppInitializer:
    """Runs migrations, then loads every store concurrently, exactly once.

    Failures are recorded in ``error`` (first one wins) and never stop
    ``initialized`` from becoming true.
    """

    def __init__(
        self,
        client: TableClient,
        stores: Iterable[SyncedStore],
        *,
        user_id: str,
        migrations=run_migrations,
    ) -> None:
        self.client = client
        self.stores = list(stores)
        self.user_id = user_id
        self._migrations = migrations
        self.initialized = False
        self.error: Optional[str] = None
        self._settled = False
        self._task: Optional[asyncio.Task] = None

    @property
    def loading(self) -> bool:
        return not self._settled or any(s.is_loading for s in self.stores)

    def _capture(self, message: str) -> None:
        log.error("Initialization: %s", message)
        if self.error is None:
            self.error = message

    async def run(self) -> None:
        if self._task is None:
            self._task = asyncio.ensure_future(self._initialize())
        await self._task

    async def _sync(self, store: SyncedStore) -> None:
        await store.flush_outbox()
        await store.load()

    async def _initialize(self) -> None:
        try:
            try:
                if not await self._migrations(self.client, self.user_id):
                    self._capture("Database migrations failed")
            except Exception as exc:
                log.exception("Migrations raised")
                self._capture(f"Database migrations failed: {exc}")

            results = await asyncio.gather(
                *(self._sync(store) for store in self.stores), return_exceptions=True
            )
            for store, result in zip(self.stores, results):
                if isinstance(result, BaseException):
                    self._capture(f"Failed to load {store.name}: {result}")
                elif store.last_error:
                    self._capture(store.last_error)
        finally:
            self._settled = True
            self.initialized = True
            log.info("Initialization finished%s", f" with error: {self.error}" if self.error else "")


class FitnessApp:
    """Wires config, backend client, local storage, stores and the rest timer."""

    def __init__(
        self,
        config: AppConfigSchema | None = None,
        *,
        client: TableClient | None = None,
        storage: LocalStorage | None = None,
        yaml_path: str = "settings.yaml",
        schedule=None,
    ) -> None:
        self.config = config or load_app_config(yaml_path)
        cfg = self.config
        self.client = client or make_client(cfg)
        self.storage = storage or LocalStorage(cfg.storage_path)
        self.exercise_store = ExerciseStore(self.client, self.storage, cfg.user_id)
        self.workout_store = WorkoutStore(self.client, self.storage, cfg.user_id)
        self.progress_store = ProgressStore(self.client, self.storage, cfg.user_id)
        self.settings_store = SettingsStore(self.client, self.storage, cfg.user_id)
        self.timer = RestTimer(cfg.rest_timer_seconds, schedule=schedule)
        self.workout_service = WorkoutService(
            self.exercise_store, self.workout_store, self.progress_store
        )
        self.initializer = AppInitializer(self.client, self.stores, user_id=cfg.user_id)

    @property
    def stores(self) -> tuple[SyncedStore, ...]:
        return (
            self.exercise_store,
            self.workout_store,
            self.progress_store,
            self.settings_store,
        )

    async def start(self) -> AppInitializer:
        await self.initializer.run()
        return self.initializer

    async def flush(self) -> dict[str, int]:
        """Replay every store's outbox; return replayed counts by store."""
        counts = {}
        for store in self.stores:
            counts[store.name] = await store.flush_outbox()
        return counts

    def shutdown(self) -> None:
        self.timer.dispose()

import datetime
import os
import sys

import pytest

sys.path.append(os.path.dirname(os.path.dirname(__file__)))
from client import RemoteError, TableClient
from db import LocalStorage, SQLiteTableClient


class FailingClient(TableClient):
    """Backend double whose every call fails like an unreachable server."""

    def __init__(self) -> None:
        self.calls = []

    async def _fail(self, op, table):
        self.calls.append((op, table))
        raise RemoteError(table, "connection refused")

    async def select(self, table, **kwargs):
        return await self._fail("select", table)

    async def insert(self, table, rows):
        return await self._fail("insert", table)

    async def update(self, table, values, *, filters):
        return await self._fail("update", table)

    async def delete(self, table, *, filters):
        return await self._fail("delete", table)

    async def upsert(self, table, row, *, on_conflict):
        return await self._fail("upsert", table)


class FixedClock:
    def __init__(self, now: datetime.datetime) -> None:
        self.now = now

    def __call__(self) -> datetime.datetime:
        return self.now


@pytest.fixture
def storage(tmp_path):
    return LocalStorage(str(tmp_path / "storage.db"))


@pytest.fixture
def sqlite_client(tmp_path):
    return SQLiteTableClient(str(tmp_path / "fittrack.db"))


@pytest.fixture
def failing_client():
    return FailingClient()


@pytest.fixture
def clock():
    return FixedClock(datetime.datetime(2024, 5, 15, 18, 30, 0))

from __future__ import annotations

import asyncio
import logging
from typing import Optional

import requests

log = logging.getLogger("fittrack.client")

TABLES = (
    "exercises",
    "workouts",
    "workout_exercises",
    "progress",
    "exercise_history",
    "user_settings",
)


class RemoteError(Exception):
    """Raised when an operation against the hosted tables fails."""

    def __init__(self, table: str, message: str) -> None:
        super().__init__(f"{table}: {message}")
        self.table = table
        self.message = message


class TableClient:
    """Table-scoped read/insert/update/delete interface to the backend.

    ``filters`` arguments map column names to values and match rows where
    every column equals its value.
    """

    tables = TABLES

    def _check_table(self, table: str) -> None:
        if table not in self.tables:
            raise RemoteError(table, "unknown table")

    async def select(
        self,
        table: str,
        *,
        columns: str = "*",
        filters: Optional[dict] = None,
        order: Optional[str] = None,
        descending: bool = False,
        limit: Optional[int] = None,
    ) -> list[dict]:
        raise NotImplementedError

    async def insert(self, table: str, rows: list[dict]) -> list[dict]:
        raise NotImplementedError

    async def update(self, table: str, values: dict, *, filters: dict) -> list[dict]:
        raise NotImplementedError

    async def delete(self, table: str, *, filters: dict) -> None:
        raise NotImplementedError

    async def upsert(self, table: str, row: dict, *, on_conflict: str) -> list[dict]:
        raise NotImplementedError


class RestTableClient(TableClient):
    """Client for a hosted PostgREST endpoint (``<base_url>/rest/v1``)."""

    def __init__(
        self,
        base_url: str,
        api_key: str | None = None,
        *,
        timeout: float = 10.0,
        session: requests.Session | None = None,
    ) -> None:
        self.base_url = base_url.rstrip("/")
        self.api_key = api_key
        self.timeout = timeout
        self.session = session or requests.Session()

    def _headers(self, prefer: str | None = None) -> dict:
        headers = {"Content-Type": "application/json"}
        if self.api_key:
            headers["apikey"] = self.api_key
            headers["Authorization"] = f"Bearer {self.api_key}"
        if prefer:
            headers["Prefer"] = prefer
        return headers

    @staticmethod
    def _filter_params(filters: Optional[dict]) -> dict:
        return {col: f"eq.{value}" for col, value in (filters or {}).items()}

    def _request(
        self,
        method: str,
        table: str,
        *,
        params: dict | None = None,
        json: object = None,
        prefer: str | None = None,
    ):
        self._check_table(table)
        url = f"{self.base_url}/rest/v1/{table}"
        try:
            resp = self.session.request(
                method,
                url,
                params=params,
                json=json,
                headers=self._headers(prefer),
                timeout=self.timeout,
            )
            resp.raise_for_status()
        except requests.RequestException as exc:
            raise RemoteError(table, str(exc)) from exc
        if not resp.content:
            return []
        try:
            return resp.json()
        except ValueError as exc:
            raise RemoteError(table, "invalid JSON response") from exc

    async def _call(self, method: str, table: str, **kwargs):
        log.debug("%s %s %s", method, table, kwargs.get("params"))
        return await asyncio.to_thread(self._request, method, table, **kwargs)

    async def select(
        self,
        table: str,
        *,
        columns: str = "*",
        filters: Optional[dict] = None,
        order: Optional[str] = None,
        descending: bool = False,
        limit: Optional[int] = None,
    ) -> list[dict]:
        params = {"select": columns, **self._filter_params(filters)}
        if order:
            params["order"] = f"{order}.{'desc' if descending else 'asc'}"
        if limit is not None:
            params["limit"] = str(limit)
        return await self._call("GET", table, params=params)

    async def insert(self, table: str, rows: list[dict]) -> list[dict]:
        if not rows:
            return []
        return await self._call(
            "POST", table, json=rows, prefer="return=representation"
        )

    async def update(self, table: str, values: dict, *, filters: dict) -> list[dict]:
        return await self._call(
            "PATCH",
            table,
            params=self._filter_params(filters),
            json=values,
            prefer="return=representation",
        )

    async def delete(self, table: str, *, filters: dict) -> None:
        await self._call("DELETE", table, params=self._filter_params(filters))

    async def upsert(self, table: str, row: dict, *, on_conflict: str) -> list[dict]:
        return await self._call(
            "POST",
            table,
            params={"on_conflict": on_conflict},
            json=[row],
            prefer="resolution=merge-duplicates,return=representation",
        )

"""SQLite implementation of the route repository."""

from __future__ import annotations

import asyncio
import json
import sqlite3
from datetime import datetime, timezone
from pathlib import Path
from typing import Any

from ..contracts import Route
from .models import RouteRecord
from .repository import RouteRepository


class SQLiteRouteRepository(RouteRepository):
    """Persist route snapshots using SQLite."""

    def __init__(self, db_path: str | Path):
        self.db_path = str(db_path)
        self._conn = sqlite3.connect(self.db_path, check_same_thread=False)
        self._conn.row_factory = sqlite3.Row
        self._ensure_schema()

    # ------------------------------------------------------------------
    # Schema management
    def _ensure_schema(self) -> None:
        cur = self._conn.cursor()
        cur.execute(
            """
            CREATE TABLE IF NOT EXISTS routes (
                route_id TEXT PRIMARY KEY,
                status TEXT NOT NULL,
                data TEXT NOT NULL,
                created_at TEXT NOT NULL,
                updated_at TEXT NOT NULL
            )
            """
        )
        self._conn.commit()

    # ------------------------------------------------------------------
    # Helper methods
    def _execute(self, query: str, *params: Any) -> int:
        cur = self._conn.cursor()
        cur.execute(query, params)
        self._conn.commit()
        return cur.rowcount

    def _fetchone(self, query: str, *params: Any) -> sqlite3.Row | None:
        cur = self._conn.cursor()
        cur.execute(query, params)
        return cur.fetchone()

    def _fetchall(self, query: str, *params: Any) -> list[sqlite3.Row]:
        cur = self._conn.cursor()
        cur.execute(query, params)
        return cur.fetchall()

    @staticmethod
    def _to_record(row: sqlite3.Row) -> RouteRecord:
        return RouteRecord(
            route_id=row["route_id"],
            status=row["status"],
            data=json.loads(row["data"]),
            created_at=datetime.fromisoformat(row["created_at"]),
            updated_at=datetime.fromisoformat(row["updated_at"]),
        )

    # ------------------------------------------------------------------
    # Repository API
    async def save_route(self, route: Route) -> None:
        now = datetime.now(timezone.utc).isoformat()
        await asyncio.to_thread(
            self._execute,
            """
            INSERT INTO routes (route_id, status, data, created_at, updated_at)
            VALUES (?, ?, ?, ?, ?)
            ON CONFLICT(route_id) DO UPDATE SET
                status = excluded.status,
                data = excluded.data,
                updated_at = excluded.updated_at
            """,
            route.id,
            route.derive_status(),
            route.to_json(),
            now,
            now,
        )

    async def get_route(self, route_id: str) -> RouteRecord | None:
        row = await asyncio.to_thread(
            self._fetchone,
            "SELECT route_id, status, data, created_at, updated_at FROM routes WHERE route_id = ?",
            route_id,
        )
        return self._to_record(row) if row else None

    async def list_routes(self) -> list[RouteRecord]:
        rows = await asyncio.to_thread(
            self._fetchall,
            "SELECT route_id, status, data, created_at, updated_at FROM routes ORDER BY created_at",
        )
        return [self._to_record(row) for row in rows]

    async def delete_route(self, route_id: str) -> bool:
        deleted = await asyncio.to_thread(
            self._execute, "DELETE FROM routes WHERE route_id = ?", route_id
        )
        return deleted > 0

"""PostgreSQL implementation of the route repository."""

from __future__ import annotations

import json

import asyncpg

from ..contracts import Route
from .models import RouteRecord
from .repository import RouteRepository


class PostgresRouteRepository(RouteRepository):
    """Persist route snapshots using PostgreSQL."""

    def __init__(self, dsn: str):
        self._dsn = dsn
        self._initialized = False

    async def _connect(self) -> asyncpg.Connection:
        conn = await asyncpg.connect(self._dsn)
        if not self._initialized:
            await self._ensure_schema(conn)
            self._initialized = True
        return conn

    async def _ensure_schema(self, conn: asyncpg.Connection) -> None:
        await conn.execute(
            """
            CREATE TABLE IF NOT EXISTS routes (
                route_id TEXT PRIMARY KEY,
                status TEXT NOT NULL,
                data JSONB NOT NULL,
                created_at TIMESTAMPTZ NOT NULL DEFAULT now(),
                updated_at TIMESTAMPTZ NOT NULL DEFAULT now()
            )
            """
        )

    @staticmethod
    def _to_record(row: asyncpg.Record) -> RouteRecord:
        data = row["data"]
        return RouteRecord(
            route_id=row["route_id"],
            status=row["status"],
            data=json.loads(data) if isinstance(data, str) else data,
            created_at=row["created_at"],
            updated_at=row["updated_at"],
        )

    # ------------------------------------------------------------------
    async def save_route(self, route: Route) -> None:
        conn = await self._connect()
        try:
            await conn.execute(
                """
                INSERT INTO routes (route_id, status, data)
                VALUES ($1, $2, $3::jsonb)
                ON CONFLICT (route_id) DO UPDATE SET
                    status = EXCLUDED.status,
                    data = EXCLUDED.data,
                    updated_at = now()
                """,
                route.id,
                route.derive_status(),
                route.to_json(),
            )
        finally:
            await conn.close()

    async def get_route(self, route_id: str) -> RouteRecord | None:
        conn = await self._connect()
        try:
            row = await conn.fetchrow(
                "SELECT route_id, status, data, created_at, updated_at FROM routes WHERE route_id = $1",
                route_id,
            )
        finally:
            await conn.close()
        return self._to_record(row) if row else None

    async def list_routes(self) -> list[RouteRecord]:
        conn = await self._connect()
        try:
            rows = await conn.fetch(
                "SELECT route_id, status, data, created_at, updated_at FROM routes ORDER BY created_at"
            )
        finally:
            await conn.close()
        return [self._to_record(row) for row in rows]

    async def delete_route(self, route_id: str) -> bool:
        conn = await self._connect()
        try:
            result = await conn.execute(
                "DELETE FROM routes WHERE route_id = $1", route_id
            )
        finally:
            await conn.close()
        return result.endswith(" 1")

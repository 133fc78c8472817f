"""In-memory implementation of the route repository."""

from __future__ import annotations

from datetime import datetime, timezone
from typing import Dict

from ..contracts import Route
from .models import RouteRecord
from .repository import RouteRepository


class InMemoryRouteRepository(RouteRepository):
    """Store route snapshots in local memory.

    Useful for tests or when no database is configured. Data is not
    persisted across process restarts.
    """

    def __init__(self) -> None:
        self._routes: Dict[str, RouteRecord] = {}

    async def save_route(self, route: Route) -> None:
        now = datetime.now(timezone.utc)
        record = RouteRecord.from_route(route)
        existing = self._routes.get(route.id)
        record.created_at = existing.created_at if existing else now
        record.updated_at = now
        self._routes[route.id] = record

    async def get_route(self, route_id: str) -> RouteRecord | None:
        record = self._routes.get(route_id)
        return record.model_copy(deep=True) if record else None

    async def list_routes(self) -> list[RouteRecord]:
        return [record.model_copy(deep=True) for record in self._routes.values()]

    async def delete_route(self, route_id: str) -> bool:
        return self._routes.pop(route_id, None) is not None

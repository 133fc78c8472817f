"""Repository abstraction for route state persistence."""

from __future__ import annotations

from typing import Protocol

from ..contracts import Route
from .models import RouteRecord


class RouteRepository(Protocol):
    """Protocol for route state persistence backends."""

    async def save_route(self, route: Route) -> None:
        """Insert or replace the snapshot of ``route``."""

    async def get_route(self, route_id: str) -> RouteRecord | None:
        """Retrieve the latest snapshot by route id."""

    async def list_routes(self) -> list[RouteRecord]:
        """Return all persisted routes."""

    async def delete_route(self, route_id: str) -> bool:
        """Delete a route, returning whether it existed."""

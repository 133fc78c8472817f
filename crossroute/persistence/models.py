"""Data models for persisted route state."""

from __future__ import annotations

from datetime import datetime
from typing import Any, Optional

from pydantic import BaseModel, Field

from ..contracts import Route


class RouteRecord(BaseModel):
    """Snapshot of a route and its execution ledger."""

    route_id: str
    status: str = "NOT_STARTED"
    data: dict[str, Any] = Field(default_factory=dict)
    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None

    @classmethod
    def from_route(cls, route: Route) -> "RouteRecord":
        return cls(
            route_id=route.id, status=route.derive_status(), data=route.to_record()
        )

    def to_route(self) -> Route:
        return Route.model_validate(self.data)

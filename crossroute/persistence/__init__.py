"""Persistence layer for crossroute routes."""

from __future__ import annotations

import os
from typing import Optional

from ..config import CrossrouteConfig, load_config
from .inmemory import InMemoryRouteRepository
from .models import RouteRecord
from .observer import RepositoryObserver
from .repository import RouteRepository
from .sqlite import SQLiteRouteRepository

try:  # pragma: no cover - optional dependency
    from .postgres import PostgresRouteRepository
except ImportError:  # pragma: no cover - optional dependency
    PostgresRouteRepository = None  # type: ignore

_repository_instance: RouteRepository | None = None


def get_repository(
    database_url: Optional[str] = None, config: Optional[CrossrouteConfig] = None
) -> RouteRepository:
    """Factory function to obtain a route repository.

    The repository backend is selected based on ``database_url`` which can be
    provided explicitly, via environment variable ``CROSSROUTE_DATABASE_URL``
    or ``DATABASE_URL``, or from loaded configuration. When no database is
    configured, an in-memory repository is returned.
    """

    global _repository_instance
    if _repository_instance is not None and database_url is None and config is None:
        return _repository_instance

    config = config or load_config()
    database_url = (
        database_url
        or os.getenv("CROSSROUTE_DATABASE_URL")
        or os.getenv("DATABASE_URL")
        or getattr(config, "database_url", None)
    )

    if not database_url:
        _repository_instance = InMemoryRouteRepository()
        return _repository_instance

    if database_url.startswith("sqlite://"):
        path = database_url.replace("sqlite://", "", 1)
        _repository_instance = SQLiteRouteRepository(path)
    elif database_url.startswith("postgres://") or database_url.startswith(
        "postgresql://"
    ):
        if PostgresRouteRepository is None:
            raise RuntimeError("Postgres support not available")
        _repository_instance = PostgresRouteRepository(database_url)
    else:
        raise ValueError(f"Unsupported database backend: {database_url}")

    return _repository_instance


__all__ = [
    "RouteRecord",
    "RouteRepository",
    "RepositoryObserver",
    "SQLiteRouteRepository",
    "PostgresRouteRepository",
    "InMemoryRouteRepository",
    "get_repository",
]

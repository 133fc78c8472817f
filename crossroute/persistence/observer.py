"""Route observer writing every ledger mutation to a repository."""

from __future__ import annotations

import asyncio
import logging
from typing import Optional

from ..contracts import Route
from .repository import RouteRepository

logger = logging.getLogger(__name__)


class RepositoryObserver:
    """Persist a snapshot of the route after each ledger mutation.

    Snapshots are taken synchronously when notified and written in order by
    a background task. ``flush()`` waits until every queued snapshot is
    stored.
    """

    def __init__(self, repository: RouteRepository) -> None:
        self._repository = repository
        self._queue: asyncio.Queue[Route] = asyncio.Queue()
        self._worker: Optional[asyncio.Task] = None

    def on_route_update(self, route: Route) -> None:
        self._queue.put_nowait(route.model_copy(deep=True))
        if self._worker is None or self._worker.done():
            self._worker = asyncio.ensure_future(self._drain())

    async def _drain(self) -> None:
        while True:
            route = await self._queue.get()
            try:
                await self._repository.save_route(route)
            except Exception as e:
                logger.error(f"Failed to persist route {route.id}: {e}")
            finally:
                self._queue.task_done()

    async def flush(self) -> None:
        await self._queue.join()

    async def close(self) -> None:
        await self.flush()
        if self._worker is not None:
            self._worker.cancel()
            try:
                await self._worker
            except asyncio.CancelledError:
                pass
            self._worker = None

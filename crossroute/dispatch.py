"""Route execution manager for crossroute."""

from __future__ import annotations

import asyncio
import logging
from collections import defaultdict
from typing import Dict, List, Optional, Set, Union

from .cancellation import InteractionToken
from .contracts import ExecutionStatus, ProcessStatus, Route
from .errors import NotFoundError, ValidationError
from .execute import StepExecutionManager
from .interfaces import Account, ExecutionSettings
from .persistence import RepositoryObserver, RouteRepository
from .status import CallbackObserver, RouteObserver, StatusManager

logger = logging.getLogger(__name__)


def prepare_restart(status_manager: StatusManager) -> None:
    """Clear what a failed attempt left behind so the route can run again.

    Failed processes without a transaction hash are dropped and recreated on
    the next run; processes with a hash are kept so the executor re-attaches
    to their transaction. Steps without a submitted transaction get a fresh
    payload from the backend.
    """
    for step in status_manager.route.steps:
        execution = step.execution
        if execution is None:
            continue
        for process in list(execution.process):
            if process.status == ProcessStatus.FAILED and not process.tx_hash:
                status_manager.remove_process(step, process.type)
        if not any(p.tx_hash for p in execution.process):
            step.transaction_request = None


class _ActiveRoute:
    def __init__(self, route: Route, token: InteractionToken) -> None:
        self.route = route
        self.token = token


class RouteExecutionManager:
    """Runs the steps of a route in order and keeps track of running routes."""

    def __init__(
        self,
        executor: StepExecutionManager,
        settings: Optional[ExecutionSettings] = None,
        repository: Optional[RouteRepository] = None,
    ) -> None:
        self._executor = executor
        self._settings = settings or ExecutionSettings()
        self._repository = repository
        self._active: Dict[str, _ActiveRoute] = {}
        self._running: Set[str] = set()
        self._step_locks: Dict[str, asyncio.Lock] = defaultdict(asyncio.Lock)

    def get_active_route(self, route_id: str) -> Optional[Route]:
        active = self._active.get(route_id)
        return active.route if active else None

    def update_route_execution(self, route_id: str, allow_interaction: bool) -> Route:
        """Allow or disallow user interaction for a running route."""
        active = self._active.get(route_id)
        if active is None:
            raise NotFoundError(f"Route {route_id} is not being executed.")
        if allow_interaction:
            active.token.allow()
        else:
            active.token.disallow()
        return active.route

    def stop_route_execution(self, route_id: str) -> Optional[Route]:
        """Stop prompting for a route and forget it."""
        active = self._active.pop(route_id, None)
        if active is None:
            return None
        active.token.disallow()
        logger.info(f"Stopped execution of route {route_id}")
        return active.route

    async def execute_route(
        self,
        account: Account,
        route: Route,
        settings: Optional[ExecutionSettings] = None,
    ) -> Route:
        """Execute ``route`` until it completes or pauses for the user.

        Raises ``ExecutionError`` when a step fails; the ledger on ``route``
        records where it stopped.
        """
        return await self._run(account, route, settings, restart=False)

    async def resume_route(
        self,
        account: Account,
        route: Union[Route, str],
        settings: Optional[ExecutionSettings] = None,
    ) -> Route:
        """Continue a route from its persisted ledger.

        ``route`` may be a route id, in which case the latest snapshot is
        loaded from the repository.
        """
        if isinstance(route, str):
            if self._repository is None:
                raise ValidationError("Resuming by id requires a repository.")
            record = await self._repository.get_route(route)
            if record is None:
                raise NotFoundError(f"Route {route} not found.")
            route = record.to_route()
        return await self._run(account, route, settings, restart=True)

    # ------------------------------------------------------------------
    async def _run(
        self,
        account: Account,
        route: Route,
        settings: Optional[ExecutionSettings],
        restart: bool,
    ) -> Route:
        if route.id in self._running:
            raise ValidationError(f"Route {route.id} is already being executed.")
        settings = settings or self._settings

        observers: List[RouteObserver] = []
        repository_observer = None
        if self._repository is not None:
            repository_observer = RepositoryObserver(self._repository)
            observers.append(repository_observer)
        if settings.update_callback is not None:
            observers.append(CallbackObserver(settings.update_callback))

        status_manager = StatusManager(route, observers)
        # A paused route keeps the token callers may have toggled meanwhile.
        paused = self._active.get(route.id)
        token = paused.token if paused is not None else InteractionToken()
        active = _ActiveRoute(route, token)
        self._active[route.id] = active
        self._running.add(route.id)
        logger.info(f"Executing route {route.id} with {len(route.steps)} steps")

        finished = False
        try:
            if restart:
                prepare_restart(status_manager)
            if repository_observer is not None:
                await self._repository.save_route(route)

            for index, step in enumerate(route.steps):
                if step.execution and step.execution.status == ExecutionStatus.DONE:
                    continue
                if index > 0:
                    previous = route.steps[index - 1].execution
                    if previous is not None and previous.to_amount:
                        step.action.from_amount = previous.to_amount

                async with self._step_locks[step.id]:
                    execution = await self._executor.execute(
                        account, step, status_manager, settings, active.token
                    )
                if execution.status == ExecutionStatus.CANCELLED:
                    finished = True
                    logger.info(f"Route {route.id} was cancelled at step {step.id}")
                    break
                if execution.status != ExecutionStatus.DONE:
                    logger.info(
                        f"Route {route.id} paused at step {step.id} ({execution.status.value})"
                    )
                    break
            else:
                finished = True
                logger.info(f"Route {route.id} completed")
        except Exception:
            finished = True
            raise
        finally:
            self._running.discard(route.id)
            for step in route.steps:
                lock = self._step_locks.get(step.id)
                if lock is not None and not lock.locked():
                    del self._step_locks[step.id]
            if repository_observer is not None:
                await repository_observer.close()
            if finished and self._active.get(route.id) is active:
                del self._active[route.id]
        return route

"""Single choke point for every mutation of a route's execution ledger."""

from __future__ import annotations

import logging
from typing import Callable, Iterable, List, Optional, Protocol, runtime_checkable

from .contracts import (
    ALLOWED_UPDATES,
    Execution,
    ExecutionStatus,
    ExecutionUpdate,
    Process,
    ProcessStatus,
    ProcessType,
    ProcessUpdate,
    Route,
    Step,
    get_process_message,
    now_ms,
)
from .errors import NotFoundError, ValidationError

logger = logging.getLogger(__name__)


@runtime_checkable
class RouteObserver(Protocol):
    """Receives the whole route after every ledger mutation."""

    def on_route_update(self, route: Route) -> None:
        ...


class CallbackObserver:
    """Adapt a plain ``callback(route)`` function to ``RouteObserver``."""

    def __init__(self, callback: Callable[[Route], None]) -> None:
        self._callback = callback

    def on_route_update(self, route: Route) -> None:
        self._callback(route)


# Execution status implied by moving a process into a given status.
_EXECUTION_PROJECTION = {
    ProcessStatus.PENDING: ExecutionStatus.PENDING,
    ProcessStatus.ACTION_REQUIRED: ExecutionStatus.ACTION_REQUIRED,
    ProcessStatus.FAILED: ExecutionStatus.FAILED,
}


class StatusManager:
    """Owns the execution ledger of one route.

    All mutations are synchronous and notify every registered observer with
    the full route, so observers always see a consistent snapshot.
    """

    def __init__(
        self, route: Route, observers: Optional[Iterable[RouteObserver]] = None
    ) -> None:
        self.route = route
        self._observers: List[RouteObserver] = list(observers or [])
        self._should_update = True

    def add_observer(self, observer: RouteObserver) -> None:
        self._observers.append(observer)

    def remove_observer(self, observer: RouteObserver) -> None:
        if observer in self._observers:
            self._observers.remove(observer)

    def allow_updates(self, value: bool) -> None:
        """Enable or silence observer notifications (ledger still mutates)."""
        self._should_update = value

    # ------------------------------------------------------------------
    def init_execution(self, step: Step) -> Execution:
        """Return the step's execution, creating a pending one if needed."""
        if step.execution is None:
            step.execution = Execution(status=ExecutionStatus.PENDING)
            logger.debug(f"Initialized execution for step {step.id}")
            self._notify(step)
        return step.execution

    def find_or_create_process(
        self,
        step: Step,
        process_type: ProcessType,
        status: Optional[ProcessStatus] = None,
    ) -> Process:
        """Return the process of ``process_type``, inserting it when absent."""
        execution = self._require_execution(step)
        process = execution.find_process(process_type)
        if process is not None:
            if status is not None and process.status != status:
                process.status = status
                process.message = get_process_message(process_type, status) or process.message
                if status != ProcessStatus.FAILED:
                    process.error = None
                    process.failed_at = None
            self._notify(step)
            return process

        initial = status or ProcessStatus.STARTED
        process = Process(
            type=process_type,
            status=initial,
            message=get_process_message(process_type, initial),
            started_at=now_ms(),
        )
        execution.process.append(process)
        logger.debug(f"Created {process_type.value} process for step {step.id}")
        self._notify(step)
        return process

    def update_process(
        self,
        step: Step,
        process_type: ProcessType,
        status: ProcessStatus,
        update: Optional[ProcessUpdate] = None,
    ) -> Process:
        """Move a process to ``status`` and apply a typed update to it."""
        execution = self._require_execution(step)
        process = execution.find_process(process_type)
        if process is None:
            raise NotFoundError(
                f"Can't find a {process_type.value} process for step {step.id}."
            )
        if update is not None and update.kind not in ALLOWED_UPDATES[process_type]:
            raise ValidationError(
                f"A {update.kind} update can't be applied to a "
                f"{process_type.value} process."
            )

        if status in (ProcessStatus.DONE, ProcessStatus.CANCELLED):
            process.done_at = max(now_ms(), process.started_at)
        elif status == ProcessStatus.FAILED:
            process.failed_at = max(now_ms(), process.started_at)
        if status != ProcessStatus.FAILED:
            process.error = None
            process.failed_at = None

        projected = _EXECUTION_PROJECTION.get(status)
        if projected is not None:
            if (
                process_type == ProcessType.SWITCH_CHAIN
                and projected == ExecutionStatus.ACTION_REQUIRED
            ):
                projected = ExecutionStatus.CHAIN_SWITCH_REQUIRED
            execution.status = projected

        process.status = status
        process.message = get_process_message(process_type, status) or process.message
        if update is not None:
            for name in update.model_fields_set:
                if name != "kind":
                    setattr(process, name, getattr(update, name))

        self._notify(step)
        return process

    def remove_process(self, step: Step, process_type: ProcessType) -> None:
        execution = self._require_execution(step)
        execution.process = [p for p in execution.process if p.type != process_type]
        self._notify(step)

    def update_execution(
        self,
        step: Step,
        status: ExecutionStatus,
        update: Optional[ExecutionUpdate] = None,
    ) -> Execution:
        """Set the execution status and merge settlement totals."""
        execution = self._require_execution(step)
        execution.status = status
        if update is not None:
            for name in update.model_fields_set:
                setattr(execution, name, getattr(update, name))
        logger.info(f"Step {step.id} execution is {status.value}")
        self._notify(step)
        return execution

    # ------------------------------------------------------------------
    def _require_execution(self, step: Step) -> Execution:
        if step.execution is None:
            raise NotFoundError(f"Execution of step {step.id} hasn't been initialized.")
        return step.execution

    def _notify(self, step: Step) -> None:
        if not self._should_update:
            return
        stored = self.route.find_step(step.id)
        if stored is None:
            raise NotFoundError(f"Couldn't find step {step.id} in route {self.route.id}.")
        if stored is not step:
            index = self.route.steps.index(stored)
            self.route.steps[index] = step
        for observer in list(self._observers):
            try:
                observer.on_route_update(self.route)
            except Exception as e:
                logger.error(
                    f"Route observer {observer!r} failed for route {self.route.id}: {e}"
                )

"""Deduplicated, cancellable polling built on asyncio tasks."""

from __future__ import annotations

import asyncio
import inspect
import itertools
import logging
from typing import Any, Awaitable, Callable, Dict, Mapping, Optional, Set

from .config import PollingConfig
from .constants import DEFAULT_POLLING_INTERVAL

logger = logging.getLogger(__name__)

Handlers = Mapping[str, Callable[..., Any]]
Cleanup = Callable[[], None]
PollFn = Callable[["Emitter"], Optional[Cleanup]]


class Emitter:
    """Fans ``emit.<event>(*args)`` out to every attached handler set.

    Handler sets that do not define the event are skipped. An ``on_error``
    emission that no handler set listens to is logged and dropped.
    """

    def __init__(self, key: str, listeners: Dict[int, Dict[str, Callable[..., Any]]]):
        self._key = key
        self._listeners = listeners
        self._tasks: Set[asyncio.Future] = set()

    def has(self, event: str) -> bool:
        return any(event in handlers for handlers in self._listeners.values())

    def emit(self, event: str, *args: Any) -> None:
        delivered = False
        for handlers in list(self._listeners.values()):
            handler = handlers.get(event)
            if handler is None:
                continue
            delivered = True
            result = handler(*args)
            if inspect.isawaitable(result):
                task = asyncio.ensure_future(result)
                self._tasks.add(task)
                task.add_done_callback(self._handler_done)
        if not delivered and event == "on_error":
            logger.debug(f"Unhandled error while observing {self._key}: {args[0] if args else None}")

    def _handler_done(self, task: asyncio.Future) -> None:
        self._tasks.discard(task)
        if not task.cancelled() and task.exception() is not None:
            logger.warning(f"Handler for {self._key} failed: {task.exception()}")

    def __getattr__(self, event: str) -> Callable[..., None]:
        if event.startswith("_"):
            raise AttributeError(event)
        return lambda *args: self.emit(event, *args)


class PollingObserver:
    """Runs at most one poll loop per key, shared by every attached handler set."""

    def __init__(self, interval: float = DEFAULT_POLLING_INTERVAL) -> None:
        self.interval = interval
        self._listeners: Dict[str, Dict[int, Dict[str, Callable[..., Any]]]] = {}
        self._cleanups: Dict[str, Optional[Cleanup]] = {}
        self._ids = itertools.count(1)

    @classmethod
    def from_config(cls, config: PollingConfig) -> "PollingObserver":
        return cls(interval=config.interval)

    def is_active(self, key: str) -> bool:
        return key in self._listeners

    def listener_count(self, key: str) -> int:
        return len(self._listeners.get(key, {}))

    def observe(self, key: str, handlers: Handlers, poll_fn: PollFn) -> Cleanup:
        """Attach ``handlers`` under ``key`` and return a ``stop`` function.

        ``poll_fn(emit)`` is only invoked for the first handler set of a key;
        later sets join the running loop. The loop's cleanup runs once the
        last handler set detaches.
        """
        listener_id = next(self._ids)
        listeners = self._listeners.get(key)
        first = listeners is None
        if first:
            listeners = self._listeners[key] = {}
        listeners[listener_id] = dict(handlers)

        if first:
            logger.debug(f"Starting observer {key}")
            try:
                self._cleanups[key] = poll_fn(Emitter(key, listeners))
            except Exception:
                self._listeners.pop(key, None)
                raise

        def stop() -> None:
            current = self._listeners.get(key)
            if current is not listeners or listener_id not in current:
                return
            del current[listener_id]
            if current:
                return
            del self._listeners[key]
            cleanup = self._cleanups.pop(key, None)
            logger.debug(f"Stopped observer {key}")
            if cleanup is not None:
                cleanup()

        return stop


def poll(
    fn: Callable[[], Awaitable[Any]],
    interval: float,
    emit_on_begin: bool = False,
    initial_wait: Optional[float] = None,
    on_error: Optional[Callable[[BaseException], None]] = None,
) -> Cleanup:
    """Run ``fn`` every ``interval`` seconds in a background task.

    Each tick is awaited before the next wait starts. Exceptions raised by a
    tick go to ``on_error`` when given and are logged otherwise; they never
    end the loop. Returns an idempotent ``stop`` function.
    """
    state = {"active": True}

    async def tick() -> None:
        try:
            await fn()
        except asyncio.CancelledError:
            raise
        except Exception as e:
            if on_error is not None:
                try:
                    on_error(e)
                except Exception as handler_error:
                    logger.warning(f"Polling error handler failed: {handler_error}")
            else:
                logger.debug(f"Polling tick failed: {e}")

    async def run() -> None:
        if emit_on_begin:
            await tick()
        await asyncio.sleep(interval if initial_wait is None else initial_wait)
        while state["active"]:
            await tick()
            if not state["active"]:
                break
            await asyncio.sleep(interval)

    task = asyncio.ensure_future(run())

    def stop() -> None:
        if not state["active"]:
            return
        state["active"] = False
        # A tick may stop its own loop; the flag ends it after the tick returns.
        if task is not asyncio.current_task():
            task.cancel()

    return stop

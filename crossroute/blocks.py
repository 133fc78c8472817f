"""Block height watcher built on the polling observer."""

from __future__ import annotations

import json
from typing import Any, Callable, Optional

from .interfaces import ChainClient
from .observe import Cleanup, Emitter, PollingObserver, poll


def watch_block_number(
    client: ChainClient,
    on_block_number: Callable[[int, Optional[int]], Any],
    observer: PollingObserver,
    on_error: Optional[Callable[[BaseException], Any]] = None,
    emit_missed: bool = False,
    emit_on_begin: bool = False,
    polling_interval: Optional[float] = None,
) -> Cleanup:
    """Call ``on_block_number(height, previous)`` whenever the chain advances.

    Heights are emitted in non-decreasing order; a provider reporting a lower
    height than the last one seen is ignored. With ``emit_missed`` every
    skipped height in between is emitted as well. Watchers sharing a client
    and options share a single poll loop.
    """
    interval = polling_interval or client.polling_interval or observer.interval
    key = json.dumps(
        ["watch_block_number", client.uid, emit_on_begin, emit_missed, interval]
    )
    handlers = {"on_block_number": on_block_number}
    if on_error is not None:
        handlers["on_error"] = on_error

    def start(emit: Emitter) -> Cleanup:
        previous: Optional[int] = None

        async def tick() -> None:
            nonlocal previous
            height = await client.get_block_number()
            if previous is not None:
                if height <= previous:
                    return
                if emit_missed and height - previous > 1:
                    for missed in range(previous + 1, height):
                        emit.on_block_number(missed, previous)
                        previous = missed
            emit.on_block_number(height, previous)
            previous = height

        return poll(
            tick,
            interval=interval,
            emit_on_begin=emit_on_begin,
            on_error=emit.on_error,
        )

    return observer.observe(key, handlers, start)

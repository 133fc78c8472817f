"""Tests for the shared polling observer and the poll loop."""

import asyncio

import pytest

from crossroute.config import PollingConfig
from crossroute.observe import Emitter, PollingObserver, poll


async def _wait_for(predicate, timeout=1.0):
    async def check():
        while not predicate():
            await asyncio.sleep(0.005)

    await asyncio.wait_for(check(), timeout)


def test_observers_with_same_key_share_one_loop():
    observer = PollingObserver(interval=0.01)
    started = []
    cleaned = []
    first_events = []
    second_events = []
    emitters = []

    def start(emit):
        started.append(emit)
        emitters.append(emit)
        return lambda: cleaned.append(True)

    stop_first = observer.observe("key", {"on_value": first_events.append}, start)
    stop_second = observer.observe("key", {"on_value": second_events.append}, start)

    assert len(started) == 1
    assert observer.listener_count("key") == 2

    emitters[0].on_value(7)
    assert first_events == [7]
    assert second_events == [7]

    stop_first()
    assert observer.is_active("key")
    assert cleaned == []

    emitters[0].on_value(8)
    assert first_events == [7]
    assert second_events == [7, 8]

    stop_second()
    assert not observer.is_active("key")
    assert cleaned == [True]


def test_stop_is_idempotent():
    observer = PollingObserver()
    cleaned = []

    stop = observer.observe("key", {}, lambda emit: lambda: cleaned.append(True))
    stop()
    stop()

    assert cleaned == [True]


def test_stale_stop_does_not_detach_new_listeners():
    observer = PollingObserver()

    stop_old = observer.observe("key", {}, lambda emit: None)
    stop_old()
    observer.observe("key", {}, lambda emit: None)
    stop_old()

    assert observer.is_active("key")


def test_emitter_skips_handler_sets_without_event():
    observer = PollingObserver()
    received = []
    emitters = []

    def start(emit):
        emitters.append(emit)

    observer.observe("key", {"on_a": received.append}, start)
    observer.observe("key", {"on_b": received.append}, start)

    emit = emitters[0]
    emit.on_a("a")
    emit.on_error(RuntimeError("nobody listens"))

    assert received == ["a"]
    assert emit.has("on_b")
    assert not emit.has("on_c")


def test_failing_start_leaves_no_listener():
    observer = PollingObserver()

    def start(emit):
        raise RuntimeError("cannot start")

    with pytest.raises(RuntimeError):
        observer.observe("key", {}, start)
    assert not observer.is_active("key")


@pytest.mark.asyncio
async def test_poll_runs_until_stopped():
    calls = []

    async def tick():
        calls.append(True)

    stop = poll(tick, interval=0.01, emit_on_begin=True)
    await _wait_for(lambda: len(calls) >= 3)
    stop()
    seen = len(calls)
    await asyncio.sleep(0.05)

    assert len(calls) == seen


@pytest.mark.asyncio
async def test_poll_routes_errors_and_keeps_running():
    errors = []
    calls = []

    async def tick():
        calls.append(True)
        if len(calls) == 1:
            raise ValueError("rpc unavailable")

    stop = poll(tick, interval=0.01, emit_on_begin=True, on_error=errors.append)
    await _wait_for(lambda: len(calls) >= 2)
    stop()

    assert len(errors) == 1
    assert isinstance(errors[0], ValueError)


@pytest.mark.asyncio
async def test_poll_ticks_are_sequenced():
    running = []
    overlaps = []

    async def tick():
        if running:
            overlaps.append(True)
        running.append(True)
        await asyncio.sleep(0.02)
        running.pop()

    stop = poll(tick, interval=0.001, emit_on_begin=True)
    await asyncio.sleep(0.1)
    stop()

    assert overlaps == []


@pytest.mark.asyncio
async def test_tick_may_stop_its_own_loop():
    calls = []
    stops = []

    async def tick():
        calls.append(True)
        stops[0]()

    stops.append(poll(tick, interval=0.01, emit_on_begin=True))
    await asyncio.sleep(0.05)

    assert calls == [True]


@pytest.mark.asyncio
async def test_failing_error_handler_does_not_end_polling():
    calls = []

    async def tick():
        calls.append(True)
        raise ValueError("rpc unavailable")

    def on_error(e):
        raise RuntimeError("handler broke")

    stop = poll(tick, interval=0.01, emit_on_begin=True, on_error=on_error)
    await _wait_for(lambda: len(calls) >= 3)
    stop()


@pytest.mark.asyncio
async def test_async_handlers_are_tracked_until_done(caplog):
    done = []

    async def record(value):
        await asyncio.sleep(0)
        done.append(value)

    async def explode(value):
        raise ValueError("bad handler")

    emitter = Emitter("key", {1: {"on_value": record}, 2: {"on_value": explode}})
    emitter.on_value(3)

    assert len(emitter._tasks) == 2
    await _wait_for(lambda: not emitter._tasks)

    assert done == [3]
    assert "bad handler" in caplog.text


def test_observer_from_config():
    observer = PollingObserver.from_config(PollingConfig(interval=1.5))

    assert observer.interval == 1.5

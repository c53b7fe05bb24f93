from __future__ import annotations

import asyncio
import math

import pytest

from cachify import (
    CachifiedOptions,
    InMemoryReporter,
    PendingRegistry,
    cachified,
    configure,
    drain_background_tasks,
)
from cachify.reporting import events

from _support import ManualClock, MemoryStore


def run_async(coro):
    return asyncio.run(coro)


def test_fresh_key_is_produced_once():
    async def scenario() -> None:
        store = MemoryStore()
        clock = ManualClock()
        calls = []

        def produce(context):
            calls.append(context.background)
            return "value"

        first = await cachified(key="k", store=store, get_fresh_value=produce, clock=clock)
        second = await cachified(key="k", store=store, get_fresh_value=produce, clock=clock)

        assert first == second == "value"
        assert calls == [False]

    run_async(scenario())


def test_parallel_calls_share_one_production():
    async def scenario() -> None:
        store = MemoryStore()
        clock = ManualClock()
        calls = []

        async def produce(_context):
            calls.append(1)
            await asyncio.sleep(0.01)
            return "shared"

        results = await asyncio.gather(
            *(
                cachified(key="k", store=store, get_fresh_value=produce, clock=clock)
                for _ in range(5)
            )
        )

        assert results == ["shared"] * 5
        assert len(calls) == 1

    run_async(scenario())


def test_later_faster_call_overrides_slow_pending_production():
    async def scenario() -> None:
        store = MemoryStore()
        clock = ManualClock()
        release_slow = asyncio.Event()
        slow_finished = asyncio.Event()

        async def slow(_context):
            await release_slow.wait()
            slow_finished.set()
            return "A"

        async def fast(_context):
            return "B"

        first = asyncio.ensure_future(
            cachified(key="k", store=store, get_fresh_value=slow, ttl=5, clock=clock)
        )
        await asyncio.sleep(0)
        clock.advance(6)
        second = await cachified(key="k", store=store, get_fresh_value=fast, ttl=5, clock=clock)

        assert second == "B"
        assert await first == "B"

        release_slow.set()
        await slow_finished.wait()
        await asyncio.sleep(0)

        clock.advance(1)
        third = await cachified(
            key="k",
            store=store,
            get_fresh_value=lambda _ctx: "C",
            ttl=5,
            clock=clock,
        )
        assert third == "B"
        assert store.value("k") == "B"

    run_async(scenario())


def test_stale_while_revalidate_scenario():
    async def scenario() -> None:
        store = MemoryStore()
        clock = ManualClock()
        values = iter(["v0", "v1", "v2"])
        backgrounds = []

        def produce(context):
            backgrounds.append(context.background)
            return next(values)

        options = CachifiedOptions(
            key="k",
            store=store,
            get_fresh_value=produce,
            ttl=5,
            stale_while_revalidate=10,
            clock=clock,
        )

        assert await cachified(options) == "v0"

        clock.now = 6
        assert await cachified(options) == "v0"
        await drain_background_tasks()

        clock.now = 7
        assert await cachified(options) == "v1"

        clock.now = 30
        assert await cachified(options) == "v2"
        assert backgrounds == [False, True, False]

    run_async(scenario())


def test_expired_entry_is_revalidated_when_stale_window_is_infinite():
    async def scenario() -> None:
        store = MemoryStore()
        clock = ManualClock()
        await cachified(key="k", store=store, get_fresh_value=lambda _ctx: "old", ttl=5, clock=clock)

        clock.now = 1000
        served = await cachified(
            key="k",
            store=store,
            get_fresh_value=lambda _ctx: "new",
            ttl=5,
            stale_while_revalidate=math.inf,
            clock=clock,
        )
        await drain_background_tasks()

        assert served == "old"
        assert store.value("k") == "new"
        assert store.rows["k"].metadata.swr is None

    run_async(scenario())


def test_background_refresh_failure_never_reaches_caller():
    async def scenario() -> None:
        store = MemoryStore()
        clock = ManualClock()
        reporter = InMemoryReporter()
        await cachified(
            key="k",
            store=store,
            get_fresh_value=lambda _ctx: "old",
            ttl=5,
            stale_while_revalidate=10,
            clock=clock,
        )

        def broken(_context):
            raise RuntimeError("refresh failed")

        clock.now = 6
        served = await cachified(
            key="k",
            store=store,
            get_fresh_value=broken,
            ttl=5,
            stale_while_revalidate=10,
            clock=clock,
            reporter=reporter,
        )
        await drain_background_tasks()

        assert served == "old"
        assert store.value("k") == "old"
        assert events.REFRESH_VALUE_START in reporter.names()
        assert events.REFRESH_VALUE_ERROR in reporter.names()

    run_async(scenario())


def test_wait_until_receives_background_tasks():
    async def scenario() -> None:
        store = MemoryStore()
        clock = ManualClock()
        tasks = []
        await cachified(
            key="k",
            store=store,
            get_fresh_value=lambda _ctx: "old",
            ttl=5,
            stale_while_revalidate=10,
            clock=clock,
        )

        clock.now = 6
        await cachified(
            key="k",
            store=store,
            get_fresh_value=lambda _ctx: "new",
            ttl=5,
            stale_while_revalidate=10,
            stale_refresh_timeout=1,
            wait_until=tasks.append,
            clock=clock,
        )

        assert len(tasks) == 1
        await asyncio.gather(*tasks)
        assert store.value("k") == "new"

    run_async(scenario())


def test_cancelled_caller_does_not_cancel_shared_production():
    async def scenario() -> None:
        store = MemoryStore()
        gate = asyncio.Event()

        async def produce(_context):
            await gate.wait()
            return "value"

        clock = ManualClock()
        first = asyncio.ensure_future(
            cachified(key="k", store=store, get_fresh_value=produce, clock=clock)
        )
        second = asyncio.ensure_future(
            cachified(key="k", store=store, get_fresh_value=produce, clock=clock)
        )
        await asyncio.sleep(0)
        first.cancel()
        gate.set()

        assert await second == "value"
        assert first.cancelled()

    run_async(scenario())


def test_explicit_pending_registry_is_used():
    async def scenario() -> None:
        registry = PendingRegistry()
        gate = asyncio.Event()

        async def produce(_context):
            await gate.wait()
            return "value"

        call = asyncio.ensure_future(
            cachified(
                key="k",
                store=MemoryStore(),
                get_fresh_value=produce,
                clock=ManualClock(),
                pending=registry,
            )
        )
        await asyncio.sleep(0)
        assert registry.keys() == ["k"]

        gate.set()
        assert await call == "value"

    run_async(scenario())


def test_event_sequence_for_miss_and_hit():
    async def scenario() -> None:
        store = MemoryStore()
        clock = ManualClock()
        miss = InMemoryReporter()
        hit = InMemoryReporter()

        await cachified(key="k", store=store, get_fresh_value=lambda _ctx: 1, clock=clock, reporter=miss)
        await cachified(key="k", store=store, get_fresh_value=lambda _ctx: 2, clock=clock, reporter=hit)

        assert miss.names() == [
            events.GET_CACHED_VALUE_START,
            events.GET_CACHED_VALUE_READ,
            events.GET_CACHED_VALUE_EMPTY,
            events.GET_FRESH_VALUE_START,
            events.GET_FRESH_VALUE_SUCCESS,
            events.WRITE_FRESH_VALUE_SUCCESS,
            events.DONE,
        ]
        assert hit.names() == [
            events.GET_CACHED_VALUE_START,
            events.GET_CACHED_VALUE_READ,
            events.GET_CACHED_VALUE_SUCCESS,
            events.DONE,
        ]
        assert {event.key for event in hit.events()} == {"k"}

    run_async(scenario())


@pytest.mark.parametrize(
    "overrides",
    [
        {"key": ""},
        {"stale_while_revalidate": -1},
        {"stale_refresh_timeout": -1},
        {"fallback_to_cache": -5},
    ],
)
def test_invalid_options_raise_value_error(overrides):
    options = CachifiedOptions(key="k", store=MemoryStore(), get_fresh_value=lambda _ctx: 1)

    with pytest.raises(ValueError):
        run_async(cachified(options, **overrides))


def test_configure_merges_defaults_and_reporters():
    async def scenario() -> None:
        store = MemoryStore()
        clock = ManualClock()
        default_reporter = InMemoryReporter()
        call_reporter = InMemoryReporter()
        cached = configure({"store": store, "ttl": 5, "clock": clock}, reporter=default_reporter)

        await cached(key="a", get_fresh_value=lambda _ctx: "a")
        await cached(key="b", get_fresh_value=lambda _ctx: "b", ttl=50, reporter=call_reporter)

        assert store.rows["a"].metadata.ttl == 5
        assert store.rows["b"].metadata.ttl == 50
        assert default_reporter.names().count(events.DONE) == 2
        assert call_reporter.names().count(events.DONE) == 1

    run_async(scenario())


def test_configure_rejects_unknown_defaults():
    with pytest.raises(ValueError, match="Unknown cachified options"):
        configure({"tll": 5})

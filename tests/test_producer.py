from __future__ import annotations

import asyncio

import pytest

from cachify import CacheMetadata, InMemoryReporter, cachified
from cachify.producer import should_write
from cachify.reporting import events

from _support import ManualClock, MemoryStore


def run_async(coro):
    return asyncio.run(coro)


def test_should_write_rules():
    assert should_write(CacheMetadata(created_time=0, ttl=None), 10**9)
    assert should_write(CacheMetadata(created_time=0, ttl=0, swr=10), 5)
    assert not should_write(CacheMetadata(created_time=0, ttl=-1), 0)
    assert not should_write(CacheMetadata(created_time=0, ttl=5), 6)


def test_forced_fresh_failure_falls_back_to_cached_value():
    async def scenario() -> None:
        store = MemoryStore()
        clock = ManualClock()
        reporter = InMemoryReporter()
        await cachified(key="k", store=store, get_fresh_value=lambda _ctx: "cached", clock=clock)

        def broken(_context):
            raise RuntimeError("upstream down")

        clock.advance(100)
        value = await cachified(
            key="k",
            store=store,
            get_fresh_value=broken,
            force_fresh=True,
            clock=clock,
            reporter=reporter,
        )

        assert value == "cached"
        assert events.GET_FRESH_VALUE_CACHE_FALLBACK in reporter.names()
        assert store.rows["k"].metadata.created_time == 0

    run_async(scenario())


def test_forced_fresh_failure_without_usable_fallback_raises_producer_error():
    async def scenario() -> None:
        store = MemoryStore()
        clock = ManualClock()
        await cachified(key="k", store=store, get_fresh_value=lambda _ctx: "cached", clock=clock)

        def broken(_context):
            raise KeyError("missing upstream")

        clock.advance(100)
        with pytest.raises(KeyError):
            await cachified(
                key="k",
                store=store,
                get_fresh_value=broken,
                force_fresh=True,
                fallback_to_cache=False,
                clock=clock,
            )
        with pytest.raises(KeyError):
            await cachified(
                key="k",
                store=store,
                get_fresh_value=broken,
                force_fresh=True,
                fallback_to_cache=50,
                clock=clock,
            )
        assert (
            await cachified(
                key="k",
                store=store,
                get_fresh_value=broken,
                force_fresh=True,
                fallback_to_cache=150,
                clock=clock,
            )
            == "cached"
        )

    run_async(scenario())


def test_production_error_without_force_fresh_propagates_unchanged():
    async def scenario() -> None:
        error = RuntimeError("boom")

        async def broken(_context):
            raise error

        with pytest.raises(RuntimeError) as caught:
            await cachified(key="k", store=MemoryStore(), get_fresh_value=broken, clock=ManualClock())
        assert caught.value is error

    run_async(scenario())


def test_producer_can_veto_write_through_metadata():
    async def scenario() -> None:
        store = MemoryStore()

        def produce(context):
            context.metadata.ttl = -1
            return "uncached"

        value = await cachified(key="k", store=store, get_fresh_value=produce, clock=ManualClock())

        assert value == "uncached"
        assert store.rows == {}

    run_async(scenario())


def test_slow_production_past_its_ttl_is_not_written():
    async def scenario() -> None:
        store = MemoryStore()
        clock = ManualClock()
        reporter = InMemoryReporter()

        def slow(_context):
            clock.advance(10)
            return "late"

        value = await cachified(
            key="k", store=store, get_fresh_value=slow, ttl=5, clock=clock, reporter=reporter
        )

        assert value == "late"
        assert store.rows == {}
        written = [e for e in reporter.events() if e.name == events.WRITE_FRESH_VALUE_SUCCESS]
        assert written[0].attributes["written"] is False

    run_async(scenario())


def test_write_failure_is_reported_not_raised():
    async def scenario() -> None:
        store = MemoryStore()
        store.fail_set = True
        reporter = InMemoryReporter()

        value = await cachified(
            key="k",
            store=store,
            get_fresh_value=lambda _ctx: "value",
            clock=ManualClock(),
            reporter=reporter,
        )

        assert value == "value"
        assert events.WRITE_FRESH_VALUE_ERROR in reporter.names()

    run_async(scenario())


def test_force_fresh_allowlist_only_forces_listed_keys():
    async def scenario() -> None:
        store = MemoryStore()
        clock = ManualClock()
        for key in ("a", "b"):
            await cachified(key=key, store=store, get_fresh_value=lambda _ctx: "old", clock=clock)

        results = {
            key: await cachified(
                key=key,
                store=store,
                get_fresh_value=lambda _ctx: "new",
                force_fresh="b, c",
                clock=clock,
            )
            for key in ("a", "b")
        }

        assert results == {"a": "old", "b": "new"}

    run_async(scenario())


def test_forced_fresh_fallback_rejected_by_check_is_deleted():
    async def scenario() -> None:
        store = MemoryStore()
        clock = ManualClock()
        reporter = InMemoryReporter()
        await cachified(key="k", store=store, get_fresh_value=lambda _ctx: "bad", clock=clock)

        error = KeyError("missing upstream")

        def broken(_context):
            raise error

        clock.advance(100)
        with pytest.raises(KeyError) as caught:
            await cachified(
                key="k",
                store=store,
                get_fresh_value=broken,
                check_value=lambda value, _migrate: value != "bad" or "corrupt",
                force_fresh=True,
                clock=clock,
                reporter=reporter,
            )

        assert caught.value is error
        assert store.deleted == ["k"]
        assert store.rows == {}
        assert events.CHECK_CACHED_VALUE_ERROR in reporter.names()
        assert events.GET_FRESH_VALUE_CACHE_FALLBACK not in reporter.names()

    run_async(scenario())


def test_forced_fresh_fallback_serves_migrated_value_without_writing():
    async def scenario() -> None:
        store = MemoryStore()
        clock = ManualClock()
        await cachified(key="k", store=store, get_fresh_value=lambda _ctx: "v1", clock=clock)

        def broken(_context):
            raise RuntimeError("upstream down")

        value = await cachified(
            key="k",
            store=store,
            get_fresh_value=broken,
            check_value=lambda value, migrate_value: migrate_value(f"v2:{value}"),
            force_fresh=True,
            clock=clock,
        )

        assert value == "v2:v1"
        assert store.value("k") == "v1"
        assert store.deleted == []

    run_async(scenario())

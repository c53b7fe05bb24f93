"""
MIT License
Copyright (c) 2026 arpan404
See LICENSE file for full license text.

Stale-while-revalidate background refreshes and soft purging.
"""

from __future__ import annotations

import asyncio
import logging
from collections.abc import Awaitable, Callable
from dataclasses import replace
from typing import Any

from .background import spawn_background
from .context import CachifiedOptions, CallContext
from .freshness import Freshness, classify
from .reader import assert_cache_entry
from .reporting import events
from .types import (
    CacheEntry,
    CacheMetadata,
    Clock,
    ProducerContext,
    ValueProducer,
    notify_cache_hit,
    now_ms,
    resolve,
    to_metadata_duration,
)

logger = logging.getLogger("cachify.revalidation")

RunCachified = Callable[[CachifiedOptions], Awaitable[Any]]


class BackgroundProducer:
    """Producer wrapper flagging production contexts as background refreshes."""

    __slots__ = ("_producer",)

    def __init__(self, producer: ValueProducer) -> None:
        self._producer = producer

    def __call__(self, context: ProducerContext) -> Any:
        return self._producer(ProducerContext(metadata=context.metadata, background=True))

    def on_cache_hit(self) -> None:
        notify_cache_hit(self._producer)


def schedule_background_refresh(context: CallContext, run: RunCachified) -> asyncio.Task[Any]:
    """
    Refresh the context key out of band.

    Waits `stale_refresh_timeout` ms, then runs a forced-fresh call without
    cache fallback. Errors are reported and logged, never raised to the caller
    that received the stale value.
    """
    options = replace(
        context.options,
        force_fresh=True,
        fallback_to_cache=False,
        get_fresh_value=BackgroundProducer(context.options.get_fresh_value),
    )

    async def refresh() -> None:
        if context.stale_refresh_timeout > 0:
            await asyncio.sleep(context.stale_refresh_timeout / 1000)
        context.report(events.REFRESH_VALUE_START)
        try:
            value = await run(options)
        except Exception as error:  # noqa: BLE001
            logger.warning("Background refresh for %s failed: %s", context.key, error)
            context.report(events.REFRESH_VALUE_ERROR, error=error)
            return
        context.report(events.REFRESH_VALUE_SUCCESS, value=value)

    return spawn_background(refresh(), wait_until=context.wait_until)


async def soft_purge(
    store: Any,
    key: str,
    *,
    stale_while_revalidate: float | None = None,
    clock: Clock = now_ms,
) -> None:
    """
    Mark an entry as due for refresh without deleting it.

    The entry keeps its value and `created_time`; `ttl` becomes 0 and the
    stale window becomes `stale_while_revalidate` (counted from now) or the
    previous ttl plus stale window. Missing and expired entries are left alone.

    Raises:
        CacheEntryError: When the stored entry is malformed.
    """
    raw = await resolve(store.get(key))
    if raw is None:
        return
    entry = assert_cache_entry(raw, key)
    now = clock()
    if classify(entry.metadata, now) is Freshness.EXPIRED:
        return

    metadata = entry.metadata
    if stale_while_revalidate is not None:
        swr = to_metadata_duration(stale_while_revalidate + (now - metadata.created_time))
    elif metadata.ttl is None or metadata.swr is None:
        swr = None
    else:
        swr = metadata.ttl + metadata.swr

    await resolve(
        store.set(
            key,
            CacheEntry(
                metadata=CacheMetadata(created_time=metadata.created_time, ttl=0, swr=swr),
                value=entry.value,
            ),
        )
    )
    logger.debug("Soft purged %s (stale window %s)", key, swr)

"""
MIT License
Copyright (c) 2026 arpan404
See LICENSE file for full license text.

Reading entries from the backing store.
"""

from __future__ import annotations

import logging
import math
from collections.abc import Callable, Mapping
from typing import Any

from .background import spawn_background
from .context import CallContext
from .errors import CacheEntryError
from .freshness import Freshness, classify
from .reporting import events
from .types import CacheEntry, CacheMetadata, notify_cache_hit, resolve
from .validation import Migrate, Reject, check_value, reason_text

logger = logging.getLogger("cachify.reader")


class _CacheEmpty:
    __slots__ = ()

    def __repr__(self) -> str:
        return "CACHE_EMPTY"


CACHE_EMPTY: Any = _CacheEmpty()
"""Sentinel returned when no usable cached value exists."""


def _is_number(value: Any) -> bool:
    return isinstance(value, (int, float)) and not isinstance(value, bool)


def _optional_number(value: Any) -> bool:
    return value is None or _is_number(value)


def _parse_metadata(raw: Any, label: str) -> CacheMetadata:
    if isinstance(raw, CacheMetadata):
        created_time, ttl, swr = raw.created_time, raw.ttl, raw.swr
    elif isinstance(raw, Mapping):
        created_time = raw.get("created_time")
        ttl = raw.get("ttl")
        swr = raw.get("swr", 0)
    else:
        raise CacheEntryError(f"Cache entry {label}does not have valid metadata property")

    if not _is_number(created_time) or not _optional_number(ttl) or not _optional_number(swr):
        raise CacheEntryError(f"Cache entry {label}does not have valid metadata property")
    return CacheMetadata(created_time=created_time, ttl=ttl, swr=swr)


def assert_cache_entry(raw: Any, key: str | None = None) -> CacheEntry[Any]:
    """
    Check that `raw` has the cache entry shape and normalize it.

    Accepts `CacheEntry` instances and mappings produced by
    `CacheEntry.to_dict()`.

    Raises:
        CacheEntryError: When the shape is invalid.
    """
    label = f"for {key} " if key else ""
    if isinstance(raw, CacheEntry):
        return CacheEntry(metadata=_parse_metadata(raw.metadata, label), value=raw.value)
    if not isinstance(raw, Mapping):
        raise CacheEntryError(
            f"Cache entry {label}is not a cache entry object, it's a {type(raw).__name__}"
        )
    metadata = _parse_metadata(raw.get("metadata"), label)
    if "value" not in raw:
        raise CacheEntryError(f"Cache entry {label}does not have a value property")
    return CacheEntry(metadata=metadata, value=raw["value"])


async def read_entry(context: CallContext) -> CacheEntry[Any] | None:
    """Fetch and shape-check the stored entry for the context key."""
    context.report(events.GET_CACHED_VALUE_START)
    raw = await resolve(context.store.get(context.key))
    context.report(events.GET_CACHED_VALUE_READ, entry=raw)
    if raw is None:
        return None
    return assert_cache_entry(raw, context.key)


async def delete_quietly(context: CallContext) -> None:
    try:
        await resolve(context.store.delete(context.key))
    except Exception:  # noqa: BLE001
        logger.warning("Failed to delete cache key %s", context.key, exc_info=True)


def _schedule_migration(
    context: CallContext,
    read: CacheEntry[Any],
    migrated: Any,
    has_pending: Callable[[], bool],
) -> None:
    async def rewrite() -> None:
        try:
            raw = await resolve(context.store.get(context.key))
            current = None if raw is None else assert_cache_entry(raw, context.key)
            # Unless the entry changed meanwhile or is about to change.
            if (
                current is None
                or current.metadata.created_time != read.metadata.created_time
                or has_pending()
            ):
                context.report(events.MIGRATE_CACHED_VALUE_SKIPPED)
                return
            await resolve(
                context.store.set(
                    context.key,
                    CacheEntry(metadata=current.metadata.copy(), value=migrated),
                )
            )
            context.report(events.MIGRATE_CACHED_VALUE_SUCCESS, value=migrated)
        except Exception as error:  # noqa: BLE001
            logger.debug("Migrating cached value of %s failed: %s", context.key, error)
            context.report(events.MIGRATE_CACHED_VALUE_ERROR, error=error)

    spawn_background(rewrite(), wait_until=context.wait_until)


async def get_cached_value(
    context: CallContext,
    *,
    has_pending: Callable[[], bool],
    schedule_refresh: Callable[[], None],
) -> Any:
    """
    Serve the stored value when it is fresh or usable while revalidating.

    Returns `CACHE_EMPTY` when nothing usable is stored. Malformed entries,
    failing reads and rejected values delete the key and count as a miss.
    """
    try:
        entry = await read_entry(context)
        if entry is None:
            context.report(events.GET_CACHED_VALUE_EMPTY)
            return CACHE_EMPTY

        freshness = classify(entry.metadata, context.now())
        stale_refresh = freshness is Freshness.STALE or (
            freshness is Freshness.EXPIRED and math.isinf(context.stale_while_revalidate)
        )
        if freshness is Freshness.EXPIRED:
            context.report(
                events.GET_CACHED_VALUE_OUTDATED,
                value=entry.value,
                metadata=entry.metadata,
            )
        if stale_refresh:
            schedule_refresh()

        if freshness is Freshness.FRESH or stale_refresh:
            result = await check_value(context.check_value, entry.value)
            if not isinstance(result, Reject):
                migrated = isinstance(result, Migrate)
                context.report(
                    events.GET_CACHED_VALUE_SUCCESS,
                    value=result.value,
                    migrated=migrated,
                )
                if not stale_refresh:
                    # The producer will not run for this call.
                    notify_cache_hit(context.get_fresh_value)
                if migrated and result.update_cache:
                    _schedule_migration(context, entry, result.value, has_pending)
                return result.value

            context.report(
                events.CHECK_CACHED_VALUE_ERROR,
                reason=reason_text(result.reason),
                error=result.reason,
            )
            await delete_quietly(context)
    except Exception as error:  # noqa: BLE001
        logger.warning("Reading cache key %s failed: %s", context.key, error)
        context.report(events.GET_CACHED_VALUE_ERROR, error=error)
        await delete_quietly(context)

    return CACHE_EMPTY

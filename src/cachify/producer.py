"""
MIT License
Copyright (c) 2026 arpan404
See LICENSE file for full license text.

Producing, checking and persisting fresh values.
"""

from __future__ import annotations

import logging
from typing import Any

from .context import CallContext
from .errors import ValueCheckError
from .freshness import Freshness, classify
from .reader import delete_quietly, read_entry
from .reporting import events
from .types import CacheEntry, CacheMetadata, ProducerContext, resolve
from .validation import Accept, Migrate, Reject, check_value, reason_text

logger = logging.getLogger("cachify.producer")


async def _fallback_result(context: CallContext) -> Accept | Migrate | None:
    try:
        entry = await read_entry(context)
    except Exception as error:  # noqa: BLE001
        logger.debug("Cache fallback read for %s failed: %s", context.key, error)
        return None
    if entry is None:
        return None
    if entry.metadata.created_time + context.fallback_to_cache < context.now():
        return None

    result = await check_value(context.check_value, entry.value)
    if isinstance(result, Reject):
        context.report(
            events.CHECK_CACHED_VALUE_ERROR,
            reason=reason_text(result.reason),
            error=result.reason,
        )
        await delete_quietly(context)
        return None
    return result


def should_write(metadata: CacheMetadata, now: float) -> bool:
    """
    Whether a produced value may be persisted with `metadata`.

    A negative ttl vetoes caching. Productions that outlived their own ttl do
    not write, so slow calls never clobber newer entries.
    """
    if metadata.ttl is not None and metadata.ttl < 0:
        return False
    return classify(metadata, now) is not Freshness.EXPIRED


async def get_fresh_value(context: CallContext, metadata: CacheMetadata) -> Any:
    """
    Produce, check and store a fresh value for the context key.

    Production errors propagate unchanged unless a forced-fresh call may fall
    back to a stored value that still passes the check. Write failures are reported and never raised.

    Raises:
        ValueCheckError: When the produced value is rejected.
    """
    context.report(events.GET_FRESH_VALUE_START)
    try:
        value = await resolve(
            context.get_fresh_value(ProducerContext(metadata=metadata, background=False))
        )
        context.report(events.GET_FRESH_VALUE_SUCCESS, value=value)
    except Exception as error:
        context.report(events.GET_FRESH_VALUE_ERROR, error=error)
        if not (context.force_fresh and context.fallback_to_cache > 0):
            raise
        fallback = await _fallback_result(context)
        if fallback is None:
            raise
        # Served as is, never written back.
        context.report(events.GET_FRESH_VALUE_CACHE_FALLBACK, value=fallback.value)
        return fallback.value

    result = await check_value(context.check_value, value)
    if isinstance(result, Reject):
        context.report(
            events.CHECK_FRESH_VALUE_ERROR,
            reason=reason_text(result.reason),
            error=result.reason,
        )
        error = ValueCheckError(context.key, result.reason)
        if isinstance(result.reason, BaseException):
            raise error from result.reason
        raise error

    migrated = isinstance(result, Migrate)
    stored = result.value if migrated and result.update_cache else value
    try:
        written = should_write(metadata, context.now())
        if written:
            await resolve(
                context.store.set(
                    context.key,
                    CacheEntry(metadata=metadata.copy(), value=stored),
                )
            )
        else:
            logger.debug("Not writing fresh value of %s to cache", context.key)
        context.report(
            events.WRITE_FRESH_VALUE_SUCCESS,
            metadata=metadata,
            written=written,
            migrated=migrated,
        )
    except Exception as error:  # noqa: BLE001
        logger.warning("Writing fresh value of %s failed: %s", context.key, error)
        context.report(events.WRITE_FRESH_VALUE_ERROR, error=error)

    return result.value

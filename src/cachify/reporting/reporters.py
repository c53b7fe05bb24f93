"""
MIT License
Copyright (c) 2026 arpan404
See LICENSE file for full license text.

Reporter contracts plus the built-in null, in-memory and logging reporters.
"""

from __future__ import annotations

import logging
import time
from collections.abc import Callable
from dataclasses import dataclass, field
from typing import TYPE_CHECKING, Any, TypeAlias

from ..types import CacheMetadata, store_name
from .events import (
    CHECK_CACHED_VALUE_ERROR,
    CHECK_FRESH_VALUE_ERROR,
    GET_CACHED_VALUE_ERROR,
    GET_CACHED_VALUE_READ,
    GET_FRESH_VALUE_ERROR,
    GET_FRESH_VALUE_START,
    GET_FRESH_VALUE_SUCCESS,
    REFRESH_VALUE_ERROR,
    REFRESH_VALUE_START,
    REFRESH_VALUE_SUCCESS,
    WRITE_FRESH_VALUE_ERROR,
    WRITE_FRESH_VALUE_SUCCESS,
    CacheEvent,
)

if TYPE_CHECKING:
    from ..context import CallContext

Reporter: TypeAlias = Callable[[CacheEvent], None]
CreateReporter: TypeAlias = Callable[["CallContext"], "Reporter | None"]


def null_reporter(context: CallContext) -> Reporter:
    """Reporter factory that drops every event."""
    _ = context

    def report(event: CacheEvent) -> None:
        _ = event

    return report


@dataclass(slots=True)
class InMemoryReporter:
    """Reporter factory that keeps every emitted event in process memory."""

    _events: list[CacheEvent] = field(default_factory=list)

    def __call__(self, context: CallContext) -> Reporter:
        _ = context
        return self._events.append

    def events(self) -> list[CacheEvent]:
        return list(self._events)

    def names(self) -> list[str]:
        return [event.name for event in self._events]

    def clear(self) -> None:
        self._events.clear()


def merge_reporters(*reporters: CreateReporter | None) -> CreateReporter:
    """Combine reporter factories; `None` entries are skipped."""
    factories = [item for item in reporters if item is not None]

    def create(context: CallContext) -> Reporter:
        created = [factory(context) for factory in factories]
        active = [item for item in created if item is not None]

        def report(event: CacheEvent) -> None:
            for item in active:
                item(event)

        return report

    return create


def format_duration(duration_ms: float) -> str:
    return f"{round(duration_ms)}ms"


def format_cache_time(
    metadata: CacheMetadata,
    formatter: Callable[[float], str] = format_duration,
) -> str:
    if metadata.ttl is None or metadata.swr is None:
        suffix = ""
        if metadata.ttl is not None:
            suffix = f" (revalidation after {formatter(metadata.ttl)})"
        return f"forever{suffix}"
    return f"{formatter(metadata.ttl)} + {formatter(metadata.swr)} stale"


def verbose_reporter(
    logger: logging.Logger | None = None,
    *,
    formatter: Callable[[float], str] = format_duration,
    perf_counter: Callable[[], float] = time.perf_counter,
) -> CreateReporter:
    """
    Reporter factory that narrates cache decisions through stdlib logging.

    Args:
        logger: Target logger, defaults to `cachify.reporter`.
        formatter: Formats millisecond durations.
        perf_counter: Monotonic clock in seconds used for timing.
    """
    log = logger or logging.getLogger("cachify.reporter")

    def create(context: CallContext) -> Reporter:
        key = context.key
        metadata = context.metadata
        cache_name = store_name(context.store)
        state: dict[str, Any] = {}

        def elapsed(start_key: str) -> str:
            started = state.get(start_key, perf_counter())
            return formatter((perf_counter() - started) * 1000)

        def report(event: CacheEvent) -> None:
            attrs = event.attributes
            name = event.name
            if name == GET_CACHED_VALUE_READ:
                state["cached"] = attrs.get("entry")
            elif name == CHECK_CACHED_VALUE_ERROR:
                log.warning(
                    "check failed for cached value of %s\nReason: %s.\n"
                    "Deleting the cache key and trying to get a fresh value. %r",
                    key,
                    attrs.get("reason"),
                    state.get("cached"),
                )
            elif name == GET_CACHED_VALUE_ERROR:
                log.error(
                    "error with cache at %s. Deleting the cache key and trying "
                    "to get a fresh value. %s",
                    key,
                    attrs.get("error"),
                )
            elif name == GET_FRESH_VALUE_ERROR:
                log.error(
                    "getting a fresh value for %s failed (fallback_to_cache=%s, "
                    "force_fresh=%s): %s",
                    key,
                    context.fallback_to_cache,
                    context.force_fresh,
                    attrs.get("error"),
                )
            elif name == GET_FRESH_VALUE_START:
                state["fresh_start"] = perf_counter()
            elif name == GET_FRESH_VALUE_SUCCESS:
                state["fresh_value"] = attrs.get("value")
            elif name == WRITE_FRESH_VALUE_SUCCESS:
                if attrs.get("written"):
                    log.info(
                        "Updated the cache value for %s. Getting a fresh value "
                        "for this took %s. Caching for %s in %s.",
                        key,
                        elapsed("fresh_start"),
                        format_cache_time(metadata, formatter),
                        cache_name,
                    )
                else:
                    log.info(
                        "Not updating the cache value for %s. Getting a fresh "
                        "value for this took %s. Thereby exceeding caching time "
                        "of %s",
                        key,
                        elapsed("fresh_start"),
                        format_cache_time(metadata, formatter),
                    )
            elif name == WRITE_FRESH_VALUE_ERROR:
                log.error("error setting cache: %s %s", key, attrs.get("error"))
            elif name == CHECK_FRESH_VALUE_ERROR:
                log.error(
                    "check failed for fresh value of %s\nReason: %s. %r",
                    key,
                    attrs.get("reason"),
                    state.get("fresh_value"),
                )
            elif name == REFRESH_VALUE_START:
                state["refresh_start"] = perf_counter()
            elif name == REFRESH_VALUE_SUCCESS:
                log.info(
                    "Background refresh for %s successful. Getting a fresh value "
                    "for this took %s. Caching for %s in %s.",
                    key,
                    elapsed("refresh_start"),
                    format_cache_time(metadata, formatter),
                    cache_name,
                )
            elif name == REFRESH_VALUE_ERROR:
                log.info("Background refresh for %s failed. %s", key, attrs.get("error"))

        return report

    return create

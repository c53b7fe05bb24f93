"""
MIT License
Copyright (c) 2026 arpan404
See LICENSE file for full license text.

Call options and the resolved per-call context.
"""

from __future__ import annotations

import asyncio
import logging
import math
from collections.abc import Callable
from dataclasses import dataclass
from typing import TYPE_CHECKING, Any

from .reporting.events import CacheEvent
from .reporting.reporters import CreateReporter, Reporter
from .types import CacheMetadata, Clock, ValueProducer, now_ms, to_metadata_duration
from .validation import Validator, as_validator

if TYPE_CHECKING:
    from .pending import PendingRegistry

logger = logging.getLogger("cachify.reporter")

WaitUntil = Callable[["asyncio.Task[Any]"], None]


@dataclass(frozen=True, slots=True)
class CachifiedOptions:
    """
    Options for one `cachified` call.

    Durations are milliseconds.

    Attributes:
        key: Cache key, unique per value.
        store: Backing store with `get`/`set`/`delete`.
        get_fresh_value: Producer called when no usable value exists.
        ttl: Time to live, `math.inf` never expires, negative disables writes.
        stale_while_revalidate: Window after ttl in which the stale value is
            served while refreshing in the background.
        check_value: Validator callable or pydantic schema.
        force_fresh: Skip reading the store; a string is a comma separated
            allowlist of keys to force.
        fallback_to_cache: On forced-fresh failure, serve the stored value;
            a number caps its age.
        stale_refresh_timeout: Delay before a background refresh starts.
        wait_until: Hook receiving every background task spawned by the call.
        clock: Millisecond clock.
        pending: Explicit pending-value registry, defaults to the one keyed by
            store identity.
    """

    key: str
    store: Any
    get_fresh_value: ValueProducer
    ttl: float = math.inf
    stale_while_revalidate: float = 0
    check_value: Any = None
    force_fresh: bool | str = False
    fallback_to_cache: bool | float = True
    stale_refresh_timeout: float = 0
    wait_until: WaitUntil | None = None
    clock: Clock = now_ms
    pending: PendingRegistry | None = None


@dataclass(slots=True)
class CallContext:
    """Options resolved for one call, plus the metadata of its production cycle."""

    options: CachifiedOptions
    key: str
    store: Any
    get_fresh_value: ValueProducer
    ttl: float
    stale_while_revalidate: float
    check_value: Validator | None
    force_fresh: bool
    fallback_to_cache: float
    stale_refresh_timeout: float
    wait_until: WaitUntil | None
    clock: Clock
    metadata: CacheMetadata
    reporter: Reporter | None = None

    def now(self) -> float:
        return self.clock()

    def report(self, name: str, **attributes: Any) -> None:
        """Emit one event; reporter failures are logged and never change the call."""
        if self.reporter is None:
            return
        try:
            self.reporter(
                CacheEvent(
                    name=name,
                    key=self.key,
                    timestamp_ms=int(self.clock()),
                    attributes=attributes,
                )
            )
        except Exception:  # noqa: BLE001
            logger.warning("Reporter failed on %s for %s", name, self.key, exc_info=True)


def _resolve_force_fresh(key: str, force_fresh: bool | str) -> bool:
    if isinstance(force_fresh, str):
        allowed = {item.strip() for item in force_fresh.split(",")}
        return key in allowed
    return bool(force_fresh)


def _resolve_fallback(fallback_to_cache: bool | float) -> float:
    if fallback_to_cache is True:
        return math.inf
    if fallback_to_cache is False:
        return 0
    if fallback_to_cache < 0:
        raise ValueError("fallback_to_cache must be a bool or non-negative number")
    return float(fallback_to_cache)


def create_context(
    options: CachifiedOptions,
    reporter: CreateReporter | None = None,
) -> CallContext:
    """Validate `options` and build the context for one call."""
    if not isinstance(options.key, str) or not options.key:
        raise ValueError("key must be a non-empty string")
    if options.stale_while_revalidate < 0:
        raise ValueError("stale_while_revalidate must be non-negative")
    if options.stale_refresh_timeout < 0 or math.isinf(options.stale_refresh_timeout):
        raise ValueError("stale_refresh_timeout must be non-negative and finite")

    context = CallContext(
        options=options,
        key=options.key,
        store=options.store,
        get_fresh_value=options.get_fresh_value,
        ttl=options.ttl,
        stale_while_revalidate=options.stale_while_revalidate,
        check_value=as_validator(options.check_value),
        force_fresh=_resolve_force_fresh(options.key, options.force_fresh),
        fallback_to_cache=_resolve_fallback(options.fallback_to_cache),
        stale_refresh_timeout=options.stale_refresh_timeout,
        wait_until=options.wait_until,
        clock=options.clock,
        metadata=CacheMetadata(
            created_time=options.clock(),
            ttl=to_metadata_duration(options.ttl),
            swr=to_metadata_duration(options.stale_while_revalidate),
        ),
    )
    if reporter is not None:
        context.reporter = reporter(context)
    return context

"""
MIT License
Copyright (c) 2026 arpan404
See LICENSE file for full license text.

The `cachified` call: serve, revalidate or produce a value for one key.
"""

from __future__ import annotations

import asyncio
from collections.abc import Awaitable, Callable, Mapping
from dataclasses import fields, replace
from typing import Any

from .context import CachifiedOptions, create_context
from .pending import PendingRegistry, pending_registry_for
from .producer import get_fresh_value
from .reader import CACHE_EMPTY, get_cached_value
from .reporting import events
from .reporting.reporters import CreateReporter, merge_reporters
from .revalidation import schedule_background_refresh
from .types import notify_cache_hit

_OPTION_NAMES = frozenset(item.name for item in fields(CachifiedOptions))


def _registry(options: CachifiedOptions) -> PendingRegistry:
    if options.pending is not None:
        return options.pending
    return pending_registry_for(options.store)


async def _run(options: CachifiedOptions, reporter: CreateReporter | None = None) -> Any:
    context = create_context(options, reporter)
    key = context.key
    pending = _registry(options)

    if not context.force_fresh:
        cached = await get_cached_value(
            context,
            has_pending=lambda: key in pending,
            schedule_refresh=lambda: schedule_background_refresh(context, _run),
        )
        if cached is not CACHE_EMPTY:
            context.report(events.DONE, value=cached)
            return cached

    # No await between the registry lookup and registration below.
    existing = pending.reusable(key, context.now())
    if existing is not None:
        context.report(events.GET_FRESH_VALUE_HOOK_PENDING)
        notify_cache_hit(context.get_fresh_value)
        value = await asyncio.shield(existing.value)
        context.report(events.DONE, value=value)
        return value

    entry = pending.begin(key, context.metadata, get_fresh_value(context, context.metadata))
    value = await asyncio.shield(entry.value)
    context.report(events.DONE, value=value)
    return value


async def cachified(
    options: CachifiedOptions | None = None,
    *,
    reporter: CreateReporter | None = None,
    **overrides: Any,
) -> Any:
    """
    Return the value for a key, from cache when usable, fresh otherwise.

    Pass either a `CachifiedOptions` instance or its fields as keyword
    arguments (keyword arguments override fields of a given instance).

    Concurrent calls for the same key and store share one production. Stale
    entries inside the stale-while-revalidate window are served immediately
    and refreshed in the background.

    Raises:
        ValueCheckError: When a fresh value fails the value check.
        Exception: Whatever the producer raised, when no cache fallback applies.
    """
    if options is None:
        options = CachifiedOptions(**overrides)
    elif overrides:
        options = replace(options, **overrides)
    return await _run(options, reporter)


def configure(
    defaults: Mapping[str, Any] | None = None,
    reporter: CreateReporter | None = None,
) -> Callable[..., Awaitable[Any]]:
    """
    Create a pre-configured `cachified`.

    Per-call keyword arguments override `defaults`; the default reporter is
    merged with a per-call reporter.
    """
    base = dict(defaults or {})
    default_reporter = reporter
    unknown = set(base) - _OPTION_NAMES
    if unknown:
        raise ValueError(f"Unknown cachified options: {', '.join(sorted(unknown))}")

    async def configured(*, reporter: CreateReporter | None = None, **overrides: Any) -> Any:
        merged = None
        if default_reporter is not None or reporter is not None:
            merged = merge_reporters(default_reporter, reporter)
        return await cachified(CachifiedOptions(**{**base, **overrides}), reporter=merged)

    return configured

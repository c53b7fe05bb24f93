"""
MIT License
Copyright (c) 2026 arpan404
See LICENSE file for full license text.

Per-store registry of in-flight productions.

Concurrent calls for one key share a single pending value. When a newer call
has to start its own production (the pending one is no longer fresh), the
first production to settle wins: its value is pushed into every older pending
entry through that entry's override future.
"""

from __future__ import annotations

import asyncio
import logging
import weakref
from collections.abc import Awaitable
from dataclasses import dataclass
from threading import RLock
from typing import Any

from .freshness import Freshness, classify
from .types import CacheMetadata

logger = logging.getLogger("cachify.pending")


@dataclass(slots=True)
class PendingEntry:
    """In-flight production for one key."""

    metadata: CacheMetadata
    value: asyncio.Task[Any]
    override: asyncio.Future[Any]

    def resolve_from_future(self, value: Any) -> None:
        """Fulfil this entry with a value produced by a later call."""
        if not self.override.done():
            self.override.set_result(value)

    def _resolve_from_task(self, task: asyncio.Task[Any]) -> None:
        if task.cancelled() or task.exception() is not None:
            return
        self.resolve_from_future(task.result())


def _retrieve_exception(task: asyncio.Future[Any]) -> None:
    if not task.cancelled():
        task.exception()


async def _first_settled(
    production: asyncio.Task[Any],
    override: asyncio.Future[Any],
) -> Any:
    try:
        await asyncio.wait({production, override}, return_when=asyncio.FIRST_COMPLETED)
    except asyncio.CancelledError:
        override.cancel()
        raise

    if production.done() and not production.cancelled() and production.exception() is None:
        override.cancel()
        return production.result()
    if override.done() and not override.cancelled():
        return override.result()
    override.cancel()
    return production.result()


class PendingRegistry:
    """Map of key to in-flight production for one backing store."""

    def __init__(self) -> None:
        self._entries: dict[str, PendingEntry] = {}

    def __contains__(self, key: object) -> bool:
        return key in self._entries

    def __len__(self) -> int:
        return len(self._entries)

    def get(self, key: str) -> PendingEntry | None:
        return self._entries.get(key)

    def keys(self) -> list[str]:
        return list(self._entries.keys())

    def reusable(self, key: str, now: float) -> PendingEntry | None:
        """Return the pending entry when its own metadata is fresh at `now`."""
        entry = self._entries.get(key)
        if entry is None:
            return None
        if classify(entry.metadata, now) is not Freshness.FRESH:
            return None
        return entry

    def begin(
        self,
        key: str,
        metadata: CacheMetadata,
        production: Awaitable[Any],
    ) -> PendingEntry:
        """
        Register a new production for `key`.

        Must be called without awaiting between the `reusable` check and this
        call. The losing production is never cancelled; its outcome is
        discarded.
        """
        previous = self._entries.get(key)

        production_task = asyncio.ensure_future(production)
        production_task.add_done_callback(_retrieve_exception)
        override: asyncio.Future[Any] = asyncio.get_running_loop().create_future()
        value_task = asyncio.ensure_future(_first_settled(production_task, override))
        value_task.add_done_callback(_retrieve_exception)

        entry = PendingEntry(metadata=metadata, value=value_task, override=override)
        value_task.add_done_callback(lambda _task: self._release(key, entry))
        if previous is not None:
            logger.debug("Overriding pending value for %s with a newer production", key)
            value_task.add_done_callback(previous._resolve_from_task)

        self._entries[key] = entry
        return entry

    def _release(self, key: str, entry: PendingEntry) -> None:
        if self._entries.get(key) is entry:
            del self._entries[key]


_REGISTRIES: dict[int, tuple[Any, PendingRegistry]] = {}
_LOCK = RLock()


def _forget(store_id: int) -> None:
    with _LOCK:
        _REGISTRIES.pop(store_id, None)


def pending_registry_for(store: Any) -> PendingRegistry:
    """
    Return the process-wide pending registry of `store`.

    Registries are keyed by store identity and dropped when the store is
    garbage collected. Stores that do not support weak references stay
    pinned for the process lifetime; pass an explicit `PendingRegistry` via
    the `pending` option to avoid that.
    """
    store_id = id(store)
    with _LOCK:
        found = _REGISTRIES.get(store_id)
        if found is not None:
            return found[1]
        registry = PendingRegistry()
        try:
            handle: Any = weakref.ref(store, lambda _ref: _forget(store_id))
        except TypeError:
            handle = store
        _REGISTRIES[store_id] = (handle, registry)
        return registry

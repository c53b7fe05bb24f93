"""
MIT License
Copyright (c) 2026 arpan404
See LICENSE file for full license text.

Cache entry, metadata and collaborator contracts.
"""

from __future__ import annotations

import inspect
import math
import time
from collections.abc import Awaitable, Callable
from dataclasses import dataclass
from typing import Any, Generic, Protocol, TypeAlias, TypeVar

V = TypeVar("V")

Clock: TypeAlias = Callable[[], float]


@dataclass(slots=True)
class CacheMetadata:
    """
    Timing attributes of one cache entry.

    All values are milliseconds. `ttl=None` never expires, `swr=None` is an
    infinite stale window. Producers may change `ttl` and `swr` while a
    production cycle runs; `created_time` is fixed once the cycle starts.
    """

    created_time: float
    ttl: float | None = None
    swr: float | None = 0

    def copy(self) -> CacheMetadata:
        return CacheMetadata(
            created_time=self.created_time,
            ttl=self.ttl,
            swr=self.swr,
        )

    def to_dict(self) -> dict[str, float | None]:
        return {"created_time": self.created_time, "ttl": self.ttl, "swr": self.swr}


@dataclass(frozen=True, slots=True)
class CacheEntry(Generic[V]):
    """One stored value together with its metadata."""

    metadata: CacheMetadata
    value: V

    def to_dict(self) -> dict[str, Any]:
        """Plain mapping form for stores that serialize entries."""
        return {"metadata": self.metadata.to_dict(), "value": self.value}


@dataclass(frozen=True, slots=True)
class ProducerContext:
    """Argument passed to fresh value producers."""

    metadata: CacheMetadata
    background: bool = False


ValueProducer: TypeAlias = Callable[[ProducerContext], Any]


class CacheStore(Protocol):
    """
    Backing store contract.

    Methods may be coroutines or plain functions. `get` returns a
    `CacheEntry`, an equivalent mapping, or `None`. Any raised error is
    treated as "entry unusable" by the core.
    """

    async def get(self, key: str) -> Any: ...

    async def set(self, key: str, entry: CacheEntry[Any]) -> Any: ...

    async def delete(self, key: str) -> Any: ...


def store_name(store: Any) -> str:
    """Human readable store name used in reports and logs."""
    name = getattr(store, "name", None)
    if isinstance(name, str) and name:
        return name
    return type(store).__name__


def notify_cache_hit(producer: Any) -> None:
    """Tell a producer that its call was answered without invoking it."""
    hook = getattr(producer, "on_cache_hit", None)
    if callable(hook):
        hook()


async def resolve(result: Awaitable[V] | V) -> V:
    """Await `result` when the collaborator returned an awaitable."""
    if inspect.isawaitable(result):
        return await result
    return result


def to_metadata_duration(value: float) -> float | None:
    """Map an option duration to its stored form (`inf` becomes `None`)."""
    if math.isinf(value):
        return None
    return value


def now_ms() -> int:
    """Return current Unix epoch time in milliseconds."""

    return int(time.time() * 1000)

"""
MIT License
Copyright (c) 2026 arpan404
See LICENSE file for full license text.

Freshness classification of cache metadata.
"""

from __future__ import annotations

import math
from enum import Enum

from .types import CacheMetadata


class Freshness(str, Enum):
    """Result of classifying an entry against the current time."""

    FRESH = "fresh"
    STALE = "stale"
    EXPIRED = "expired"


def classify(metadata: CacheMetadata, now: float) -> Freshness:
    """
    Classify `metadata` at time `now` (milliseconds).

    - no ttl: always fresh
    - `now <= created_time + ttl`: fresh
    - within the stale window after that: stale
    - otherwise expired

    An infinite stale window (`swr=None`) never hard-expires, not even for
    `now = math.inf`.
    """
    if metadata.ttl is None:
        return Freshness.FRESH

    valid_until = metadata.created_time + metadata.ttl
    if now <= valid_until:
        return Freshness.FRESH

    if metadata.swr is None:
        return Freshness.STALE

    if now <= valid_until + metadata.swr:
        return Freshness.STALE
    return Freshness.EXPIRED


def total_ttl(metadata: CacheMetadata | None) -> float:
    """Return ttl plus stale window, `math.inf` when either is unbounded."""
    if metadata is None:
        return 0
    if metadata.ttl is None or metadata.swr is None:
        return math.inf
    return metadata.ttl + metadata.swr

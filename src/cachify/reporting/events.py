"""
MIT License
Copyright (c) 2026 arpan404
See LICENSE file for full license text.

Lifecycle event names and the event record emitted to reporters.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any

GET_CACHED_VALUE_START = "get_cached_value.start"
GET_CACHED_VALUE_READ = "get_cached_value.read"
GET_CACHED_VALUE_EMPTY = "get_cached_value.empty"
GET_CACHED_VALUE_OUTDATED = "get_cached_value.outdated"
GET_CACHED_VALUE_SUCCESS = "get_cached_value.success"
GET_CACHED_VALUE_ERROR = "get_cached_value.error"
CHECK_CACHED_VALUE_ERROR = "check_cached_value.error"

GET_FRESH_VALUE_START = "get_fresh_value.start"
GET_FRESH_VALUE_HOOK_PENDING = "get_fresh_value.hook_pending"
GET_FRESH_VALUE_SUCCESS = "get_fresh_value.success"
GET_FRESH_VALUE_ERROR = "get_fresh_value.error"
GET_FRESH_VALUE_CACHE_FALLBACK = "get_fresh_value.cache_fallback"
CHECK_FRESH_VALUE_ERROR = "check_fresh_value.error"
WRITE_FRESH_VALUE_SUCCESS = "write_fresh_value.success"
WRITE_FRESH_VALUE_ERROR = "write_fresh_value.error"

REFRESH_VALUE_START = "refresh_value.start"
REFRESH_VALUE_SUCCESS = "refresh_value.success"
REFRESH_VALUE_ERROR = "refresh_value.error"

MIGRATE_CACHED_VALUE_SUCCESS = "migrate_cached_value.success"
MIGRATE_CACHED_VALUE_SKIPPED = "migrate_cached_value.skipped"
MIGRATE_CACHED_VALUE_ERROR = "migrate_cached_value.error"

DONE = "done"

BATCH_SUBMIT_START = "batch.submit.start"
BATCH_SUBMIT_SUCCESS = "batch.submit.success"
BATCH_SUBMIT_ERROR = "batch.submit.error"


@dataclass(frozen=True, slots=True)
class CacheEvent:
    """Point-in-time lifecycle event for one cache key."""

    name: str
    key: str
    timestamp_ms: int
    attributes: dict[str, Any] = field(default_factory=dict)

"""
MIT License
Copyright (c) 2026 arpan404
See LICENSE file for full license text.

Cache-aside wrapper with stale-while-revalidate, request deduplication and batching.
"""

from .background import active_background_count, drain_background_tasks
from .batch import Batch, BatchedProducer, BatchValueContext, create_batch
from .cachified import cachified, configure
from .context import CachifiedOptions, CallContext, create_context
from .errors import (
    BatchError,
    CacheEntryError,
    CachifyError,
    ReporterBackendError,
    ValueCheckError,
)
from .freshness import Freshness, classify, total_ttl
from .pending import PendingEntry, PendingRegistry, pending_registry_for
from .reader import CACHE_EMPTY, assert_cache_entry
from .reporting import (
    CacheEvent,
    CreateReporter,
    InMemoryReporter,
    Reporter,
    create_reporter,
    format_cache_time,
    list_reporter_backends,
    merge_reporters,
    null_reporter,
    register_reporter_backend,
    verbose_reporter,
)
from .revalidation import soft_purge
from .settings import CachifySettings, configure_from_env
from .types import (
    CacheEntry,
    CacheMetadata,
    CacheStore,
    ProducerContext,
    now_ms,
    to_metadata_duration,
)
from .validation import Accept, Migrate, Reject, migrate, pydantic_check

__all__ = [
    "cachified",
    "configure",
    "configure_from_env",
    "CachifySettings",
    "CachifiedOptions",
    "CallContext",
    "create_context",
    "CacheEntry",
    "CacheMetadata",
    "CacheStore",
    "ProducerContext",
    "now_ms",
    "to_metadata_duration",
    "Freshness",
    "classify",
    "total_ttl",
    "Accept",
    "Migrate",
    "Reject",
    "migrate",
    "pydantic_check",
    "CACHE_EMPTY",
    "assert_cache_entry",
    "PendingEntry",
    "PendingRegistry",
    "pending_registry_for",
    "Batch",
    "BatchedProducer",
    "BatchValueContext",
    "create_batch",
    "soft_purge",
    "active_background_count",
    "drain_background_tasks",
    "CacheEvent",
    "CreateReporter",
    "Reporter",
    "InMemoryReporter",
    "null_reporter",
    "verbose_reporter",
    "merge_reporters",
    "format_cache_time",
    "register_reporter_backend",
    "create_reporter",
    "list_reporter_backends",
    "CachifyError",
    "CacheEntryError",
    "ValueCheckError",
    "BatchError",
    "ReporterBackendError",
]

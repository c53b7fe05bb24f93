"""
MIT License
Copyright (c) 2026 arpan404
See LICENSE file for full license text.

Reporting exports.
"""

from .events import CacheEvent
from .registry import (
    create_reporter,
    list_reporter_backends,
    register_reporter_backend,
)
from .reporters import (
    CreateReporter,
    InMemoryReporter,
    Reporter,
    format_cache_time,
    merge_reporters,
    null_reporter,
    verbose_reporter,
)

__all__ = [
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
]

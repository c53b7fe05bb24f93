"""
MIT License
Copyright (c) 2026 arpan404
See LICENSE file for full license text.

Error types raised by the caching core.
"""

from __future__ import annotations


class CachifyError(RuntimeError):
    """Base class for cachify errors."""


class CacheEntryError(CachifyError):
    """Raised when a stored entry does not have the cache entry shape."""


class ValueCheckError(CachifyError):
    """Raised when a freshly produced value is rejected by the value check."""

    def __init__(self, key: str, reason: object) -> None:
        super().__init__(f"check failed for fresh value of {key}")
        self.key = key
        self.reason = reason


class BatchError(CachifyError):
    """Raised on invalid batch usage or malformed bulk results."""


class ReporterBackendError(CachifyError):
    """Raised when reporter backend registration/resolution fails."""

"""
MIT License
Copyright (c) 2026 arpan404
See LICENSE file for full license text.

Process-wide cache defaults and explicit environment loading.
"""

from __future__ import annotations

import math
import os
from collections.abc import Awaitable, Callable
from dataclasses import dataclass
from typing import Any

from .cachified import configure
from .reporting.registry import create_reporter


def _parse_fallback(raw: str) -> bool | float:
    lowered = raw.strip().lower()
    if lowered == "true":
        return True
    if lowered == "false":
        return False
    return float(lowered)


@dataclass(frozen=True, slots=True)
class CachifySettings:
    """Default options shared by calls made through `configure_from_env()`."""

    ttl: float = math.inf
    stale_while_revalidate: float = 0
    fallback_to_cache: bool | float = True
    stale_refresh_timeout: float = 0
    reporter: str = "null"

    @staticmethod
    def from_env() -> "CachifySettings":
        """Load settings from environment variables."""
        return CachifySettings(
            ttl=float(os.getenv("CACHIFY_TTL_MS", "inf")),
            stale_while_revalidate=float(os.getenv("CACHIFY_SWR_MS", "0")),
            fallback_to_cache=_parse_fallback(os.getenv("CACHIFY_FALLBACK_TO_CACHE", "true")),
            stale_refresh_timeout=float(os.getenv("CACHIFY_STALE_REFRESH_TIMEOUT_MS", "0")),
            reporter=os.getenv("CACHIFY_REPORTER", "null"),
        )

    def as_defaults(self) -> dict[str, Any]:
        """Adapt settings into `configure` defaults."""
        return {
            "ttl": self.ttl,
            "stale_while_revalidate": self.stale_while_revalidate,
            "fallback_to_cache": self.fallback_to_cache,
            "stale_refresh_timeout": self.stale_refresh_timeout,
        }


def configure_from_env(
    settings: CachifySettings | None = None,
) -> Callable[..., Awaitable[Any]]:
    """Build a configured `cachified` from settings (environment by default)."""
    resolved = settings or CachifySettings.from_env()
    return configure(resolved.as_defaults(), create_reporter(resolved.reporter))

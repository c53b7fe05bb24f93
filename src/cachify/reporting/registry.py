"""
MIT License
Copyright (c) 2026 arpan404
See LICENSE file for full license text.

Registry for pluggable reporter backends.
"""

from __future__ import annotations

from threading import Lock

from ..errors import ReporterBackendError
from .reporters import CreateReporter, null_reporter, verbose_reporter

_BACKENDS: dict[str, CreateReporter] = {}
_LOCK = Lock()


def register_reporter_backend(
    backend_id: str,
    reporter: CreateReporter,
    *,
    overwrite: bool = False,
) -> None:
    """Register one reporter factory by a stable backend id."""
    key = str(backend_id).strip().lower()
    if not key:
        raise ReporterBackendError("Reporter backend id must be non-empty")
    with _LOCK:
        if key in _BACKENDS and not overwrite:
            raise ReporterBackendError(f"Reporter backend already registered: {key}")
        _BACKENDS[key] = reporter


def create_reporter(backend: str | CreateReporter | None = None) -> CreateReporter:
    """
    Resolve a reporter factory from backend id or passthrough instance.

    Args:
        backend: Backend id (`null`, `verbose`) or reporter factory.

    Returns:
        Reporter factory usable as the `reporter` argument of `cachified`.
    """
    if backend is None:
        backend = "null"
    if not isinstance(backend, str):
        return backend

    key = backend.strip().lower()
    with _LOCK:
        resolved = _BACKENDS.get(key)
    if resolved is None:
        raise ReporterBackendError(f"Unknown reporter backend '{backend}'")
    return resolved


def list_reporter_backends() -> list[str]:
    """Return sorted list of registered reporter backend ids."""
    with _LOCK:
        return sorted(_BACKENDS.keys())


register_reporter_backend("null", null_reporter)
register_reporter_backend("verbose", verbose_reporter())

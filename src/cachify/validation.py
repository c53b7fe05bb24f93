"""
MIT License
Copyright (c) 2026 arpan404
See LICENSE file for full license text.

Value checks: tagged check results, validator adaptation, pydantic schemas.
"""

from __future__ import annotations

from collections.abc import Callable
from dataclasses import dataclass
from typing import Any, TypeAlias

from pydantic import BaseModel, TypeAdapter

from .types import resolve


@dataclass(frozen=True, slots=True)
class Accept:
    """Candidate value is valid as-is."""

    value: Any


@dataclass(frozen=True, slots=True)
class Migrate:
    """Candidate is valid once replaced by `value`."""

    value: Any
    update_cache: bool = True


@dataclass(frozen=True, slots=True)
class Reject:
    """Candidate is invalid; `reason` is a message or the raised exception."""

    reason: Any = "unknown"


CheckResult: TypeAlias = Accept | Migrate | Reject
Validator: TypeAlias = Callable[[Any, Callable[..., Migrate]], Any]


def migrate(value: Any, update_cache: bool = True) -> Migrate:
    """
    Callback handed to validators to replace the checked value.

    With `update_cache=True` a migrated cached value is also written back to
    the store in the background.
    """
    return Migrate(value=value, update_cache=update_cache)


def pydantic_check(schema: Any) -> Validator:
    """
    Adapt a pydantic model, `TypeAdapter` or annotated type into a validator.

    The parsed output is served, the raw input stays in the store.
    """
    adapter = schema if isinstance(schema, TypeAdapter) else TypeAdapter(schema)

    def check(value: Any, migrate_value: Callable[..., Migrate]) -> Migrate:
        return migrate_value(adapter.validate_python(value), False)

    return check


def as_validator(check_value: Any) -> Validator | None:
    """
    Adapt a `check_value` option into a validator callable, once per call.

    Raises:
        TypeError: When the option is neither callable nor a pydantic schema.
    """
    if check_value is None:
        return None
    if isinstance(check_value, TypeAdapter):
        return pydantic_check(check_value)
    if isinstance(check_value, type) and issubclass(check_value, BaseModel):
        return pydantic_check(check_value)
    if callable(check_value):
        return check_value
    raise TypeError(f"Unsupported check_value: {check_value!r}")


def _normalize(candidate: Any, outcome: Any) -> CheckResult:
    if outcome is True or outcome is None:
        return Accept(candidate)
    if isinstance(outcome, (Accept, Migrate, Reject)):
        return outcome
    if isinstance(outcome, str):
        return Reject(outcome)
    return Reject("unknown")


async def check_value(validator: Validator | None, candidate: Any) -> CheckResult:
    """Run an adapted validator against `candidate`; raised errors reject it."""
    if validator is None:
        return Accept(candidate)
    try:
        outcome = await resolve(validator(candidate, migrate))
    except Exception as error:  # noqa: BLE001
        return Reject(error)
    return _normalize(candidate, outcome)


def reason_text(reason: Any) -> str:
    """Render a rejection reason for reports."""
    if isinstance(reason, BaseException):
        return str(reason) or type(reason).__name__
    return str(reason)

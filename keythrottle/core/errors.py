"""Application-level exception types.

This module defines the errors raised by the throttle and its storage layer,
enabling consistent error handling, logging, and API responses.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Any, TypedDict


class ErrorDetails(TypedDict, total=False):
    """Structured error context for observability and clients.

    Fields are optional so each error only carries what it knows.
    """

    code: str
    message: str
    hint: str
    option: str
    key_hash: str
    table: str
    limited: bool
    cause: str
    context: dict[str, Any]


@dataclass
class AppError(Exception):
    """Base error for application/domain failures.

    Attributes:
        code: Stable, machine-readable error code.
        message: Human-readable error message.
        details: Optional structured details for debugging/observability.
    """

    code: str
    message: str
    details: ErrorDetails | None = None

    def __post_init__(self) -> None:
        # Populate Exception args so str(error) is useful in logs/tracebacks.
        super().__init__(self.message)


class ConfigurationError(AppError):
    """Raised at construction time when throttle options are unusable.

    Covers a missing or non-positive rate, invalid burst/window/max_keys,
    malformed overrides and token tables matching neither storage shape.
    """


class ThrottleError(AppError):
    """Base class for failures while checking a key against its bucket."""


class StorageReadError(ThrottleError):
    """Reading bucket state failed; no allow/deny decision was made."""


class StorageWriteError(ThrottleError):
    """Persisting bucket state failed after the decision was computed."""

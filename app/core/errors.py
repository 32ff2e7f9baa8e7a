"""Application-level exception types.

This module defines domain errors used across routes and adapters, enabling
consistent error handling, logging, and API responses. Absence of a queued
message is never an error; lookups return ``None`` instead.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import TypedDict


class ErrorDetails(TypedDict, total=False):
    """Structured error context for observability and clients."""

    hint: str
    field: str
    controller_id: str
    max_entries: int


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


class ValidationAppError(AppError):
    """Raised when request input fails validation."""


class AuthenticationAppError(AppError):
    """Raised when authentication/authorization fails."""


class QueueFullError(AppError):
    """Raised when a controller's pending message queue is at capacity."""

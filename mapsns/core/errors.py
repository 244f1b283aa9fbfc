"""Application-level exception types.

This module defines domain errors used across services/adapters, enabling
consistent error handling, logging, and API responses.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Any, NotRequired, TypedDict


class ErrorDetails(TypedDict, total=False):
    """Structured error context for observability and clients."""

    code: str
    message: str
    hint: str
    operation: str
    backend: str
    retry_after: int
    route_class: str
    trace_id: str
    context: NotRequired[dict[str, Any]]


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
    """Raised when input/config validation fails."""


class AuthenticationAppError(AppError):
    """Raised when a credential is missing, revoked or malformed."""


class StoreUnavailableError(AppError):
    """Raised when the backing token store cannot be reached.

    Callers must not read this as "credential valid" or "credential invalid";
    the request has to be rejected.
    """


@dataclass
class RateLimitExceededError(AppError):
    """A request exceeded its rate limit.

    The request filter answers throttled requests itself; this error maps to
    the same 429 response (with Retry-After) when raised through the stack.
    """

    retry_after_seconds: int = 1


TOO_MANY_REQUESTS_CODE = "E429"
TOO_MANY_REQUESTS_MESSAGE = "Too many requests. Please try again later."
SERVICE_UNAVAILABLE_CODE = "E503"

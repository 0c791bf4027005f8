"""Application-level exception types.

This module defines domain errors used across services/adapters, enabling
consistent error handling, logging, and API responses.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Any, NotRequired, TypedDict


class ErrorDetails(TypedDict, total=False):
    """Structured error context for observability and clients.

    Fields are optional to keep backward compatibility while encouraging
    consistent shapes across the codebase.
    """

    code: str
    message: str
    hint: str
    http_status: int
    retry_after: int
    category: str
    backend: str
    key: str
    request_id: str
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


class RateLimitConfigError(ValidationAppError):
    """Raised when a rate limit configuration is malformed."""


class AuthenticationAppError(AppError):
    """Raised when the caller cannot be identified."""


class AuthorizationAppError(AppError):
    """Raised when an identified caller lacks the required role."""


class NotFoundAppError(AppError):
    """Raised when a requested resource does not exist."""


class RateLimitBackendError(AppError):
    """Raised when the counter store backend fails or times out."""


@dataclass
class RateLimitExceededError(AppError):
    """Raised when a caller exhausted its quota for the current window.

    Attributes:
        limit: Effective max requests per window for the caller.
        remaining: Remaining requests in the window (always 0 when raised).
        reset_time: Absolute epoch milliseconds when the window ends.
        retry_after: Seconds until the window ends.
    """

    limit: int = 0
    remaining: int = 0
    reset_time: int = 0
    retry_after: int = 0

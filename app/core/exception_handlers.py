"""Global exception handlers for consistent error responses.

This module provides FastAPI exception handlers that intercept all errors
(domain and unexpected) and return consistent JSON responses with proper
HTTP status codes and traceability.

Design:
- RateLimitExceededError → 429 with Retry-After and X-RateLimit-* headers
- Other AppError subclasses → status from ``STATUS_BY_ERROR``
- Unexpected Exception → generic 500 (safety net)
- All responses include request_id for distributed tracing
- Quota headers of an already admitted request are kept on error responses
"""

import logging

from fastapi import Request
from fastapi.responses import JSONResponse

from app.core.config import settings
from app.core.errors import (
    AppError,
    AuthenticationAppError,
    AuthorizationAppError,
    NotFoundAppError,
    RateLimitBackendError,
    RateLimitExceededError,
    ValidationAppError,
)
from app.core.logging import get_request_id
from app.core.rate_limit import decision_headers, rate_limit_headers

logger = logging.getLogger(__name__)

# Checked in order; first isinstance match wins
STATUS_BY_ERROR: tuple[tuple[type[AppError], int], ...] = (
    (ValidationAppError, 400),
    (AuthenticationAppError, 401),
    (AuthorizationAppError, 403),
    (NotFoundAppError, 404),
    (RateLimitBackendError, 503),
)


def _error_body(exc: AppError) -> dict:
    error_content = {
        "code": exc.code,
        "message": exc.message,
        "request_id": get_request_id(),
    }
    if exc.details:
        error_content["details"] = exc.details
    return error_content


async def app_error_handler(request: Request, exc: AppError) -> JSONResponse:
    """Handle domain application errors with consistent JSON format.

    All responses include:
    - error.code: Machine-readable error code
    - error.message: Human-readable message
    - error.request_id: For distributed tracing
    - error.details: Optional structured context

    Args:
        request: FastAPI request object.
        exc: AppError instance (or subclass).

    Returns:
        JSONResponse with appropriate status code and error details.
    """
    status_code = next(
        (status for error_type, status in STATUS_BY_ERROR if isinstance(exc, error_type)),
        500,
    )

    logger.warning(
        "app_error_handled",
        extra={
            "error_code": exc.code,
            "error_message": exc.message,
            "status_code": status_code,
            "has_details": bool(exc.details),
            "request_path": request.url.path,
        },
    )

    headers = decision_headers(request)
    if status_code == 401:
        headers["WWW-Authenticate"] = "ApiKey"
    return JSONResponse(
        status_code=status_code,
        content={"error": _error_body(exc)},
        headers=headers or None,
    )


async def rate_limit_exceeded_handler(request: Request, exc: RateLimitExceededError) -> JSONResponse:
    """Answer an over-quota request with HTTP 429 and retry guidance.

    The body carries the usual error envelope plus a top-level
    ``retryAfter`` in seconds.
    """
    retry_after = exc.retry_after

    headers: dict[str, str] = {}
    if settings.rate_limit.include_headers:
        headers["Retry-After"] = str(retry_after)
        headers.update(rate_limit_headers(exc.limit, exc.remaining, exc.reset_time))

    return JSONResponse(
        status_code=429,
        content={"error": _error_body(exc), "retryAfter": retry_after},
        headers=headers or None,
    )


async def general_exception_handler(request: Request, exc: Exception) -> JSONResponse:
    """Fallback handler for unexpected errors (safety net).

    Logs detailed information for debugging while returning generic message.
    Prevents information leakage (no stack traces to client).
    """
    logger.error(
        "unhandled_exception",
        extra={
            "error_type": type(exc).__name__,
            "error_msg": str(exc),
            "request_path": request.url.path,
            "request_method": request.method,
        },
    )

    return JSONResponse(
        status_code=500,
        content={
            "error": {
                "code": "internal_server_error",
                "message": "An unexpected error occurred. Please try again later.",
                "request_id": get_request_id(),
            }
        },
        headers=decision_headers(request) or None,
    )


def setup_exception_handlers(app) -> None:
    """Register all exception handlers with FastAPI app.

    Handlers are resolved by exception class hierarchy, so the 429 handler
    takes precedence over the generic AppError one for rate limit rejections.
    """
    app.exception_handler(RateLimitExceededError)(rate_limit_exceeded_handler)
    app.exception_handler(AppError)(app_error_handler)
    app.exception_handler(Exception)(general_exception_handler)

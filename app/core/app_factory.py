"""Application factory for FastAPI app.

Centralizes app construction (metadata, middleware, handlers, routers) and
acts as the composition root: the rate limiter is created here, stored on
``app.state.rate_limiter`` and its background sweep is tied to the app
lifespan.
"""

from __future__ import annotations

import logging
from contextlib import asynccontextmanager
from typing import AsyncIterator

from fastapi import FastAPI

from app.adapters.rate_limit.base import AbstractRateLimiter
from app.adapters.rate_limit.factory import create_rate_limiter
from app.api.routes import account_router, admin_router, health_router
from app.core.auth import parse_api_keys
from app.core.config import settings
from app.core.errors import ValidationAppError
from app.core.exception_handlers import setup_exception_handlers
from app.core.logging import configure_logging
from app.core.middleware import request_id_middleware
from app.core.openapi import apply_openapi_customizations

logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI) -> AsyncIterator[None]:
    limiter: AbstractRateLimiter = app.state.rate_limiter
    limiter.start()
    logger.info("rate_limit.store_started", extra={"backend": limiter.backend_name})
    try:
        yield
    finally:
        await limiter.stop()
        logger.info("rate_limit.store_stopped", extra={"backend": limiter.backend_name})


def _validate_api_keys() -> None:
    """Fail at startup rather than per request on malformed key entries."""
    try:
        parse_api_keys(settings.app.api_keys)
    except ValueError as exc:
        raise ValidationAppError(
            code="invalid_api_keys",
            message="APP_API_KEYS contains an entry with an unknown role",
            details={"hint": "Use key:user_id:role with role in admin, manager, user"},
        ) from exc


def create_app(rate_limiter: AbstractRateLimiter | None = None) -> FastAPI:
    """Create and configure the FastAPI application instance.

    Args:
        rate_limiter: Counter store to use; built from settings when omitted.
            Tests pass an isolated store per app.

    Returns:
        Configured FastAPI app with middleware, handlers, routers and docs.
    """
    # Logging first so subsequent init logs are formatted as desired
    configure_logging(settings.log)
    _validate_api_keys()

    app = FastAPI(
        title="File Tracker Throttling API",
        description=(
            "Request throttling for the file-tracking application: fixed-window "
            "quotas per caller and call category, role-based quota tiers, and "
            "X-RateLimit-* / Retry-After headers on every throttled route."
        ),
        version=settings.app.version,
        lifespan=lifespan,
        license_info={
            "name": "MIT License",
            "url": "https://opensource.org/licenses/MIT",
        },
    )

    app.state.rate_limiter = rate_limiter or create_rate_limiter(settings.rate_limit)

    # Middleware
    app.middleware("http")(request_id_middleware)

    # Exception handlers
    setup_exception_handlers(app)

    # Routers
    app.include_router(account_router, prefix="/v1")
    app.include_router(admin_router, prefix="/v1")
    app.include_router(health_router)

    apply_openapi_customizations(app)

    return app

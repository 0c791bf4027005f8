from __future__ import annotations

from datetime import datetime, timezone

from fastapi import APIRouter, Request
from fastapi.responses import JSONResponse

from app.core.config import settings
from app.core.rate_limit import get_rate_limiter

router = APIRouter(tags=["Health"])


@router.get("/health")
async def health_check(request: Request) -> JSONResponse:
    """Health check endpoint.

    Reports service metadata and whether the rate limit store is reachable.
    Used by load balancers and monitoring systems; never throttled.

    Returns:
        JSONResponse: 200 with ``status: healthy``, or 503 with
            ``status: unhealthy`` when the store does not answer.
    """

    limiter = get_rate_limiter(request)
    reachable = await limiter.ping()

    body = {
        "status": "healthy" if reachable else "unhealthy",
        "timestamp": datetime.now(timezone.utc).isoformat(),
        "version": settings.app.version,
        "environment": settings.app_env,
        "rate_limit": {
            "enabled": settings.rate_limit.enabled,
            "backend": limiter.backend_name,
            "reachable": reachable,
        },
    }
    return JSONResponse(body, status_code=200 if reachable else 503)

from __future__ import annotations

import logging

from fastapi import APIRouter, Depends, Request, Response, status

from app.core.auth import require_roles, resolve_identity
from app.core.config import settings
from app.core.errors import NotFoundAppError
from app.core.rate_limit import get_rate_limiter, rate_limit
from app.core.rate_limit_policies import RATE_LIMITS, ROLE_TIERS, get_rate_limit_config
from app.schemas.identity import Role
from app.schemas.rate_limit import CategoryLimits, RateLimitOverview

logger = logging.getLogger(__name__)

router = APIRouter(
    prefix="/admin",
    tags=["Admin"],
    dependencies=[
        Depends(resolve_identity),
        Depends(require_roles(Role.ADMIN)),
        Depends(rate_limit("admin", role_based=True)),
    ],
)


@router.get("/rate-limits", response_model=RateLimitOverview)
async def get_rate_limits(request: Request) -> RateLimitOverview:
    """List every limit category with per-role effective quotas.

    Also returns the counter store statistics (entry counts, allowed/denied
    totals); individual keys are never exposed.
    """

    categories = [
        CategoryLimits(
            category=category.value,
            window_ms=config.window_ms,
            max_requests=config.max_requests,
            effective_max_by_role={
                role.value: get_rate_limit_config(category, role).max_requests
                for role in Role
                if role in ROLE_TIERS
            },
        )
        for category, config in RATE_LIMITS.items()
    ]

    return RateLimitOverview(
        enabled=settings.rate_limit.enabled,
        role_adjustment=settings.rate_limit.role_adjustment,
        categories=categories,
        store=await get_rate_limiter(request).stats(),
    )


@router.delete(
    "/rate-limits/{key:path}",
    status_code=status.HTTP_204_NO_CONTENT,
    response_class=Response,
)
async def reset_rate_limit(key: str, request: Request) -> None:
    """Forget the counter stored under ``key`` (e.g. ``upload:user:42``).

    Raises:
        NotFoundAppError: 404 if no counter is tracked for the key.
    """

    removed = await get_rate_limiter(request).reset(key)
    if not removed:
        raise NotFoundAppError(
            code="rate_limit_key_not_found",
            message="No rate limit counter is tracked for this key",
        )

    logger.info("rate_limit.reset", extra={"reset_by": request.state.identity.id})

"""Rate limiting dependency for FastAPI routes.

This module wires the rate limiting adapter into the HTTP layer.

Design goals:
- Minimal coupling: API routes depend on a dependency object only.
- Swap-friendly: the counter store lives behind ``AbstractRateLimiter`` and is
  owned by the app (``app.state.rate_limiter``), not by this module.
- Fail open: if the store itself errors, the request proceeds and the
  failure is logged. ``check_rate_limit`` is the only place that does this.

Usage:
    @router.post(
        "/files",
        dependencies=[Depends(resolve_identity), Depends(rate_limit("upload"))],
    )
"""

from __future__ import annotations

import hashlib
import logging
import math
import time
from dataclasses import dataclass
from typing import Callable

from fastapi import Request, Response

from app.adapters.rate_limit.base import AbstractRateLimiter, RateLimitConfig
from app.core.config import settings
from app.core.errors import RateLimitExceededError
from app.core.rate_limit_keys import (
    default_key_generator,
    get_request_identity,
    role_based_key_generator,
)
from app.core.rate_limit_policies import (
    RateLimitCategory,
    get_rate_limit_config,
    resolve_category,
)

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class RateLimitDecision:
    """Outcome of a throttling check as seen by the HTTP layer.

    Attributes:
        allowed: Whether the request may proceed.
        limit: Effective max requests per window (after role adjustment).
        remaining: Remaining requests in the window.
        reset_time: Absolute epoch milliseconds when the window ends.
        failed_open: True when the store failed and the request was let through.
    """

    allowed: bool
    limit: int
    remaining: int
    reset_time: int
    failed_open: bool = False


def get_rate_limiter(request: Request) -> AbstractRateLimiter:
    """Return the limiter owned by the application serving ``request``."""

    return request.app.state.rate_limiter


def _hash_limiter_key(key: str) -> str:
    """Hash the rate limit key for logging without exposing identities."""
    return hashlib.sha256(key.encode()).hexdigest()[:16]


def retry_after_seconds(reset_time: int, now_ms: int) -> int:
    return max(0, math.ceil((reset_time - now_ms) / 1000))


def rate_limit_headers(limit: int, remaining: int, reset_time: int) -> dict[str, str]:
    """Build the X-RateLimit-* headers; reset is in epoch seconds."""

    return {
        "X-RateLimit-Limit": str(limit),
        "X-RateLimit-Remaining": str(remaining),
        "X-RateLimit-Reset": str(math.ceil(reset_time / 1000)),
    }


def decision_headers(request: Request) -> dict[str, str]:
    """Quota headers for the decision recorded on ``request.state``, if any.

    Lets error handlers and middleware carry the headers on responses that
    bypass the dependency's ``Response``.
    """

    decision = getattr(request.state, "rate_limit", None)
    if not isinstance(decision, RateLimitDecision) or not settings.rate_limit.include_headers:
        return {}
    return rate_limit_headers(decision.limit, decision.remaining, decision.reset_time)


async def check_rate_limit(
    limiter: AbstractRateLimiter,
    key: str,
    config: RateLimitConfig,
    *,
    clock: Callable[[], float] = time.time,
) -> RateLimitDecision:
    """Ask the store for a decision, failing open on store errors.

    Args:
        limiter: Counter store.
        key: Throttling key.
        config: Effective config for this call.
        clock: Time source used for the fail-open window.

    Returns:
        RateLimitDecision; on store failure an allowed decision shaped like
        the first call of a fresh window, with ``failed_open=True``.
    """

    try:
        result = await limiter.is_allowed(key, config)
    except Exception as exc:
        logger.exception(
            "rate_limit.backend_error",
            extra={
                "backend": limiter.backend_name,
                "key_hash": _hash_limiter_key(key),
                "error_type": type(exc).__name__,
            },
        )
        return RateLimitDecision(
            allowed=True,
            limit=config.max_requests,
            remaining=config.max_requests - 1,
            reset_time=round(clock() * 1000) + config.window_ms,
            failed_open=True,
        )

    return RateLimitDecision(
        allowed=result.allowed,
        limit=config.max_requests,
        remaining=result.remaining,
        reset_time=result.reset_time,
    )


class RateLimitDependency:
    """FastAPI dependency enforcing one limit category.

    When enabled, counts the request against the caller's key. Over quota it
    raises ``RateLimitExceededError`` (answered as HTTP 429) before the route
    handler runs; otherwise it annotates the route response with
    X-RateLimit-* headers.

    Args:
        category: Limit category of the protected route.
        role_based: Key by role and account, and apply role quota tiers.
        clock: Time source returning UNIX time in seconds.
    """

    def __init__(
        self,
        category: RateLimitCategory | str,
        *,
        role_based: bool = False,
        clock: Callable[[], float] = time.time,
    ) -> None:
        self.category = resolve_category(category)
        self.role_based = role_based
        self._clock = clock

    def __repr__(self) -> str:  # pragma: no cover - representation only
        return f"RateLimitDependency(category={self.category.value!r}, role_based={self.role_based})"

    def resolve_config(self, request: Request) -> RateLimitConfig:
        identity = get_request_identity(request)
        role = None
        if self.role_based and settings.rate_limit.role_adjustment and identity is not None:
            role = identity.role
        return get_rate_limit_config(self.category, role)

    def build_key(self, request: Request) -> str:
        generator = role_based_key_generator if self.role_based else default_key_generator
        key = generator(request)
        if settings.rate_limit.scope_by_category:
            return f"{self.category.value}:{key}"
        return key

    async def __call__(self, request: Request, response: Response) -> RateLimitDecision | None:
        if not settings.rate_limit.enabled:
            return None

        limiter = get_rate_limiter(request)
        key = self.build_key(request)
        config = self.resolve_config(request)
        key_hash = _hash_limiter_key(key)

        decision = await check_rate_limit(limiter, key, config, clock=self._clock)
        request.state.rate_limit = decision

        if decision.allowed:
            logger.info(
                "rate_limit.allowed",
                extra={
                    "category": self.category.value,
                    "key_hash": key_hash,
                    "limit": decision.limit,
                    "remaining": decision.remaining,
                    "window_ms": config.window_ms,
                    "failed_open": decision.failed_open,
                },
            )
            if settings.rate_limit.include_headers:
                response.headers.update(
                    rate_limit_headers(decision.limit, decision.remaining, decision.reset_time)
                )
            return decision

        retry_after = retry_after_seconds(decision.reset_time, round(self._clock() * 1000))
        logger.warning(
            "rate_limit.exceeded",
            extra={
                "category": self.category.value,
                "key_hash": key_hash,
                "limit": decision.limit,
                "remaining": decision.remaining,
                "window_ms": config.window_ms,
                "retry_after_s": retry_after,
            },
        )
        raise RateLimitExceededError(
            code="rate_limit_exceeded",
            message="Rate limit exceeded",
            details={"category": self.category.value, "retry_after": retry_after},
            limit=decision.limit,
            remaining=decision.remaining,
            reset_time=decision.reset_time,
            retry_after=retry_after,
        )


def rate_limit(
    category: RateLimitCategory | str = RateLimitCategory.GENERAL,
    *,
    role_based: bool = False,
) -> RateLimitDependency:
    """Shorthand for ``RateLimitDependency(category, role_based=...)``."""

    return RateLimitDependency(category, role_based=role_based)

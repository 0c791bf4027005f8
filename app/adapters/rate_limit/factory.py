"""Factory pattern for creating rate limiter backends."""

from __future__ import annotations

from app.adapters.rate_limit.base import AbstractRateLimiter
from app.adapters.rate_limit.in_memory import InMemoryFixedWindowRateLimiter
from app.adapters.rate_limit.redis_store import RedisFixedWindowRateLimiter
from app.core.config import RateLimitSettings, settings
from app.core.errors import RateLimitConfigError


def create_rate_limiter(rate_limit_settings: RateLimitSettings | None = None) -> AbstractRateLimiter:
    """Instantiate the counter store selected by configuration.

    Args:
        rate_limit_settings: Optional settings; defaults to global settings.

    Returns:
        AbstractRateLimiter: A fresh, unshared limiter instance.

    Raises:
        RateLimitConfigError: If the backend name is unknown.
    """
    cfg = rate_limit_settings or settings.rate_limit
    backend = cfg.backend.lower()

    if backend == "memory":
        return InMemoryFixedWindowRateLimiter(
            sweep_interval_seconds=cfg.sweep_interval_seconds,
        )

    if backend == "redis":
        return RedisFixedWindowRateLimiter.from_url(
            cfg.redis_url,
            timeout_ms=cfg.redis_timeout_ms,
            prefix=cfg.redis_prefix,
        )

    raise RateLimitConfigError(
        code="rate_limit_unknown_backend",
        message=(
            f"Unknown rate limit backend: '{backend}'. Supported backends: memory, redis"
        ),
        details={"backend": backend},
    )

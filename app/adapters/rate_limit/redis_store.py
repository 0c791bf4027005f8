"""Redis-backed fixed-window rate limiter.

Shares counters across workers and hosts. Each decision is a single
MULTI/EXEC round trip:

    INCR    <prefix><key>
    PEXPIRE <prefix><key> <window_ms> NX
    PTTL    <prefix><key>

The first increment of a window sets the expiry, later increments leave it
untouched, so the window end is fixed at creation just like the in-memory
store. Redis expires counters itself; ``sweep`` has nothing to do.
"""

from __future__ import annotations

import asyncio
import logging
import time
from typing import Any, Callable

import redis.asyncio as redis
from redis.exceptions import RedisError

from app.adapters.rate_limit.base import AbstractRateLimiter, RateLimitConfig, RateLimitResult
from app.core.errors import RateLimitBackendError

logger = logging.getLogger(__name__)


class RedisFixedWindowRateLimiter(AbstractRateLimiter):
    """Counter store keeping fixed windows in Redis with a per-call timeout."""

    backend_name = "redis"

    def __init__(
        self,
        client: redis.Redis,
        *,
        timeout_ms: int = 250,
        prefix: str = "ratelimit:",
        clock: Callable[[], float] = time.time,
    ) -> None:
        if timeout_ms < 1:
            raise ValueError("timeout_ms must be >= 1")

        self._client = client
        self._timeout = timeout_ms / 1000
        self._prefix = prefix
        self._clock = clock

    @classmethod
    def from_url(cls, url: str, **kwargs: Any) -> "RedisFixedWindowRateLimiter":
        return cls(redis.from_url(url), **kwargs)

    def _redis_key(self, key: str) -> str:
        return f"{self._prefix}{key}"

    async def _run(self, operation: str, coro: Any) -> Any:
        """Await a Redis call under the timeout, mapping failures.

        Raises:
            RateLimitBackendError: On timeout or any Redis error.
        """
        try:
            return await asyncio.wait_for(coro, timeout=self._timeout)
        except asyncio.TimeoutError as exc:
            raise RateLimitBackendError(
                code="rate_limit_backend_timeout",
                message=f"Redis {operation} timed out",
                details={"backend": self.backend_name},
            ) from exc
        except RedisError as exc:
            raise RateLimitBackendError(
                code="rate_limit_backend_error",
                message=f"Redis {operation} failed: {type(exc).__name__}",
                details={"backend": self.backend_name},
            ) from exc

    async def _incr_window(self, redis_key: str, window_ms: int) -> list[Any]:
        async with self._client.pipeline(transaction=True) as pipe:
            pipe.incr(redis_key)
            pipe.pexpire(redis_key, window_ms, nx=True)
            pipe.pttl(redis_key)
            return await pipe.execute()

    async def is_allowed(self, key: str, config: RateLimitConfig) -> RateLimitResult:
        if not key:
            raise ValueError("key must be a non-empty string")

        now = round(self._clock() * 1000)
        count, _, ttl_ms = await self._run(
            "increment", self._incr_window(self._redis_key(key), config.window_ms)
        )
        count = int(count)
        ttl_ms = int(ttl_ms)
        # -1/-2 means the key lost its expiry between commands; treat as fresh
        if ttl_ms < 0:
            ttl_ms = config.window_ms

        return RateLimitResult(
            allowed=count <= config.max_requests,
            remaining=max(0, config.max_requests - count),
            reset_time=now + ttl_ms,
        )

    async def reset(self, key: str) -> bool:
        deleted = await self._run("delete", self._client.delete(self._redis_key(key)))
        return bool(deleted)

    async def ping(self) -> bool:
        try:
            return bool(await self._run("ping", self._client.ping()))
        except RateLimitBackendError as exc:
            logger.warning(
                "rate_limit.backend_unreachable",
                extra={"backend": self.backend_name, "error_code": exc.code},
            )
            return False

    async def stats(self) -> dict[str, Any]:
        return {
            "backend": self.backend_name,
            "prefix": self._prefix,
            "timeout_ms": int(self._timeout * 1000),
        }

    async def stop(self) -> None:
        await self._client.aclose()

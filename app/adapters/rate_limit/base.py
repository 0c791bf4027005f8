"""Rate limiter interfaces.

The HTTP layer depends on this abstraction (not the concrete implementation)
so the counter store can live in process memory or in Redis with the same
allow/deny contract.
"""

from __future__ import annotations

from abc import ABC, abstractmethod
from dataclasses import dataclass
from typing import Any

from app.core.errors import RateLimitConfigError


@dataclass(frozen=True)
class RateLimitConfig:
    """Quota for one limit category.

    Attributes:
        window_ms: Length of the fixed window in milliseconds.
        max_requests: Requests allowed per key within one window.

    Raises:
        RateLimitConfigError: If either value is not a positive integer.
    """

    window_ms: int
    max_requests: int

    def __post_init__(self) -> None:
        for name in ("window_ms", "max_requests"):
            value = getattr(self, name)
            if isinstance(value, bool) or not isinstance(value, int) or value < 1:
                raise RateLimitConfigError(
                    code="invalid_rate_limit_config",
                    message=f"{name} must be a positive integer",
                    details={"context": {name: value}},
                )


@dataclass(frozen=True)
class RateLimitResult:
    """Result of a rate limit check.

    Attributes:
        allowed: Whether the request is allowed to proceed.
        remaining: Remaining requests in the current window (0 when blocked).
        reset_time: Absolute epoch milliseconds when the current window ends.
    """

    allowed: bool
    remaining: int
    reset_time: int


class AbstractRateLimiter(ABC):
    """Interface for rate limiter counter stores."""

    backend_name: str = "abstract"

    @abstractmethod
    async def is_allowed(self, key: str, config: RateLimitConfig) -> RateLimitResult:
        """Count one request for ``key`` and decide whether it is allowed.

        Args:
            key: Throttling key (e.g., ``user:42`` or ``ip:203.0.113.5``).
            config: Window length and quota to apply.

        Returns:
            RateLimitResult describing the decision.
        """
        raise NotImplementedError

    @abstractmethod
    async def reset(self, key: str) -> bool:
        """Forget the counter for ``key``.

        Returns:
            True if a counter existed and was removed.
        """
        raise NotImplementedError

    async def sweep(self) -> int:
        """Remove expired counters; returns how many were removed."""
        return 0

    async def stats(self) -> dict[str, Any]:
        """Return lightweight counters without exposing keys."""
        return {"backend": self.backend_name}

    async def ping(self) -> bool:
        """Return whether the backing store is reachable."""
        return True

    def start(self) -> None:
        """Start background maintenance, if the backend needs any."""

    async def stop(self) -> None:
        """Stop background maintenance and release resources."""

"""In-memory fixed-window rate limiter.

Notes:
- Per-process only: running multiple workers multiplies the effective limit.
- Thread-safe: uses a lock around shared state.
- Windows start at a key's first request, not at wall-clock boundaries, so a
  burst straddling a window end can admit up to ``2 * max_requests``.
"""

from __future__ import annotations

import asyncio
import logging
import threading
import time
from dataclasses import dataclass
from typing import Any, Callable

from app.adapters.rate_limit.base import AbstractRateLimiter, RateLimitConfig, RateLimitResult

logger = logging.getLogger(__name__)

DEFAULT_SWEEP_INTERVAL_SECONDS = 5 * 60


@dataclass
class CounterEntry:
    count: int
    reset_time: int


class InMemoryFixedWindowRateLimiter(AbstractRateLimiter):
    """Counter store keeping one fixed window per key in process memory.

    Expired entries are replaced lazily by ``is_allowed`` and removed in bulk
    by ``sweep``, which ``start`` schedules on the running event loop.
    """

    backend_name = "memory"

    def __init__(
        self,
        *,
        sweep_interval_seconds: float = DEFAULT_SWEEP_INTERVAL_SECONDS,
        clock: Callable[[], float] = time.time,
    ) -> None:
        """Initialize the in-memory rate limiter.

        Args:
            sweep_interval_seconds: Delay between background sweeps.
            clock: Time source function returning UNIX time in seconds.

        Raises:
            ValueError: If sweep_interval_seconds is not positive.
        """
        if sweep_interval_seconds <= 0:
            raise ValueError("sweep_interval_seconds must be > 0")

        self._sweep_interval = sweep_interval_seconds
        self._clock = clock
        self._lock = threading.RLock()
        self._entries: dict[str, CounterEntry] = {}
        self._sweep_task: asyncio.Task[None] | None = None
        self._allowed = 0
        self._denied = 0
        self._swept = 0

    def __repr__(self) -> str:  # pragma: no cover - representation only
        return (
            f"InMemoryFixedWindowRateLimiter(entries={len(self._entries)}, "
            f"sweep_interval_seconds={self._sweep_interval})"
        )

    def _now_ms(self) -> int:
        return round(self._clock() * 1000)

    async def is_allowed(self, key: str, config: RateLimitConfig) -> RateLimitResult:
        """Count one request for ``key`` within its current window.

        Args:
            key: Throttling key.
            config: Window length and quota to apply.

        Returns:
            RateLimitResult with allowance decision and window metadata.

        Raises:
            ValueError: If key is empty.
        """
        if not key:
            raise ValueError("key must be a non-empty string")

        now = self._now_ms()

        with self._lock:
            entry = self._entries.get(key)

            if entry is None or entry.reset_time < now:
                entry = CounterEntry(count=1, reset_time=now + config.window_ms)
                self._entries[key] = entry
                self._allowed += 1
                return RateLimitResult(
                    allowed=True,
                    remaining=config.max_requests - 1,
                    reset_time=entry.reset_time,
                )

            entry.count += 1
            allowed = entry.count <= config.max_requests
            if allowed:
                self._allowed += 1
            else:
                self._denied += 1

            return RateLimitResult(
                allowed=allowed,
                remaining=max(0, config.max_requests - entry.count),
                reset_time=entry.reset_time,
            )

    async def reset(self, key: str) -> bool:
        with self._lock:
            return self._entries.pop(key, None) is not None

    async def sweep(self) -> int:
        """Remove every entry whose window already ended.

        Returns:
            Number of entries removed.
        """
        now = self._now_ms()
        with self._lock:
            expired = [k for k, entry in self._entries.items() if entry.reset_time < now]
            for key in expired:
                del self._entries[key]
            self._swept += len(expired)
            remaining = len(self._entries)

        if expired:
            logger.debug(
                "rate_limit.sweep",
                extra={"removed": len(expired), "entries": remaining},
            )
        return len(expired)

    async def stats(self) -> dict[str, Any]:
        with self._lock:
            return {
                "backend": self.backend_name,
                "entries": len(self._entries),
                "allowed": self._allowed,
                "denied": self._denied,
                "swept": self._swept,
                "sweep_interval_seconds": self._sweep_interval,
                "sweeper_running": self.sweeper_running,
            }

    @property
    def sweeper_running(self) -> bool:
        return self._sweep_task is not None and not self._sweep_task.done()

    def start(self) -> None:
        """Schedule the periodic sweep on the running event loop.

        Calling ``start`` while the sweeper is already running is a no-op.

        Raises:
            RuntimeError: If no event loop is running.
        """
        if self.sweeper_running:
            return
        self._sweep_task = asyncio.get_running_loop().create_task(
            self._sweep_loop(), name="rate-limit-sweep"
        )

    async def stop(self) -> None:
        """Cancel the periodic sweep and wait for it to finish."""
        task, self._sweep_task = self._sweep_task, None
        if task is None:
            return
        task.cancel()
        try:
            await task
        except asyncio.CancelledError:
            pass

    async def _sweep_loop(self) -> None:
        while True:
            await asyncio.sleep(self._sweep_interval)
            try:
                await self.sweep()
            except Exception:
                logger.exception("rate_limit.sweep_failed")

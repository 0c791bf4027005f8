"""Pytest configuration and fixtures shared across all test modules.

This file is automatically loaded by pytest before running any tests.
It sets TESTING so no .env file is loaded, and provides deterministic
environment defaults before anything imports the settings.
"""

import os

# CRITICAL: Set this before any imports that might load settings
os.environ["TESTING"] = "true"

os.environ.setdefault("APP_API_KEYS", "admin-key:u-admin:admin,manager-key:u-manager:manager,user-key:u1:user")
os.environ.setdefault("RATE_LIMIT_BACKEND", "memory")
os.environ.setdefault("LOG_LEVEL", "WARNING")

import pytest

from app.adapters.rate_limit.in_memory import InMemoryFixedWindowRateLimiter

ADMIN_KEY = "admin-key"
MANAGER_KEY = "manager-key"
USER_KEY = "user-key"


class FakeClock:
    """Deterministic clock returning UNIX time in seconds."""

    def __init__(self, start: float = 1_000.0) -> None:
        self.current = start

    def __call__(self) -> float:
        return self.current

    def advance_ms(self, milliseconds: int) -> None:
        self.current += milliseconds / 1000


@pytest.fixture
def clock() -> FakeClock:
    return FakeClock()


@pytest.fixture
def limiter(clock: FakeClock) -> InMemoryFixedWindowRateLimiter:
    return InMemoryFixedWindowRateLimiter(clock=clock)

"""Static rate limit table and role-based quota adjustment.

Each route picks a category; the category maps to a fixed ``RateLimitConfig``
built once at import. Elevated roles may get a larger quota on role-based
routes: the base ``max_requests`` is multiplied by the role's factor and
capped at the role's ceiling. Adjusted configs are new objects, the table
itself is read-only.
"""

from __future__ import annotations

from dataclasses import dataclass
from enum import Enum
from types import MappingProxyType
from typing import Mapping

from app.adapters.rate_limit.base import RateLimitConfig
from app.core.errors import RateLimitConfigError
from app.schemas.identity import Role

MINUTE_MS = 60_000


class RateLimitCategory(str, Enum):
    """Categories of calls with independent quotas."""

    GENERAL = "general"
    AUTH = "auth"
    UPLOAD = "upload"
    DOWNLOAD = "download"
    API_KEY = "api_key"
    SEARCH = "search"
    ADMIN = "admin"
    PUBLIC = "public"


RATE_LIMITS: Mapping[RateLimitCategory, RateLimitConfig] = MappingProxyType(
    {
        RateLimitCategory.GENERAL: RateLimitConfig(window_ms=MINUTE_MS, max_requests=100),
        RateLimitCategory.AUTH: RateLimitConfig(window_ms=5 * MINUTE_MS, max_requests=10),
        RateLimitCategory.UPLOAD: RateLimitConfig(window_ms=60 * MINUTE_MS, max_requests=20),
        RateLimitCategory.DOWNLOAD: RateLimitConfig(window_ms=10 * MINUTE_MS, max_requests=30),
        RateLimitCategory.API_KEY: RateLimitConfig(window_ms=60 * MINUTE_MS, max_requests=5),
        RateLimitCategory.SEARCH: RateLimitConfig(window_ms=MINUTE_MS, max_requests=30),
        RateLimitCategory.ADMIN: RateLimitConfig(window_ms=MINUTE_MS, max_requests=100),
        RateLimitCategory.PUBLIC: RateLimitConfig(window_ms=MINUTE_MS, max_requests=20),
    }
)


@dataclass(frozen=True)
class RoleTier:
    """Quota boost for a role.

    Attributes:
        multiplier: Factor applied to the base max_requests.
        ceiling: Absolute upper bound on the boosted max_requests.
    """

    multiplier: int
    ceiling: int

    def __post_init__(self) -> None:
        if self.multiplier < 1 or self.ceiling < 1:
            raise RateLimitConfigError(
                code="invalid_role_tier",
                message="multiplier and ceiling must be >= 1",
                details={"context": {"multiplier": self.multiplier, "ceiling": self.ceiling}},
            )

    def apply(self, max_requests: int) -> int:
        # A ceiling below the base never shrinks the quota
        return max(max_requests, min(max_requests * self.multiplier, self.ceiling))


ROLE_TIERS: Mapping[Role, RoleTier] = MappingProxyType(
    {
        Role.ADMIN: RoleTier(multiplier=3, ceiling=250),
        Role.MANAGER: RoleTier(multiplier=2, ceiling=200),
    }
)


def resolve_category(category: RateLimitCategory | str) -> RateLimitCategory:
    """Normalize a category name.

    Raises:
        RateLimitConfigError: If the name is not a known category.
    """

    try:
        return RateLimitCategory(category)
    except ValueError as exc:
        raise RateLimitConfigError(
            code="rate_limit_unknown_category",
            message=f"Unknown rate limit category: '{category}'",
            details={"category": str(category)},
        ) from exc


def get_rate_limit_config(
    category: RateLimitCategory | str,
    role: Role | str | None = None,
    *,
    tiers: Mapping[Role, RoleTier] = ROLE_TIERS,
) -> RateLimitConfig:
    """Return the config for a category, adjusted for ``role`` when tiered.

    Args:
        category: Limit category (enum member or its value).
        role: Caller role; ``None`` or an untiered role yields the base config.
        tiers: Role tier mapping, overridable in tests.

    Returns:
        RateLimitConfig: The base config or a new adjusted one.

    Raises:
        RateLimitConfigError: If the category is unknown.
    """

    base = RATE_LIMITS[resolve_category(category)]
    if role is None:
        return base

    try:
        tier = tiers.get(Role(role))
    except ValueError:
        tier = None
    if tier is None:
        return base

    return RateLimitConfig(window_ms=base.window_ms, max_requests=tier.apply(base.max_requests))

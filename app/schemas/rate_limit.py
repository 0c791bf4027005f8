"""Pydantic schemas for rate limit related responses."""

from __future__ import annotations

from typing import Any, Dict

from pydantic import BaseModel, Field

from app.schemas.identity import Identity


class CategoryLimits(BaseModel):
    """Quota of one limit category, with per-role effective maxima."""

    category: str = Field(..., description="Limit category name.")
    window_ms: int = Field(..., description="Window length in milliseconds.")
    max_requests: int = Field(..., description="Base requests allowed per window.")
    effective_max_by_role: Dict[str, int] = Field(
        default_factory=dict,
        description="Max requests per window after role adjustment, keyed by role.",
    )


class RateLimitOverview(BaseModel):
    """Admin view of the limit table and counter store."""

    enabled: bool = Field(..., description="Whether throttling is enforced.")
    role_adjustment: bool = Field(..., description="Whether role tiers raise quotas.")
    categories: list[CategoryLimits] = Field(default_factory=list)
    store: Dict[str, Any] = Field(
        default_factory=dict,
        description="Backend statistics (no keys are exposed).",
    )


class CallerInfo(BaseModel):
    """Who the service thinks the caller is and how it is throttled."""

    identity: Identity | None = Field(
        default=None, description="Resolved identity, null for anonymous callers."
    )
    throttle_key: str = Field(..., description="Key the caller is counted under.")

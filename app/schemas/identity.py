"""Pydantic schemas for resolved caller identities."""

from __future__ import annotations

from enum import Enum

from pydantic import BaseModel, ConfigDict, Field


class Role(str, Enum):
    """Roles known to the file-tracking application."""

    ADMIN = "admin"
    MANAGER = "manager"
    USER = "user"


class Identity(BaseModel):
    """Caller identity attached to a request by the authentication step."""

    model_config = ConfigDict(frozen=True)

    id: str = Field(..., min_length=1, description="Account identifier.")
    role: Role = Field(Role.USER, description="Account role.")

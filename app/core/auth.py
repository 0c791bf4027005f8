"""API key identity resolution.

Maps the X-API-Key header to a caller identity (account id and role) and
attaches it to ``request.state.identity`` so later dependencies, rate
limiting in particular, can key on the caller. Keys are configured as a
comma-separated list of ``key:user_id:role`` entries.

Design principles:
- Single Responsibility: only resolves who the caller is
- Dependency Injection: used via FastAPI Depends() for loose coupling
- Configuration-driven: keys managed via env vars, not hardcoded
"""

from __future__ import annotations

import hashlib
import logging
from typing import Annotated, Awaitable, Callable

from fastapi import Header, Request

from app.core.config import settings
from app.core.errors import AuthenticationAppError, AuthorizationAppError
from app.schemas.identity import Identity, Role

logger = logging.getLogger(__name__)


def _hash_api_key(api_key: str) -> str:
    return hashlib.sha256(api_key.encode()).hexdigest()[:16]


def parse_api_keys(keys_string: str | None) -> dict[str, Identity]:
    """Parse comma-separated API key entries into identities.

    Each entry is ``key``, ``key:user_id`` or ``key:user_id:role``. A bare key
    gets a hashed account id; a missing role defaults to ``user``.

    Args:
        keys_string: Comma-separated entries, or None.

    Returns:
        Mapping of API key to Identity.

    Raises:
        ValueError: If an entry names an unknown role.

    Examples:
        >>> parse_api_keys("k1:u1:admin")["k1"].role
        <Role.ADMIN: 'admin'>
        >>> parse_api_keys(None)
        {}
    """
    if not keys_string:
        return {}

    identities: dict[str, Identity] = {}
    for raw_entry in keys_string.split(","):
        parts = [part.strip() for part in raw_entry.split(":")]
        key = parts[0]
        if not key:
            continue

        user_id = parts[1] if len(parts) > 1 and parts[1] else f"key-{_hash_api_key(key)}"
        role = Role(parts[2]) if len(parts) > 2 and parts[2] else Role.USER
        identities[key] = Identity(id=user_id, role=role)

    return identities


def lookup_identity(provided_key: str) -> Identity:
    """Return the identity for an API key.

    Pure lookup logic without FastAPI dependencies for easy testing.

    Raises:
        AuthenticationAppError: If the key is unknown.
    """
    identity = parse_api_keys(settings.app.api_keys).get(provided_key)
    if identity is None:
        logger.warning(
            "auth.invalid_key",
            extra={"api_key_hash": _hash_api_key(provided_key) if provided_key else None},
        )
        raise AuthenticationAppError(
            code="invalid_api_key",
            message="Invalid API key",
            details={"hint": "Provide a configured key in the X-API-Key header"},
        )
    return identity


async def resolve_identity(
    request: Request,
    x_api_key: Annotated[str | None, Header(alias="X-API-Key")] = None,
) -> Identity | None:
    """FastAPI dependency attaching the caller identity to the request.

    Anonymous callers (no header) pass through with no identity so that
    rate limiting falls back to the client address.

    Usage:
        @router.get("/me", dependencies=[Depends(resolve_identity)])

    Raises:
        AuthenticationAppError: 401 if a key is provided but unknown.
    """
    if not x_api_key:
        logger.debug("auth.anonymous")
        return None

    identity = lookup_identity(x_api_key)
    request.state.identity = identity
    logger.debug(
        "auth.success",
        extra={"user_id": identity.id, "role": identity.role.value},
    )
    return identity


def require_roles(*roles: Role) -> Callable[..., Awaitable[Identity]]:
    """Build a dependency that requires an identity with one of ``roles``.

    Raises:
        AuthenticationAppError: 401 when the caller is anonymous.
        AuthorizationAppError: 403 when the caller has another role.
    """

    allowed = frozenset(roles)

    async def _require(request: Request) -> Identity:
        identity: Identity | None = getattr(request.state, "identity", None)
        if identity is None:
            raise AuthenticationAppError(
                code="authentication_required",
                message="Authentication required",
            )
        if allowed and identity.role not in allowed:
            logger.warning(
                "auth.insufficient_role",
                extra={"user_id": identity.id, "role": identity.role.value},
            )
            raise AuthorizationAppError(
                code="insufficient_permissions",
                message="Insufficient permissions",
            )
        return identity

    return _require

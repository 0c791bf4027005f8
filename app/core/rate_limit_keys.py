"""Throttling key derivation.

Both generators are pure functions of the request: they read the identity
attached by ``app.core.auth.resolve_identity`` and the forwarding headers,
never mutate the request, and never return an empty key.
"""

from __future__ import annotations

from typing import Callable

from starlette.requests import Request

from app.schemas.identity import Identity

KeyGenerator = Callable[[Request], str]

UNKNOWN_ADDRESS = "unknown"


def get_request_identity(request: Request) -> Identity | None:
    """Return the identity attached to the request, if any."""

    return getattr(request.state, "identity", None)


def get_client_address(request: Request) -> str:
    """Extract the client address from proxy forwarding headers.

    Uses the first entry of ``X-Forwarded-For``, then ``X-Real-IP``, and
    finally the literal ``"unknown"``.
    """

    forwarded = request.headers.get("x-forwarded-for")
    if forwarded:
        first = forwarded.split(",")[0].strip()
        if first:
            return first

    real_ip = (request.headers.get("x-real-ip") or "").strip()
    return real_ip or UNKNOWN_ADDRESS


def default_key_generator(request: Request) -> str:
    """Key by account when identified, by client address otherwise.

    Examples:
        identity ``u1``                         -> ``user:u1``
        ``X-Forwarded-For: 203.0.113.5, 10.0.0.1`` -> ``ip:203.0.113.5``
    """

    identity = get_request_identity(request)
    if identity is not None:
        return f"user:{identity.id}"
    return f"ip:{get_client_address(request)}"


def role_based_key_generator(request: Request) -> str:
    """Key by role and account (``admin:u1``), else like the default."""

    identity = get_request_identity(request)
    if identity is not None:
        return f"{identity.role.value}:{identity.id}"
    return default_key_generator(request)

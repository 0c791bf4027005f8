"""Unit tests for throttling key derivation."""

from starlette.requests import Request

from app.core.rate_limit_keys import (
    default_key_generator,
    get_client_address,
    role_based_key_generator,
)
from app.schemas.identity import Identity, Role


def _make_request(headers: dict[str, str] | None = None, identity: Identity | None = None) -> Request:
    scope = {
        "type": "http",
        "method": "GET",
        "path": "/",
        "headers": [(k.lower().encode(), v.encode()) for k, v in (headers or {}).items()],
    }
    request = Request(scope)
    if identity is not None:
        request.state.identity = identity
    return request


class TestDefaultKeyGenerator:
    def test_uses_first_forwarded_for_entry(self) -> None:
        request = _make_request({"X-Forwarded-For": "203.0.113.5, 10.0.0.1"})
        assert default_key_generator(request) == "ip:203.0.113.5"

    def test_identity_wins_over_headers(self) -> None:
        request = _make_request(
            {"X-Forwarded-For": "203.0.113.5"},
            identity=Identity(id="u1"),
        )
        assert default_key_generator(request) == "user:u1"

    def test_falls_back_to_real_ip(self) -> None:
        request = _make_request({"X-Real-IP": "198.51.100.7"})
        assert default_key_generator(request) == "ip:198.51.100.7"

    def test_falls_back_to_unknown(self) -> None:
        assert default_key_generator(_make_request()) == "ip:unknown"

    def test_blank_forwarded_for_is_ignored(self) -> None:
        request = _make_request({"X-Forwarded-For": " , 10.0.0.1", "X-Real-IP": "198.51.100.7"})
        assert get_client_address(request) == "198.51.100.7"

    def test_is_deterministic_and_does_not_mutate(self) -> None:
        request = _make_request({"X-Forwarded-For": "203.0.113.5"})
        state_before = dict(request.scope.get("state", {}))

        assert default_key_generator(request) == default_key_generator(request)
        assert dict(request.scope.get("state", {})) == state_before


class TestRoleBasedKeyGenerator:
    def test_prefixes_role(self) -> None:
        request = _make_request(identity=Identity(id="u1", role=Role.ADMIN))
        assert role_based_key_generator(request) == "admin:u1"

    def test_user_role(self) -> None:
        request = _make_request(identity=Identity(id="u2", role=Role.USER))
        assert role_based_key_generator(request) == "user:u2"

    def test_anonymous_falls_back_to_default(self) -> None:
        request = _make_request({"X-Forwarded-For": "203.0.113.5, 10.0.0.1"})
        assert role_based_key_generator(request) == default_key_generator(request)
        assert role_based_key_generator(request) == "ip:203.0.113.5"

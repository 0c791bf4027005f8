"""Integration tests for the application routes and composition root."""

from unittest.mock import AsyncMock

import pytest
from fastapi.testclient import TestClient

from app.adapters.rate_limit.in_memory import InMemoryFixedWindowRateLimiter
from app.core.app_factory import create_app

from conftest import ADMIN_KEY, MANAGER_KEY, USER_KEY


@pytest.fixture
def app(limiter):
    return create_app(rate_limiter=limiter)


@pytest.fixture
def client(app) -> TestClient:
    return TestClient(app)


class TestHealth:
    def test_reports_backend(self, client: TestClient) -> None:
        resp = client.get("/health")

        assert resp.status_code == 200
        body = resp.json()
        assert body["status"] == "healthy"
        assert body["rate_limit"] == {"enabled": True, "backend": "memory", "reachable": True}
        assert "X-RateLimit-Limit" not in resp.headers

    def test_unreachable_backend_is_unhealthy(self, app, limiter) -> None:
        limiter.ping = AsyncMock(return_value=False)

        resp = TestClient(app).get("/health")

        assert resp.status_code == 503
        assert resp.json()["status"] == "unhealthy"


class TestWhoAmI:
    def test_anonymous_caller(self, client: TestClient) -> None:
        resp = client.get("/v1/me", headers={"X-Forwarded-For": "203.0.113.5, 10.0.0.1"})

        assert resp.status_code == 200
        assert resp.json() == {"identity": None, "throttle_key": "general:ip:203.0.113.5"}
        assert resp.headers["X-RateLimit-Limit"] == "100"

    def test_identified_admin(self, client: TestClient) -> None:
        resp = client.get("/v1/me", headers={"X-API-Key": ADMIN_KEY})

        assert resp.status_code == 200
        assert resp.json() == {
            "identity": {"id": "u-admin", "role": "admin"},
            "throttle_key": "general:admin:u-admin",
        }
        assert resp.headers["X-RateLimit-Limit"] == "250"
        assert resp.headers["X-RateLimit-Remaining"] == "249"

    def test_general_quota_is_enforced(self, client: TestClient) -> None:
        headers = {"X-API-Key": USER_KEY}
        for _ in range(100):
            assert client.get("/v1/me", headers=headers).status_code == 200

        resp = client.get("/v1/me", headers=headers)
        assert resp.status_code == 429
        assert resp.json()["retryAfter"] == 60


class TestAdminRateLimits:
    def test_requires_authentication(self, client: TestClient) -> None:
        assert client.get("/v1/admin/rate-limits").status_code == 401

    def test_requires_admin_role(self, client: TestClient) -> None:
        resp = client.get("/v1/admin/rate-limits", headers={"X-API-Key": MANAGER_KEY})

        assert resp.status_code == 403
        assert resp.json()["error"]["code"] == "insufficient_permissions"

    def test_lists_categories_and_store_stats(self, client: TestClient) -> None:
        resp = client.get("/v1/admin/rate-limits", headers={"X-API-Key": ADMIN_KEY})

        assert resp.status_code == 200
        body = resp.json()
        assert body["enabled"] is True
        by_name = {c["category"]: c for c in body["categories"]}
        assert set(by_name) == {
            "general", "auth", "upload", "download", "api_key", "search", "admin", "public",
        }
        assert by_name["general"]["effective_max_by_role"] == {"admin": 250, "manager": 200}
        assert by_name["upload"]["window_ms"] == 3_600_000
        assert body["store"]["backend"] == "memory"
        assert body["store"]["entries"] == 1
        assert resp.headers["X-RateLimit-Limit"] == "250"

    def test_reset_counter(self, client: TestClient) -> None:
        user_headers = {"X-API-Key": USER_KEY}
        client.get("/v1/me", headers=user_headers)

        admin_headers = {"X-API-Key": ADMIN_KEY}
        resp = client.delete("/v1/admin/rate-limits/general:user:u1", headers=admin_headers)
        assert resp.status_code == 204
        assert resp.headers["X-RateLimit-Limit"] == "250"

        again = client.get("/v1/me", headers=user_headers)
        assert again.headers["X-RateLimit-Remaining"] == "99"

    def test_reset_unknown_key_is_404(self, client: TestClient) -> None:
        resp = client.delete("/v1/admin/rate-limits/general:user:ghost", headers={"X-API-Key": ADMIN_KEY})

        assert resp.status_code == 404
        assert resp.json()["error"]["code"] == "rate_limit_key_not_found"
        assert resp.headers["X-RateLimit-Limit"] == "250"
        assert resp.headers["X-RateLimit-Remaining"] == "249"


class TestCompositionRoot:
    def test_each_app_owns_its_limiter(self) -> None:
        first = create_app(rate_limiter=InMemoryFixedWindowRateLimiter())
        second = create_app()

        assert first.state.rate_limiter is not second.state.rate_limiter
        assert isinstance(second.state.rate_limiter, InMemoryFixedWindowRateLimiter)

    def test_lifespan_starts_and_stops_sweeper(self, app, limiter) -> None:
        with TestClient(app) as client:
            assert client.get("/health").status_code == 200
            assert limiter.sweeper_running is True

        assert limiter.sweeper_running is False

    def test_openapi_documents_429_and_api_key(self, client: TestClient) -> None:
        schema = client.get("/openapi.json").json()

        assert "ApiKeyAuth" in schema["components"]["securitySchemes"]
        me = schema["paths"]["/v1/me"]["get"]
        assert "429" in me["responses"]
        assert schema["paths"]["/health"]["get"]["security"] == []

"""Tests for global exception handlers.

Validates that all exception types are handled consistently with
proper HTTP status codes, error format, and no information leakage.
"""

import asyncio
import json
from unittest.mock import AsyncMock

import pytest
from fastapi import FastAPI
from fastapi.testclient import TestClient

from app.core.errors import (
    AppError,
    AuthenticationAppError,
    AuthorizationAppError,
    NotFoundAppError,
    RateLimitBackendError,
    RateLimitConfigError,
    RateLimitExceededError,
    ValidationAppError,
)
from app.core.exception_handlers import general_exception_handler, setup_exception_handlers


@pytest.fixture
def app_with_handlers() -> FastAPI:
    """Create FastAPI app with exception handlers registered."""
    app = FastAPI()
    setup_exception_handlers(app)
    return app


@pytest.fixture
def client(app_with_handlers: FastAPI) -> TestClient:
    return TestClient(app_with_handlers, raise_server_exceptions=False)


class TestAppErrorHandler:
    """Test handler for AppError and subclasses."""

    @pytest.mark.parametrize(
        ("error", "expected_status"),
        [
            (ValidationAppError(code="bad_input", message="Bad input"), 400),
            (RateLimitConfigError(code="invalid_rate_limit_config", message="bad"), 400),
            (AuthenticationAppError(code="invalid_api_key", message="Invalid API key"), 401),
            (AuthorizationAppError(code="insufficient_permissions", message="no"), 403),
            (NotFoundAppError(code="missing", message="missing"), 404),
            (RateLimitBackendError(code="rate_limit_backend_error", message="down"), 503),
            (AppError(code="other", message="other"), 500),
        ],
    )
    def test_status_mapping(self, client: TestClient, app_with_handlers: FastAPI, error, expected_status):
        @app_with_handlers.get("/raise")
        async def raise_endpoint():
            raise error

        response = client.get("/raise")

        assert response.status_code == expected_status
        data = response.json()
        assert data["error"]["code"] == error.code
        assert data["error"]["message"] == error.message
        assert "request_id" in data["error"]

    def test_authentication_error_sets_www_authenticate(self, client: TestClient, app_with_handlers: FastAPI):
        @app_with_handlers.get("/auth")
        async def auth_endpoint():
            raise AuthenticationAppError(code="authentication_required", message="Authentication required")

        response = client.get("/auth")

        assert response.status_code == 401
        assert response.headers["WWW-Authenticate"] == "ApiKey"

    def test_details_are_included_when_present(self, client: TestClient, app_with_handlers: FastAPI):
        @app_with_handlers.get("/details")
        async def details_endpoint():
            raise ValidationAppError(
                code="bad_category",
                message="Unknown category",
                details={"category": "uploads"},
            )

        data = client.get("/details").json()
        assert data["error"]["details"] == {"category": "uploads"}


class TestRateLimitExceededHandler:
    def test_returns_429_with_headers_and_retry_after(self, client: TestClient, app_with_handlers: FastAPI):
        @app_with_handlers.get("/limited")
        async def limited_endpoint():
            raise RateLimitExceededError(
                code="rate_limit_exceeded",
                message="Rate limit exceeded",
                limit=3,
                remaining=0,
                reset_time=1_060_000,
                retry_after=42,
            )

        response = client.get("/limited")

        assert response.status_code == 429
        assert response.headers["Retry-After"] == "42"
        assert response.headers["X-RateLimit-Limit"] == "3"
        assert response.headers["X-RateLimit-Remaining"] == "0"
        assert response.headers["X-RateLimit-Reset"] == "1060"
        body = response.json()
        assert body["retryAfter"] == 42
        assert body["error"]["code"] == "rate_limit_exceeded"


class TestGeneralExceptionHandler:
    """Test fallback handler for unexpected exceptions."""

    def test_unexpected_exception_returns_generic_500(self, client: TestClient, app_with_handlers: FastAPI):
        @app_with_handlers.get("/boom")
        async def boom():
            raise RuntimeError("database connection failed")

        response = client.get("/boom")

        assert response.status_code == 500
        assert response.json()["error"]["code"] == "internal_server_error"
        assert "database connection" not in response.text

    def test_general_exception_handler_never_leaks_stack_trace(self):
        request = AsyncMock()
        request.url.path = "/test"
        request.method = "GET"

        response = asyncio.run(general_exception_handler(request, ValueError("Test error with details")))

        response_text = bytes(response.body).decode()
        data = json.loads(response_text)
        assert data["error"]["code"] == "internal_server_error"
        assert "Traceback" not in response_text
        assert "ValueError" not in response_text


def test_setup_registers_handlers_and_is_idempotent():
    app = FastAPI()
    setup_exception_handlers(app)
    setup_exception_handlers(app)

    assert RateLimitExceededError in app.exception_handlers
    assert AppError in app.exception_handlers
    assert Exception in app.exception_handlers

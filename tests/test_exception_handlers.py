"""Tests for global exception handlers.

Validates that all exception types are handled consistently with
proper HTTP status codes, error format, and no information leakage.
"""

import asyncio
import json
from datetime import datetime
from unittest.mock import AsyncMock

import pytest
from fastapi import FastAPI
from fastapi.testclient import TestClient

from mapsns.core.errors import (
    AppError,
    AuthenticationAppError,
    RateLimitExceededError,
    StoreUnavailableError,
    ValidationAppError,
)
from mapsns.core.exception_handlers import general_exception_handler, setup_exception_handlers


@pytest.fixture
def app_with_handlers() -> FastAPI:
    """Create FastAPI app with exception handlers registered."""
    app = FastAPI()
    setup_exception_handlers(app)
    return app


@pytest.fixture
def client(app_with_handlers: FastAPI) -> TestClient:
    """Create test client with handlers enabled."""
    return TestClient(app_with_handlers)


class TestAppErrorHandler:
    """Test handler for AppError and subclasses."""

    def test_validation_error_returns_400(self, client: TestClient, app_with_handlers: FastAPI):
        """Verify ValidationAppError returns HTTP 400."""
        @app_with_handlers.get("/test-validation")
        async def test_endpoint():
            raise ValidationAppError(code="test_validation", message="Test validation error")

        response = client.get("/test-validation")

        assert response.status_code == 400
        data = response.json()
        assert data["code"] == "test_validation"
        assert data["message"] == "Test validation error"
        assert "trace_id" in data
        assert "details" not in data

    def test_validation_error_includes_details(self, client: TestClient, app_with_handlers: FastAPI):
        """Verify details are passed through when provided."""
        @app_with_handlers.get("/test-validation-details")
        async def test_endpoint():
            raise ValidationAppError(
                code="token_store_unknown_backend",
                message="Unknown token store backend",
                details={"backend": "memcached"},
            )

        response = client.get("/test-validation-details")

        assert response.status_code == 400
        assert response.json()["details"] == {"backend": "memcached"}

    def test_authentication_error_returns_401(self, client: TestClient, app_with_handlers: FastAPI):
        """Verify revoked credentials return HTTP 401."""
        @app_with_handlers.get("/test-auth")
        async def test_endpoint():
            raise AuthenticationAppError(
                code="access_token_revoked",
                message="Access token has been revoked",
            )

        response = client.get("/test-auth")

        assert response.status_code == 401
        assert response.json()["code"] == "access_token_revoked"

    def test_store_unavailable_returns_503(self, client: TestClient, app_with_handlers: FastAPI):
        """Verify a store outage fails closed with 503, not 401."""
        @app_with_handlers.get("/test-store")
        async def test_endpoint():
            raise StoreUnavailableError(
                code="E503",
                message="Token store is temporarily unavailable",
                details={"operation": "blacklist_check", "backend": "redis"},
            )

        response = client.get("/test-store")

        assert response.status_code == 503
        assert response.headers["Retry-After"] == "1"
        data = response.json()
        assert data["code"] == "E503"
        assert data["details"]["operation"] == "blacklist_check"

    def test_rate_limit_error_returns_429(self, client: TestClient, app_with_handlers: FastAPI):
        """Verify RateLimitExceededError uses the throttling response."""
        @app_with_handlers.get("/test-rate")
        async def test_endpoint():
            raise RateLimitExceededError(code="E429", message="ignored", retry_after_seconds=17)

        response = client.get("/test-rate")

        assert response.status_code == 429
        assert response.headers["Retry-After"] == "17"
        assert response.json() == {
            "code": "E429",
            "message": "Too many requests. Please try again later.",
        }

    def test_error_response_format_is_consistent(self, client: TestClient, app_with_handlers: FastAPI):
        """Verify error responses have consistent flat JSON structure."""
        @app_with_handlers.get("/test-format")
        async def test_endpoint():
            raise AppError(code="test", message="test")

        data = client.get("/test-format").json()

        assert set(data) == {"code", "message", "timestamp", "path", "trace_id"}
        assert data["path"] == "/test-format"
        assert datetime.fromisoformat(data["timestamp"]).tzinfo is not None


class TestGeneralExceptionHandler:
    """Test fallback handler for unexpected exceptions."""

    def test_unexpected_exception_returns_500(self, app_with_handlers: FastAPI):
        """Verify unexpected errors become a generic 500."""
        @app_with_handlers.get("/test-crash")
        async def test_endpoint():
            raise RuntimeError("database connection failed")

        client = TestClient(app_with_handlers, raise_server_exceptions=False)
        response = client.get("/test-crash")

        assert response.status_code == 500
        assert response.json()["code"] == "internal_server_error"
        assert "database connection" not in response.text

    def test_general_exception_handler_never_leaks_stack_trace(self):
        """Verify stack traces are never included in response."""
        request = AsyncMock()
        request.url.path = "/test"
        request.method = "GET"

        exc = ValueError("Test error with details")
        response = asyncio.run(general_exception_handler(request, exc))

        response_text = bytes(response.body).decode()
        data = json.loads(response_text)
        assert response.status_code == 500
        assert "trace_id" in data
        assert data["path"] == "/test"
        assert "Traceback" not in response_text
        assert "File \"" not in response_text
        assert "ValueError" not in response_text


class TestErrorHandlerIntegration:
    """Integration tests for exception handler setup."""

    def test_setup_exception_handlers_registers_handlers(self, app_with_handlers: FastAPI):
        assert AppError in app_with_handlers.exception_handlers
        assert Exception in app_with_handlers.exception_handlers

    def test_multiple_handler_setups_does_not_fail(self):
        app = FastAPI()

        setup_exception_handlers(app)
        setup_exception_handlers(app)

        assert AppError in app.exception_handlers

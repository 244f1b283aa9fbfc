"""Global exception handlers for consistent error responses.

This module provides FastAPI exception handlers that intercept all errors
(domain and unexpected) and return consistent JSON responses with proper
HTTP status codes and traceability.

Design:
- AppError subclasses -> appropriate HTTP status (400, 401, 429, 503)
- StoreUnavailableError -> 503: the request fails closed, credentials are
  neither accepted nor declared invalid
- Unexpected Exception -> generic 500 (safety net)
- Bodies are flat: {"code", "message", "timestamp", "path", "trace_id"[, "details"]}
  (the 429 body keeps its fixed two fields)
"""

import logging
from datetime import datetime, timezone
from typing import Any

from fastapi import Request, status
from fastapi.responses import JSONResponse

from mapsns.core.errors import (
    AppError,
    AuthenticationAppError,
    RateLimitExceededError,
    StoreUnavailableError,
)
from mapsns.core.logging import get_trace_id
from mapsns.core.rate_limit import too_many_requests_response

logger = logging.getLogger(__name__)


def _error_body(request: Request, code: str, message: str) -> dict[str, Any]:
    return {
        "code": code,
        "message": message,
        "timestamp": datetime.now(timezone.utc).isoformat(),
        "path": request.url.path,
        "trace_id": get_trace_id(),
    }


def _status_for(exc: AppError) -> int:
    if isinstance(exc, StoreUnavailableError):
        return status.HTTP_503_SERVICE_UNAVAILABLE
    if isinstance(exc, AuthenticationAppError):
        return status.HTTP_401_UNAUTHORIZED
    if isinstance(exc, RateLimitExceededError):
        return status.HTTP_429_TOO_MANY_REQUESTS
    return status.HTTP_400_BAD_REQUEST


async def app_error_handler(request: Request, exc: AppError) -> JSONResponse:
    """Handle domain application errors with consistent JSON format.

    Routes domain errors to HTTP status codes:
    - ValidationAppError -> 400 Bad Request
    - AuthenticationAppError -> 401 Unauthorized
    - RateLimitExceededError -> 429 Too Many Requests (+ Retry-After)
    - StoreUnavailableError -> 503 Service Unavailable

    Args:
        request: FastAPI request object.
        exc: AppError instance (or subclass).

    Returns:
        JSONResponse with appropriate status code and error details.
    """
    status_code = _status_for(exc)

    log = logger.error if status_code >= 500 else logger.warning
    log(
        "app_error_handled",
        extra={
            "error_code": exc.code,
            "error_message": exc.message,
            "status_code": status_code,
            "has_details": bool(exc.details),
            "request_path": request.url.path,
            "trace_id": get_trace_id(),
        },
    )

    if isinstance(exc, RateLimitExceededError):
        return too_many_requests_response(exc.retry_after_seconds)

    content = _error_body(request, exc.code, exc.message)
    if exc.details:
        content["details"] = exc.details

    headers = {"Retry-After": "1"} if status_code == status.HTTP_503_SERVICE_UNAVAILABLE else None
    return JSONResponse(status_code=status_code, content=content, headers=headers)


async def general_exception_handler(request: Request, exc: Exception) -> JSONResponse:
    """Fallback handler for unexpected errors (safety net).

    Logs the failure for debugging while returning a generic message; no stack
    traces or exception text reach the client.

    Args:
        request: FastAPI request object.
        exc: Exception instance (unexpected).

    Returns:
        JSONResponse with generic error (no implementation details leaked).
    """
    logger.error(
        "unhandled_exception",
        extra={
            "error_type": type(exc).__name__,
            "error_msg": str(exc),
            "request_path": request.url.path,
            "request_method": request.method,
            "trace_id": get_trace_id(),
        },
    )

    return JSONResponse(
        status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
        content=_error_body(
            request,
            "internal_server_error",
            "An unexpected error occurred. Please try again later.",
        ),
    )


def setup_exception_handlers(app) -> None:
    """Register all exception handlers with FastAPI app.

    Args:
        app: FastAPI application instance.

    Example:
        >>> from fastapi import FastAPI
        >>> from mapsns.core.exception_handlers import setup_exception_handlers
        >>> app = FastAPI()
        >>> setup_exception_handlers(app)
    """
    app.exception_handler(AppError)(app_error_handler)
    app.exception_handler(Exception)(general_exception_handler)

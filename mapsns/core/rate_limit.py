"""Rate limiting filter for the HTTP pipeline.

This module wires the rate limiting adapter into the HTTP layer.

Design goals:
- Runs before routing, so rejected requests never reach a handler.
- Swap-friendly: the limiter is resolved from ``app.state`` behind the
  AbstractRateLimiter interface.
- The client is identified by IP: first X-Forwarded-For hop, then the peer
  address, then "unknown".
"""

from __future__ import annotations

from fastapi import Request, Response, status
from fastapi.responses import JSONResponse

from mapsns.adapters.rate_limit.base import AbstractRateLimiter
from mapsns.core.errors import TOO_MANY_REQUESTS_CODE, TOO_MANY_REQUESTS_MESSAGE


UNKNOWN_CLIENT = "unknown"
RATE_LIMIT_MEDIA_TYPE = "application/json; charset=UTF-8"


def resolve_client_key(request: Request, forwarded_for_header: str = "X-Forwarded-For") -> str:
    """Resolve the client identifier used as the bucket key.

    Args:
        request: Incoming request.
        forwarded_for_header: Header carrying the proxy chain.

    Returns:
        str: First forwarded hop, the peer host, or "unknown".

    Examples:
        X-Forwarded-For: "203.0.113.7, 10.0.0.1" -> "203.0.113.7"
        no header, peer 198.51.100.2             -> "198.51.100.2"
    """

    forwarded = request.headers.get(forwarded_for_header)
    if forwarded and forwarded.strip():
        first_hop = forwarded.split(",")[0].strip()
        if first_hop:
            return first_hop

    if request.client and request.client.host:
        return request.client.host
    return UNKNOWN_CLIENT


def too_many_requests_response(retry_after_seconds: int) -> JSONResponse:
    """Build the 429 response returned to throttled clients."""

    return JSONResponse(
        status_code=status.HTTP_429_TOO_MANY_REQUESTS,
        content={"code": TOO_MANY_REQUESTS_CODE, "message": TOO_MANY_REQUESTS_MESSAGE},
        headers={"Retry-After": str(max(1, retry_after_seconds))},
        media_type=RATE_LIMIT_MEDIA_TYPE,
    )


async def rate_limit_middleware(request: Request, call_next) -> Response:
    """HTTP middleware enforcing per-route-class, per-IP token buckets.

    Unmanaged routes pass straight through. Managed routes consume one token;
    when the bucket is empty the request is answered with 429 and a
    Retry-After header, and the handler is never invoked.

    Args:
        request: The incoming HTTP request object.
        call_next: The next middleware/route handler in the stack.

    Returns:
        Response: Downstream response, or the 429 rejection.
    """

    cfg = request.app.state.settings.rate_limit
    if not cfg.enabled:
        return await call_next(request)

    limiter: AbstractRateLimiter = request.app.state.rate_limiter
    client_key = resolve_client_key(request, cfg.forwarded_for_header)
    decision = limiter.allow(request.method, request.url.path, client_key)

    if decision.allowed:
        return await call_next(request)

    return too_many_requests_response(decision.retry_after_seconds)

"""HTTP middleware for trace id propagation and log correlation.

The middleware:
- Accepts an incoming trace header (X-Trace-Id by default) or generates one
- Stores trace_id in contextvars for access throughout the request lifecycle
- Echoes trace_id and the total request duration in response headers
- Clears context after request completion to prevent context leaks

It is installed outermost so that responses produced by inner filters (for
example the rate limiter's 429) are correlated as well.

Usage:
    app.middleware("http")(trace_id_middleware)
"""

from __future__ import annotations

import time
import uuid

from fastapi import Request, Response

from mapsns.core.logging import clear_trace_id, set_trace_id


def new_trace_id() -> str:
    """Generate a compact 16 hex-char trace id."""

    return uuid.uuid4().hex[:16]


async def trace_id_middleware(request: Request, call_next) -> Response:
    """Attach a trace id to the request context and the response headers.

    Args:
        request: The incoming HTTP request object.
        call_next: The next middleware/route handler in the stack.

    Returns:
        Response: The downstream response with X-Trace-Id and
            X-Request-Duration-ms headers added.
    """

    header_name = request.app.state.settings.log.trace_id_header
    incoming = request.headers.get(header_name, "").strip()
    trace_id = incoming or new_trace_id()
    set_trace_id(trace_id)
    start = time.perf_counter()
    try:
        response: Response = await call_next(request)
    finally:
        clear_trace_id()

    duration_ms = (time.perf_counter() - start) * 1000
    response.headers[header_name] = trace_id
    response.headers.setdefault("X-Request-Duration-ms", f"{duration_ms:.2f}")
    return response

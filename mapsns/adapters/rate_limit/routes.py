"""Route classes and the table mapping requests onto them."""

from __future__ import annotations

import re
from enum import Enum


class RouteClass(str, Enum):
    """Endpoint categories sharing one rate limit policy."""

    LOGIN = "login"
    SIGNUP = "signup"
    REFRESH = "refresh"
    PUBLIC_READ = "public_read"


# Exact (method, path) matches for credential-related endpoints
SENSITIVE_ROUTES: dict[tuple[str, str], RouteClass] = {
    ("POST", "/api/auth/login"): RouteClass.LOGIN,
    ("POST", "/api/members"): RouteClass.SIGNUP,
    ("POST", "/api/auth/refresh"): RouteClass.REFRESH,
}

# Unauthenticated listing/detail reads (GET only)
PUBLIC_READ_PATTERNS: tuple[re.Pattern[str], ...] = tuple(
    re.compile(pattern)
    for pattern in (
        r"^/api/posts/?$",
        r"^/api/posts/\d+/?$",
        r"^/api/image-posts/?$",
        r"^/api/image-posts/nearby/?$",
        r"^/api/image-posts/\d+/?$",
        r"^/api/pins/nearby/?$",
        r"^/api/pins/\d+/posts/?$",
        r"^/api/pins/\d+/image-posts/?$",
        r"^/api/map/directions/?$",
        r"^/api/map/distance/?$",
    )
)


def classify_route(method: str, path: str) -> RouteClass | None:
    """Map a request onto its rate limited route class.

    Args:
        method: HTTP method (any case).
        path: Request path without query string.

    Returns:
        The RouteClass, or None when the request is not rate limited.
    """
    method = method.upper()

    route_class = SENSITIVE_ROUTES.get((method, path))
    if route_class is not None:
        return route_class

    if method == "GET" and any(p.match(path) for p in PUBLIC_READ_PATTERNS):
        return RouteClass.PUBLIC_READ

    return None


def bucket_key(route_class: RouteClass, client_key: str) -> str:
    """Build the registry key; all public reads of a client share one bucket."""

    return f"{route_class.value}:{client_key}"

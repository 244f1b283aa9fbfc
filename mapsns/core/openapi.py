"""OpenAPI metadata and customization utilities.

Enriches the generated OpenAPI schema with:
- Tags metadata
- Bearer (JWT) security scheme, required by default
- ``security: []`` on health endpoints and unauthenticated public reads
- A documented 429 response on every rate limited operation
"""

from __future__ import annotations

import re
from typing import Any, Dict

from fastapi import FastAPI

from mapsns.adapters.rate_limit.routes import RouteClass, classify_route
from mapsns.core.errors import TOO_MANY_REQUESTS_CODE, TOO_MANY_REQUESTS_MESSAGE

_PATH_PARAM = re.compile(r"\{[^}]+\}")

_TAGS = [
    {"name": "Auth", "description": "Login, token refresh and logout."},
    {"name": "Posts", "description": "Public post and image post reads."},
    {"name": "Map", "description": "Pins, nearby queries and directions."},
    {"name": "Health", "description": "Liveness and readiness checks."},
]

_RATE_LIMITED_RESPONSE = {
    "description": "Rate limit exceeded; retry after the Retry-After header.",
    "headers": {
        "Retry-After": {
            "description": "Seconds until a new request may succeed.",
            "schema": {"type": "integer", "minimum": 1},
        }
    },
    "content": {
        "application/json": {
            "example": {"code": TOO_MANY_REQUESTS_CODE, "message": TOO_MANY_REQUESTS_MESSAGE}
        }
    },
}


def apply_openapi_customizations(app: FastAPI) -> None:
    """Patch FastAPI's OpenAPI generation to add metadata and security."""

    original_openapi = app.openapi

    def custom_openapi() -> Dict[str, Any]:
        if app.openapi_schema:
            return app.openapi_schema

        schema = original_openapi()

        components = schema.setdefault("components", {})
        security_schemes = components.setdefault("securitySchemes", {})
        security_schemes.setdefault(
            "BearerAuth",
            {
                "type": "http",
                "scheme": "bearer",
                "bearerFormat": "JWT",
                "description": "Access token issued by the login endpoint.",
            },
        )
        schema.setdefault("security", [{"BearerAuth": []}])

        tags = schema.setdefault("tags", [])
        existing_tag_names = {t.get("name") for t in tags}
        tags.extend(tag for tag in _TAGS if tag["name"] not in existing_tag_names)

        for path, methods in schema.get("paths", {}).items():
            for method, operation in methods.items():
                if not isinstance(operation, dict):
                    continue
                route_class = classify_route(method, _PATH_PARAM.sub("0", path))
                if path.startswith("/health") or route_class is RouteClass.PUBLIC_READ:
                    operation["security"] = []
                if route_class is not None:
                    operation.setdefault("responses", {})["429"] = _RATE_LIMITED_RESPONSE

        app.openapi_schema = schema
        return schema

    app.openapi = custom_openapi  # type: ignore[assignment]

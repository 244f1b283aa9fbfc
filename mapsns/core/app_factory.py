"""Application factory for the FastAPI app.

Centralizes app construction (state, middleware, handlers, routers, startup
checks) so tests can build isolated apps with their own settings.
"""

from __future__ import annotations

import logging
from contextlib import asynccontextmanager
from typing import AsyncIterator

from fastapi import FastAPI

from mapsns.adapters.rate_limit.in_memory import InMemoryTokenBucketRateLimiter
from mapsns.adapters.token_store.base import AbstractTokenStore
from mapsns.adapters.token_store.factory import create_token_store
from mapsns.api.routes import health_router
from mapsns.core.config import Settings, settings as default_settings
from mapsns.core.errors import StoreUnavailableError
from mapsns.core.exception_handlers import setup_exception_handlers
from mapsns.core.logging import configure_logging
from mapsns.core.middleware import trace_id_middleware
from mapsns.core.openapi import apply_openapi_customizations
from mapsns.core.rate_limit import rate_limit_middleware

logger = logging.getLogger(__name__)


def _verify_token_store(store: AbstractTokenStore, *, required: bool) -> None:
    """Ping the token store at startup; re-raise only when verification is required."""

    try:
        store.ping()
    except StoreUnavailableError:
        if required:
            raise
        logger.warning("token_store.startup_ping_failed", extra={"backend": store.backend_name})
        return
    logger.info("token_store.connected", extra={"backend": store.backend_name})


@asynccontextmanager
async def lifespan(app: FastAPI) -> AsyncIterator[None]:
    store: AbstractTokenStore = app.state.token_store
    _verify_token_store(store, required=app.state.settings.token_store.verify_on_startup)
    try:
        yield
    finally:
        store.close()


def create_app(
    app_settings: Settings | None = None,
    *,
    token_store: AbstractTokenStore | None = None,
) -> FastAPI:
    """Create and configure the FastAPI application instance.

    Args:
        app_settings: Settings to use; defaults to the global settings.
        token_store: Pre-built token store (tests); built from settings otherwise.

    Returns:
        Configured FastAPI app with middleware, handlers, routers and docs.
    """
    cfg = app_settings or default_settings

    # Logging first so subsequent init logs are formatted as desired
    configure_logging(cfg.log)

    app = FastAPI(
        title=cfg.app.name,
        description=(
            "Map-based SNS API core: IP rate limiting for login, signup, token "
            "refresh and public reads, plus refresh token storage and access "
            "token revocation."
        ),
        version="0.1.0",
        debug=cfg.app.debug,
        lifespan=lifespan,
    )

    app.state.settings = cfg
    app.state.rate_limiter = InMemoryTokenBucketRateLimiter.from_settings(cfg.rate_limit)
    app.state.token_store = token_store if token_store is not None else create_token_store(cfg)

    # Middleware: the last registered runs first, so tracing wraps rate limiting
    app.middleware("http")(rate_limit_middleware)
    app.middleware("http")(trace_id_middleware)

    setup_exception_handlers(app)

    app.include_router(health_router)

    apply_openapi_customizations(app)

    return app

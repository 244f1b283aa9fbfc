"""Factory for token store backends."""

from mapsns.adapters.token_store.base import AbstractTokenStore
from mapsns.adapters.token_store.inert import InertTokenStore
from mapsns.adapters.token_store.redis_store import RedisTokenStore
from mapsns.core.config import Settings, settings as default_settings
from mapsns.core.errors import ValidationAppError


def create_token_store(app_settings: Settings | None = None) -> AbstractTokenStore:
    """Instantiate the token store selected by TOKEN_STORE_BACKEND.

    Args:
        app_settings: Settings to read; defaults to the global settings.

    Returns:
        AbstractTokenStore: RedisTokenStore (default) or InertTokenStore.

    Raises:
        ValidationAppError: If the backend name is unknown.
    """
    cfg = app_settings or default_settings
    backend = cfg.token_store.backend.strip().lower()

    if backend == "redis":
        return RedisTokenStore.from_settings(cfg.redis)

    if backend == "inert":
        return InertTokenStore()

    # An embedded (in-process) backend would be wired here

    raise ValidationAppError(
        code="token_store_unknown_backend",
        message=f"Unknown token store backend: '{backend}'. Supported backends: redis, inert",
        details={"backend": backend},
    )

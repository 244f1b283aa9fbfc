"""Redis-backed token store.

Key layout:
- ``refresh:{jti}``   -> refresh token payload
- ``blacklist:{jti}`` -> "1" (presence marker)

Both are written with Redis native expiry, so no sweep is needed. Every Redis
failure is logged (jti and error only, never the payload) and re-raised as
StoreUnavailableError.
"""

from __future__ import annotations

import logging
from typing import TYPE_CHECKING

import redis
from redis.exceptions import RedisError

from mapsns.adapters.token_store.base import (
    AbstractTokenStore,
    blacklist_key,
    refresh_key,
    validate_jti,
    validate_ttl,
)
from mapsns.core.errors import SERVICE_UNAVAILABLE_CODE, StoreUnavailableError

if TYPE_CHECKING:
    from mapsns.core.config import RedisSettings

logger = logging.getLogger(__name__)

BLACKLIST_MARKER = "1"


class RedisTokenStore(AbstractTokenStore):
    """Token store using a synchronous redis-py client.

    Calls block the calling worker and are bounded by the client's socket
    timeouts.
    """

    backend_name = "redis"

    def __init__(self, client: redis.Redis) -> None:
        """Initialize the store.

        Args:
            client: redis-py client created with ``decode_responses=True``.
        """
        self._client = client

    @classmethod
    def from_settings(cls, cfg: "RedisSettings") -> "RedisTokenStore":
        client = redis.Redis.from_url(
            cfg.url,
            decode_responses=True,
            socket_timeout=cfg.socket_timeout_seconds,
            socket_connect_timeout=cfg.connect_timeout_seconds,
        )
        return cls(client)

    def _fail(self, operation: str, jti: str | None, exc: RedisError) -> StoreUnavailableError:
        logger.error(
            f"token_store.{operation}_failed",
            extra={
                "jti": jti,
                "backend": self.backend_name,
                "error_type": type(exc).__name__,
                "error_msg": str(exc),
            },
        )
        return StoreUnavailableError(
            code=SERVICE_UNAVAILABLE_CODE,
            message="Token store is temporarily unavailable",
            details={"operation": operation, "backend": self.backend_name},
        )

    def save_refresh_token(self, jti: str, payload: str, ttl_seconds: int) -> None:
        validate_jti(jti)
        validate_ttl(ttl_seconds)
        try:
            self._client.set(refresh_key(jti), payload, ex=ttl_seconds)
        except RedisError as exc:
            raise self._fail("save_refresh", jti, exc) from exc
        logger.debug("token_store.refresh_saved", extra={"jti": jti, "ttl_s": ttl_seconds})

    def get_refresh_token(self, jti: str) -> str | None:
        validate_jti(jti)
        try:
            return self._client.get(refresh_key(jti))
        except RedisError as exc:
            raise self._fail("get_refresh", jti, exc) from exc

    def delete_refresh_token(self, jti: str) -> bool:
        validate_jti(jti)
        try:
            deleted = self._client.delete(refresh_key(jti))
        except RedisError as exc:
            raise self._fail("delete_refresh", jti, exc) from exc
        logger.debug("token_store.refresh_deleted", extra={"jti": jti, "deleted": deleted > 0})
        return deleted > 0

    def add_to_blacklist(self, jti: str, ttl_seconds: int) -> None:
        validate_jti(jti)
        validate_ttl(ttl_seconds)
        try:
            self._client.set(blacklist_key(jti), BLACKLIST_MARKER, ex=ttl_seconds)
        except RedisError as exc:
            raise self._fail("blacklist_add", jti, exc) from exc
        logger.debug("token_store.blacklisted", extra={"jti": jti, "ttl_s": ttl_seconds})

    def is_blacklisted(self, jti: str) -> bool:
        validate_jti(jti)
        try:
            return self._client.exists(blacklist_key(jti)) > 0
        except RedisError as exc:
            raise self._fail("blacklist_check", jti, exc) from exc

    def ping(self) -> bool:
        try:
            return bool(self._client.ping())
        except RedisError as exc:
            raise self._fail("ping", None, exc) from exc

    def close(self) -> None:
        self._client.close()

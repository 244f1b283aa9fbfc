"""Token store that stores nothing.

For environments without Redis (local runs, tests). Every refresh token reads
as absent and nothing is ever blacklisted, so revocation is effectively off.
"""

from __future__ import annotations

import logging

from mapsns.adapters.token_store.base import AbstractTokenStore

logger = logging.getLogger(__name__)


class InertTokenStore(AbstractTokenStore):
    """No-op TokenStore. Never use it in a real deployment."""

    backend_name = "inert"

    def __init__(self) -> None:
        logger.warning(
            "token_store.inert_enabled",
            extra={"backend": self.backend_name, "revocation": "disabled"},
        )

    def save_refresh_token(self, jti: str, payload: str, ttl_seconds: int) -> None:
        return None

    def get_refresh_token(self, jti: str) -> str | None:
        return None

    def delete_refresh_token(self, jti: str) -> bool:
        return False

    def add_to_blacklist(self, jti: str, ttl_seconds: int) -> None:
        return None

    def is_blacklisted(self, jti: str) -> bool:
        return False

    def ping(self) -> bool:
        return True

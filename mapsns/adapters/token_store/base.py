"""Token store interface.

Refresh tokens and access-token revocations are persisted by jti, each with a
time-to-live. Implementations must let infrastructure failures surface as
StoreUnavailableError; answering "absent" or "not blacklisted" on failure
would let a revoked credential through.
"""

from __future__ import annotations

from abc import ABC, abstractmethod

REFRESH_KEY_PREFIX = "refresh:"
BLACKLIST_KEY_PREFIX = "blacklist:"


def refresh_key(jti: str) -> str:
    return f"{REFRESH_KEY_PREFIX}{jti}"


def blacklist_key(jti: str) -> str:
    return f"{BLACKLIST_KEY_PREFIX}{jti}"


def validate_jti(jti: str) -> None:
    if not jti:
        raise ValueError("jti must be a non-empty string")


def validate_ttl(ttl_seconds: int) -> None:
    if ttl_seconds < 1:
        raise ValueError("ttl_seconds must be >= 1")


class AbstractTokenStore(ABC):
    """Interface for refresh token persistence and access token revocation."""

    backend_name: str = "abstract"

    @abstractmethod
    def save_refresh_token(self, jti: str, payload: str, ttl_seconds: int) -> None:
        """Upsert a refresh token record that expires after ``ttl_seconds``.

        Args:
            jti: Token identifier.
            payload: Opaque value, conventionally ``"<subject_id>:<ROLE>"``.
            ttl_seconds: Lifetime of the record.

        Raises:
            StoreUnavailableError: If the backing store is unreachable.
        """
        raise NotImplementedError

    @abstractmethod
    def get_refresh_token(self, jti: str) -> str | None:
        """Return the stored payload, or None when missing or expired.

        Raises:
            StoreUnavailableError: On infrastructure failure (never mapped to None).
        """
        raise NotImplementedError

    @abstractmethod
    def delete_refresh_token(self, jti: str) -> bool:
        """Remove a refresh token record; deleting an unknown jti is a no-op.

        Returns:
            True only for the call that actually removed the record, so
            concurrent deleters of one jti see exactly one True.
        """
        raise NotImplementedError

    @abstractmethod
    def add_to_blacklist(self, jti: str, ttl_seconds: int) -> None:
        """Revoke an access token until its natural expiry.

        Args:
            jti: Access token identifier.
            ttl_seconds: Remaining validity of the access token.
        """
        raise NotImplementedError

    @abstractmethod
    def is_blacklisted(self, jti: str) -> bool:
        """Return True iff a live revocation entry exists for ``jti``."""
        raise NotImplementedError

    @abstractmethod
    def ping(self) -> bool:
        """Check that the backing store answers (readiness probe)."""
        raise NotImplementedError

    def close(self) -> None:
        """Release connections held by the store."""
        return None

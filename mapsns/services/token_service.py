"""Refresh token and revocation lifecycle on top of a token store.

Signing and verifying tokens happens elsewhere; this service only receives
the claims it needs (jti, subject, role, remaining lifetime).

Fail-closed policy: StoreUnavailableError raised by the store is never caught
here. It reaches the HTTP layer, which answers 503, so an unreachable store
can neither admit a revoked credential nor reject a valid one as invalid.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass

from mapsns.adapters.token_store.base import AbstractTokenStore
from mapsns.core.errors import AuthenticationAppError

logger = logging.getLogger(__name__)

PAYLOAD_SEPARATOR = ":"


@dataclass(frozen=True)
class RefreshTokenClaims:
    """Identity stored alongside a refresh token."""

    subject_id: str
    role: str

    def to_payload(self) -> str:
        return f"{self.subject_id}{PAYLOAD_SEPARATOR}{self.role}"

    @classmethod
    def from_payload(cls, payload: str) -> "RefreshTokenClaims":
        """Parse ``"<subject_id>:<ROLE>"``.

        Raises:
            ValueError: If either part is missing.
        """
        subject_id, sep, role = payload.rpartition(PAYLOAD_SEPARATOR)
        if not sep or not subject_id or not role:
            raise ValueError("refresh token payload must look like '<subject_id>:<role>'")
        return cls(subject_id=subject_id, role=role)


class TokenLifecycleService:
    """Issue, rotate and revoke refresh tokens; check access token revocation."""

    def __init__(self, store: AbstractTokenStore) -> None:
        self._store = store

    @property
    def store(self) -> AbstractTokenStore:
        return self._store

    def issue_refresh_token(self, jti: str, subject_id: str, role: str, ttl_seconds: int) -> None:
        claims = RefreshTokenClaims(subject_id=str(subject_id), role=role)
        self._store.save_refresh_token(jti, claims.to_payload(), ttl_seconds)
        logger.info("auth.refresh_issued", extra={"jti": jti, "ttl_s": ttl_seconds})

    def resolve_refresh_token(self, jti: str) -> RefreshTokenClaims:
        """Look up the identity bound to a refresh token.

        Raises:
            AuthenticationAppError: If the token is unknown, expired or revoked,
                or its stored payload cannot be parsed.
            StoreUnavailableError: If the store cannot be reached.
        """
        payload = self._store.get_refresh_token(jti)
        if payload is None:
            logger.warning("auth.refresh_rejected", extra={"jti": jti, "reason": "not_found"})
            raise AuthenticationAppError(
                code="refresh_token_revoked",
                message="Refresh token is expired or has been revoked",
            )

        try:
            return RefreshTokenClaims.from_payload(payload)
        except ValueError as exc:
            logger.error("auth.refresh_rejected", extra={"jti": jti, "reason": "malformed"})
            raise AuthenticationAppError(
                code="refresh_token_malformed",
                message="Refresh token record is malformed",
            ) from exc

    def rotate_refresh_token(
        self,
        old_jti: str,
        new_jti: str,
        ttl_seconds: int,
        *,
        access_jti: str | None = None,
        access_ttl_remaining: int = 0,
    ) -> RefreshTokenClaims:
        """Replace a refresh token with a new one carrying the same identity.

        The old token is single-use: of several concurrent rotations of one
        ``old_jti`` only the one whose delete removes the record succeeds, and
        the others discard the token they just saved. The new token is saved
        before the old one is deleted, so a store failure in between leaves
        the old token usable. The superseded access token (if given and still
        alive) is blacklisted.

        Returns:
            The claims carried over to the new token.

        Raises:
            AuthenticationAppError: If ``old_jti`` is unknown, malformed or was
                already rotated.
            StoreUnavailableError: If the store cannot be reached.
        """
        claims = self.resolve_refresh_token(old_jti)
        self._store.save_refresh_token(new_jti, claims.to_payload(), ttl_seconds)
        if not self._store.delete_refresh_token(old_jti):
            self._store.delete_refresh_token(new_jti)
            logger.warning("auth.refresh_rejected", extra={"jti": old_jti, "reason": "reused"})
            raise AuthenticationAppError(
                code="refresh_token_revoked",
                message="Refresh token is expired or has been revoked",
            )
        self._revoke_access_token(access_jti, access_ttl_remaining)
        logger.info(
            "auth.refresh_rotated",
            extra={"old_jti": old_jti, "new_jti": new_jti, "ttl_s": ttl_seconds},
        )
        return claims

    def revoke_session(
        self,
        refresh_jti: str,
        *,
        access_jti: str | None = None,
        access_ttl_remaining: int = 0,
    ) -> None:
        """Logout: drop the refresh token and revoke the current access token."""

        self._store.delete_refresh_token(refresh_jti)
        self._revoke_access_token(access_jti, access_ttl_remaining)
        logger.info("auth.session_revoked", extra={"jti": refresh_jti})

    def ensure_access_token_active(self, jti: str) -> None:
        """Raise if the access token has been revoked before its expiry.

        Raises:
            AuthenticationAppError: If ``jti`` is blacklisted.
            StoreUnavailableError: If the store cannot be reached.
        """
        if self._store.is_blacklisted(jti):
            logger.warning("auth.access_rejected", extra={"jti": jti, "reason": "blacklisted"})
            raise AuthenticationAppError(
                code="access_token_revoked",
                message="Access token has been revoked",
            )

    def _revoke_access_token(self, access_jti: str | None, ttl_remaining: int) -> None:
        # An already expired access token needs no blacklist entry
        if not access_jti or ttl_remaining < 1:
            return
        self._store.add_to_blacklist(access_jti, ttl_remaining)

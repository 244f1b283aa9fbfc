"""Tests for the refresh token and revocation lifecycle service."""

from __future__ import annotations

import threading
import time
from unittest.mock import MagicMock

import pytest

from mapsns.adapters.token_store.base import AbstractTokenStore
from mapsns.core.errors import AuthenticationAppError, StoreUnavailableError
from mapsns.services.token_service import RefreshTokenClaims, TokenLifecycleService


class DictTokenStore(AbstractTokenStore):
    """In-test store keeping records in plain dicts (no expiry)."""

    backend_name = "dict"

    def __init__(self) -> None:
        self.refresh: dict[str, str] = {}
        self.blacklist: dict[str, int] = {}

    def save_refresh_token(self, jti, payload, ttl_seconds):
        self.refresh[jti] = payload

    def get_refresh_token(self, jti):
        return self.refresh.get(jti)

    def delete_refresh_token(self, jti):
        return self.refresh.pop(jti, None) is not None

    def add_to_blacklist(self, jti, ttl_seconds):
        self.blacklist[jti] = ttl_seconds

    def is_blacklisted(self, jti):
        return jti in self.blacklist

    def ping(self):
        return True


def _unavailable() -> StoreUnavailableError:
    return StoreUnavailableError(code="E503", message="Token store is temporarily unavailable")


@pytest.fixture
def store() -> DictTokenStore:
    return DictTokenStore()


@pytest.fixture
def service(store: DictTokenStore) -> TokenLifecycleService:
    return TokenLifecycleService(store)


def test_claims_payload_format() -> None:
    claims = RefreshTokenClaims(subject_id="42", role="USER")

    assert claims.to_payload() == "42:USER"
    assert RefreshTokenClaims.from_payload("42:USER") == claims


@pytest.mark.parametrize("payload", ["", "42", "42:", ":USER"])
def test_claims_reject_malformed_payload(payload: str) -> None:
    with pytest.raises(ValueError):
        RefreshTokenClaims.from_payload(payload)


def test_issue_then_resolve(service, store) -> None:
    service.issue_refresh_token("r1", 42, "USER", 1209600)

    assert store.refresh["r1"] == "42:USER"
    assert service.resolve_refresh_token("r1") == RefreshTokenClaims("42", "USER")


def test_resolve_unknown_token_is_rejected(service) -> None:
    with pytest.raises(AuthenticationAppError) as exc_info:
        service.resolve_refresh_token("missing")

    assert exc_info.value.code == "refresh_token_revoked"


def test_resolve_malformed_record_is_rejected(service, store) -> None:
    store.refresh["r1"] = "garbage"

    with pytest.raises(AuthenticationAppError) as exc_info:
        service.resolve_refresh_token("r1")

    assert exc_info.value.code == "refresh_token_malformed"


def test_rotate_replaces_token_and_revokes_access(service, store) -> None:
    service.issue_refresh_token("r1", "42", "ADMIN", 600)

    claims = service.rotate_refresh_token("r1", "r2", 600, access_jti="a1", access_ttl_remaining=120)

    assert claims == RefreshTokenClaims("42", "ADMIN")
    assert "r1" not in store.refresh
    assert store.refresh["r2"] == "42:ADMIN"
    assert store.blacklist == {"a1": 120}


def test_rotated_token_cannot_be_reused(service) -> None:
    service.issue_refresh_token("r1", "42", "USER", 600)
    service.rotate_refresh_token("r1", "r2", 600)

    with pytest.raises(AuthenticationAppError):
        service.rotate_refresh_token("r1", "r3", 600)


class SlowReadTokenStore(DictTokenStore):
    """Widens the window between reading and deleting a refresh token."""

    def get_refresh_token(self, jti):
        payload = super().get_refresh_token(jti)
        time.sleep(0.05)
        return payload


def test_concurrent_rotations_of_one_token_succeed_once() -> None:
    store = SlowReadTokenStore()
    service = TokenLifecycleService(store)
    service.issue_refresh_token("old", "u1", "USER", 600)
    barrier = threading.Barrier(2)
    outcomes = []
    lock = threading.Lock()

    def rotate(new_jti: str) -> None:
        barrier.wait()
        try:
            service.rotate_refresh_token("old", new_jti, 600)
            outcome = ("ok", new_jti)
        except AuthenticationAppError as exc:
            outcome = ("rejected", exc.code)
        with lock:
            outcomes.append(outcome)

    threads = [threading.Thread(target=rotate, args=(jti,)) for jti in ("new-a", "new-b")]
    for t in threads:
        t.start()
    for t in threads:
        t.join()

    winners = [jti for status, jti in outcomes if status == "ok"]
    assert len(winners) == 1
    assert ("rejected", "refresh_token_revoked") in outcomes
    assert store.refresh == {winners[0]: "u1:USER"}


def test_failed_save_keeps_old_token_usable(store) -> None:
    service = TokenLifecycleService(store)
    service.issue_refresh_token("r1", "42", "USER", 600)
    store.save_refresh_token = MagicMock(side_effect=_unavailable())

    with pytest.raises(StoreUnavailableError):
        service.rotate_refresh_token("r1", "r2", 600, access_jti="a1", access_ttl_remaining=60)

    assert store.refresh == {"r1": "42:USER"}
    assert store.blacklist == {}


def test_revoke_session(service, store) -> None:
    service.issue_refresh_token("r1", "42", "USER", 600)

    service.revoke_session("r1", access_jti="a1", access_ttl_remaining=300)

    assert store.refresh == {}
    assert store.is_blacklisted("a1")
    with pytest.raises(AuthenticationAppError) as exc_info:
        service.ensure_access_token_active("a1")
    assert exc_info.value.code == "access_token_revoked"


@pytest.mark.parametrize(("access_jti", "ttl"), [(None, 300), ("a1", 0), ("a1", -3)])
def test_expired_or_missing_access_token_is_not_blacklisted(service, store, access_jti, ttl) -> None:
    service.revoke_session("r1", access_jti=access_jti, access_ttl_remaining=ttl)

    assert store.blacklist == {}


def test_active_access_token_passes(service) -> None:
    service.ensure_access_token_active("a-live")


@pytest.mark.parametrize(
    ("store_method", "call"),
    [
        ("get_refresh_token", lambda s: s.resolve_refresh_token("r1")),
        ("is_blacklisted", lambda s: s.ensure_access_token_active("a1")),
        ("save_refresh_token", lambda s: s.issue_refresh_token("r1", "42", "USER", 60)),
        ("delete_refresh_token", lambda s: s.revoke_session("r1")),
    ],
)
def test_store_outage_propagates(store_method, call) -> None:
    store = MagicMock(spec=AbstractTokenStore)
    getattr(store, store_method).side_effect = _unavailable()
    service = TokenLifecycleService(store)

    with pytest.raises(StoreUnavailableError):
        call(service)

"""Pytest configuration and fixtures shared across all test modules.

Environment defaults are set before any import of mapsns so the global
settings never try to reach a real Redis during tests.
"""

import os

# CRITICAL: Set this before any imports that might load settings
os.environ.setdefault("APP_ENV", "testing")
os.environ.setdefault("TOKEN_STORE_BACKEND", "inert")
os.environ.setdefault("TOKEN_STORE_VERIFY_ON_STARTUP", "false")
os.environ.setdefault("LOG_LEVEL", "WARNING")

import pytest
from fastapi.testclient import TestClient

from mapsns.adapters.token_store.inert import InertTokenStore
from mapsns.core.app_factory import create_app
from mapsns.core.config import RateLimitSettings, Settings


class FakeClock:
    """Manually advanced clock for deterministic bucket refill."""

    def __init__(self, start: float = 1000.0) -> None:
        self.now = start

    def __call__(self) -> float:
        return self.now

    def advance(self, seconds: float) -> None:
        self.now += seconds


@pytest.fixture
def clock() -> FakeClock:
    return FakeClock()


@pytest.fixture
def make_settings():
    """Build Settings with overridden rate limit values."""

    def _make(**rate_limit_overrides) -> Settings:
        return Settings(rate_limit=RateLimitSettings(**rate_limit_overrides))

    return _make


@pytest.fixture
def client(make_settings) -> TestClient:
    """Test client over a fresh app (fresh buckets) with an inert token store."""

    app = create_app(make_settings(), token_store=InertTokenStore())
    return TestClient(app)

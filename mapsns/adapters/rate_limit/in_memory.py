"""In-memory token bucket rate limiter.

Notes:
- Per-process only: running multiple workers multiplies the effective limit.
- Thread-safe: one lock per bucket, no lock across buckets.
"""

from __future__ import annotations

import logging
import time
from typing import Callable, Mapping

from mapsns.adapters.rate_limit.base import UNMANAGED, AbstractRateLimiter, RateLimitDecision
from mapsns.adapters.rate_limit.bucket import BucketPolicy
from mapsns.adapters.rate_limit.registry import BucketRegistry
from mapsns.adapters.rate_limit.routes import RouteClass, bucket_key, classify_route
from mapsns.core.config import RateLimitSettings
from mapsns.core.logging import mask_client_key

logger = logging.getLogger(__name__)


def policies_from_settings(cfg: RateLimitSettings) -> dict[RouteClass, BucketPolicy]:
    """Build one BucketPolicy per route class from configuration."""

    return {
        RouteClass.LOGIN: BucketPolicy(cfg.login_capacity, cfg.login_period_seconds),
        RouteClass.SIGNUP: BucketPolicy(cfg.signup_capacity, cfg.signup_period_seconds),
        RouteClass.REFRESH: BucketPolicy(cfg.refresh_capacity, cfg.refresh_period_seconds),
        RouteClass.PUBLIC_READ: BucketPolicy(
            cfg.public_api_capacity, cfg.public_api_period_seconds
        ),
    }


class InMemoryTokenBucketRateLimiter(AbstractRateLimiter):
    """Rate limiter keeping one token bucket per (route class, client).

    Important:
        This limiter is per-process only. If the API runs with multiple workers
        (e.g., multiple Uvicorn/Gunicorn workers), each worker will enforce its
        own independent limits.
    """

    def __init__(
        self,
        *,
        policies: Mapping[RouteClass, BucketPolicy],
        registry: BucketRegistry | None = None,
        clock: Callable[[], float] = time.monotonic,
    ) -> None:
        """Initialize the limiter.

        Args:
            policies: Policy for every RouteClass.
            registry: Bucket registry (a fresh one by default).
            clock: Time source in seconds; only differences are used.

        Raises:
            ValueError: If a route class has no policy.
        """
        missing = [rc.name for rc in RouteClass if rc not in policies]
        if missing:
            raise ValueError(f"missing rate limit policy for: {', '.join(missing)}")

        self._policies = dict(policies)
        self._registry = registry if registry is not None else BucketRegistry()
        self._clock = clock

    @classmethod
    def from_settings(
        cls,
        cfg: RateLimitSettings,
        *,
        clock: Callable[[], float] = time.monotonic,
    ) -> "InMemoryTokenBucketRateLimiter":
        return cls(
            policies=policies_from_settings(cfg),
            registry=BucketRegistry(
                idle_eviction_periods=cfg.idle_eviction_periods,
                sweep_interval_seconds=cfg.sweep_interval_seconds,
            ),
            clock=clock,
        )

    @property
    def registry(self) -> BucketRegistry:
        return self._registry

    def policy_for(self, route_class: RouteClass) -> BucketPolicy:
        return self._policies[route_class]

    def allow(self, method: str, path: str, client_key: str) -> RateLimitDecision:
        """Consume one token from the request's bucket, if it is rate limited.

        Args:
            method: HTTP method.
            path: Request path without query string.
            client_key: Resolved client identifier.

        Returns:
            RateLimitDecision with retry guidance when rejected.
        """
        route_class = classify_route(method, path)
        if route_class is None:
            return UNMANAGED

        policy = self._policies[route_class]
        key = bucket_key(route_class, client_key or "unknown")
        now = self._clock()
        self._registry.maybe_sweep(now)

        # A bucket retired between lookup and consume is swapped out on the next lookup
        result = None
        while result is None:
            bucket = self._registry.get_or_create(key, policy, now=now)
            result = bucket.try_consume(now)

        if result.consumed:
            logger.debug(
                "rate_limit.allowed",
                extra={
                    "route_class": route_class.value,
                    "remaining": result.remaining,
                    "limit": policy.capacity,
                },
            )
            return RateLimitDecision(
                allowed=True,
                route_class=route_class,
                limit=policy.capacity,
                remaining=result.remaining,
            )

        logger.warning(
            "rate_limit.exceeded",
            extra={
                "method": method,
                "path": path,
                "client_key_masked": mask_client_key(client_key),
                "route_class": route_class.value,
                "limit": policy.capacity,
                "period_s": policy.period_seconds,
                "retry_after_s": result.retry_after_seconds,
            },
        )
        return RateLimitDecision(
            allowed=False,
            retry_after_seconds=result.retry_after_seconds,
            route_class=route_class,
            limit=policy.capacity,
            remaining=0,
        )

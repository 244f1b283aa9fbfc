"""Rate limiter interfaces.

The HTTP layer depends on this abstraction (not the concrete implementation)
so the bucket storage can move to a shared store later without touching the
request filter.
"""

from __future__ import annotations

from abc import ABC, abstractmethod
from dataclasses import dataclass

from mapsns.adapters.rate_limit.routes import RouteClass


@dataclass(frozen=True)
class RateLimitDecision:
    """Result of a rate limit check.

    Attributes:
        allowed: Whether the request may proceed.
        retry_after_seconds: Seconds until a token is available (0 when allowed).
        route_class: Matched route class, or None for unmanaged requests.
        limit: Bucket capacity (None for unmanaged requests).
        remaining: Whole tokens left after this decision (None for unmanaged).
    """

    allowed: bool
    retry_after_seconds: int = 0
    route_class: RouteClass | None = None
    limit: int | None = None
    remaining: int | None = None


UNMANAGED = RateLimitDecision(allowed=True)


class AbstractRateLimiter(ABC):
    """Interface for request rate limiters."""

    @abstractmethod
    def allow(self, method: str, path: str, client_key: str) -> RateLimitDecision:
        """Decide whether a request may proceed, consuming budget if so.

        Args:
            method: HTTP method.
            path: Request path.
            client_key: Resolved client identifier (e.g., IP address).

        Returns:
            RateLimitDecision; never raises for a rejected request.
        """
        raise NotImplementedError

"""Rate limiting adapters.

Token buckets keyed by (route class, client), kept in a process-wide
registry behind the AbstractRateLimiter interface so the HTTP filter does not
depend on where the buckets live.
"""

from mapsns.adapters.rate_limit.base import AbstractRateLimiter, RateLimitDecision
from mapsns.adapters.rate_limit.bucket import BucketPolicy, TokenBucket
from mapsns.adapters.rate_limit.in_memory import InMemoryTokenBucketRateLimiter
from mapsns.adapters.rate_limit.registry import BucketRegistry
from mapsns.adapters.rate_limit.routes import RouteClass, classify_route

__all__ = [
    "AbstractRateLimiter",
    "BucketPolicy",
    "BucketRegistry",
    "InMemoryTokenBucketRateLimiter",
    "RateLimitDecision",
    "RouteClass",
    "TokenBucket",
    "classify_route",
]

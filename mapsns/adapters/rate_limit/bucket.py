"""Token bucket state for a single (route class, client) pair.

Refill is computed lazily from elapsed time whenever the bucket is touched;
there is no background timer. Each bucket owns its lock, so contention is
limited to requests that share the same bucket.
"""

from __future__ import annotations

import math
import threading
from dataclasses import dataclass


@dataclass(frozen=True)
class BucketPolicy:
    """Capacity and refill period shared by all buckets of one route class.

    Attributes:
        capacity: Maximum tokens held (burst size).
        period_seconds: Time to regenerate a full bucket.
    """

    capacity: int
    period_seconds: int

    def __post_init__(self) -> None:
        if self.capacity < 1:
            raise ValueError("capacity must be >= 1")
        if self.period_seconds < 1:
            raise ValueError("period_seconds must be >= 1")


@dataclass(frozen=True)
class ConsumeResult:
    """Outcome of one consume attempt against a bucket."""

    consumed: bool
    remaining: int
    retry_after_seconds: int


class TokenBucket:
    """Greedy token bucket starting full.

    Tokens regenerate continuously at ``capacity / period_seconds`` per second
    and never exceed ``capacity``.
    """

    __slots__ = ("policy", "_tokens", "_last_refill_at", "_lock", "_retired")

    def __init__(self, policy: BucketPolicy, *, now: float) -> None:
        self.policy = policy
        self._tokens = float(policy.capacity)
        self._last_refill_at = now
        self._lock = threading.Lock()
        self._retired = False

    def __repr__(self) -> str:  # pragma: no cover - representation only
        return (
            f"TokenBucket(capacity={self.policy.capacity}, "
            f"period_seconds={self.policy.period_seconds}, tokens={self._tokens:.3f})"
        )

    @property
    def last_refill_at(self) -> float:
        return self._last_refill_at

    @property
    def retired(self) -> bool:
        return self._retired

    def _refill(self, now: float) -> None:
        # A clock that went backwards must not mint tokens
        elapsed = now - self._last_refill_at
        if elapsed <= 0:
            return
        regenerated = elapsed * self.policy.capacity / self.policy.period_seconds
        self._tokens = min(float(self.policy.capacity), self._tokens + regenerated)
        self._last_refill_at = now

    def _seconds_until_next_token(self) -> int:
        missing = 1.0 - self._tokens
        wait = missing * self.policy.period_seconds / self.policy.capacity
        return max(1, math.ceil(wait))

    def try_consume(self, now: float) -> ConsumeResult | None:
        """Refill and take one token atomically.

        Args:
            now: Current time from the limiter's clock (seconds).

        Returns:
            ConsumeResult, or None if the bucket was retired by an idle sweep
            and the caller must look up a fresh one.
        """
        with self._lock:
            if self._retired:
                return None
            self._refill(now)
            if self._tokens >= 1.0:
                self._tokens -= 1.0
                return ConsumeResult(
                    consumed=True,
                    remaining=int(self._tokens),
                    retry_after_seconds=0,
                )
            return ConsumeResult(
                consumed=False,
                remaining=0,
                retry_after_seconds=self._seconds_until_next_token(),
            )

    def retire_if_idle(self, now: float, idle_seconds: float) -> bool:
        """Mark the bucket retired when untouched for at least ``idle_seconds``.

        Once retired the bucket refuses every consume attempt.
        """
        with self._lock:
            if self._retired:
                return True
            if now - self._last_refill_at < idle_seconds:
                return False
            self._retired = True
            return True

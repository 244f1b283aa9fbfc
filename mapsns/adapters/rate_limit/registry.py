"""Process-wide map from bucket key to TokenBucket.

Get-or-create goes through ``dict.setdefault`` so concurrent creators for the
same key always end up sharing one bucket. No lock spans the whole map on the
hot path. The sweep lock is taken non-blocking, so requests never wait for a
sweep; the swap lock is only taken to replace or delete a retired bucket.
"""

from __future__ import annotations

import logging
import threading

from mapsns.adapters.rate_limit.bucket import BucketPolicy, TokenBucket

logger = logging.getLogger(__name__)


class BucketRegistry:
    """Concurrent registry of token buckets with idle eviction.

    A bucket untouched for ``idle_eviction_periods`` multiples of its own
    period has fully refilled, so dropping it is indistinguishable from
    keeping it. Sweeps run inline (at most once per ``sweep_interval_seconds``)
    from :meth:`maybe_sweep`.
    """

    def __init__(
        self,
        *,
        idle_eviction_periods: int = 10,
        sweep_interval_seconds: int = 60,
    ) -> None:
        if idle_eviction_periods < 1:
            raise ValueError("idle_eviction_periods must be >= 1")
        if sweep_interval_seconds < 1:
            raise ValueError("sweep_interval_seconds must be >= 1")

        self._buckets: dict[str, TokenBucket] = {}
        self._idle_eviction_periods = idle_eviction_periods
        self._sweep_interval_seconds = sweep_interval_seconds
        self._sweep_lock = threading.Lock()
        self._swap_lock = threading.Lock()
        self._last_sweep_at: float | None = None

    def __len__(self) -> int:
        return len(self._buckets)

    def __contains__(self, key: object) -> bool:
        return key in self._buckets

    def get_or_create(self, key: str, policy: BucketPolicy, *, now: float) -> TokenBucket:
        """Return the bucket for ``key``, creating it on first use.

        Args:
            key: Composite bucket key (route class + client key).
            policy: Policy used when the bucket has to be created.
            now: Current clock reading, used as the new bucket's refill origin.

        Returns:
            The single live TokenBucket registered for ``key``; a retired one is
            replaced rather than returned.
        """
        bucket = self._buckets.get(key)
        if bucket is None:
            # Losers of a creation race discard their candidate and adopt the winner
            bucket = self._buckets.setdefault(key, TokenBucket(policy, now=now))
        if not bucket.retired:
            return bucket
        return self._replace_retired(key, policy, now)

    def _replace_retired(self, key: str, policy: BucketPolicy, now: float) -> TokenBucket:
        # Keys are only deleted under this lock, so a present key cannot vanish here
        with self._swap_lock:
            current = self._buckets.get(key)
            if current is None:
                return self._buckets.setdefault(key, TokenBucket(policy, now=now))
            if current.retired:
                current = TokenBucket(policy, now=now)
                self._buckets[key] = current
            return current

    def maybe_sweep(self, now: float) -> int:
        """Run an idle sweep if the interval has elapsed and nobody else is sweeping.

        Returns:
            Number of buckets evicted (0 when the sweep was skipped).
        """
        if self._last_sweep_at is not None and now - self._last_sweep_at < self._sweep_interval_seconds:
            return 0
        if not self._sweep_lock.acquire(blocking=False):
            return 0
        try:
            if self._last_sweep_at is not None and now - self._last_sweep_at < self._sweep_interval_seconds:
                return 0
            self._last_sweep_at = now
            return self._sweep(now)
        finally:
            self._sweep_lock.release()

    def _sweep(self, now: float) -> int:
        evicted = 0
        for key, bucket in list(self._buckets.items()):
            idle_seconds = bucket.policy.period_seconds * self._idle_eviction_periods
            if not bucket.retire_if_idle(now, idle_seconds):
                continue
            with self._swap_lock:
                # A consumer may already have swapped in a fresh bucket
                if self._buckets.get(key) is bucket:
                    del self._buckets[key]
                    evicted += 1

        if evicted:
            logger.info(
                "rate_limit.buckets_evicted",
                extra={"evicted": evicted, "remaining_buckets": len(self._buckets)},
            )
        return evicted

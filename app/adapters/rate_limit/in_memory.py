"""In-memory sliding-window rate limiter.

Notes:
- Per-process only: running multiple workers multiplies the effective limit.
- Thread-safe: uses a lock around shared state.
"""

from __future__ import annotations

import logging
import math
import threading
import time
from collections import deque
from typing import Callable, Iterable

from app.adapters.rate_limit.base import AbstractRateLimiter, RateLimitResult, RateLimiterStats

logger = logging.getLogger(__name__)


class InMemorySlidingWindowRateLimiter(AbstractRateLimiter):
    """Rate limiter counting request timestamps over a trailing window.

    A key is blocked while it has ``limit`` or more timestamps newer than
    ``now - window_seconds``. A timestamp exactly ``window_seconds`` old no
    longer counts. Stale timestamps are dropped lazily on access and by
    :meth:`sweep`; they never affect a decision.

    Important:
        This limiter is per-process only. If the API runs with multiple workers
        (e.g., multiple Uvicorn/Gunicorn workers), each worker will enforce its
        own independent limits.
    """

    def __init__(
        self,
        *,
        limit: int = 25,
        window_seconds: float = 30,
        clock: Callable[[], float] = time.monotonic,
    ) -> None:
        """Initialize the in-memory rate limiter.

        Args:
            limit: In-window request count at which a key is blocked.
            window_seconds: Size of the trailing window in seconds.
            clock: Time source in seconds; must not run backwards.

        Raises:
            ValueError: If limit or window_seconds are invalid.
        """
        if limit < 1:
            raise ValueError("limit must be >= 1")
        if window_seconds <= 0:
            raise ValueError("window_seconds must be > 0")

        self._limit = limit
        self._window_seconds = window_seconds
        self._clock = clock
        self._lock = threading.RLock()
        self._timestamps_by_key: dict[str, deque[float]] = {}

    @property
    def limit(self) -> int:
        return self._limit

    @property
    def window_seconds(self) -> float:
        return self._window_seconds

    def _prune_locked(self, key: str, cutoff: float) -> deque[float] | None:
        """Drop timestamps at or before ``cutoff``; forget the key if none remain."""
        timestamps = self._timestamps_by_key.get(key)
        if timestamps is None:
            return None
        while timestamps and timestamps[0] <= cutoff:
            timestamps.popleft()
        if not timestamps:
            del self._timestamps_by_key[key]
            return None
        return timestamps

    def _record_locked(self, key: str, now: float) -> None:
        timestamps = self._timestamps_by_key.get(key)
        if timestamps is None:
            timestamps = deque()
            self._timestamps_by_key[key] = timestamps
        timestamps.append(now)

    def is_allowed(self, key: str) -> bool:
        """Return False iff ``key`` already has ``limit`` requests in the window.

        This is a pure check: the current attempt is not recorded.
        """
        with self._lock:
            now = self._clock()
            timestamps = self._prune_locked(key, now - self._window_seconds)
            count = len(timestamps) if timestamps else 0

        if count >= self._limit:
            logger.info(
                "rate_limit.check_blocked",
                extra={"count": count, "limit": self._limit},
            )
            return False
        return True

    def record_request(self, key: str) -> None:
        with self._lock:
            self._record_locked(key, self._clock())

    def consume(self, keys: Iterable[str]) -> RateLimitResult:
        """Atomically check all keys and record one request against each.

        Nothing is recorded when any key is over the limit, so a rejected
        request never counts against the keys that passed.

        Args:
            keys: Identifiers for one logical request.

        Returns:
            RateLimitResult with allowance decision and metadata.

        Raises:
            ValueError: If no keys are given or a key is empty.
        """
        unique_keys = list(dict.fromkeys(keys))
        if not unique_keys:
            raise ValueError("at least one key is required")
        if not all(unique_keys):
            raise ValueError("keys must be non-empty strings")

        with self._lock:
            now = self._clock()
            cutoff = now - self._window_seconds

            counts: dict[str, int] = {}
            for key in unique_keys:
                timestamps = self._prune_locked(key, cutoff)
                count = len(timestamps) if timestamps else 0
                if count >= self._limit:
                    oldest = timestamps[0] if timestamps else now
                    retry_after = max(1, int(math.ceil(oldest + self._window_seconds - now)))
                    return RateLimitResult(
                        allowed=False,
                        limit=self._limit,
                        remaining=0,
                        retry_after_seconds=retry_after,
                        blocked_key=key,
                    )
                counts[key] = count

            for key in unique_keys:
                self._record_locked(key, now)

        remaining = min(self._limit - (count + 1) for count in counts.values())
        return RateLimitResult(
            allowed=True,
            limit=self._limit,
            remaining=max(0, remaining),
            retry_after_seconds=None,
        )

    def stats(self) -> RateLimiterStats:
        with self._lock:
            return RateLimiterStats(tracked_keys=len(self._timestamps_by_key))

    def sweep(self) -> int:
        """Forget keys whose timestamps have all left the window.

        Returns:
            Number of keys removed.
        """
        with self._lock:
            cutoff = self._clock() - self._window_seconds
            before = len(self._timestamps_by_key)
            for key in list(self._timestamps_by_key):
                self._prune_locked(key, cutoff)
            removed = before - len(self._timestamps_by_key)

        if removed:
            logger.info("rate_limit.sweep", extra={"removed": removed})
        return removed

"""Rate limiter interfaces.

The API depends on this abstraction (not the concrete implementation) so the
storage backend can be swapped later with minimal changes.
"""

from __future__ import annotations

from abc import ABC, abstractmethod
from dataclasses import dataclass
from typing import Iterable


@dataclass(frozen=True)
class RateLimitResult:
    """Result of a multi-key consume operation.

    Attributes:
        allowed: Whether the request is allowed to proceed.
        limit: Request count within the window at which a key is blocked.
        remaining: Requests left in the window for the most constrained key
            (0 when blocked).
        retry_after_seconds: Suggested wait time in seconds when blocked.
        blocked_key: The first key found over the limit, if any.
    """

    allowed: bool
    limit: int
    remaining: int
    retry_after_seconds: int | None
    blocked_key: str | None = None


@dataclass(frozen=True)
class RateLimiterStats:
    """Aggregate counts for monitoring."""

    tracked_keys: int


class AbstractRateLimiter(ABC):
    """Interface for rate limiters."""

    @abstractmethod
    def is_allowed(self, key: str) -> bool:
        """Check whether ``key`` is under the limit without recording anything."""
        raise NotImplementedError

    @abstractmethod
    def record_request(self, key: str) -> None:
        """Count one request against ``key``."""
        raise NotImplementedError

    @abstractmethod
    def consume(self, keys: Iterable[str]) -> RateLimitResult:
        """Check every key, then record one request against each if all pass.

        Args:
            keys: Identifiers consulted for one logical request (e.g. account
                and source address). Duplicates are counted once.

        Returns:
            RateLimitResult describing whether it was allowed.
        """
        raise NotImplementedError

    @abstractmethod
    def stats(self) -> RateLimiterStats:
        raise NotImplementedError

    @abstractmethod
    def sweep(self) -> int:
        """Forget keys with no requests inside the window; return how many."""
        raise NotImplementedError

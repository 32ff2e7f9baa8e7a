"""Rate limiting for the mobile routes.

This module wires the rate limiting adapter into the HTTP layer. Handlers call
``enforce_rate_limit`` once the request has been authenticated and its body
validated, so rejected input never counts against a caller.

Design goals:
- Minimal coupling: API routes call a single function.
- Swap-friendly: storage backend can be replaced behind an abstract interface.

Rate limiting strategy:
- Sliding window per key (default: blocked at 25 requests per 30 seconds).
- Every mobile request is counted against its account (hashed API key) and
  against its source address. Both are checked before either is recorded.
"""

from __future__ import annotations

import hashlib
import logging

from fastapi import HTTPException, Request, status

from app.adapters.rate_limit.base import AbstractRateLimiter
from app.adapters.rate_limit.in_memory import InMemorySlidingWindowRateLimiter
from app.core.config import settings
from app.core.middleware import client_address

logger = logging.getLogger(__name__)


_limiter: AbstractRateLimiter | None = None
_limiter_config: tuple[int, int] | None = None


def get_rate_limiter() -> AbstractRateLimiter:
    """Return a process-wide rate limiter instance.

    The instance is cached in-module to preserve state across requests.
    If configuration changes (primarily in tests), the limiter is rebuilt.

    Returns:
        AbstractRateLimiter: Configured limiter instance.
    """

    global _limiter, _limiter_config

    config = (
        settings.app.rate_limit_requests,
        settings.app.rate_limit_window_seconds,
    )

    if _limiter is None or _limiter_config != config:
        _limiter = InMemorySlidingWindowRateLimiter(
            limit=settings.app.rate_limit_requests,
            window_seconds=settings.app.rate_limit_window_seconds,
        )
        _limiter_config = config

    return _limiter


def build_rate_limit_keys(request: Request, account_id: str | None) -> list[str]:
    """Build the limiter keys for the current request.

    Args:
        request: FastAPI request.
        account_id: Caller identity derived from the API key, if any.

    Returns:
        list[str]: Namespaced limiter keys, account first.
    """

    keys = []
    if account_id:
        keys.append(f"acct:{account_id}")
    keys.append(f"ip:{client_address(request)}")
    return keys


def _hash_limiter_key(key: str) -> str:
    """Hash the rate limit key for logging without exposing addresses."""
    return hashlib.sha256(key.encode()).hexdigest()[:16]


def enforce_rate_limit(request: Request, account_id: str | None) -> None:
    """Count the request against its account and address, or reject it.

    When enabled, checks the account and address keys and, only if both pass,
    records one request against each. Otherwise raises HTTP 429.

    Args:
        request: FastAPI request.
        account_id: Caller identity resolved by verify_api_key.

    Raises:
        HTTPException: 429 Too Many Requests when rate limit is exceeded.
    """

    if not settings.app.rate_limit_enabled:
        return

    limiter = get_rate_limiter()
    keys = build_rate_limit_keys(request, account_id)

    result = limiter.consume(keys)
    if result.allowed:
        logger.debug(
            "rate_limit.allowed",
            extra={
                "key_hashes": [_hash_limiter_key(k) for k in keys],
                "limit": result.limit,
                "remaining": result.remaining,
                "window_s": settings.app.rate_limit_window_seconds,
            },
        )
        return

    blocked_key = result.blocked_key or ""
    key_type = blocked_key.split(":", 1)[0] or "unknown"
    retry_after = result.retry_after_seconds or 0
    logger.warning(
        "rate_limit.exceeded",
        extra={
            "key_type": key_type,
            "key_hash": _hash_limiter_key(blocked_key),
            "limit": result.limit,
            "window_s": settings.app.rate_limit_window_seconds,
            "retry_after_s": retry_after,
        },
    )

    headers: dict[str, str] = {}
    if settings.app.rate_limit_include_headers:
        headers["Retry-After"] = str(retry_after)
        headers["X-RateLimit-Limit"] = str(result.limit)
        headers["X-RateLimit-Remaining"] = str(result.remaining)

    source = "account" if key_type == "acct" else "address"
    raise HTTPException(
        status_code=status.HTTP_429_TOO_MANY_REQUESTS,
        detail=(
            f"Rate limit exceeded: too many requests from this {source}. "
            f"Maximum {result.limit} requests per "
            f"{settings.app.rate_limit_window_seconds} seconds."
        ),
        headers=headers or None,
    )

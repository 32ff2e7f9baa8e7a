"""API key authentication for mobile routes.

Keys are validated against a comma-separated list from environment variables.
A validated key is turned into a stable, non-secret account identity (a short
SHA-256 prefix) that is attached to queued messages and used as the
rate-limit account key. Controller routes are not authenticated.
"""

from __future__ import annotations

import hashlib
import logging
from typing import Annotated

from fastapi import Header, HTTPException, status

from app.core.config import settings
from app.core.errors import AuthenticationAppError

logger = logging.getLogger(__name__)


def parse_api_keys(keys_string: str | None) -> set[str]:
    """Parse comma-separated API keys into a set.

    Args:
        keys_string: Comma-separated string of API keys, or None.

    Returns:
        Set of trimmed, non-empty API keys.

    Examples:
        >>> parse_api_keys("key1, key2 , key3 ") == {"key1", "key2", "key3"}
        True
        >>> parse_api_keys(None)
        set()
    """
    if not keys_string:
        return set()

    return {key.strip() for key in keys_string.split(",") if key.strip()}


def account_id_for(api_key: str) -> str:
    """Derive the account identity for an API key without exposing it."""
    return hashlib.sha256(api_key.encode()).hexdigest()[:16]


def is_auth_configured() -> bool:
    """Whether mobile authentication can succeed with the current settings."""
    return not settings.app.api_key_required or bool(parse_api_keys(settings.app.api_keys))


def validate_api_key(provided_key: str) -> None:
    """Validate that provided API key matches configured keys.

    Pure validation logic without FastAPI dependencies for easy testing.

    Args:
        provided_key: API key to validate.

    Raises:
        AuthenticationAppError: If key is invalid or authentication is required
            but no keys are configured.
    """
    if not settings.app.api_key_required:
        return

    valid_keys = parse_api_keys(settings.app.api_keys)

    if not valid_keys:
        logger.error(
            "api_key_validation_failed",
            extra={
                "reason": "api_keys_not_configured",
                "auth_required": settings.app.api_key_required,
            },
        )
        raise AuthenticationAppError(
            code="api_keys_not_configured",
            message="API key authentication is enabled but no valid keys are configured",
            details={"hint": "Set APP_API_KEYS or disable auth with APP_API_KEY_REQUIRED=false"},
        )

    if provided_key not in valid_keys:
        logger.warning(
            "api_key_validation_failed",
            extra={
                "reason": "invalid_api_key",
                "api_key_hash": account_id_for(provided_key),
                "auth_required": settings.app.api_key_required,
            },
        )
        raise AuthenticationAppError(
            code="invalid_api_key",
            message="Invalid or missing API key",
        )


async def verify_api_key(
    x_api_key: Annotated[str | None, Header(alias="X-API-Key")] = None,
) -> str | None:
    """FastAPI dependency for API key authentication.

    Usage:
        @router.get("/protected")
        async def protected(account_id: Annotated[str | None, Depends(verify_api_key)]):
            ...

    Args:
        x_api_key: API key from X-API-Key header (injected by FastAPI).

    Returns:
        The caller's account identity, or None when authentication is
        disabled and no key was sent.

    Raises:
        HTTPException: 403 Forbidden if authentication fails.
    """
    if not settings.app.api_key_required:
        logger.debug(
            "auth.skipped",
            extra={"reason": "auth_required_false"},
        )
        return account_id_for(x_api_key) if x_api_key else None

    if not x_api_key:
        logger.warning(
            "auth.missing_key",
            extra={
                "auth_required": True,
                "api_key_present": False,
            },
        )
        raise HTTPException(
            status_code=status.HTTP_403_FORBIDDEN,
            detail="Missing API key. Provide X-API-Key header.",
        )

    try:
        validate_api_key(x_api_key)
    except AuthenticationAppError as exc:
        raise HTTPException(
            status_code=status.HTTP_403_FORBIDDEN,
            detail=exc.message,
        ) from exc

    account_id = account_id_for(x_api_key)
    logger.info(
        "auth.success",
        extra={"auth_required": True, "account_id": account_id},
    )
    return account_id

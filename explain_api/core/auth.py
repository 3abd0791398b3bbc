"""Admin key authentication for monitoring and limiter overrides.

The learner-facing endpoints are anonymous; only operational endpoints
(limiter snapshot, counter reset) require ``X-Admin-Key``. Keys come from a
comma-separated environment variable.
"""

from __future__ import annotations

import hashlib
import hmac
import logging
from typing import Annotated

from fastapi import Header, HTTPException, status

from explain_api.core.config import settings
from explain_api.core.errors import AuthenticationAppError

logger = logging.getLogger(__name__)


def parse_api_keys(keys_string: str | None) -> set[str]:
    """Parse comma-separated keys into a set.

    Examples:
        >>> sorted(parse_api_keys("key1, key2 , key3 "))
        ['key1', 'key2', 'key3']
        >>> parse_api_keys(None)
        set()
    """
    if not keys_string:
        return set()
    return {key.strip() for key in keys_string.split(",") if key.strip()}


def _key_hash(key: str) -> str:
    return hashlib.sha256(key.encode()).hexdigest()[:16]


def validate_admin_key(provided_key: str) -> None:
    """Validate a key against the configured admin keys.

    Raises:
        AuthenticationAppError: If the key is unknown or no keys are configured.
    """
    if not settings.app.admin_key_required:
        return

    valid_keys = parse_api_keys(settings.app.admin_api_keys)
    if not valid_keys:
        logger.error("admin_auth.not_configured")
        raise AuthenticationAppError(
            code="admin_keys_not_configured",
            message="Admin authentication is enabled but no admin keys are configured",
            details={"hint": "Set APP_ADMIN_API_KEYS or disable with APP_ADMIN_KEY_REQUIRED=false"},
        )

    if not any(hmac.compare_digest(provided_key, key) for key in valid_keys):
        logger.warning("admin_auth.invalid_key", extra={"key_hash": _key_hash(provided_key)})
        raise AuthenticationAppError(
            code="invalid_admin_key",
            message="Invalid or missing admin key",
        )


async def verify_admin_key(
    x_admin_key: Annotated[str | None, Header(alias="X-Admin-Key")] = None,
) -> None:
    """FastAPI dependency guarding operational endpoints.

    Raises:
        HTTPException: 403 Forbidden if authentication fails.
    """
    if not settings.app.admin_key_required:
        return

    if not x_admin_key:
        logger.warning("admin_auth.missing_key")
        raise HTTPException(
            status_code=status.HTTP_403_FORBIDDEN,
            detail="Missing admin key. Provide X-Admin-Key header.",
        )

    try:
        validate_admin_key(x_admin_key)
    except AuthenticationAppError as exc:
        raise HTTPException(status_code=status.HTTP_403_FORBIDDEN, detail=exc.message) from exc

    logger.info("admin_auth.success", extra={"key_hash": _key_hash(x_admin_key)})

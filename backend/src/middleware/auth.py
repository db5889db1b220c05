"""
Authentication dependencies for API routes.

Provides:
- require_user: Resolve the authenticated user id set by the auth gateway
- require_cron_secret: Guard the scheduled run-all endpoint

User authentication itself happens upstream; requests reaching this service
carry the authenticated user id in the X-User-Id header.
"""

import hmac
from typing import Optional

from fastapi import Header, HTTPException, status

from backend.src.config.settings import get_settings
from backend.src.utils.logging_config import get_logger


logger = get_logger("api")

USER_ID_HEADER = "X-User-Id"
MAX_USER_ID_LENGTH = 64


async def require_user(
    x_user_id: Optional[str] = Header(default=None, alias=USER_ID_HEADER),
) -> str:
    """
    FastAPI dependency that requires an authenticated user.

    Returns:
        The authenticated user id

    Raises:
        HTTPException 401: If the header is missing or malformed

    Example:
        @router.get("/items")
        async def list_items(user_id: str = Depends(require_user)):
            ...
    """
    user_id = (x_user_id or "").strip()
    if not user_id or len(user_id) > MAX_USER_ID_LENGTH:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Authentication required",
        )
    return user_id


async def require_cron_secret(
    authorization: Optional[str] = Header(default=None),
) -> None:
    """
    FastAPI dependency for scheduler-triggered endpoints.

    Expects "Authorization: Bearer <CRON_SECRET>".

    Raises:
        HTTPException 503: If no cron secret is configured
        HTTPException 401: If the bearer token does not match
    """
    secret = get_settings().cron_secret
    if not secret:
        raise HTTPException(
            status_code=status.HTTP_503_SERVICE_UNAVAILABLE,
            detail="Scheduled runs are not configured",
        )

    scheme, _, token = (authorization or "").partition(" ")
    if scheme.lower() != "bearer" or not hmac.compare_digest(token.strip(), secret):
        logger.warning("Rejected scheduled run request with invalid secret")
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Unauthorized",
        )


__all__ = [
    "require_user",
    "require_cron_secret",
]

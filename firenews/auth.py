"""Shared-secret check for the refresh trigger."""

from __future__ import annotations

import hmac
import logging

from fastapi import Header, HTTPException, status

from firenews.config import get_settings

logger = logging.getLogger(__name__)


async def verify_refresh_secret(
    authorization: str | None = Header(default=None),
) -> None:
    """Require ``Authorization: Bearer <REFRESH_SECRET>`` when a secret is set.

    Raises:
        HTTPException: 401 if a secret is configured and the header does not
            carry it.
    """
    expected = get_settings().refresh_secret
    if not expected:
        return

    token = ""
    if authorization and authorization.startswith("Bearer "):
        token = authorization.removeprefix("Bearer ")

    if not hmac.compare_digest(token.encode(), expected.encode()):
        logger.warning("Rejected refresh request with invalid credentials")
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Invalid refresh credentials",
        )

"""
Authentication Dependencies - Guard the connector admin routes.

Operators send the configured admin token in the Authorization header.
With no token configured the admin API stays closed.
"""

from __future__ import annotations

import logging
import secrets
from typing import Optional

from fastapi import Depends, Header, HTTPException

from councilsearch.config import Settings, get_settings

logger = logging.getLogger(__name__)

__all__ = ["require_admin"]


async def require_admin(
    authorization: Optional[str] = Header(None),
    settings: Settings = Depends(get_settings),
) -> None:
    """
    Verify the admin bearer token.

    Expects 'Authorization: Bearer <token>' header.

    Raises:
        HTTPException 401 if the header is missing or malformed
        HTTPException 403 if the token is wrong or the admin API is disabled
    """
    if not authorization:
        raise HTTPException(
            status_code=401,
            detail="Missing authentication header",
            headers={"WWW-Authenticate": "Bearer"},
        )

    parts = authorization.split()
    if len(parts) != 2 or parts[0].lower() != "bearer":
        raise HTTPException(
            status_code=401,
            detail="Invalid authentication scheme",
            headers={"WWW-Authenticate": "Bearer"},
        )

    expected = settings.admin_api_token
    if not expected:
        logger.warning("Admin request refused: ADMIN_API_TOKEN is not set")
        raise HTTPException(status_code=403, detail="Admin API is disabled")

    if not secrets.compare_digest(parts[1].encode(), expected.encode()):
        logger.warning("Admin request refused: invalid token")
        raise HTTPException(status_code=403, detail="Invalid admin token")

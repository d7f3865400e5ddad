# hotcontent/auth.py
"""Admin API key dependency for moderation and pipeline routes."""

import logging
import os
import secrets

from fastapi import Header, HTTPException

from hotcontent.config import get_settings

logger = logging.getLogger(__name__)


def _configured_admin_key() -> str | None:
    # Process environment first, then .env via settings
    return os.getenv("ADMIN_API_KEY") or get_settings().ADMIN_API_KEY


def require_admin_key(
    x_api_key: str | None = Header(default=None, alias="X-API-Key"),
) -> None:
    """Reject the request unless X-API-Key matches. No key configured means no admin access."""
    expected = _configured_admin_key()

    if not expected:
        logger.error("ADMIN_API_KEY is not configured; admin routes are closed")
        raise HTTPException(status_code=500, detail="Admin authentication not configured")

    if not x_api_key or not secrets.compare_digest(x_api_key, expected):
        raise HTTPException(status_code=401, detail="Invalid or missing API key")

# app/auth.py
"""Admin authentication for the archive endpoints."""

import logging
import secrets

from fastapi import Header, HTTPException, status

from app.config import get_settings

logger = logging.getLogger(__name__)


def _configured_admin_key() -> str:
    key = get_settings().ADMIN_API_KEY
    if not key:
        logger.error("ADMIN_API_KEY is not set; refusing admin request")
        raise HTTPException(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            detail="Admin authentication not configured",
        )
    return key


def require_admin_key(
    x_api_key: str | None = Header(default=None, alias="X-API-Key"),
) -> None:
    """Check X-API-Key against ADMIN_API_KEY. Fails closed when no key is configured."""
    expected_key = _configured_admin_key()

    if x_api_key and secrets.compare_digest(x_api_key, expected_key):
        return

    logger.warning("Rejected admin request with %s API key", "invalid" if x_api_key else "missing")
    raise HTTPException(
        status_code=status.HTTP_401_UNAUTHORIZED,
        detail="Invalid or missing API key",
    )

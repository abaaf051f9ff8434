"""API key guard for the admin endpoints."""

from __future__ import annotations

import logging
import secrets

from fastapi import Depends, HTTPException, Request, status
from fastapi.security import APIKeyHeader

from ..config import settings

logger = logging.getLogger(__name__)

API_KEY_HEADER = APIKeyHeader(name="X-API-Key", auto_error=False)


async def verify_api_key(
    request: Request,
    api_key: str | None = Depends(API_KEY_HEADER),
) -> str:
    """Validate the X-API-Key header with a constant-time comparison.

    With no API_KEY configured (local dev) every request is allowed.

    Raises:
        HTTPException: 401 if the key is missing or wrong.
    """
    if not settings.api_key:
        logger.warning("API_KEY not configured - allowing unauthenticated admin request")
        return ""

    client_ip = request.client.host if request.client else "unknown"
    if not api_key:
        logger.warning("Missing API key", extra={"client_ip": client_ip, "path": request.url.path})
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Missing API key",
            headers={"WWW-Authenticate": "ApiKey"},
        )

    if not secrets.compare_digest(api_key, settings.api_key):
        logger.warning("Invalid API key attempt", extra={"client_ip": client_ip, "path": request.url.path})
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Invalid API key",
            headers={"WWW-Authenticate": "ApiKey"},
        )

    return api_key

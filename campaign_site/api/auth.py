"""Shared-secret guards for admin and internal endpoints."""

import logging
import secrets
from typing import Optional
from fastapi import Header, HTTPException, Request
from campaign_site.config import Settings

logger = logging.getLogger(__name__)


def _matches(provided: Optional[str], expected: Optional[str]) -> bool:
    # An unset secret never matches
    if not expected or not provided:
        return False
    return secrets.compare_digest(provided.encode(), expected.encode())


def verify_admin_token(request: Request, token: str):
    """Reject admin requests whose path token does not match ADMIN_SECRET_TOKEN."""
    settings: Settings = request.app.state.settings
    if not _matches(token, settings.admin_secret_token):
        logger.warning("Rejected admin request with invalid token")
        raise HTTPException(status_code=401, detail="Unauthorized")


def verify_internal_key(request: Request, x_api_key: Optional[str] = Header(None)):
    """Reject internal requests without the INTERNAL_API_KEY header."""
    settings: Settings = request.app.state.settings
    if not _matches(x_api_key, settings.internal_api_key):
        logger.warning(f"Rejected internal request to {request.url.path}")
        raise HTTPException(status_code=401, detail="Unauthorized")

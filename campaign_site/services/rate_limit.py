"""Request rate limiting for the public form endpoints."""

import logging
import math
import os
import time
from dotenv import load_dotenv
from fastapi import Request
from fastapi.responses import JSONResponse
from slowapi import Limiter
from slowapi.errors import RateLimitExceeded

logger = logging.getLogger(__name__)

load_dotenv()

PETITION_LIMIT = "20/minute"
ACTIVITY_REGISTRATION_LIMIT = "10/minute"
VOLUNTEER_LIMIT = "5/minute"
MATERIAL_LIMIT = "3/minute"
CONTACT_POLITICIAN_LIMIT = "5/minute"

RATE_LIMIT_MESSAGE = "För många förfrågningar. Försök igen om en stund."


def client_identifier(request: Request) -> str:
    """
    Identify the caller by the first forwarded address.

    Falls back to x-real-ip and finally "anonymous" so that requests
    without proxy headers share one bucket.
    """
    forwarded = request.headers.get("x-forwarded-for")
    if forwarded:
        return forwarded.split(",")[0].strip()

    real_ip = request.headers.get("x-real-ip")
    if real_ip:
        return real_ip

    return "anonymous"


limiter = Limiter(
    key_func=client_identifier,
    strategy="moving-window",
    storage_uri=os.getenv("REDIS_URL") or "memory://",
    swallow_errors=True,
)


def rate_limit_exceeded_handler(request: Request, exc: RateLimitExceeded) -> JSONResponse:
    """Build the 429 response with Retry-After and X-RateLimit-* headers."""
    limit_item = exc.limit.limit
    reset_at = time.time() + limit_item.get_expiry()

    view_limit = getattr(request.state, "view_rate_limit", None)
    if view_limit is not None:
        try:
            window = limiter.limiter.get_window_stats(view_limit[0], *view_limit[1])
            reset_at = window[0]
        except Exception as e:
            logger.warning(f"Could not read rate limit window: {e}")

    retry_after = max(1, math.ceil(reset_at - time.time()))
    logger.warning(f"Rate limit exceeded for {client_identifier(request)} on {request.url.path}")

    return JSONResponse(
        status_code=429,
        content={"error": RATE_LIMIT_MESSAGE, "retryAfter": retry_after},
        headers={
            "Retry-After": str(retry_after),
            "X-RateLimit-Limit": str(limit_item.amount),
            "X-RateLimit-Remaining": "0",
            "X-RateLimit-Reset": str(int(reset_at)),
        },
    )

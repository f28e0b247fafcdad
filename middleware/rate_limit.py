# middleware/rate_limit.py
"""
Inbound request limits for the quotes API, enforced with slowapi.

Quote refreshes fan out to free-tier providers, so the batch endpoint gets a
tighter budget than everything else. Outbound provider budgets are a separate
concern, see services.cache.rate_limiter.

    @router.post("/batch")
    @limiter.limit(QUOTE_REFRESH_RATE_LIMIT)
    async def batch_quotes(request: Request, ...):
"""
import logging
import os

from fastapi import Request
from fastapi.responses import JSONResponse
from jose import JWTError, jwt
from slowapi import Limiter
from slowapi.errors import RateLimitExceeded
from slowapi.util import get_remote_address

logger = logging.getLogger(__name__)

DEFAULT_RATE_LIMIT = os.getenv("RATE_LIMIT_DEFAULT", "60/minute")
QUOTE_REFRESH_RATE_LIMIT = os.getenv("QUOTE_REFRESH_RATE_LIMIT", "30/minute")
RETRY_AFTER_FALLBACK_SEC = 60


def _bearer_subject(request: Request) -> str | None:
    header = request.headers.get("Authorization") or ""
    scheme, _, token = header.partition(" ")
    if scheme.lower() != "bearer" or not token.strip():
        return None
    try:
        # Claims are read unverified: the subject only picks a bucket.
        claims = jwt.get_unverified_claims(token.strip())
    except JWTError:
        return None
    sub = claims.get("sub")
    return str(sub) if sub else None


def _get_rate_limit_key(request: Request) -> str:
    """Bucket by token subject when a bearer token is present, else by client IP."""
    sub = _bearer_subject(request)
    return f"user:{sub}" if sub else get_remote_address(request)


limiter = Limiter(
    key_func=_get_rate_limit_key,
    default_limits=[DEFAULT_RATE_LIMIT],
    storage_uri=os.getenv("REDIS_URL") or "memory://",
    strategy="fixed-window",
)


def rate_limit_exceeded_handler(request: Request, exc: RateLimitExceeded) -> JSONResponse:
    wrapped = getattr(exc, "limit", None)
    retry_after = wrapped.limit.get_expiry() if wrapped is not None else RETRY_AFTER_FALLBACK_SEC
    logger.warning("rate limited on %s (%s)", request.url.path, exc.detail)
    return JSONResponse(
        status_code=429,
        content={"detail": f"Too many requests ({exc.detail}). Please wait {retry_after}s and retry."},
        headers={"Retry-After": str(retry_after)},
    )

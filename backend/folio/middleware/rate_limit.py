# backend/folio/middleware/rate_limit.py
"""
Per-client rate limiting with slowapi.

Two tiers guard the ledger API:
- limit_reads:  metrics, summaries, entry listing (RATE_LIMIT_DEFAULT)
- limit_writes: recording and deleting entries (RATE_LIMIT_WRITE)

Health probes use RATE_LIMIT_HEALTH directly. Every decorated endpoint
must accept `request: Request`; slowapi reads the client from it.

Clients are keyed by IP. X-Forwarded-For / X-Real-IP are honoured only
when the direct peer is a trusted proxy (or TRUST_PROXY_HEADERS is set),
otherwise a client could pick its own bucket. Storage is in-memory, so
limits are per process.
"""

import logging

from slowapi import Limiter
from slowapi.errors import RateLimitExceeded
from slowapi.middleware import SlowAPIMiddleware
from slowapi.util import get_remote_address
from starlette.requests import Request
from starlette.responses import JSONResponse

from folio.config import settings
from folio.schemas.errors import ErrorDetail
from folio.services.constants import (
    RATE_LIMIT_DEFAULT,
    RATE_LIMIT_HEALTH,
    RATE_LIMIT_RETRY_AFTER_SECONDS,
    RATE_LIMIT_WRITE,
)

logger = logging.getLogger(__name__)


# =============================================================================
# CLIENT KEY
# =============================================================================

def _forwarded_client(request: Request) -> str | None:
    forwarded_for = request.headers.get("X-Forwarded-For")
    if forwarded_for:
        # Left-most address is the originating client
        return forwarded_for.split(",")[0].strip() or None
    return request.headers.get("X-Real-IP")


def client_key(request: Request) -> str:
    """Rate limit bucket for a request."""
    peer = get_remote_address(request)
    if settings.trust_proxy_headers or peer in settings.trusted_proxy_ips:
        return _forwarded_client(request) or peer
    return peer


# =============================================================================
# LIMITER
# =============================================================================

limiter = Limiter(
    key_func=client_key,
    default_limits=[RATE_LIMIT_DEFAULT],
    enabled=settings.rate_limit_enabled,
)

limit_reads = limiter.limit(RATE_LIMIT_DEFAULT)
limit_writes = limiter.limit(RATE_LIMIT_WRITE)
limit_health = limiter.limit(RATE_LIMIT_HEALTH)


async def rate_limit_exceeded_handler(request: Request, exc: RateLimitExceeded) -> JSONResponse:
    """429 in the ErrorDetail shape, with Retry-After."""
    limit = str(exc.detail) if exc.detail else "rate limit exceeded"
    logger.warning("Rate limit hit by %s on %s %s: %s", client_key(request), request.method, request.url.path, limit)

    body = ErrorDetail(
        error="RateLimitError",
        message=f"Too many requests ({limit})",
        details={"retry_after": RATE_LIMIT_RETRY_AFTER_SECONDS},
    )
    return JSONResponse(
        status_code=429,
        content=body.model_dump(),
        headers={"Retry-After": str(RATE_LIMIT_RETRY_AFTER_SECONDS)},
    )


__all__ = [
    "limiter",
    "limit_reads",
    "limit_writes",
    "limit_health",
    "client_key",
    "rate_limit_exceeded_handler",
    "SlowAPIMiddleware",
]

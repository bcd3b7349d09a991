# backend/folio/middleware/__init__.py
"""
Request middleware: correlation IDs and rate limiting.

folio.main wires them as:
    app.state.limiter = limiter
    app.add_middleware(SlowAPIMiddleware)
    app.add_middleware(CorrelationIdMiddleware)   # outermost
"""

from folio.middleware.correlation import CorrelationIdMiddleware
from folio.middleware.rate_limit import (
    SlowAPIMiddleware,
    limit_health,
    limit_reads,
    limit_writes,
    limiter,
    rate_limit_exceeded_handler,
)

__all__ = [
    "CorrelationIdMiddleware",
    "SlowAPIMiddleware",
    "limiter",
    "limit_reads",
    "limit_writes",
    "limit_health",
    "rate_limit_exceeded_handler",
]

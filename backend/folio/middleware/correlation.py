# backend/folio/middleware/correlation.py
"""
Correlation ID middleware.

The ID is taken from X-Correlation-ID, then X-Request-ID, and generated
(UUID4) when neither is present or the supplied value is unusable. It is
stored in the request context for the logging filter and returned in the
X-Correlation-ID response header, error responses included.

Client-supplied IDs end up verbatim in log lines, so only short values
made of letters, digits and ._:- are accepted.
"""

import logging
import re
import uuid
from typing import Callable

from starlette.middleware.base import BaseHTTPMiddleware
from starlette.requests import Request
from starlette.responses import Response

from folio.utils.context import clear_correlation_id, set_correlation_id

logger = logging.getLogger(__name__)

CORRELATION_ID_HEADER = "X-Correlation-ID"
REQUEST_ID_HEADER = "X-Request-ID"

_VALID_ID = re.compile(r"^[A-Za-z0-9._:-]{1,128}$")


def resolve_correlation_id(request: Request) -> str:
    """First acceptable header value, or a fresh UUID4."""
    for header in (CORRELATION_ID_HEADER, REQUEST_ID_HEADER):
        candidate = request.headers.get(header)
        if not candidate:
            continue
        if _VALID_ID.match(candidate):
            return candidate
        logger.debug("Ignoring malformed %s header", header)
    return str(uuid.uuid4())


class CorrelationIdMiddleware(BaseHTTPMiddleware):

    async def dispatch(
        self,
        request: Request,
        call_next: Callable[[Request], Response],
    ) -> Response:
        correlation_id = resolve_correlation_id(request)
        set_correlation_id(correlation_id)
        try:
            response = await call_next(request)
        finally:
            clear_correlation_id()
        response.headers[CORRELATION_ID_HEADER] = correlation_id
        return response

# backend/folio/main.py
"""
ASGI entry point: ``uvicorn folio.main:app``.

Logging is configured before the app object exists so that import-time
messages from the database layer already carry the configured format.
Service exceptions are translated into ErrorDetail bodies here and nowhere
else; routers let them propagate.
"""

import logging
from http import HTTPStatus
from typing import Annotated

from fastapi import Depends, FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from slowapi.errors import RateLimitExceeded
from sqlalchemy import text
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session
from starlette.exceptions import HTTPException as StarletteHTTPException

from folio import __version__
from folio.config import settings
from folio.database import get_db
from folio.middleware import (
    CorrelationIdMiddleware,
    SlowAPIMiddleware,
    limit_health,
    limiter,
    rate_limit_exceeded_handler,
)
from folio.routers import entries_router, valuation_router
from folio.schemas.errors import ErrorDetail, FieldError, ValidationErrorDetail
from folio.services.exceptions import (
    ServiceError,
    ValidationError,
    BackdatedEntryError,
    ExchangeRateMismatchError,
    ExchangeNotAllowedError,
    NotFoundError,
    EmptyLedgerError,
    InsufficientBalanceError,
    LinkedEntryError,
    UnknownReasonError,
)
from folio.utils import setup_logging

logger = logging.getLogger(__name__)

setup_logging()

app = FastAPI(
    title=settings.app_name,
    description="Append-only position ledgers with weighted-average-cost valuation",
    version=__version__,
)

app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.cors_origins,
    allow_credentials=settings.cors_allow_credentials,
    allow_methods=settings.cors_allow_methods,
    allow_headers=settings.cors_allow_headers,
)

# =============================================================================
# MIDDLEWARE (outermost added last: correlation ID wraps rate limiting)
# =============================================================================

app.state.limiter = limiter
app.add_middleware(SlowAPIMiddleware)
app.add_middleware(CorrelationIdMiddleware)


# =============================================================================
# ERROR MAPPING
# =============================================================================
# Starlette walks the exception MRO, so the most specific registered class
# wins and ServiceError only catches what nothing narrower claims.
# =============================================================================

app.add_exception_handler(RateLimitExceeded, rate_limit_exceeded_handler)


def _error_response(status_code: int, exc: ServiceError, details: dict | None = None) -> JSONResponse:
    return JSONResponse(
        status_code=status_code,
        content=ErrorDetail(
            error=type(exc).__name__,
            message=str(exc),
            details=details,
        ).model_dump(),
    )


@app.exception_handler(NotFoundError)
async def not_found_handler(request: Request, exc: NotFoundError) -> JSONResponse:
    """Handle unknown positions, platforms, users and entries (404)."""
    logger.warning(f"{exc.resource_type} not found: {exc.resource_id}")
    return _error_response(
        404,
        exc,
        {"resource_type": exc.resource_type, "resource_id": exc.resource_id},
    )


@app.exception_handler(EmptyLedgerError)
async def empty_ledger_handler(request: Request, exc: EmptyLedgerError) -> JSONResponse:
    """Handle metrics requested for a position without entries (404)."""
    logger.info(f"Empty ledger requested: position {exc.position_id}")
    return _error_response(404, exc, {"position_id": exc.position_id})


@app.exception_handler(InsufficientBalanceError)
async def insufficient_balance_handler(
    request: Request, exc: InsufficientBalanceError
) -> JSONResponse:
    """Handle outflows larger than the held quantity (400)."""
    return _error_response(
        400,
        exc,
        {
            "position_id": exc.position_id,
            "available": str(exc.available),
            "requested": str(exc.requested),
        },
    )


@app.exception_handler(ExchangeRateMismatchError)
async def exchange_rate_mismatch_handler(
    request: Request, exc: ExchangeRateMismatchError
) -> JSONResponse:
    """Handle inconsistent exchange quantities (400)."""
    logger.warning(f"Exchange rate mismatch: {exc}")
    return _error_response(
        400,
        exc,
        {
            "field": exc.field,
            "expected": str(exc.expected),
            "received": str(exc.received),
            "exchange_rate": str(exc.exchange_rate),
        },
    )


@app.exception_handler(ExchangeNotAllowedError)
async def exchange_not_allowed_handler(
    request: Request, exc: ExchangeNotAllowedError
) -> JSONResponse:
    """Handle exchanges between incompatible asset classes (400)."""
    logger.warning(f"Exchange not allowed: {exc.source_class} -> {exc.target_class}")
    return _error_response(
        400,
        exc,
        {"source_class": exc.source_class, "target_class": exc.target_class},
    )


@app.exception_handler(BackdatedEntryError)
async def backdated_entry_handler(request: Request, exc: BackdatedEntryError) -> JSONResponse:
    """Handle entries dated before the position's latest entry (400)."""
    return _error_response(
        400,
        exc,
        {
            "field": exc.field,
            "position_id": exc.position_id,
            "last_occurred_at": exc.last_occurred_at.isoformat(),
        },
    )


@app.exception_handler(ValidationError)
async def validation_error_handler(request: Request, exc: ValidationError) -> JSONResponse:
    """Handle ledger rule violations, InconsistentFeeError included (400)."""
    logger.warning("Ledger rule rejected request: %s", exc)
    return _error_response(400, exc, {"field": exc.field} if exc.field else None)


@app.exception_handler(LinkedEntryError)
async def linked_entry_handler(request: Request, exc: LinkedEntryError) -> JSONResponse:
    """Handle deletions that would break a pair or the ledger order (409)."""
    logger.warning(f"Linked entry conflict: {exc}")
    return _error_response(409, exc, {"entry_id": exc.entry_id})


@app.exception_handler(UnknownReasonError)
async def unknown_reason_handler(request: Request, exc: UnknownReasonError) -> JSONResponse:
    """Unclassifiable reason stored or passed internally; a programming error (500)."""
    logger.error(f"Unknown entry reason: {exc.reason!r}")
    return _error_response(500, exc)


@app.exception_handler(ServiceError)
async def service_error_handler(request: Request, exc: ServiceError) -> JSONResponse:
    """Any other ServiceError is a bug on our side (500)."""
    logger.error("Unmapped service error %s: %s", type(exc).__name__, exc)
    return _error_response(500, exc)


@app.exception_handler(StarletteHTTPException)
async def http_exception_handler(request: Request, exc: StarletteHTTPException) -> JSONResponse:
    """Reshape Starlette's {"detail": ...} body (unknown routes, 405s) as ErrorDetail."""
    try:
        phrase = HTTPStatus(exc.status_code).phrase
    except ValueError:
        phrase = "HTTP"
    return JSONResponse(
        status_code=exc.status_code,
        content=ErrorDetail(
            error=phrase.title().replace(" ", "").replace("-", "") + "Error",
            message=str(exc.detail or phrase),
        ).model_dump(),
        headers=exc.headers,
    )


@app.exception_handler(RequestValidationError)
async def request_validation_handler(request: Request, exc: RequestValidationError) -> JSONResponse:
    """Request bodies and query strings pydantic rejected (422), one FieldError per problem."""
    problems = [
        FieldError(
            field=".".join(str(part) for part in problem["loc"]),
            message=problem["msg"],
            type=problem["type"],
        )
        for problem in exc.errors()
    ]
    return JSONResponse(status_code=422, content=ValidationErrorDetail(details=problems).model_dump())


# =============================================================================
# ROUTERS
# =============================================================================

app.include_router(entries_router)  # /entries/*
app.include_router(valuation_router)  # /positions/*, /platforms/*, /owners/*


# =============================================================================
# HEALTH
# =============================================================================

def _database_error(db: Session) -> str | None:
    """Round-trip a trivial query; the error text when the database is unreachable."""
    try:
        db.execute(text("SELECT 1"))
    except SQLAlchemyError as exc:
        logger.error("Database probe failed: %s", exc)
        return str(exc)
    return None


@app.get("/", tags=["Health"])
@limit_health
def index(request: Request):
    return {"service": settings.app_name, "version": __version__, "docs": "/docs"}


@app.get("/health", tags=["Health"])
@limit_health
def health(request: Request, db: Annotated[Session, Depends(get_db)]):
    """Overall status with per-dependency checks; 503 takes the instance out of rotation."""
    error = _database_error(db)
    if error is not None:
        return JSONResponse(
            status_code=503,
            content={"status": "unhealthy", "checks": {"database": {"status": "unhealthy", "error": error}}},
        )
    return {"status": "healthy", "checks": {"database": {"status": "healthy"}}}


@app.get("/health/live", tags=["Health"])
@limit_health
def live(request: Request):
    return {"status": "alive"}


@app.get("/health/ready", tags=["Health"])
@limit_health
def ready(request: Request, db: Annotated[Session, Depends(get_db)]):
    """Ready once ledger reads and writes can reach the database."""
    if _database_error(db) is not None:
        return JSONResponse(status_code=503, content={"status": "not_ready", "reason": "database"})
    return {"status": "ready"}

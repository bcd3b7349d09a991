# backend/folio/routers/valuation.py
"""
Valuation endpoints.

- GET /positions/{id}/metrics          Quantity, cost basis, realized and unrealized P&L
- GET /positions/{id}/balance?amount=  Whether an outflow would be covered
- GET /platforms/{id}/summary          Totals over a platform's open positions
- GET /owners/{id}/summary             Totals over all of a user's open positions

Nothing here writes; every figure is recomputed from the ledger.
"""

from decimal import Decimal
from typing import Annotated

from fastapi import APIRouter, Depends, Query, Request
from sqlalchemy.orm import Session

from folio.database import get_db
from folio.dependencies import get_valuation_service
from folio.middleware.rate_limit import limit_reads
from folio.schemas.valuation import (
    AggregateSummaryDetail,
    AggregateValuationResponse,
    BalanceCheckResponse,
    PositionMetricsDetail,
    PositionValuationResponse,
)
from folio.services.valuation import (
    AggregateValuation,
    PositionValuation,
    ValuationService,
)

# =============================================================================
# ROUTER SETUP
# =============================================================================

router = APIRouter(tags=["Valuation"])

DbSession = Annotated[Session, Depends(get_db)]
Valuation = Annotated[ValuationService, Depends(get_valuation_service)]


# =============================================================================
# MAPPER FUNCTIONS (Internal Types -> Pydantic Schemas)
# =============================================================================

def _map_position(valuation: PositionValuation) -> PositionValuationResponse:
    return PositionValuationResponse(
        position_id=valuation.position_id,
        asset_id=valuation.asset_id,
        asset_code=valuation.asset_code,
        asset_class=valuation.asset_class,
        platform_id=valuation.platform_id,
        metrics=PositionMetricsDetail.model_validate(valuation.metrics),
    )


def _map_aggregate(aggregate: AggregateValuation) -> AggregateValuationResponse:
    return AggregateValuationResponse(
        scope=aggregate.scope,
        scope_id=aggregate.scope_id,
        summary=AggregateSummaryDetail.model_validate(aggregate.summary),
        positions=[_map_position(p) for p in aggregate.positions],
    )


# =============================================================================
# ENDPOINTS
# =============================================================================

@router.get("/positions/{position_id}/metrics", response_model=PositionValuationResponse)
@limit_reads
def get_position_metrics(request: Request, position_id: int, db: DbSession, service: Valuation):
    """
    Metrics for one position.

    Returns 404 when the position is unknown or has no entries yet.
    """
    return _map_position(service.get_position_valuation(db, position_id))


@router.get("/positions/{position_id}/balance", response_model=BalanceCheckResponse)
@limit_reads
def check_balance(
        request: Request,
        position_id: int,
        db: DbSession,
        service: Valuation,
        amount: Decimal = Query(..., gt=0, max_digits=18, decimal_places=8),
):
    """Advisory check of an outflow; the write endpoints enforce it again."""
    result = service.check_outflow(db, position_id, amount)
    return BalanceCheckResponse(
        position_id=position_id,
        available=result.available,
        requested=result.requested,
        is_sufficient=result.is_sufficient,
    )


@router.get("/platforms/{platform_id}/summary", response_model=AggregateValuationResponse)
@limit_reads
def get_platform_summary(request: Request, platform_id: int, db: DbSession, service: Valuation):
    return _map_aggregate(service.get_platform_summary(db, platform_id))


@router.get("/owners/{user_id}/summary", response_model=AggregateValuationResponse)
@limit_reads
def get_owner_summary(request: Request, user_id: int, db: DbSession, service: Valuation):
    return _map_aggregate(service.get_owner_summary(db, user_id))

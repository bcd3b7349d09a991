# backend/folio/routers/entries.py
"""
Ledger entry endpoints.

- POST   /entries/              Record a single entry
- POST   /entries/transfers     Record a transfer pair
- POST   /entries/exchanges     Record an exchange pair
- GET    /entries/?position_id= List a position's live entries
- GET    /entries/{id}          Read one entry
- DELETE /entries/{id}          Soft-delete a single unlinked entry
- DELETE /entries/{id}/pair     Soft-delete both legs of a pair

Entries are never edited. To correct one, delete it (it must be the latest
entry of its position) and record it again. Ledger rule violations surface
through the service exceptions handled in folio.main.
"""

from typing import Annotated

from fastapi import APIRouter, Depends, Query, Request, status
from sqlalchemy.orm import Session

from folio.database import get_db
from folio.dependencies import get_ledger_service
from folio.middleware.rate_limit import limit_reads, limit_writes
from folio.models import LedgerEntry
from folio.schemas.ledger_entries import (
    ExchangeCreate,
    LedgerEntryCreate,
    LedgerEntryListResponse,
    LedgerEntryResponse,
    LinkedEntryPairResponse,
    TransferCreate,
)
from folio.services.ledger import (
    EntryRequest,
    ExchangeRequest,
    LedgerService,
    LinkKind,
    TransferRequest,
)

# =============================================================================
# ROUTER SETUP
# =============================================================================

router = APIRouter(
    prefix="/entries",
    tags=["Ledger Entries"],
)

DbSession = Annotated[Session, Depends(get_db)]
Ledger = Annotated[LedgerService, Depends(get_ledger_service)]


# =============================================================================
# MAPPER FUNCTIONS
# =============================================================================

def _pair_response(kind: LinkKind, source: LedgerEntry, target: LedgerEntry) -> LinkedEntryPairResponse:
    return LinkedEntryPairResponse(
        kind=kind.value,
        source=LedgerEntryResponse.model_validate(source),
        target=LedgerEntryResponse.model_validate(target),
    )


# =============================================================================
# CREATE
# =============================================================================

@router.post(
    "/",
    response_model=LedgerEntryResponse,
    status_code=status.HTTP_201_CREATED,
)
@limit_writes
def create_entry(request: Request, payload: LedgerEntryCreate, db: DbSession, service: Ledger):
    """
    Record a purchase, sale, deposit, withdrawal or dividend.

    Transfers must go through POST /entries/transfers.
    """
    entry = service.record_entry(
        db,
        EntryRequest(
            position_id=payload.position_id,
            reason=payload.reason,
            quantity=payload.quantity,
            unit_price=payload.unit_price,
            occurred_at=payload.occurred_at,
            fee=payload.fee,
            fee_type=payload.fee_type,
            notes=payload.notes,
        ),
    )
    return entry


@router.post(
    "/transfers",
    response_model=LinkedEntryPairResponse,
    status_code=status.HTTP_201_CREATED,
)
@limit_writes
def create_transfer(request: Request, payload: TransferCreate, db: DbSession, service: Ledger):
    """Move a quantity of one asset between two positions as a linked pair."""
    source, target = service.record_transfer(
        db,
        TransferRequest(
            source_position_id=payload.source_position_id,
            target_position_id=payload.target_position_id,
            quantity=payload.quantity,
            occurred_at=payload.occurred_at,
            fee=payload.fee,
            fee_type=payload.fee_type,
            notes=payload.notes,
        ),
    )
    return _pair_response(LinkKind.TRANSFER, source, target)


@router.post(
    "/exchanges",
    response_model=LinkedEntryPairResponse,
    status_code=status.HTTP_201_CREATED,
)
@limit_writes
def create_exchange(request: Request, payload: ExchangeCreate, db: DbSession, service: Ledger):
    """Convert one asset into another on the same platform as a linked sale/purchase pair."""
    source, target = service.record_exchange(
        db,
        ExchangeRequest(
            source_position_id=payload.source_position_id,
            target_position_id=payload.target_position_id,
            source_quantity=payload.source_quantity,
            target_quantity=payload.target_quantity,
            exchange_rate=payload.exchange_rate,
            occurred_at=payload.occurred_at,
            fee=payload.fee,
            fee_type=payload.fee_type,
            notes=payload.notes,
        ),
    )
    return _pair_response(LinkKind.EXCHANGE, source, target)


# =============================================================================
# READ
# =============================================================================

@router.get("/", response_model=LedgerEntryListResponse)
@limit_reads
def list_entries(
        request: Request,
        db: DbSession,
        service: Ledger,
        position_id: int = Query(..., gt=0, description="Position whose ledger to list"),
):
    """Live entries of one position, oldest first."""
    entries = service.list_entries(db, position_id)
    return LedgerEntryListResponse(
        position_id=position_id,
        items=[LedgerEntryResponse.model_validate(e) for e in entries],
        total=len(entries),
    )


@router.get("/{entry_id}", response_model=LedgerEntryResponse)
@limit_reads
def get_entry(request: Request, entry_id: int, db: DbSession, service: Ledger):
    return service.get_entry(db, entry_id)


# =============================================================================
# DELETE
# =============================================================================

@router.delete("/{entry_id}", status_code=status.HTTP_204_NO_CONTENT)
@limit_writes
def delete_entry(request: Request, entry_id: int, db: DbSession, service: Ledger) -> None:
    """Soft-delete the latest, unlinked entry of a position."""
    service.delete_entry(db, entry_id)


@router.delete("/{entry_id}/pair", status_code=status.HTTP_204_NO_CONTENT)
@limit_writes
def delete_pair(request: Request, entry_id: int, db: DbSession, service: Ledger) -> None:
    """Soft-delete both legs of the transfer or exchange containing this entry."""
    service.delete_linked_pair(db, entry_id)

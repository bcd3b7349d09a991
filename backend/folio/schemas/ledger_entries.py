# backend/folio/schemas/ledger_entries.py
"""
Pydantic schemas for ledger entries, transfers and exchanges.

Validation layers:
- Field constraints: positivity, Numeric(18, 8) precision
- Model validators: fee and fee type supplied together
- Service layer: ledger rules needing stored state (balance, backdating,
  asset classes, platforms)

All quantities and prices are Decimal. Never use float for money!
"""

from datetime import datetime, timezone
from decimal import Decimal

from pydantic import BaseModel, ConfigDict, Field, field_validator, model_validator

from folio.models import EntryReason, FeeType, FlowDirection
from folio.utils.date_utils import ensure_utc


# =============================================================================
# SHARED VALIDATION
# =============================================================================

def _not_in_future(v: datetime) -> datetime:
    """Normalize to UTC (naive means UTC) and reject future dates."""
    v = ensure_utc(v)
    current_time = datetime.now(timezone.utc)
    if v > current_time:
        raise ValueError(f"Entry date cannot be in the future (sent: {v}, now: {current_time})")
    return v


class EntryCreateBase(BaseModel):
    """Fields shared by every create request; fee and fee_type travel together."""

    fee: Decimal | None = Field(
        default=None,
        ge=0,
        max_digits=18,
        decimal_places=8,
        description="Fee amount; requires fee_type",
        examples=["0", "2.50"]
    )
    fee_type: FeeType | None = Field(
        default=None,
        description="How the fee amount is expressed; requires fee",
    )
    notes: str | None = Field(
        default=None,
        max_length=500,
        description="Free-text notes"
    )
    occurred_at: datetime = Field(
        ...,
        description="When the movement happened; orders entries within a position",
        examples=["2026-01-15T14:30:00Z"]
    )

    @field_validator("occurred_at")
    @classmethod
    def validate_occurred_at(cls, v: datetime) -> datetime:
        """Entries record movements that already happened."""
        return _not_in_future(v)

    @model_validator(mode="after")
    def validate_fee_pair(self):
        if (self.fee is None) != (self.fee_type is None):
            raise ValueError("fee and fee_type must both be provided or both be omitted")
        return self


# =============================================================================
# CREATE SCHEMAS
# =============================================================================

class LedgerEntryCreate(EntryCreateBase):
    """
    Record one purchase, sale, deposit, withdrawal or dividend.

    unit_price may be omitted for currency positions (always 1).
    """

    position_id: int = Field(..., gt=0)
    reason: EntryReason = Field(
        ...,
        description="Why the entry exists; the flow direction is derived from it",
        examples=[EntryReason.PURCHASE, EntryReason.SALE]
    )
    quantity: Decimal = Field(
        ...,
        gt=0,
        max_digits=18,
        decimal_places=8,
        description="Units moved (must be positive)",
        examples=["10", "0.5", "100.12345678"]
    )
    unit_price: Decimal | None = Field(
        default=None,
        gt=0,
        max_digits=18,
        decimal_places=8,
        description="Price per unit; required unless the position holds a currency",
        examples=["150.50"]
    )


class TransferCreate(EntryCreateBase):
    """Move a quantity of one asset between two positions."""

    source_position_id: int = Field(..., gt=0)
    target_position_id: int = Field(..., gt=0)
    quantity: Decimal = Field(
        ...,
        gt=0,
        max_digits=18,
        decimal_places=8,
    )

    @model_validator(mode="after")
    def validate_distinct_positions(self):
        if self.source_position_id == self.target_position_id:
            raise ValueError("source_position_id and target_position_id must differ")
        return self


class ExchangeCreate(EntryCreateBase):
    """
    Convert one asset into another on the same platform.

    target_quantity must equal source_quantity * exchange_rate within 0.001.
    """

    source_position_id: int = Field(..., gt=0)
    target_position_id: int = Field(..., gt=0)
    source_quantity: Decimal = Field(..., gt=0, max_digits=18, decimal_places=8)
    target_quantity: Decimal = Field(..., gt=0, max_digits=18, decimal_places=8)
    exchange_rate: Decimal = Field(
        ...,
        gt=0,
        max_digits=18,
        decimal_places=8,
        description="Units of target received per unit of source",
        examples=["0.000016", "1.0856"]
    )


# =============================================================================
# RESPONSE SCHEMAS
# =============================================================================

class LedgerEntryResponse(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: int
    position_id: int
    flow_direction: FlowDirection
    reason: EntryReason
    quantity: Decimal
    unit_price: Decimal
    total_value: Decimal
    fee: Decimal | None
    fee_type: FeeType | None
    linked_entry_id: int | None
    occurred_at: datetime
    notes: str | None
    created_at: datetime


class LinkedEntryPairResponse(BaseModel):
    """Both legs of a transfer or exchange."""

    kind: str = Field(..., examples=["TRANSFER", "EXCHANGE"])
    source: LedgerEntryResponse
    target: LedgerEntryResponse


class LedgerEntryListResponse(BaseModel):
    position_id: int
    items: list[LedgerEntryResponse]
    total: int

# backend/folio/services/ledger/drafts.py
"""
Validated, not-yet-persisted ledger entries.

LedgerEntryDraft is the only way the services construct entries: it derives
the flow direction from the reason, fixes total_value, and enforces the
fee/fee-type pairing before anything reaches the database.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime
from decimal import Decimal

from folio.models import EntryReason, FeeType, FlowDirection, LedgerEntry
from folio.services.constants import MAX_DECIMAL_PLACES, ZERO
from folio.services.exceptions import InconsistentFeeError, ValidationError
from folio.services.valuation.classifier import direction_of
from folio.utils.date_utils import ensure_utc


def _check_scale(value: Decimal, field_name: str) -> None:
    exponent = value.as_tuple().exponent
    if isinstance(exponent, int) and -exponent > MAX_DECIMAL_PLACES:
        raise ValidationError(
            f"{field_name} must have at most {MAX_DECIMAL_PLACES} decimal places",
            field=field_name,
        )


def check_fee_pair(fee: Decimal | None, fee_type: FeeType | None) -> None:
    """
    Raises:
        InconsistentFeeError: Unless fee and fee_type are both set or both None
        ValidationError: If fee is negative
    """
    if (fee is None) != (fee_type is None):
        raise InconsistentFeeError()
    if fee is not None and fee < ZERO:
        raise ValidationError("fee must not be negative", field="fee")


@dataclass(frozen=True)
class LedgerEntryDraft:
    position_id: int
    reason: EntryReason
    flow_direction: FlowDirection
    quantity: Decimal
    unit_price: Decimal
    total_value: Decimal
    occurred_at: datetime
    fee: Decimal | None = None
    fee_type: FeeType | None = None
    notes: str | None = field(default=None, compare=False)

    @classmethod
    def build(
            cls,
            *,
            position_id: int,
            reason: EntryReason,
            quantity: Decimal,
            unit_price: Decimal,
            occurred_at: datetime,
            fee: Decimal | None = None,
            fee_type: FeeType | None = None,
            notes: str | None = None,
    ) -> "LedgerEntryDraft":
        """
        Validate inputs and derive the computed fields.

        Raises:
            ValidationError: Non-positive quantity/price or scale above 8
            InconsistentFeeError: Fee given without fee type or vice versa
            UnknownReasonError: reason is not an EntryReason
        """
        direction = direction_of(reason)

        if quantity <= ZERO:
            raise ValidationError("quantity must be positive", field="quantity")
        if unit_price <= ZERO:
            raise ValidationError("unit_price must be positive", field="unit_price")
        _check_scale(quantity, "quantity")
        _check_scale(unit_price, "unit_price")
        check_fee_pair(fee, fee_type)

        return cls(
            position_id=position_id,
            reason=EntryReason(reason),
            flow_direction=direction,
            quantity=quantity,
            unit_price=unit_price,
            total_value=quantity * unit_price,
            # stored in UTC; SQLite drops the offset of aware values
            occurred_at=ensure_utc(occurred_at),
            fee=fee,
            fee_type=fee_type,
            notes=notes,
        )

    @property
    def is_outflow(self) -> bool:
        return self.flow_direction == FlowDirection.OUTFLOW

    def to_model(self) -> LedgerEntry:
        return LedgerEntry(
            position_id=self.position_id,
            flow_direction=self.flow_direction,
            reason=self.reason,
            quantity=self.quantity,
            unit_price=self.unit_price,
            total_value=self.total_value,
            fee=self.fee,
            fee_type=self.fee_type,
            occurred_at=self.occurred_at,
            notes=self.notes,
        )

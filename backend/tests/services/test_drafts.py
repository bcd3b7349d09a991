# backend/tests/services/test_drafts.py
"""Tests for LedgerEntryDraft.build() and the fee pairing rule."""

from datetime import datetime, timedelta, timezone
from decimal import Decimal

import pytest

from folio.models import EntryReason, FeeType, FlowDirection
from folio.services.exceptions import InconsistentFeeError, UnknownReasonError, ValidationError
from folio.services.ledger.drafts import LedgerEntryDraft, check_fee_pair

WHEN = datetime(2024, 3, 1, tzinfo=timezone.utc)


def _build(**overrides) -> LedgerEntryDraft:
    params = dict(
        position_id=1,
        reason=EntryReason.PURCHASE,
        quantity=Decimal("2.5"),
        unit_price=Decimal("40"),
        occurred_at=WHEN,
    )
    params.update(overrides)
    return LedgerEntryDraft.build(**params)


class TestLedgerEntryDraft:

    def test_derives_direction_and_total(self):
        draft = _build()

        assert draft.flow_direction == FlowDirection.INFLOW
        assert draft.total_value == Decimal("100.0")
        assert not draft.is_outflow

    def test_occurred_at_stored_in_utc(self):
        plus_five = timezone(timedelta(hours=5))

        draft = _build(occurred_at=datetime(2024, 1, 2, 10, tzinfo=plus_five))

        assert draft.occurred_at == datetime(2024, 1, 2, 5, tzinfo=timezone.utc)
        assert draft.occurred_at.utcoffset() == timedelta(0)

    def test_sale_is_outflow(self):
        assert _build(reason=EntryReason.SALE).is_outflow

    def test_accepts_reason_string(self):
        draft = _build(reason="WITHDRAWAL")

        assert draft.reason == EntryReason.WITHDRAWAL
        assert draft.flow_direction == FlowDirection.OUTFLOW

    @pytest.mark.parametrize("field", ["quantity", "unit_price"])
    def test_rejects_non_positive(self, field):
        with pytest.raises(ValidationError) as exc_info:
            _build(**{field: Decimal("0")})

        assert exc_info.value.field == field

    def test_rejects_more_than_eight_decimals(self):
        with pytest.raises(ValidationError) as exc_info:
            _build(quantity=Decimal("0.000000001"))

        assert exc_info.value.field == "quantity"

    def test_eight_decimals_allowed(self):
        assert _build(quantity=Decimal("0.00000001")).quantity == Decimal("0.00000001")

    def test_unknown_reason(self):
        with pytest.raises(UnknownReasonError):
            _build(reason="AIRDROP")

    def test_to_model_copies_fields(self):
        model = _build(fee=Decimal("1.5"), fee_type=FeeType.FIXED_SOURCE, notes="first buy").to_model()

        assert model.position_id == 1
        assert model.reason == EntryReason.PURCHASE
        assert model.total_value == Decimal("100.0")
        assert model.fee == Decimal("1.5")
        assert model.fee_type == FeeType.FIXED_SOURCE
        assert model.notes == "first buy"
        assert model.linked_entry_id is None
        assert model.deleted_at is None


class TestCheckFeePair:

    def test_both_absent(self):
        check_fee_pair(None, None)

    def test_both_present(self):
        check_fee_pair(Decimal("0.5"), FeeType.PERCENTAGE_SOURCE)

    def test_fee_without_type(self):
        with pytest.raises(InconsistentFeeError):
            check_fee_pair(Decimal("1"), None)

    def test_type_without_fee(self):
        with pytest.raises(InconsistentFeeError):
            check_fee_pair(None, FeeType.FIXED_TARGET)

    def test_negative_fee(self):
        with pytest.raises(ValidationError) as exc_info:
            check_fee_pair(Decimal("-1"), FeeType.FIXED_SOURCE)

        assert exc_info.value.field == "fee"

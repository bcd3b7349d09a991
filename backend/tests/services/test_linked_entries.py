# backend/tests/services/test_linked_entries.py
"""
Tests for LinkedEntryCoordinator.

Pure unit tests: positions are described with PositionRef and the source
history is a list of mock entries.
"""

from dataclasses import dataclass
from datetime import datetime, timezone
from decimal import Decimal

import pytest

from folio.models import AssetClass, EntryReason, FeeType, FlowDirection
from folio.services.exceptions import (
    ExchangeNotAllowedError,
    ExchangeRateMismatchError,
    ImpliedPriceTooSmallError,
    InconsistentFeeError,
    InsufficientBalanceError,
    ValidationError,
)
from folio.services.ledger.coordinator import (
    ExchangeRequest,
    LinkedEntryCoordinator,
    LinkKind,
    PositionRef,
    TransferRequest,
    is_exchange_allowed,
)

WHEN = datetime(2024, 5, 1, tzinfo=timezone.utc)


@dataclass
class MockEntry:
    reason: EntryReason
    quantity: Decimal
    unit_price: Decimal


def ref(position_id: int, asset_id: int, code: str, asset_class: AssetClass, platform_id: int = 1) -> PositionRef:
    return PositionRef(
        position_id=position_id,
        asset_id=asset_id,
        asset_code=code,
        asset_class=asset_class,
        platform_id=platform_id,
    )


EUR_A = ref(1, 10, "EUR", AssetClass.CURRENCY)
EUR_B = ref(2, 10, "EUR", AssetClass.CURRENCY, platform_id=2)
AAPL_A = ref(3, 20, "AAPL", AssetClass.STOCK)
AAPL_B = ref(4, 20, "AAPL", AssetClass.STOCK, platform_id=2)
BTC_A = ref(5, 30, "BTC", AssetClass.CRYPTO)
GOLD_A = ref(6, 40, "XAU", AssetClass.COMMODITY)

CASH_HISTORY = [MockEntry(EntryReason.DEPOSIT, Decimal("1000"), Decimal("1"))]
STOCK_HISTORY = [
    MockEntry(EntryReason.PURCHASE, Decimal("10"), Decimal("100")),
    MockEntry(EntryReason.PURCHASE, Decimal("10"), Decimal("200")),
]


# =============================================================================
# TRANSFER TESTS
# =============================================================================

class TestBuildTransfer:
    """Tests for LinkedEntryCoordinator.build_transfer()."""

    def setup_method(self):
        self.coordinator = LinkedEntryCoordinator()

    def _request(self, quantity: str = "50", **kwargs) -> TransferRequest:
        return TransferRequest(
            source_position_id=kwargs.pop("source_position_id", 1),
            target_position_id=kwargs.pop("target_position_id", 2),
            quantity=Decimal(quantity),
            occurred_at=WHEN,
            **kwargs,
        )

    def test_transfer_pair_shape(self):
        """One TRANSFER_OUT and one TRANSFER_IN with equal quantities."""
        pair = self.coordinator.build_transfer(self._request(), EUR_A, EUR_B, CASH_HISTORY)

        assert pair.kind == LinkKind.TRANSFER
        assert pair.source.reason == EntryReason.TRANSFER_OUT
        assert pair.source.flow_direction == FlowDirection.OUTFLOW
        assert pair.source.position_id == 1
        assert pair.target.reason == EntryReason.TRANSFER_IN
        assert pair.target.flow_direction == FlowDirection.INFLOW
        assert pair.target.position_id == 2
        assert pair.source.quantity == pair.target.quantity == Decimal("50")

    def test_currency_transfer_uses_unit_price_one(self):
        pair = self.coordinator.build_transfer(self._request(), EUR_A, EUR_B, CASH_HISTORY)

        assert pair.source.unit_price == Decimal("1")
        assert pair.target.unit_price == Decimal("1")

    def test_asset_transfer_carries_average_cost(self):
        request = self._request("5", source_position_id=3, target_position_id=4)

        pair = self.coordinator.build_transfer(request, AAPL_A, AAPL_B, STOCK_HISTORY)

        assert pair.source.unit_price == Decimal("150")
        assert pair.target.unit_price == Decimal("150")
        assert pair.target.total_value == Decimal("750")

    def test_zero_cost_asset_transfers_at_one(self):
        """Deposit-only holdings have no average cost to carry."""
        history = [MockEntry(EntryReason.DEPOSIT, Decimal("3"), Decimal("1"))]
        request = self._request("1", source_position_id=3, target_position_id=4)

        pair = self.coordinator.build_transfer(request, AAPL_A, AAPL_B, history)

        assert pair.source.unit_price == Decimal("1")

    def test_default_notes(self):
        pair = self.coordinator.build_transfer(self._request(), EUR_A, EUR_B, CASH_HISTORY)

        assert pair.source.notes == "Transfer to position #2"
        assert pair.target.notes == "Transfer from position #1"

    def test_caller_notes_are_kept(self):
        pair = self.coordinator.build_transfer(
            self._request(notes="rebalance"), EUR_A, EUR_B, CASH_HISTORY
        )

        assert pair.source.notes == "rebalance - Transfer to position #2"
        assert pair.target.notes == "rebalance - Transfer from position #1"

    def test_fee_on_source_leg_only(self):
        request = self._request(fee=Decimal("2"), fee_type=FeeType.FIXED_SOURCE)

        pair = self.coordinator.build_transfer(request, EUR_A, EUR_B, CASH_HISTORY)

        assert pair.source.fee == Decimal("2")
        assert pair.source.fee_type == FeeType.FIXED_SOURCE
        assert pair.target.fee is None
        assert pair.target.fee_type is None
        # fee is recorded, never folded into the price
        assert pair.source.total_value == Decimal("50")

    def test_inconsistent_fee(self):
        with pytest.raises(InconsistentFeeError):
            self.coordinator.build_transfer(
                self._request(fee=Decimal("2")), EUR_A, EUR_B, CASH_HISTORY
            )

    def test_insufficient_balance(self):
        with pytest.raises(InsufficientBalanceError) as exc_info:
            self.coordinator.build_transfer(self._request("1500"), EUR_A, EUR_B, CASH_HISTORY)

        assert exc_info.value.available == Decimal("1000")
        assert exc_info.value.position_id == 1

    def test_empty_source_is_insufficient(self):
        with pytest.raises(InsufficientBalanceError):
            self.coordinator.build_transfer(self._request("1"), EUR_A, EUR_B, [])

    def test_same_position_rejected(self):
        with pytest.raises(ValidationError):
            self.coordinator.build_transfer(self._request(), EUR_A, EUR_A, CASH_HISTORY)

    def test_different_assets_rejected(self):
        with pytest.raises(ValidationError) as exc_info:
            self.coordinator.build_transfer(self._request(), EUR_A, AAPL_B, CASH_HISTORY)

        assert exc_info.value.field == "target_position_id"


# =============================================================================
# EXCHANGE TESTS
# =============================================================================

class TestBuildExchange:
    """Tests for LinkedEntryCoordinator.build_exchange()."""

    def setup_method(self):
        self.coordinator = LinkedEntryCoordinator()

    def _request(self, source_qty: str, target_qty: str, rate: str, **kwargs) -> ExchangeRequest:
        return ExchangeRequest(
            source_position_id=kwargs.pop("source_position_id", 1),
            target_position_id=kwargs.pop("target_position_id", 5),
            source_quantity=Decimal(source_qty),
            target_quantity=Decimal(target_qty),
            exchange_rate=Decimal(rate),
            occurred_at=WHEN,
            **kwargs,
        )

    def test_currency_to_crypto(self):
        """Buying 0.02 BTC with 1000 EUR books a sale at 1 and a purchase at 50000."""
        pair = self.coordinator.build_exchange(
            self._request("1000", "0.02", "0.00002"), EUR_A, BTC_A, CASH_HISTORY
        )

        assert pair.kind == LinkKind.EXCHANGE
        assert pair.source.reason == EntryReason.SALE
        assert pair.source.quantity == Decimal("1000")
        assert pair.source.unit_price == Decimal("1")
        assert pair.target.reason == EntryReason.PURCHASE
        assert pair.target.quantity == Decimal("0.02")
        assert pair.target.unit_price == Decimal("50000")

    def test_asset_to_currency(self):
        """Selling stock for cash prices the sale leg in target units per source unit."""
        request = self._request("4", "600", "150", source_position_id=3, target_position_id=1)

        pair = self.coordinator.build_exchange(request, AAPL_A, EUR_A, STOCK_HISTORY)

        assert pair.source.unit_price == Decimal("150")
        assert pair.target.unit_price == Decimal("1")

    def test_implied_prices_are_quantized(self):
        history = [MockEntry(EntryReason.PURCHASE, Decimal("10"), Decimal("1"))]
        other_btc = ref(7, 31, "ETH", AssetClass.CRYPTO)
        request = self._request("3", "1", "0.33333333", source_position_id=5, target_position_id=7)

        pair = self.coordinator.build_exchange(request, BTC_A, other_btc, history)

        assert pair.source.unit_price == Decimal("0.33333333")
        assert pair.target.unit_price == Decimal("3.00000000")

    def test_default_notes(self):
        pair = self.coordinator.build_exchange(
            self._request("1000", "0.02", "0.00002"), EUR_A, BTC_A, CASH_HISTORY
        )

        assert pair.source.notes == "Exchange to BTC"
        assert pair.target.notes == "Exchange from EUR"

    def test_rate_within_tolerance(self):
        pair = self.coordinator.build_exchange(
            self._request("100", "92.0005", "0.92"), EUR_A, GOLD_A, CASH_HISTORY
        )

        assert pair.target.quantity == Decimal("92.0005")

    def test_rate_mismatch(self):
        with pytest.raises(ExchangeRateMismatchError) as exc_info:
            self.coordinator.build_exchange(
                self._request("100", "93", "0.92"), EUR_A, GOLD_A, CASH_HISTORY
            )

        assert exc_info.value.expected == Decimal("92.00")
        assert exc_info.value.received == Decimal("93")

    def test_fee_on_source_leg_only(self):
        request = self._request(
            "1000", "0.02", "0.00002", fee=Decimal("0.1"), fee_type=FeeType.PERCENTAGE_SOURCE
        )

        pair = self.coordinator.build_exchange(request, EUR_A, BTC_A, CASH_HISTORY)

        assert pair.source.fee == Decimal("0.1")
        assert pair.target.fee is None

    def test_insufficient_source(self):
        with pytest.raises(InsufficientBalanceError):
            self.coordinator.build_exchange(
                self._request("2000", "0.04", "0.00002"), EUR_A, BTC_A, CASH_HISTORY
            )

    def test_same_asset_rejected(self):
        with pytest.raises(ValidationError):
            self.coordinator.build_exchange(
                self._request("1", "1", "1", target_position_id=2), EUR_A, EUR_B, CASH_HISTORY
            )

    def test_different_platforms_rejected(self):
        with pytest.raises(ValidationError) as exc_info:
            self.coordinator.build_exchange(
                self._request("1", "1", "1", target_position_id=4), EUR_A, AAPL_B, CASH_HISTORY
            )

        assert exc_info.value.field == "target_position_id"

    def test_disallowed_pair(self):
        with pytest.raises(ExchangeNotAllowedError) as exc_info:
            self.coordinator.build_exchange(
                self._request("1", "1", "1", source_position_id=3, target_position_id=5),
                AAPL_A,
                BTC_A,
                STOCK_HISTORY,
            )

        assert exc_info.value.source_class == "STOCK"
        assert exc_info.value.target_class == "CRYPTO"

    def test_non_positive_rate(self):
        with pytest.raises(ValidationError) as exc_info:
            self.coordinator.build_exchange(
                self._request("1", "0.0001", "0"), EUR_A, BTC_A, CASH_HISTORY
            )

        assert exc_info.value.field == "exchange_rate"

    def test_dust_ratio_names_the_exchange_ratio(self):
        """A price below 1e-8 per unit is reported as such, not as a non-positive price."""
        shib = ref(8, 50, "SHIB", AssetClass.CRYPTO)
        history = [MockEntry(EntryReason.PURCHASE, Decimal("100000000"), Decimal("0.00001"))]
        request = self._request(
            "100000000", "0.0000001", "0.000000000000001", source_position_id=8, target_position_id=5
        )

        with pytest.raises(ImpliedPriceTooSmallError) as exc_info:
            self.coordinator.build_exchange(request, shib, BTC_A, history)

        assert exc_info.value.leg == "sell"
        assert exc_info.value.ratio == Decimal("1E-15")
        assert exc_info.value.field == "exchange_rate"
        assert "Exchange ratio" in str(exc_info.value)


class TestExchangeMatrix:

    @pytest.mark.parametrize(
        "source, target",
        [
            (AssetClass.CURRENCY, AssetClass.CRYPTO),
            (AssetClass.CRYPTO, AssetClass.CURRENCY),
            (AssetClass.CURRENCY, AssetClass.STOCK),
            (AssetClass.STOCK, AssetClass.CURRENCY),
            (AssetClass.CURRENCY, AssetClass.COMMODITY),
            (AssetClass.COMMODITY, AssetClass.CURRENCY),
            (AssetClass.CRYPTO, AssetClass.CRYPTO),
        ],
    )
    def test_allowed(self, source, target):
        assert is_exchange_allowed(source, target)

    @pytest.mark.parametrize(
        "source, target",
        [
            (AssetClass.CURRENCY, AssetClass.CURRENCY),
            (AssetClass.CURRENCY, AssetClass.FUND),
            (AssetClass.FIXED_INCOME, AssetClass.CURRENCY),
            (AssetClass.STOCK, AssetClass.STOCK),
            (AssetClass.STOCK, AssetClass.CRYPTO),
            (AssetClass.STOCK, AssetClass.COMMODITY),
            (AssetClass.CRYPTO, AssetClass.COMMODITY),
            (AssetClass.FUND, AssetClass.COMMODITY),
        ],
    )
    def test_not_allowed(self, source, target):
        assert not is_exchange_allowed(source, target)

    def test_currency_to_fund_is_rejected_by_coordinator(self):
        fund = ref(6, 40, "VWCE", AssetClass.FUND)
        request = ExchangeRequest(
            source_position_id=1,
            target_position_id=6,
            source_quantity=Decimal("100"),
            target_quantity=Decimal("1"),
            exchange_rate=Decimal("0.01"),
            occurred_at=WHEN,
        )

        with pytest.raises(ExchangeNotAllowedError):
            LinkedEntryCoordinator().build_exchange(request, EUR_A, fund, CASH_HISTORY)

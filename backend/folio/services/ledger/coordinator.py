# backend/folio/services/ledger/coordinator.py
"""
Builders for linked entry pairs.

Two protocols each produce exactly two drafts meant to be persisted together
and cross-referenced through linked_entry_id:

- Transfer: the same asset moves between two positions.
  TRANSFER_OUT on the source, TRANSFER_IN on the target, equal quantities.
- Exchange: one asset is converted into another on the same platform.
  SALE on the source (source quantity), PURCHASE on the target (target
  quantity), unit prices implied by the two quantities.

In both protocols the balance guard runs against the source history first,
and the fee with its type is attached to the source leg only. The fee is
recorded as given; it is not folded into unit_price or total_value.

The coordinator does no I/O. Persisting a pair atomically is the job of
LedgerStore.create_entry_pair.
"""

from __future__ import annotations

import enum
from dataclasses import dataclass
from datetime import datetime
from decimal import Decimal, ROUND_HALF_UP
from collections.abc import Sequence

from folio.models import AssetClass, EntryReason, FeeType
from folio.services.constants import (
    CURRENCY_UNIT_PRICE,
    DEFAULT_TRANSFER_UNIT_PRICE,
    EXCHANGE_RATE_TOLERANCE,
    QUANTITY_QUANTUM,
    ZERO,
)
from folio.services.exceptions import (
    ExchangeNotAllowedError,
    ExchangeRateMismatchError,
    ImpliedPriceTooSmallError,
    ValidationError,
)
from folio.services.ledger.drafts import LedgerEntryDraft, check_fee_pair
from folio.services.protocols import LedgerEntryLike
from folio.services.valuation.calculators import BalanceGuard, WeightedAverageCostCalculator


# Unordered pairs of asset classes that may be exchanged for one another.
# Funds, fixed income and currency-to-currency conversions are not exchanged.
ALLOWED_EXCHANGE_PAIRS: frozenset[frozenset[AssetClass]] = frozenset({
    frozenset({AssetClass.CURRENCY, AssetClass.CRYPTO}),
    frozenset({AssetClass.CURRENCY, AssetClass.STOCK}),
    frozenset({AssetClass.CURRENCY, AssetClass.COMMODITY}),
    frozenset({AssetClass.CRYPTO}),
})


class LinkKind(str, enum.Enum):
    TRANSFER = "TRANSFER"
    EXCHANGE = "EXCHANGE"


@dataclass(frozen=True)
class PositionRef:
    """What the coordinator needs to know about one side of a pair."""

    position_id: int
    asset_id: int
    asset_code: str
    asset_class: AssetClass
    platform_id: int

    @property
    def is_currency(self) -> bool:
        return self.asset_class == AssetClass.CURRENCY


@dataclass(frozen=True)
class TransferRequest:
    source_position_id: int
    target_position_id: int
    quantity: Decimal
    occurred_at: datetime
    fee: Decimal | None = None
    fee_type: FeeType | None = None
    notes: str | None = None


@dataclass(frozen=True)
class ExchangeRequest:
    source_position_id: int
    target_position_id: int
    source_quantity: Decimal
    target_quantity: Decimal
    exchange_rate: Decimal
    occurred_at: datetime
    fee: Decimal | None = None
    fee_type: FeeType | None = None
    notes: str | None = None


@dataclass(frozen=True)
class LinkedEntryPair:
    kind: LinkKind
    source: LedgerEntryDraft
    target: LedgerEntryDraft


def _quantize(value: Decimal) -> Decimal:
    return value.quantize(QUANTITY_QUANTUM, rounding=ROUND_HALF_UP)


def _with_notes(caller_notes: str | None, default: str) -> str:
    if caller_notes:
        return f"{caller_notes} - {default}"
    return default


def _implied_price(numerator: Decimal, denominator: Decimal, leg: str) -> Decimal:
    ratio = numerator / denominator
    price = _quantize(ratio)
    if price <= ZERO:
        raise ImpliedPriceTooSmallError(ratio, leg)
    return price


def is_exchange_allowed(source_class: AssetClass, target_class: AssetClass) -> bool:
    return frozenset({source_class, target_class}) in ALLOWED_EXCHANGE_PAIRS


class LinkedEntryCoordinator:
    """Validates transfer and exchange requests and builds their entry pairs."""

    def __init__(
            self,
            accumulator: WeightedAverageCostCalculator | None = None,
            guard: BalanceGuard | None = None,
    ) -> None:
        self._accumulator = accumulator or WeightedAverageCostCalculator()
        self._guard = guard or BalanceGuard(self._accumulator)

    # =========================================================================
    # TRANSFER
    # =========================================================================

    def build_transfer(
            self,
            request: TransferRequest,
            source: PositionRef,
            target: PositionRef,
            source_entries: Sequence[LedgerEntryLike],
    ) -> LinkedEntryPair:
        """
        Build TRANSFER_OUT / TRANSFER_IN drafts.

        Unit price of both legs: 1 for currency, otherwise the source's
        current average cost (1 when that cost is zero).

        Raises:
            ValidationError: Same position on both sides, or different assets
            InconsistentFeeError: Fee without fee type or vice versa
            InsufficientBalanceError: Source holds less than the quantity
        """
        if source.position_id == target.position_id:
            raise ValidationError(
                "Source and target positions must be different",
                field="target_position_id",
            )
        if source.asset_id != target.asset_id:
            raise ValidationError(
                "Transfers must move the same asset; use an exchange to convert assets",
                field="target_position_id",
            )
        check_fee_pair(request.fee, request.fee_type)

        self._guard.ensure(source_entries, request.quantity, position_id=source.position_id)

        unit_price = self._transfer_unit_price(source, source_entries)

        out_draft = LedgerEntryDraft.build(
            position_id=source.position_id,
            reason=EntryReason.TRANSFER_OUT,
            quantity=request.quantity,
            unit_price=unit_price,
            occurred_at=request.occurred_at,
            fee=request.fee,
            fee_type=request.fee_type,
            notes=_with_notes(request.notes, f"Transfer to position #{target.position_id}"),
        )
        in_draft = LedgerEntryDraft.build(
            position_id=target.position_id,
            reason=EntryReason.TRANSFER_IN,
            quantity=request.quantity,
            unit_price=unit_price,
            occurred_at=request.occurred_at,
            notes=_with_notes(request.notes, f"Transfer from position #{source.position_id}"),
        )
        return LinkedEntryPair(kind=LinkKind.TRANSFER, source=out_draft, target=in_draft)

    def _transfer_unit_price(
            self,
            source: PositionRef,
            source_entries: Sequence[LedgerEntryLike],
    ) -> Decimal:
        if source.is_currency:
            return CURRENCY_UNIT_PRICE
        average_cost = _quantize(self._accumulator.accumulate(source_entries).average_cost)
        if average_cost <= ZERO:
            return DEFAULT_TRANSFER_UNIT_PRICE
        return average_cost

    # =========================================================================
    # EXCHANGE
    # =========================================================================

    def build_exchange(
            self,
            request: ExchangeRequest,
            source: PositionRef,
            target: PositionRef,
            source_entries: Sequence[LedgerEntryLike],
    ) -> LinkedEntryPair:
        """
        Build SALE / PURCHASE drafts.

        Sell unit price: 1 for a currency source, else target_qty / source_qty.
        Buy unit price: 1 for a currency target, else source_qty / target_qty.

        Raises:
            ValidationError: Same asset on both sides, different platforms,
                or a non-positive quantity or rate
            ExchangeNotAllowedError: Asset classes cannot be exchanged
            ExchangeRateMismatchError: target_qty differs from
                source_qty * rate by more than the tolerance
            InconsistentFeeError: Fee without fee type or vice versa
            InsufficientBalanceError: Source holds less than source_qty
        """
        if source.asset_id == target.asset_id:
            raise ValidationError(
                "Exchange requires two different assets; use a transfer to move the same asset",
                field="target_position_id",
            )
        if source.platform_id != target.platform_id:
            raise ValidationError(
                "Exchange positions must be on the same platform",
                field="target_position_id",
            )
        if not is_exchange_allowed(source.asset_class, target.asset_class):
            raise ExchangeNotAllowedError(source.asset_class.value, target.asset_class.value)

        source_qty = request.source_quantity
        target_qty = request.target_quantity
        if source_qty <= ZERO or target_qty <= ZERO:
            raise ValidationError("Exchange quantities must be positive", field="source_quantity")
        if request.exchange_rate <= ZERO:
            raise ValidationError("exchange_rate must be positive", field="exchange_rate")

        expected = source_qty * request.exchange_rate
        if abs(expected - target_qty) > EXCHANGE_RATE_TOLERANCE:
            raise ExchangeRateMismatchError(
                expected=expected,
                received=target_qty,
                exchange_rate=request.exchange_rate,
            )
        check_fee_pair(request.fee, request.fee_type)

        self._guard.ensure(source_entries, source_qty, position_id=source.position_id)

        sell_price = CURRENCY_UNIT_PRICE if source.is_currency else _implied_price(target_qty, source_qty, "sell")
        buy_price = CURRENCY_UNIT_PRICE if target.is_currency else _implied_price(source_qty, target_qty, "buy")

        sell_draft = LedgerEntryDraft.build(
            position_id=source.position_id,
            reason=EntryReason.SALE,
            quantity=source_qty,
            unit_price=sell_price,
            occurred_at=request.occurred_at,
            fee=request.fee,
            fee_type=request.fee_type,
            notes=_with_notes(request.notes, f"Exchange to {target.asset_code}"),
        )
        buy_draft = LedgerEntryDraft.build(
            position_id=target.position_id,
            reason=EntryReason.PURCHASE,
            quantity=target_qty,
            unit_price=buy_price,
            occurred_at=request.occurred_at,
            notes=_with_notes(request.notes, f"Exchange from {source.asset_code}"),
        )
        return LinkedEntryPair(kind=LinkKind.EXCHANGE, source=sell_draft, target=buy_draft)

# backend/folio/services/valuation/calculators.py
"""
Point-in-time position calculators.

- WeightedAverageCostCalculator: Folds a position's ledger into running state
- PositionMetricsCalculator: Adds unrealized figures against a current price
- BalanceGuard: Checks an outflow against the held quantity
- AggregateSummarizer: Reduces many PositionMetrics into totals

All calculators are stateless and do no I/O. Every caller that needs a
position's quantity or cost basis goes through WeightedAverageCostCalculator;
there is no second implementation of the fold.

Usage:
    metrics = PositionMetricsCalculator().calculate(entries, current_price=Decimal("120"))
"""

from __future__ import annotations

import logging
from collections.abc import Iterable, Sequence
from decimal import Decimal

from folio.services.constants import ZERO, ONE_HUNDRED
from folio.services.exceptions import EmptyLedgerError, InsufficientBalanceError
from folio.services.protocols import LedgerEntryLike
from folio.services.valuation.classifier import classify
from folio.services.valuation.types import (
    AccumulatedPosition,
    AggregateSummary,
    BalanceCheck,
    PositionMetrics,
)

logger = logging.getLogger(__name__)


# =============================================================================
# WEIGHTED AVERAGE COST
# =============================================================================

class WeightedAverageCostCalculator:
    """
    Folds an ordered ledger into (quantity, average cost, invested, realized).

    Entries must already be sorted ascending by (occurred_at, id). The fold
    is order-sensitive: a sale realizes gain against the average cost at
    that point in the sequence.

    Branches:
        Purchase (inflow, cost basis):
            invested += qty * price; quantity += qty;
            average = invested / quantity
        Deposit / TransferIn / Dividend (inflow, no cost basis):
            quantity += qty
        Sale (outflow, cost basis):
            realized += qty * (price - average); sold += qty * price;
            quantity -= qty; invested = quantity * average, or
            everything reset to zero once quantity reaches zero
        Withdrawal / TransferOut (outflow, no cost basis):
            quantity -= qty; at or below zero the quantity, average and
            invested amount are all reset to zero

    After the fold, quantity is clamped at zero.
    """

    def accumulate(self, entries: Sequence[LedgerEntryLike]) -> AccumulatedPosition:
        """
        Fold entries into position state.

        Raises:
            EmptyLedgerError: If entries is empty
            UnknownReasonError: If an entry carries an unclassifiable reason
        """
        if not entries:
            raise EmptyLedgerError()

        quantity = ZERO
        average_cost = ZERO
        total_invested = ZERO
        realized = ZERO
        total_sold = ZERO

        for entry in entries:
            effect = classify(entry.reason)
            entry_qty = entry.quantity

            if effect.is_inflow and effect.affects_cost_basis:
                new_invested = total_invested + entry_qty * entry.unit_price
                new_quantity = quantity + entry_qty
                # quantity may be negative mid-fold after an oversized sale
                if new_quantity > ZERO:
                    average_cost = new_invested / new_quantity
                    total_invested = new_invested
                quantity = new_quantity

            elif effect.is_inflow:
                quantity += entry_qty

            elif effect.affects_cost_basis:
                proceeds = entry_qty * entry.unit_price
                realized += proceeds - entry_qty * average_cost
                total_sold += proceeds
                quantity -= entry_qty
                if quantity > ZERO:
                    total_invested = quantity * average_cost
                else:
                    total_invested = ZERO
                    average_cost = ZERO

            else:
                quantity -= entry_qty
                # Draining the position through a non-sale outflow also drops
                # its cost basis, even though nothing was realized. Kept for
                # compatibility with existing ledgers; see DESIGN.md.
                if quantity <= ZERO:
                    quantity = ZERO
                    average_cost = ZERO
                    total_invested = ZERO

        result = AccumulatedPosition(
            quantity=max(ZERO, quantity),
            average_cost=average_cost,
            total_invested=total_invested,
            realized_gain_loss=realized,
            total_sold_value=total_sold,
        )

        logger.debug(
            "Accumulated %d entries: quantity=%s average_cost=%s",
            len(entries),
            result.quantity,
            result.average_cost,
        )
        return result


# =============================================================================
# POSITION METRICS
# =============================================================================

class PositionMetricsCalculator:
    """Accumulated position state plus current value and unrealized P&L."""

    def __init__(self, accumulator: WeightedAverageCostCalculator | None = None) -> None:
        self._accumulator = accumulator or WeightedAverageCostCalculator()

    def calculate(
            self,
            entries: Sequence[LedgerEntryLike],
            current_price: Decimal | None = None,
    ) -> PositionMetrics:
        """
        Compute metrics for one position.

        Formulas:
            current_value = quantity * (current_price or 0)
            unrealized = current_value - quantity * average_cost  (0 when flat)
            unrealized_pct = unrealized / (quantity * average_cost) * 100
                             (0 when flat or average_cost is 0)

        Raises:
            EmptyLedgerError: If entries is empty
        """
        state = self._accumulator.accumulate(entries)

        quantity = state.quantity
        cost_of_holding = quantity * state.average_cost
        current_value = quantity * (current_price if current_price is not None else ZERO)

        if quantity > ZERO:
            unrealized = current_value - cost_of_holding
        else:
            unrealized = ZERO

        if quantity > ZERO and state.average_cost > ZERO:
            unrealized_pct = unrealized / cost_of_holding * ONE_HUNDRED
        else:
            unrealized_pct = ZERO

        return PositionMetrics(
            quantity=quantity,
            average_cost=state.average_cost,
            total_invested=state.total_invested,
            current_price=current_price,
            current_value=current_value,
            unrealized_gain_loss=unrealized,
            unrealized_percentage=unrealized_pct,
            realized_gain_loss=state.realized_gain_loss,
            total_sold_value=state.total_sold_value,
        )


# =============================================================================
# BALANCE GUARD
# =============================================================================

class BalanceGuard:
    """
    Pre-validates outflows (sale, withdrawal, outgoing transfer or exchange leg).

    A position without entries holds nothing, so any positive outflow
    against it is insufficient.
    """

    def __init__(self, accumulator: WeightedAverageCostCalculator | None = None) -> None:
        self._accumulator = accumulator or WeightedAverageCostCalculator()

    def check(self, entries: Sequence[LedgerEntryLike], amount: Decimal) -> BalanceCheck:
        available = self._accumulator.accumulate(entries).quantity if entries else ZERO
        return BalanceCheck(available=available, requested=amount)

    def ensure(
            self,
            entries: Sequence[LedgerEntryLike],
            amount: Decimal,
            position_id: int | None = None,
    ) -> BalanceCheck:
        """
        Like check(), but raises when the outflow exceeds the held quantity.

        Raises:
            InsufficientBalanceError: Carrying the available quantity
        """
        result = self.check(entries, amount)
        if not result.is_sufficient:
            logger.warning(
                "Outflow of %s rejected for position %s: only %s available",
                amount,
                position_id,
                result.available,
            )
            raise InsufficientBalanceError(
                available=result.available,
                requested=amount,
                position_id=position_id,
            )
        return result


# =============================================================================
# AGGREGATE SUMMARIZER
# =============================================================================

class AggregateSummarizer:
    """Plain reduction of per-position metrics; input order does not matter."""

    def summarize(self, metrics: Iterable[PositionMetrics]) -> AggregateSummary:
        count = 0
        total_invested = ZERO
        total_current_value = ZERO
        total_unrealized = ZERO
        total_realized = ZERO

        for item in metrics:
            count += 1
            total_invested += item.total_invested
            total_current_value += item.current_value
            total_unrealized += item.unrealized_gain_loss
            total_realized += item.realized_gain_loss

        if total_invested > ZERO:
            total_unrealized_pct = total_unrealized / total_invested * ONE_HUNDRED
        else:
            total_unrealized_pct = ZERO

        return AggregateSummary(
            total_assets=count,
            total_invested=total_invested,
            total_current_value=total_current_value,
            total_unrealized_gain_loss=total_unrealized,
            total_unrealized_percentage=total_unrealized_pct,
            total_realized_gain_loss=total_realized,
        )

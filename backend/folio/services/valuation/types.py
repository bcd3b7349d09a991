# backend/folio/services/valuation/types.py
"""
Internal data types for the valuation engine.

These dataclasses are NOT Pydantic schemas; API serialization lives in
folio/schemas/valuation.py.

Design Principles:
- Immutable value objects (frozen=True)
- Decimal for ALL financial values (never float)
- Optional fields use None, not sentinel values

Type Hierarchy:
    AccumulatedPosition  - Result of folding one position's ledger
    PositionMetrics      - Accumulated state plus unrealized figures
    BalanceCheck         - Outcome of an outflow pre-check
    AggregateSummary     - Totals over many PositionMetrics
    PositionValuation    - PositionMetrics tagged with position identity
    AggregateValuation   - A platform or owner summary with its positions
"""

from __future__ import annotations

from dataclasses import dataclass, field
from decimal import Decimal

from folio.services.constants import ZERO


@dataclass(frozen=True)
class AccumulatedPosition:
    """
    Running state after folding every entry of one position.

    Attributes:
        quantity: Units currently held (never negative)
        average_cost: Weighted-average cost per unit
        total_invested: Cost basis of the units held
        realized_gain_loss: Sum of (proceeds - cost basis) over all sales
        total_sold_value: Sum of sale proceeds
    """

    quantity: Decimal
    average_cost: Decimal
    total_invested: Decimal
    realized_gain_loss: Decimal
    total_sold_value: Decimal

    @property
    def has_position(self) -> bool:
        return self.quantity > ZERO


@dataclass(frozen=True)
class PositionMetrics:
    """
    Externally consumed metrics for one position.

    current_price is None when no quote exists; current_value is then zero
    and unrealized_gain_loss equals minus the invested amount.
    """

    quantity: Decimal
    average_cost: Decimal
    total_invested: Decimal
    current_price: Decimal | None
    current_value: Decimal
    unrealized_gain_loss: Decimal
    unrealized_percentage: Decimal
    realized_gain_loss: Decimal
    total_sold_value: Decimal

    @property
    def has_position(self) -> bool:
        return self.quantity > ZERO


@dataclass(frozen=True)
class BalanceCheck:
    """Outcome of checking an outflow of `requested` against the held quantity."""

    available: Decimal
    requested: Decimal

    @property
    def is_sufficient(self) -> bool:
        return self.requested <= self.available

    @property
    def shortfall(self) -> Decimal:
        return max(ZERO, self.requested - self.available)


@dataclass(frozen=True)
class AggregateSummary:
    """Totals across a set of positions (a platform or an owner)."""

    total_assets: int
    total_invested: Decimal
    total_current_value: Decimal
    total_unrealized_gain_loss: Decimal
    total_unrealized_percentage: Decimal
    total_realized_gain_loss: Decimal


@dataclass(frozen=True)
class PositionValuation:
    position_id: int
    asset_id: int
    asset_code: str
    asset_class: str
    platform_id: int
    metrics: PositionMetrics


@dataclass
class AggregateValuation:
    """
    A summary plus the open positions it was computed from.

    Attributes:
        scope: "platform" or "owner"
        scope_id: ID of the platform or user
        summary: Reduced totals
        positions: Per-position valuations with quantity > 0
    """

    scope: str
    scope_id: int
    summary: AggregateSummary
    positions: list[PositionValuation] = field(default_factory=list)

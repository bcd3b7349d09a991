# backend/folio/services/valuation/__init__.py
"""
Position valuation engine.

Architecture:
    valuation/
    ├── classifier.py      # EntryReason -> (direction, affects cost basis)
    ├── types.py           # Frozen result dataclasses
    ├── calculators.py     # Weighted-average fold, metrics, guard, summarizer
    └── service.py         # ValuationService (loads entries and prices)

Data Flow:
    Entries → classify → WeightedAverageCostCalculator → AccumulatedPosition
    AccumulatedPosition + current price → PositionMetrics
    PositionMetrics[] → AggregateSummarizer → AggregateSummary

Usage:
    from folio.services.valuation import PositionMetricsCalculator

    metrics = PositionMetricsCalculator().calculate(entries, current_price=Decimal("210"))
"""

from folio.services.valuation.calculators import (
    AggregateSummarizer,
    BalanceGuard,
    PositionMetricsCalculator,
    WeightedAverageCostCalculator,
)
from folio.services.valuation.classifier import EntryEffect, classify
from folio.services.valuation.service import ValuationService
from folio.services.valuation.types import (
    AccumulatedPosition,
    AggregateSummary,
    AggregateValuation,
    BalanceCheck,
    PositionMetrics,
    PositionValuation,
)

__all__ = [
    "ValuationService",
    "WeightedAverageCostCalculator",
    "PositionMetricsCalculator",
    "BalanceGuard",
    "AggregateSummarizer",
    "EntryEffect",
    "classify",
    "AccumulatedPosition",
    "PositionMetrics",
    "BalanceCheck",
    "AggregateSummary",
    "PositionValuation",
    "AggregateValuation",
]

# backend/folio/services/valuation/service.py
"""
Valuation Service - read-side orchestrator.

Loads ledger entries and prices through LedgerStore and hands them to the
pure calculators. Nothing computed here is written back: position state
is recomputed from the full entry history on every call.

Price source:
- Currency assets: always 1
- Other assets: latest AssetQuote, or None when never quoted
"""

from __future__ import annotations

import logging
from decimal import Decimal

from sqlalchemy.orm import Session

from folio.models import Platform, Position, User
from folio.services.constants import CURRENCY_UNIT_PRICE
from folio.services.exceptions import (
    EmptyLedgerError,
    PlatformNotFoundError,
    UserNotFoundError,
)
from folio.services.ledger.store import LedgerStore
from folio.services.valuation.calculators import (
    AggregateSummarizer,
    BalanceGuard,
    PositionMetricsCalculator,
)
from folio.services.valuation.types import (
    AggregateValuation,
    BalanceCheck,
    PositionValuation,
)

logger = logging.getLogger(__name__)


class ValuationService:
    """
    Computes position metrics and platform/owner summaries.

    Usage:
        service = ValuationService()
        valuation = service.get_position_valuation(db, position_id=1)
        summary = service.get_platform_summary(db, platform_id=2)
    """

    def __init__(
            self,
            store: LedgerStore | None = None,
            metrics_calculator: PositionMetricsCalculator | None = None,
            guard: BalanceGuard | None = None,
            summarizer: AggregateSummarizer | None = None,
    ) -> None:
        self._store = store or LedgerStore()
        self._metrics = metrics_calculator or PositionMetricsCalculator()
        self._guard = guard or BalanceGuard()
        self._summarizer = summarizer or AggregateSummarizer()

    def get_position_valuation(self, db: Session, position_id: int) -> PositionValuation:
        """
        Metrics for one position.

        Raises:
            PositionNotFoundError: Unknown position
            EmptyLedgerError: The position has no live entries
        """
        position = self._store.get_position(db, position_id)
        entries = self._store.list_entries(db, position_id)
        if not entries:
            raise EmptyLedgerError(position_id)
        return self._value(db, position, entries)

    def check_outflow(self, db: Session, position_id: int, amount: Decimal) -> BalanceCheck:
        """
        Whether `amount` could leave the position right now.

        Advisory only: writers repeat the check under the position lock.
        """
        self._store.get_position(db, position_id)
        entries = self._store.list_entries(db, position_id)
        return self._guard.check(entries, amount)

    def get_platform_summary(self, db: Session, platform_id: int) -> AggregateValuation:
        if db.get(Platform, platform_id) is None:
            raise PlatformNotFoundError(platform_id)
        positions = self._store.list_positions(db, platform_id=platform_id)
        return self._aggregate(db, "platform", platform_id, positions)

    def get_owner_summary(self, db: Session, user_id: int) -> AggregateValuation:
        if db.get(User, user_id) is None:
            raise UserNotFoundError(user_id)
        positions = self._store.list_positions(db, user_id=user_id)
        return self._aggregate(db, "owner", user_id, positions)

    # =========================================================================
    # HELPERS
    # =========================================================================

    def _current_price(self, db: Session, position: Position) -> Decimal | None:
        if position.asset.is_currency:
            return CURRENCY_UNIT_PRICE
        return self._store.latest_price(db, position.asset_id)

    def _value(self, db: Session, position: Position, entries: list) -> PositionValuation:
        metrics = self._metrics.calculate(entries, current_price=self._current_price(db, position))
        return PositionValuation(
            position_id=position.id,
            asset_id=position.asset_id,
            asset_code=position.asset.code,
            asset_class=position.asset.asset_class.value,
            platform_id=position.platform_id,
            metrics=metrics,
        )

    def _aggregate(
            self,
            db: Session,
            scope: str,
            scope_id: int,
            positions: list[Position],
    ) -> AggregateValuation:
        """Value every position with history and keep only the open ones."""
        open_positions: list[PositionValuation] = []

        for position in positions:
            entries = self._store.list_entries(db, position.id)
            if not entries:
                continue
            valuation = self._value(db, position, entries)
            if valuation.metrics.has_position:
                open_positions.append(valuation)

        summary = self._summarizer.summarize(v.metrics for v in open_positions)
        logger.debug(
            "Summarized %s %s: %d open positions out of %d",
            scope,
            scope_id,
            summary.total_assets,
            len(positions),
        )
        return AggregateValuation(
            scope=scope,
            scope_id=scope_id,
            summary=summary,
            positions=open_positions,
        )

# backend/folio/dependencies.py
"""
Dependency injection for FastAPI services.

Services are stateless apart from the shared calculators, so one instance
of each serves every request. Instances are created lazily on first use.

Usage in routers:
    from folio.dependencies import get_ledger_service

    @router.post("/")
    def create_entry(service: LedgerService = Depends(get_ledger_service)):
        ...
"""

import logging
from functools import lru_cache

from folio.services.ledger import LedgerService, LedgerStore, LinkedEntryCoordinator
from folio.services.valuation import (
    AggregateSummarizer,
    BalanceGuard,
    PositionMetricsCalculator,
    ValuationService,
    WeightedAverageCostCalculator,
)

logger = logging.getLogger(__name__)


# =============================================================================
# SINGLETON SERVICE INSTANCES
# =============================================================================
# Order matters: dependencies before dependents
# 1. get_ledger_store, get_accumulator (no deps)
# 2. get_ledger_service, get_valuation_service


@lru_cache(maxsize=1)
def get_ledger_store() -> LedgerStore:
    return LedgerStore()


@lru_cache(maxsize=1)
def get_accumulator() -> WeightedAverageCostCalculator:
    """The single weighted-average fold shared by every consumer."""
    return WeightedAverageCostCalculator()


@lru_cache(maxsize=1)
def get_ledger_service() -> LedgerService:
    logger.debug("Initializing singleton LedgerService")
    accumulator = get_accumulator()
    return LedgerService(
        store=get_ledger_store(),
        coordinator=LinkedEntryCoordinator(accumulator=accumulator),
        guard=BalanceGuard(accumulator),
    )


@lru_cache(maxsize=1)
def get_valuation_service() -> ValuationService:
    logger.debug("Initializing singleton ValuationService")
    accumulator = get_accumulator()
    return ValuationService(
        store=get_ledger_store(),
        metrics_calculator=PositionMetricsCalculator(accumulator),
        guard=BalanceGuard(accumulator),
        summarizer=AggregateSummarizer(),
    )

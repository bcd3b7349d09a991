# backend/folio/routers/__init__.py
"""
API routers.

- entries: record, list and delete ledger entries, transfers and exchanges
- valuation: position metrics, balance checks, platform and owner summaries
"""

from folio.routers.entries import router as entries_router
from folio.routers.valuation import router as valuation_router

__all__ = [
    "entries_router",
    "valuation_router",
]

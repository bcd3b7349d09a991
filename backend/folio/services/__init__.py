# backend/folio/services/__init__.py
"""
Service layer for business logic.

Services:
- Have NO knowledge of HTTP (no HTTPException, no status codes)
- Raise domain-specific exceptions (see exceptions.py)
- Receive database sessions as parameters (not via Depends)

Usage:
    from folio.services import LedgerService, ValuationService

Architecture:
    services/
    ├── __init__.py              # This file - main exports
    ├── exceptions.py            # Domain exceptions
    ├── constants.py             # Ledger rules and limits
    ├── protocols.py             # Structural interfaces
    ├── valuation/               # Pure engine + read-side service
    └── ledger/                  # Entry drafts, pair coordinator, storage, write-side service
"""

from folio.services.ledger import LedgerService
from folio.services.valuation import ValuationService

__all__ = [
    "LedgerService",
    "ValuationService",
]

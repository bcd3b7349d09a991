# backend/folio/services/ledger/__init__.py
"""
Ledger write side.

    ledger/
    ├── drafts.py        # LedgerEntryDraft: validated entry before persistence
    ├── coordinator.py   # Transfer / exchange pair builders
    ├── store.py         # SQLAlchemy reads, atomic writes, per-position locks
    └── service.py       # LedgerService (record / delete operations)
"""

from folio.services.ledger.coordinator import (
    ExchangeRequest,
    LinkedEntryCoordinator,
    LinkedEntryPair,
    LinkKind,
    PositionRef,
    TransferRequest,
)
from folio.services.ledger.drafts import LedgerEntryDraft
from folio.services.ledger.service import EntryRequest, LedgerService
from folio.services.ledger.store import LedgerStore

__all__ = [
    "LedgerService",
    "LedgerStore",
    "LedgerEntryDraft",
    "LinkedEntryCoordinator",
    "LinkedEntryPair",
    "LinkKind",
    "PositionRef",
    "EntryRequest",
    "TransferRequest",
    "ExchangeRequest",
]

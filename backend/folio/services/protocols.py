# backend/folio/services/protocols.py
"""
Protocol interfaces for the valuation engine.

Using typing.Protocol enables structural subtyping: ORM rows, drafts and
plain test dataclasses all satisfy LedgerEntryLike without inheritance.
"""

from __future__ import annotations

from decimal import Decimal
from typing import Protocol, TYPE_CHECKING

if TYPE_CHECKING:
    from folio.models import EntryReason


class LedgerEntryLike(Protocol):
    """The fields of a ledger entry the valuation engine reads."""

    reason: EntryReason
    quantity: Decimal
    unit_price: Decimal


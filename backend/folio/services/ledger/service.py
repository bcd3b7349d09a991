# backend/folio/services/ledger/service.py
"""
Ledger write-side orchestration.

Every write runs inside LedgerStore.position_locks() so that the balance
check and the insert it guards happen with no competing writer on the
affected positions.

Rules enforced here:
- Transfer reasons are only created as pairs (record_transfer)
- Currency positions always use a unit price of 1
- An entry may not be dated before its position's latest entry
- Outflows must not exceed the held quantity
- Only the latest entry of a position can be deleted, and linked entries
  only together with their partner
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from datetime import datetime
from decimal import Decimal

from sqlalchemy.orm import Session

from folio.models import EntryReason, FeeType, LedgerEntry, Position
from folio.services.constants import CURRENCY_UNIT_PRICE
from folio.services.exceptions import (
    BackdatedEntryError,
    LinkedEntryError,
    ValidationError,
)
from folio.services.ledger.coordinator import (
    ExchangeRequest,
    LinkedEntryCoordinator,
    PositionRef,
    TransferRequest,
)
from folio.services.ledger.drafts import LedgerEntryDraft
from folio.services.ledger.store import LedgerStore
from folio.services.valuation.calculators import BalanceGuard
from folio.services.valuation.classifier import classify
from folio.utils.date_utils import ensure_utc

logger = logging.getLogger(__name__)

_PAIR_ONLY_REASONS = frozenset({EntryReason.TRANSFER_IN, EntryReason.TRANSFER_OUT})


@dataclass(frozen=True)
class EntryRequest:
    """A single (unpaired) ledger entry to record."""

    position_id: int
    reason: EntryReason
    quantity: Decimal
    occurred_at: datetime
    unit_price: Decimal | None = None
    fee: Decimal | None = None
    fee_type: FeeType | None = None
    notes: str | None = None


def position_ref(position: Position) -> PositionRef:
    return PositionRef(
        position_id=position.id,
        asset_id=position.asset_id,
        asset_code=position.asset.code,
        asset_class=position.asset.asset_class,
        platform_id=position.platform_id,
    )


class LedgerService:
    """
    Records and deletes ledger entries.

    Usage:
        service = LedgerService()
        entry = service.record_entry(db, EntryRequest(...))
        out_leg, in_leg = service.record_transfer(db, TransferRequest(...))
    """

    def __init__(
            self,
            store: LedgerStore | None = None,
            coordinator: LinkedEntryCoordinator | None = None,
            guard: BalanceGuard | None = None,
    ) -> None:
        self._store = store or LedgerStore()
        self._coordinator = coordinator or LinkedEntryCoordinator()
        self._guard = guard or BalanceGuard()

    # =========================================================================
    # READS
    # =========================================================================

    def list_entries(self, db: Session, position_id: int) -> list[LedgerEntry]:
        """
        Live entries of a position in ledger order.

        Raises:
            PositionNotFoundError: If the position does not exist
        """
        self._store.get_position(db, position_id)
        return self._store.list_entries(db, position_id)

    def get_entry(self, db: Session, entry_id: int) -> LedgerEntry:
        return self._store.get_entry(db, entry_id)

    # =========================================================================
    # SINGLE ENTRIES
    # =========================================================================

    def record_entry(self, db: Session, request: EntryRequest) -> LedgerEntry:
        """
        Record one purchase, sale, deposit, withdrawal or dividend.

        Raises:
            ValidationError: Transfer reason, or unit price missing / not 1
                on a currency position
            BackdatedEntryError: Dated before the position's latest entry
            InsufficientBalanceError: Outflow larger than the held quantity
            PositionNotFoundError: Unknown position
        """
        classify(request.reason)  # UnknownReasonError outside EntryReason
        reason = EntryReason(request.reason)
        if reason in _PAIR_ONLY_REASONS:
            raise ValidationError(
                "Transfer entries are created in pairs; use the transfer operation",
                field="reason",
            )

        with self._store.position_locks(db, [request.position_id]) as positions:
            position = positions[request.position_id]
            unit_price = self._resolve_unit_price(position, request.unit_price)

            draft = LedgerEntryDraft.build(
                position_id=position.id,
                reason=reason,
                quantity=request.quantity,
                unit_price=unit_price,
                occurred_at=request.occurred_at,
                fee=request.fee,
                fee_type=request.fee_type,
                notes=request.notes,
            )

            self._reject_backdated(db, position.id, request.occurred_at)

            if draft.is_outflow:
                entries = self._store.list_entries(db, position.id)
                self._guard.ensure(entries, draft.quantity, position_id=position.id)

            entry = self._store.create_entry(db, draft)

        logger.info(
            "Recorded %s entry %s on position %s: quantity=%s unit_price=%s",
            entry.reason.value,
            entry.id,
            entry.position_id,
            entry.quantity,
            entry.unit_price,
            extra={"position_id": entry.position_id, "entry_id": entry.id},
        )
        return entry

    def _resolve_unit_price(self, position: Position, unit_price: Decimal | None) -> Decimal:
        if position.asset.is_currency:
            if unit_price is not None and unit_price != CURRENCY_UNIT_PRICE:
                raise ValidationError(
                    f"Currency positions use a unit price of {CURRENCY_UNIT_PRICE}",
                    field="unit_price",
                )
            return CURRENCY_UNIT_PRICE

        if unit_price is None:
            raise ValidationError(
                f"unit_price is required for {position.asset.asset_class.value} positions",
                field="unit_price",
            )
        return unit_price

    def _reject_backdated(self, db: Session, position_id: int, occurred_at: datetime) -> None:
        last = self._store.last_entry(db, position_id)
        if last is None:
            return
        if ensure_utc(occurred_at) < ensure_utc(last.occurred_at):
            logger.warning(
                "Rejected backdated entry for position %s: %s before %s",
                position_id,
                occurred_at.isoformat(),
                last.occurred_at.isoformat(),
            )
            raise BackdatedEntryError(position_id, occurred_at, last.occurred_at)

    # =========================================================================
    # LINKED PAIRS
    # =========================================================================

    def record_transfer(self, db: Session, request: TransferRequest) -> tuple[LedgerEntry, LedgerEntry]:
        """
        Move a quantity of one asset between two positions.

        Returns:
            (TRANSFER_OUT entry, TRANSFER_IN entry), linked to each other
        """
        position_ids = [request.source_position_id, request.target_position_id]
        with self._store.position_locks(db, position_ids) as positions:
            source = positions[request.source_position_id]
            target = positions[request.target_position_id]

            for position_id in set(position_ids):
                self._reject_backdated(db, position_id, request.occurred_at)

            pair = self._coordinator.build_transfer(
                request,
                source=position_ref(source),
                target=position_ref(target),
                source_entries=self._store.list_entries(db, source.id),
            )
            out_leg, in_leg = self._store.create_entry_pair(db, pair)

        logger.info(
            "Recorded transfer of %s from position %s to %s (entries %s/%s)",
            out_leg.quantity,
            out_leg.position_id,
            in_leg.position_id,
            out_leg.id,
            in_leg.id,
        )
        return out_leg, in_leg

    def record_exchange(self, db: Session, request: ExchangeRequest) -> tuple[LedgerEntry, LedgerEntry]:
        """
        Convert one asset into another on the same platform.

        Returns:
            (SALE entry on the source, PURCHASE entry on the target)
        """
        position_ids = [request.source_position_id, request.target_position_id]
        with self._store.position_locks(db, position_ids) as positions:
            source = positions[request.source_position_id]
            target = positions[request.target_position_id]

            for position_id in set(position_ids):
                self._reject_backdated(db, position_id, request.occurred_at)

            pair = self._coordinator.build_exchange(
                request,
                source=position_ref(source),
                target=position_ref(target),
                source_entries=self._store.list_entries(db, source.id),
            )
            sell_leg, buy_leg = self._store.create_entry_pair(db, pair)

        logger.info(
            "Recorded exchange of %s %s into %s %s (entries %s/%s)",
            sell_leg.quantity,
            source.asset.code,
            buy_leg.quantity,
            target.asset.code,
            sell_leg.id,
            buy_leg.id,
        )
        return sell_leg, buy_leg

    # =========================================================================
    # DELETION
    # =========================================================================

    def delete_entry(self, db: Session, entry_id: int) -> None:
        """
        Soft-delete a single, unlinked entry.

        Raises:
            LedgerEntryNotFoundError: Unknown or already deleted
            LinkedEntryError: Entry belongs to a pair, or is not the
                latest entry of its position
        """
        entry = self._store.get_entry(db, entry_id)
        if entry.is_linked:
            raise LinkedEntryError(
                f"Entry {entry_id} is part of a transfer or exchange; delete the pair instead",
                entry_id=entry_id,
            )

        with self._store.position_locks(db, [entry.position_id]):
            entry = self._store.get_entry(db, entry_id)
            self._ensure_latest(db, entry)
            self._store.soft_delete(db, [entry])

        logger.info("Deleted entry %s on position %s", entry_id, entry.position_id)

    def delete_linked_pair(self, db: Session, entry_id: int) -> None:
        """
        Soft-delete both legs of a transfer or exchange in one commit.

        Raises:
            LedgerEntryNotFoundError: Unknown or already deleted
            LinkedEntryError: Entry is not linked, its partner is missing,
                or either leg is not the latest entry of its position
        """
        entry = self._store.get_entry(db, entry_id)
        if not entry.is_linked:
            raise LinkedEntryError(
                f"Entry {entry_id} is not part of a transfer or exchange",
                entry_id=entry_id,
            )

        partner_id = entry.linked_entry_id
        with self._store.position_locks(db, [entry.position_id, self._partner(db, entry).position_id]):
            entry = self._store.get_entry(db, entry_id)
            partner = self._partner(db, entry)
            self._ensure_latest(db, entry)
            self._ensure_latest(db, partner)
            self._store.soft_delete(db, [entry, partner])

        logger.info("Deleted linked entries %s and %s", entry_id, partner_id)

    def _partner(self, db: Session, entry: LedgerEntry) -> LedgerEntry:
        partner = db.get(LedgerEntry, entry.linked_entry_id)
        if partner is None or partner.deleted_at is not None or partner.linked_entry_id != entry.id:
            raise LinkedEntryError(
                f"Linked partner of entry {entry.id} is missing or inconsistent",
                entry_id=entry.id,
            )
        return partner

    def _ensure_latest(self, db: Session, entry: LedgerEntry) -> None:
        last = self._store.last_entry(db, entry.position_id)
        if last is None or last.id != entry.id:
            raise LinkedEntryError(
                f"Entry {entry.id} is not the latest entry of position {entry.position_id}; "
                "only the most recent entry can be deleted",
                entry_id=entry.id,
            )

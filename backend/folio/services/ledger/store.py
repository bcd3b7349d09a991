# backend/folio/services/ledger/store.py
"""
Ledger storage: the read and write collaborator of the valuation engine.

Reads:
- list_entries: live (not soft-deleted) entries in (occurred_at, id) order
- latest_price: most recent quote for an asset
- last_entry / get_entry / get_position

Writes:
- create_entry: one entry, one commit
- create_entry_pair: two entries flushed, cross-linked and committed in a
  single database transaction; any failure rolls back both
- soft_delete: stamps deleted_at on the given entries in one commit

Writers serialize per position with position_locks(): an in-process lock per
position id, taken in ascending id order, plus SELECT ... FOR UPDATE on the
position rows so other processes sharing a PostgreSQL database wait too.
While the locks are held the position ids are stamped on every log record.
"""

from __future__ import annotations

import logging
import threading
import weakref
from collections.abc import Iterable, Iterator
from contextlib import contextmanager
from decimal import Decimal
from typing import TYPE_CHECKING

from sqlalchemy import select
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session, joinedload

from folio.models import AssetQuote, LedgerEntry, Position
from folio.services.exceptions import LedgerEntryNotFoundError, PositionNotFoundError
from folio.utils.context import position_scope
from folio.utils.date_utils import utc_now

if TYPE_CHECKING:
    from folio.services.ledger.coordinator import LinkedEntryPair
    from folio.services.ledger.drafts import LedgerEntryDraft

logger = logging.getLogger(__name__)

# Shared by every LedgerStore instance in the process. Entries vanish once no
# writer holds or waits on the lock, so the registry stays as small as the
# number of positions being written concurrently.
_registry_lock = threading.Lock()
_position_locks: weakref.WeakValueDictionary[int, threading.Lock] = weakref.WeakValueDictionary()


def _lock_for(position_id: int) -> threading.Lock:
    with _registry_lock:
        lock = _position_locks.get(position_id)
        if lock is None:
            lock = threading.Lock()
            _position_locks[position_id] = lock
        return lock


class LedgerStore:
    """SQLAlchemy-backed ledger storage. Methods take the request's Session."""

    # =========================================================================
    # READS
    # =========================================================================

    def list_entries(self, db: Session, position_id: int) -> list[LedgerEntry]:
        query = (
            select(LedgerEntry)
            .where(
                LedgerEntry.position_id == position_id,
                LedgerEntry.deleted_at.is_(None),
            )
            .order_by(LedgerEntry.occurred_at.asc(), LedgerEntry.id.asc())
        )
        return list(db.scalars(query).all())

    def latest_price(self, db: Session, asset_id: int) -> Decimal | None:
        query = (
            select(AssetQuote.price)
            .where(AssetQuote.asset_id == asset_id)
            .order_by(AssetQuote.quoted_at.desc(), AssetQuote.id.desc())
            .limit(1)
        )
        return db.scalar(query)

    def last_entry(self, db: Session, position_id: int) -> LedgerEntry | None:
        query = (
            select(LedgerEntry)
            .where(
                LedgerEntry.position_id == position_id,
                LedgerEntry.deleted_at.is_(None),
            )
            .order_by(LedgerEntry.occurred_at.desc(), LedgerEntry.id.desc())
            .limit(1)
        )
        return db.scalar(query)

    def get_entry(self, db: Session, entry_id: int) -> LedgerEntry:
        """
        Raises:
            LedgerEntryNotFoundError: Missing or soft-deleted
        """
        entry = db.get(LedgerEntry, entry_id, populate_existing=True)
        if entry is None or entry.deleted_at is not None:
            raise LedgerEntryNotFoundError(entry_id)
        return entry

    def get_position(self, db: Session, position_id: int) -> Position:
        """
        Fetch a position with its asset eager-loaded.

        Raises:
            PositionNotFoundError: If the position does not exist
        """
        query = (
            select(Position)
            .options(joinedload(Position.asset))
            .where(Position.id == position_id)
        )
        position = db.scalar(query)
        if position is None:
            raise PositionNotFoundError(position_id)
        return position

    def list_positions(
            self,
            db: Session,
            *,
            platform_id: int | None = None,
            user_id: int | None = None,
    ) -> list[Position]:
        query = select(Position).options(joinedload(Position.asset)).order_by(Position.id)
        if platform_id is not None:
            query = query.where(Position.platform_id == platform_id)
        if user_id is not None:
            query = query.where(Position.user_id == user_id)
        return list(db.scalars(query).all())

    # =========================================================================
    # WRITES
    # =========================================================================

    @contextmanager
    def position_locks(self, db: Session, position_ids: Iterable[int]) -> Iterator[dict[int, Position]]:
        """
        Hold the write lock of every given position for the duration of the block.

        Yields:
            Positions keyed by id, loaded with FOR UPDATE

        Raises:
            PositionNotFoundError: If any position does not exist
        """
        ordered_ids = sorted(set(position_ids))
        acquired: list[threading.Lock] = []
        try:
            for position_id in ordered_ids:
                lock = _lock_for(position_id)
                lock.acquire()
                acquired.append(lock)
            logger.debug("Acquired write locks for positions %s", ordered_ids)

            query = (
                select(Position)
                .options(joinedload(Position.asset, innerjoin=True))
                .where(Position.id.in_(ordered_ids))
                .order_by(Position.id)
                .with_for_update(of=Position)
            )
            positions = {p.id: p for p in db.scalars(query).unique().all()}
            for position_id in ordered_ids:
                if position_id not in positions:
                    raise PositionNotFoundError(position_id)

            with position_scope(ordered_ids):
                yield positions
        except Exception:
            # Release row locks held by the open transaction
            db.rollback()
            raise
        finally:
            for lock in reversed(acquired):
                lock.release()

    def create_entry(self, db: Session, draft: LedgerEntryDraft) -> LedgerEntry:
        entry = draft.to_model()
        db.add(entry)
        try:
            db.commit()
        except SQLAlchemyError:
            db.rollback()
            logger.error("Failed to persist entry for position %s", draft.position_id)
            raise
        db.refresh(entry)
        return entry

    def create_entry_pair(self, db: Session, pair: LinkedEntryPair) -> tuple[LedgerEntry, LedgerEntry]:
        """
        Persist both legs of a pair and link them to each other.

        Either both entries are committed with their linked_entry_id set, or
        neither is: any exception rolls the whole session back and re-raises.
        """
        source = pair.source.to_model()
        target = pair.target.to_model()
        try:
            db.add_all([source, target])
            db.flush()
            source.linked_entry_id = target.id
            target.linked_entry_id = source.id
            db.commit()
        except Exception:
            db.rollback()
            logger.error(
                "Rolled back %s pair between positions %s and %s",
                pair.kind.value,
                pair.source.position_id,
                pair.target.position_id,
            )
            raise

        db.refresh(source)
        db.refresh(target)
        return source, target

    def soft_delete(self, db: Session, entries: Iterable[LedgerEntry]) -> None:
        deleted_at = utc_now()
        try:
            for entry in entries:
                entry.deleted_at = deleted_at
            db.commit()
        except SQLAlchemyError:
            db.rollback()
            raise

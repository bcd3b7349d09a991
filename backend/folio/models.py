# backend/folio/models.py
import enum
from datetime import datetime, timezone
from decimal import Decimal

from sqlalchemy import String, DateTime, ForeignKey, Enum, Numeric, UniqueConstraint, Boolean, Index
from sqlalchemy.orm import DeclarativeBase, Mapped, mapped_column, relationship


class Base(DeclarativeBase):
    """Base class for all SQLAlchemy models."""
    pass


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


class FlowDirection(str, enum.Enum):
    INFLOW = "INFLOW"
    OUTFLOW = "OUTFLOW"


class EntryReason(str, enum.Enum):
    """
    Why a ledger entry exists.

    Each reason implies exactly one FlowDirection; the mapping lives in
    folio.services.valuation.classifier and must cover every member.
    """
    PURCHASE = "PURCHASE"
    SALE = "SALE"
    DEPOSIT = "DEPOSIT"
    WITHDRAWAL = "WITHDRAWAL"
    TRANSFER_OUT = "TRANSFER_OUT"
    TRANSFER_IN = "TRANSFER_IN"
    DIVIDEND = "DIVIDEND"


class FeeType(str, enum.Enum):
    PERCENTAGE_TARGET = "PERCENTAGE_TARGET"  # percent of the target leg value
    PERCENTAGE_SOURCE = "PERCENTAGE_SOURCE"  # percent of the source leg value
    FIXED_SOURCE = "FIXED_SOURCE"  # flat amount in the source asset
    FIXED_TARGET = "FIXED_TARGET"  # flat amount in the target asset


class AssetClass(str, enum.Enum):
    STOCK = "STOCK"
    FUND = "FUND"
    FIXED_INCOME = "FIXED_INCOME"
    CRYPTO = "CRYPTO"
    CURRENCY = "CURRENCY"
    COMMODITY = "COMMODITY"


class User(Base):
    __tablename__ = "users"

    id: Mapped[int] = mapped_column(primary_key=True, index=True)
    email: Mapped[str] = mapped_column(String, unique=True, index=True)
    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), default=_utcnow)

    positions: Mapped[list["Position"]] = relationship(back_populates="owner")


class Platform(Base):
    """A venue (broker, exchange, bank) where positions are held."""
    __tablename__ = "platforms"

    id: Mapped[int] = mapped_column(primary_key=True, index=True)
    user_id: Mapped[int] = mapped_column(ForeignKey("users.id"), index=True)
    name: Mapped[str] = mapped_column(String)
    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), default=_utcnow)

    positions: Mapped[list["Position"]] = relationship(back_populates="platform")


class SavingsGoal(Base):
    __tablename__ = "savings_goals"

    id: Mapped[int] = mapped_column(primary_key=True, index=True)
    user_id: Mapped[int] = mapped_column(ForeignKey("users.id"), index=True)
    name: Mapped[str] = mapped_column(String)
    target_amount: Mapped[Decimal | None] = mapped_column(Numeric(18, 2), nullable=True)
    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), default=_utcnow)


class Asset(Base):
    """Global table of tradable instruments, currencies included."""
    __tablename__ = "assets"

    id: Mapped[int] = mapped_column(primary_key=True, index=True)
    code: Mapped[str] = mapped_column(String, unique=True, index=True)  # e.g. "AAPL", "EUR", "BTC"
    name: Mapped[str] = mapped_column(String)
    asset_class: Mapped[AssetClass] = mapped_column(Enum(AssetClass))
    is_active: Mapped[bool] = mapped_column(Boolean, default=True)
    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), default=_utcnow)

    quotes: Mapped[list["AssetQuote"]] = relationship(back_populates="asset", cascade="all, delete-orphan")

    @property
    def is_currency(self) -> bool:
        return self.asset_class == AssetClass.CURRENCY


class Position(Base):
    """
    The holding of one asset on one platform (optionally inside a savings
    goal) for one owner.

    Carries no quantity or cost columns: those are always derived from the
    ledger entries by the valuation engine.
    """
    __tablename__ = "positions"
    __table_args__ = (
        UniqueConstraint("user_id", "asset_id", "platform_id", "savings_goal_id", name="uq_position_identity"),
    )

    id: Mapped[int] = mapped_column(primary_key=True, index=True)
    user_id: Mapped[int] = mapped_column(ForeignKey("users.id"), index=True)
    asset_id: Mapped[int] = mapped_column(ForeignKey("assets.id"), index=True)
    platform_id: Mapped[int] = mapped_column(ForeignKey("platforms.id"), index=True)
    savings_goal_id: Mapped[int | None] = mapped_column(ForeignKey("savings_goals.id"), nullable=True)
    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), default=_utcnow)

    owner: Mapped["User"] = relationship(back_populates="positions")
    platform: Mapped["Platform"] = relationship(back_populates="positions")
    asset: Mapped["Asset"] = relationship()
    entries: Mapped[list["LedgerEntry"]] = relationship(back_populates="position")


class LedgerEntry(Base):
    """
    One immutable movement of an asset quantity into or out of a position.

    Never updated after creation except for `deleted_at` (soft delete).
    `total_value` is fixed at creation as quantity * unit_price.
    """
    __tablename__ = "ledger_entries"
    __table_args__ = (
        Index("ix_ledger_entries_position_order", "position_id", "occurred_at", "id"),
    )

    id: Mapped[int] = mapped_column(primary_key=True, index=True)
    position_id: Mapped[int] = mapped_column(ForeignKey("positions.id"), index=True)

    flow_direction: Mapped[FlowDirection] = mapped_column(Enum(FlowDirection))
    reason: Mapped[EntryReason] = mapped_column(Enum(EntryReason))

    # 18 digits total, 8 after the decimal point (crypto precision)
    quantity: Mapped[Decimal] = mapped_column(Numeric(18, 8))
    unit_price: Mapped[Decimal] = mapped_column(Numeric(18, 8))
    # Product of two Numeric(18, 8) values
    total_value: Mapped[Decimal] = mapped_column(Numeric(36, 16))

    fee: Mapped[Decimal | None] = mapped_column(Numeric(18, 8), nullable=True)
    fee_type: Mapped[FeeType | None] = mapped_column(Enum(FeeType), nullable=True)

    linked_entry_id: Mapped[int | None] = mapped_column(
        ForeignKey("ledger_entries.id", use_alter=True, name="fk_ledger_entries_linked_entry"),
        nullable=True,
    )

    occurred_at: Mapped[datetime] = mapped_column(DateTime(timezone=True))
    notes: Mapped[str | None] = mapped_column(String, nullable=True)
    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), default=_utcnow)
    deleted_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True), nullable=True)

    position: Mapped["Position"] = relationship(back_populates="entries")

    @property
    def is_linked(self) -> bool:
        return self.linked_entry_id is not None


class AssetQuote(Base):
    """Price observations; only the most recent one per asset is read."""
    __tablename__ = "asset_quotes"
    __table_args__ = (
        Index("ix_asset_quotes_asset_quoted_at", "asset_id", "quoted_at"),
    )

    id: Mapped[int] = mapped_column(primary_key=True, index=True)
    asset_id: Mapped[int] = mapped_column(ForeignKey("assets.id"))
    price: Mapped[Decimal] = mapped_column(Numeric(18, 8))
    quoted_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), default=_utcnow)

    asset: Mapped["Asset"] = relationship(back_populates="quotes")

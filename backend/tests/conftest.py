# backend/tests/conftest.py
"""
Pytest configuration and fixtures.

Provides:
- Test environment variables (set before any folio import)
- Database session fixtures (in-memory SQLite)
- A TestClient wired to the test session
- Factories for users, platforms, assets, positions, entries and quotes
"""

import os

os.environ.setdefault("ENVIRONMENT", "test")
os.environ.setdefault("DATABASE_URL", "sqlite:///:memory:")
os.environ.setdefault("RATE_LIMIT_ENABLED", "false")
os.environ.setdefault("LOG_LEVEL", "WARNING")

from datetime import datetime, timedelta, timezone
from decimal import Decimal
from typing import Iterator

import pytest
from fastapi.testclient import TestClient
from sqlalchemy import create_engine
from sqlalchemy.orm import Session, sessionmaker
from sqlalchemy.pool import StaticPool

from folio.database import enable_sqlite_foreign_keys
from folio.models import (
    Asset,
    AssetClass,
    AssetQuote,
    Base,
    EntryReason,
    LedgerEntry,
    Platform,
    Position,
    User,
)
from folio.services.valuation.classifier import direction_of

# Fixed reference point; entry timestamps are derived from it so ordering is explicit
BASE_TIME = datetime(2024, 1, 1, 12, 0, tzinfo=timezone.utc)


def at(days: int) -> datetime:
    """BASE_TIME shifted by a number of days."""
    return BASE_TIME + timedelta(days=days)


# =============================================================================
# DATABASE FIXTURES
# =============================================================================

@pytest.fixture(scope="function")
def db_engine():
    """Create an in-memory SQLite database engine for testing."""
    engine = create_engine(
        "sqlite:///:memory:",
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
    )
    enable_sqlite_foreign_keys(engine)
    Base.metadata.create_all(engine)
    yield engine
    Base.metadata.drop_all(engine)


@pytest.fixture(scope="function")
def db(db_engine) -> Iterator[Session]:
    """Create a database session for testing."""
    SessionLocal = sessionmaker(autocommit=False, autoflush=False, bind=db_engine)
    session = SessionLocal()
    try:
        yield session
    finally:
        session.rollback()
        session.close()


@pytest.fixture(scope="function")
def client(db: Session) -> Iterator[TestClient]:
    """TestClient whose get_db dependency yields the test session."""
    from folio.database import get_db
    from folio.main import app

    def override_get_db():
        try:
            yield db
        finally:
            pass

    app.dependency_overrides[get_db] = override_get_db

    with TestClient(app) as c:
        yield c

    app.dependency_overrides.clear()


# =============================================================================
# FACTORY FUNCTIONS
# =============================================================================

def make_user(db: Session, email: str = "investor@example.com") -> User:
    user = User(email=email)
    db.add(user)
    db.commit()
    db.refresh(user)
    return user


def make_platform(db: Session, user: User, name: str = "Broker") -> Platform:
    platform = Platform(user_id=user.id, name=name)
    db.add(platform)
    db.commit()
    db.refresh(platform)
    return platform


def make_asset(
        db: Session,
        code: str = "AAPL",
        asset_class: AssetClass = AssetClass.STOCK,
        name: str | None = None,
) -> Asset:
    asset = Asset(code=code, name=name or code, asset_class=asset_class)
    db.add(asset)
    db.commit()
    db.refresh(asset)
    return asset


def make_position(
        db: Session,
        user: User,
        asset: Asset,
        platform: Platform,
        savings_goal_id: int | None = None,
) -> Position:
    position = Position(
        user_id=user.id,
        asset_id=asset.id,
        platform_id=platform.id,
        savings_goal_id=savings_goal_id,
    )
    db.add(position)
    db.commit()
    db.refresh(position)
    return position


def make_entry(
        db: Session,
        position: Position,
        reason: EntryReason,
        quantity: str,
        unit_price: str = "1",
        occurred_at: datetime | None = None,
) -> LedgerEntry:
    """Insert an entry directly, bypassing LedgerService rules."""
    qty = Decimal(quantity)
    price = Decimal(unit_price)
    entry = LedgerEntry(
        position_id=position.id,
        flow_direction=direction_of(reason),
        reason=reason,
        quantity=qty,
        unit_price=price,
        total_value=qty * price,
        occurred_at=occurred_at or BASE_TIME,
    )
    db.add(entry)
    db.commit()
    db.refresh(entry)
    return entry


def make_quote(db: Session, asset: Asset, price: str, quoted_at: datetime | None = None) -> AssetQuote:
    quote = AssetQuote(asset_id=asset.id, price=Decimal(price), quoted_at=quoted_at or BASE_TIME)
    db.add(quote)
    db.commit()
    db.refresh(quote)
    return quote


# =============================================================================
# SCENARIO FIXTURES
# =============================================================================

@pytest.fixture
def user(db: Session) -> User:
    return make_user(db)


@pytest.fixture
def platform(db: Session, user: User) -> Platform:
    return make_platform(db, user)


@pytest.fixture
def stock(db: Session) -> Asset:
    return make_asset(db, "AAPL", AssetClass.STOCK, "Apple Inc.")


@pytest.fixture
def euro(db: Session) -> Asset:
    return make_asset(db, "EUR", AssetClass.CURRENCY, "Euro")


@pytest.fixture
def bitcoin(db: Session) -> Asset:
    return make_asset(db, "BTC", AssetClass.CRYPTO, "Bitcoin")


@pytest.fixture
def stock_position(db: Session, user: User, stock: Asset, platform: Platform) -> Position:
    return make_position(db, user, stock, platform)


@pytest.fixture
def cash_position(db: Session, user: User, euro: Asset, platform: Platform) -> Position:
    return make_position(db, user, euro, platform)

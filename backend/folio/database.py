# backend/folio/database.py
"""
Engine and session factory.

- PostgreSQL: QueuePool sized by the DB_POOL_* settings. Row locks taken by
  LedgerStore.position_locks() are real SELECT ... FOR UPDATE locks here.
- SQLite (tests, local experiments): one shared connection through
  StaticPool so an in-memory database survives across sessions, with
  foreign key enforcement switched on for every connection.
"""

import logging
from collections.abc import Generator

from sqlalchemy import create_engine, event
from sqlalchemy.engine import Engine
from sqlalchemy.orm import Session, sessionmaker
from sqlalchemy.pool import QueuePool, StaticPool

from folio.config import settings

logger = logging.getLogger(__name__)


def enable_sqlite_foreign_keys(engine: Engine) -> None:
    """SQLite ignores FOREIGN KEY clauses unless asked per connection."""

    @event.listens_for(engine, "connect")
    def _set_pragma(dbapi_connection, connection_record):
        cursor = dbapi_connection.cursor()
        cursor.execute("PRAGMA foreign_keys=ON")
        cursor.close()


def _create_engine() -> Engine:
    if settings.is_sqlite:
        logger.info("Using SQLite database (%s)", settings.environment)
        # FastAPI runs sync endpoints in a threadpool
        sqlite_engine = create_engine(
            settings.database_url,
            poolclass=StaticPool,
            connect_args={"check_same_thread": False},
            echo=settings.debug,
        )
        enable_sqlite_foreign_keys(sqlite_engine)
        return sqlite_engine

    logger.info(
        "Using PostgreSQL pool: size=%s max_overflow=%s recycle=%ss pre_ping=%s",
        settings.db_pool_size,
        settings.db_pool_max_overflow,
        settings.db_pool_recycle,
        settings.db_pool_pre_ping,
    )
    return create_engine(
        settings.database_url,
        poolclass=QueuePool,
        pool_size=settings.db_pool_size,
        max_overflow=settings.db_pool_max_overflow,
        pool_recycle=settings.db_pool_recycle,
        pool_pre_ping=settings.db_pool_pre_ping,
        pool_timeout=30,
        echo=settings.debug,
    )


engine = _create_engine()
SessionLocal = sessionmaker(autocommit=False, autoflush=False, bind=engine)


def get_db() -> Generator[Session, None, None]:
    """Request-scoped session; ledger services commit or roll back themselves."""
    db = SessionLocal()
    try:
        yield db
    finally:
        db.close()

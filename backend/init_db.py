#!/usr/bin/env python3
# backend/init_db.py
"""
Database initialization script.

Creates every table defined in folio.models. Can be run from any directory:
    python backend/init_db.py
    cd backend && python init_db.py
"""
import logging
import sys
from pathlib import Path

# Make the 'folio' package importable without installing it
backend_dir = Path(__file__).parent
sys.path.insert(0, str(backend_dir))

from folio.database import engine
from folio.models import Base
from folio.utils import setup_logging

logger = logging.getLogger("folio.init_db")


def init_db() -> None:
    """Create all database tables defined in models."""
    logger.info("Creating database tables...")
    Base.metadata.create_all(bind=engine)
    logger.info("Created tables: %s", ", ".join(sorted(Base.metadata.tables)))


if __name__ == "__main__":
    setup_logging()
    init_db()

# backend/folio/utils/date_utils.py
"""
Datetime helpers shared by the ledger services.

SQLite returns DateTime(timezone=True) columns as naive values, PostgreSQL
as aware ones. Everything in the ledger is compared in UTC.

Usage:
    from folio.utils.date_utils import ensure_utc

    if ensure_utc(new_at) < ensure_utc(last_at):
        ...
"""

from datetime import datetime, timezone


def ensure_utc(value: datetime) -> datetime:
    """
    Return value as a timezone-aware UTC datetime.

    Naive datetimes are taken to already be in UTC.

    Example:
        >>> ensure_utc(datetime(2024, 1, 1, 12, 0))
        datetime.datetime(2024, 1, 1, 12, 0, tzinfo=datetime.timezone.utc)
    """
    if value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value.astimezone(timezone.utc)


def utc_now() -> datetime:
    return datetime.now(timezone.utc)

# backend/folio/utils/logging.py
"""
Logging configuration for Folio Ledger.

setup_logging() is called once in folio.main before the app is created.
It installs a single stdout handler on the root logger whose records are
stamped by LedgerContextFilter with:

- correlation_id: the HTTP request being served
- positions: the positions whose write lock is held ("-" when none)

Text format:
    2024-01-15 10:30:00 | INFO     | 5f0c... | pos=3,7 | folio.services.ledger.service | Recorded transfer ...

JSON format (LOG_FORMAT=json) emits one object per line with the same
fields plus any `extra=` values passed by the caller.

Log Levels:
    DEBUG   - Fold results, lock acquisition
    INFO    - Entries recorded or deleted
    WARNING - Rejected writes (insufficient balance, backdated entry)
    ERROR   - Rolled-back pairs, database failures
"""

import json
import logging
import sys
from datetime import datetime, timezone
from decimal import Decimal
from typing import Any

from folio.config import settings
from folio.utils.context import get_correlation_id, get_position_ids

# =============================================================================
# CONSTANTS
# =============================================================================

DEFAULT_TEXT_FORMAT = (
    "%(asctime)s | %(levelname)-8s | %(correlation_id)s | pos=%(positions)s | %(name)s | %(message)s"
)
DEFAULT_DATE_FORMAT = "%Y-%m-%d %H:%M:%S"

NO_CORRELATION_ID = "no-correlation-id"
NO_POSITIONS = "-"

NOISY_LOGGERS = (
    "sqlalchemy.engine",
    "httpx",
    "httpcore",
    "asyncio",
    "multipart",
)

# Attributes every LogRecord has; anything else came from `extra=`
_RECORD_ATTRS = frozenset(vars(logging.LogRecord("", 0, "", 0, "", (), None))) | {
    "message",
    "asctime",
    "correlation_id",
    "positions",
    "position_ids",
}

_LEVELS = {
    "DEBUG": logging.DEBUG,
    "INFO": logging.INFO,
    "WARNING": logging.WARNING,
    "WARN": logging.WARNING,
    "ERROR": logging.ERROR,
    "CRITICAL": logging.CRITICAL,
}


# =============================================================================
# CONTEXT FILTER
# =============================================================================

class LedgerContextFilter(logging.Filter):
    """Stamps request and position context on every record."""

    def filter(self, record: logging.LogRecord) -> bool:
        position_ids = get_position_ids()
        record.correlation_id = get_correlation_id() or NO_CORRELATION_ID
        record.position_ids = list(position_ids)
        record.positions = ",".join(str(p) for p in position_ids) or NO_POSITIONS
        return True


# =============================================================================
# JSON FORMATTER
# =============================================================================

def _json_default(value: Any) -> Any:
    # Ledger quantities stay exact in logs
    if isinstance(value, Decimal):
        return str(value)
    if isinstance(value, datetime):
        return value.isoformat()
    return repr(value)


class JsonFormatter(logging.Formatter):
    """
    One JSON object per record.

    {
        "timestamp": "2024-01-15T10:30:00.123456+00:00",
        "level": "INFO",
        "logger": "folio.services.ledger.service",
        "correlation_id": "5f0c...",
        "position_ids": [3, 7],
        "message": "Recorded transfer of 50 from position 3 to 7",
        "extra": {"entry_id": 12}
    }
    """

    def format(self, record: logging.LogRecord) -> str:
        payload: dict[str, Any] = {
            "timestamp": datetime.fromtimestamp(record.created, timezone.utc).isoformat(),
            "level": record.levelname,
            "logger": record.name,
            "correlation_id": getattr(record, "correlation_id", NO_CORRELATION_ID),
            "position_ids": getattr(record, "position_ids", []),
            "message": record.getMessage(),
        }

        if record.exc_info:
            payload["exception"] = self.formatException(record.exc_info)

        extra = {k: v for k, v in vars(record).items() if k not in _RECORD_ATTRS}
        if extra:
            payload["extra"] = extra

        return json.dumps(payload, default=_json_default)


# =============================================================================
# SETUP
# =============================================================================

def setup_logging(
        level: str | None = None,
        log_format: str | None = None,
        suppress_noisy_loggers: bool = True,
) -> None:
    """
    Configure the root logger.

    Args:
        level: Level name; defaults to settings.log_level
        log_format: "text" or "json"; defaults to settings.log_format
        suppress_noisy_loggers: Raise third-party loggers to WARNING

    Raises:
        ValueError: Unknown level name
    """
    level_name = level or settings.log_level
    log_level = _get_log_level(level_name)
    format_type = (log_format or settings.log_format).lower()

    if format_type == "json":
        formatter: logging.Formatter = JsonFormatter()
    else:
        formatter = logging.Formatter(fmt=DEFAULT_TEXT_FORMAT, datefmt=DEFAULT_DATE_FORMAT)

    handler = logging.StreamHandler(sys.stdout)
    handler.setFormatter(formatter)
    handler.addFilter(LedgerContextFilter())

    root_logger = logging.getLogger()
    root_logger.setLevel(log_level)
    root_logger.handlers.clear()
    root_logger.addHandler(handler)

    if suppress_noisy_loggers:
        for name in NOISY_LOGGERS:
            logging.getLogger(name).setLevel(logging.WARNING)

    logging.getLogger(__name__).info(
        "Logging configured: level=%s, format=%s", level_name, format_type
    )


def _get_log_level(level_name: str) -> int:
    """Case-insensitive level name to logging constant."""
    key = level_name.upper().strip()
    if key not in _LEVELS:
        raise ValueError(
            f"Invalid log level: '{level_name}'. Valid levels are: {', '.join(_LEVELS)}"
        )
    return _LEVELS[key]

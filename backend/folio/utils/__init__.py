# backend/folio/utils/__init__.py
"""
Cross-cutting utilities.

- context: correlation ID and locked-position scope for log records
- logging: root logger setup (text or JSON)
- date_utils: UTC normalisation for stored timestamps
"""

from folio.utils.context import (
    clear_correlation_id,
    get_correlation_id,
    get_position_ids,
    position_scope,
    set_correlation_id,
)
from folio.utils.logging import setup_logging

__all__ = [
    "setup_logging",
    "get_correlation_id",
    "set_correlation_id",
    "clear_correlation_id",
    "get_position_ids",
    "position_scope",
]

# backend/folio/services/constants.py
"""
Centralized constants for the ledger and valuation services.

Usage:
    from folio.services.constants import ZERO, EXCHANGE_RATE_TOLERANCE
"""

from decimal import Decimal


# =============================================================================
# DECIMAL HELPERS
# =============================================================================

# Type-safe zero for Decimal comparisons
ZERO: Decimal = Decimal("0")

ONE_HUNDRED: Decimal = Decimal("100")

# Ledger quantities and prices are stored as Numeric(18, 8)
MAX_DECIMAL_PLACES: int = 8
QUANTITY_QUANTUM: Decimal = Decimal("0.00000001")


# =============================================================================
# LEDGER RULES
# =============================================================================

# Unit price of every entry on a currency position
CURRENCY_UNIT_PRICE: Decimal = Decimal("1")

# Fallback unit price for a transfer out of a position with no cost basis
DEFAULT_TRANSFER_UNIT_PRICE: Decimal = Decimal("1")

# Maximum allowed |source_quantity * exchange_rate - target_quantity|
EXCHANGE_RATE_TOLERANCE: Decimal = Decimal("0.001")


# =============================================================================
# RATE LIMITING CONSTANTS
# =============================================================================
# Format follows slowapi/limits syntax: "100/minute", "10/hour", etc.

# Read endpoints (metrics, summaries, entry listing)
RATE_LIMIT_DEFAULT: str = "100/minute"

# Endpoints that record or delete ledger entries
RATE_LIMIT_WRITE: str = "30/minute"

# Monitoring tools poll health endpoints frequently
RATE_LIMIT_HEALTH: str = "300/minute"

RATE_LIMIT_RETRY_AFTER_SECONDS: int = 60

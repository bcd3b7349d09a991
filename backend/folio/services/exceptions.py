# backend/folio/services/exceptions.py
"""
Service layer exceptions.

These exceptions represent domain errors and contain NO HTTP knowledge.
folio.main maps them to HTTP responses.

Exception Hierarchy:
    ServiceError (base)
    ├── ValidationError
    │   ├── InconsistentFeeError
    │   ├── BackdatedEntryError
    │   ├── ExchangeRateMismatchError
    │   ├── ExchangeNotAllowedError
    │   └── ImpliedPriceTooSmallError
    ├── NotFoundError
    │   ├── PositionNotFoundError
    │   ├── PlatformNotFoundError
    │   ├── UserNotFoundError
    │   └── LedgerEntryNotFoundError
    └── LedgerError
        ├── EmptyLedgerError
        ├── InsufficientBalanceError
        ├── LinkedEntryError
        └── UnknownReasonError
"""

from datetime import datetime
from decimal import Decimal


class ServiceError(Exception):
    """
    Base exception for all service layer errors.

    Attributes:
        message: Human-readable error description
    """

    def __init__(self, message: str) -> None:
        self.message = message
        super().__init__(self.message)

    def __str__(self) -> str:
        return self.message


# =============================================================================
# VALIDATION ERRORS
# =============================================================================


class ValidationError(ServiceError):
    """
    Raised when a request breaks a ledger rule.

    Pydantic handles shape validation at the API edge; this covers rules
    that need ledger state or cross-field domain knowledge.

    Attributes:
        field: The field that failed validation (optional)
    """

    def __init__(self, message: str, field: str | None = None) -> None:
        self.field = field
        super().__init__(message)


class InconsistentFeeError(ValidationError):
    """Fee amount and fee type must be given together or not at all."""

    def __init__(self) -> None:
        super().__init__(
            "Fee and fee type must both be provided or both be omitted",
            field="fee",
        )


class BackdatedEntryError(ValidationError):
    """
    Raised when an entry is dated before the latest entry of its position.

    Attributes:
        position_id: Position receiving the entry
        occurred_at: Requested entry date
        last_occurred_at: Date of the position's most recent entry
    """

    def __init__(self, position_id: int, occurred_at: datetime, last_occurred_at: datetime) -> None:
        self.position_id = position_id
        self.occurred_at = occurred_at
        self.last_occurred_at = last_occurred_at
        super().__init__(
            f"Entry date {occurred_at.isoformat()} is before the latest entry "
            f"of position {position_id} ({last_occurred_at.isoformat()})",
            field="occurred_at",
        )


class ExchangeRateMismatchError(ValidationError):
    """
    Raised when target quantity does not match source quantity times rate.

    Attributes:
        expected: source_quantity * exchange_rate
        received: target_quantity supplied by the caller
        exchange_rate: Rate supplied by the caller
    """

    def __init__(self, expected: Decimal, received: Decimal, exchange_rate: Decimal) -> None:
        self.expected = expected
        self.received = received
        self.exchange_rate = exchange_rate
        super().__init__(
            f"Target quantity {received} does not match source quantity at rate "
            f"{exchange_rate} (expected {expected})",
            field="target_quantity",
        )


class ExchangeNotAllowedError(ValidationError):
    """
    Raised when two asset classes cannot be exchanged for each other.

    Attributes:
        source_class: Asset class being sold
        target_class: Asset class being bought
    """

    def __init__(self, source_class: str, target_class: str) -> None:
        self.source_class = source_class
        self.target_class = target_class
        super().__init__(
            f"Exchange from {source_class} to {target_class} is not allowed",
            field="target_position_id",
        )


class ImpliedPriceTooSmallError(ValidationError):
    """
    Raised when an exchange implies a unit price below the smallest storable
    amount (1e-8), e.g. a large quantity of a low-value coin for a fraction
    of another.

    Attributes:
        ratio: Unrounded quantity ratio the leg's unit price would be
        leg: "sell" or "buy"
    """

    def __init__(self, ratio: Decimal, leg: str) -> None:
        self.ratio = ratio
        self.leg = leg
        super().__init__(
            f"Exchange ratio {ratio:.4E} gives the {leg} leg a unit price below 0.00000001",
            field="exchange_rate",
        )


# =============================================================================
# NOT FOUND ERRORS
# =============================================================================


class NotFoundError(ServiceError):
    """
    Base exception for resource not found errors.

    Attributes:
        resource_type: Type of resource (e.g., "Position", "LedgerEntry")
        resource_id: Identifier of the resource
    """

    def __init__(
            self,
            message: str,
            resource_type: str | None = None,
            resource_id: int | str | None = None,
    ) -> None:
        self.resource_type = resource_type
        self.resource_id = resource_id
        super().__init__(message)


class PositionNotFoundError(NotFoundError):
    def __init__(self, position_id: int) -> None:
        self.position_id = position_id
        super().__init__(
            f"Position {position_id} not found",
            resource_type="Position",
            resource_id=position_id,
        )


class PlatformNotFoundError(NotFoundError):
    def __init__(self, platform_id: int) -> None:
        self.platform_id = platform_id
        super().__init__(
            f"Platform {platform_id} not found",
            resource_type="Platform",
            resource_id=platform_id,
        )


class UserNotFoundError(NotFoundError):
    def __init__(self, user_id: int) -> None:
        self.user_id = user_id
        super().__init__(
            f"User {user_id} not found",
            resource_type="User",
            resource_id=user_id,
        )


class LedgerEntryNotFoundError(NotFoundError):
    def __init__(self, entry_id: int) -> None:
        self.entry_id = entry_id
        super().__init__(
            f"Ledger entry {entry_id} not found",
            resource_type="LedgerEntry",
            resource_id=entry_id,
        )


# =============================================================================
# LEDGER ERRORS
# =============================================================================


class LedgerError(ServiceError):
    """Base exception for ledger integrity and accounting failures."""
    pass


class EmptyLedgerError(LedgerError):
    """
    Raised when position state is requested for a position with no entries.

    Distinct from a fully liquidated position, which has entries and a
    quantity of zero.
    """

    def __init__(self, position_id: int | None = None) -> None:
        self.position_id = position_id
        if position_id is None:
            message = "Cannot accumulate an empty ledger"
        else:
            message = f"Position {position_id} has no ledger entries"
        super().__init__(message)


class InsufficientBalanceError(LedgerError):
    """
    Raised when an outflow exceeds the quantity currently held.

    Attributes:
        available: Quantity currently held
        requested: Quantity the outflow tried to remove
        position_id: Affected position (optional)
    """

    def __init__(
            self,
            available: Decimal,
            requested: Decimal,
            position_id: int | None = None,
    ) -> None:
        self.available = available
        self.requested = requested
        self.position_id = position_id
        super().__init__(
            f"Insufficient balance: requested {requested}, available {available}"
        )


class LinkedEntryError(LedgerError):
    """
    Raised when an operation would break a transfer or exchange pair, or
    would remove an entry that later entries depend on.
    """

    def __init__(self, message: str, entry_id: int | None = None) -> None:
        self.entry_id = entry_id
        super().__init__(message)


class UnknownReasonError(LedgerError):
    """Raised for an entry reason outside the closed EntryReason set."""

    def __init__(self, reason: object) -> None:
        self.reason = reason
        super().__init__(f"Unknown ledger entry reason: {reason!r}")

# backend/folio/schemas/errors.py
"""
Error response bodies.

Every failure leaves the API as an ErrorDetail; folio.main builds them
from service exceptions, and the 422 handler from pydantic errors.

`error` is the exception class name (e.g. "InsufficientBalanceError"),
so clients can branch on it without parsing the message.
"""

from pydantic import BaseModel, Field


class ErrorDetail(BaseModel):
    error: str = Field(..., examples=["InsufficientBalanceError", "LinkedEntryError"])
    message: str = Field(..., examples=["Insufficient balance: requested 100, available 6"])
    details: dict | None = Field(
        default=None,
        description="Machine-readable context, e.g. available/requested for balance errors",
        examples=[{"position_id": 3, "available": "6", "requested": "100"}],
    )


class FieldError(BaseModel):
    """One failed constraint of a request body, query or path parameter."""

    field: str = Field(..., examples=["body.quantity"])
    message: str
    type: str = Field(..., examples=["greater_than"])


class ValidationErrorDetail(BaseModel):
    """Body of 422 responses."""

    error: str = "ValidationError"
    message: str = "Request validation failed"
    details: list[FieldError]

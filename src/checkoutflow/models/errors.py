"""
Structured checkout errors returned as data.

Validation and commit failures never raise. They are accumulated into these
result objects so a caller can present every problem at once.
"""

from enum import Enum
from uuid import UUID

from pydantic import BaseModel, ConfigDict, Field


class CheckoutErrorCode(str, Enum):
    """Machine-readable reason a checkout step was refused."""

    SESSION_NOT_FOUND = "SESSION_NOT_FOUND"
    INVALID_SESSION_STATUS = "INVALID_SESSION_STATUS"
    SESSION_EXPIRED = "SESSION_EXPIRED"
    MISSING_CUSTOMER_INFO = "MISSING_CUSTOMER_INFO"
    MISSING_SHIPPING_ADDRESS = "MISSING_SHIPPING_ADDRESS"
    MISSING_BILLING_ADDRESS = "MISSING_BILLING_ADDRESS"
    MISSING_SHIPPING_METHOD = "MISSING_SHIPPING_METHOD"
    MISSING_PAYMENT_METHOD = "MISSING_PAYMENT_METHOD"
    EMPTY_BASKET = "EMPTY_BASKET"
    ORDER_CREATION_FAILED = "ORDER_CREATION_FAILED"


class CheckoutError(BaseModel):
    """
    One refused precondition.

    Attributes:
        code: Machine-readable error code
        message: Human-readable description
        field: Session field the error concerns, if any
    """

    model_config = ConfigDict(frozen=True)

    code: CheckoutErrorCode
    message: str
    field: str | None = None


class ValidationResult(BaseModel):
    """Outcome of validating a session: every failing check, in check order."""

    model_config = ConfigDict(frozen=True)

    is_valid: bool
    errors: list[CheckoutError] = Field(default_factory=list)

    @property
    def codes(self) -> list[CheckoutErrorCode]:
        """The error codes, for quick assertions and logging."""
        return [error.code for error in self.errors]


class OrderCreationResult(BaseModel):
    """
    Outcome of committing a session.

    On success ``order_id`` is set and ``errors`` is empty. On failure
    ``order_id`` is None and ``errors`` explains why.
    """

    model_config = ConfigDict(frozen=True)

    success: bool
    order_id: UUID | None = None
    errors: list[CheckoutError] = Field(default_factory=list)


__all__ = [
    "CheckoutError",
    "CheckoutErrorCode",
    "OrderCreationResult",
    "ValidationResult",
]

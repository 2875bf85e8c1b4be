"""
Shipping and payment method catalog entries.

Both kinds share the CatalogMethod base: a name, an enabled flag, and the
default flag that exactly one method of each kind holds at a time.
"""

from datetime import datetime
from decimal import Decimal
from enum import Enum
from typing import ClassVar
from uuid import UUID

from pydantic import BaseModel, ConfigDict, Field


class MethodKind(str, Enum):
    """Which catalog a method belongs to."""

    SHIPPING = "shipping"
    PAYMENT = "payment"


class PaymentMethodType(str, Enum):
    """Kind of payment instrument a payment method collects."""

    CREDIT_CARD = "credit_card"
    PAYPAL = "paypal"
    BANK_TRANSFER = "bank_transfer"
    OTHER = "other"


class CatalogMethod(BaseModel):
    """
    Base for shipping and payment methods.

    Attributes:
        id: Method identifier
        name: Display name, also the secondary sort key for listings
        is_default: True for the single default method of this kind
        is_enabled: Disabled methods cannot be selected or listed
        created_at: Creation time
        updated_at: Time of the last write
    """

    model_config = ConfigDict(frozen=True, from_attributes=True)

    kind: ClassVar[MethodKind]

    id: UUID
    name: str = Field(..., min_length=1)
    is_default: bool = False
    is_enabled: bool = True
    created_at: datetime
    updated_at: datetime


class ShippingMethod(CatalogMethod):
    """
    A way of delivering an order, with a flat price.

    Selecting a shipping method copies ``price`` into the session's
    ``shipping_amount``.
    """

    kind: ClassVar[MethodKind] = MethodKind.SHIPPING

    description: str | None = None
    price: Decimal = Field(default=Decimal("0.00"), ge=0)
    estimated_delivery: str | None = None


class PaymentMethod(CatalogMethod):
    """A way of paying for an order. It has no monetary effect on the session."""

    kind: ClassVar[MethodKind] = MethodKind.PAYMENT

    type: PaymentMethodType = PaymentMethodType.OTHER
    processor_id: str | None = None


__all__ = [
    "CatalogMethod",
    "MethodKind",
    "PaymentMethod",
    "PaymentMethodType",
    "ShippingMethod",
]

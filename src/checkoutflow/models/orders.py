"""
Orders produced by committing a checkout session.
"""

from datetime import datetime
from decimal import Decimal
from enum import Enum
from uuid import UUID

from pydantic import BaseModel, ConfigDict, Field

from checkoutflow.models.address import Address


class OrderStatus(str, Enum):
    """Fulfilment status of an order. Commit always creates PENDING orders."""

    PENDING = "pending"
    PROCESSING = "processing"
    SHIPPED = "shipped"
    DELIVERED = "delivered"
    CANCELLED = "cancelled"


class Order(BaseModel):
    """
    An order row, copied verbatim from the committed session.

    Attributes:
        id: Order identifier
        checkout_session_id: The session this order was created from
        basket_id: The basket the session checked out
        customer_id: Registered customer, if any
        guest_email: Guest contact address, if any
        status: Fulfilment status
        shipping_address: Copied from the session
        billing_address: Copied from the session
        shipping_method_id: Copied from the session
        payment_method_id: Copied from the session
        subtotal: Copied from the session
        tax_amount: Copied from the session
        shipping_amount: Copied from the session
        discount_amount: Copied from the session
        total: Copied from the session
        currency: Currency code of every amount
        created_at: Commit time
    """

    model_config = ConfigDict(frozen=True, from_attributes=True)

    id: UUID
    checkout_session_id: UUID
    basket_id: UUID
    customer_id: UUID | None = None
    guest_email: str | None = None
    status: OrderStatus = OrderStatus.PENDING
    shipping_address: Address | None = None
    billing_address: Address | None = None
    shipping_method_id: UUID | None = None
    payment_method_id: UUID | None = None
    subtotal: Decimal
    tax_amount: Decimal
    shipping_amount: Decimal
    discount_amount: Decimal
    total: Decimal
    currency: str = "USD"
    created_at: datetime


class OrderItem(BaseModel):
    """A line of an order, priced at the product price current at commit."""

    model_config = ConfigDict(frozen=True, from_attributes=True)

    id: UUID
    order_id: UUID
    product_id: UUID
    quantity: int = Field(..., gt=0)
    unit_price: Decimal
    line_total: Decimal


__all__ = [
    "Order",
    "OrderItem",
    "OrderStatus",
]

"""
Checkout session record and its partial-update value object.

A session is created when a basket enters checkout, mutated one field at a
time, and retired logically by moving to a terminal status. Nothing ever
deletes a session row.
"""

from dataclasses import dataclass
from datetime import datetime
from decimal import Decimal
from enum import Enum
from typing import TypeVar
from uuid import UUID

from pydantic import BaseModel, ConfigDict, Field

from checkoutflow.models.address import Address

_T = TypeVar("_T")


class SessionStatus(str, Enum):
    """
    Lifecycle status of a checkout session.

    Only ACTIVE sessions can change. The other three are terminal.
    """

    ACTIVE = "active"
    COMPLETED = "completed"
    ABANDONED = "abandoned"
    EXPIRED = "expired"

    @property
    def is_terminal(self) -> bool:
        """True for every status other than ACTIVE."""
        return self is not SessionStatus.ACTIVE


class CheckoutSession(BaseModel):
    """
    The mutable, time-bounded record of one checkout attempt for one basket.

    Monetary fields are computed by the session manager and are never taken
    from the client.

    Attributes:
        id: Session identifier
        basket_id: The basket being checked out
        customer_id: Registered customer, if known
        guest_email: Guest contact address, if checking out anonymously
        status: Lifecycle status
        shipping_address: Address the order ships to
        billing_address: Address the order is billed to
        shipping_method_id: Selected shipping method
        payment_method_id: Selected payment method
        subtotal: Sum of basket line totals at last recalculation
        tax_amount: Tax at last recalculation
        shipping_amount: Price of the selected shipping method
        discount_amount: Discount applied to the session
        coupon_code: Code of the applied discount, if any
        total: subtotal + tax_amount + shipping_amount - discount_amount
        degraded_tax_calculation: True when the last tax calculation failed
            and tax_amount was set to zero instead
        notes: Free-form notes
        created_at: Creation time
        updated_at: Time of the last write
        expires_at: Instant after which the session is no longer usable
        completed_at: Set once, when the session converts into an order
    """

    model_config = ConfigDict(frozen=True, from_attributes=True)

    id: UUID
    basket_id: UUID
    customer_id: UUID | None = None
    guest_email: str | None = None
    status: SessionStatus = SessionStatus.ACTIVE
    shipping_address: Address | None = None
    billing_address: Address | None = None
    shipping_method_id: UUID | None = None
    payment_method_id: UUID | None = None
    subtotal: Decimal = Field(default=Decimal("0.00"))
    tax_amount: Decimal = Field(default=Decimal("0.00"))
    shipping_amount: Decimal = Field(default=Decimal("0.00"))
    discount_amount: Decimal = Field(default=Decimal("0.00"))
    coupon_code: str | None = None
    total: Decimal = Field(default=Decimal("0.00"))
    degraded_tax_calculation: bool = False
    notes: str | None = None
    created_at: datetime
    updated_at: datetime
    expires_at: datetime
    completed_at: datetime | None = None

    def is_expired(self, now: datetime) -> bool:
        """True once ``now`` is past ``expires_at``, whatever the stored status."""
        return now > self.expires_at

    def effective_status(self, now: datetime) -> SessionStatus:
        """
        Report the status a reader should act on.

        An ACTIVE session past its expiry reads as EXPIRED even before the
        sweep has written that status.
        """
        if self.status is SessionStatus.ACTIVE and self.is_expired(now):
            return SessionStatus.EXPIRED
        return self.status


def _pick(new: _T | None, current: _T) -> _T:
    return current if new is None else new


@dataclass(frozen=True)
class SessionPatch:
    """
    A partial update to a checkout session.

    Every field left as None keeps the stored value. SQL backends apply a
    patch with one static ``UPDATE ... SET col = COALESCE(:col, col)``
    statement. Since None means "keep", an empty ``coupon_code`` clears the
    stored code.

    Example:
        >>> patch = SessionPatch(shipping_method_id=method.id, shipping_amount=method.price)
        >>> session = await repo.update_session(session_id, patch, now)
    """

    shipping_address: Address | None = None
    billing_address: Address | None = None
    shipping_method_id: UUID | None = None
    shipping_amount: Decimal | None = None
    payment_method_id: UUID | None = None
    subtotal: Decimal | None = None
    tax_amount: Decimal | None = None
    total: Decimal | None = None
    degraded_tax_calculation: bool | None = None
    discount_amount: Decimal | None = None
    coupon_code: str | None = None
    notes: str | None = None
    status: SessionStatus | None = None
    completed_at: datetime | None = None

    def apply(self, session: CheckoutSession, updated_at: datetime) -> CheckoutSession:
        """Return a copy of ``session`` with this patch applied."""
        return session.model_copy(
            update={
                "shipping_address": _pick(self.shipping_address, session.shipping_address),
                "billing_address": _pick(self.billing_address, session.billing_address),
                "shipping_method_id": _pick(self.shipping_method_id, session.shipping_method_id),
                "shipping_amount": _pick(self.shipping_amount, session.shipping_amount),
                "payment_method_id": _pick(self.payment_method_id, session.payment_method_id),
                "subtotal": _pick(self.subtotal, session.subtotal),
                "tax_amount": _pick(self.tax_amount, session.tax_amount),
                "total": _pick(self.total, session.total),
                "degraded_tax_calculation": _pick(
                    self.degraded_tax_calculation, session.degraded_tax_calculation
                ),
                "discount_amount": _pick(self.discount_amount, session.discount_amount),
                "coupon_code": _pick(self.coupon_code, session.coupon_code) or None,
                "notes": _pick(self.notes, session.notes),
                "status": _pick(self.status, session.status),
                "completed_at": _pick(self.completed_at, session.completed_at),
                "updated_at": updated_at,
            }
        )


__all__ = [
    "CheckoutSession",
    "SessionPatch",
    "SessionStatus",
]

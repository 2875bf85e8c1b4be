"""
Checkout session manager.

Owns the lifecycle of a checkout session:

    ACTIVE -> COMPLETED | ABANDONED | EXPIRED

Field mutations are independent read-modify-write calls with last write
wins. Every field write is conditional on the session still being ACTIVE;
writes to a terminal session report None, the same as a missing session.
Computed amounts (subtotal, tax, total) are only ever written here.
"""

import logging
from datetime import datetime
from decimal import Decimal
from uuid import UUID, uuid4

from checkoutflow.config import CheckoutConfig, Clock, utc_now
from checkoutflow.models.address import Address
from checkoutflow.models.errors import CheckoutError, CheckoutErrorCode, ValidationResult
from checkoutflow.models.methods import PaymentMethod, ShippingMethod
from checkoutflow.models.session import CheckoutSession, SessionPatch, SessionStatus
from checkoutflow.money import ZERO, quantize
from checkoutflow.observability import Tracer, create_tracer
from checkoutflow.observability.attributes import (
    ATTR_BASKET_ID,
    ATTR_ERROR_TYPE,
    ATTR_EXPIRED_COUNT,
    ATTR_METHOD_ID,
    ATTR_SESSION_ID,
    ATTR_SESSION_STATUS,
    ATTR_TAX_DEGRADED,
    ATTR_VALIDATION_ERROR_COUNT,
)
from checkoutflow.protocols import BasketReader
from checkoutflow.repositories.methods import MethodRepository
from checkoutflow.repositories.sessions import CheckoutSessionRepository
from checkoutflow.tax.engine import TaxCalculationEngine

logger = logging.getLogger(__name__)


class CheckoutSessionManager:
    """
    Creates, mutates, prices, validates and retires checkout sessions.

    Example:
        >>> manager = CheckoutSessionManager(
        ...     sessions, shipping_methods, payment_methods, baskets, engine
        ... )
        >>> session = await manager.create(basket_id, guest_email="a@example.com")
        >>> await manager.set_shipping_address(session.id, address)
        >>> await manager.calculate_order_totals(session.id)
    """

    def __init__(
        self,
        sessions: CheckoutSessionRepository,
        shipping_methods: MethodRepository[ShippingMethod],
        payment_methods: MethodRepository[PaymentMethod],
        baskets: BasketReader,
        tax_engine: TaxCalculationEngine,
        config: CheckoutConfig | None = None,
        clock: Clock = utc_now,
        tracer: Tracer | None = None,
        enable_tracing: bool = True,
    ) -> None:
        """
        Initialize the manager.

        Args:
            sessions: Session store
            shipping_methods: Shipping method catalog
            payment_methods: Payment method catalog
            baskets: Reader for basket lines
            tax_engine: Engine used by calculate_order_totals
            config: Checkout configuration (defaults to CheckoutConfig())
            clock: Time source for timestamps and expiry checks
            tracer: Optional tracer for tracing (if not provided, one will be created)
            enable_tracing: Whether to enable OpenTelemetry tracing (default True)
        """
        self._config = config or CheckoutConfig()
        self._tracer = tracer or create_tracer(
            __name__, enable_tracing and self._config.enable_tracing
        )
        self._enable_tracing = self._tracer.enabled
        self._sessions = sessions
        self._shipping_methods = shipping_methods
        self._payment_methods = payment_methods
        self._baskets = baskets
        self._tax_engine = tax_engine
        self._clock = clock

    @property
    def config(self) -> CheckoutConfig:
        return self._config

    def now(self) -> datetime:
        """Current time from the injected clock."""
        return self._clock()

    async def create(
        self,
        basket_id: UUID,
        customer_id: UUID | None = None,
        guest_email: str | None = None,
    ) -> CheckoutSession:
        """
        Start a new ACTIVE session for a basket.

        The basket is not checked for existence.

        Args:
            basket_id: Basket being checked out
            customer_id: Authenticated customer, if any
            guest_email: Contact email for guest checkout

        Returns:
            The stored session, expiring after the configured TTL
        """
        with self._tracer.span(
            "checkoutflow.checkout.create",
            {ATTR_BASKET_ID: str(basket_id)},
        ) as span:
            now = self._clock()
            session = CheckoutSession(
                id=uuid4(),
                basket_id=basket_id,
                customer_id=customer_id,
                guest_email=guest_email,
                status=SessionStatus.ACTIVE,
                created_at=now,
                updated_at=now,
                expires_at=now + self._config.session_ttl,
            )
            session = await self._sessions.create_session(session)
            if span:
                span.set_attribute(ATTR_SESSION_ID, str(session.id))

            logger.info(
                f"Created checkout session {session.id} for basket {basket_id}",
                extra={
                    "session_id": str(session.id),
                    "basket_id": str(basket_id),
                    "expires_at": session.expires_at.isoformat(),
                },
            )
            return session

    async def get(self, session_id: UUID) -> CheckoutSession | None:
        return await self._sessions.get_session(session_id)

    async def find_active_for_basket(self, basket_id: UUID) -> CheckoutSession | None:
        """Most recently created ACTIVE session for the basket, or None."""
        return await self._sessions.find_active_for_basket(basket_id)

    async def list_for_customer(self, customer_id: UUID) -> list[CheckoutSession]:
        """Sessions of a customer, newest first."""
        return await self._sessions.list_sessions_for_customer(customer_id)

    async def set_shipping_address(
        self, session_id: UUID, address: Address
    ) -> CheckoutSession | None:
        """Store the shipping address verbatim. None if the session is missing or terminal."""
        return await self._update(session_id, SessionPatch(shipping_address=address))

    async def set_billing_address(
        self, session_id: UUID, address: Address
    ) -> CheckoutSession | None:
        """Store the billing address verbatim. None if the session is missing or terminal."""
        return await self._update(session_id, SessionPatch(billing_address=address))

    async def set_shipping_method(
        self, session_id: UUID, method_id: UUID
    ) -> CheckoutSession | None:
        """
        Select a shipping method and copy its price into ``shipping_amount``.

        Returns:
            The updated session, or None when the session is missing or
            terminal, or the method is missing or disabled
        """
        with self._tracer.span(
            "checkoutflow.checkout.set_shipping_method",
            {ATTR_SESSION_ID: str(session_id), ATTR_METHOD_ID: str(method_id)},
        ):
            method = await self._shipping_methods.get_enabled_method(method_id)
            if method is None:
                return None
            patch = SessionPatch(
                shipping_method_id=method.id,
                shipping_amount=quantize(method.price, self._config),
            )
            return await self._update(session_id, patch)

    async def set_payment_method(
        self, session_id: UUID, method_id: UUID
    ) -> CheckoutSession | None:
        """
        Select a payment method.

        Returns:
            The updated session, or None when the session is missing or
            terminal, or the method is missing or disabled
        """
        with self._tracer.span(
            "checkoutflow.checkout.set_payment_method",
            {ATTR_SESSION_ID: str(session_id), ATTR_METHOD_ID: str(method_id)},
        ):
            method = await self._payment_methods.get_enabled_method(method_id)
            if method is None:
                return None
            return await self._update(session_id, SessionPatch(payment_method_id=method.id))

    async def calculate_order_totals(self, session_id: UUID) -> CheckoutSession | None:
        """
        Recompute subtotal, tax and total from the current basket.

        Tax is only computed once a shipping address is known. If the tax
        engine fails, the session is priced with zero tax and flagged with
        ``degraded_tax_calculation`` instead of failing the call.

        Calling this repeatedly without changes yields identical amounts.

        Args:
            session_id: Session to price

        Returns:
            The updated session, or None if the session is missing or terminal
        """
        with self._tracer.span(
            "checkoutflow.checkout.calculate_totals",
            {ATTR_SESSION_ID: str(session_id)},
        ) as span:
            session = await self._sessions.get_session(session_id)
            if session is None:
                return None
            if session.status is not SessionStatus.ACTIVE:
                if span:
                    span.set_attribute(ATTR_SESSION_STATUS, session.status.value)
                return None

            subtotal = quantize(await self._baskets.get_subtotal(session.basket_id), self._config)
            tax_amount = ZERO
            degraded = False

            if session.shipping_address is not None:
                try:
                    result = await self._tax_engine.calculate_basket_tax(
                        session.basket_id,
                        session.shipping_address.jurisdiction(),
                        customer_id=session.customer_id,
                    )
                    tax_amount = result.tax_amount
                except Exception as e:
                    degraded = True
                    if span:
                        span.set_attribute(ATTR_ERROR_TYPE, type(e).__name__)
                    logger.warning(
                        f"Tax calculation failed for session {session_id}, "
                        f"pricing with zero tax: {e}",
                        extra={
                            "session_id": str(session_id),
                            "basket_id": str(session.basket_id),
                            "error_type": type(e).__name__,
                        },
                    )

            tax_amount = quantize(tax_amount, self._config)
            total = quantize(
                subtotal + tax_amount + session.shipping_amount - session.discount_amount,
                self._config,
            )

            if span:
                span.set_attribute(ATTR_TAX_DEGRADED, degraded)

            patch = SessionPatch(
                subtotal=subtotal,
                tax_amount=tax_amount,
                total=total,
                degraded_tax_calculation=degraded,
            )
            return await self._update(session_id, patch)

    async def apply_discount(
        self, session_id: UUID, code: str, amount: Decimal
    ) -> CheckoutSession | None:
        """
        Attach a discount code and amount, replacing any previous discount.

        The total is recomputed from the stored subtotal, tax and shipping
        and floored at zero. A later ``calculate_order_totals`` does not
        apply the floor.

        Args:
            session_id: Session to discount
            code: Discount code shown back to the customer
            amount: Amount taken off the total

        Returns:
            The updated session, or None if the session is missing or terminal

        Raises:
            ValueError: If the code is blank or the amount is negative
        """
        if not code.strip():
            raise ValueError("Discount code must not be blank")
        if amount < 0:
            raise ValueError(f"Discount amount must not be negative, got {amount}")

        with self._tracer.span(
            "checkoutflow.checkout.apply_discount",
            {ATTR_SESSION_ID: str(session_id)},
        ):
            session = await self._sessions.get_session(session_id)
            if session is None:
                return None
            discount = quantize(amount, self._config)
            updated = await self._update(
                session_id,
                SessionPatch(
                    discount_amount=discount,
                    coupon_code=code.strip(),
                    total=self._floored_total(session, discount),
                ),
            )
            if updated is not None:
                logger.info(
                    f"Applied discount {updated.coupon_code} to checkout session {session_id}",
                    extra={"session_id": str(session_id), "discount_amount": str(discount)},
                )
            return updated

    async def remove_discount(self, session_id: UUID) -> CheckoutSession | None:
        """Drop the discount code and amount, recomputing the total."""
        with self._tracer.span(
            "checkoutflow.checkout.remove_discount",
            {ATTR_SESSION_ID: str(session_id)},
        ):
            session = await self._sessions.get_session(session_id)
            if session is None:
                return None
            return await self._update(
                session_id,
                SessionPatch(
                    discount_amount=ZERO,
                    coupon_code="",
                    total=self._floored_total(session, ZERO),
                ),
            )

    async def set_notes(self, session_id: UUID, notes: str) -> CheckoutSession | None:
        """Store free-form order notes. None if the session is missing or terminal."""
        return await self._update(session_id, SessionPatch(notes=notes))

    def _floored_total(self, session: CheckoutSession, discount: Decimal) -> Decimal:
        total = session.subtotal + session.tax_amount + session.shipping_amount - discount
        return quantize(max(total, ZERO), self._config)

    async def validate(self, session_id: UUID) -> ValidationResult:
        """
        Check whether a session is ready to be completed.

        Every check runs; the result lists all failures in check order. A
        missing session yields SESSION_NOT_FOUND alone. Nothing is written.

        Args:
            session_id: Session to check

        Returns:
            ValidationResult with ``is_valid`` and the accumulated errors
        """
        with self._tracer.span(
            "checkoutflow.checkout.validate",
            {ATTR_SESSION_ID: str(session_id)},
        ) as span:
            session = await self._sessions.get_session(session_id)
            if session is None:
                result = ValidationResult(
                    is_valid=False,
                    errors=[
                        CheckoutError(
                            code=CheckoutErrorCode.SESSION_NOT_FOUND,
                            message=f"Checkout session {session_id} not found",
                        )
                    ],
                )
            else:
                errors = await self._collect_errors(session)
                result = ValidationResult(is_valid=not errors, errors=errors)

            if span:
                span.set_attribute(ATTR_VALIDATION_ERROR_COUNT, len(result.errors))
            return result

    async def _collect_errors(self, session: CheckoutSession) -> list[CheckoutError]:
        errors: list[CheckoutError] = []

        if session.status is not SessionStatus.ACTIVE:
            errors.append(
                CheckoutError(
                    code=CheckoutErrorCode.INVALID_SESSION_STATUS,
                    message=f"Session is {session.status.value}, expected active",
                    field="status",
                )
            )

        if session.is_expired(self._clock()):
            errors.append(
                CheckoutError(
                    code=CheckoutErrorCode.SESSION_EXPIRED,
                    message=f"Session expired at {session.expires_at.isoformat()}",
                    field="expires_at",
                )
            )

        if session.customer_id is None and not session.guest_email:
            errors.append(
                CheckoutError(
                    code=CheckoutErrorCode.MISSING_CUSTOMER_INFO,
                    message="A customer or a guest email is required",
                )
            )

        errors.extend(
            _address_errors(
                session.shipping_address,
                CheckoutErrorCode.MISSING_SHIPPING_ADDRESS,
                "shipping_address",
                "Shipping address",
            )
        )
        errors.extend(
            _address_errors(
                session.billing_address,
                CheckoutErrorCode.MISSING_BILLING_ADDRESS,
                "billing_address",
                "Billing address",
            )
        )

        if session.shipping_method_id is None:
            errors.append(
                CheckoutError(
                    code=CheckoutErrorCode.MISSING_SHIPPING_METHOD,
                    message="A shipping method is required",
                    field="shipping_method_id",
                )
            )

        if session.payment_method_id is None:
            errors.append(
                CheckoutError(
                    code=CheckoutErrorCode.MISSING_PAYMENT_METHOD,
                    message="A payment method is required",
                    field="payment_method_id",
                )
            )

        if await self._baskets.count_lines(session.basket_id) == 0:
            errors.append(
                CheckoutError(
                    code=CheckoutErrorCode.EMPTY_BASKET,
                    message=f"Basket {session.basket_id} has no items",
                )
            )

        return errors

    async def abandon(self, session_id: UUID) -> CheckoutSession | None:
        """
        Move an ACTIVE session to ABANDONED.

        Idempotent: a session that is already terminal is returned unchanged.

        Returns:
            The session, or None if it does not exist
        """
        with self._tracer.span(
            "checkoutflow.checkout.abandon",
            {ATTR_SESSION_ID: str(session_id)},
        ) as span:
            updated = await self._sessions.update_session(
                session_id,
                SessionPatch(status=SessionStatus.ABANDONED),
                self._clock(),
                expected_status=SessionStatus.ACTIVE,
            )
            if updated is None:
                # Missing, or already terminal
                current = await self._sessions.get_session(session_id)
                if current is not None and span:
                    span.set_attribute(ATTR_SESSION_STATUS, current.status.value)
                return current

            if span:
                span.set_attribute(ATTR_SESSION_STATUS, updated.status.value)
            logger.info(
                f"Abandoned checkout session {session_id}",
                extra={"session_id": str(session_id), "basket_id": str(updated.basket_id)},
            )
            return updated

    async def cleanup_expired(self) -> int:
        """
        Sweep ACTIVE sessions past their expiry into EXPIRED.

        Returns:
            Number of sessions transitioned
        """
        with self._tracer.span("checkoutflow.checkout.cleanup_expired", {}) as span:
            count = await self._sessions.expire_sessions(self._clock())
            if span:
                span.set_attribute(ATTR_EXPIRED_COUNT, count)
            if count:
                logger.info(
                    f"Expired {count} checkout session(s)",
                    extra={"expired_count": count},
                )
            return count

    async def _update(self, session_id: UUID, patch: SessionPatch) -> CheckoutSession | None:
        return await self._sessions.update_session(
            session_id, patch, self._clock(), expected_status=SessionStatus.ACTIVE
        )


def _address_errors(
    address: Address | None,
    code: CheckoutErrorCode,
    field: str,
    label: str,
) -> list[CheckoutError]:
    if address is None:
        return [CheckoutError(code=code, message=f"{label} is required", field=field)]
    missing = address.missing_required_fields()
    if missing:
        return [
            CheckoutError(
                code=code,
                message=f"{label} is missing required fields: {', '.join(missing)}",
                field=field,
            )
        ]
    return []


__all__ = ["CheckoutSessionManager"]

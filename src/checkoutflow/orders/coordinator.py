"""
Order commit coordinator.

Converts a validated checkout session into an order, exactly once:

1. Validate the session; a failing session is reported with zero writes
2. Inside one scoped transaction:
   - insert the order with the session's values verbatim
   - read the basket at current prices and insert the order items
   - mark the session completed (guarded on status = active)
   - delete the basket's lines
3. Any failure inside the transaction rolls everything back; the session
   stays ACTIVE and the call can be retried

Prices are read again at commit time. When they no longer add up to the
session subtotal the difference is logged as price drift; the order keeps
the session amounts.
"""

import logging
from uuid import UUID, uuid4

from checkoutflow.checkout.manager import CheckoutSessionManager
from checkoutflow.config import Clock
from checkoutflow.models.baskets import BasketLine
from checkoutflow.models.errors import CheckoutError, CheckoutErrorCode, OrderCreationResult
from checkoutflow.models.orders import Order, OrderItem, OrderStatus
from checkoutflow.models.session import CheckoutSession
from checkoutflow.money import ZERO, quantize
from checkoutflow.observability import Tracer, create_tracer
from checkoutflow.observability.attributes import (
    ATTR_ERROR_TYPE,
    ATTR_LINE_COUNT,
    ATTR_ORDER_ID,
    ATTR_ORDER_SUCCESS,
    ATTR_SESSION_ID,
    ATTR_VALIDATION_ERROR_COUNT,
)
from checkoutflow.repositories.orders import OrderRepository

logger = logging.getLogger(__name__)


class OrderCommitCoordinator:
    """
    Runs the all-or-nothing conversion of a session into an order.

    Example:
        >>> coordinator = OrderCommitCoordinator(manager, orders)
        >>> result = await coordinator.complete(session.id)
        >>> if result.success:
        ...     print(f"Created order {result.order_id}")
    """

    def __init__(
        self,
        manager: CheckoutSessionManager,
        orders: OrderRepository,
        clock: Clock | None = None,
        tracer: Tracer | None = None,
        enable_tracing: bool = True,
    ) -> None:
        """
        Initialize the coordinator.

        Args:
            manager: Session manager used to load and validate sessions
            orders: Order store providing the scoped transaction
            clock: Time source (defaults to the manager's clock)
            tracer: Optional tracer for tracing (if not provided, one will be created)
            enable_tracing: Whether to enable OpenTelemetry tracing (default True)
        """
        self._config = manager.config
        self._tracer = tracer or create_tracer(
            __name__, enable_tracing and self._config.enable_tracing
        )
        self._enable_tracing = self._tracer.enabled
        self._manager = manager
        self._orders = orders
        self._clock = clock or manager.now

    async def complete(self, session_id: UUID) -> OrderCreationResult:
        """
        Commit a session as an order.

        Args:
            session_id: Session to commit

        Returns:
            Success with the new order id, or the validation errors, or a
            single ORDER_CREATION_FAILED error when the transaction failed
        """
        with self._tracer.span(
            "checkoutflow.order.complete",
            {ATTR_SESSION_ID: str(session_id)},
        ) as span:
            validation = await self._manager.validate(session_id)
            if not validation.is_valid:
                if span:
                    span.set_attribute(ATTR_ORDER_SUCCESS, False)
                    span.set_attribute(ATTR_VALIDATION_ERROR_COUNT, len(validation.errors))
                logger.info(
                    f"Checkout session {session_id} failed validation",
                    extra={
                        "session_id": str(session_id),
                        "error_codes": [code.value for code in validation.codes],
                    },
                )
                return OrderCreationResult(success=False, errors=validation.errors)

            session = await self._manager.get(session_id)
            if session is None:
                # Deleted between validation and load
                return OrderCreationResult(
                    success=False,
                    errors=[
                        CheckoutError(
                            code=CheckoutErrorCode.SESSION_NOT_FOUND,
                            message=f"Checkout session {session_id} not found",
                        )
                    ],
                )

            order_id = uuid4()
            try:
                lines = await self._commit(session, order_id)
            except Exception as e:
                if span:
                    span.set_attribute(ATTR_ORDER_SUCCESS, False)
                    span.set_attribute(ATTR_ERROR_TYPE, type(e).__name__)
                logger.exception(
                    f"Failed to create order for checkout session {session_id}",
                    extra={"session_id": str(session_id), "basket_id": str(session.basket_id)},
                )
                return OrderCreationResult(
                    success=False,
                    errors=[
                        CheckoutError(
                            code=CheckoutErrorCode.ORDER_CREATION_FAILED,
                            message="Failed to create order",
                        )
                    ],
                )

            if span:
                span.set_attribute(ATTR_ORDER_SUCCESS, True)
                span.set_attribute(ATTR_ORDER_ID, str(order_id))
                span.set_attribute(ATTR_LINE_COUNT, len(lines))

            logger.info(
                f"Created order {order_id} from checkout session {session_id}",
                extra={
                    "order_id": str(order_id),
                    "session_id": str(session_id),
                    "total": str(session.total),
                },
            )
            self._check_price_drift(session, order_id, lines)
            return OrderCreationResult(success=True, order_id=order_id)

    async def _commit(self, session: CheckoutSession, order_id: UUID) -> list[BasketLine]:
        now = self._clock()
        order = Order(
            id=order_id,
            checkout_session_id=session.id,
            basket_id=session.basket_id,
            customer_id=session.customer_id,
            guest_email=session.guest_email,
            status=OrderStatus.PENDING,
            shipping_address=session.shipping_address,
            billing_address=session.billing_address,
            shipping_method_id=session.shipping_method_id,
            payment_method_id=session.payment_method_id,
            subtotal=session.subtotal,
            tax_amount=session.tax_amount,
            shipping_amount=session.shipping_amount,
            discount_amount=session.discount_amount,
            total=session.total,
            currency=self._config.currency,
            created_at=now,
        )

        async with self._orders.transaction() as tx:
            await tx.insert_order(order)
            lines = await tx.read_basket_lines(session.basket_id)
            await tx.insert_order_items(
                [
                    OrderItem(
                        id=uuid4(),
                        order_id=order_id,
                        product_id=line.product_id,
                        quantity=line.quantity,
                        unit_price=line.unit_price,
                        line_total=quantize(line.line_total, self._config),
                    )
                    for line in lines
                ]
            )
            await tx.complete_session(session.id, now)
            await tx.clear_basket(session.basket_id)

        return lines

    def _check_price_drift(
        self, session: CheckoutSession, order_id: UUID, lines: list[BasketLine]
    ) -> None:
        items_total = quantize(sum((line.line_total for line in lines), ZERO), self._config)
        if items_total != session.subtotal:
            logger.warning(
                f"Price drift on order {order_id}: items total {items_total} "
                f"differs from session subtotal {session.subtotal}",
                extra={
                    "order_id": str(order_id),
                    "session_id": str(session.id),
                    "items_total": str(items_total),
                    "session_subtotal": str(session.subtotal),
                },
            )


__all__ = ["OrderCommitCoordinator"]

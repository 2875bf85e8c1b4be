"""
Checkout service.

The operation surface a transport layer (HTTP handlers, RPC, CLI) calls.
It composes the session manager, the method catalogs and the order commit
coordinator, and applies the boundary checks that belong at the edge:

- addresses must carry every required field before they are stored
- mutations that change the price recalculate totals
- terminal sessions are read-only; writes to them return None
"""

import logging
from decimal import Decimal
from uuid import UUID

from checkoutflow.checkout.manager import CheckoutSessionManager
from checkoutflow.exceptions import AddressValidationError
from checkoutflow.models.address import Address
from checkoutflow.models.errors import OrderCreationResult, ValidationResult
from checkoutflow.models.methods import PaymentMethod, ShippingMethod
from checkoutflow.models.session import CheckoutSession
from checkoutflow.orders.coordinator import OrderCommitCoordinator
from checkoutflow.repositories.methods import MethodRepository

logger = logging.getLogger(__name__)


class CheckoutService:
    """
    Facade over the checkout workflow.

    Lookups of missing sessions or methods return None rather than raising.

    Example:
        >>> service = CheckoutService(manager, coordinator, shipping, payment)
        >>> session = await service.start_checkout(basket_id, customer_id=customer_id)
        >>> await service.set_shipping_address(session.id, address)
        >>> await service.set_billing_address(session.id, address)
        >>> await service.select_shipping_method(session.id, standard.id)
        >>> await service.select_payment_method(session.id, card.id)
        >>> result = await service.complete(session.id)
    """

    def __init__(
        self,
        manager: CheckoutSessionManager,
        coordinator: OrderCommitCoordinator,
        shipping_methods: MethodRepository[ShippingMethod],
        payment_methods: MethodRepository[PaymentMethod],
    ) -> None:
        self._manager = manager
        self._coordinator = coordinator
        self._shipping_methods = shipping_methods
        self._payment_methods = payment_methods

    async def start_checkout(
        self,
        basket_id: UUID,
        customer_id: UUID | None = None,
        guest_email: str | None = None,
    ) -> CheckoutSession:
        """
        Resume the basket's active session, or start a new one.

        Args:
            basket_id: Basket being checked out
            customer_id: Authenticated customer, if any
            guest_email: Contact email for guest checkout

        Returns:
            The active session for the basket
        """
        existing = await self._manager.find_active_for_basket(basket_id)
        if existing is not None and not existing.is_expired(self._manager.now()):
            logger.debug(
                f"Resuming checkout session {existing.id} for basket {basket_id}",
                extra={"session_id": str(existing.id), "basket_id": str(basket_id)},
            )
            return existing
        return await self._manager.create(
            basket_id, customer_id=customer_id, guest_email=guest_email
        )

    async def get_session(self, session_id: UUID) -> CheckoutSession | None:
        return await self._manager.get(session_id)

    async def set_shipping_address(
        self, session_id: UUID, address: Address
    ) -> CheckoutSession | None:
        """
        Store the shipping address and reprice the session.

        Raises:
            AddressValidationError: If required address fields are blank
        """
        _require_complete(address)
        session = await self._manager.set_shipping_address(session_id, address)
        if session is None:
            return None
        return await self._manager.calculate_order_totals(session_id)

    async def set_billing_address(
        self, session_id: UUID, address: Address
    ) -> CheckoutSession | None:
        """
        Store the billing address. Billing does not affect the price.

        Raises:
            AddressValidationError: If required address fields are blank
        """
        _require_complete(address)
        return await self._manager.set_billing_address(session_id, address)

    async def list_shipping_methods(self) -> list[ShippingMethod]:
        """Enabled shipping methods, default first, then by name."""
        return await self._shipping_methods.list_enabled_methods()

    async def list_payment_methods(self) -> list[PaymentMethod]:
        """Enabled payment methods, default first, then by name."""
        return await self._payment_methods.list_enabled_methods()

    async def select_shipping_method(
        self, session_id: UUID, method_id: UUID
    ) -> CheckoutSession | None:
        session = await self._manager.set_shipping_method(session_id, method_id)
        if session is None:
            return None
        return await self._manager.calculate_order_totals(session_id)

    async def select_payment_method(
        self, session_id: UUID, method_id: UUID
    ) -> CheckoutSession | None:
        session = await self._manager.set_payment_method(session_id, method_id)
        if session is None:
            return None
        return await self._manager.calculate_order_totals(session_id)

    async def apply_discount(
        self, session_id: UUID, code: str, amount: Decimal
    ) -> CheckoutSession | None:
        """
        Apply a discount. The total is floored at zero on this path.

        Raises:
            ValueError: If the code is blank or the amount is negative
        """
        return await self._manager.apply_discount(session_id, code, amount)

    async def remove_discount(self, session_id: UUID) -> CheckoutSession | None:
        return await self._manager.remove_discount(session_id)

    async def set_notes(self, session_id: UUID, notes: str) -> CheckoutSession | None:
        return await self._manager.set_notes(session_id, notes)

    async def recalculate_totals(self, session_id: UUID) -> CheckoutSession | None:
        return await self._manager.calculate_order_totals(session_id)

    async def validate(self, session_id: UUID) -> ValidationResult:
        return await self._manager.validate(session_id)

    async def complete(self, session_id: UUID) -> OrderCreationResult:
        return await self._coordinator.complete(session_id)

    async def abandon(self, session_id: UUID) -> CheckoutSession | None:
        return await self._manager.abandon(session_id)

    async def cleanup_expired(self) -> int:
        return await self._manager.cleanup_expired()


def _require_complete(address: Address) -> None:
    missing = address.missing_required_fields()
    if missing:
        raise AddressValidationError(missing)


__all__ = ["CheckoutService"]

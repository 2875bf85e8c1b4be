"""
Protocols for the collaborators checkout reads from other subsystems.

Baskets, products and customer exemptions are owned elsewhere. Checkout only
needs the shapes below, so any object providing these methods can be wired
in. ``checkoutflow.repositories`` ships PostgreSQL, SQLite and in-memory
implementations.

Protocols:
- BasketReader: Basket lines priced at current product prices
- ProductTaxCategoryReader: Nullable tax category per product
- TaxExemptionReader: A customer's exemption records

Example:
    >>> from checkoutflow.protocols import BasketReader
    >>>
    >>> class ApiBasketReader:
    ...     async def list_lines(self, basket_id: UUID) -> list[BasketLine]:
    ...         payload = await self._client.get(f"/baskets/{basket_id}/items")
    ...         return [BasketLine.model_validate(item) for item in payload]
"""

from decimal import Decimal
from typing import Protocol, runtime_checkable
from uuid import UUID

from checkoutflow.models.baskets import BasketLine
from checkoutflow.models.tax import TaxExemption


@runtime_checkable
class BasketReader(Protocol):
    """
    Protocol for reading basket contents.

    Lines are always priced at the product's current price, not at the price
    captured when the item was added.
    """

    async def list_lines(self, basket_id: UUID) -> list[BasketLine]:
        """
        List the lines of a basket.

        Args:
            basket_id: Basket to read

        Returns:
            Lines in insertion order; empty for an unknown or empty basket
        """
        ...

    async def count_lines(self, basket_id: UUID) -> int:
        """Number of lines in the basket."""
        ...

    async def get_subtotal(self, basket_id: UUID) -> Decimal:
        """Sum of unit_price * quantity over every line."""
        ...


@runtime_checkable
class ProductTaxCategoryReader(Protocol):
    """Protocol for resolving a product's tax category."""

    async def get_tax_category(self, product_id: UUID) -> UUID | None:
        """
        Get the tax category of a product.

        Args:
            product_id: Product to look up

        Returns:
            Tax category id, or None when the product has none or is unknown
        """
        ...


@runtime_checkable
class TaxExemptionReader(Protocol):
    """Protocol for reading a customer's tax exemptions."""

    async def list_exemptions(self, customer_id: UUID) -> list[TaxExemption]:
        """
        List every exemption record of a customer, whatever its status.

        Callers decide which records are active with ``TaxExemption.is_active``.
        """
        ...


__all__ = [
    "BasketReader",
    "ProductTaxCategoryReader",
    "TaxExemptionReader",
]

"""
Read-side views of baskets and products owned by other subsystems.
"""

from decimal import Decimal
from uuid import UUID

from pydantic import BaseModel, ConfigDict, Field


class BasketLine(BaseModel):
    """
    A basket line priced at the product's current price.

    Attributes:
        id: Basket item identifier
        basket_id: Owning basket
        product_id: Product on the line
        quantity: Number of units
        unit_price: Current product price
    """

    model_config = ConfigDict(frozen=True, from_attributes=True)

    id: UUID
    basket_id: UUID
    product_id: UUID
    quantity: int = Field(..., gt=0)
    unit_price: Decimal

    @property
    def line_total(self) -> Decimal:
        """unit_price multiplied by quantity, unrounded."""
        return self.unit_price * self.quantity


class Product(BaseModel):
    """The slice of a catalog product that checkout reads."""

    model_config = ConfigDict(frozen=True, from_attributes=True)

    id: UUID
    name: str
    price: Decimal = Field(..., ge=0)
    tax_category_id: UUID | None = None


__all__ = [
    "BasketLine",
    "Product",
]

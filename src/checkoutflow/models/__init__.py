"""
Data model for checkoutflow.

All records are pydantic models with Decimal money and UUID identifiers.
"""

from checkoutflow.models.address import Address, Jurisdiction
from checkoutflow.models.baskets import BasketLine, Product
from checkoutflow.models.errors import (
    CheckoutError,
    CheckoutErrorCode,
    OrderCreationResult,
    ValidationResult,
)
from checkoutflow.models.methods import (
    CatalogMethod,
    MethodKind,
    PaymentMethod,
    PaymentMethodType,
    ShippingMethod,
)
from checkoutflow.models.orders import Order, OrderItem, OrderStatus
from checkoutflow.models.session import CheckoutSession, SessionPatch, SessionStatus
from checkoutflow.models.tax import (
    JurisdictionLevel,
    LineItemTax,
    TaxBreakdownEntry,
    TaxCalculationResult,
    TaxExemption,
    TaxExemptionStatus,
    TaxRate,
    TaxRateStatus,
)

__all__ = [
    # Addresses
    "Address",
    "Jurisdiction",
    # Baskets
    "BasketLine",
    "Product",
    # Errors
    "CheckoutError",
    "CheckoutErrorCode",
    "OrderCreationResult",
    "ValidationResult",
    # Methods
    "CatalogMethod",
    "MethodKind",
    "PaymentMethod",
    "PaymentMethodType",
    "ShippingMethod",
    # Orders
    "Order",
    "OrderItem",
    "OrderStatus",
    # Sessions
    "CheckoutSession",
    "SessionPatch",
    "SessionStatus",
    # Tax
    "JurisdictionLevel",
    "LineItemTax",
    "TaxBreakdownEntry",
    "TaxCalculationResult",
    "TaxExemption",
    "TaxExemptionStatus",
    "TaxRate",
    "TaxRateStatus",
]

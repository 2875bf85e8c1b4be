"""
checkoutflow - Checkout sessions, tax calculation and order commit for Python.

This library provides:
- Checkout session lifecycle with lazy and swept expiry
- Tax calculation engine with jurisdiction-scoped, prioritized, stacking rates
- Customer tax exemptions
- Shipping and payment method catalogs with a single default per kind
- All-or-nothing conversion of a session into an order
- PostgreSQL, SQLite and In-Memory backends for every store
"""

from importlib.metadata import PackageNotFoundError, version

try:
    __version__ = version("checkoutflow")
except PackageNotFoundError:
    # Package not installed (running from source without install)
    __version__ = "0.0.0.dev0"

# Checkout workflow
from checkoutflow.checkout import CheckoutService, CheckoutSessionManager

# Configuration
from checkoutflow.config import CheckoutConfig, Clock, utc_now

# Exceptions
from checkoutflow.exceptions import (
    AddressValidationError,
    CatalogError,
    CheckoutFlowError,
    DefaultMethodDeletionError,
    LastMethodError,
    OrderCommitError,
    SessionAlreadyFinalizedError,
    TaxCalculationError,
)

# Data model
from checkoutflow.models import (
    Address,
    BasketLine,
    CheckoutError,
    CheckoutErrorCode,
    CheckoutSession,
    Jurisdiction,
    JurisdictionLevel,
    LineItemTax,
    MethodKind,
    Order,
    OrderCreationResult,
    OrderItem,
    OrderStatus,
    PaymentMethod,
    PaymentMethodType,
    Product,
    SessionPatch,
    SessionStatus,
    ShippingMethod,
    TaxBreakdownEntry,
    TaxCalculationResult,
    TaxExemption,
    TaxExemptionStatus,
    TaxRate,
    TaxRateStatus,
    ValidationResult,
)

# Money helpers
from checkoutflow.money import quantize

# Observability
from checkoutflow.observability import (
    MockTracer,
    NullTracer,
    OpenTelemetryTracer,
    Tracer,
    create_tracer,
)

# Orders
from checkoutflow.orders import OrderCommitCoordinator

# Collaborator protocols
from checkoutflow.protocols import (
    BasketReader,
    ProductTaxCategoryReader,
    TaxExemptionReader,
)

# Tax
from checkoutflow.tax import TaxCalculationEngine

__all__ = [
    "__version__",
    # Checkout
    "CheckoutService",
    "CheckoutSessionManager",
    "OrderCommitCoordinator",
    "TaxCalculationEngine",
    # Configuration
    "CheckoutConfig",
    "Clock",
    "utc_now",
    "quantize",
    # Exceptions
    "AddressValidationError",
    "CatalogError",
    "CheckoutFlowError",
    "DefaultMethodDeletionError",
    "LastMethodError",
    "OrderCommitError",
    "SessionAlreadyFinalizedError",
    "TaxCalculationError",
    # Models
    "Address",
    "BasketLine",
    "CheckoutError",
    "CheckoutErrorCode",
    "CheckoutSession",
    "Jurisdiction",
    "JurisdictionLevel",
    "LineItemTax",
    "MethodKind",
    "Order",
    "OrderCreationResult",
    "OrderItem",
    "OrderStatus",
    "PaymentMethod",
    "PaymentMethodType",
    "Product",
    "SessionPatch",
    "SessionStatus",
    "ShippingMethod",
    "TaxBreakdownEntry",
    "TaxCalculationResult",
    "TaxExemption",
    "TaxExemptionStatus",
    "TaxRate",
    "TaxRateStatus",
    "ValidationResult",
    # Observability
    "MockTracer",
    "NullTracer",
    "OpenTelemetryTracer",
    "Tracer",
    "create_tracer",
    # Protocols
    "BasketReader",
    "ProductTaxCategoryReader",
    "TaxExemptionReader",
]

"""
Standard span attributes for checkoutflow.

This module defines attribute constants used across all checkoutflow components
for consistent span naming. These follow OpenTelemetry semantic conventions
where applicable.

Example:
    >>> from checkoutflow.observability.attributes import ATTR_SESSION_ID
    >>>
    >>> with tracer.span(
    ...     "checkoutflow.session.validate",
    ...     {ATTR_SESSION_ID: str(session_id)},
    ... ):
    ...     pass
"""

# =============================================================================
# Checkout Session Attributes
# =============================================================================

ATTR_SESSION_ID = "checkoutflow.session.id"
"""Unique identifier for the checkout session (UUID string)."""

ATTR_SESSION_STATUS = "checkoutflow.session.status"
"""Status of the checkout session (active, completed, abandoned, expired)."""

ATTR_BASKET_ID = "checkoutflow.basket.id"
"""Identifier of the basket the session belongs to (UUID string)."""

ATTR_CUSTOMER_ID = "checkoutflow.customer.id"
"""Identifier of the customer, when known (UUID string)."""

ATTR_EXPIRED_COUNT = "checkoutflow.session.expired_count"
"""Number of sessions transitioned by an expiry sweep (integer)."""

ATTR_VALIDATION_ERROR_COUNT = "checkoutflow.validation.error_count"
"""Number of validation errors found for a session (integer)."""

# =============================================================================
# Catalog Attributes
# =============================================================================

ATTR_METHOD_ID = "checkoutflow.method.id"
"""Identifier of a shipping or payment method (UUID string)."""

ATTR_METHOD_KIND = "checkoutflow.method.kind"
"""Kind of catalog method ('shipping' or 'payment')."""

# =============================================================================
# Tax Attributes
# =============================================================================

ATTR_PRODUCT_ID = "checkoutflow.product.id"
"""Identifier of the product a tax line is computed for (UUID string)."""

ATTR_TAX_COUNTRY = "checkoutflow.tax.country"
"""Country code of the jurisdiction used for tax resolution."""

ATTR_TAX_RATE_COUNT = "checkoutflow.tax.rate_count"
"""Number of tax rates that applied to a line (integer)."""

ATTR_TAX_EXEMPT = "checkoutflow.tax.exempt"
"""Whether the customer was tax exempt (boolean)."""

ATTR_TAX_DEGRADED = "checkoutflow.tax.degraded"
"""Whether tax calculation failed and was degraded to zero (boolean)."""

ATTR_LINE_COUNT = "checkoutflow.basket.line_count"
"""Number of basket lines in an operation (integer)."""

# =============================================================================
# Order Attributes
# =============================================================================

ATTR_ORDER_ID = "checkoutflow.order.id"
"""Identifier of the order created by a commit (UUID string)."""

ATTR_ORDER_SUCCESS = "checkoutflow.order.success"
"""Whether the commit produced an order (boolean)."""

# =============================================================================
# Database Attributes (OpenTelemetry Semantic Conventions)
# =============================================================================

ATTR_DB_SYSTEM = "db.system"
"""Database system identifier (e.g., 'postgresql', 'sqlite', 'memory')."""

ATTR_DB_OPERATION = "db.operation"
"""Database operation being performed (e.g., 'SELECT', 'UPDATE')."""

# =============================================================================
# Error Attributes
# =============================================================================

ATTR_ERROR_TYPE = "checkoutflow.error.type"
"""Exception class name for a failed operation (string)."""


__all__ = [
    # Session
    "ATTR_SESSION_ID",
    "ATTR_SESSION_STATUS",
    "ATTR_BASKET_ID",
    "ATTR_CUSTOMER_ID",
    "ATTR_EXPIRED_COUNT",
    "ATTR_VALIDATION_ERROR_COUNT",
    # Catalog
    "ATTR_METHOD_ID",
    "ATTR_METHOD_KIND",
    # Tax
    "ATTR_PRODUCT_ID",
    "ATTR_TAX_COUNTRY",
    "ATTR_TAX_RATE_COUNT",
    "ATTR_TAX_EXEMPT",
    "ATTR_TAX_DEGRADED",
    "ATTR_LINE_COUNT",
    # Order
    "ATTR_ORDER_ID",
    "ATTR_ORDER_SUCCESS",
    # Database
    "ATTR_DB_SYSTEM",
    "ATTR_DB_OPERATION",
    # Error
    "ATTR_ERROR_TYPE",
]

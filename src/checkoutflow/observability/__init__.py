"""
Observability utilities for checkoutflow.

This module provides tracing and standard attribute definitions for
consistent observability across all checkoutflow components.

Note:
    OpenTelemetry is an optional dependency. All utilities in this module
    gracefully handle the case where OpenTelemetry is not installed.
"""

from checkoutflow.observability.attributes import (
    ATTR_BASKET_ID,
    ATTR_CUSTOMER_ID,
    ATTR_DB_OPERATION,
    ATTR_DB_SYSTEM,
    ATTR_ERROR_TYPE,
    ATTR_EXPIRED_COUNT,
    ATTR_LINE_COUNT,
    ATTR_METHOD_ID,
    ATTR_METHOD_KIND,
    ATTR_ORDER_ID,
    ATTR_ORDER_SUCCESS,
    ATTR_PRODUCT_ID,
    ATTR_SESSION_ID,
    ATTR_SESSION_STATUS,
    ATTR_TAX_COUNTRY,
    ATTR_TAX_DEGRADED,
    ATTR_TAX_EXEMPT,
    ATTR_TAX_RATE_COUNT,
    ATTR_VALIDATION_ERROR_COUNT,
)
from checkoutflow.observability.tracer import (
    MockTracer,
    NullTracer,
    OpenTelemetryTracer,
    Tracer,
    create_tracer,
)
from checkoutflow.observability.tracing import OTEL_AVAILABLE, get_tracer, should_trace

__all__ = [
    # Tracing utilities
    "OTEL_AVAILABLE",
    "get_tracer",
    "should_trace",
    # Tracer (composition-based API)
    "Tracer",
    "NullTracer",
    "OpenTelemetryTracer",
    "MockTracer",
    "create_tracer",
    # Attributes
    "ATTR_SESSION_ID",
    "ATTR_SESSION_STATUS",
    "ATTR_BASKET_ID",
    "ATTR_CUSTOMER_ID",
    "ATTR_EXPIRED_COUNT",
    "ATTR_VALIDATION_ERROR_COUNT",
    "ATTR_METHOD_ID",
    "ATTR_METHOD_KIND",
    "ATTR_PRODUCT_ID",
    "ATTR_TAX_COUNTRY",
    "ATTR_TAX_RATE_COUNT",
    "ATTR_TAX_EXEMPT",
    "ATTR_TAX_DEGRADED",
    "ATTR_LINE_COUNT",
    "ATTR_ORDER_ID",
    "ATTR_ORDER_SUCCESS",
    "ATTR_DB_SYSTEM",
    "ATTR_DB_OPERATION",
    "ATTR_ERROR_TYPE",
]

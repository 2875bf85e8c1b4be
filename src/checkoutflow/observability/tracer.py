"""
Tracers injected into checkoutflow repositories and services.

Components never talk to OpenTelemetry directly. They hold a ``Tracer`` and
open spans through it:

    >>> class SessionStore:
    ...     def __init__(self, tracer: Tracer | None = None, enable_tracing: bool = True):
    ...         self._tracer = tracer or create_tracer(__name__, enable_tracing)
    ...
    ...     async def get_session(self, session_id):
    ...         with self._tracer.span(
    ...             "checkoutflow.session.get", {ATTR_SESSION_ID: str(session_id)}
    ...         ) as span:
    ...             if span:
    ...                 span.set_attribute(ATTR_SESSION_STATUS, "active")

``NullTracer`` and ``MockTracer`` yield None from ``span``, so attribute
writes guarded by ``if span:`` are skipped for them.
"""

from __future__ import annotations

import contextlib
from collections.abc import Iterator
from contextlib import AbstractContextManager
from typing import TYPE_CHECKING, Any, Protocol, runtime_checkable

if TYPE_CHECKING:
    from opentelemetry.trace import Span

from checkoutflow.observability.tracing import get_tracer, should_trace

SpanAttributes = dict[str, Any]


@runtime_checkable
class Tracer(Protocol):
    """
    Anything that can open a span around a block of work.

    Implementations:
    - NullTracer: tracing disabled or OpenTelemetry missing
    - OpenTelemetryTracer: real spans
    - MockTracer: records span names and attributes for tests
    """

    def span(
        self,
        name: str,
        attributes: SpanAttributes | None = None,
    ) -> AbstractContextManager[Span | None]:
        """
        Open a span named ``name`` (e.g. "checkoutflow.order.complete").

        The context manager yields the live span, or None when nothing is
        recorded on it.
        """
        ...

    @property
    def enabled(self) -> bool:
        """Whether spans opened by this tracer go anywhere."""
        ...


class NullTracer:
    """Tracer that records nothing."""

    @contextlib.contextmanager
    def span(
        self,
        name: str,
        attributes: SpanAttributes | None = None,
    ) -> Iterator[None]:
        yield None

    @property
    def enabled(self) -> bool:
        return False


class OpenTelemetryTracer:
    """
    Tracer backed by ``opentelemetry.trace.get_tracer(tracer_name)``.

    Raises:
        ImportError: When opentelemetry-api is not installed
    """

    def __init__(self, tracer_name: str) -> None:
        otel_tracer = get_tracer(tracer_name)
        if otel_tracer is None:
            raise ImportError(
                "opentelemetry-api is required for OpenTelemetryTracer "
                "(pip install checkoutflow[telemetry])"
            )
        self._tracer = otel_tracer

    def span(
        self,
        name: str,
        attributes: SpanAttributes | None = None,
    ) -> AbstractContextManager[Span | None]:
        return self._tracer.start_as_current_span(name, attributes=attributes or {})

    @property
    def enabled(self) -> bool:
        return True


class MockTracer:
    """
    Tracer for tests. Keeps every opened span as a ``(name, attributes)`` pair.

    Example:
        >>> tracer = MockTracer()
        >>> engine = TaxCalculationEngine(rates, products, exemptions, baskets, tracer=tracer)
        >>> await engine.calculate_basket_tax(basket_id, jurisdiction)
        >>> tracer.span_names[0]
        'checkoutflow.tax.calculate_basket'
    """

    def __init__(self) -> None:
        self.spans: list[tuple[str, SpanAttributes | None]] = []

    @contextlib.contextmanager
    def span(
        self,
        name: str,
        attributes: SpanAttributes | None = None,
    ) -> Iterator[None]:
        self.spans.append((name, attributes))
        yield None

    @property
    def enabled(self) -> bool:
        return True

    @property
    def span_names(self) -> list[str]:
        """Names of the recorded spans, in opening order."""
        return [name for name, _ in self.spans]

    def clear(self) -> None:
        self.spans.clear()


def create_tracer(name: str, enable_tracing: bool = True) -> Tracer:
    """
    Pick the tracer a component should use.

    Args:
        name: Instrumentation name, usually the calling module's ``__name__``
        enable_tracing: The component's own switch

    Returns:
        An OpenTelemetryTracer when the switch is on and OpenTelemetry is
        importable, a NullTracer otherwise
    """
    if should_trace(enable_tracing):
        return OpenTelemetryTracer(name)
    return NullTracer()


__all__ = [
    "MockTracer",
    "NullTracer",
    "OpenTelemetryTracer",
    "SpanAttributes",
    "Tracer",
    "create_tracer",
]

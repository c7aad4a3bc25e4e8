"""
Tracer protocol and implementations for composition-based tracing.

Components receive a tracer as a dependency instead of talking to
OpenTelemetry directly, which keeps tracing out of their core logic and
makes it trivial to swap in a recording tracer during tests.

Example:
    >>> from tenantstore.observability import create_tracer, NullTracer
    >>>
    >>> tracer = create_tracer(__name__, enable_tracing=True)
    >>>
    >>> class StoreChecker:
    ...     def __init__(self, tracer: Tracer | None = None):
    ...         self._tracer = tracer or NullTracer()
    ...
    ...     async def check(self, locator: str) -> None:
    ...         with self._tracer.span("store_checker.check", {"store.locator": locator}):
    ...             await self._ping(locator)
"""

from __future__ import annotations

import contextlib
from collections.abc import Generator
from contextlib import AbstractContextManager
from typing import TYPE_CHECKING, Any, Protocol, runtime_checkable

if TYPE_CHECKING:
    from opentelemetry.trace import Span


@runtime_checkable
class Tracer(Protocol):
    """
    What every tenantstore component expects from its tracer.

    Implementations:
    - NullTracer: Tracing switched off
    - OpenTelemetryTracer: Delegates to the OpenTelemetry tracer API
    - MockTracer: Records span names and attributes for assertions
    """

    def span(
        self,
        name: str,
        attributes: dict[str, Any] | None = None,
    ) -> AbstractContextManager[Span | None]:
        """
        Open a span around a block of work.

        Args:
            name: Span name (e.g., "tenantstore.registry.acquire")
            attributes: Initial span attributes, if any

        Returns:
            Context manager yielding the live Span, or None when spans are
            not recorded
        """
        ...

    @property
    def enabled(self) -> bool:
        """Whether spans opened through this tracer are recorded anywhere."""
        ...


class NullTracer:
    """
    Tracer used when ``enable_tracing=False``; every span is a no-op.

    Example:
        >>> with NullTracer().span("tenantstore.provisioner.ensure_schema"):
        ...     pass
    """

    @contextlib.contextmanager
    def span(
        self,
        name: str,
        attributes: dict[str, Any] | None = None,
    ) -> Generator[None, None, None]:
        yield None

    @property
    def enabled(self) -> bool:
        return False


class OpenTelemetryTracer:
    """
    Tracer backed by the OpenTelemetry API.

    Spans are real when the host application configures an SDK tracer
    provider and no-ops otherwise.

    Args:
        tracer_name: Instrumentation scope name (typically __name__)
    """

    def __init__(self, tracer_name: str) -> None:
        from opentelemetry import trace

        self._tracer = trace.get_tracer(tracer_name)

    def span(
        self,
        name: str,
        attributes: dict[str, Any] | None = None,
    ) -> AbstractContextManager[Span | None]:
        """Start a span and make it current for the duration of the block."""
        return self._tracer.start_as_current_span(
            name,
            attributes=attributes or {},
        )

    @property
    def enabled(self) -> bool:
        return True


class MockTracer:
    """
    Recording tracer for tests.

    Example:
        >>> tracer = MockTracer()
        >>> with tracer.span("tenantstore.registry.acquire", {"tenantstore.tenant.id": 1}):
        ...     pass
        >>> tracer.span_names
        ['tenantstore.registry.acquire']
    """

    def __init__(self) -> None:
        self.spans: list[tuple[str, dict[str, Any] | None]] = []

    @contextlib.contextmanager
    def span(
        self,
        name: str,
        attributes: dict[str, Any] | None = None,
    ) -> Generator[None, None, None]:
        self.spans.append((name, attributes))
        yield None

    @property
    def enabled(self) -> bool:
        # Reported as enabled so components build their attributes in tests
        return True

    @property
    def span_names(self) -> list[str]:
        return [name for name, _ in self.spans]

    def clear(self) -> None:
        self.spans.clear()


def create_tracer(
    name: str,
    enable_tracing: bool = True,
) -> Tracer:
    """
    Pick the tracer for a component.

    Args:
        name: Instrumentation scope name (typically __name__)
        enable_tracing: False selects the NullTracer

    Returns:
        OpenTelemetryTracer when tracing is enabled, NullTracer otherwise

    Example:
        >>> self._tracer = tracer or create_tracer(__name__, enable_tracing)
    """
    if enable_tracing:
        return OpenTelemetryTracer(name)
    return NullTracer()


__all__ = [
    "Tracer",
    "NullTracer",
    "OpenTelemetryTracer",
    "MockTracer",
    "create_tracer",
]

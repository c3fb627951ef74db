"""OpenTelemetry tracing helpers for verification runs.

Poll sessions, clean-slate resets and scenarios each run inside a span
named ``verify.<operation>``. When no tracer provider is configured the
OpenTelemetry API hands out a no-op tracer, so instrumentation costs nothing
outside of traced runs.

Example:
    >>> from gitops_verify.telemetry.tracing import get_tracer, verify_span
    >>> with verify_span(get_tracer(), "await_all", namespace="gitops") as span:
    ...     span.set_attribute("verify.rounds", 3)
"""

from __future__ import annotations

from contextlib import contextmanager
from typing import TYPE_CHECKING, Any

from opentelemetry import trace
from opentelemetry.trace import Status, StatusCode

if TYPE_CHECKING:
    from collections.abc import Iterator

TRACER_NAME = "gitops_verify"

ATTR_OPERATION = "verify.operation"
ATTR_NAMESPACE = "verify.namespace"
ATTR_RESOURCE = "verify.resource"
ATTR_SCENARIO = "verify.scenario"


def get_tracer() -> trace.Tracer:
    """Return the tracer used for verification spans."""
    return trace.get_tracer(TRACER_NAME)


@contextmanager
def verify_span(
    tracer: trace.Tracer,
    operation: str,
    *,
    namespace: str | None = None,
    resource: str | None = None,
    scenario: str | None = None,
    extra_attributes: dict[str, Any] | None = None,
) -> Iterator[trace.Span]:
    """Context manager creating a verification span.

    Args:
        tracer: OpenTelemetry tracer instance.
        operation: Operation name (e.g., "await_all", "reset").
        namespace: Namespace the operation targets.
        resource: Single resource reference, if any.
        scenario: Scenario name, if any.
        extra_attributes: Additional span attributes.

    Yields:
        The active span for adding custom attributes.
    """
    attributes: dict[str, Any] = {ATTR_OPERATION: operation}
    if namespace is not None:
        attributes[ATTR_NAMESPACE] = namespace
    if resource is not None:
        attributes[ATTR_RESOURCE] = resource
    if scenario is not None:
        attributes[ATTR_SCENARIO] = scenario
    if extra_attributes:
        attributes.update(extra_attributes)

    with tracer.start_as_current_span(
        f"verify.{operation}",
        attributes=attributes,
        record_exception=False,
        set_status_on_exception=False,
    ) as span:
        try:
            yield span
            status = getattr(span, "status", None)
            if status is None or status.status_code is StatusCode.UNSET:
                span.set_status(Status(StatusCode.OK))
        except Exception as e:
            span.set_status(Status(StatusCode.ERROR, type(e).__name__))
            span.set_attribute("exception.type", type(e).__name__)
            span.set_attribute("exception.message", str(e))
            raise


def mark_unsatisfied(span: trace.Span, reason: str) -> None:
    """Set ERROR status on a span whose operation ended without success.

    Used where a failure is returned as a value instead of raised, such as
    a poll session reaching its deadline.
    """
    span.set_status(Status(StatusCode.ERROR, reason))


__all__ = [
    "ATTR_NAMESPACE",
    "ATTR_OPERATION",
    "ATTR_RESOURCE",
    "ATTR_SCENARIO",
    "TRACER_NAME",
    "get_tracer",
    "mark_unsatisfied",
    "verify_span",
]

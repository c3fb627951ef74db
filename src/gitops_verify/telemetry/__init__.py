"""Logging and tracing for verification runs."""

from __future__ import annotations

from gitops_verify.telemetry.logging import add_trace_context, configure_logging
from gitops_verify.telemetry.tracing import get_tracer, verify_span

__all__ = [
    "add_trace_context",
    "configure_logging",
    "get_tracer",
    "verify_span",
]

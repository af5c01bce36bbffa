"""
Shared OTel span event emission helper for stackgraph domain modules.

Provides ``add_span_event()``, the single-source implementation used by
the topology, monitoring and validation ``otel.py`` modules.  Centralises
the span recording check so each domain module does not duplicate it.

Usage::

    from stackgraph._otel_helpers import add_span_event

    add_span_event("my.event.name", {"key": "value"})
"""

from __future__ import annotations

from opentelemetry import trace as otel_trace


def add_span_event(
    name: str, attributes: dict[str, str | int | float | bool]
) -> None:
    """Add an event to the current OTel span if it is recording.

    No-op when no SDK is configured or the current span is not recording.

    Args:
        name: Event name (e.g. ``"topology.built"``).
        attributes: Flat dict of span event attributes.
    """
    span = otel_trace.get_current_span()
    if span and span.is_recording():
        span.add_event(name=name, attributes=attributes)

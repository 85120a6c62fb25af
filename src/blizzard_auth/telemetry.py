"""Tracing helpers wrapping the OpenTelemetry API.

Spans are no-ops until the host installs a tracer provider.
"""

from collections.abc import Iterator
from contextlib import contextmanager
from typing import Any

from opentelemetry import trace
from opentelemetry.trace import Span, SpanKind, Status, StatusCode

_tracer: trace.Tracer | None = None


def _get_tracer() -> trace.Tracer:
    global _tracer
    if _tracer is None:
        _tracer = trace.get_tracer("blizzard_auth")
    return _tracer


def set_span_attribute(span: Span, key: str, value: Any) -> None:
    """Set an attribute, coercing values OpenTelemetry cannot store."""
    if value is None or not span.is_recording():
        return
    if isinstance(value, str | int | float | bool):
        span.set_attribute(key, value)
    elif isinstance(value, list | tuple) and all(
        isinstance(v, str | int | float | bool) for v in value
    ):
        span.set_attribute(key, list(value))
    else:
        span.set_attribute(key, str(value))


@contextmanager
def traced_operation(
    name: str,
    attributes: dict[str, Any] | None = None,
    kind: SpanKind = SpanKind.INTERNAL,
) -> Iterator[Span]:
    """Context manager for tracing an operation.

    Example:
        ```python
        with traced_operation("blizzard_auth.oauth.get_token", {"region": "eu"}) as span:
            span.set_attribute("blizzard_auth.status_code", 200)
        ```
    """
    with _get_tracer().start_as_current_span(
        name, kind=kind, record_exception=False, set_status_on_exception=False
    ) as span:
        for key, value in (attributes or {}).items():
            set_span_attribute(span, key, value)
        try:
            yield span
        except Exception as e:
            span.record_exception(e)
            span.set_status(Status(StatusCode.ERROR, str(e)))
            raise


__all__ = ["SpanKind", "set_span_attribute", "traced_operation"]

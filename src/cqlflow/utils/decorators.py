import functools
from typing import Any, Callable, Dict, Optional, TypeVar

from opentelemetry.trace import SpanKind, Status, StatusCode

from cqlflow.telemetry import get_tracer


F = TypeVar('F', bound=Callable[..., Any])


def traced(
    span_name: Optional[str] = None,
    *,
    kind: SpanKind = SpanKind.INTERNAL,
    attribute_getter: Optional[Callable[..., Optional[Dict[str, Any]]]] = None,
) -> Callable[[F], F]:
    """Instrument a boundary call with an OpenTelemetry span.

    Schema introspection, DDL and statement execution all cross the
    executor boundary; wrapping them gives one span per round trip. The
    exception (if any) is recorded on the span and re-raised unchanged.

    Args:
        span_name: Optional explicit span name. Defaults to module-qualified function name.
        kind: Span kind, defaults to INTERNAL.
        attribute_getter: Callable receiving the wrapped call's arguments and
            returning span attributes.
    """

    def decorator(func: F) -> F:
        name = span_name or f"{func.__module__}.{func.__qualname__}"

        @functools.wraps(func)
        def wrapper(*args: Any, **kwargs: Any) -> Any:
            tracer = get_tracer(func.__module__)

            with tracer.start_as_current_span(name, kind=kind) as span:
                if attribute_getter:
                    for key, value in (attribute_getter(*args, **kwargs) or {}).items():
                        if value is not None:
                            span.set_attribute(key, value)

                try:
                    return func(*args, **kwargs)
                except Exception as exc:
                    span.record_exception(exc)
                    span.set_status(Status(StatusCode.ERROR, str(exc)))
                    raise

        return wrapper  # type: ignore[return-value]

    return decorator

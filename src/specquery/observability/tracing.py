"""OpenTelemetry spans for compile, search and HTTP requests.

Spans are mirrored into the logging trace context: opening a span with a
valid context replaces the ``span_id`` JSON log lines carry, so log lines
emitted inside ``specquery.compile`` point at that span.
"""

from __future__ import annotations

from contextlib import contextmanager
import logging
from typing import TYPE_CHECKING, Any

from opentelemetry import trace
from opentelemetry.sdk.resources import Resource
from opentelemetry.sdk.trace import TracerProvider
from opentelemetry.trace import SpanKind, Status, StatusCode

from specquery.observability.context import generate_span_id, generate_trace_id, set_trace_context, update_span_id


if TYPE_CHECKING:
    from collections.abc import Generator

    from opentelemetry.trace import Span, Tracer
    from starlette.requests import Request
    from starlette.responses import Response

logger = logging.getLogger(__name__)

TRACE_HEADER = "x-trace-id"

_tracer_holder: dict[str, Tracer | None] = {"tracer": None}


def init_tracing(
    service_name: str = "specquery",
    resource_attributes: dict[str, str] | None = None,
) -> TracerProvider:
    """Install a tracer provider whose resource names ``service_name``."""
    provider = TracerProvider(resource=Resource.create({"service.name": service_name, **(resource_attributes or {})}))
    trace.set_tracer_provider(provider)
    _tracer_holder["tracer"] = trace.get_tracer(__name__)
    logger.info("Tracing initialized for service: %s", service_name)
    return provider


def get_tracer() -> Tracer:
    """Return the module tracer; without :func:`init_tracing` it follows the global provider."""
    tracer = _tracer_holder["tracer"]
    if tracer is None:
        tracer = trace.get_tracer(__name__)
        _tracer_holder["tracer"] = tracer
    return tracer


def _fail(span: Span, exc: BaseException) -> None:
    span.set_status(Status(StatusCode.ERROR, str(exc)))
    span.record_exception(exc)


@contextmanager
def create_span(
    name: str,
    kind: SpanKind = SpanKind.INTERNAL,
    attributes: dict[str, Any] | None = None,
) -> Generator[Span, None, None]:
    """Run the ``with`` block inside a span; exceptions mark it failed and propagate."""
    with get_tracer().start_as_current_span(
        name,
        kind=kind,
        attributes=attributes,
        record_exception=False,
        set_status_on_exception=False,
    ) as span:
        span_context = span.get_span_context()
        if span_context.is_valid:
            update_span_id(format(span_context.span_id, "016x"))
        try:
            yield span
        except Exception as exc:
            _fail(span, exc)
            raise


async def trace_request(request: Request, call_next: Any) -> Response:
    """HTTP middleware tying each request to one trace id.

    A caller-supplied ``x-trace-id`` is adopted, otherwise a new id is
    generated; either way it is echoed back on the response.
    """
    trace_id = request.headers.get(TRACE_HEADER) or generate_trace_id()
    set_trace_context(trace_id, generate_span_id())

    route = request.url.path
    with create_span(f"{request.method} {route}", kind=SpanKind.SERVER) as span:
        span.set_attribute("http.method", request.method)
        span.set_attribute("http.route", route)
        response: Response = await call_next(request)
        span.set_attribute("http.status_code", response.status_code)
        if response.status_code >= 400:
            span.set_status(Status(StatusCode.ERROR, f"HTTP {response.status_code}"))

    response.headers[TRACE_HEADER] = trace_id
    return response

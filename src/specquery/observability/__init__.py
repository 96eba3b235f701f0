"""Logging, tracing and metrics for specquery."""

from specquery.observability.context import bind_index, get_trace_context, set_trace_context, trace_context
from specquery.observability.logging import JsonFormatter, configure_logging
from specquery.observability.metrics import (
    COMPILE_TOTAL,
    FILTERED_RESULTS,
    SEARCH_LATENCY,
    SEARCH_REQUESTS,
    get_metrics,
    get_metrics_content_type,
    init_metrics,
    track_latency,
)
from specquery.observability.tracing import create_span, get_tracer, init_tracing


__all__ = [
    "COMPILE_TOTAL",
    "FILTERED_RESULTS",
    "SEARCH_LATENCY",
    "SEARCH_REQUESTS",
    "JsonFormatter",
    "bind_index",
    "configure_logging",
    "create_span",
    "get_metrics",
    "get_metrics_content_type",
    "get_trace_context",
    "get_tracer",
    "init_metrics",
    "init_tracing",
    "set_trace_context",
    "trace_context",
    "track_latency",
]

"""Per-request trace context carried across threads and async boundaries."""

from __future__ import annotations

from contextvars import ContextVar
from uuid import uuid4


# Holds trace_id, span_id and optionally the index being searched
trace_context: ContextVar[dict | None] = ContextVar("specquery_trace_context", default=None)


def generate_trace_id() -> str:
    """Return a 32-char hex trace id."""
    return uuid4().hex


def generate_span_id() -> str:
    """Return a 16-char hex span id."""
    return uuid4().hex[:16]


def get_trace_context() -> dict:
    """Return the current trace context, starting a new trace if there is none."""
    ctx = trace_context.get()
    if ctx is None or not ctx.get("trace_id"):
        ctx = {"trace_id": generate_trace_id(), "span_id": generate_span_id()}
        trace_context.set(ctx)
    return ctx


def set_trace_context(trace_id: str, span_id: str, **extra: object) -> None:
    trace_context.set({"trace_id": trace_id, "span_id": span_id, **extra})


def bind_index(index_name: str) -> None:
    """Tag the current trace with the index a request searches."""
    ctx = get_trace_context()
    trace_context.set({**ctx, "index": index_name})


def update_span_id(span_id: str) -> None:
    """Replace span_id and keep everything else."""
    ctx = get_trace_context()
    trace_context.set({**ctx, "span_id": span_id})

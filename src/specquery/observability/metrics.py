"""Search metrics exported to Prometheus and mirrored to OpenTelemetry.

Each metric is declared once with :func:`_counter` or :func:`_histogram`,
which registers the Prometheus collector served on ``/metrics`` and lazily
creates the OTel instrument of the same name on first use.
"""

from __future__ import annotations

from contextlib import contextmanager
import time
from typing import TYPE_CHECKING, Any

from opentelemetry import metrics as otel_metrics
from opentelemetry.sdk.metrics import MeterProvider
from opentelemetry.sdk.resources import Resource
from prometheus_client import CONTENT_TYPE_LATEST, Counter, Histogram, generate_latest


if TYPE_CHECKING:
    from collections.abc import Generator, Sequence


LATENCY_BUCKETS = (0.001, 0.005, 0.01, 0.025, 0.05, 0.1, 0.25, 0.5, 1.0)

_meter_holder: dict[str, Any] = {"meter": None, "provider": None}


def init_metrics(
    service_name: str = "specquery",
    resource_attributes: dict[str, str] | None = None,
) -> MeterProvider:
    """Install the process-wide meter provider; later calls return the first one."""
    provider = _meter_holder["provider"]
    if isinstance(provider, MeterProvider):
        return provider

    provider = MeterProvider(resource=Resource.create({"service.name": service_name, **(resource_attributes or {})}))
    otel_metrics.set_meter_provider(provider)
    _meter_holder.update(provider=provider, meter=otel_metrics.get_meter(__name__))
    return provider


def _meter():
    if _meter_holder["meter"] is None:
        init_metrics()
    return _meter_holder["meter"]


class _BoundMetric:
    def __init__(self, bridge: MetricBridge, labels: dict[str, str]) -> None:
        self._bridge = bridge
        self._labels = labels

    def inc(self, amount: float = 1.0) -> None:
        self._bridge.record(self._labels, amount)

    def observe(self, value: float) -> None:
        self._bridge.record(self._labels, value)


class MetricBridge:
    """A Prometheus collector plus its OpenTelemetry twin.

    ``otel_kind`` is ``"counter"`` or ``"histogram"``; anything else fails on
    the first recording.
    """

    def __init__(
        self,
        prom_metric: Counter | Histogram,
        *,
        otel_name: str,
        otel_description: str,
        otel_kind: str,
    ) -> None:
        self.prom_metric = prom_metric
        self.otel_name = otel_name
        self.otel_description = otel_description
        self.otel_kind = otel_kind
        self._instrument = None

    def labels(self, **labels: str) -> _BoundMetric:
        return _BoundMetric(self, labels)

    def _otel_instrument(self):
        if self._instrument is None:
            meter = _meter()
            if self.otel_kind == "counter":
                self._instrument = meter.create_counter(self.otel_name, description=self.otel_description)
            elif self.otel_kind == "histogram":
                self._instrument = meter.create_histogram(self.otel_name, description=self.otel_description)
            else:
                msg = f"Unknown metric kind: {self.otel_kind}"
                raise ValueError(msg)
        return self._instrument

    def record(self, labels: dict[str, str], value: float) -> None:
        child = self.prom_metric.labels(**labels)
        if self.otel_kind == "histogram":
            child.observe(value)
            self._otel_instrument().record(value, labels)
        else:
            child.inc(value)
            self._otel_instrument().add(value, labels)


def _counter(name: str, description: str, labels: Sequence[str]) -> MetricBridge:
    return MetricBridge(
        Counter(name, description, labels),
        otel_name=name,
        otel_description=description,
        otel_kind="counter",
    )


def _histogram(name: str, description: str, labels: Sequence[str]) -> MetricBridge:
    return MetricBridge(
        Histogram(name, description, labels, buckets=LATENCY_BUCKETS),
        otel_name=name,
        otel_description=description,
        otel_kind="histogram",
    )


COMPILE_TOTAL = _counter("specquery_compile_total", "Query spec compilations by outcome", ["status"])
SEARCH_REQUESTS = _counter("specquery_search_requests_total", "Search requests by index and outcome", ["index", "status"])
SEARCH_LATENCY = _histogram(
    "specquery_search_latency_seconds",
    "Compile, execute and filter latency of a search request",
    ["index"],
)
FILTERED_RESULTS = _counter(
    "specquery_filtered_results_total",
    "Index hits dropped by result post-filtering",
    ["reason"],
)


@contextmanager
def track_latency(histogram: MetricBridge, **labels: str) -> Generator[None, None, None]:
    """Observe how long the ``with`` block takes, including when it raises."""
    start = time.perf_counter()
    try:
        yield
    finally:
        histogram.labels(**labels).observe(time.perf_counter() - start)


def get_metrics() -> bytes:
    """Render every registered Prometheus metric in text exposition format."""
    return generate_latest()


def get_metrics_content_type() -> str:
    return CONTENT_TYPE_LATEST

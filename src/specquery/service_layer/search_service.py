"""Search service orchestration layer.

Resolves the target index, compiles the request's query spec with that
index's analyzer, executes it and post-filters the hits.
"""

from collections.abc import Mapping
from dataclasses import dataclass, field
import logging
import math
from typing import Any

from specquery.adapters.entity_repository import AbstractEntityRepository
from specquery.coercion import as_float
from specquery.compiler import compile_query
from specquery.config import Settings, get_settings
from specquery.diagnostics import Diagnostics
from specquery.errors import CoercionError, MissingRequiredField, SpecQueryError
from specquery.geo import parse_search_radius
from specquery.observability.context import bind_index
from specquery.observability.metrics import SEARCH_LATENCY, SEARCH_REQUESTS, track_latency
from specquery.observability.tracing import create_span
from specquery.registry import IndexRegistry
from specquery.results import ScoredResult, filter_results


logger = logging.getLogger(__name__)

DEFAULT_MIN_SCORE = 0.0


@dataclass
class SearchResponse:
    """Filtered results of one search plus the warnings raised while serving it."""

    results: list[ScoredResult]
    diagnostics: Diagnostics = field(default_factory=Diagnostics)

    @property
    def warnings(self) -> list[str]:
        return self.diagnostics.warnings


class SearchService:
    """High-level search orchestration service.

    Args:
        registry: Indexes addressable by ``index_name``
        entities: Entity properties used for radius post-filtering and for
            rendering results
        settings: Geo field names and query defaults
    """

    def __init__(
        self,
        registry: IndexRegistry,
        entities: AbstractEntityRepository,
        settings: Settings | None = None,
    ):
        self.registry = registry
        self.entities = entities
        self.settings = settings or get_settings()

    def search(self, params: Mapping[str, Any]) -> SearchResponse:
        """Run one search request.

        ``params`` holds ``index_name`` and ``query_spec`` (required) plus
        optional ``min_score`` and a ``lat``/``lon``/``dist`` radius.

        Raises:
            MissingRequiredField: ``index_name`` or ``query_spec`` is absent.
            UnknownIndexError: ``index_name`` is not registered.
            SpecQueryError: the query spec does not compile.
        """
        index_name = params.get("index_name")
        if not isinstance(index_name, str) or not index_name:
            msg = "Missing required parameter 'index_name'"
            raise MissingRequiredField(msg)
        raw_spec = params.get("query_spec")
        if raw_spec is None:
            msg = "Missing required parameter 'query_spec'"
            raise MissingRequiredField(msg)

        bind_index(index_name)
        diagnostics = Diagnostics()
        with create_span("specquery.search", attributes={"specquery.index": index_name}) as span:
            try:
                with track_latency(SEARCH_LATENCY, index=index_name):
                    results = self._run(index_name, raw_spec, params, diagnostics)
            except SpecQueryError:
                SEARCH_REQUESTS.labels(index=index_name, status="error").inc()
                raise
            span.set_attribute("specquery.result_count", len(results))
        SEARCH_REQUESTS.labels(index=index_name, status="ok").inc()
        logger.debug("Search on '%s' returned %d result(s)", index_name, len(results))
        return SearchResponse(results=results, diagnostics=diagnostics)

    def _run(
        self,
        index_name: str,
        raw_spec: Any,
        params: Mapping[str, Any],
        diagnostics: Diagnostics,
    ) -> list[ScoredResult]:
        index = self.registry.require(index_name)
        min_score = self._min_score(params, diagnostics)
        search_radius = parse_search_radius(params, diagnostics=diagnostics)
        query = compile_query(raw_spec, index.analyzer, settings=self.settings, diagnostics=diagnostics)
        hits = index.execute(query)
        return filter_results(
            hits,
            min_score=min_score,
            search_radius=search_radius,
            entities=self.entities,
            lat_key=self.settings.lat_key,
            lon_key=self.settings.lon_key,
            diagnostics=diagnostics,
        )

    def _min_score(self, params: Mapping[str, Any], diagnostics: Diagnostics) -> float:
        raw = params.get("min_score")
        if raw is None:
            return DEFAULT_MIN_SCORE
        try:
            min_score = as_float(raw, diagnostics=diagnostics)
        except CoercionError as exc:
            diagnostics.warning("Ignoring min_score: %s", exc, log=logger)
            return DEFAULT_MIN_SCORE
        if math.isnan(min_score):
            diagnostics.warning("Ignoring min_score: NaN", log=logger)
            return DEFAULT_MIN_SCORE
        return min_score

    def render(
        self,
        response: SearchResponse,
        *,
        include_diagnostics: bool = False,
    ) -> list[dict[str, Any]] | dict[str, Any]:
        """Shape results for the wire: entity ref, score and stored properties.

        With ``include_diagnostics`` the list is wrapped as ``{"results": [...],
        "diagnostics": [...]}`` so callers see which parameters were defaulted.
        """
        results = [
            {
                "entity": result.entity_ref,
                "score": result.score,
                "properties": self.entities.get_properties(result.entity_ref),
            }
            for result in response.results
        ]
        if not include_diagnostics:
            return results
        return {"results": results, "diagnostics": [record.to_dict() for record in response.diagnostics]}

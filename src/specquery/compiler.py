"""Recursive compiler from query specs to executable queries.

``compile_query`` walks a spec tree depth first. Each node is dispatched on its
``type`` to a builder, and the node's ``boost`` is applied to whatever the
builder returned. Structural problems raise a single :class:`QueryCompileError`
naming the failing node; nothing is returned for a partially valid tree.
Optional parameters (``boost``, ``slop``, ``tiebreaker``) never fail the
build: a bad value is recorded as a warning and replaced by its default.
"""

from __future__ import annotations

from collections.abc import Mapping
import logging
import math
import re
from typing import Any

from specquery.coercion import as_double, as_float, as_int, get_double
from specquery.config import Settings, get_settings
from specquery.diagnostics import Diagnostics
from specquery.errors import (
    CoercionError,
    EmptySubqueryList,
    GeoValidationError,
    InvalidOccurs,
    InvalidRange,
    MissingRequiredField,
    PhraseBuildError,
    SpecQueryError,
    UnsupportedType,
)
from specquery.geo import compile_geo_query
from specquery.observability.metrics import COMPILE_TOTAL
from specquery.observability.tracing import create_span
from specquery.search.analyzers import TermTokenizer
from specquery.search.queries import (
    BooleanClause,
    BooleanQuery,
    DisjunctionMaxQuery,
    NumericRangeQuery,
    PhraseQuery,
    Query,
    TermQuery,
)
from specquery.spec import ROOT_PATH, Occurs, QuerySpec, QueryType


logger = logging.getLogger(__name__)

RANGE_PATTERN = re.compile(r"^([(\[])(.*),(.*)([)\]])$")

DEFAULT_BOOST = 1.0
DEFAULT_SLOP = 0


def parse_range(text: str, path: str = ROOT_PATH) -> tuple[float, float, bool, bool]:
    """Parse ``"(10,20]"`` style intervals.

    Returns:
        ``(lower, upper, lower_inclusive, upper_inclusive)``

    Raises:
        InvalidRange: the text does not match the grammar or a bound is not a
            finite number.
    """
    match = RANGE_PATTERN.match(text)
    if match is None:
        msg = f"Range '{text}' does not match <[|(>min,max<]|)>"
        raise InvalidRange(msg, path=path)
    opening, raw_lower, raw_upper, closing = match.groups()
    bounds = []
    for raw in (raw_lower, raw_upper):
        try:
            bound = float(raw.strip())
        except ValueError as exc:
            msg = f"Range '{text}' has a non-numeric bound '{raw}'"
            raise InvalidRange(msg, path=path) from exc
        if not math.isfinite(bound):
            msg = f"Range '{text}' has a non-finite bound '{raw}'"
            raise InvalidRange(msg, path=path)
        bounds.append(bound)
    return bounds[0], bounds[1], opening == "[", closing == "]"


def format_range(lower: float, upper: float, lower_inclusive: bool, upper_inclusive: bool) -> str:
    """Inverse of :func:`parse_range`."""
    opening = "[" if lower_inclusive else "("
    closing = "]" if upper_inclusive else ")"
    return f"{opening}{lower!r},{upper!r}{closing}"


class QueryCompiler:
    """Compiles raw spec trees using one analyzer and one set of defaults.

    Args:
        analyzer: Tokenizer used for PHRASE and SIM text; it must match the
            analyzer the target index was built with.
        settings: Supplies the geo field names, box mode and default tiebreaker.
        diagnostics: Sink for warnings about defaulted parameters. A fresh sink
            is created when omitted and exposed as ``self.diagnostics``.
    """

    def __init__(
        self,
        analyzer: TermTokenizer,
        *,
        settings: Settings | None = None,
        diagnostics: Diagnostics | None = None,
    ) -> None:
        self.analyzer = analyzer
        self.settings = settings or get_settings()
        self.diagnostics = diagnostics if diagnostics is not None else Diagnostics()

    def compile(self, raw: Any) -> Query:
        """Compile ``raw`` (a mapping or an already parsed :class:`QuerySpec`)."""
        with create_span("specquery.compile") as span:
            try:
                spec = raw if isinstance(raw, QuerySpec) else QuerySpec.parse(raw)
                span.set_attribute("specquery.query_type", spec.type.value)
                query = self._compile_node(spec)
            except SpecQueryError:
                COMPILE_TOTAL.labels(status="error").inc()
                raise
            COMPILE_TOTAL.labels(status="ok").inc()
        logger.debug("Compiled %s spec into %s", spec.type.value, query)
        return query

    def _compile_child(self, raw: Any, path: str) -> Query:
        return self._compile_node(QuerySpec.parse(raw, path))

    def _compile_node(self, spec: QuerySpec) -> Query:
        try:
            query = self._build(spec)
        except (CoercionError, GeoValidationError) as exc:
            if exc.path:
                raise
            raise exc.at(spec.path) from exc
        return query.with_boost(self._boost(spec))

    def _build(self, spec: QuerySpec) -> Query:
        if spec.type is QueryType.TERM:
            return self._build_term(spec)
        if spec.type is QueryType.PHRASE:
            return self._build_phrase(spec)
        if spec.type is QueryType.SIM:
            return self._build_similar(spec)
        if spec.type is QueryType.NUMRANGE:
            return self._build_numeric_range(spec)
        if spec.type is QueryType.GEO:
            return self._build_geo(spec)
        if spec.type is QueryType.BOOL:
            return self._build_boolean(spec)
        if spec.type is QueryType.DISMAX:
            return self._build_dismax(spec)
        msg = f"Unsupported query type: {spec.type!r}"
        raise UnsupportedType(msg, path=spec.path)

    # -- leaf queries ---------------------------------------------------------

    def _build_term(self, spec: QuerySpec) -> Query:
        return TermQuery(spec.text("index_key"), spec.text("query"))

    def _build_phrase(self, spec: QuerySpec) -> Query:
        try:
            field_name = spec.text("index_key")
            text = spec.text("query")
        except MissingRequiredField as exc:
            raise PhraseBuildError(exc.message, path=spec.path) from exc
        try:
            terms = self.analyzer.tokenize(field_name, text)
        except Exception as exc:
            msg = f"Couldn't tokenize phrase '{text}' for field '{field_name}': {exc}"
            raise PhraseBuildError(msg, path=spec.path) from exc
        if not terms:
            msg = f"Phrase '{text}' produced no terms for field '{field_name}'"
            raise PhraseBuildError(msg, path=spec.path)
        return PhraseQuery(field_name, tuple(terms), slop=self._slop(spec))

    def _build_similar(self, spec: QuerySpec) -> Query:
        field_name = spec.text("index_key")
        text = spec.text("query")
        try:
            terms = self.analyzer.tokenize(field_name, text)
        except Exception as exc:
            self.diagnostics.warning(
                "Couldn't build similarity query for '%s' (%s); falling back to a term query",
                text,
                exc,
                log=logger,
            )
            return TermQuery(field_name, text)
        unique_terms = dict.fromkeys(terms)
        clauses = tuple(BooleanClause(TermQuery(field_name, term), Occurs.SHOULD) for term in unique_terms)
        return BooleanQuery(clauses)

    def _build_numeric_range(self, spec: QuerySpec) -> Query:
        field_name = spec.text("index_key")
        raw_range = spec.get("range")
        if raw_range is None:
            msg = "NUMRANGE query is missing field 'range'"
            raise MissingRequiredField(msg, path=spec.path)
        if not isinstance(raw_range, str):
            msg = f"NUMRANGE field 'range' must be a string, got {type(raw_range).__name__}"
            raise InvalidRange(msg, path=spec.path)
        lower, upper, lower_inclusive, upper_inclusive = parse_range(raw_range, spec.path)
        return NumericRangeQuery(field_name, lower, upper, lower_inclusive, upper_inclusive)

    def _build_geo(self, spec: QuerySpec) -> Query:
        return compile_geo_query(
            get_double(spec.fields, "lat"),
            get_double(spec.fields, "lon"),
            get_double(spec.fields, "dist"),
            lat_key=self.settings.lat_key,
            lon_key=self.settings.lon_key,
            box_mode=self.settings.geo_box_mode,
        )

    # -- compound queries -----------------------------------------------------

    def _build_boolean(self, spec: QuerySpec) -> Query:
        raw_clauses = spec.items("clauses")
        if not raw_clauses:
            msg = "BOOL query needs a non-empty 'clauses' list"
            raise EmptySubqueryList(msg, path=spec.path)

        clauses = []
        for index, raw_clause in enumerate(raw_clauses):
            clause_path = spec.child_path("clauses", index)
            if not isinstance(raw_clause, Mapping):
                msg = f"BOOL clause must be a map, got {type(raw_clause).__name__}"
                raise MissingRequiredField(msg, path=clause_path)
            if raw_clause.get("query_spec") is None:
                msg = "BOOL clause is missing 'query_spec'"
                raise MissingRequiredField(msg, path=clause_path)
            query = self._compile_child(raw_clause["query_spec"], spec.child_path("clauses", index, ROOT_PATH))
            clauses.append(BooleanClause(query, self._occurs(raw_clause.get("occurs"), clause_path)))
        return BooleanQuery(tuple(clauses))

    def _occurs(self, raw: Any, path: str) -> Occurs:
        if raw is None:
            msg = "BOOL clause is missing 'occurs'"
            raise InvalidOccurs(msg, path=path)
        try:
            return Occurs(raw)
        except ValueError as exc:
            msg = f"Unrecognized occurs {raw!r}; expected one of {[occurs.value for occurs in Occurs]}"
            raise InvalidOccurs(msg, path=path) from exc

    def _build_dismax(self, spec: QuerySpec) -> Query:
        raw_subqueries = spec.items("subqueries")
        if not raw_subqueries:
            msg = "DISMAX query needs a non-empty 'subqueries' list"
            raise EmptySubqueryList(msg, path=spec.path)
        disjuncts = tuple(
            self._compile_child(raw, spec.child_path("subqueries", index)) for index, raw in enumerate(raw_subqueries)
        )
        return DisjunctionMaxQuery(disjuncts, tiebreaker=self._tiebreaker(spec))

    # -- optional parameters --------------------------------------------------

    def _warn_default(self, spec: QuerySpec, key: str, reason: object, default: object) -> None:
        self.diagnostics.warning(
            "%s: invalid %s (%s), using default %s",
            spec.path,
            key,
            reason,
            default,
            log=logger,
        )

    def _boost(self, spec: QuerySpec) -> float:
        if not spec.has("boost"):
            return DEFAULT_BOOST
        try:
            boost = as_double(spec.get("boost"))
        except CoercionError as exc:
            self._warn_default(spec, "boost", exc.message, DEFAULT_BOOST)
            return DEFAULT_BOOST
        if not math.isfinite(boost) or boost < 0:
            self._warn_default(spec, "boost", boost, DEFAULT_BOOST)
            return DEFAULT_BOOST
        return boost

    def _slop(self, spec: QuerySpec) -> int:
        if not spec.has("slop"):
            return DEFAULT_SLOP
        try:
            slop = as_int(spec.get("slop"), diagnostics=self.diagnostics)
        except CoercionError as exc:
            self._warn_default(spec, "slop", exc.message, DEFAULT_SLOP)
            return DEFAULT_SLOP
        if slop < 0:
            self._warn_default(spec, "slop", slop, DEFAULT_SLOP)
            return DEFAULT_SLOP
        return slop

    def _tiebreaker(self, spec: QuerySpec) -> float:
        default = self.settings.default_tiebreaker
        if not spec.has("tiebreaker"):
            return default
        try:
            tiebreaker = as_float(spec.get("tiebreaker"), diagnostics=self.diagnostics)
        except CoercionError as exc:
            self._warn_default(spec, "tiebreaker", exc.message, default)
            return default
        if not 0.0 <= tiebreaker <= 1.0:
            self._warn_default(spec, "tiebreaker", tiebreaker, default)
            return default
        return tiebreaker


def compile_query(
    raw: Any,
    analyzer: TermTokenizer,
    *,
    settings: Settings | None = None,
    diagnostics: Diagnostics | None = None,
) -> Query:
    """Compile one raw spec tree into an executable query."""
    return QueryCompiler(analyzer, settings=settings, diagnostics=diagnostics).compile(raw)

"""Composable query algebra executed against an index reader.

Queries are immutable values. Executing one is a two step affair driven by
the index: first ``sum_of_squared_weights`` is collected over the whole tree
to derive a query norm, then ``score_docs`` is called with that norm and
returns the matching documents with their scores. Compound queries pass the
norm down multiplied by their own boost, so boosts compose multiplicatively.

Filters are the unscored counterpart: they only answer which documents
pass, and are combined with queries through :class:`FilteredQuery`.
"""

from __future__ import annotations

from abc import ABC, abstractmethod
from collections.abc import Mapping, Sequence
from dataclasses import dataclass, field, replace
from typing import Protocol, TypeVar

from specquery.search.phrase import phrase_freq
from specquery.search.similarity import coord, idf, tf
from specquery.spec import Occurs


Q = TypeVar("Q", bound="Query")


class IndexReader(Protocol):
    """Read side of an index as seen by queries and filters."""

    @property
    def num_docs(self) -> int:  # pragma: no cover - interface definition
        ...

    def doc_freq(self, field_name: str, term: str) -> int:  # pragma: no cover - interface definition
        ...

    def postings(self, field_name: str, term: str) -> Mapping[str, Sequence[int]]:  # pragma: no cover
        ...

    def norm(self, field_name: str, doc_id: str) -> float:  # pragma: no cover - interface definition
        ...

    def numeric_values(self, field_name: str) -> Mapping[str, float]:  # pragma: no cover - interface definition
        ...


def _boost_suffix(boost: float) -> str:
    return "" if boost == 1.0 else f"^{boost:g}"


class Query(ABC):
    """Base class of every executable query."""

    boost: float

    def with_boost(self: Q, boost: float) -> Q:
        """Return a copy of this query carrying ``boost``."""
        return replace(self, boost=boost)

    @abstractmethod
    def sum_of_squared_weights(self, reader: IndexReader) -> float:
        """Return this query's contribution to the query norm."""

    @abstractmethod
    def score_docs(self, reader: IndexReader, norm: float) -> dict[str, float]:
        """Return ``{doc_id: score}`` for every matching document."""


class Filter(ABC):
    """Unscored document predicate."""

    @abstractmethod
    def doc_ids(self, reader: IndexReader) -> set[str]:
        """Return the ids of documents passing this filter."""


@dataclass(frozen=True)
class TermQuery(Query):
    """Exact single-term match within one field."""

    field: str
    text: str
    boost: float = 1.0

    def _idf(self, reader: IndexReader) -> float:
        return idf(reader.doc_freq(self.field, self.text), reader.num_docs)

    def sum_of_squared_weights(self, reader: IndexReader) -> float:
        weight = self._idf(reader) * self.boost
        return weight * weight

    def score_docs(self, reader: IndexReader, norm: float) -> dict[str, float]:
        term_idf = self._idf(reader)
        value = term_idf * self.boost * norm * term_idf
        return {
            doc_id: tf(len(positions)) * value * reader.norm(self.field, doc_id)
            for doc_id, positions in reader.postings(self.field, self.text).items()
        }

    def __str__(self) -> str:
        return f"{self.field}:{self.text}{_boost_suffix(self.boost)}"


@dataclass(frozen=True)
class PhraseQuery(Query):
    """Ordered sequence of terms, optionally allowing ``slop`` displaced positions."""

    field: str
    terms: tuple[str, ...]
    slop: int = 0
    boost: float = 1.0

    def _idf(self, reader: IndexReader) -> float:
        return sum(idf(reader.doc_freq(self.field, term), reader.num_docs) for term in self.terms)

    def sum_of_squared_weights(self, reader: IndexReader) -> float:
        weight = self._idf(reader) * self.boost
        return weight * weight

    def score_docs(self, reader: IndexReader, norm: float) -> dict[str, float]:
        if not self.terms:
            return {}
        postings = [reader.postings(self.field, term) for term in self.terms]
        candidates = set(postings[0])
        for term_postings in postings[1:]:
            candidates &= set(term_postings)
        if not candidates:
            return {}

        phrase_idf = self._idf(reader)
        value = phrase_idf * self.boost * norm * phrase_idf
        scores: dict[str, float] = {}
        for doc_id in candidates:
            freq = phrase_freq([term_postings[doc_id] for term_postings in postings], self.slop)
            if freq > 0:
                scores[doc_id] = tf(freq) * value * reader.norm(self.field, doc_id)
        return scores

    def __str__(self) -> str:
        slop = f"~{self.slop}" if self.slop else ""
        return f'{self.field}:"{" ".join(self.terms)}"{slop}{_boost_suffix(self.boost)}'


@dataclass(frozen=True)
class BooleanClause:
    """A sub-query plus the way it combines with its siblings."""

    query: Query
    occurs: Occurs

    def __str__(self) -> str:
        prefix = {Occurs.MUST: "+", Occurs.MUST_NOT: "-", Occurs.SHOULD: ""}[self.occurs]
        inner = str(self.query)
        if isinstance(self.query, BooleanQuery):
            inner = f"({inner})"
        return f"{prefix}{inner}"


@dataclass(frozen=True)
class BooleanQuery(Query):
    """Boolean combination of clauses.

    Documents must match every MUST clause and no MUST_NOT clause. Without
    MUST clauses at least one SHOULD clause has to match. Scores are summed
    over the matching scoring clauses and scaled by the fraction of scoring
    clauses that matched.
    """

    clauses: tuple[BooleanClause, ...] = field(default_factory=tuple)
    boost: float = 1.0

    def _scoring_clauses(self) -> list[BooleanClause]:
        return [clause for clause in self.clauses if clause.occurs is not Occurs.MUST_NOT]

    def sum_of_squared_weights(self, reader: IndexReader) -> float:
        total = sum(clause.query.sum_of_squared_weights(reader) for clause in self._scoring_clauses())
        return total * self.boost * self.boost

    def score_docs(self, reader: IndexReader, norm: float) -> dict[str, float]:
        scoring = self._scoring_clauses()
        if not scoring:
            return {}

        sub_norm = norm * self.boost
        required: set[str] | None = None
        optional: set[str] = set()
        totals: dict[str, float] = {}
        overlap: dict[str, int] = {}
        for clause in scoring:
            matches = clause.query.score_docs(reader, sub_norm)
            if clause.occurs is Occurs.MUST:
                required = set(matches) if required is None else required & set(matches)
            else:
                optional |= set(matches)
            for doc_id, score in matches.items():
                totals[doc_id] = totals.get(doc_id, 0.0) + score
                overlap[doc_id] = overlap.get(doc_id, 0) + 1

        candidates = required if required is not None else optional
        for clause in self.clauses:
            if clause.occurs is Occurs.MUST_NOT and candidates:
                candidates = candidates - set(clause.query.score_docs(reader, sub_norm))

        return {doc_id: totals[doc_id] * coord(overlap[doc_id], len(scoring)) for doc_id in candidates}

    def __str__(self) -> str:
        return " ".join(str(clause) for clause in self.clauses) + _boost_suffix(self.boost)


@dataclass(frozen=True)
class DisjunctionMaxQuery(Query):
    """Scores each document by its best sub-query plus a share of the others."""

    disjuncts: tuple[Query, ...] = field(default_factory=tuple)
    tiebreaker: float = 0.1
    boost: float = 1.0

    def sum_of_squared_weights(self, reader: IndexReader) -> float:
        weights = [disjunct.sum_of_squared_weights(reader) for disjunct in self.disjuncts]
        if not weights:
            return 0.0
        best = max(weights)
        total = sum(weights)
        return ((total - best) * self.tiebreaker * self.tiebreaker + best) * self.boost * self.boost

    def score_docs(self, reader: IndexReader, norm: float) -> dict[str, float]:
        sub_norm = norm * self.boost
        per_doc: dict[str, list[float]] = {}
        for disjunct in self.disjuncts:
            for doc_id, score in disjunct.score_docs(reader, sub_norm).items():
                per_doc.setdefault(doc_id, []).append(score)
        scores: dict[str, float] = {}
        for doc_id, values in per_doc.items():
            best = max(values)
            scores[doc_id] = best + (sum(values) - best) * self.tiebreaker
        return scores

    def __str__(self) -> str:
        inner = " | ".join(str(disjunct) for disjunct in self.disjuncts)
        return f"({inner})~{self.tiebreaker:g}{_boost_suffix(self.boost)}"


def in_numeric_range(value: float, lower: float, upper: float, lower_inclusive: bool, upper_inclusive: bool) -> bool:
    above = value >= lower if lower_inclusive else value > lower
    below = value <= upper if upper_inclusive else value < upper
    return above and below


def _range_str(field_name: str, lower: float, upper: float, lower_inclusive: bool, upper_inclusive: bool) -> str:
    opening = "[" if lower_inclusive else "{"
    closing = "]" if upper_inclusive else "}"
    return f"{field_name}:{opening}{lower:g} TO {upper:g}{closing}"


@dataclass(frozen=True)
class NumericRangeFilter(Filter):
    """Passes documents whose numeric field value lies within the range."""

    field: str
    lower: float
    upper: float
    lower_inclusive: bool = True
    upper_inclusive: bool = True

    def doc_ids(self, reader: IndexReader) -> set[str]:
        return {
            doc_id
            for doc_id, value in reader.numeric_values(self.field).items()
            if in_numeric_range(value, self.lower, self.upper, self.lower_inclusive, self.upper_inclusive)
        }

    def __str__(self) -> str:
        return _range_str(self.field, self.lower, self.upper, self.lower_inclusive, self.upper_inclusive)


@dataclass(frozen=True)
class NumericRangeQuery(Query):
    """Constant-score match on a numeric field range."""

    field: str
    lower: float
    upper: float
    lower_inclusive: bool = True
    upper_inclusive: bool = True
    boost: float = 1.0

    def as_filter(self) -> NumericRangeFilter:
        return NumericRangeFilter(self.field, self.lower, self.upper, self.lower_inclusive, self.upper_inclusive)

    def sum_of_squared_weights(self, reader: IndexReader) -> float:
        return self.boost * self.boost

    def score_docs(self, reader: IndexReader, norm: float) -> dict[str, float]:
        score = self.boost * norm
        return {doc_id: score for doc_id in self.as_filter().doc_ids(reader)}

    def __str__(self) -> str:
        bounds = _range_str(self.field, self.lower, self.upper, self.lower_inclusive, self.upper_inclusive)
        return f"{bounds}{_boost_suffix(self.boost)}"


@dataclass(frozen=True)
class BooleanFilter(Filter):
    """Boolean composition of filters.

    SHOULD filters are OR'd together, the result is AND'ed with every MUST
    filter, and documents passing any MUST_NOT filter are removed.
    """

    must: tuple[Filter, ...] = field(default_factory=tuple)
    should: tuple[Filter, ...] = field(default_factory=tuple)
    must_not: tuple[Filter, ...] = field(default_factory=tuple)

    def doc_ids(self, reader: IndexReader) -> set[str]:
        result: set[str] | None = None
        if self.should:
            result = set()
            for should_filter in self.should:
                result |= should_filter.doc_ids(reader)
        for must_filter in self.must:
            passing = must_filter.doc_ids(reader)
            result = passing if result is None else result & passing
        if result is None:
            return set()
        for must_not_filter in self.must_not:
            result -= must_not_filter.doc_ids(reader)
        return result

    def __str__(self) -> str:
        parts = [f"+{f}" for f in self.must] + [str(f) for f in self.should] + [f"-{f}" for f in self.must_not]
        return "(" + " ".join(parts) + ")"


@dataclass(frozen=True)
class FilteredQuery(Query):
    """Restricts an inner query's matches to the documents a filter passes."""

    query: Query
    filter: Filter
    boost: float = 1.0

    def sum_of_squared_weights(self, reader: IndexReader) -> float:
        return self.query.sum_of_squared_weights(reader) * self.boost * self.boost

    def score_docs(self, reader: IndexReader, norm: float) -> dict[str, float]:
        matches = self.query.score_docs(reader, norm * self.boost)
        if not matches:
            return {}
        passing = self.filter.doc_ids(reader)
        return {doc_id: score for doc_id, score in matches.items() if doc_id in passing}

    def __str__(self) -> str:
        return f"filtered({self.query})->{self.filter}{_boost_suffix(self.boost)}"

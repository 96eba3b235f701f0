"""In-memory inverted and numeric index.

The index keeps, per field:

* ``postings`` - term -> doc id -> token positions for text values;
* ``field lengths`` - number of tokens a document holds in the field, used for
  the length norm;
* ``numeric values`` - doc id -> float for numeric values, consumed by range
  queries and filters.

Writes go through :meth:`InMemoryIndex.transaction`. Buffered writes are
validated when they are added and applied under the index lock when the
``with`` block exits cleanly, so concurrent readers observe either all of a
transaction's fields or none of them. A bare :meth:`InMemoryIndex.add_field`
is a single-write transaction.
"""

from __future__ import annotations

from collections import defaultdict
from collections.abc import Iterator, Mapping, MutableMapping, Sequence
from contextlib import contextmanager
from dataclasses import dataclass, field
import logging
import math
import numbers
import threading
from typing import Any

from specquery.errors import IndexWriteError
from specquery.search.analyzers import FieldAnalyzer, Token
from specquery.search.queries import Query
from specquery.search.similarity import length_norm, query_norm


logger = logging.getLogger(__name__)


@dataclass(frozen=True, slots=True)
class FieldWrite:
    """A validated write waiting to be applied."""

    doc_id: str
    field_name: str
    tokens: tuple[Token, ...] = ()
    numeric: float | None = None


@dataclass
class IndexTransaction:
    """Buffer of field writes applied atomically on commit."""

    index: InMemoryIndex
    writes: list[FieldWrite] = field(default_factory=list)

    def add_field(self, doc_id: str, field_name: str, value: Any) -> None:
        self.writes.append(self.index.prepare_write(doc_id, field_name, value))


class InMemoryIndex:
    """Named index holding analyzed text postings and numeric field values."""

    def __init__(self, name: str, analyzer: FieldAnalyzer) -> None:
        self.name = name
        self.analyzer = analyzer
        self._lock = threading.RLock()
        self._postings: MutableMapping[str, MutableMapping[str, MutableMapping[str, list[int]]]] = defaultdict(
            lambda: defaultdict(dict)
        )
        self._field_lengths: MutableMapping[str, MutableMapping[str, int]] = defaultdict(dict)
        self._numeric: MutableMapping[str, MutableMapping[str, float]] = defaultdict(dict)
        self._doc_order: dict[str, int] = {}

    # -- writes -------------------------------------------------------------

    def prepare_write(self, doc_id: str, field_name: str, value: Any) -> FieldWrite:
        """Validate and analyze a value without touching index state."""
        if not doc_id:
            msg = f"Index '{self.name}': document id cannot be empty"
            raise IndexWriteError(msg)
        if not field_name:
            msg = f"Index '{self.name}': field name cannot be empty"
            raise IndexWriteError(msg)
        if isinstance(value, str):
            return FieldWrite(doc_id, field_name, tokens=tuple(self.analyzer.analyze(field_name, value)))
        if isinstance(value, numbers.Real) and not isinstance(value, bool):
            number = float(value)
            if math.isnan(number):
                msg = f"Index '{self.name}': NaN is not indexable in field '{field_name}'"
                raise IndexWriteError(msg)
            return FieldWrite(doc_id, field_name, numeric=number)
        msg = f"Index '{self.name}': can't index value of type {type(value).__name__} in field '{field_name}'"
        raise IndexWriteError(msg)

    @contextmanager
    def transaction(self) -> Iterator[IndexTransaction]:
        """Collect writes and apply them together.

        Nothing is applied when the block raises.
        """
        txn = IndexTransaction(self)
        yield txn
        self._commit(txn.writes)

    def add_field(self, doc_id: str, field_name: str, value: Any) -> None:
        with self.transaction() as txn:
            txn.add_field(doc_id, field_name, value)

    def _commit(self, writes: Sequence[FieldWrite]) -> None:
        if not writes:
            return
        with self._lock:
            for write in writes:
                self._apply(write)
        logger.debug("Index '%s' committed %d field write(s)", self.name, len(writes))

    def _apply(self, write: FieldWrite) -> None:
        self._doc_order.setdefault(write.doc_id, len(self._doc_order))
        if write.numeric is not None:
            self._numeric[write.field_name][write.doc_id] = write.numeric
            return
        # repeated text values of a field continue the same position sequence
        lengths = self._field_lengths[write.field_name]
        offset = lengths.get(write.doc_id, 0)
        terms = self._postings[write.field_name]
        for token in write.tokens:
            terms[token.text].setdefault(write.doc_id, []).append(offset + token.position)
        lengths[write.doc_id] = offset + len(write.tokens)

    # -- reads --------------------------------------------------------------

    @property
    def num_docs(self) -> int:
        return len(self._doc_order)

    def doc_ids(self) -> list[str]:
        with self._lock:
            return list(self._doc_order)

    def doc_freq(self, field_name: str, term: str) -> int:
        field_postings = self._postings.get(field_name)
        if field_postings is None:
            return 0
        return len(field_postings.get(term, {}))

    def postings(self, field_name: str, term: str) -> Mapping[str, Sequence[int]]:
        field_postings = self._postings.get(field_name)
        if field_postings is None:
            return {}
        return field_postings.get(term, {})

    def norm(self, field_name: str, doc_id: str) -> float:
        return length_norm(self._field_lengths.get(field_name, {}).get(doc_id, 0))

    def numeric_values(self, field_name: str) -> Mapping[str, float]:
        return self._numeric.get(field_name, {})

    def numeric_value(self, doc_id: str, field_name: str) -> float | None:
        return self._numeric.get(field_name, {}).get(doc_id)

    def execute(self, query: Query) -> list[tuple[str, float]]:
        """Run ``query`` and return ``(doc_id, score)`` pairs, best first.

        Equal scores keep the order in which documents were first indexed.
        """
        with self._lock:
            norm = query_norm(query.sum_of_squared_weights(self))
            scores = query.score_docs(self, norm)
            order = self._doc_order
            hits = sorted(scores.items(), key=lambda item: (-item[1], order.get(item[0], 0)))
        logger.debug("Index '%s' matched %d document(s) for %s", self.name, len(hits), query)
        return hits

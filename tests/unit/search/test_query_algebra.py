"""Unit tests for the query and filter algebra."""

import math

import pytest

from specquery.search.analyzers import FieldAnalyzer
from specquery.search.index import InMemoryIndex
from specquery.search.queries import (
    BooleanClause,
    BooleanFilter,
    BooleanQuery,
    DisjunctionMaxQuery,
    FilteredQuery,
    NumericRangeFilter,
    NumericRangeQuery,
    PhraseQuery,
    TermQuery,
    in_numeric_range,
)
from specquery.spec import Occurs


@pytest.fixture
def index() -> InMemoryIndex:
    index = InMemoryIndex("algebra", FieldAnalyzer.named("whitespace"))
    for doc_id, text, num in (("d1", "a b c", 5), ("d2", "a a", 10), ("d3", "c", 15)):
        with index.transaction() as txn:
            txn.add_field(doc_id, "text", text)
            txn.add_field(doc_id, "num", num)
    return index


def _ids(hits):
    return [doc_id for doc_id, _ in hits]


@pytest.mark.unit
class TestTermQuery:
    def test_scores_by_tf_idf_and_length(self, index):
        hits = index.execute(TermQuery("text", "a"))

        # idf = 1 + ln(3/3) = 1 and the query norm is 1, so score = tf * norm
        assert hits == [
            ("d2", pytest.approx(math.sqrt(2) * 0.6875)),
            ("d1", pytest.approx(0.5625)),
        ]

    def test_unknown_term_or_field(self, index):
        assert index.execute(TermQuery("text", "z")) == []
        assert index.execute(TermQuery("title", "a")) == []

    def test_boost_changes_weight_not_ranking(self, index):
        plain = index.execute(TermQuery("text", "a"))
        boosted = index.execute(TermQuery("text", "a", boost=3.0))

        assert _ids(boosted) == _ids(plain)
        assert [score for _, score in boosted] == pytest.approx([score for _, score in plain])

    def test_str(self):
        assert str(TermQuery("text", "Obama")) == "text:Obama"
        assert str(TermQuery("text", "Obama", boost=1.5)) == "text:Obama^1.5"


@pytest.mark.unit
class TestPhraseQuery:
    def test_matches_consecutive_terms(self, index):
        assert _ids(index.execute(PhraseQuery("text", ("a", "b")))) == ["d1"]
        assert index.execute(PhraseQuery("text", ("b", "a"))) == []

    def test_slop_allows_gap(self, index):
        assert index.execute(PhraseQuery("text", ("a", "c"))) == []
        assert _ids(index.execute(PhraseQuery("text", ("a", "c"), slop=1))) == ["d1"]

    def test_empty_phrase_matches_nothing(self, index):
        assert index.execute(PhraseQuery("text", ())) == []

    def test_str(self):
        assert str(PhraseQuery("text", ("Barack", "Obama"), slop=1)) == 'text:"Barack Obama"~1'


@pytest.mark.unit
class TestBooleanQuery:
    def test_must_and_must_not(self, index):
        query = BooleanQuery(
            (
                BooleanClause(TermQuery("text", "a"), Occurs.MUST),
                BooleanClause(TermQuery("text", "c"), Occurs.MUST_NOT),
            )
        )

        assert _ids(index.execute(query)) == ["d2"]

    def test_should_matches_any_and_rewards_overlap(self, index):
        a = TermQuery("text", "a")
        c = TermQuery("text", "c")
        query = BooleanQuery((BooleanClause(a, Occurs.SHOULD), BooleanClause(c, Occurs.SHOULD)))

        scores = query.score_docs(index, 1.0)

        assert set(scores) == {"d1", "d2", "d3"}
        separate_a = a.score_docs(index, 1.0)
        separate_c = c.score_docs(index, 1.0)
        assert scores["d1"] == pytest.approx(separate_a["d1"] + separate_c["d1"])
        assert scores["d2"] == pytest.approx(separate_a["d2"] / 2)

    def test_must_restricts_should(self, index):
        query = BooleanQuery(
            (
                BooleanClause(TermQuery("text", "c"), Occurs.MUST),
                BooleanClause(TermQuery("text", "a"), Occurs.SHOULD),
            )
        )

        assert set(_ids(index.execute(query))) == {"d1", "d3"}

    def test_only_prohibited_clauses_match_nothing(self, index):
        query = BooleanQuery((BooleanClause(TermQuery("text", "c"), Occurs.MUST_NOT),))

        assert index.execute(query) == []

    def test_sum_of_squared_weights_applies_boost(self, index):
        term = TermQuery("text", "c")
        query = BooleanQuery((BooleanClause(term, Occurs.SHOULD),), boost=2.0)

        assert query.sum_of_squared_weights(index) == pytest.approx(term.sum_of_squared_weights(index) * 4)

    def test_str(self):
        query = BooleanQuery(
            (
                BooleanClause(TermQuery("text", "a"), Occurs.MUST),
                BooleanClause(TermQuery("text", "b"), Occurs.SHOULD),
                BooleanClause(TermQuery("text", "c"), Occurs.MUST_NOT),
            )
        )

        assert str(query) == "+text:a text:b -text:c"


@pytest.mark.unit
class TestDisjunctionMaxQuery:
    def test_best_score_plus_tiebreaker_share(self, index):
        a = TermQuery("text", "a")
        b = TermQuery("text", "b")
        query = DisjunctionMaxQuery((a, b), tiebreaker=0.5)

        scores = query.score_docs(index, 1.0)
        score_a = a.score_docs(index, 1.0)["d1"]
        score_b = b.score_docs(index, 1.0)["d1"]

        assert scores["d1"] == pytest.approx(max(score_a, score_b) + 0.5 * min(score_a, score_b))
        assert scores["d2"] == pytest.approx(a.score_docs(index, 1.0)["d2"])
        assert "d3" not in scores

    def test_sum_of_squared_weights(self, index):
        a = TermQuery("text", "a")
        b = TermQuery("text", "b")
        weight_a = a.sum_of_squared_weights(index)
        weight_b = b.sum_of_squared_weights(index)
        query = DisjunctionMaxQuery((a, b), tiebreaker=0.1, boost=2.0)

        expected = (min(weight_a, weight_b) * 0.01 + max(weight_a, weight_b)) * 4
        assert query.sum_of_squared_weights(index) == pytest.approx(expected)


@pytest.mark.unit
class TestNumericRange:
    @pytest.mark.parametrize(
        ("lower_inclusive", "upper_inclusive", "expected"),
        [(True, True, ["d1", "d2"]), (False, True, ["d2"]), (True, False, ["d1"]), (False, False, [])],
    )
    def test_inclusivity(self, index, lower_inclusive, upper_inclusive, expected):
        query = NumericRangeQuery("num", 5, 10, lower_inclusive, upper_inclusive)

        assert _ids(index.execute(query)) == expected

    def test_constant_score_in_index_order(self, index):
        hits = index.execute(NumericRangeQuery("num", 0, 100, boost=4.0))

        assert hits == [("d1", 1.0), ("d2", 1.0), ("d3", 1.0)]

    def test_in_numeric_range(self):
        assert in_numeric_range(5.0, 5.0, 6.0, True, False)
        assert not in_numeric_range(6.0, 5.0, 6.0, True, False)

    def test_str(self):
        assert str(NumericRangeQuery("num", 10, 20, False, True)) == "num:{10 TO 20]"


@pytest.mark.unit
class TestFilters:
    def test_filtered_query_keeps_inner_scores(self, index):
        inner = TermQuery("text", "a")
        query = FilteredQuery(inner, NumericRangeFilter("num", 10, 20))

        hits = index.execute(query)

        assert _ids(hits) == ["d2"]
        assert hits[0][1] == pytest.approx(index.execute(inner)[0][1])

    def test_boolean_filter_composition(self, index):
        low = NumericRangeFilter("num", 0, 6)
        high = NumericRangeFilter("num", 14, 20)
        middle = NumericRangeFilter("num", 9, 11)

        assert BooleanFilter(should=(low, high)).doc_ids(index) == {"d1", "d3"}
        assert BooleanFilter(must=(NumericRangeFilter("num", 0, 20),), must_not=(middle,)).doc_ids(index) == {
            "d1",
            "d3",
        }
        assert BooleanFilter(must=(low,), should=(high, middle)).doc_ids(index) == set()
        assert BooleanFilter().doc_ids(index) == set()

    def test_with_boost_returns_copy(self):
        query = TermQuery("text", "a")

        boosted = query.with_boost(2.5)

        assert boosted.boost == 2.5
        assert query.boost == 1.0

"""End-to-end searches over the eight-document corpus.

Expected scores follow from the classic TF-IDF formula on this corpus
(eight documents, whitespace analysis, quantized length norms).
"""

import pytest
from starlette.testclient import TestClient

from specquery.app import create_app


NYC_RADIUS = {"lat": 40.7142, "lon": -74.0064, "dist": 300}


def term(query, **extra):
    return {"type": "TERM", "index_key": "text", "query": query, **extra}


def ranked(response):
    return [(result.entity_ref, result.score) for result in response.results]


def approx(value):
    return pytest.approx(value, abs=5e-4)


@pytest.fixture
def search(search_service):
    def run(query_spec, **params):
        return search_service.search({"index_name": "content", "query_spec": query_spec, **params})

    return run


@pytest.mark.integration
class TestCorpusSearches:
    def test_similarity(self, search):
        response = search({"type": "SIM", "index_key": "text", "query": "President Obama"})

        assert ranked(response) == [
            ("obama_president", approx(0.5983)),
            ("obama_baseball", approx(0.5983)),
            ("obama", approx(0.2527)),
            ("president", approx(0.1218)),
            ("romney", approx(0.0974)),
            ("romney_president", approx(0.0913)),
        ]

    def test_similarity_with_min_score(self, search):
        response = search({"type": "SIM", "index_key": "text", "query": "President Obama"}, min_score=0.1)

        assert [ref for ref, _ in ranked(response)] == ["obama_president", "obama_baseball", "obama", "president"]

    def test_boolean_must_and_should(self, search):
        spec = {
            "type": "BOOL",
            "clauses": [
                {"query_spec": term("President", boost=1.5), "occurs": "MUST"},
                {"query_spec": term("Obama"), "occurs": "SHOULD"},
            ],
        }

        response = search(spec, min_score=0.1)

        assert ranked(response) == [
            ("obama_president", approx(0.5862)),
            ("obama_baseball", approx(0.5862)),
            ("president", approx(0.1513)),
            ("romney", approx(0.1210)),
            ("romney_president", approx(0.1135)),
        ]

    def test_boolean_must_not(self, search):
        spec = {
            "type": "BOOL",
            "clauses": [
                {"query_spec": term("President"), "occurs": "MUST"},
                {"query_spec": term("Obama"), "occurs": "MUST_NOT"},
            ],
        }

        response = search(spec)

        assert [ref for ref, _ in ranked(response)] == ["president", "romney", "romney_president"]

    def test_boosted_phrase(self, search):
        response = search({"type": "PHRASE", "index_key": "text", "query": "Barack Obama", "boost": 1.5})

        assert ranked(response) == [("obama", approx(1.3777)), ("obama_president", approx(1.0333))]

    def test_sloppy_phrase(self, search):
        response = search({"type": "PHRASE", "index_key": "text", "query": "President Obama", "slop": 1})

        assert ranked(response) == [("obama_baseball", approx(0.8384)), ("obama_president", approx(0.5928))]

    def test_sloppy_phrase_does_not_reuse_a_single_occurrence(self, search):
        response = search({"type": "PHRASE", "index_key": "text", "query": "Obama Obama", "slop": 1})

        assert ranked(response) == []

    def test_exact_phrase_needs_adjacent_terms(self, search):
        response = search({"type": "PHRASE", "index_key": "text", "query": "President Obama"})

        assert [ref for ref, _ in ranked(response)] == ["obama_baseball"]

    def test_disjunction_max(self, search):
        spec = {
            "type": "DISMAX",
            "subqueries": [
                {"type": "SIM", "index_key": "text", "query": "Obama"},
                {"type": "SIM", "index_key": "text", "query": "Romney"},
            ],
        }

        response = search(spec, min_score=0.1)

        # "Romney's" is a different token, so romney_president does not match
        assert ranked(response) == [
            ("romney", approx(0.5951)),
            ("obama", approx(0.4494)),
            ("obama_president", approx(0.3370)),
            ("obama_baseball", approx(0.3370)),
        ]

    def test_term_with_search_radius(self, search):
        response = search(term("Obama"), min_score=0.1, **NYC_RADIUS)

        assert [ref for ref, _ in ranked(response)] == ["obama_president", "obama_baseball"]
        assert response.warnings == ["Coercing float to float! Loss of precision."]

    def test_geo_query(self, search):
        response = search({"type": "GEO", **NYC_RADIUS})

        assert ranked(response) == [("romney", 1.0), ("obama_president", 1.0), ("obama_baseball", 1.0)]

    def test_geo_within_boolean(self, search):
        spec = {
            "type": "BOOL",
            "clauses": [
                {"query_spec": term("President"), "occurs": "MUST"},
                {"query_spec": {"type": "GEO", **NYC_RADIUS}, "occurs": "MUST"},
            ],
        }

        response = search(spec)

        assert {ref for ref, _ in ranked(response)} == {"romney", "obama_president", "obama_baseball"}

    def test_nothing_matches(self, search):
        response = search({"type": "SIM", "index_key": "text", "query": "doesn't match anything."})

        assert response.results == []


@pytest.mark.integration
class TestCorpusOverHttp:
    @pytest.fixture
    def client(self, registry, entities, settings):
        return TestClient(create_app(registry, entities, settings))

    def test_similarity_round_trip(self, client):
        response = client.post(
            "/search",
            json={
                "index_name": "content",
                "query_spec": {"type": "SIM", "index_key": "text", "query": "President Obama"},
                "min_score": 0.1,
            },
        )

        assert response.status_code == 200
        body = response.json()
        assert [item["entity"] for item in body] == ["obama_president", "obama_baseball", "obama", "president"]
        assert body[0]["score"] == approx(0.5983)
        assert body[0]["properties"]["lat"] == 38.89

    def test_unknown_index(self, client):
        response = client.post("/search", json={"index_name": "missing", "query_spec": term("Obama")})

        assert response.status_code == 400
        assert response.json() == {"success": False, "message": "No index named 'missing'"}

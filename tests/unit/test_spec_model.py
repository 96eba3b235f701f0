"""Unit tests for the query spec model."""

import pytest

from specquery.errors import MissingRequiredField, MissingType, UnsupportedType
from specquery.spec import ROOT_PATH, Occurs, QuerySpec, QueryType


@pytest.mark.unit
class TestParse:
    """Parsing only resolves the type discriminator."""

    def test_resolves_type_and_keeps_fields(self):
        spec = QuerySpec.parse({"type": "TERM", "index_key": "text", "query": "Obama"})

        assert spec.type is QueryType.TERM
        assert spec.fields["query"] == "Obama"
        assert spec.path == ROOT_PATH

    def test_fields_are_read_only(self):
        spec = QuerySpec.parse({"type": "TERM"})

        with pytest.raises(TypeError):
            spec.fields["query"] = "x"  # type: ignore[index]

    def test_missing_type(self):
        with pytest.raises(MissingType) as excinfo:
            QuerySpec.parse({"index_key": "text"})

        assert excinfo.value.path == ROOT_PATH

    def test_null_type_is_missing(self):
        with pytest.raises(MissingType):
            QuerySpec.parse({"type": None})

    def test_non_mapping_is_missing_type(self):
        with pytest.raises(MissingType, match="must be a map"):
            QuerySpec.parse(["TERM"], "query_spec.subqueries[0]")

    @pytest.mark.parametrize("raw_type", ["FUZZY", "term", 7])
    def test_unsupported_type(self, raw_type):
        with pytest.raises(UnsupportedType):
            QuerySpec.parse({"type": raw_type})

    def test_does_not_validate_payload(self):
        spec = QuerySpec.parse({"type": "NUMRANGE"})

        assert spec.type is QueryType.NUMRANGE
        assert not spec.has("range")


@pytest.mark.unit
class TestAccessors:
    """Typed accessors used by the compiler."""

    def test_has_ignores_null_values(self):
        spec = QuerySpec.parse({"type": "PHRASE", "slop": None, "boost": 0})

        assert not spec.has("slop")
        assert spec.has("boost")

    def test_get_default(self):
        spec = QuerySpec.parse({"type": "DISMAX", "tiebreaker": None})

        assert spec.get("tiebreaker", 0.1) == 0.1

    def test_text_requires_string(self):
        spec = QuerySpec.parse({"type": "TERM", "index_key": 5}, "query_spec.clauses[0].query_spec")

        with pytest.raises(MissingRequiredField) as excinfo:
            spec.text("index_key")

        assert excinfo.value.path == "query_spec.clauses[0].query_spec"
        assert "index_key" in str(excinfo.value)

    def test_items_returns_list_or_none(self):
        spec = QuerySpec.parse({"type": "BOOL", "clauses": [{"x": 1}]})

        assert spec.items("clauses") == [{"x": 1}]
        assert spec.items("subqueries") is None

    @pytest.mark.parametrize("value", ["abc", {"a": 1}, 3])
    def test_items_rejects_non_lists(self, value):
        spec = QuerySpec.parse({"type": "BOOL", "clauses": value})

        with pytest.raises(MissingRequiredField):
            spec.items("clauses")

    def test_child_path(self):
        spec = QuerySpec.parse({"type": "BOOL"})

        assert spec.child_path("clauses", 1, "query_spec") == "query_spec.clauses[1].query_spec"
        assert spec.child_path("subqueries", 0) == "query_spec.subqueries[0]"


@pytest.mark.unit
def test_occurs_values():
    assert [occurs.value for occurs in Occurs] == ["MUST", "SHOULD", "MUST_NOT"]

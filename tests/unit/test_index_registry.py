"""Unit tests for the named index registry."""

import logging

import pytest

from specquery.errors import UnknownIndexError
from specquery.registry import IndexMetadata, IndexRegistry


@pytest.mark.unit
class TestIndexRegistry:
    def test_create_uses_default_analyzer(self):
        registry = IndexRegistry()

        index = registry.create("node_auto_index")

        assert registry.require("node_auto_index") is index
        assert index.analyzer.tokenize("text", "Barack Obama,") == ["Barack", "Obama,"]
        assert registry.get_metadata("node_auto_index") == IndexMetadata("node_auto_index", "whitespace", {})

    def test_explicit_and_per_field_analyzers(self):
        registry = IndexRegistry(default_analyzer="standard")

        index = registry.create("people", analyzer="Keyword", field_analyzers={"bio": "english"})

        assert index.analyzer.tokenize("name", "Barack Obama") == ["Barack Obama"]
        assert index.analyzer.tokenize("bio", "The State of the Union") == ["state", "union"]
        assert registry.get_metadata("people").as_dict() == {
            "name": "people",
            "analyzer": "keyword",
            "field_analyzers": {"bio": "english"},
        }

    def test_unknown_analyzer_falls_back_with_warning(self, caplog):
        registry = IndexRegistry()

        with caplog.at_level(logging.WARNING, logger="specquery.registry"):
            registry.create("people", analyzer="klingon")

        assert registry.get_metadata("people").analyzer == "whitespace"
        assert "klingon" in caplog.text

    def test_unknown_default_analyzer(self):
        with pytest.raises(ValueError, match="Unknown default analyzer"):
            IndexRegistry(default_analyzer="klingon")

    def test_require_unknown(self):
        with pytest.raises(UnknownIndexError, match="nope"):
            IndexRegistry().require("nope")

    def test_create_replaces_existing(self):
        registry = IndexRegistry()
        first = registry.create("people")
        first.add_field("obama", "text", "Obama")

        second = registry.create("people")

        assert registry.require("people") is second
        assert second.num_docs == 0
        assert len(registry) == 1

    def test_drop_and_listing(self):
        registry = IndexRegistry()
        registry.create("a")
        registry.create("b")

        assert registry.list_names() == ["a", "b"]
        assert registry.drop("a") is True
        assert registry.drop("a") is False
        assert "a" not in registry
        assert registry.get_index("a") is None
        assert registry.get_metadata("a") is None
        assert registry.list_names() == ["b"]

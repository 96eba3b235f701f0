"""Unit tests for the error hierarchy and the diagnostics sink."""

import logging

import pytest

from specquery.diagnostics import Diagnostics
from specquery.errors import (
    CoercionError,
    CoordinateOutOfRange,
    GeoValidationError,
    InvalidOccurs,
    QueryCompileError,
    SpecQueryError,
)


@pytest.mark.unit
class TestSpecQueryError:
    """Errors carry an optional location inside the spec tree."""

    def test_every_error_is_a_value_error(self):
        assert issubclass(SpecQueryError, ValueError)
        assert issubclass(InvalidOccurs, QueryCompileError)
        assert issubclass(CoordinateOutOfRange, GeoValidationError)

    def test_message_includes_path(self):
        error = InvalidOccurs("bad occurs", path="query_spec.clauses[0]")

        assert str(error) == "query_spec.clauses[0]: bad occurs"
        assert error.message == "bad occurs"

    def test_at_locates_a_copy(self):
        cause = ValueError("root cause")
        error = CoercionError("no lat")
        error.__cause__ = cause

        located = error.at("query_spec.subqueries[1]")

        assert type(located) is CoercionError
        assert located.path == "query_spec.subqueries[1]"
        assert located.__cause__ is cause
        assert error.path is None

    def test_at_keeps_existing_location(self):
        error = CoercionError("no lat", path="query_spec.clauses[2].query_spec")

        assert error.at("query_spec") is error


@pytest.mark.unit
class TestDiagnostics:
    """The sink records notes and forwards them to a logger."""

    def test_records_warnings_in_order(self):
        sink = Diagnostics()

        sink.warning("first %s", "note")
        sink.info("just info")
        sink.warning("second")

        assert sink.warnings == ["first note", "second"]
        assert len(sink) == 3
        assert [record.level_name for record in sink] == ["WARNING", "INFO", "WARNING"]

    def test_forwards_to_given_logger(self, caplog):
        sink = Diagnostics()
        log = logging.getLogger("specquery.tests")

        with caplog.at_level(logging.WARNING, logger="specquery.tests"):
            sink.warning("invalid boost", log=log)

        assert [record.name for record in caplog.records] == ["specquery.tests"]
        assert sink.records[0].source == "specquery.tests"

    def test_empty_sink_is_truthy(self):
        assert Diagnostics()

    def test_to_dict(self):
        sink = Diagnostics()
        sink.warning("dropped radius")

        assert sink.records[0].to_dict() == {
            "level": "WARNING",
            "message": "dropped radius",
            "source": "specquery.diagnostics",
        }

"""Query spec model.

A query spec is a nested mapping such as::

    {"type": "BOOL",
     "boost": 2,
     "clauses": [
        {"query_spec": {"type": "TERM", "index_key": "text", "query": "Obama"}, "occurs": "MUST"},
        {"query_spec": {"type": "GEO", "lat": 40.7, "lon": -74.0, "dist": 300}, "occurs": "SHOULD"}]}

Parsing only resolves the ``type`` discriminator. Every other field is read
lazily through the typed accessors below, and the compiler decides what is
required, what is optional and what a bad value means.
"""

from __future__ import annotations

from collections.abc import Mapping, Sequence
from dataclasses import dataclass, field
from enum import Enum
from types import MappingProxyType
from typing import Any

from specquery.errors import MissingRequiredField, MissingType, UnsupportedType


ROOT_PATH = "query_spec"


class QueryType(str, Enum):
    """Legal values of a spec's ``type`` key."""

    TERM = "TERM"
    PHRASE = "PHRASE"
    SIM = "SIM"
    NUMRANGE = "NUMRANGE"
    GEO = "GEO"
    BOOL = "BOOL"
    DISMAX = "DISMAX"


class Occurs(str, Enum):
    """How a BOOL clause combines with its siblings."""

    MUST = "MUST"
    SHOULD = "SHOULD"
    MUST_NOT = "MUST_NOT"


@dataclass(frozen=True)
class QuerySpec:
    """One node of a parsed query spec tree."""

    type: QueryType
    fields: Mapping[str, Any] = field(default_factory=lambda: MappingProxyType({}))
    path: str = ROOT_PATH

    @classmethod
    def parse(cls, raw: Any, path: str = ROOT_PATH) -> QuerySpec:
        """Resolve the ``type`` discriminator of ``raw``.

        Raises:
            MissingType: ``raw`` is not a mapping or has no ``type``.
            UnsupportedType: ``type`` is not one of :class:`QueryType`.
        """
        if not isinstance(raw, Mapping):
            msg = f"Query spec must be a map, got {type(raw).__name__}"
            raise MissingType(msg, path=path)
        raw_type = raw.get("type")
        if raw_type is None:
            msg = f"Query spec {dict(raw)} has no type"
            raise MissingType(msg, path=path)
        try:
            query_type = QueryType(raw_type)
        except ValueError as exc:
            msg = f"Unsupported query type: {raw_type!r}"
            raise UnsupportedType(msg, path=path) from exc
        return cls(type=query_type, fields=MappingProxyType(dict(raw)), path=path)

    def has(self, key: str) -> bool:
        """Return True when ``key`` is present with a non-null value."""
        return self.fields.get(key) is not None

    def get(self, key: str, default: Any = None) -> Any:
        value = self.fields.get(key)
        return default if value is None else value

    def text(self, key: str) -> str:
        """Return the required string at ``key``."""
        value = self.fields.get(key)
        if not isinstance(value, str):
            msg = f"{self.type.value} query is missing string field '{key}'"
            raise MissingRequiredField(msg, path=self.path)
        return value

    def items(self, key: str) -> Sequence[Any] | None:
        """Return the list at ``key``, or None when it is absent.

        Raises:
            MissingRequiredField: the value is present but not a list.
        """
        value = self.fields.get(key)
        if value is None:
            return None
        if isinstance(value, (str, bytes)) or not isinstance(value, Sequence):
            msg = f"{self.type.value} query field '{key}' must be a list, got {type(value).__name__}"
            raise MissingRequiredField(msg, path=self.path)
        return value

    def child_path(self, key: str, index: int | None = None, suffix: str | None = None) -> str:
        """Build the location string of a nested node."""
        location = f"{self.path}.{key}"
        if index is not None:
            location = f"{location}[{index}]"
        if suffix:
            location = f"{location}.{suffix}"
        return location

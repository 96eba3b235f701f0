"""Registry of named indexes served by the search endpoint."""

from collections.abc import Mapping
from dataclasses import dataclass, field
import logging
from typing import Any

from specquery.errors import UnknownIndexError
from specquery.search.analyzers import FieldAnalyzer, available_analyzers
from specquery.search.index import InMemoryIndex


logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class IndexMetadata:
    """How a registered index analyzes its text."""

    name: str
    """Name requests use to address the index."""

    analyzer: str
    """Analyzer applied to fields without their own."""

    field_analyzers: dict[str, str] = field(default_factory=dict)
    """Per-field analyzer overrides."""

    def as_dict(self) -> dict[str, Any]:
        return {
            "name": self.name,
            "analyzer": self.analyzer,
            "field_analyzers": dict(self.field_analyzers),
        }


class IndexRegistry:
    """Central registry of named indexes.

    Usage:
        registry = IndexRegistry(default_analyzer="whitespace")
        index = registry.create("node_auto_index")
        registry.require("node_auto_index").execute(query)
    """

    def __init__(self, default_analyzer: str = "whitespace") -> None:
        if default_analyzer.lower() not in available_analyzers():
            msg = f"Unknown default analyzer '{default_analyzer}'. Available: {available_analyzers()}"
            raise ValueError(msg)
        self.default_analyzer = default_analyzer.lower()
        self._indexes: dict[str, InMemoryIndex] = {}
        self._metadata: dict[str, IndexMetadata] = {}

    def _resolve_analyzer(self, index_name: str, name: str | None) -> str:
        if name is None:
            return self.default_analyzer
        if name.lower() not in available_analyzers():
            logger.warning(
                "Index '%s': unknown analyzer '%s', using '%s'",
                index_name,
                name,
                self.default_analyzer,
            )
            return self.default_analyzer
        return name.lower()

    def create(
        self,
        name: str,
        *,
        analyzer: str | None = None,
        field_analyzers: Mapping[str, str] | None = None,
    ) -> InMemoryIndex:
        """Create and register an empty index, replacing any index of the same name.

        Unknown analyzer names fall back to the registry default with a warning.
        """
        resolved = self._resolve_analyzer(name, analyzer)
        per_field = {
            field_name: self._resolve_analyzer(name, analyzer_name)
            for field_name, analyzer_name in (field_analyzers or {}).items()
        }
        index = InMemoryIndex(name, FieldAnalyzer.named(resolved, per_field))
        if name in self._indexes:
            logger.info("Replacing index '%s'", name)
        self._indexes[name] = index
        self._metadata[name] = IndexMetadata(name=name, analyzer=resolved, field_analyzers=per_field)
        return index

    def get_index(self, name: str) -> InMemoryIndex | None:
        return self._indexes.get(name)

    def require(self, name: str) -> InMemoryIndex:
        """Return the index called ``name``.

        Raises:
            UnknownIndexError: no index is registered under ``name``.
        """
        index = self._indexes.get(name)
        if index is None:
            msg = f"No index named '{name}'"
            raise UnknownIndexError(msg)
        return index

    def get_metadata(self, name: str) -> IndexMetadata | None:
        return self._metadata.get(name)

    def drop(self, name: str) -> bool:
        """Unregister an index.

        Returns:
            True if the index existed
        """
        self._metadata.pop(name, None)
        return self._indexes.pop(name, None) is not None

    def list_names(self) -> list[str]:
        return list(self._indexes.keys())

    def __len__(self) -> int:
        return len(self._indexes)

    def __contains__(self, name: str) -> bool:
        return name in self._indexes

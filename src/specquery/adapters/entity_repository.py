"""Entity property storage consulted when post-filtering search results."""

from abc import ABC, abstractmethod
from collections.abc import Mapping
import logging
import threading
from typing import Any


logger = logging.getLogger(__name__)


class AbstractEntityRepository(ABC):
    """Abstract repository for entity properties."""

    @abstractmethod
    def get_property(self, entity_ref: str, key: str) -> Any | None:
        """Return the stored value of ``key`` on ``entity_ref``, or None when absent."""
        raise NotImplementedError

    @abstractmethod
    def get_properties(self, entity_ref: str) -> dict[str, Any]:
        """Return a copy of every property stored on ``entity_ref``."""
        raise NotImplementedError

    @abstractmethod
    def set_properties(self, entity_ref: str, properties: Mapping[str, Any]) -> None:
        """Merge ``properties`` into the entity, creating it if needed."""
        raise NotImplementedError

    @abstractmethod
    def delete(self, entity_ref: str) -> bool:
        """Delete an entity.

        Returns:
            True if the entity was deleted, False if not found
        """
        raise NotImplementedError


class InMemoryEntityRepository(AbstractEntityRepository):
    """Dict-backed repository; property updates of one entity are atomic."""

    def __init__(self, entities: Mapping[str, Mapping[str, Any]] | None = None) -> None:
        self._lock = threading.Lock()
        self._entities: dict[str, dict[str, Any]] = {ref: dict(props) for ref, props in (entities or {}).items()}

    def get_property(self, entity_ref: str, key: str) -> Any | None:
        with self._lock:
            return self._entities.get(entity_ref, {}).get(key)

    def get_properties(self, entity_ref: str) -> dict[str, Any]:
        with self._lock:
            return dict(self._entities.get(entity_ref, {}))

    def set_properties(self, entity_ref: str, properties: Mapping[str, Any]) -> None:
        with self._lock:
            self._entities.setdefault(entity_ref, {}).update(properties)
        logger.debug("Stored %d propert(ies) on %s", len(properties), entity_ref)

    def delete(self, entity_ref: str) -> bool:
        with self._lock:
            return self._entities.pop(entity_ref, None) is not None

    def __contains__(self, entity_ref: object) -> bool:
        with self._lock:
            return entity_ref in self._entities

    def __len__(self) -> int:
        with self._lock:
            return len(self._entities)

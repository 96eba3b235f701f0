"""Adapters layer - entity storage behind a repository interface."""

from .entity_repository import AbstractEntityRepository, InMemoryEntityRepository


__all__ = [
    "AbstractEntityRepository",
    "InMemoryEntityRepository",
]

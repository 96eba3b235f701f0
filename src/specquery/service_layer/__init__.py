"""Service layer - search request orchestration."""

from .search_service import SearchResponse, SearchService


__all__ = [
    "SearchResponse",
    "SearchService",
]

"""Shared test fixtures and configuration."""

import pytest

from specquery.adapters.entity_repository import InMemoryEntityRepository
from specquery.config import Settings
from specquery.diagnostics import Diagnostics
from specquery.indexing import index_entity
from specquery.registry import IndexRegistry
from specquery.search.analyzers import FieldAnalyzer
from specquery.service_layer.search_service import SearchService


INDEX_NAME = "content"

HONOLULU = {"lat": 21.3069, "lon": -157.8583}
WASHINGTON = {"lat": 38.89, "lon": -77.03}
BOSTON = {"lat": 42.3583, "lon": -71.0603}
NEW_YORK = {"lat": 40.7142, "lon": -74.0064}

# Eight short texts sharing "President", "Obama", "Romney" and "baseball";
# the whitespace analyzer keeps case and punctuation attached to words.
CORPUS = {
    "baseball": {"text": "Baseball was once considered America's national pastime."},
    "president": {"text": "America elects a new President every four years, in November."},
    "obama": {"text": "Barack Obama was born in Honolulu, Hawaii.", **HONOLULU},
    "romney": {"text": "Mitt Romney ran for President of the United States of America in 2012", **BOSTON},
    "obama_president": {
        "text": "President Barack Obama gave the State of the Union address on Tuesday",
        **WASHINGTON,
    },
    "obama_baseball": {
        "text": "President Obama threw out the first pitch of the 2010 baseball season.",
        **WASHINGTON,
    },
    "mitt_baseball": {"text": "A baseball mitt is worn on a pitcher's off hand."},
    "romney_president": {
        "text": (
            "Romney's campaign for President suffered from his lack of a relatable image "
            "and his evident barking insanity."
        )
    },
}


@pytest.fixture
def settings() -> Settings:
    """Default settings, isolated from the developer's environment and .env file."""
    return Settings(_env_file=None)


@pytest.fixture
def diagnostics() -> Diagnostics:
    return Diagnostics()


@pytest.fixture
def whitespace_analyzer() -> FieldAnalyzer:
    return FieldAnalyzer.named("whitespace")


@pytest.fixture
def entities() -> InMemoryEntityRepository:
    return InMemoryEntityRepository()


@pytest.fixture
def registry(entities) -> IndexRegistry:
    """Registry holding the eight-document corpus under ``content``."""
    registry = IndexRegistry(default_analyzer="whitespace")
    index = registry.create(INDEX_NAME)
    for entity_ref, properties in CORPUS.items():
        index_entity(index, entity_ref, properties, entities=entities)
    return registry


@pytest.fixture
def content_index(registry):
    return registry.require(INDEX_NAME)


@pytest.fixture
def search_service(registry, entities, settings) -> SearchService:
    return SearchService(registry, entities, settings)

"""Transactional write helpers for numeric, geo and whole-entity indexing.

Each helper validates its input before anything is written and performs all
of its index writes in one transaction, so readers never observe half an
entity (in particular never a latitude without its longitude). When an entity
repository is passed, the indexed values are mirrored onto the entity as
properties after the index commit.
"""

from __future__ import annotations

from collections.abc import Mapping
import logging
from typing import Any

from specquery.adapters.entity_repository import AbstractEntityRepository
from specquery.coercion import as_double
from specquery.geo import Coordinate
from specquery.search.index import InMemoryIndex


logger = logging.getLogger(__name__)


def index_numeric(
    index: InMemoryIndex,
    entity_ref: str,
    key: str,
    value: Any,
    *,
    entities: AbstractEntityRepository | None = None,
) -> float:
    """Index ``value`` as a double under ``key``.

    Raises:
        CoercionError: ``value`` is not numeric.
    """
    number = as_double(value)
    with index.transaction() as txn:
        txn.add_field(entity_ref, key, number)
    if entities is not None:
        entities.set_properties(entity_ref, {key: number})
    return number


def index_geo(
    index: InMemoryIndex,
    entity_ref: str,
    lat: Any,
    lon: Any,
    *,
    lat_key: str = "lat",
    lon_key: str = "lon",
    entities: AbstractEntityRepository | None = None,
) -> Coordinate:
    """Index a coordinate pair atomically.

    Raises:
        CoercionError: ``lat`` or ``lon`` is not numeric.
        CoordinateOutOfRange: the pair is not a valid coordinate.
    """
    point = Coordinate(as_double(lat), as_double(lon))
    with index.transaction() as txn:
        txn.add_field(entity_ref, lat_key, point.lat)
        txn.add_field(entity_ref, lon_key, point.lon)
    if entities is not None:
        entities.set_properties(entity_ref, {lat_key: point.lat, lon_key: point.lon})
    logger.debug("Indexed %s at (%s, %s) in '%s'", entity_ref, point.lat, point.lon, index.name)
    return point


def index_entity(
    index: InMemoryIndex,
    entity_ref: str,
    properties: Mapping[str, Any],
    *,
    entities: AbstractEntityRepository | None = None,
) -> None:
    """Index every string and numeric property of an entity in one transaction.

    Raises:
        IndexWriteError: a property value is neither text nor a number.
    """
    with index.transaction() as txn:
        for key, value in properties.items():
            txn.add_field(entity_ref, key, value)
    if entities is not None:
        entities.set_properties(entity_ref, properties)

"""Post-filtering of raw index hits.

Hits below the minimum score are dropped first. The optional request-level
radius is applied afterwards and only to the survivors, using the coordinates
stored on each entity. An entity whose stored coordinates are missing or
invalid is kept with a warning instead of being rejected.
"""

from __future__ import annotations

from collections.abc import Iterable
from dataclasses import dataclass
import logging

from specquery.adapters.entity_repository import AbstractEntityRepository
from specquery.coercion import as_double
from specquery.diagnostics import Diagnostics
from specquery.errors import CoercionError, CoordinateOutOfRange
from specquery.geo import Coordinate, SearchRadius, in_radius
from specquery.observability.metrics import FILTERED_RESULTS


logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class ScoredResult:
    """An entity matched by a query, with its score."""

    entity_ref: str
    score: float


def _stored_coordinate(
    entities: AbstractEntityRepository,
    entity_ref: str,
    lat_key: str,
    lon_key: str,
    diagnostics: Diagnostics,
) -> Coordinate | None:
    raw_lat = entities.get_property(entity_ref, lat_key)
    raw_lon = entities.get_property(entity_ref, lon_key)
    if raw_lat is None or raw_lon is None:
        diagnostics.warning("%s has no stored coordinates, skipping radius check", entity_ref, log=logger)
        return None
    try:
        return Coordinate(as_double(raw_lat), as_double(raw_lon))
    except (CoercionError, CoordinateOutOfRange) as exc:
        diagnostics.warning("%s has invalid stored coordinates (%s), skipping radius check", entity_ref, exc, log=logger)
        return None


def filter_results(
    hits: Iterable[tuple[str, float]],
    *,
    min_score: float = 0.0,
    search_radius: SearchRadius | None = None,
    entities: AbstractEntityRepository | None = None,
    lat_key: str = "lat",
    lon_key: str = "lon",
    diagnostics: Diagnostics | None = None,
) -> list[ScoredResult]:
    """Apply the minimum score and optional radius to ``hits``, keeping their order.

    Raises:
        ValueError: a radius is given without an entity repository to read
            coordinates from.
    """
    if search_radius is not None and entities is None:
        msg = "Radius filtering needs an entity repository"
        raise ValueError(msg)
    sink = diagnostics if diagnostics is not None else Diagnostics()

    results: list[ScoredResult] = []
    for entity_ref, score in hits:
        if score < min_score:
            FILTERED_RESULTS.labels(reason="min_score").inc()
            continue
        if search_radius is not None:
            point = _stored_coordinate(entities, entity_ref, lat_key, lon_key, sink)  # type: ignore[arg-type]
            if point is not None and not in_radius(search_radius, point.lat, point.lon):
                FILTERED_RESULTS.labels(reason="radius").inc()
                continue
        results.append(ScoredResult(entity_ref, score))
    return results

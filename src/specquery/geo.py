"""Geospatial radius search on top of plain numeric range fields.

A radius search is compiled into two stages. A latitude/longitude bounding box
built from numeric range filters discards most documents cheaply, then an
exact haversine check runs only on the documents inside the box::

    FilteredQuery(
        NumericRangeQuery(lat in box),
        DistanceFilter(BooleanFilter(+lat in box +(lon range | lon range)), <= dist),
    )

The box is square in degrees by default (the longitude half width is not
widened with latitude), which oversizes it at moderate latitudes. Setting
``box_mode="corrected"`` divides the longitude half width by ``cos(lat)``.
Boxes that reach a pole cover every longitude; boxes that cross the
antimeridian are split into two longitude ranges.

:func:`in_radius` is the direct post-filter variant used for request-level
radius restrictions: no box, just the distance check.
"""

from __future__ import annotations

from collections.abc import Mapping
from dataclasses import dataclass
import logging
import math
from typing import Any, Literal

from specquery.coercion import get_double
from specquery.diagnostics import Diagnostics
from specquery.errors import CoercionError, CoordinateOutOfRange, GeoValidationError, NonPositiveDistance
from specquery.search.queries import (
    BooleanFilter,
    Filter,
    FilteredQuery,
    IndexReader,
    NumericRangeFilter,
    NumericRangeQuery,
)


logger = logging.getLogger(__name__)

EARTH_MEAN_RADIUS_MI = 3958.761

BoxMode = Literal["legacy", "corrected"]


@dataclass(frozen=True)
class Coordinate:
    """A point on the earth in decimal degrees."""

    lat: float
    lon: float

    def __post_init__(self) -> None:
        # written so that NaN fails both checks
        if not -90.0 <= self.lat <= 90.0:
            msg = f"Latitude {self.lat} is outside [-90, 90]"
            raise CoordinateOutOfRange(msg)
        if not -180.0 <= self.lon <= 180.0:
            msg = f"Longitude {self.lon} is outside [-180, 180]"
            raise CoordinateOutOfRange(msg)


@dataclass(frozen=True)
class SearchRadius:
    """A circle of ``dist`` miles around ``center``."""

    center: Coordinate
    dist: float

    def __post_init__(self) -> None:
        if not (self.dist > 0 and math.isfinite(self.dist)):
            msg = f"Search distance must be a positive number of miles, got {self.dist}"
            raise NonPositiveDistance(msg)

    @classmethod
    def of(cls, lat: float, lon: float, dist: float) -> SearchRadius:
        return cls(Coordinate(lat, lon), dist)

    def contains(self, lat: float, lon: float) -> bool:
        return haversine_miles(self.center.lat, self.center.lon, lat, lon) <= self.dist


@dataclass(frozen=True)
class BoundingBox:
    """Latitude interval plus one or two inclusive longitude intervals."""

    lat_min: float
    lat_max: float
    lon_ranges: tuple[tuple[float, float], ...]

    @property
    def crosses_antimeridian(self) -> bool:
        return len(self.lon_ranges) == 2

    def contains(self, lat: float, lon: float) -> bool:
        if not self.lat_min <= lat <= self.lat_max:
            return False
        return any(lon_min <= lon <= lon_max for lon_min, lon_max in self.lon_ranges)


def haversine_miles(lat1: float, lon1: float, lat2: float, lon2: float) -> float:
    """Great-circle distance in miles between two points on a spherical earth."""

    phi1 = math.radians(lat1)
    phi2 = math.radians(lat2)
    d_phi = math.radians(lat2 - lat1)
    d_lambda = math.radians(lon2 - lon1)
    a = math.sin(d_phi / 2) ** 2 + math.cos(phi1) * math.cos(phi2) * math.sin(d_lambda / 2) ** 2
    return 2 * EARTH_MEAN_RADIUS_MI * math.asin(min(1.0, math.sqrt(a)))


def bounding_box(radius: SearchRadius, box_mode: BoxMode = "legacy") -> BoundingBox:
    """Return the box that contains every point within ``radius``."""

    lat = radius.center.lat
    lon = radius.center.lon
    half_width = math.degrees(radius.dist / EARTH_MEAN_RADIUS_MI)

    lon_half_width = half_width
    if box_mode == "corrected":
        cos_lat = math.cos(math.radians(lat))
        lon_half_width = half_width / cos_lat if cos_lat > 1e-12 else math.inf

    lat_min = lat - half_width
    lat_max = lat + half_width
    touches_pole = lat_min < -90.0 or lat_max > 90.0
    lat_min = max(-90.0, lat_min)
    lat_max = min(90.0, lat_max)

    if touches_pole or lon_half_width >= 180.0:
        return BoundingBox(lat_min, lat_max, ((-180.0, 180.0),))

    lon_min = lon - lon_half_width
    lon_max = lon + lon_half_width
    if lon_min < -180.0:
        ranges = ((lon_min + 360.0, 180.0), (-180.0, lon_max))
    elif lon_max > 180.0:
        ranges = ((lon_min, 180.0), (-180.0, lon_max - 360.0))
    else:
        ranges = ((lon_min, lon_max),)
    return BoundingBox(lat_min, lat_max, ranges)


@dataclass(frozen=True)
class DistanceFilter(Filter):
    """Keeps documents passing ``start`` whose indexed point lies within ``radius``."""

    start: Filter
    radius: SearchRadius
    lat_key: str = "lat"
    lon_key: str = "lon"

    def doc_ids(self, reader: IndexReader) -> set[str]:
        lats = reader.numeric_values(self.lat_key)
        lons = reader.numeric_values(self.lon_key)
        passing: set[str] = set()
        for doc_id in self.start.doc_ids(reader):
            lat = lats.get(doc_id)
            lon = lons.get(doc_id)
            if lat is None or lon is None:
                continue
            if self.radius.contains(lat, lon):
                passing.add(doc_id)
        return passing

    def __str__(self) -> str:
        center = self.radius.center
        return f"distance({center.lat:g},{center.lon:g})<={self.radius.dist:g}mi{self.start}"


def box_filter(box: BoundingBox, *, lat_key: str = "lat", lon_key: str = "lon") -> BooleanFilter:
    """Express ``box`` as ``lat range AND (lon range OR lon range)``."""

    lat_filter = NumericRangeFilter(lat_key, box.lat_min, box.lat_max)
    lon_filters = tuple(NumericRangeFilter(lon_key, lon_min, lon_max) for lon_min, lon_max in box.lon_ranges)
    if len(lon_filters) == 1:
        return BooleanFilter(must=(lat_filter, lon_filters[0]))
    return BooleanFilter(must=(lat_filter, BooleanFilter(should=lon_filters)))


def compile_geo_query(
    lat: float,
    lon: float,
    dist: float,
    *,
    lat_key: str = "lat",
    lon_key: str = "lon",
    box_mode: BoxMode = "legacy",
) -> FilteredQuery:
    """Compile a radius search into a range query filtered by box and distance.

    Raises:
        CoordinateOutOfRange: ``lat``/``lon`` outside their valid ranges.
        NonPositiveDistance: ``dist`` is not a positive finite number.
    """

    radius = SearchRadius.of(lat, lon, dist)
    box = bounding_box(radius, box_mode)
    logger.debug(
        "Geo box for (%s, %s) within %s mi: lat [%s, %s], lon %s",
        lat,
        lon,
        dist,
        box.lat_min,
        box.lat_max,
        box.lon_ranges,
    )
    distance = DistanceFilter(box_filter(box, lat_key=lat_key, lon_key=lon_key), radius, lat_key, lon_key)
    return FilteredQuery(NumericRangeQuery(lat_key, box.lat_min, box.lat_max), distance)


def in_radius(radius: SearchRadius, lat: float, lon: float) -> bool:
    """Return True when ``(lat, lon)`` is within ``radius``."""

    return radius.contains(lat, lon)


def parse_search_radius(
    params: Mapping[str, Any],
    *,
    diagnostics: Diagnostics | None = None,
) -> SearchRadius | None:
    """Read an optional ``lat``/``lon``/``dist`` restriction from request parameters.

    Returns None when no part of it is given. A restriction that is only
    partially given, non-numeric or out of range is dropped with a warning.
    """

    keys = ("lat", "lon", "dist")
    if all(params.get(key) is None for key in keys):
        return None
    try:
        return SearchRadius.of(get_double(params, "lat"), get_double(params, "lon"), get_double(params, "dist"))
    except (CoercionError, GeoValidationError) as exc:
        message = "Ignoring search radius: %s"
        if diagnostics is None:
            logger.warning(message, exc)
        else:
            diagnostics.warning(message, exc, log=logger)
        return None

"""Geodesic distance, bounding-box prefilters and ring predicates.

Distances are measured on the WGS84 ellipsoid. Polygon predicates use shapely
in plain lon/lat degree space on closed rings of ``(lon, lat)`` vertices.
"""

from __future__ import annotations

import math
from typing import Iterable, Sequence

from pyproj import Geod
from shapely.geometry import Point, Polygon
from shapely.prepared import PreparedGeometry, prep
from shapely.validation import explain_validity

from geo_registry.common.constants import METERS_PER_DEGREE
from geo_registry.common.errors import InvalidCoordinate, InvalidGeometry, InvalidInput
from geo_registry.spatial.models import BoundingBox, Coordinates

_GEOD = Geod(ellps="WGS84")
_EPS = 1e-12
# A degree of latitude is never shorter than ~110574 m, so widen the
# equatorial conversion slightly to keep the prefilter conservative.
_PREFILTER_SLACK = 1.01

Ring = Sequence[tuple[float, float]]


def _is_number(value: object) -> bool:
    return isinstance(value, (int, float)) and not isinstance(value, bool)


def validate_coordinates(lat: object, lon: object) -> Coordinates:
    if not _is_number(lat) or not _is_number(lon):
        raise InvalidInput("'lat' and 'lon' must be numbers")
    lat_f = float(lat)
    lon_f = float(lon)
    if math.isnan(lat_f) or math.isnan(lon_f) or not (-90 <= lat_f <= 90 and -180 <= lon_f <= 180):
        raise InvalidCoordinate(lat, lon)
    return Coordinates(lat=lat_f, lon=lon_f)


def meters_to_degrees(meters: float) -> float:
    return meters / METERS_PER_DEGREE


def distance_m(a: Coordinates, b: Coordinates) -> float:
    validate_coordinates(a.lat, a.lon)
    validate_coordinates(b.lat, b.lon)
    _az12, _az21, dist = _GEOD.inv(a.lon, a.lat, b.lon, b.lat)
    return float(dist)


def bounding_box(center: Coordinates, radius_m: float) -> BoundingBox:
    """Degree-space box guaranteed to hold every point within ``radius_m``."""
    validate_coordinates(center.lat, center.lon)
    dlat = meters_to_degrees(radius_m) * _PREFILTER_SLACK
    min_lat = max(-90.0, center.lat - dlat)
    max_lat = min(90.0, center.lat + dlat)

    extreme_lat = max(abs(min_lat), abs(max_lat))
    cos_lat = math.cos(math.radians(extreme_lat))
    if cos_lat <= _EPS:
        return BoundingBox(min_lat=min_lat, min_lon=-180.0, max_lat=max_lat, max_lon=180.0)

    dlon = dlat / cos_lat
    min_lon = center.lon - dlon
    max_lon = center.lon + dlon
    if dlon >= 180.0 or min_lon < -180.0 or max_lon > 180.0:
        # Crossing the antimeridian: give up on longitude pruning.
        min_lon, max_lon = -180.0, 180.0
    return BoundingBox(min_lat=min_lat, min_lon=min_lon, max_lat=max_lat, max_lon=max_lon)


def ring_bounding_box(polygon: Ring) -> BoundingBox:
    lons = [lon for lon, _lat in polygon]
    lats = [lat for _lon, lat in polygon]
    return BoundingBox(min_lat=min(lats), min_lon=min(lons), max_lat=max(lats), max_lon=max(lons))


def centroid(points: Iterable[Coordinates]) -> Coordinates:
    pts = list(points)
    if not pts:
        raise InvalidGeometry("Cannot compute the centroid of an empty point set")
    return Coordinates(
        lat=sum(p.lat for p in pts) / len(pts),
        lon=sum(p.lon for p in pts) / len(pts),
    )


def _check_closed(polygon: Ring) -> None:
    if len(polygon) < 4:
        raise InvalidGeometry("Polygon must have at least 4 coordinate pairs (closed ring)")
    if tuple(polygon[0]) != tuple(polygon[-1]):
        raise InvalidGeometry("Polygon must be closed (first and last coordinate must match)")


def validate_ring(polygon: Ring) -> Polygon:
    """Reject unclosed, degenerate or self-intersecting rings."""
    _check_closed(polygon)
    for lon, lat in polygon:
        try:
            validate_coordinates(lat, lon)
        except (InvalidCoordinate, InvalidInput) as exc:
            raise InvalidGeometry(f"Polygon vertex is not a valid coordinate: [{lon}, {lat}]") from exc

    vertices = [tuple(v) for v in polygon[:-1]]
    if len(set(vertices)) < 3:
        raise InvalidGeometry("Polygon is degenerate (fewer than 3 distinct vertices)")
    for start, end in zip(polygon[:-1], polygon[1:]):
        # GEOS tolerates repeated points; a fence ring may not.
        if tuple(start) == tuple(end):
            raise InvalidGeometry("Polygon has a repeated consecutive vertex")

    shape = Polygon(polygon)
    if not shape.is_valid:
        raise InvalidGeometry(f"Polygon ring is invalid: {explain_validity(shape)}")
    if shape.area <= 0:
        raise InvalidGeometry("Polygon is degenerate (zero area)")
    return shape


def prepare_ring(polygon: Ring) -> PreparedGeometry:
    _check_closed(polygon)
    return prep(Polygon(polygon))


def covers_point(shape: PreparedGeometry, point: Coordinates) -> bool:
    validate_coordinates(point.lat, point.lon)
    return bool(shape.covers(Point(point.lon, point.lat)))


def contains_point(polygon: Ring, point: Coordinates) -> bool:
    """Covers test: boundary points count as inside."""
    shape = prepare_ring(polygon)
    return covers_point(shape, point)

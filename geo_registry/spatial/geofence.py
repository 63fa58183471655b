"""Geofence creation, containment checks and registry intersection."""

from __future__ import annotations

from itertools import islice
from typing import Any, Mapping, Sequence

from shapely.prepared import PreparedGeometry

from geo_registry.common.config_loader import Limits, QueryDefaults
from geo_registry.common.errors import InvalidInput, NotFound
from geo_registry.spatial.geomath import (
    covers_point,
    prepare_ring,
    ring_bounding_box,
    validate_coordinates,
    validate_ring,
)
from geo_registry.spatial.models import BoundingBox, Coordinates, Geofence, GeoRecord
from geo_registry.spatial.registry import SpatialRegistry


def _coerce_ring(polygon: object) -> tuple[tuple[float, float], ...]:
    if isinstance(polygon, (str, bytes)) or not isinstance(polygon, Sequence):
        raise InvalidInput("'polygon' must be a list of [lon, lat] pairs")
    ring = []
    for vertex in polygon:
        if isinstance(vertex, (str, bytes)) or not isinstance(vertex, Sequence) or len(vertex) != 2:
            raise InvalidInput("'polygon' must be a list of [lon, lat] pairs")
        lon, lat = vertex
        if any(isinstance(v, bool) or not isinstance(v, (int, float)) for v in (lon, lat)):
            raise InvalidInput("'polygon' coordinates must be numbers")
        ring.append((float(lon), float(lat)))
    return tuple(ring)


class GeofenceManager:
    def __init__(
        self,
        registry: SpatialRegistry,
        *,
        limits: Limits | None = None,
        defaults: QueryDefaults | None = None,
    ) -> None:
        self.registry = registry
        self.limits = limits or Limits()
        self.defaults = defaults or QueryDefaults()
        self._extents: dict[str, BoundingBox] = {}
        self._shapes: dict[str, PreparedGeometry] = {}

    def _extent(self, fence: Geofence) -> BoundingBox:
        extent = self._extents.get(fence.id)
        if extent is None:
            extent = ring_bounding_box(fence.polygon)
            self._extents[fence.id] = extent
        return extent

    def _shape(self, fence: Geofence) -> PreparedGeometry:
        shape = self._shapes.get(fence.id)
        if shape is None:
            shape = prepare_ring(fence.polygon)
            self._shapes[fence.id] = shape
        return shape

    def create(
        self,
        name: str,
        polygon: Sequence[Sequence[float]],
        description: str | None = None,
        metadata: Mapping[str, Any] | None = None,
        owner_id: str | None = None,
    ) -> Geofence:
        if not isinstance(name, str) or not name.strip():
            raise InvalidInput("'name' is required")
        if metadata is not None and not isinstance(metadata, Mapping):
            raise InvalidInput("'metadata' must be a mapping")
        ring = _coerce_ring(polygon)
        validate_ring(ring)

        fence = Geofence(
            name=name,
            polygon=ring,
            description=description,
            metadata=dict(metadata or {}),
            owner_id=owner_id,
        )
        return self.registry.add_geofence(fence)

    def check(self, point: Coordinates) -> list[Geofence]:
        point = validate_coordinates(point.lat, point.lon)
        return [
            fence
            for fence in self.registry.snapshot().geofences
            if self._extent(fence).contains(point.lat, point.lon) and covers_point(self._shape(fence), point)
        ]

    def entries_within(self, fence_id: str, max_results: int | None = None) -> list[GeoRecord]:
        if not isinstance(fence_id, str) or not fence_id.strip():
            raise InvalidInput("'fence_id' is required")
        limit = self.defaults.entries_max_results if max_results is None else max_results
        if isinstance(limit, bool) or not isinstance(limit, int) or not 1 <= limit <= self.limits.max_entries_results:
            raise InvalidInput(f"'max_results' must be between 1 and {self.limits.max_entries_results}")

        fence = self.registry.get_geofence(fence_id)
        if fence is None:
            raise NotFound(f"Geofence not found: {fence_id}")

        shape = self._shape(fence)
        matches = self.registry.snapshot().query(
            predicate=lambda record: covers_point(shape, record.coordinates),
            bbox=self._extent(fence),
        )
        return list(islice(matches, limit))

    def list(self) -> list[Geofence]:
        fences = self.registry.geofences()
        ordered = sorted(enumerate(fences), key=lambda item: (item[1].created_at, item[0]), reverse=True)
        return [fence for _idx, fence in ordered]


def check_payload(fences: list[Geofence]) -> dict[str, Any]:
    return {"inside": bool(fences), "count": len(fences), "fences": [fence.to_dict() for fence in fences]}

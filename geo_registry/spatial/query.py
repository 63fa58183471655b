"""Radius search and density clustering over registry snapshots."""

from __future__ import annotations

import math
from collections import defaultdict, deque
from decimal import ROUND_HALF_UP, Decimal

from geo_registry.common.config_loader import Limits, QueryDefaults
from geo_registry.common.errors import InvalidInput
from geo_registry.spatial.geomath import bounding_box, centroid, distance_m, meters_to_degrees, validate_coordinates
from geo_registry.spatial.models import Cluster, Coordinates, GeoRecord, RadiusHit
from geo_registry.spatial.registry import RegistrySnapshot, SpatialRegistry

_NOISE = -1
# Smallest grid cell in degrees; keeps cell indices finite for tiny eps.
_MIN_CELL_DEG = 1e-9


def round2(value: float) -> float:
    return float(Decimal(repr(value)).quantize(Decimal("0.01"), rounding=ROUND_HALF_UP))


def _require_number(value: object, name: str) -> float:
    if isinstance(value, bool) or not isinstance(value, (int, float)) or math.isnan(value):
        raise InvalidInput(f"'{name}' must be a number")
    return float(value)


def _require_int(value: object, name: str) -> int:
    if isinstance(value, bool) or not isinstance(value, int):
        raise InvalidInput(f"'{name}' must be an integer")
    return value


def _within(snapshot: RegistrySnapshot, center: Coordinates, radius_m: float) -> list[tuple[float, int, GeoRecord]]:
    hits = []
    for position, record in snapshot.scan(bbox=bounding_box(center, radius_m)):
        dist = distance_m(center, record.coordinates)
        if dist <= radius_m:
            hits.append((dist, position, record))
    return hits


class SpatialQueryEngine:
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

    def radius_search(
        self,
        center: Coordinates,
        radius_m: float | None = None,
        max_results: int | None = None,
    ) -> list[RadiusHit]:
        center = validate_coordinates(center.lat, center.lon)
        radius = _require_number(self.defaults.search_radius_m if radius_m is None else radius_m, "radius_m")
        if not 0 < radius <= self.limits.max_search_radius_m:
            raise InvalidInput(
                f"'radius_m' must be greater than 0 and at most {self.limits.max_search_radius_m:g} meters"
            )
        limit = _require_int(self.defaults.search_max_results if max_results is None else max_results, "max_results")
        if not 1 <= limit <= self.limits.max_search_results:
            raise InvalidInput(f"'max_results' must be between 1 and {self.limits.max_search_results}")

        hits = _within(self.registry.snapshot(), center, radius)
        hits.sort(key=lambda hit: (hit[0], hit[1]))
        return [RadiusHit(record=record, distance_m=dist) for dist, _position, record in hits[:limit]]

    def cluster_by_density(
        self,
        center: Coordinates,
        radius_m: float | None = None,
        eps_m: float | None = None,
        min_points: int | None = None,
    ) -> list[Cluster]:
        center = validate_coordinates(center.lat, center.lon)
        radius = _require_number(self.defaults.cluster_radius_m if radius_m is None else radius_m, "radius_m")
        if not 0 < radius <= self.limits.max_cluster_radius_m:
            raise InvalidInput(
                f"'radius_m' must be greater than 0 and at most {self.limits.max_cluster_radius_m:g} meters"
            )
        eps = _require_number(self.defaults.cluster_eps_m if eps_m is None else eps_m, "cluster_distance_m")
        if not 0 < eps <= radius:
            raise InvalidInput("'cluster_distance_m' must be greater than 0 and at most radius_m")
        threshold = _require_int(self.defaults.cluster_min_points if min_points is None else min_points, "min_points")
        if threshold < 1:
            raise InvalidInput("'min_points' must be at least 1")

        hits = _within(self.registry.snapshot(), center, radius)
        hits.sort(key=lambda hit: hit[1])
        records = [record for _dist, _position, record in hits]
        labels = dbscan(
            [(record.coordinates.lon, record.coordinates.lat) for record in records],
            eps=meters_to_degrees(eps),
            min_points=threshold,
        )
        return _build_clusters(records, labels)


def dbscan(points: list[tuple[float, float]], *, eps: float, min_points: int) -> list[int]:
    """Label each point with a cluster number, or -1 for noise.

    Neighbourhoods are closed Euclidean discs of radius ``eps`` that include
    the point itself. Points are visited in list order, so labelling is
    deterministic for a given input order.
    """
    cells: dict[tuple[int, int], list[int]] = defaultdict(list)
    cell = max(eps, _MIN_CELL_DEG)

    def cell_of(point: tuple[float, float]) -> tuple[int, int]:
        return (math.floor(point[0] / cell), math.floor(point[1] / cell))

    for idx, point in enumerate(points):
        cells[cell_of(point)].append(idx)

    eps_sq = eps * eps

    def region(idx: int) -> list[int]:
        px, py = points[idx]
        cx, cy = cell_of(points[idx])
        found = []
        for dx in (-1, 0, 1):
            for dy in (-1, 0, 1):
                for other in cells.get((cx + dx, cy + dy), ()):
                    ox, oy = points[other]
                    if (ox - px) ** 2 + (oy - py) ** 2 <= eps_sq:
                        found.append(other)
        found.sort()
        return found

    labels: list[int | None] = [None] * len(points)
    next_label = 0
    for idx in range(len(points)):
        if labels[idx] is not None:
            continue
        neighbours = region(idx)
        if len(neighbours) < min_points:
            labels[idx] = _NOISE
            continue

        label = next_label
        next_label += 1
        labels[idx] = label
        seeds = deque(neighbours)
        while seeds:
            other = seeds.popleft()
            if labels[other] == _NOISE:
                labels[other] = label
                continue
            if labels[other] is not None:
                continue
            labels[other] = label
            other_neighbours = region(other)
            if len(other_neighbours) >= min_points:
                seeds.extend(other_neighbours)

    return [_NOISE if label is None else label for label in labels]


def _build_clusters(records: list[GeoRecord], labels: list[int]) -> list[Cluster]:
    members: dict[int, list[GeoRecord]] = defaultdict(list)
    first_seen: dict[int, int] = {}
    for idx, (record, label) in enumerate(zip(records, labels)):
        if label == _NOISE:
            continue
        members[label].append(record)
        first_seen.setdefault(label, idx)

    ordered = sorted(members, key=lambda label: (-len(members[label]), first_seen[label]))
    clusters = []
    for cluster_id, label in enumerate(ordered):
        group = members[label]
        clusters.append(
            Cluster(
                cluster_id=cluster_id,
                center=centroid(record.coordinates for record in group),
                point_count=len(group),
                member_addresses=tuple(record.raw_input for record in group),
                avg_confidence=round2(sum(record.confidence_score for record in group) / len(group)),
            )
        )
    return clusters

from __future__ import annotations

import pytest
from pyproj import Geod

from geo_registry.common.config_loader import Limits
from geo_registry.common.errors import CoordinateOutOfRange, InvalidInput
from geo_registry.spatial.models import Coordinates, GeoRecord, RadiusHit, StandardizedAddress
from geo_registry.spatial.query import SpatialQueryEngine, dbscan, round2
from geo_registry.spatial.registry import SpatialRegistry

GEOD = Geod(ellps="WGS84")
CENTER = Coordinates(47.9184, 106.9177)


def _record(raw: str, lat: float, lon: float, confidence: float = 0.5) -> GeoRecord:
    return GeoRecord(
        raw_input=raw,
        standardized_address=StandardizedAddress(formatted=raw),
        coordinates=Coordinates(lat, lon),
        source="test",
        confidence_score=confidence,
    )


def _at(raw: str, azimuth: float, meters: float) -> GeoRecord:
    lon, lat, _back = GEOD.fwd(CENTER.lon, CENTER.lat, azimuth, meters)
    return _record(raw, lat, lon)


@pytest.fixture
def registry() -> SpatialRegistry:
    return SpatialRegistry()


def test_radius_search_excludes_records_beyond_radius(registry):
    registry.insert(_at("4km", 45, 4000))
    registry.insert(_at("6km", 200, 6000))

    hits = SpatialQueryEngine(registry).radius_search(CENTER, 5000, 20)

    assert [hit.record.raw_input for hit in hits] == ["4km"]
    assert hits[0].distance_m == pytest.approx(4000, abs=0.01)


def test_radius_search_orders_by_distance_then_insertion(registry):
    registry.insert(_at("900", 10, 900))
    registry.insert(_at("100-first", 90, 100))
    registry.insert(_at("500", 180, 500))
    registry.insert(_at("100-second", 90, 100))

    hits = SpatialQueryEngine(registry).radius_search(CENTER, 1000, 3)

    assert [hit.record.raw_input for hit in hits] == ["100-first", "100-second", "500"]


def test_radius_search_uses_defaults(registry):
    registry.insert(_at("inside-default", 0, 999))
    registry.insert(_at("outside-default", 0, 1500))

    hits = SpatialQueryEngine(registry).radius_search(CENTER)

    assert [hit.record.raw_input for hit in hits] == ["inside-default"]


@pytest.mark.parametrize(
    "radius,max_results",
    [(0, 10), (-5, 10), (50001, 10), (1000, 0), (1000, 101), (True, 10), (1000, 2.5), ("1000", 10)],
)
def test_radius_search_rejects_bad_parameters(registry, radius, max_results):
    with pytest.raises(InvalidInput):
        SpatialQueryEngine(registry).radius_search(CENTER, radius, max_results)


def test_radius_search_rejects_out_of_range_center(registry):
    with pytest.raises(CoordinateOutOfRange):
        SpatialQueryEngine(registry).radius_search(Coordinates(91, 0), 1000, 10)


def test_radius_search_honours_configured_limits(registry):
    engine = SpatialQueryEngine(registry, limits=Limits(max_search_radius_m=2000.0))
    with pytest.raises(InvalidInput):
        engine.radius_search(CENTER, 2500, 10)


def test_radius_hit_serializes_rounded_distance():
    hit = RadiusHit(record=_record("x", 1, 1).with_identity(), distance_m=1234.5678)
    assert hit.to_dict()["distance_m"] == 1234.57


def _cluster_fixture(registry: SpatialRegistry) -> None:
    registry.insert(_record("a1", 47.9200, 106.92, 1.0))
    registry.insert(_record("b1", 47.9400, 106.92, 0.5))
    registry.insert(_record("a2", 47.9205, 106.92, 0.83))
    registry.insert(_record("lonely", 47.9000, 106.95, 0.17))
    registry.insert(_record("b2", 47.9405, 106.92, 0.5))
    registry.insert(_record("a3", 47.9210, 106.92, 0.5))


def test_clusters_are_ordered_by_size_with_noise_dropped(registry):
    _cluster_fixture(registry)

    clusters = SpatialQueryEngine(registry).cluster_by_density(Coordinates(47.92, 106.92), 5000, 500, 2)

    assert [cluster.point_count for cluster in clusters] == [3, 2]
    assert [cluster.cluster_id for cluster in clusters] == [0, 1]
    first = clusters[0]
    assert first.member_addresses == ("a1", "a2", "a3")
    assert first.center.lat == pytest.approx(47.9205)
    assert first.center.lon == pytest.approx(106.92)
    assert first.avg_confidence == 0.78
    assert clusters[1].member_addresses == ("b1", "b2")


def test_min_points_one_keeps_singletons(registry):
    _cluster_fixture(registry)

    clusters = SpatialQueryEngine(registry).cluster_by_density(Coordinates(47.92, 106.92), 5000, 500, 1)

    assert [cluster.point_count for cluster in clusters] == [3, 2, 1]
    assert clusters[2].member_addresses == ("lonely",)


def test_too_few_points_within_eps_yields_no_clusters(registry):
    registry.insert(_record("p1", 47.9200, 106.92))
    registry.insert(_record("p2", 47.9205, 106.92))

    clusters = SpatialQueryEngine(registry).cluster_by_density(Coordinates(47.92, 106.92), 5000, 500, 3)

    assert clusters == []


def test_clustering_ignores_records_outside_scope(registry):
    registry.insert(_record("near", 47.92, 106.92))
    registry.insert(_record("far", 48.5, 106.92))

    clusters = SpatialQueryEngine(registry).cluster_by_density(Coordinates(47.92, 106.92), 5000, 500, 1)

    assert [cluster.member_addresses for cluster in clusters] == [("near",)]


@pytest.mark.parametrize(
    "radius,eps,min_points",
    [(100001, 500, 1), (0, 500, 1), (5000, 0, 1), (5000, 6000, 1), (5000, 500, 0), (5000, 500, 1.5)],
)
def test_cluster_rejects_bad_parameters(registry, radius, eps, min_points):
    with pytest.raises(InvalidInput):
        SpatialQueryEngine(registry).cluster_by_density(CENTER, radius, eps, min_points)


def test_dbscan_reclaims_border_points():
    points = [(0.0, 0.0), (0.0, 0.5), (0.0, 1.0), (5.0, 5.0)]
    assert dbscan(points, eps=0.6, min_points=3) == [0, 0, 0, -1]
    assert dbscan(points, eps=0.6, min_points=2) == [0, 0, 0, -1]
    assert dbscan(points, eps=0.6, min_points=1) == [0, 0, 0, 1]


def test_dbscan_is_deterministic():
    points = [(x * 0.1, (x % 3) * 0.1) for x in range(30)]
    assert dbscan(points, eps=0.15, min_points=2) == dbscan(list(points), eps=0.15, min_points=2)


def test_round2_rounds_half_up():
    assert round2(0.125) == 0.13
    assert round2(0.7766666) == 0.78


@pytest.mark.parametrize("eps", [0.5, 1e-310, 5e-324])
def test_cluster_accepts_tiny_positive_eps(registry, eps):
    registry.insert(_record("a", CENTER.lat, CENTER.lon))
    registry.insert(_record("b", CENTER.lat, CENTER.lon))
    registry.insert(_at("100m", 45, 100))

    clusters = SpatialQueryEngine(registry).cluster_by_density(CENTER, 1000, eps, 2)

    assert [cluster.member_addresses for cluster in clusters] == [("a", "b")]


def test_dbscan_handles_underflowed_eps():
    assert dbscan([(106.9, 47.9), (106.9, 47.9), (106.91, 47.9)], eps=0.0, min_points=2) == [0, 0, -1]


def test_parameter_messages_describe_positive_bounds(registry):
    engine = SpatialQueryEngine(registry)
    with pytest.raises(InvalidInput, match="greater than 0 and at most 50000 meters"):
        engine.radius_search(CENTER, 0, 10)
    with pytest.raises(InvalidInput, match="greater than 0 and at most radius_m"):
        engine.cluster_by_density(CENTER, 1000, 2000, 1)

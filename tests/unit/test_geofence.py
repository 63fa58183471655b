from __future__ import annotations

import pytest

from geo_registry.common.errors import InvalidGeometry, InvalidInput, NotFound
from geo_registry.spatial.geofence import GeofenceManager, check_payload
from geo_registry.spatial.models import Coordinates, GeoRecord, StandardizedAddress
from geo_registry.spatial.registry import SpatialRegistry

SQUARE = [[106.9, 47.91], [106.93, 47.91], [106.93, 47.93], [106.9, 47.93], [106.9, 47.91]]


def _record(raw: str, lat: float, lon: float) -> GeoRecord:
    return GeoRecord(
        raw_input=raw,
        standardized_address=StandardizedAddress(formatted=raw),
        coordinates=Coordinates(lat, lon),
        source="test",
        confidence_score=0.5,
    )


@pytest.fixture
def registry() -> SpatialRegistry:
    return SpatialRegistry()


@pytest.fixture
def manager(registry) -> GeofenceManager:
    return GeofenceManager(registry)


def test_create_and_check_point_inside(manager):
    fence = manager.create("Central UB", SQUARE, description="downtown", metadata={"zone": "A"}, owner_id="user-1")

    assert fence.id is not None
    assert fence.polygon[0] == (106.9, 47.91)
    assert fence.owner_id == "user-1"

    matches = manager.check(Coordinates(47.92, 106.91))
    assert matches == [fence]
    assert check_payload(matches) == {"inside": True, "count": 1, "fences": [fence.to_dict()]}


def test_check_outside_and_on_boundary(manager):
    fence = manager.create("Central UB", SQUARE)

    assert manager.check(Coordinates(47.95, 106.91)) == []
    assert check_payload([]) == {"inside": False, "count": 0, "fences": []}
    assert manager.check(Coordinates(47.93, 106.92)) == [fence]


def test_check_returns_every_containing_fence(manager):
    outer = manager.create("outer", [[106.0, 47.0], [108.0, 47.0], [108.0, 49.0], [106.0, 49.0], [106.0, 47.0]])
    inner = manager.create("inner", SQUARE)

    assert manager.check(Coordinates(47.92, 106.91)) == [outer, inner]


@pytest.mark.parametrize(
    "polygon",
    [
        [[0, 0], [1, 1], [1, 0], [0, 1], [0, 0]],
        [[0, 0], [1, 0], [1, 1], [0, 1]],
        [[0, 0], [1, 0], [0, 0]],
        [[0, 0], [0, 95], [1, 95], [0, 0]],
    ],
)
def test_create_rejects_invalid_geometry(manager, registry, polygon):
    with pytest.raises(InvalidGeometry):
        manager.create("bad", polygon)
    assert registry.geofences() == ()


@pytest.mark.parametrize("polygon", ["not a polygon", [[0, 0, 0]], [[0, "x"]], None])
def test_create_rejects_malformed_polygon_input(manager, polygon):
    with pytest.raises(InvalidInput):
        manager.create("bad", polygon)


def test_create_requires_name_and_mapping_metadata(manager):
    with pytest.raises(InvalidInput):
        manager.create("  ", SQUARE)
    with pytest.raises(InvalidInput):
        manager.create("ok", SQUARE, metadata=["not", "a", "mapping"])


def test_entries_within_returns_contained_records_in_insertion_order(manager, registry):
    fence = manager.create("Central UB", SQUARE)
    registry.insert(_record("inside-1", 47.92, 106.91))
    registry.insert(_record("outside", 47.95, 106.91))
    registry.insert(_record("on-edge", 47.91, 106.92))
    registry.insert(_record("inside-2", 47.925, 106.925))

    records = manager.entries_within(fence.id)
    assert [record.raw_input for record in records] == ["inside-1", "on-edge", "inside-2"]

    limited = manager.entries_within(fence.id, max_results=2)
    assert [record.raw_input for record in limited] == ["inside-1", "on-edge"]


def test_entries_within_errors(manager):
    fence = manager.create("Central UB", SQUARE)

    with pytest.raises(NotFound):
        manager.entries_within("no-such-fence")
    with pytest.raises(InvalidInput):
        manager.entries_within("")
    with pytest.raises(InvalidInput):
        manager.entries_within(fence.id, max_results=501)
    with pytest.raises(InvalidInput):
        manager.entries_within(fence.id, max_results=0)


def test_list_returns_newest_first(manager):
    for name in ("a", "b", "c"):
        manager.create(name, SQUARE)

    assert [fence.name for fence in manager.list()] == ["c", "b", "a"]


def test_created_fence_metadata_cannot_be_changed_through_results(manager, registry):
    source = {"zone": "A", "tags": ["north"]}
    fence = manager.create("Central UB", SQUARE, metadata=source)
    source["zone"] = "changed"
    source["tags"].append("south")

    with pytest.raises(TypeError):
        fence.metadata["zone"] = "tampered"
    payload = fence.to_dict()
    payload["metadata"]["tags"].append("east")

    stored = manager.list()[0]
    assert stored.metadata == {"zone": "A", "tags": ["north"]}
    assert registry.get_geofence(fence.id).to_dict()["metadata"] == {"zone": "A", "tags": ["north"]}

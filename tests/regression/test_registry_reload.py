from __future__ import annotations

from pathlib import Path

import pytest

from geo_registry.common.rate_limit import NoopRateLimiter
from geo_registry.geocoding.orchestrator import GeocodingOrchestrator
from geo_registry.spatial.geofence import GeofenceManager
from geo_registry.spatial.models import Coordinates
from geo_registry.spatial.query import SpatialQueryEngine
from geo_registry.spatial.registry import SpatialRegistry
from geo_registry.store.jsonlines import JsonLinesRecordStore

TOWNS = {
    "Ulaanbaatar": (47.9185, 106.9176),
    "Zaisan": (47.8870, 106.9180),
    "Bayanzurkh": (47.9150, 106.9550),
    "Darkhan": (49.4867, 105.9228),
}


def _seed(root: Path, fake_provider, make_place) -> SpatialRegistry:
    for name, (lat, lon) in TOWNS.items():
        fake_provider.places[name] = [make_place(lat, lon, f"{name}, Mongolia", city=name, country="Mongolia")]
    registry = SpatialRegistry.from_store(JsonLinesRecordStore(root))
    orchestrator = GeocodingOrchestrator(fake_provider, registry, rate_limiter=NoopRateLimiter())
    orchestrator.batch_geocode(list(TOWNS), owner_id="user-1")
    GeofenceManager(registry).create(
        "Central UB",
        [[106.9, 47.91], [106.93, 47.91], [106.93, 47.93], [106.9, 47.93], [106.9, 47.91]],
    )
    return registry


@pytest.mark.regression
def test_reloaded_registry_matches_original(tmp_path: Path, fake_provider, make_place):
    root = tmp_path / "registry"
    original = _seed(root, fake_provider, make_place)

    reloaded = SpatialRegistry.from_store(JsonLinesRecordStore(root))

    assert list(reloaded.query()) == list(original.query())
    assert reloaded.geofences() == original.geofences()
    assert all(record.owner_id == "user-1" for record in reloaded.query())


@pytest.mark.regression
def test_query_outputs_are_stable_across_reload(tmp_path: Path, fake_provider, make_place):
    root = tmp_path / "registry"
    original = _seed(root, fake_provider, make_place)
    reloaded = SpatialRegistry.from_store(JsonLinesRecordStore(root))
    center = Coordinates(47.9184, 106.9177)

    def outputs(registry: SpatialRegistry) -> dict:
        queries = SpatialQueryEngine(registry)
        fences = GeofenceManager(registry)
        fence_id = registry.geofences()[0].id
        return {
            "nearby": [hit.to_dict() for hit in queries.radius_search(center, 5000, 20)],
            "clusters": [c.to_dict() for c in queries.cluster_by_density(center, 10000, 5000, 2)],
            "entries": [r.to_dict() for r in fences.entries_within(fence_id)],
        }

    first = outputs(original)
    assert first == outputs(reloaded)
    assert first == outputs(original)

    assert [hit["raw_input"] for hit in first["nearby"]] == ["Ulaanbaatar", "Bayanzurkh", "Zaisan"]
    assert [c["member_addresses"] for c in first["clusters"]] == [["Ulaanbaatar", "Zaisan", "Bayanzurkh"]]
    assert [r["raw_input"] for r in first["entries"]] == ["Ulaanbaatar"]

from __future__ import annotations

import logging
from pathlib import Path

import pytest

from geo_registry.common.errors import NoResultsFound
from geo_registry.geocoding.provider import ProviderPlace

REPO_ROOT = Path(__file__).resolve().parents[1]

FULL_COMPONENTS = {
    "house_number": "1",
    "road": "Sukhbaatar Square",
    "city": "Ulaanbaatar",
    "state": "Ulaanbaatar",
    "postcode": "14200",
    "country": "Mongolia",
    "country_code": "mn",
}


class FakeProvider:
    """Scripted provider: answers from dicts and records every call."""

    def __init__(self) -> None:
        self.places: dict[str, list[ProviderPlace]] = {}
        self.reverse_places: dict[tuple[float, float], ProviderPlace] = {}
        self.failures: dict[str, Exception] = {}
        self.search_calls: list[str] = []
        self.reverse_calls: list[tuple[float, float]] = []
        self.on_search = None

    def search(self, query: str) -> list[ProviderPlace]:
        self.search_calls.append(query)
        if self.on_search is not None:
            self.on_search(query)
        if query in self.failures:
            raise self.failures[query]
        return list(self.places.get(query, []))

    def reverse(self, lat: float, lon: float) -> ProviderPlace:
        self.reverse_calls.append((lat, lon))
        place = self.reverse_places.get((lat, lon))
        if place is None:
            raise NoResultsFound("No results found for the given coordinates")
        return place


def _make_place(lat: float, lon: float, display_name: str, **components) -> ProviderPlace:
    return ProviderPlace(lat=lat, lon=lon, display_name=display_name, address_components=components)


@pytest.fixture(autouse=True)
def _release_log_handlers():
    yield
    logger = logging.getLogger("geo_registry")
    for handler in list(logger.handlers):
        logger.removeHandler(handler)
        handler.close()


@pytest.fixture
def fake_provider() -> FakeProvider:
    return FakeProvider()


@pytest.fixture
def make_place():
    return _make_place


@pytest.fixture
def full_components() -> dict[str, str]:
    return dict(FULL_COMPONENTS)


@pytest.fixture
def config_dir() -> Path:
    return REPO_ROOT / "config"

"""Geocoding provider contract and the Nominatim adapter."""

from __future__ import annotations

from dataclasses import dataclass, field
from types import TracebackType
from typing import Any, Mapping, Protocol

from geo_registry.common.errors import NoResultsFound, ProviderUnavailable
from geo_registry.common.constants import USER_AGENT
from geo_registry.common.http import HttpClient, RetryConfig, TimeoutConfig

DEFAULT_NOMINATIM_URL = "https://nominatim.openstreetmap.org"


@dataclass(frozen=True)
class ProviderPlace:
    lat: float
    lon: float
    display_name: str
    address_components: Mapping[str, Any] = field(default_factory=dict)


class GeocodingProvider(Protocol):
    def search(self, query: str) -> list[ProviderPlace]:
        """Candidates for ``query``, best first. Empty when nothing matched."""
        ...

    def reverse(self, lat: float, lon: float) -> ProviderPlace:
        """The place at a point. Raises NoResultsFound when unresolvable."""
        ...


def _parse_place(item: object) -> ProviderPlace:
    if not isinstance(item, dict):
        raise ProviderUnavailable("Malformed geocoding candidate")
    try:
        lat = float(item["lat"])
        lon = float(item["lon"])
    except (KeyError, TypeError, ValueError) as exc:
        raise ProviderUnavailable("Geocoding candidate is missing usable coordinates") from exc
    if not (-90 <= lat <= 90 and -180 <= lon <= 180):
        raise ProviderUnavailable(f"Geocoding candidate has out-of-range coordinates: {lat}, {lon}")
    address = item.get("address") or {}
    if not isinstance(address, dict):
        address = {}
    return ProviderPlace(
        lat=lat,
        lon=lon,
        display_name=str(item.get("display_name") or ""),
        address_components=address,
    )


class NominatimProvider:
    def __init__(
        self,
        http_client: HttpClient | None = None,
        *,
        base_url: str = DEFAULT_NOMINATIM_URL,
        timeout: TimeoutConfig | None = None,
        retry: RetryConfig | None = None,
        user_agent: str = USER_AGENT,
        limit: int = 1,
    ) -> None:
        self.owns_client = http_client is None
        self.client = http_client or HttpClient(timeout=timeout, retry=retry, user_agent=user_agent)
        self.base_url = base_url.rstrip("/")
        self.timeout = timeout
        self.limit = limit

    def close(self) -> None:
        if self.owns_client:
            self.client.close()

    def __enter__(self) -> "NominatimProvider":
        return self

    def __exit__(
        self,
        exc_type: type[BaseException] | None,
        exc: BaseException | None,
        tb: TracebackType | None,
    ) -> None:
        self.close()

    def search(self, query: str) -> list[ProviderPlace]:
        payload = self.client.get_json(
            f"{self.base_url}/search",
            params={"q": query, "format": "json", "addressdetails": 1, "limit": self.limit},
            timeout=self.timeout,
        )
        if not isinstance(payload, list):
            raise ProviderUnavailable("Unexpected search payload from geocoding service")
        return [_parse_place(item) for item in payload]

    def reverse(self, lat: float, lon: float) -> ProviderPlace:
        payload = self.client.get_json(
            f"{self.base_url}/reverse",
            params={"lat": lat, "lon": lon, "format": "json", "addressdetails": 1},
            timeout=self.timeout,
        )
        if not isinstance(payload, dict):
            raise ProviderUnavailable("Unexpected reverse payload from geocoding service")
        if payload.get("error"):
            raise NoResultsFound("No results found for the given coordinates")
        return _parse_place(payload)

"""Turn provider address components into a standardized address."""

from __future__ import annotations

from typing import Any, Mapping

from geo_registry.spatial.models import StandardizedAddress

# Nominatim reports smaller settlements under these keys instead of "city".
CITY_FALLBACK_KEYS = ("city", "town", "village", "hamlet", "municipality")


def _clean(value: Any) -> str | None:
    if value is None:
        return None
    text = str(value).strip()
    return text or None


def _lookup_first(components: Mapping[str, Any], candidates: tuple[str, ...]) -> str | None:
    for key in candidates:
        value = _clean(components.get(key))
        if value is not None:
            return value
    return None


def clean_query(raw: str) -> str:
    return " ".join(raw.split())


def build_standardized_address(components: Mapping[str, Any] | None, formatted: str) -> StandardizedAddress:
    components = components or {}
    return StandardizedAddress(
        house_number=_clean(components.get("house_number")),
        road=_clean(components.get("road")),
        city=_lookup_first(components, CITY_FALLBACK_KEYS),
        state=_clean(components.get("state")),
        postcode=_clean(components.get("postcode")),
        country=_clean(components.get("country")),
        country_code=_clean(components.get("country_code")),
        formatted=formatted or "",
    )

"""Data models shared by the registry, query engine and geocoding orchestrator."""

from __future__ import annotations

import copy
from dataclasses import dataclass, field, replace
from datetime import datetime
from types import MappingProxyType
from typing import Any, Mapping

from geo_registry.common.ids import generate_record_id
from geo_registry.common.time_utils import parse_timestamp, to_iso, utc_now

ADDRESS_COMPONENTS = (
    "house_number",
    "road",
    "city",
    "state",
    "postcode",
    "country",
    "country_code",
)


@dataclass(frozen=True)
class Coordinates:
    lat: float
    lon: float

    def to_dict(self) -> dict[str, float]:
        return {"lat": self.lat, "lon": self.lon}


@dataclass(frozen=True)
class BoundingBox:
    min_lat: float
    min_lon: float
    max_lat: float
    max_lon: float

    def contains(self, lat: float, lon: float) -> bool:
        return self.min_lat <= lat <= self.max_lat and self.min_lon <= lon <= self.max_lon


@dataclass(frozen=True)
class StandardizedAddress:
    house_number: str | None = None
    road: str | None = None
    city: str | None = None
    state: str | None = None
    postcode: str | None = None
    country: str | None = None
    country_code: str | None = None
    formatted: str = ""

    def to_dict(self) -> dict[str, str | None]:
        out: dict[str, str | None] = {name: getattr(self, name) for name in ADDRESS_COMPONENTS}
        out["formatted"] = self.formatted
        return out

    @classmethod
    def from_dict(cls, payload: Mapping[str, Any] | None) -> "StandardizedAddress":
        payload = payload or {}
        values = {name: payload.get(name) for name in ADDRESS_COMPONENTS}
        return cls(**values, formatted=str(payload.get("formatted") or ""))


@dataclass(frozen=True)
class GeoRecord:
    raw_input: str
    standardized_address: StandardizedAddress
    coordinates: Coordinates
    source: str
    confidence_score: float
    owner_id: str | None = None
    id: str | None = None
    created_at: datetime | None = None

    def with_identity(self) -> "GeoRecord":
        """Return a copy with ``id`` and ``created_at`` filled in when absent."""
        if self.id is not None and self.created_at is not None:
            return self
        return replace(
            self,
            id=self.id or generate_record_id(),
            created_at=self.created_at or utc_now(),
        )

    def to_dict(self) -> dict[str, Any]:
        return {
            "id": self.id,
            "raw_input": self.raw_input,
            "standardized_address": self.standardized_address.to_dict(),
            "coordinates": self.coordinates.to_dict(),
            "source": self.source,
            "confidence_score": self.confidence_score,
            "owner_id": self.owner_id,
            "created_at": to_iso(self.created_at) if self.created_at else None,
        }

    @classmethod
    def from_dict(cls, payload: Mapping[str, Any]) -> "GeoRecord":
        coords = payload["coordinates"]
        created_at = payload.get("created_at")
        return cls(
            id=payload.get("id"),
            raw_input=str(payload.get("raw_input") or ""),
            standardized_address=StandardizedAddress.from_dict(payload.get("standardized_address")),
            coordinates=Coordinates(lat=float(coords["lat"]), lon=float(coords["lon"])),
            source=str(payload.get("source") or ""),
            confidence_score=float(payload.get("confidence_score") or 0.0),
            owner_id=payload.get("owner_id"),
            created_at=parse_timestamp(created_at) if created_at else None,
        )


@dataclass(frozen=True)
class Geofence:
    name: str
    polygon: tuple[tuple[float, float], ...]
    description: str | None = None
    metadata: Mapping[str, Any] = field(default_factory=dict)
    owner_id: str | None = None
    id: str | None = None
    created_at: datetime | None = None

    def __post_init__(self) -> None:
        # Fences are shared by every snapshot; metadata stays read-only.
        object.__setattr__(self, "metadata", MappingProxyType(copy.deepcopy(dict(self.metadata))))

    def with_identity(self) -> "Geofence":
        if self.id is not None and self.created_at is not None:
            return self
        return replace(
            self,
            id=self.id or generate_record_id(),
            created_at=self.created_at or utc_now(),
        )

    def to_dict(self) -> dict[str, Any]:
        return {
            "id": self.id,
            "name": self.name,
            "description": self.description,
            "polygon": [[lon, lat] for lon, lat in self.polygon],
            "metadata": copy.deepcopy(dict(self.metadata)),
            "owner_id": self.owner_id,
            "created_at": to_iso(self.created_at) if self.created_at else None,
        }

    @classmethod
    def from_dict(cls, payload: Mapping[str, Any]) -> "Geofence":
        created_at = payload.get("created_at")
        return cls(
            id=payload.get("id"),
            name=str(payload["name"]),
            description=payload.get("description"),
            polygon=tuple((float(lon), float(lat)) for lon, lat in payload["polygon"]),
            metadata=dict(payload.get("metadata") or {}),
            owner_id=payload.get("owner_id"),
            created_at=parse_timestamp(created_at) if created_at else None,
        )


@dataclass(frozen=True)
class RadiusHit:
    record: GeoRecord
    distance_m: float

    def to_dict(self) -> dict[str, Any]:
        out = self.record.to_dict()
        out["distance_m"] = round(self.distance_m, 2)
        return out


@dataclass(frozen=True)
class Cluster:
    cluster_id: int
    center: Coordinates
    point_count: int
    member_addresses: tuple[str, ...]
    avg_confidence: float

    def to_dict(self) -> dict[str, Any]:
        return {
            "cluster_id": self.cluster_id,
            "center": self.center.to_dict(),
            "point_count": self.point_count,
            "member_addresses": list(self.member_addresses),
            "avg_confidence": self.avg_confidence,
        }

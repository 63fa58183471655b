"""Record store contract backing the spatial registry."""

from __future__ import annotations

from typing import Iterable, Iterator, Protocol

from geo_registry.spatial.models import Geofence, GeoRecord


class RecordStore(Protocol):
    def insert_records(self, records: list[GeoRecord]) -> int:
        """Persist all of ``records`` or none of them."""
        ...

    def insert_geofence(self, fence: Geofence) -> None: ...

    def load_records(self) -> Iterator[GeoRecord]: ...

    def load_geofences(self) -> Iterator[Geofence]: ...


def ensure_identified(records: Iterable[GeoRecord]) -> list[GeoRecord]:
    out = list(records)
    missing = [record for record in out if record.id is None or record.created_at is None]
    if missing:
        raise ValueError("Records must carry an id and created_at before they are stored")
    return out

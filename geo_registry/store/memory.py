"""Process-local record store."""

from __future__ import annotations

from typing import Iterator

from geo_registry.common.errors import StorageFailure
from geo_registry.spatial.models import Geofence, GeoRecord
from geo_registry.store.base import ensure_identified


class MemoryRecordStore:
    def __init__(self) -> None:
        self.records: list[GeoRecord] = []
        self.geofences: list[Geofence] = []
        self.fail_writes = False
        self.write_calls = 0

    def _check_writable(self) -> None:
        self.write_calls += 1
        if self.fail_writes:
            raise StorageFailure("Record store rejected the write")

    def insert_records(self, records: list[GeoRecord]) -> int:
        self._check_writable()
        batch = ensure_identified(records)
        self.records.extend(batch)
        return len(batch)

    def insert_geofence(self, fence: Geofence) -> None:
        self._check_writable()
        self.geofences.append(fence)

    def load_records(self) -> Iterator[GeoRecord]:
        return iter(list(self.records))

    def load_geofences(self) -> Iterator[Geofence]:
        return iter(list(self.geofences))

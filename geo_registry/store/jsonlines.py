"""Append-only JSON-lines record store under a data directory."""

from __future__ import annotations

from pathlib import Path
from typing import Iterator

from geo_registry.common.errors import StorageFailure
from geo_registry.common.fs import append_jsonl, ensure_dir, iter_jsonl
from geo_registry.spatial.models import Geofence, GeoRecord
from geo_registry.store.base import ensure_identified

RECORDS_FILENAME = "records.jsonl"
GEOFENCES_FILENAME = "geofences.jsonl"


class JsonLinesRecordStore:
    def __init__(self, root: Path) -> None:
        self.root = root
        self.records_path = root / RECORDS_FILENAME
        self.geofences_path = root / GEOFENCES_FILENAME

    def insert_records(self, records: list[GeoRecord]) -> int:
        batch = ensure_identified(records)
        try:
            ensure_dir(self.root)
            return append_jsonl(self.records_path, [record.to_dict() for record in batch])
        except OSError as exc:
            raise StorageFailure(f"Failed to append records to {self.records_path}: {exc}") from exc

    def insert_geofence(self, fence: Geofence) -> None:
        try:
            ensure_dir(self.root)
            append_jsonl(self.geofences_path, [fence.to_dict()])
        except OSError as exc:
            raise StorageFailure(f"Failed to append geofence to {self.geofences_path}: {exc}") from exc

    def load_records(self) -> Iterator[GeoRecord]:
        for payload in iter_jsonl(self.records_path):
            yield GeoRecord.from_dict(payload)

    def load_geofences(self) -> Iterator[Geofence]:
        for payload in iter_jsonl(self.geofences_path):
            yield Geofence.from_dict(payload)

"""Registry CSV export."""

from __future__ import annotations

from pathlib import Path
from typing import Iterable

from geo_registry.common.fs import write_csv
from geo_registry.spatial.models import ADDRESS_COMPONENTS, GeoRecord

RECORD_HEADERS = [
    "id",
    "raw_input",
    *ADDRESS_COMPONENTS,
    "formatted",
    "lat",
    "lon",
    "source",
    "confidence_score",
    "owner_id",
    "created_at",
]


def _serialize_record(record: GeoRecord) -> dict:
    payload = record.to_dict()
    address = payload.pop("standardized_address")
    coordinates = payload.pop("coordinates")
    payload.update(address)
    payload.update(coordinates)

    out = {}
    for key in RECORD_HEADERS:
        value = payload.get(key)
        out[key] = "" if value is None else value
    return out


def write_records_csv(path: Path, records: Iterable[GeoRecord]) -> Path:
    """Write records in registry insertion order."""
    write_csv(path, RECORD_HEADERS, (_serialize_record(record) for record in records))
    return path

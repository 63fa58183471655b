"""Spatial registry: the canonical, indexed collection of records and geofences.

Records live in an append-only log. Writers are serialized by a lock; a
snapshot is just the log length captured under that lock, so readers never
observe records appended after their snapshot was taken.
"""

from __future__ import annotations

import logging
import math
import threading
from collections import defaultdict
from typing import Callable, Iterable, Iterator

from geo_registry.common.errors import InvalidInput, StorageFailure
from geo_registry.common.logging import component_logger, log_event
from geo_registry.spatial.models import BoundingBox, Geofence, GeoRecord
from geo_registry.store.base import RecordStore
from geo_registry.store.memory import MemoryRecordStore

Predicate = Callable[[GeoRecord], bool]

# Beyond this many grid cells a bbox lookup scans the log instead.
_MAX_CELLS_PER_LOOKUP = 4096


class _GridIndex:
    def __init__(self, cell_degrees: float) -> None:
        if cell_degrees <= 0:
            raise ValueError("cell_degrees must be positive")
        self.cell_degrees = cell_degrees
        self.cells: dict[tuple[int, int], list[int]] = defaultdict(list)

    def _cell(self, lat: float, lon: float) -> tuple[int, int]:
        return (math.floor(lat / self.cell_degrees), math.floor(lon / self.cell_degrees))

    def add(self, position: int, record: GeoRecord) -> None:
        self.cells[self._cell(record.coordinates.lat, record.coordinates.lon)].append(position)

    def candidate_positions(self, bbox: BoundingBox, size: int) -> list[int] | None:
        """Positions below ``size`` in cells touching ``bbox``; None means scan everything."""
        row_lo, col_lo = self._cell(bbox.min_lat, bbox.min_lon)
        row_hi, col_hi = self._cell(bbox.max_lat, bbox.max_lon)
        if (row_hi - row_lo + 1) * (col_hi - col_lo + 1) > _MAX_CELLS_PER_LOOKUP:
            return None

        positions: list[int] = []
        for row in range(row_lo, row_hi + 1):
            for col in range(col_lo, col_hi + 1):
                bucket = self.cells.get((row, col))
                if not bucket:
                    continue
                for position in bucket:
                    if position >= size:
                        break
                    positions.append(position)
        positions.sort()
        return positions


class RegistrySnapshot:
    """Read-only view of the registry as of the moment it was taken."""

    def __init__(
        self,
        log: list[GeoRecord],
        size: int,
        index: _GridIndex,
        geofences: tuple[Geofence, ...],
    ) -> None:
        self._log = log
        self._size = size
        self._index = index
        self.geofences = geofences

    def __len__(self) -> int:
        return self._size

    def scan(self, predicate: Predicate | None = None, bbox: BoundingBox | None = None) -> Iterator[tuple[int, GeoRecord]]:
        """Yield ``(insertion_position, record)`` pairs in insertion order."""
        positions: Iterable[int] | None = None
        if bbox is not None:
            positions = self._index.candidate_positions(bbox, self._size)
        if positions is None:
            positions = range(self._size)

        for position in positions:
            record = self._log[position]
            if bbox is not None and not bbox.contains(record.coordinates.lat, record.coordinates.lon):
                continue
            if predicate is not None and not predicate(record):
                continue
            yield position, record

    def query(self, predicate: Predicate | None = None, bbox: BoundingBox | None = None) -> Iterator[GeoRecord]:
        for _position, record in self.scan(predicate, bbox):
            yield record


class SpatialRegistry:
    def __init__(
        self,
        store: RecordStore | None = None,
        *,
        grid_cell_degrees: float = 0.1,
        logger: logging.Logger | None = None,
    ) -> None:
        self.store = store if store is not None else MemoryRecordStore()
        self.logger = logger or component_logger("registry")
        self._lock = threading.Lock()
        self._log: list[GeoRecord] = []
        self._ids: set[str] = set()
        self._index = _GridIndex(grid_cell_degrees)
        self._geofences: tuple[Geofence, ...] = ()
        self._geofences_by_id: dict[str, Geofence] = {}

    @classmethod
    def from_store(cls, store: RecordStore, **kwargs) -> "SpatialRegistry":
        registry = cls(store, **kwargs)
        registry._load()
        return registry

    def _load(self) -> None:
        with self._lock:
            for record in self.store.load_records():
                self._append(record.with_identity())
            fences = [fence.with_identity() for fence in self.store.load_geofences()]
            self._geofences = tuple(fences)
            self._geofences_by_id = {fence.id: fence for fence in fences}

    def __len__(self) -> int:
        return len(self._log)

    def _append(self, record: GeoRecord) -> None:
        position = len(self._log)
        self._log.append(record)
        self._ids.add(record.id)
        self._index.add(position, record)

    def _persist(self, operation: str, write: Callable[[], object], count: int) -> None:
        try:
            write()
        except StorageFailure as exc:
            log_event(
                self.logger,
                f"{operation} failed",
                level=logging.ERROR,
                component="registry",
                operation=operation,
                event="STORE_WRITE",
                status="error",
                items_in=count,
                error_code=exc.error_code,
            )
            raise
        except Exception as exc:
            log_event(
                self.logger,
                f"{operation} failed: {exc}",
                level=logging.ERROR,
                component="registry",
                operation=operation,
                event="STORE_WRITE",
                status="error",
                items_in=count,
                error_code=StorageFailure.error_code,
            )
            raise StorageFailure(f"{operation} failed: {exc}") from exc

    def _prepare(self, records: Iterable[GeoRecord]) -> list[GeoRecord]:
        prepared = [record.with_identity() for record in records]
        seen: set[str] = set()
        for record in prepared:
            if record.id in self._ids or record.id in seen:
                raise InvalidInput(f"Duplicate record id: {record.id}")
            seen.add(record.id)
        return prepared

    def insert(self, record: GeoRecord) -> GeoRecord:
        with self._lock:
            (prepared,) = self._prepare([record])
            self._persist("insert", lambda: self.store.insert_records([prepared]), 1)
            self._append(prepared)
        return prepared

    def insert_many(self, records: Iterable[GeoRecord]) -> int:
        with self._lock:
            prepared = self._prepare(records)
            if not prepared:
                return 0
            self._persist("insert_many", lambda: self.store.insert_records(prepared), len(prepared))
            for record in prepared:
                self._append(record)
        return len(prepared)

    def snapshot(self) -> RegistrySnapshot:
        with self._lock:
            size = len(self._log)
            geofences = self._geofences
        return RegistrySnapshot(self._log, size, self._index, geofences)

    def query(self, predicate: Predicate | None = None, bbox: BoundingBox | None = None) -> Iterator[GeoRecord]:
        return self.snapshot().query(predicate, bbox)

    def add_geofence(self, fence: Geofence) -> Geofence:
        with self._lock:
            prepared = fence.with_identity()
            if prepared.id in self._geofences_by_id:
                raise InvalidInput(f"Duplicate geofence id: {prepared.id}")
            self._persist("insert_geofence", lambda: self.store.insert_geofence(prepared), 1)
            self._geofences_by_id[prepared.id] = prepared
            self._geofences = self._geofences + (prepared,)
        return prepared

    def get_geofence(self, fence_id: str) -> Geofence | None:
        return self._geofences_by_id.get(fence_id)

    def geofences(self) -> tuple[Geofence, ...]:
        return self._geofences

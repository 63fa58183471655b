"""Batch geocoding result types."""

from __future__ import annotations

from dataclasses import dataclass
from typing import Any

from geo_registry.spatial.models import GeoRecord


@dataclass(frozen=True)
class BatchItemResult:
    address: Any
    status: str
    record: GeoRecord | None = None
    error: str | None = None
    error_code: str | None = None

    def to_dict(self) -> dict[str, Any]:
        out: dict[str, Any] = {"address": self.address, "status": self.status}
        if self.record is not None:
            out["data"] = self.record.to_dict()
        if self.error is not None:
            out["error"] = self.error
            out["error_code"] = self.error_code
        return out


@dataclass(frozen=True)
class BatchSummary:
    total: int
    succeeded: int
    not_found: int
    failed: int
    inserted: int
    cancelled: bool = False

    def to_dict(self) -> dict[str, Any]:
        return {
            "total": self.total,
            "succeeded": self.succeeded,
            "not_found": self.not_found,
            "failed": self.failed,
            "inserted": self.inserted,
            "cancelled": self.cancelled,
        }


@dataclass(frozen=True)
class BatchResult:
    items: tuple[BatchItemResult, ...]
    records: tuple[GeoRecord, ...]
    summary: BatchSummary

    @classmethod
    def build(
        cls,
        items: list[BatchItemResult],
        *,
        inserted: int = 0,
        cancelled: bool = False,
    ) -> "BatchResult":
        records = tuple(item.record for item in items if item.record is not None)
        summary = BatchSummary(
            total=len(items),
            succeeded=sum(1 for item in items if item.status == "success"),
            not_found=sum(1 for item in items if item.status == "not_found"),
            failed=sum(1 for item in items if item.status == "error"),
            inserted=inserted,
            cancelled=cancelled,
        )
        return cls(items=tuple(items), records=records, summary=summary)

    def with_inserted(self, inserted: int) -> "BatchResult":
        return BatchResult.build(list(self.items), inserted=inserted, cancelled=self.summary.cancelled)

    def to_dict(self) -> dict[str, Any]:
        return {
            "summary": self.summary.to_dict(),
            "results": [item.to_dict() for item in self.items],
        }

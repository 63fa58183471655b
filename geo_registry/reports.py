"""Batch run report."""

from __future__ import annotations

from pathlib import Path

from geo_registry.common.fs import write_json
from geo_registry.common.time_utils import utc_timestamp_iso
from geo_registry.geocoding.models import BatchResult


def _status(result: BatchResult) -> str:
    summary = result.summary
    if summary.cancelled or summary.failed > 0:
        return "error" if summary.succeeded == 0 else "partial"
    if summary.not_found > 0:
        return "partial"
    return "success"


def write_batch_report(data_dir: Path, run_id: str, result: BatchResult) -> Path:
    report_path = data_dir / "out" / "reports" / f"batch_{run_id}.json"
    error_counts: dict[str, int] = {}
    for item in result.items:
        if item.error_code is not None:
            error_counts[item.error_code] = error_counts.get(item.error_code, 0) + 1

    payload = {
        "run_id": run_id,
        "generated_at": utc_timestamp_iso(),
        "status": _status(result),
        "summary": result.summary.to_dict(),
        "error_counts": error_counts,
        "results": [item.to_dict() for item in result.items],
    }
    write_json(report_path, payload)
    return report_path

"""JSON logging with stable schema."""

from __future__ import annotations

import json
import logging
from pathlib import Path
from typing import Any

from geo_registry.common.constants import JSON_LOG_FIELDS
from geo_registry.common.fs import ensure_dir
from geo_registry.common.time_utils import utc_timestamp_iso

LOGGER_ROOT = "geo_registry"


class JsonLineFormatter(logging.Formatter):
    def format(self, record: logging.LogRecord) -> str:
        payload = {
            "timestamp": utc_timestamp_iso(),
            "run_id": getattr(record, "run_id", None),
            "component": getattr(record, "component", None),
            "operation": getattr(record, "operation", None),
            "event": getattr(record, "event", None),
            "status": getattr(record, "status", None),
            "attempt": getattr(record, "attempt", None),
            "duration_ms": getattr(record, "duration_ms", None),
            "items_in": getattr(record, "items_in", None),
            "items_out": getattr(record, "items_out", None),
            "error_code": getattr(record, "error_code", None),
            "message": record.getMessage(),
        }
        for field in JSON_LOG_FIELDS:
            payload.setdefault(field, None)
        return json.dumps(payload, ensure_ascii=False)


def component_logger(component: str) -> logging.Logger:
    return logging.getLogger(f"{LOGGER_ROOT}.{component}")


def build_logger(run_id: str, data_dir: Path, level: str = "INFO") -> logging.Logger:
    # Component loggers propagate here, so library log_event calls share the sinks.
    logger = logging.getLogger(LOGGER_ROOT)
    logger.setLevel(level.upper())
    for handler in list(logger.handlers):
        logger.removeHandler(handler)
        handler.close()

    stream = logging.StreamHandler()
    stream.setFormatter(JsonLineFormatter())
    logger.addHandler(stream)

    log_path = data_dir / "run_meta" / f"{run_id}.log.jsonl"
    ensure_dir(log_path.parent)
    file_handler = logging.FileHandler(log_path, encoding="utf-8")
    file_handler.setFormatter(JsonLineFormatter())
    logger.addHandler(file_handler)

    return logger


def log_event(logger: logging.Logger, message: str, *, level: int = logging.INFO, **event_fields: Any) -> None:
    logger.log(level, message, extra=event_fields)

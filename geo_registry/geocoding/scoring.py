"""Confidence scoring for standardized addresses."""

from __future__ import annotations

from typing import Any, Mapping

from geo_registry.common.constants import CONFIDENCE_FIELDS
from geo_registry.spatial.models import StandardizedAddress


def _filled(value: Any) -> bool:
    if value is None:
        return False
    return bool(str(value).strip())


def compute_confidence(address: StandardizedAddress | Mapping[str, Any]) -> float:
    """Fraction of the six scored address fields that are non-empty, to 2 decimals."""
    if isinstance(address, StandardizedAddress):
        values = [getattr(address, name) for name in CONFIDENCE_FIELDS]
    else:
        values = [address.get(name) for name in CONFIDENCE_FIELDS]
    filled = sum(1 for value in values if _filled(value))
    return round(filled / len(CONFIDENCE_FIELDS), 2)

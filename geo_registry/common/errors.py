"""Domain errors and failure typing."""

from __future__ import annotations

from typing import Any


class GeoRegistryError(Exception):
    """Base class for geo registry failures."""

    error_code = "GEO_REGISTRY_ERROR"

    @property
    def kind(self) -> str:
        return type(self).__name__

    def to_dict(self) -> dict[str, str]:
        return {"kind": self.kind, "error_code": self.error_code, "message": str(self)}


class ConfigError(GeoRegistryError):
    """Raised for invalid or missing configuration."""

    error_code = "CONFIG_ERROR"


class InvalidInput(GeoRegistryError):
    """Raised when a required field is missing or malformed."""

    error_code = "INVALID_INPUT"


class CoordinateOutOfRange(GeoRegistryError):
    """Raised when a latitude or longitude falls outside the WGS84 range."""

    error_code = "COORDINATE_OUT_OF_RANGE"

    def __init__(self, lat: Any, lon: Any):
        self.lat = lat
        self.lon = lon
        super().__init__(f"Coordinates out of range (lat: -90..90, lon: -180..180): lat={lat}, lon={lon}")


InvalidCoordinate = CoordinateOutOfRange


class InvalidGeometry(GeoRegistryError):
    """Raised when a polygon ring is unclosed, degenerate or self-intersecting."""

    error_code = "INVALID_GEOMETRY"


class NoResultsFound(GeoRegistryError):
    """The geocoding provider returned no candidate."""

    error_code = "NO_RESULTS_FOUND"


class NotFound(GeoRegistryError):
    """A referenced entity does not exist."""

    error_code = "NOT_FOUND"


class ProviderUnavailable(GeoRegistryError):
    """The external geocoding provider could not be reached or answered badly."""

    error_code = "PROVIDER_UNAVAILABLE"


class StorageFailure(GeoRegistryError):
    """Persistence failed after the computation succeeded.

    ``partial`` carries whatever was computed before the write failed so the
    caller can retry persistence without redoing the work.
    """

    error_code = "STORAGE_FAILURE"

    def __init__(self, message: str, *, partial: Any = None):
        self.partial = partial
        super().__init__(message)

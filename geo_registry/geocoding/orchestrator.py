"""Forward, reverse and batch geocoding into the spatial registry."""

from __future__ import annotations

import logging
import threading
import time
from typing import Any, Callable, TypeVar

from geo_registry.common.config_loader import Limits
from geo_registry.common.constants import DEFAULT_SOURCES
from geo_registry.common.errors import (
    CoordinateOutOfRange,
    GeoRegistryError,
    InvalidInput,
    NoResultsFound,
    ProviderUnavailable,
    StorageFailure,
)
from geo_registry.common.logging import component_logger, log_event
from geo_registry.common.rate_limit import NoopRateLimiter, RateLimiter
from geo_registry.geocoding.models import BatchItemResult, BatchResult
from geo_registry.geocoding.provider import GeocodingProvider, ProviderPlace
from geo_registry.geocoding.scoring import compute_confidence
from geo_registry.geocoding.standardize import build_standardized_address, clean_query
from geo_registry.spatial.geomath import validate_coordinates
from geo_registry.spatial.models import Coordinates, GeoRecord
from geo_registry.spatial.registry import SpatialRegistry

CANCELLED_CODE = "CANCELLED"

T = TypeVar("T")


def _elapsed_ms(started: float) -> int:
    return int((time.monotonic() - started) * 1000)


def _candidate_coordinates(place: ProviderPlace) -> Coordinates:
    try:
        return validate_coordinates(place.lat, place.lon)
    except (CoordinateOutOfRange, InvalidInput) as exc:
        raise ProviderUnavailable(f"Provider returned unusable coordinates: {exc}") from exc


def _build_record(
    raw_input: str,
    place: ProviderPlace,
    coordinates: Coordinates,
    source: str,
    owner_id: str | None,
) -> GeoRecord:
    address = build_standardized_address(place.address_components, place.display_name)
    record = GeoRecord(
        raw_input=raw_input,
        standardized_address=address,
        coordinates=coordinates,
        source=source,
        confidence_score=compute_confidence(address),
        owner_id=owner_id,
    )
    return record.with_identity()


class GeocodingOrchestrator:
    def __init__(
        self,
        provider: GeocodingProvider,
        registry: SpatialRegistry,
        *,
        rate_limiter: RateLimiter | None = None,
        limits: Limits | None = None,
        logger: logging.Logger | None = None,
    ) -> None:
        self.provider = provider
        self.registry = registry
        self.rate_limiter = rate_limiter or NoopRateLimiter()
        self.limits = limits or Limits()
        self.logger = logger or component_logger("geocoding")

    def _call_provider(self, operation: str, call: Callable[[], T]) -> T:
        self.rate_limiter.acquire()
        try:
            return call()
        except GeoRegistryError:
            raise
        except Exception as exc:
            raise ProviderUnavailable(f"{operation} failed: {exc}") from exc

    def _search_top(self, query: str) -> ProviderPlace:
        candidates = self._call_provider("search", lambda: self.provider.search(query))
        if not candidates:
            raise NoResultsFound("No results found for the given address")
        return candidates[0]

    def _log_failure(self, operation: str, started: float, exc: GeoRegistryError) -> None:
        log_event(
            self.logger,
            f"{operation} failed: {exc}",
            level=logging.WARNING,
            component="geocoding",
            operation=operation,
            event="GEOCODE",
            status="error",
            duration_ms=_elapsed_ms(started),
            error_code=exc.error_code,
        )

    def forward_geocode(self, address: str, source: str | None = None, owner_id: str | None = None) -> GeoRecord:
        if not isinstance(address, str) or not address.strip():
            raise InvalidInput("'address' is required")
        started = time.monotonic()
        try:
            place = self._search_top(clean_query(address))
            coordinates = _candidate_coordinates(place)
            record = _build_record(address, place, coordinates, source or DEFAULT_SOURCES["forward"], owner_id)
            stored = self.registry.insert(record)
        except GeoRegistryError as exc:
            self._log_failure("forward_geocode", started, exc)
            raise

        log_event(
            self.logger,
            "Forward geocode stored",
            component="geocoding",
            operation="forward_geocode",
            event="GEOCODE",
            status="success",
            duration_ms=_elapsed_ms(started),
            items_out=1,
        )
        return stored

    def reverse_geocode(
        self,
        lat: float,
        lon: float,
        source: str | None = None,
        owner_id: str | None = None,
    ) -> GeoRecord:
        point = validate_coordinates(lat, lon)
        started = time.monotonic()
        try:
            place = self._call_provider("reverse", lambda: self.provider.reverse(point.lat, point.lon))
            record = _build_record(
                place.display_name,
                place,
                point,
                source or DEFAULT_SOURCES["reverse"],
                owner_id,
            )
            stored = self.registry.insert(record)
        except GeoRegistryError as exc:
            self._log_failure("reverse_geocode", started, exc)
            raise

        log_event(
            self.logger,
            "Reverse geocode stored",
            component="geocoding",
            operation="reverse_geocode",
            event="GEOCODE",
            status="success",
            duration_ms=_elapsed_ms(started),
            items_out=1,
        )
        return stored

    def _geocode_item(self, address: Any, source: str, owner_id: str | None) -> BatchItemResult:
        if not isinstance(address, str) or not address.strip():
            return BatchItemResult(
                address=address,
                status="error",
                error="Address must be a non-empty string",
                error_code=InvalidInput.error_code,
            )
        try:
            place = self._search_top(clean_query(address))
            coordinates = _candidate_coordinates(place)
        except NoResultsFound as exc:
            return BatchItemResult(address=address, status="not_found", error=str(exc), error_code=exc.error_code)
        except GeoRegistryError as exc:
            return BatchItemResult(address=address, status="error", error=str(exc), error_code=exc.error_code)
        record = _build_record(address, place, coordinates, source, owner_id)
        return BatchItemResult(address=address, status="success", record=record)

    def batch_geocode(
        self,
        addresses: list[Any],
        source: str | None = None,
        owner_id: str | None = None,
        cancel_event: threading.Event | None = None,
    ) -> BatchResult:
        if not isinstance(addresses, (list, tuple)) or not addresses:
            raise InvalidInput("'addresses' must be a non-empty list")
        if len(addresses) > self.limits.max_batch_size:
            raise InvalidInput(f"Maximum {self.limits.max_batch_size} addresses per batch")

        source = source or DEFAULT_SOURCES["batch"]
        started = time.monotonic()
        items: list[BatchItemResult] = []
        cancelled = False
        for address in addresses:
            if cancel_event is not None and cancel_event.is_set():
                cancelled = True
            if cancelled:
                items.append(
                    BatchItemResult(
                        address=address,
                        status="error",
                        error="Batch cancelled before this address was processed",
                        error_code=CANCELLED_CODE,
                    )
                )
                continue
            items.append(self._geocode_item(address, source, owner_id))

        result = BatchResult.build(items, cancelled=cancelled)
        try:
            result = self.persist_batch(result)
        except StorageFailure as exc:
            raise StorageFailure(str(exc), partial=result) from exc

        log_event(
            self.logger,
            "Batch geocode finished",
            level=logging.WARNING if cancelled else logging.INFO,
            component="geocoding",
            operation="batch_geocode",
            event="BATCH",
            status="cancelled" if cancelled else "success",
            duration_ms=_elapsed_ms(started),
            items_in=len(addresses),
            items_out=result.summary.succeeded,
        )
        return result

    def persist_batch(self, result: BatchResult) -> BatchResult:
        """Store the successful records of ``result`` in one bulk insert."""
        if not result.records:
            return result.with_inserted(0)
        inserted = self.registry.insert_many(result.records)
        return result.with_inserted(inserted)

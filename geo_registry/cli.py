"""CLI entrypoint for the geo registry."""

from __future__ import annotations

import argparse
import json
import signal
import sys
import threading
from contextlib import contextmanager
from dataclasses import dataclass
from pathlib import Path
from typing import Any, Iterator

from geo_registry.common.config_loader import AppConfig, load_config
from geo_registry.common.constants import (
    EXIT_HARD_FAIL,
    EXIT_INVALID_INPUT,
    EXIT_NOT_FOUND,
    EXIT_PARTIAL,
    EXIT_PROVIDER_UNAVAILABLE,
    EXIT_SUCCESS,
)
from geo_registry.common.errors import (
    CoordinateOutOfRange,
    GeoRegistryError,
    InvalidGeometry,
    InvalidInput,
    NoResultsFound,
    NotFound,
    ProviderUnavailable,
    StorageFailure,
)
from geo_registry.common.ids import generate_run_id
from geo_registry.common.logging import build_logger, log_event
from geo_registry.common.rate_limit import RateLimiter, build_rate_limiter
from geo_registry.export import write_records_csv
from geo_registry.geocoding.identity import IdentityProvider, build_identity_provider
from geo_registry.geocoding.orchestrator import GeocodingOrchestrator
from geo_registry.geocoding.provider import GeocodingProvider, NominatimProvider
from geo_registry.reports import write_batch_report
from geo_registry.spatial.geofence import GeofenceManager, check_payload
from geo_registry.spatial.models import Coordinates
from geo_registry.spatial.query import SpatialQueryEngine
from geo_registry.spatial.registry import SpatialRegistry
from geo_registry.store.base import RecordStore
from geo_registry.store.jsonlines import JsonLinesRecordStore
from geo_registry.store.memory import MemoryRecordStore


@dataclass
class Services:
    config: AppConfig
    registry: SpatialRegistry
    orchestrator: GeocodingOrchestrator
    queries: SpatialQueryEngine
    geofences: GeofenceManager
    identity: IdentityProvider
    provider: GeocodingProvider

    def close(self) -> None:
        close = getattr(self.provider, "close", None)
        if close is not None:
            close()


def build_store(config: AppConfig, data_dir: Path) -> RecordStore:
    if config.store_kind == "memory":
        return MemoryRecordStore()
    return JsonLinesRecordStore(data_dir / config.store_path)


def build_provider(config: AppConfig) -> NominatimProvider:
    settings = config.provider
    return NominatimProvider(
        base_url=settings.base_url,
        timeout=settings.timeout,
        retry=settings.retry,
        user_agent=settings.user_agent,
    )


def build_services(
    config: AppConfig,
    data_dir: Path,
    *,
    provider: GeocodingProvider | None = None,
    rate_limiter: RateLimiter | None = None,
) -> Services:
    registry = SpatialRegistry.from_store(
        build_store(config, data_dir),
        grid_cell_degrees=config.grid_cell_degrees,
    )
    provider = provider or build_provider(config)
    orchestrator = GeocodingOrchestrator(
        provider,
        registry,
        rate_limiter=rate_limiter or build_rate_limiter(config.provider.min_interval_seconds),
        limits=config.limits,
    )
    return Services(
        config=config,
        registry=registry,
        orchestrator=orchestrator,
        queries=SpatialQueryEngine(registry, limits=config.limits, defaults=config.defaults),
        geofences=GeofenceManager(registry, limits=config.limits, defaults=config.defaults),
        identity=build_identity_provider(config.identity_tokens),
        provider=provider,
    )


def _add_point_args(parser: argparse.ArgumentParser) -> None:
    parser.add_argument("--lat", type=float, required=True)
    parser.add_argument("--lon", type=float, required=True)


def parse_args(argv: list[str]) -> argparse.Namespace:
    parser = argparse.ArgumentParser(description=__doc__)
    parser.add_argument("--config-dir", default="./config")
    parser.add_argument("--overlay-config-dir", default=None)
    parser.add_argument("--data-dir", default="./data")
    parser.add_argument("--run-id", default=None)
    parser.add_argument("--log-level", default="INFO", choices=["DEBUG", "INFO", "WARN", "ERROR"])
    parser.add_argument("--credential", default=None, help="Bearer token used to resolve the record owner")
    sub = parser.add_subparsers(dest="command", required=True)

    geocode = sub.add_parser("geocode", help="Forward geocode one address")
    geocode.add_argument("address")
    geocode.add_argument("--source", default=None)

    reverse = sub.add_parser("reverse", help="Reverse geocode a point")
    _add_point_args(reverse)
    reverse.add_argument("--source", default=None)

    batch = sub.add_parser("batch", help="Geocode several addresses")
    batch.add_argument("addresses", nargs="*")
    batch.add_argument("--file", default=None, help="Text file with one address per line, or a JSON list")
    batch.add_argument("--source", default=None)

    nearby = sub.add_parser("nearby", help="Records within a radius of a point")
    _add_point_args(nearby)
    nearby.add_argument("--radius-m", type=float, default=None)
    nearby.add_argument("--max-results", type=int, default=None)

    cluster = sub.add_parser("cluster", help="Density clusters around a point")
    _add_point_args(cluster)
    cluster.add_argument("--radius-m", type=float, default=None)
    cluster.add_argument("--eps-m", type=float, default=None)
    cluster.add_argument("--min-points", type=int, default=None)

    create = sub.add_parser("geofence-create", help="Create a polygon geofence")
    create.add_argument("--name", required=True)
    create.add_argument("--polygon", required=True, help="JSON list of [lon, lat] pairs")
    create.add_argument("--description", default=None)
    create.add_argument("--metadata", default=None, help="JSON object")

    check = sub.add_parser("geofence-check", help="Geofences containing a point")
    _add_point_args(check)

    entries = sub.add_parser("geofence-entries", help="Records inside a geofence")
    entries.add_argument("fence_id")
    entries.add_argument("--max-results", type=int, default=None)

    sub.add_parser("geofence-list", help="List geofences, newest first")

    export = sub.add_parser("export", help="Export registry records to CSV")
    export.add_argument("--output", default=None)

    return parser.parse_args(argv)


def _load_json_arg(raw: str | None, name: str) -> Any:
    if raw is None:
        return None
    try:
        return json.loads(raw)
    except ValueError as exc:
        raise InvalidInput(f"'{name}' must be valid JSON") from exc


def _read_batch_addresses(args: argparse.Namespace) -> list[Any]:
    addresses: list[Any] = list(args.addresses)
    if args.file:
        path = Path(args.file)
        if not path.exists():
            raise InvalidInput(f"Batch file not found: {path}")
        text = path.read_text(encoding="utf-8")
        if path.suffix == ".json":
            loaded = _load_json_arg(text, "file")
            if not isinstance(loaded, list):
                raise InvalidInput("Batch JSON file must contain a list of addresses")
            addresses.extend(loaded)
        else:
            addresses.extend(line.strip() for line in text.splitlines() if line.strip())
    return addresses


@contextmanager
def cancel_on_interrupt() -> Iterator[threading.Event]:
    """Event set by Ctrl-C while the block runs; the batch stops at the next address."""
    cancel = threading.Event()
    if threading.current_thread() is not threading.main_thread():
        yield cancel
        return

    def _handle(_signum, _frame) -> None:
        cancel.set()

    previous = signal.signal(signal.SIGINT, _handle)
    try:
        yield cancel
    finally:
        signal.signal(signal.SIGINT, previous if previous is not None else signal.default_int_handler)


def _emit(payload: Any) -> None:
    sys.stdout.write(json.dumps(payload, ensure_ascii=False, indent=2) + "\n")


def exit_code_for(exc: BaseException) -> int:
    if isinstance(exc, (InvalidInput, CoordinateOutOfRange, InvalidGeometry)):
        return EXIT_INVALID_INPUT
    if isinstance(exc, (NoResultsFound, NotFound)):
        return EXIT_NOT_FOUND
    if isinstance(exc, ProviderUnavailable):
        return EXIT_PROVIDER_UNAVAILABLE
    return EXIT_HARD_FAIL


def execute_command(
    args: argparse.Namespace,
    services: Services,
    owner_id: str | None,
    data_dir: Path,
    run_id: str,
) -> int:
    command = args.command
    if command == "geocode":
        record = services.orchestrator.forward_geocode(args.address, source=args.source, owner_id=owner_id)
        _emit(record.to_dict())
    elif command == "reverse":
        record = services.orchestrator.reverse_geocode(args.lat, args.lon, source=args.source, owner_id=owner_id)
        _emit(record.to_dict())
    elif command == "batch":
        addresses = _read_batch_addresses(args)
        try:
            with cancel_on_interrupt() as cancel:
                result = services.orchestrator.batch_geocode(
                    addresses,
                    source=args.source,
                    owner_id=owner_id,
                    cancel_event=cancel,
                )
        except StorageFailure as exc:
            if exc.partial is not None:
                write_batch_report(data_dir, run_id, exc.partial)
            raise
        write_batch_report(data_dir, run_id, result)
        _emit(result.to_dict())
        summary = result.summary
        if summary.failed or summary.not_found or summary.cancelled:
            return EXIT_PARTIAL
    elif command == "nearby":
        hits = services.queries.radius_search(
            Coordinates(args.lat, args.lon),
            radius_m=args.radius_m,
            max_results=args.max_results,
        )
        _emit({"count": len(hits), "results": [hit.to_dict() for hit in hits]})
    elif command == "cluster":
        clusters = services.queries.cluster_by_density(
            Coordinates(args.lat, args.lon),
            radius_m=args.radius_m,
            eps_m=args.eps_m,
            min_points=args.min_points,
        )
        _emit({"count": len(clusters), "clusters": [cluster.to_dict() for cluster in clusters]})
    elif command == "geofence-create":
        fence = services.geofences.create(
            args.name,
            _load_json_arg(args.polygon, "polygon"),
            description=args.description,
            metadata=_load_json_arg(args.metadata, "metadata"),
            owner_id=owner_id,
        )
        _emit(fence.to_dict())
    elif command == "geofence-check":
        _emit(check_payload(services.geofences.check(Coordinates(args.lat, args.lon))))
    elif command == "geofence-entries":
        records = services.geofences.entries_within(args.fence_id, max_results=args.max_results)
        _emit({"count": len(records), "results": [record.to_dict() for record in records]})
    elif command == "geofence-list":
        fences = services.geofences.list()
        _emit({"count": len(fences), "geofences": [fence.to_dict() for fence in fences]})
    elif command == "export":
        output = Path(args.output) if args.output else data_dir / "out" / "records.csv"
        records = list(services.registry.query())
        write_records_csv(output, records)
        _emit({"path": str(output), "count": len(records)})
    else:
        raise ValueError(f"Unknown command: {command}")
    return EXIT_SUCCESS


def run_command(args: argparse.Namespace, *, services: Services | None = None) -> int:
    run_id = args.run_id or generate_run_id()
    data_dir = Path(args.data_dir)
    logger = build_logger(run_id, data_dir=data_dir, level=args.log_level)

    if services is None:
        config = load_config(
            Path(args.config_dir),
            overlay_config_dir=Path(args.overlay_config_dir) if args.overlay_config_dir else None,
        )
        services = build_services(config, data_dir)
    owner_id = services.identity.resolve_caller(args.credential)

    log_event(logger, "command start", run_id=run_id, operation=args.command, event="COMMAND_START", status="ok")
    try:
        code = execute_command(args, services, owner_id, data_dir, run_id)
    except GeoRegistryError as exc:
        log_event(
            logger,
            f"command failed: {exc}",
            run_id=run_id,
            operation=args.command,
            event="COMMAND_FAIL",
            status="error",
            error_code=exc.error_code,
        )
        _emit({"error": exc.to_dict()})
        return exit_code_for(exc)
    finally:
        services.close()

    log_event(
        logger,
        "command end",
        run_id=run_id,
        operation=args.command,
        event="COMMAND_END",
        status="partial" if code == EXIT_PARTIAL else "ok",
    )
    return code


def main(argv: list[str] | None = None) -> int:
    args = parse_args(sys.argv[1:] if argv is None else argv)
    try:
        return run_command(args)
    except GeoRegistryError as exc:
        sys.stderr.write(f"{exc.kind}: {exc}\n")
        return exit_code_for(exc)
    except Exception as exc:
        sys.stderr.write(f"Unexpected failure: {exc}\n")
        return EXIT_HARD_FAIL


if __name__ == "__main__":
    raise SystemExit(main())

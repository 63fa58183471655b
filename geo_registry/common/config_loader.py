"""Configuration loading and validation."""

from __future__ import annotations

from dataclasses import dataclass, field
from pathlib import Path
from typing import Any

from geo_registry.common.errors import ConfigError
from geo_registry.common.fs import read_yaml
from geo_registry.common.http import RetryConfig, TimeoutConfig
from geo_registry.common.schema import validate_app_config

CONFIG_FILENAME = "geo_registry.yml"


@dataclass(frozen=True)
class Limits:
    max_batch_size: int = 50
    max_search_radius_m: float = 50000.0
    max_cluster_radius_m: float = 100000.0
    max_search_results: int = 100
    max_entries_results: int = 500


@dataclass(frozen=True)
class QueryDefaults:
    search_radius_m: float = 1000.0
    search_max_results: int = 50
    cluster_radius_m: float = 5000.0
    cluster_eps_m: float = 500.0
    cluster_min_points: int = 1
    entries_max_results: int = 100


@dataclass(frozen=True)
class ProviderSettings:
    name: str = "nominatim"
    base_url: str = "https://nominatim.openstreetmap.org"
    user_agent: str = "geo-registry/1.0"
    timeout: TimeoutConfig = field(default_factory=TimeoutConfig)
    retry: RetryConfig = field(default_factory=RetryConfig)
    min_interval_seconds: float = 1.1


@dataclass(frozen=True)
class AppConfig:
    provider: ProviderSettings
    limits: Limits
    defaults: QueryDefaults
    grid_cell_degrees: float
    store_kind: str
    store_path: str
    identity_tokens: dict[str, str]


def _deep_merge(base: Any, overlay: Any) -> Any:
    if isinstance(base, dict) and isinstance(overlay, dict):
        merged = dict(base)
        for key, value in overlay.items():
            if key in merged:
                merged[key] = _deep_merge(merged[key], value)
            else:
                merged[key] = value
        return merged
    return overlay


def _load_yaml_with_overlay(path: Path, overlay_path: Path | None) -> dict:
    if not path.exists():
        raise ConfigError(f"Config file not found: {path}")
    base = read_yaml(path)
    if overlay_path is None or not overlay_path.exists():
        return base
    overlay = read_yaml(overlay_path)
    if overlay is None:
        return base
    if not isinstance(overlay, dict):
        raise ConfigError(f"Overlay config must be a mapping: {overlay_path}")
    return _deep_merge(base, overlay)


def _provider_settings(cfg: dict) -> ProviderSettings:
    retry = cfg["retry"]
    return ProviderSettings(
        name=str(cfg["name"]),
        base_url=str(cfg["base_url"]).rstrip("/"),
        user_agent=str(cfg["user_agent"]),
        timeout=TimeoutConfig(connect=float(cfg["timeout"]["connect"]), read=float(cfg["timeout"]["read"])),
        retry=RetryConfig(
            max_attempts=int(retry["max_attempts"]),
            multiplier=float(retry.get("multiplier", 1.0)),
            max_wait=float(retry.get("max_wait", 30.0)),
        ),
        min_interval_seconds=float(cfg["rate_limit"]["min_interval_seconds"]),
    )


def build_app_config(raw: object, *, allow_unknown: bool = False) -> AppConfig:
    cfg = validate_app_config(raw, allow_unknown=allow_unknown)
    limits = cfg["limits"]
    defaults = cfg["defaults"]
    return AppConfig(
        provider=_provider_settings(cfg["provider"]),
        limits=Limits(
            max_batch_size=int(limits["max_batch_size"]),
            max_search_radius_m=float(limits["max_search_radius_m"]),
            max_cluster_radius_m=float(limits["max_cluster_radius_m"]),
            max_search_results=int(limits["max_search_results"]),
            max_entries_results=int(limits["max_entries_results"]),
        ),
        defaults=QueryDefaults(
            search_radius_m=float(defaults["search_radius_m"]),
            search_max_results=int(defaults["search_max_results"]),
            cluster_radius_m=float(defaults["cluster_radius_m"]),
            cluster_eps_m=float(defaults["cluster_eps_m"]),
            cluster_min_points=int(defaults["cluster_min_points"]),
            entries_max_results=int(defaults["entries_max_results"]),
        ),
        grid_cell_degrees=float(cfg["registry"]["grid_cell_degrees"]),
        store_kind=str(cfg["store"]["kind"]),
        store_path=str(cfg["store"]["path"]),
        identity_tokens={str(k): str(v) for k, v in (cfg["identity"]["tokens"] or {}).items()},
    )


def load_config(
    config_dir: Path,
    *,
    allow_unknown: bool = False,
    overlay_config_dir: Path | None = None,
) -> AppConfig:
    overlay_path = None
    if overlay_config_dir is not None:
        overlay_path = overlay_config_dir / CONFIG_FILENAME
    raw = _load_yaml_with_overlay(config_dir / CONFIG_FILENAME, overlay_path)
    return build_app_config(raw, allow_unknown=allow_unknown)

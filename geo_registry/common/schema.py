"""Minimal strict schemas for YAML config validation."""

from __future__ import annotations

from geo_registry.common.errors import ConfigError

TOP_LEVEL_KEYS = {"provider", "limits", "defaults", "registry", "store", "identity"}
PROVIDER_KEYS = {"name", "base_url", "user_agent", "timeout", "retry", "rate_limit"}
LIMIT_KEYS = {
    "max_batch_size",
    "max_search_radius_m",
    "max_cluster_radius_m",
    "max_search_results",
    "max_entries_results",
}
DEFAULT_KEYS = {
    "search_radius_m",
    "search_max_results",
    "cluster_radius_m",
    "cluster_eps_m",
    "cluster_min_points",
    "entries_max_results",
}
STORE_KINDS = {"memory", "jsonl"}


def _assert_mapping(obj: object, ctx: str) -> dict:
    if not isinstance(obj, dict):
        raise ConfigError(f"{ctx} must be a mapping")
    return obj


def _assert_required_keys(obj: dict, required: set[str], ctx: str) -> None:
    missing = required - set(obj)
    if missing:
        missing_str = ", ".join(sorted(missing))
        raise ConfigError(f"Missing keys in {ctx}: {missing_str}")


def _assert_no_unknown_keys(obj: dict, known: set[str], ctx: str, allow_unknown: bool) -> None:
    if allow_unknown:
        return
    unknown = set(obj) - known
    if unknown:
        unknown_str = ", ".join(sorted(unknown))
        raise ConfigError(f"Unknown keys in {ctx}: {unknown_str}")


def _assert_positive_numbers(obj: dict, keys: set[str], ctx: str) -> None:
    for key in sorted(keys):
        value = obj[key]
        if isinstance(value, bool) or not isinstance(value, (int, float)) or value <= 0:
            raise ConfigError(f"{ctx}.{key} must be a positive number, got {value!r}")


def validate_provider_config(cfg: dict, *, allow_unknown: bool = False) -> dict:
    _assert_mapping(cfg, "provider")
    _assert_required_keys(cfg, PROVIDER_KEYS, "provider")
    _assert_no_unknown_keys(cfg, PROVIDER_KEYS, "provider", allow_unknown)

    timeout = _assert_mapping(cfg["timeout"], "provider.timeout")
    _assert_required_keys(timeout, {"connect", "read"}, "provider.timeout")
    _assert_positive_numbers(timeout, {"connect", "read"}, "provider.timeout")

    retry = _assert_mapping(cfg["retry"], "provider.retry")
    _assert_required_keys(retry, {"max_attempts"}, "provider.retry")
    _assert_positive_numbers(retry, {"max_attempts"}, "provider.retry")

    rate_limit = _assert_mapping(cfg["rate_limit"], "provider.rate_limit")
    _assert_required_keys(rate_limit, {"min_interval_seconds"}, "provider.rate_limit")
    interval = rate_limit["min_interval_seconds"]
    if isinstance(interval, bool) or not isinstance(interval, (int, float)) or interval < 0:
        raise ConfigError("provider.rate_limit.min_interval_seconds must be >= 0")
    return cfg


def validate_limits_config(cfg: dict, *, allow_unknown: bool = False) -> dict:
    _assert_mapping(cfg, "limits")
    _assert_required_keys(cfg, LIMIT_KEYS, "limits")
    _assert_no_unknown_keys(cfg, LIMIT_KEYS, "limits", allow_unknown)
    _assert_positive_numbers(cfg, LIMIT_KEYS, "limits")
    return cfg


def validate_defaults_config(cfg: dict, limits: dict, *, allow_unknown: bool = False) -> dict:
    _assert_mapping(cfg, "defaults")
    _assert_required_keys(cfg, DEFAULT_KEYS, "defaults")
    _assert_no_unknown_keys(cfg, DEFAULT_KEYS, "defaults", allow_unknown)
    _assert_positive_numbers(cfg, DEFAULT_KEYS, "defaults")
    if cfg["search_radius_m"] > limits["max_search_radius_m"]:
        raise ConfigError("defaults.search_radius_m exceeds limits.max_search_radius_m")
    if cfg["search_max_results"] > limits["max_search_results"]:
        raise ConfigError("defaults.search_max_results exceeds limits.max_search_results")
    if cfg["cluster_radius_m"] > limits["max_cluster_radius_m"]:
        raise ConfigError("defaults.cluster_radius_m exceeds limits.max_cluster_radius_m")
    if cfg["cluster_eps_m"] > cfg["cluster_radius_m"]:
        raise ConfigError("defaults.cluster_eps_m exceeds defaults.cluster_radius_m")
    if cfg["entries_max_results"] > limits["max_entries_results"]:
        raise ConfigError("defaults.entries_max_results exceeds limits.max_entries_results")
    return cfg


def validate_app_config(cfg: object, *, allow_unknown: bool = False) -> dict:
    cfg = _assert_mapping(cfg, "config")
    _assert_required_keys(cfg, TOP_LEVEL_KEYS, "config")
    _assert_no_unknown_keys(cfg, TOP_LEVEL_KEYS, "config", allow_unknown)

    validate_provider_config(cfg["provider"], allow_unknown=allow_unknown)
    validate_limits_config(cfg["limits"], allow_unknown=allow_unknown)
    validate_defaults_config(cfg["defaults"], cfg["limits"], allow_unknown=allow_unknown)

    registry = _assert_mapping(cfg["registry"], "registry")
    _assert_required_keys(registry, {"grid_cell_degrees"}, "registry")
    _assert_positive_numbers(registry, {"grid_cell_degrees"}, "registry")

    store = _assert_mapping(cfg["store"], "store")
    _assert_required_keys(store, {"kind", "path"}, "store")
    if store["kind"] not in STORE_KINDS:
        raise ConfigError(f"store.kind must be one of {', '.join(sorted(STORE_KINDS))}")

    identity = _assert_mapping(cfg["identity"], "identity")
    _assert_required_keys(identity, {"tokens"}, "identity")
    if not isinstance(identity["tokens"] or {}, dict):
        raise ConfigError("identity.tokens must be a mapping of token to user id")

    return cfg

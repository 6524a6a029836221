from __future__ import annotations

import os
from pathlib import Path
from typing import TYPE_CHECKING, TypeVar, cast

from config import ConfigurationSet, config_from_dict, config_from_env, config_from_yaml

from fantasy_football_tiers.domain.ranked_entity import FETCHABLE_POSITIONS, Position, ScoringFormat
from fantasy_football_tiers.domain.settings import CacheSettings, PipelineSettings, ServerSettings, UpstreamSettings

if TYPE_CHECKING:
    from collections.abc import Callable, Iterable

# Secret env vars read when the config layers leave the value empty
_SECRET_ENV_VARS = ("PIPELINE_SECRET", "CRON_SECRET")
_API_KEY_ENV_VAR = "FANTASYPROS_API_KEY"

_DEFAULTS: dict[str, object] = {
    "cache": {
        "fresh_window_seconds": 1800,
        "stale_window_seconds": 7200,
        "max_age_seconds": 86400,
        "schema_version": "1.0",
        "key_prefix": "ff_cache_",
        "db_path": "~/.config/fftiers/cache.db",
        "max_bytes": 0,
        "evict_count": 3,
    },
    "pipeline": {
        "politeness_delay_ms": 100,
        "max_workers": 4,
        "default_groups": [p.value for p in FETCHABLE_POSITIONS],
        "default_formats": [f.value for f in ScoringFormat],
        "secret": "",
        "environment": "production",
    },
    "upstream": {
        "base_url": "https://api.fantasypros.com/public/v2/json/nfl",
        "api_key": "",
        "timeout_seconds": 10,
        "season": 2026,
    },
    "tiers": {
        "default_count": 6,
    },
    "accessor": {
        "refresh_interval_seconds": 600,
    },
    "database": {
        "path": "~/.config/fftiers/datasets.db",
    },
    "server": {
        "rate_limit_requests": 10,
        "rate_limit_window_seconds": 60,
    },
}


def create_config(
    yaml_path: str = "config.yaml",
    env_prefix: str = "FFTIERS",
    defaults: dict[str, object] | None = None,
    *,
    overrides: dict[str, object] | None = None,
) -> ConfigurationSet:
    """Create a layered configuration.

    Priority (highest to lowest): explicit overrides > env vars > YAML file > defaults dict.
    Environment keys look like ``FFTIERS__CACHE__FRESH_WINDOW_SECONDS``.
    """
    if defaults is None:
        defaults = _DEFAULTS

    layers = [
        config_from_env(env_prefix, separator="__", lowercase_keys=True),
        config_from_yaml(yaml_path, read_from_file=True, ignore_missing_paths=True),
        config_from_dict(defaults),
    ]
    if overrides:
        layers.insert(0, config_from_dict(overrides))

    return ConfigurationSet(*layers)


def _as_list(raw: object) -> list[str]:
    # env vars arrive as comma-separated strings
    if isinstance(raw, str):
        return [item.strip() for item in raw.split(",") if item.strip()]
    return [str(item) for item in cast("Iterable[object]", raw)]


T = TypeVar("T")


def _parse_all(raw: object, parse: Callable[[str], T]) -> tuple[T, ...]:
    return tuple(parse(item) for item in _as_list(raw))


def _first_env(*names: str) -> str:
    for name in names:
        value = os.environ.get(name, "")
        if value:
            return value
    return ""


def load_cache_settings(cfg: ConfigurationSet | None = None) -> CacheSettings:
    if cfg is None:
        cfg = create_config()
    return CacheSettings(
        fresh_window_seconds=float(str(cfg["cache.fresh_window_seconds"])),
        stale_window_seconds=float(str(cfg["cache.stale_window_seconds"])),
        max_age_seconds=float(str(cfg["cache.max_age_seconds"])),
        schema_version=str(cfg["cache.schema_version"]),
        key_prefix=str(cfg["cache.key_prefix"]),
        db_path=Path(str(cfg["cache.db_path"])).expanduser(),
        max_bytes=int(str(cfg["cache.max_bytes"])),
        evict_count=int(str(cfg["cache.evict_count"])),
    )


def load_pipeline_settings(cfg: ConfigurationSet | None = None) -> PipelineSettings:
    if cfg is None:
        cfg = create_config()
    return PipelineSettings(
        politeness_delay_ms=int(str(cfg["pipeline.politeness_delay_ms"])),
        max_workers=int(str(cfg["pipeline.max_workers"])),
        default_groups=_parse_all(cfg["pipeline.default_groups"], Position.parse),
        default_formats=_parse_all(cfg["pipeline.default_formats"], ScoringFormat.parse),
        secret=str(cfg["pipeline.secret"]) or _first_env(*_SECRET_ENV_VARS),
        environment=str(cfg["pipeline.environment"]).lower(),
    )


def load_upstream_settings(cfg: ConfigurationSet | None = None) -> UpstreamSettings:
    if cfg is None:
        cfg = create_config()
    return UpstreamSettings(
        base_url=str(cfg["upstream.base_url"]).rstrip("/"),
        api_key=str(cfg["upstream.api_key"]) or _first_env(_API_KEY_ENV_VAR),
        timeout_seconds=float(str(cfg["upstream.timeout_seconds"])),
        season=int(str(cfg["upstream.season"])),
    )


def load_server_settings(cfg: ConfigurationSet | None = None) -> ServerSettings:
    if cfg is None:
        cfg = create_config()
    return ServerSettings(
        rate_limit_requests=int(str(cfg["server.rate_limit_requests"])),
        rate_limit_window_seconds=float(str(cfg["server.rate_limit_window_seconds"])),
        default_tier_count=int(str(cfg["tiers.default_count"])),
        refresh_interval_seconds=float(str(cfg["accessor.refresh_interval_seconds"])),
        database_path=Path(str(cfg["database.path"])).expanduser(),
    )

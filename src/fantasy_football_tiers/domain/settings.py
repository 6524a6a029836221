from dataclasses import dataclass
from pathlib import Path

from fantasy_football_tiers.domain.ranked_entity import FETCHABLE_POSITIONS, Position, ScoringFormat


@dataclass(frozen=True)
class CacheSettings:
    fresh_window_seconds: float = 30 * 60
    stale_window_seconds: float = 2 * 60 * 60
    max_age_seconds: float = 24 * 60 * 60
    schema_version: str = "1.0"
    key_prefix: str = "ff_cache_"
    db_path: Path = Path("~/.config/fftiers/cache.db")
    max_bytes: int = 0
    evict_count: int = 3

    def __post_init__(self) -> None:
        if not 0 < self.fresh_window_seconds <= self.stale_window_seconds <= self.max_age_seconds:
            msg = "Cache windows must satisfy 0 < fresh <= stale <= max age"
            raise ValueError(msg)


@dataclass(frozen=True)
class PipelineSettings:
    politeness_delay_ms: int = 100
    max_workers: int = 4
    default_groups: tuple[Position, ...] = FETCHABLE_POSITIONS
    default_formats: tuple[ScoringFormat, ...] = tuple(ScoringFormat)
    secret: str = ""
    environment: str = "production"

    @property
    def allows_unauthenticated(self) -> bool:
        return not self.secret and self.environment == "development"


@dataclass(frozen=True)
class UpstreamSettings:
    base_url: str = "https://api.fantasypros.com/public/v2/json/nfl"
    api_key: str = ""
    timeout_seconds: float = 10.0
    season: int = 2026


@dataclass(frozen=True)
class ServerSettings:
    rate_limit_requests: int = 10
    rate_limit_window_seconds: float = 60.0
    default_tier_count: int = 6
    refresh_interval_seconds: float = 600.0
    database_path: Path = Path("~/.config/fftiers/datasets.db")

from dataclasses import dataclass, field
from enum import StrEnum
from typing import Any

from fantasy_football_tiers.domain.ranked_entity import FETCHABLE_POSITIONS, Position, ScoringFormat


class DataSourceTag(StrEnum):
    API = "api"
    CACHE = "cache"
    CACHE_STALE = "cache-stale"
    SAMPLE = "sample"
    MANUAL = "manual"
    NONE = "none"


@dataclass(frozen=True)
class PipelineRequest:
    groups: tuple[Position, ...] = FETCHABLE_POSITIONS
    formats: tuple[ScoringFormat, ...] = tuple(ScoringFormat)
    force_refresh: bool = False
    update_cache: bool = True
    update_database: bool = True

    def pairs(self) -> list[tuple[Position, ScoringFormat]]:
        return [(group, fmt) for group in self.groups for fmt in self.formats]


@dataclass(frozen=True)
class PipelineItemOutcome:
    group: Position
    format: ScoringFormat
    success: bool
    player_count: int
    source: DataSourceTag
    duration_ms: int
    error: str | None = None

    def to_dict(self) -> dict[str, Any]:
        result: dict[str, Any] = {
            "group": self.group.value,
            "format": self.format.value,
            "success": self.success,
            "playerCount": self.player_count,
            "source": self.source.value,
            "durationMs": self.duration_ms,
        }
        if self.error is not None:
            result["error"] = self.error
        return result


@dataclass
class PipelineExecutionReport:
    """Outcome of one orchestrator run, filled in as items complete."""

    execution_id: str
    start_time: float
    total_items: int
    end_time: float | None = None
    details: list[PipelineItemOutcome] = field(default_factory=list)
    errors: list[str] = field(default_factory=list)
    successful_fetches: int = 0
    failed_fetches: int = 0
    total_players_stored: int = 0
    cache_entries_updated: int = 0
    database_updated: bool = False

    @property
    def success(self) -> bool:
        """True when at least one item was served from the provider or a fresh cache."""
        return any(
            d.success and d.source in (DataSourceTag.API, DataSourceTag.CACHE) for d in self.details
        )

    @property
    def total_duration_ms(self) -> int:
        if self.end_time is None:
            return 0
        return round((self.end_time - self.start_time) * 1000)

    @property
    def finished(self) -> bool:
        return self.end_time is not None

    def record(self, outcome: PipelineItemOutcome) -> None:
        if self.finished:
            msg = f"Report {self.execution_id} is final"
            raise RuntimeError(msg)
        self.details.append(outcome)
        if outcome.success:
            self.successful_fetches += 1
        else:
            self.failed_fetches += 1

    def to_dict(self) -> dict[str, Any]:
        return {
            "success": self.success,
            "executionId": self.execution_id,
            "startTime": self.start_time,
            "endTime": self.end_time,
            "totalDurationMs": self.total_duration_ms,
            "summary": {
                "totalItems": self.total_items,
                "successfulFetches": self.successful_fetches,
                "failedFetches": self.failed_fetches,
                "totalPlayersStored": self.total_players_stored,
                "cacheEntriesUpdated": self.cache_entries_updated,
                "databaseUpdated": self.database_updated,
            },
            "details": [d.to_dict() for d in self.details],
            "errors": list(self.errors),
        }

from dataclasses import dataclass
from enum import StrEnum
from typing import Any

from fantasy_football_tiers.domain.ranked_entity import RankedEntity


class CacheStatus(StrEnum):
    FRESH = "fresh"
    STALE = "stale"
    EXPIRED = "expired"
    MISSING = "missing"

    @property
    def rank(self) -> int:
        """Ordering key where a larger value is fresher."""
        return _STATUS_ORDER[self]

    @property
    def needs_refresh(self) -> bool:
        return self is not CacheStatus.FRESH


_STATUS_ORDER = {
    CacheStatus.FRESH: 3,
    CacheStatus.STALE: 2,
    CacheStatus.EXPIRED: 1,
    CacheStatus.MISSING: 0,
}


@dataclass(frozen=True)
class CacheEntry:
    data: tuple[RankedEntity, ...]
    timestamp: float
    expiry: float
    source: str
    version: str
    group: str
    format: str

    def __post_init__(self) -> None:
        if self.expiry <= self.timestamp:
            msg = f"expiry ({self.expiry}) must be after timestamp ({self.timestamp})"
            raise ValueError(msg)

    def age(self, now: float) -> float:
        return now - self.timestamp

    def to_dict(self) -> dict[str, Any]:
        return {
            "data": [entity.to_dict() for entity in self.data],
            "timestamp": self.timestamp,
            "expiry": self.expiry,
            "source": self.source,
            "version": self.version,
            "group": self.group,
            "format": self.format,
        }

    @classmethod
    def from_dict(cls, raw: dict[str, Any]) -> "CacheEntry":
        return cls(
            data=tuple(RankedEntity.from_dict(item) for item in raw["data"]),
            timestamp=float(raw["timestamp"]),
            expiry=float(raw["expiry"]),
            source=str(raw["source"]),
            version=str(raw["version"]),
            group=str(raw["group"]),
            format=str(raw["format"]),
        )


@dataclass(frozen=True)
class CacheStats:
    total_entries: int
    total_bytes: int
    oldest: float | None
    newest: float | None


@dataclass(frozen=True)
class CacheStatusDisplay:
    status: CacheStatus
    message: str

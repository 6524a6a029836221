from dataclasses import dataclass
from enum import StrEnum


class DatasetAction(StrEnum):
    SET = "set"
    APPEND = "append"
    CLEAR = "clear"


@dataclass(frozen=True)
class DatasetInfo:
    id: int
    position: str
    scoring_format: str
    source: str
    player_count: int
    created_at: float
    is_active: bool

    def to_dict(self) -> dict[str, object]:
        return {
            "id": self.id,
            "position": self.position,
            "scoringFormat": self.scoring_format,
            "source": self.source,
            "playerCount": self.player_count,
            "createdAt": self.created_at,
            "isActive": self.is_active,
        }


@dataclass(frozen=True)
class DatasetStats:
    total_datasets: int
    active_datasets: int
    total_players: int
    oldest: float | None
    newest: float | None

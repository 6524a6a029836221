from dataclasses import dataclass
from enum import StrEnum
from typing import Any

SENTINEL_RANK = 999.0


class Position(StrEnum):
    QB = "QB"
    RB = "RB"
    WR = "WR"
    TE = "TE"
    K = "K"
    DST = "DST"
    FLEX = "FLEX"
    OVERALL = "OVERALL"

    @property
    def fetchable(self) -> bool:
        return self in FETCHABLE_POSITIONS

    @classmethod
    def parse(cls, raw: str) -> "Position":
        value = raw.strip().upper()
        value = _POSITION_ALIASES.get(value, value)
        try:
            return cls(value)
        except ValueError:
            msg = f"Unknown position: {raw!r}"
            raise ValueError(msg) from None


FETCHABLE_POSITIONS: tuple[Position, ...] = (
    Position.QB,
    Position.RB,
    Position.WR,
    Position.TE,
    Position.K,
    Position.DST,
)

_POSITION_ALIASES = {"DEF": "DST", "D/ST": "DST", "PK": "K", "ALL": "OVERALL"}


class ScoringFormat(StrEnum):
    STANDARD = "STANDARD"
    PPR = "PPR"
    HALF_PPR = "HALF_PPR"

    @property
    def api_param(self) -> str:
        """Scoring code sent to the upstream provider."""
        return _UPSTREAM_CODES[self]

    @property
    def display_name(self) -> str:
        return _DISPLAY_NAMES[self]

    @classmethod
    def parse(cls, raw: str) -> "ScoringFormat":
        value = raw.strip().upper().replace("-", "_")
        value = _FORMAT_ALIASES.get(value, value)
        try:
            return cls(value)
        except ValueError:
            msg = f"Unknown scoring format: {raw!r}"
            raise ValueError(msg) from None


_UPSTREAM_CODES = {ScoringFormat.STANDARD: "STD", ScoringFormat.PPR: "PPR", ScoringFormat.HALF_PPR: "HALF"}
_DISPLAY_NAMES = {ScoringFormat.STANDARD: "Standard", ScoringFormat.PPR: "PPR", ScoringFormat.HALF_PPR: "Half PPR"}
_FORMAT_ALIASES = {"STD": "STANDARD", "HALF": "HALF_PPR", "HALFPPR": "HALF_PPR"}

# camelCase keys accepted from JSON clients
_CAMEL_KEYS = {
    "averageRank": "average_rank",
    "standardDeviation": "standard_deviation",
    "projectedPoints": "projected_points",
    "positionRank": "position_rank",
    "minRank": "min_rank",
    "maxRank": "max_rank",
    "byeWeek": "bye_week",
    "expertRanks": "expert_ranks",
    "imageUrl": "image_url",
}


def _optional_float(value: Any) -> float | None:
    if value is None or value == "":
        return None
    return float(value)


def _optional_int(value: Any) -> int | None:
    if value is None or value == "":
        return None
    return int(float(value))


@dataclass(frozen=True)
class RankedEntity:
    id: str
    name: str
    position: str
    team: str = ""
    average_rank: float | None = None
    standard_deviation: float | None = None
    projected_points: float | None = None
    tier: int | None = None
    position_rank: int | None = None
    min_rank: float | None = None
    max_rank: float | None = None
    bye_week: int | None = None
    expert_ranks: tuple[int, ...] = ()
    image_url: str | None = None

    @property
    def sort_rank(self) -> float:
        """Average rank for ordering; a missing rank sorts last."""
        return self.average_rank if self.average_rank is not None else SENTINEL_RANK

    def to_dict(self) -> dict[str, Any]:
        return {
            "id": self.id,
            "name": self.name,
            "position": self.position,
            "team": self.team,
            "average_rank": self.average_rank,
            "standard_deviation": self.standard_deviation,
            "projected_points": self.projected_points,
            "tier": self.tier,
            "position_rank": self.position_rank,
            "min_rank": self.min_rank,
            "max_rank": self.max_rank,
            "bye_week": self.bye_week,
            "expert_ranks": list(self.expert_ranks),
            "image_url": self.image_url,
        }

    @classmethod
    def from_dict(cls, raw: dict[str, Any]) -> "RankedEntity":
        """Build an entity from a JSON object, accepting snake_case or camelCase keys."""
        data = {_CAMEL_KEYS.get(key, key): value for key, value in raw.items()}
        if "id" not in data or "name" not in data or "position" not in data:
            msg = "Ranked entity requires 'id', 'name' and 'position'"
            raise ValueError(msg)
        average_rank = _optional_float(data.get("average_rank"))
        if average_rank is not None and average_rank <= 0:
            msg = f"average_rank must be positive, got {average_rank}"
            raise ValueError(msg)
        return cls(
            id=str(data["id"]),
            name=str(data["name"]),
            position=str(data["position"]),
            team=str(data.get("team") or ""),
            average_rank=average_rank,
            standard_deviation=_optional_float(data.get("standard_deviation")),
            projected_points=_optional_float(data.get("projected_points")),
            tier=_optional_int(data.get("tier")),
            position_rank=_optional_int(data.get("position_rank")),
            min_rank=_optional_float(data.get("min_rank")),
            max_rank=_optional_float(data.get("max_rank")),
            bye_week=_optional_int(data.get("bye_week")),
            expert_ranks=tuple(int(r) for r in data.get("expert_ranks") or ()),
            image_url=data.get("image_url"),
        )

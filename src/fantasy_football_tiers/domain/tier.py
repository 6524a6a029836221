from dataclasses import dataclass
from typing import Any

from fantasy_football_tiers.domain.ranked_entity import RankedEntity

TIER_LABELS: tuple[str, ...] = (
    "Elite",
    "Excellent",
    "Very Good",
    "Good",
    "Solid",
    "Decent",
    "Deep",
    "Late Round",
    "Waiver Wire",
    "Bench",
)


def tier_label(tier: int) -> str:
    if 1 <= tier <= len(TIER_LABELS):
        return TIER_LABELS[tier - 1]
    return f"Tier {tier}"


@dataclass(frozen=True)
class TierGroup:
    tier: int
    players: tuple[RankedEntity, ...]
    avg_value: float
    min_rank: int  # 1-based position in the sorted input
    max_rank: int
    avg_rank: float

    @property
    def label(self) -> str:
        return tier_label(self.tier)

    def to_dict(self) -> dict[str, Any]:
        return {
            "tier": self.tier,
            "label": self.label,
            "avgValue": self.avg_value,
            "minRank": self.min_rank,
            "maxRank": self.max_rank,
            "avgRank": self.avg_rank,
            "count": len(self.players),
            "players": [p.to_dict() for p in self.players],
        }

import math
import statistics

from fantasy_football_tiers.domain.ranked_entity import RankedEntity, ScoringFormat
from fantasy_football_tiers.domain.tier import TierGroup

# Relative scarcity of each position
_POSITION_MULTIPLIERS: dict[str, float] = {
    "QB": 0.8,
    "RB": 1.2,
    "WR": 1.0,
    "TE": 1.1,
    "K": 0.5,
    "DST": 0.6,
}
_FORMAT_BOOST = 1.1
_MIN_CONSISTENCY = 0.5


def player_value(entity: RankedEntity, scoring_format: ScoringFormat = ScoringFormat.PPR) -> float:
    """Derived draft value: ``100 / sqrt(avg rank)`` scaled by position, format and consistency."""
    value = 100 / math.sqrt(entity.sort_rank)
    value *= _POSITION_MULTIPLIERS.get(entity.position, 1.0)

    if entity.position == "RB" and scoring_format is ScoringFormat.STANDARD:
        value *= _FORMAT_BOOST
    elif entity.position == "WR" and scoring_format is ScoringFormat.PPR:
        value *= _FORMAT_BOOST

    if entity.projected_points:
        value += entity.projected_points / 100

    if entity.standard_deviation:
        value *= max(1 - entity.standard_deviation / 100, _MIN_CONSISTENCY)

    return value


def generate_tiers(
    entities: list[RankedEntity],
    max_tiers: int = 6,
    scoring_format: ScoringFormat = ScoringFormat.PPR,
) -> list[TierGroup]:
    """Partition entities into at most ``max_tiers`` contiguous tiers at the largest value drops.

    Args:
        entities: Ranked entities; re-sorted stably by average rank (missing ranks last).
        max_tiers: Upper bound on the number of tiers.
        scoring_format: Format whose position adjustments feed the value function.

    Returns:
        Tiers numbered from 1 (best) covering every input entity exactly once.
    """
    if max_tiers < 1:
        msg = f"max_tiers must be at least 1, got {max_tiers}"
        raise ValueError(msg)
    if not entities:
        return []

    ordered = sorted(entities, key=lambda e: e.sort_rank)
    values = [player_value(e, scoring_format) for e in ordered]
    breaks = _find_tier_breaks(values, max_tiers)

    tiers: list[TierGroup] = []
    start = 0
    for end in [*breaks, len(ordered) - 1]:
        members = ordered[start : end + 1]
        tiers.append(
            TierGroup(
                tier=len(tiers) + 1,
                players=tuple(members),
                avg_value=statistics.fmean(values[start : end + 1]),
                min_rank=start + 1,
                max_rank=end + 1,
                avg_rank=statistics.fmean(e.sort_rank for e in members),
            )
        )
        start = end + 1
    return tiers


def _find_tier_breaks(values: list[float], max_tiers: int) -> list[int]:
    """Indices ``i`` after which a tier ends, chosen greedily by drop size with minimum spacing."""
    n = len(values)
    drops = [(i, values[i] - values[i + 1]) for i in range(n - 1)]
    # sorted() is stable, so equal drops keep rank order
    drops.sort(key=lambda d: d[1], reverse=True)

    min_tier_size = max(2, n // (max_tiers * 2))
    selected: list[int] = []
    for index, _drop in drops:
        if len(selected) >= max_tiers - 1:
            break
        if any(abs(index - chosen) < min_tier_size for chosen in selected):
            continue
        selected.append(index)
    return sorted(selected)

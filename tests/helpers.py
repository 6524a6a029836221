from fantasy_football_tiers.domain.ranked_entity import RankedEntity


def make_entity(
    rank: float | None,
    *,
    position: str = "RB",
    id: str | None = None,
    name: str | None = None,
    std: float | None = None,
    points: float | None = None,
) -> RankedEntity:
    ident = id or f"{position.lower()}-{rank}"
    return RankedEntity(
        id=ident,
        name=name or f"Player {ident}",
        position=position,
        team="FA",
        average_rank=rank,
        standard_deviation=std,
        projected_points=points,
    )


def make_entities(*ranks: float, position: str = "RB") -> list[RankedEntity]:
    return [make_entity(r, position=position) for r in ranks]

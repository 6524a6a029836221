"""Built-in rankings served when neither the provider nor the cache has data."""

import logging

from fantasy_football_tiers.domain.ranked_entity import FETCHABLE_POSITIONS, Position, RankedEntity
from fantasy_football_tiers.ingest.fantasypros_source import estimate_projected_points

logger = logging.getLogger(__name__)

# (name, team, average rank, rank std dev, bye week)
_Row = tuple[str, str, float, float, int]

_SAMPLE_ROWS: dict[Position, tuple[_Row, ...]] = {
    Position.QB: (
        ("Josh Allen", "BUF", 1.4, 0.6, 7),
        ("Lamar Jackson", "BAL", 2.1, 0.9, 7),
        ("Jalen Hurts", "PHI", 3.3, 1.2, 9),
        ("Joe Burrow", "CIN", 4.2, 1.4, 10),
        ("Jayden Daniels", "WAS", 5.0, 1.7, 12),
        ("Patrick Mahomes", "KC", 6.8, 2.0, 10),
        ("Baker Mayfield", "TB", 7.9, 2.2, 9),
        ("Kyler Murray", "ARI", 9.1, 2.6, 8),
        ("Bo Nix", "DEN", 10.4, 2.9, 12),
        ("Brock Purdy", "SF", 11.2, 3.1, 14),
        ("Jared Goff", "DET", 12.6, 3.0, 8),
        ("Justin Herbert", "LAC", 14.0, 3.4, 12),
    ),
    Position.RB: (
        ("Bijan Robinson", "ATL", 1.3, 0.5, 5),
        ("Saquon Barkley", "PHI", 1.9, 0.8, 9),
        ("Jahmyr Gibbs", "DET", 2.8, 0.9, 8),
        ("Christian McCaffrey", "SF", 4.9, 2.1, 14),
        ("Derrick Henry", "BAL", 5.6, 1.8, 7),
        ("Ashton Jeanty", "LV", 6.2, 2.4, 8),
        ("De'Von Achane", "MIA", 7.0, 2.2, 12),
        ("Jonathan Taylor", "IND", 8.4, 2.5, 11),
        ("Josh Jacobs", "GB", 8.9, 2.3, 5),
        ("Bucky Irving", "TB", 10.7, 3.0, 9),
        ("Kyren Williams", "LAR", 12.1, 3.3, 8),
        ("James Cook", "BUF", 12.8, 3.5, 7),
    ),
    Position.WR: (
        ("Ja'Marr Chase", "CIN", 1.2, 0.4, 10),
        ("Justin Jefferson", "MIN", 2.2, 0.8, 6),
        ("CeeDee Lamb", "DAL", 2.9, 1.0, 10),
        ("Puka Nacua", "LAR", 4.4, 1.3, 8),
        ("Malik Nabers", "NYG", 4.8, 1.5, 14),
        ("Amon-Ra St. Brown", "DET", 5.9, 1.6, 8),
        ("Nico Collins", "HOU", 7.3, 2.0, 6),
        ("Brian Thomas Jr.", "JAX", 7.8, 2.4, 8),
        ("A.J. Brown", "PHI", 9.6, 2.5, 9),
        ("Drake London", "ATL", 10.2, 2.7, 5),
        ("Ladd McConkey", "LAC", 11.9, 3.1, 12),
        ("Tee Higgins", "CIN", 13.1, 3.4, 10),
    ),
    Position.TE: (
        ("Brock Bowers", "LV", 1.2, 0.5, 8),
        ("Trey McBride", "ARI", 1.9, 0.7, 8),
        ("George Kittle", "SF", 3.1, 1.0, 14),
        ("Sam LaPorta", "DET", 4.6, 1.4, 8),
        ("T.J. Hockenson", "MIN", 5.8, 1.9, 6),
        ("Mark Andrews", "BAL", 6.4, 2.0, 7),
        ("Travis Kelce", "KC", 6.9, 2.2, 10),
        ("Tucker Kraft", "GB", 8.7, 2.6, 5),
        ("David Njoku", "CLE", 9.5, 2.8, 9),
        ("Evan Engram", "DEN", 10.8, 3.0, 12),
    ),
    Position.K: (
        ("Brandon Aubrey", "DAL", 1.5, 0.7, 10),
        ("Jake Bates", "DET", 2.7, 1.1, 8),
        ("Cameron Dicker", "LAC", 3.2, 1.2, 12),
        ("Chris Boswell", "PIT", 4.1, 1.5, 5),
        ("Ka'imi Fairbairn", "HOU", 5.3, 1.8, 6),
        ("Wil Lutz", "DEN", 6.6, 2.0, 12),
        ("Tyler Bass", "BUF", 7.4, 2.3, 7),
        ("Harrison Butker", "KC", 8.2, 2.5, 10),
    ),
    Position.DST: (
        ("Denver Broncos", "DEN", 1.6, 0.8, 12),
        ("Philadelphia Eagles", "PHI", 2.3, 1.0, 9),
        ("Pittsburgh Steelers", "PIT", 3.4, 1.3, 5),
        ("Baltimore Ravens", "BAL", 4.0, 1.4, 7),
        ("Houston Texans", "HOU", 5.2, 1.7, 6),
        ("Minnesota Vikings", "MIN", 5.9, 1.9, 6),
        ("Buffalo Bills", "BUF", 7.1, 2.2, 7),
        ("Kansas City Chiefs", "KC", 8.3, 2.4, 10),
    ),
}


class SampleDataSource:
    """Static rankings for every fetchable position, identical across scoring formats."""

    def __init__(self, rows: dict[Position, tuple[_Row, ...]] | None = None) -> None:
        self._rows = _SAMPLE_ROWS if rows is None else rows

    def positions(self) -> tuple[Position, ...]:
        return tuple(p for p in FETCHABLE_POSITIONS if p in self._rows)

    def get(self, group: Position) -> list[RankedEntity] | None:
        rows = self._rows.get(group)
        if not rows:
            logger.debug("No sample data for %s", group)
            return None
        return [
            RankedEntity(
                id=f"sample-{group.value.lower()}-{index}",
                name=name,
                position=group.value,
                team=team,
                average_rank=average_rank,
                standard_deviation=std,
                projected_points=estimate_projected_points(group.value, average_rank),
                position_rank=index,
                bye_week=bye,
            )
            for index, (name, team, average_rank, std, bye) in enumerate(rows, start=1)
        ]

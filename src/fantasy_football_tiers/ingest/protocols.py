from typing import Protocol, runtime_checkable

from fantasy_football_tiers.domain.errors import TransientFetchError
from fantasy_football_tiers.domain.ranked_entity import Position, RankedEntity, ScoringFormat
from fantasy_football_tiers.domain.result import Result


@runtime_checkable
class UpstreamClient(Protocol):
    """One network round trip per (group, format).

    Failures come back as ``Err``; an empty ``Ok`` list means the provider
    ranked nobody, not that the call failed.
    """

    @property
    def source_detail(self) -> str: ...

    def fetch(self, group: Position, fmt: ScoringFormat) -> Result[list[RankedEntity], TransientFetchError]: ...


@runtime_checkable
class FallbackSource(Protocol):
    def get(self, group: Position) -> list[RankedEntity] | None: ...

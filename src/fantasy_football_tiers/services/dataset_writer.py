import logging
from collections.abc import Sequence

from fantasy_football_tiers.cache.store import CacheStore
from fantasy_football_tiers.domain.dataset import DatasetAction
from fantasy_football_tiers.domain.errors import InvalidRequestError
from fantasy_football_tiers.domain.pipeline import DataSourceTag
from fantasy_football_tiers.domain.ranked_entity import Position, RankedEntity, ScoringFormat
from fantasy_football_tiers.repos.dataset_repo import SqliteDatasetRepo

logger = logging.getLogger(__name__)


class DatasetWriter:
    """Manual edits to a (position, format) dataset, written to the cache and the database."""

    def __init__(self, cache: CacheStore, repo: SqliteDatasetRepo | None = None) -> None:
        self._cache = cache
        self._repo = repo

    def current(self, group: Position, fmt: ScoringFormat) -> list[RankedEntity]:
        entry = self._cache.get(group, fmt)
        if entry is not None:
            return list(entry.data)
        if self._repo is not None:
            return self._repo.get_players(group.value, fmt.value) or []
        return []

    def apply(
        self,
        group: Position,
        fmt: ScoringFormat,
        action: DatasetAction,
        entities: Sequence[RankedEntity] = (),
    ) -> int:
        """Replace, extend or empty the dataset. Returns the resulting entity count."""
        match action:
            case DatasetAction.SET:
                updated = list(entities)
            case DatasetAction.APPEND:
                updated = self.current(group, fmt) + list(entities)
            case DatasetAction.CLEAR:
                updated = []
            case _:
                msg = f"Unknown dataset action: {action!r}"
                raise InvalidRequestError(msg)

        if not self._cache.set(group, fmt, updated, DataSourceTag.MANUAL):
            logger.warning("Manual %s for %s %s was not cached", action, group, fmt)
        if self._repo is not None:
            self._repo.store_players(group.value, fmt.value, updated, DataSourceTag.MANUAL)
        logger.info("Manual %s for %s %s: %d entities", action, group, fmt, len(updated))
        return len(updated)

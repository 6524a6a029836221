import json
import logging
import sqlite3
import threading
import time
from collections.abc import Callable, Iterable

from fantasy_football_tiers.domain.dataset import DatasetInfo, DatasetStats
from fantasy_football_tiers.domain.ranked_entity import RankedEntity

logger = logging.getLogger(__name__)

_SECONDS_PER_DAY = 86400


class SqliteDatasetRepo:
    """Durable history of stored rankings, one active dataset per (position, format)."""

    def __init__(self, conn: sqlite3.Connection, clock: Callable[[], float] = time.time) -> None:
        self._conn = conn
        self._clock = clock
        self._lock = threading.Lock()

    def store_players(self, position: str, scoring_format: str, players: Iterable[RankedEntity], source: str) -> int:
        players = list(players)
        with self._lock:
            try:
                self._conn.execute(
                    "UPDATE datasets SET is_active = 0 WHERE position = ? AND scoring_format = ? AND is_active = 1",
                    (position, scoring_format),
                )
                cursor = self._conn.execute(
                    """INSERT INTO datasets (position, scoring_format, source, player_count, created_at, is_active)
                       VALUES (?, ?, ?, ?, ?, 1)""",
                    (position, scoring_format, str(source), len(players), self._clock()),
                )
                dataset_id = cursor.lastrowid
                self._conn.executemany(
                    """INSERT INTO players
                           (dataset_id, ordinal, player_id, name, position, team,
                            average_rank, standard_deviation, projected_points, tier, payload)
                       VALUES (?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?)""",
                    [
                        (
                            dataset_id,
                            ordinal,
                            p.id,
                            p.name,
                            p.position,
                            p.team,
                            p.average_rank,
                            p.standard_deviation,
                            p.projected_points,
                            p.tier,
                            json.dumps(p.to_dict()),
                        )
                        for ordinal, p in enumerate(players)
                    ],
                )
                self._conn.commit()
            except sqlite3.Error:
                self._conn.rollback()
                raise
        logger.debug("Stored dataset %s for %s %s (%d players)", dataset_id, position, scoring_format, len(players))
        return dataset_id  # type: ignore[return-value]

    def get_players(self, position: str, scoring_format: str) -> list[RankedEntity] | None:
        """Players of the active dataset, or None when nothing was ever stored for the key."""
        with self._lock:
            row = self._conn.execute(
                "SELECT id FROM datasets WHERE position = ? AND scoring_format = ? AND is_active = 1"
                " ORDER BY created_at DESC, id DESC LIMIT 1",
                (position, scoring_format),
            ).fetchone()
            if row is None:
                return None
            rows = self._conn.execute(
                "SELECT payload FROM players WHERE dataset_id = ? ORDER BY ordinal",
                (row[0],),
            ).fetchall()
        return [RankedEntity.from_dict(json.loads(r[0])) for r in rows]

    def get_datasets(self, active_only: bool = False) -> list[DatasetInfo]:
        sql = "SELECT * FROM datasets"
        if active_only:
            sql += " WHERE is_active = 1"
        sql += " ORDER BY created_at DESC, id DESC"
        with self._lock:
            rows = self._conn.execute(sql).fetchall()
        return [self._row_to_info(row) for row in rows]

    def cleanup_old_data(self, days: float) -> int:
        """Delete inactive datasets created more than ``days`` days ago. Returns datasets removed."""
        cutoff = self._clock() - days * _SECONDS_PER_DAY
        with self._lock:
            try:
                stale_ids = [
                    r[0]
                    for r in self._conn.execute(
                        "SELECT id FROM datasets WHERE created_at < ? AND is_active = 0", (cutoff,)
                    ).fetchall()
                ]
                self._conn.executemany("DELETE FROM players WHERE dataset_id = ?", [(i,) for i in stale_ids])
                self._conn.executemany("DELETE FROM datasets WHERE id = ?", [(i,) for i in stale_ids])
                self._conn.commit()
            except sqlite3.Error:
                self._conn.rollback()
                raise
        logger.info("Removed %d datasets older than %s days", len(stale_ids), days)
        return len(stale_ids)

    def get_stats(self) -> DatasetStats:
        with self._lock:
            total, active, oldest, newest = self._conn.execute(
                "SELECT COUNT(*), COALESCE(SUM(is_active), 0), MIN(created_at), MAX(created_at) FROM datasets"
            ).fetchone()
            (players,) = self._conn.execute("SELECT COUNT(*) FROM players").fetchone()
        return DatasetStats(
            total_datasets=total,
            active_datasets=active,
            total_players=players,
            oldest=oldest,
            newest=newest,
        )

    @staticmethod
    def _row_to_info(row: sqlite3.Row) -> DatasetInfo:
        return DatasetInfo(
            id=row["id"],
            position=row["position"],
            scoring_format=row["scoring_format"],
            source=row["source"],
            player_count=row["player_count"],
            created_at=row["created_at"],
            is_active=bool(row["is_active"]),
        )

"""Freshness-aware cache of ranked-entity snapshots.

Each (group, format) pair maps to one CacheEntry stored under
``<key_prefix><group>_<format>`` in a StorageBackend. Freshness is derived
from the entry's age on every read and is never stored:

    fresh   age <= fresh window
    stale   fresh window < age <= stale window
    expired age > stale window
    missing no usable entry

Entries past their absolute expiry, or written under another schema
version, are deleted when read.

Usage:
    store = CacheStore(SqliteStorageBackend(path), CacheSettings())
    store.set(Position.RB, ScoringFormat.PPR, players, source=DataSourceTag.API)
    if store.needs_refresh(Position.RB, ScoringFormat.PPR):
        ...
"""

from __future__ import annotations

import logging
import threading
import time
from collections import defaultdict
from typing import TYPE_CHECKING

from tenacity import RetryCallState, Retrying, retry_if_exception_type, stop_after_attempt, wait_none

from fantasy_football_tiers.cache.serialization import CacheEntrySerializer
from fantasy_football_tiers.domain.cache_entry import CacheEntry, CacheStats, CacheStatus, CacheStatusDisplay
from fantasy_football_tiers.domain.errors import StorageFullError
from fantasy_football_tiers.domain.pipeline import DataSourceTag
from fantasy_football_tiers.domain.settings import CacheSettings

if TYPE_CHECKING:
    from collections.abc import Callable, Iterable

    from fantasy_football_tiers.cache.protocol import StorageBackend
    from fantasy_football_tiers.domain.ranked_entity import RankedEntity

logger = logging.getLogger(__name__)

_SECONDS_PER_DAY = 86400


class CacheStore:
    def __init__(
        self,
        backend: StorageBackend,
        settings: CacheSettings | None = None,
        clock: Callable[[], float] = time.time,
    ) -> None:
        self._backend = backend
        self._settings = settings or CacheSettings()
        self._clock = clock
        self._serializer = CacheEntrySerializer()
        self._locks: defaultdict[str, threading.RLock] = defaultdict(threading.RLock)
        self._locks_guard = threading.Lock()

    @property
    def settings(self) -> CacheSettings:
        return self._settings

    def key(self, group: str, fmt: str) -> str:
        return f"{self._settings.key_prefix}{group}_{fmt}"

    def _lock(self, key: str) -> threading.RLock:
        with self._locks_guard:
            return self._locks[key]

    def get(self, group: str, fmt: str) -> CacheEntry | None:
        """Return the entry for (group, format), deleting it if unusable."""
        return self._read_key(self.key(group, fmt))

    def _read_key(self, key: str) -> CacheEntry | None:
        with self._lock(key):
            raw = self._backend.get(key)
            if raw is None:
                return None
            try:
                record = self._serializer.load_raw(raw)
                if record.get("version") != self._settings.schema_version:
                    logger.debug("Discarding %s written with schema %r", key, record.get("version"))
                    self._backend.delete(key)
                    return None
                entry = CacheEntry.from_dict(record)
            except (ValueError, KeyError, TypeError) as e:
                # json.JSONDecodeError is a ValueError
                logger.warning("Discarding unreadable cache record %s: %s", key, e)
                self._backend.delete(key)
                return None
            if self._clock() > entry.expiry:
                logger.debug("Evicting %s past absolute expiry", key)
                self._backend.delete(key)
                return None
            return entry

    def set(
        self,
        group: str,
        fmt: str,
        entities: Iterable[RankedEntity],
        source: str = DataSourceTag.API,
    ) -> bool:
        """Store a snapshot. Returns False when the write failed after one eviction pass."""
        key = self.key(group, fmt)
        now = self._clock()
        entry = CacheEntry(
            data=tuple(entities),
            timestamp=now,
            expiry=now + self._settings.max_age_seconds,
            source=str(source),
            version=self._settings.schema_version,
            group=str(group),
            format=str(fmt),
        )
        payload = self._serializer.serialize(entry)

        def _evict_before_retry(retry_state: RetryCallState) -> None:
            logger.warning("Cache write for %s failed (%s), evicting oldest entries", key, retry_state.outcome)
            self.evict_oldest(self._settings.evict_count)

        retrying = Retrying(
            stop=stop_after_attempt(2),
            wait=wait_none(),
            retry=retry_if_exception_type(StorageFullError),
            before_sleep=_evict_before_retry,
            reraise=True,
        )
        try:
            retrying(self._write, key, payload)
        except StorageFullError as e:
            logger.warning("Giving up caching %s: %s", key, e)
            return False
        logger.debug("Cached %d entities under %s (source=%s)", len(entry.data), key, entry.source)
        return True

    def _write(self, key: str, payload: str) -> None:
        with self._lock(key):
            self._backend.put(key, payload)

    def status(self, group: str, fmt: str) -> CacheStatus:
        entry = self.get(group, fmt)
        if entry is None:
            return CacheStatus.MISSING
        return self.classify(entry)

    def classify(self, entry: CacheEntry) -> CacheStatus:
        age = entry.age(self._clock())
        if age <= self._settings.fresh_window_seconds:
            return CacheStatus.FRESH
        if age <= self._settings.stale_window_seconds:
            return CacheStatus.STALE
        return CacheStatus.EXPIRED

    def needs_refresh(self, group: str, fmt: str) -> bool:
        return self.status(group, fmt).needs_refresh

    def is_fresh(self, group: str, fmt: str) -> bool:
        return self.status(group, fmt) is CacheStatus.FRESH

    def is_usable(self, group: str, fmt: str) -> bool:
        return self.status(group, fmt) in (CacheStatus.FRESH, CacheStatus.STALE)

    def remove(self, group: str, fmt: str) -> None:
        key = self.key(group, fmt)
        with self._lock(key):
            self._backend.delete(key)

    def clear(self) -> int:
        """Remove every record under this cache's prefix and nothing else."""
        keys = self._backend.keys(self._settings.key_prefix)
        for key in keys:
            with self._lock(key):
                self._backend.delete(key)
        logger.info("Cleared %d cache entries", len(keys))
        return len(keys)

    def entries(self) -> list[CacheEntry]:
        """All usable entries under the prefix. Unusable records are removed."""
        result: list[CacheEntry] = []
        for key in self._backend.keys(self._settings.key_prefix):
            entry = self._read_key(key)
            if entry is not None:
                result.append(entry)
        return result

    def evict_oldest(self, count: int) -> int:
        """Remove the ``count`` entries with the smallest timestamps."""
        if count <= 0:
            return 0
        victims = sorted(self.entries(), key=lambda e: e.timestamp)[:count]
        for entry in victims:
            self.remove(entry.group, entry.format)
        if victims:
            logger.info("Evicted %d oldest cache entries", len(victims))
        return len(victims)

    def cleanup_expired(self) -> int:
        """Delete records past their absolute expiry or with a foreign schema version."""
        before = len(self._backend.keys(self._settings.key_prefix))
        remaining = len(self.entries())
        return before - remaining

    def purge_older_than(self, days: float) -> int:
        """Delete entries whose timestamp is more than ``days`` days old."""
        cutoff = self._clock() - days * _SECONDS_PER_DAY
        removed = 0
        for entry in self.entries():
            if entry.timestamp < cutoff:
                self.remove(entry.group, entry.format)
                removed += 1
        logger.info("Purged %d cache entries older than %s days", removed, days)
        return removed

    def stats(self) -> CacheStats:
        entries = self.entries()
        if not entries:
            return CacheStats(total_entries=0, total_bytes=0, oldest=None, newest=None)
        timestamps = [e.timestamp for e in entries]
        return CacheStats(
            total_entries=len(entries),
            total_bytes=self._backend.size_bytes(self._settings.key_prefix),
            oldest=min(timestamps),
            newest=max(timestamps),
        )

    def status_display(self, group: str, fmt: str) -> CacheStatusDisplay:
        entry = self.get(group, fmt)
        if entry is None:
            return CacheStatusDisplay(CacheStatus.MISSING, "No cached data")
        status = self.classify(entry)
        if status is CacheStatus.FRESH:
            return CacheStatusDisplay(status, f"Updated {self._time_ago(entry.timestamp)}")
        if status is CacheStatus.STALE:
            return CacheStatusDisplay(status, f"Cached {self._time_ago(entry.timestamp)}")
        return CacheStatusDisplay(status, "Data expired")

    def _time_ago(self, timestamp: float) -> str:
        minutes = int((self._clock() - timestamp) // 60)
        hours = minutes // 60
        days = hours // 24
        if days > 0:
            return f"{days}d ago"
        if hours > 0:
            return f"{hours}h ago"
        if minutes > 0:
            return f"{minutes}m ago"
        return "just now"

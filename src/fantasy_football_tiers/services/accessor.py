import logging
import threading
from collections.abc import Callable, Iterable
from dataclasses import dataclass, field
from datetime import datetime
from typing import Any, TypeAlias

from fantasy_football_tiers.cache.store import CacheStore
from fantasy_football_tiers.domain.cache_entry import CacheStatus
from fantasy_football_tiers.domain.pipeline import DataSourceTag, PipelineExecutionReport, PipelineRequest
from fantasy_football_tiers.domain.ranked_entity import Position, RankedEntity, ScoringFormat
from fantasy_football_tiers.domain.tier import TierGroup
from fantasy_football_tiers.services.pipeline import FetchOrchestrator
from fantasy_football_tiers.services.tier_generator import generate_tiers

logger = logging.getLogger(__name__)

RankingsKey: TypeAlias = tuple[Position, ScoringFormat]


@dataclass(frozen=True)
class AccessResult:
    group: Position
    format: ScoringFormat
    entities: list[RankedEntity] = field(default_factory=list)
    provenance: DataSourceTag = DataSourceTag.NONE
    cache_status: CacheStatus = CacheStatus.MISSING
    error: str | None = None

    @property
    def is_fallback(self) -> bool:
        return self.provenance in (DataSourceTag.CACHE_STALE, DataSourceTag.SAMPLE)

    def to_dict(self) -> dict[str, Any]:
        result: dict[str, Any] = {
            "success": self.provenance is not DataSourceTag.NONE,
            "group": self.group.value,
            "format": self.format.value,
            "entities": [e.to_dict() for e in self.entities],
            "count": len(self.entities),
            "provenance": self.provenance.value,
            "cacheStatus": self.cache_status.value,
        }
        if self.error is not None:
            result["error"] = self.error
        return result


class RankingsAccessor:
    """Read path for the presentation layer: always returns the best data available right now.

    With a stale-data callback attached (normally ``BackgroundRefresher.wake``)
    a stale or expired cache entry is served immediately and the refresh
    happens in the background. Without one, the caller waits for the
    orchestrator's fallback chain.
    """

    def __init__(
        self,
        cache: CacheStore,
        orchestrator: FetchOrchestrator,
        tracked: Iterable[RankingsKey] = (),
        default_tier_count: int = 6,
        on_stale: Callable[[], None] | None = None,
    ) -> None:
        self._cache = cache
        self._orchestrator = orchestrator
        self._tracked: set[RankingsKey] = set(tracked)
        self._tracked_lock = threading.Lock()
        self._default_tier_count = default_tier_count
        self.on_stale = on_stale

    @property
    def tracked(self) -> tuple[RankingsKey, ...]:
        with self._tracked_lock:
            return tuple(sorted(self._tracked))

    def track(self, group: Position, fmt: ScoringFormat) -> None:
        with self._tracked_lock:
            self._tracked.add((group, fmt))

    def get(self, group: Position, fmt: ScoringFormat, force_refresh: bool = False) -> AccessResult:
        self.track(group, fmt)
        entry = self._cache.get(group, fmt)
        status = self._cache.classify(entry) if entry is not None else CacheStatus.MISSING

        if not force_refresh and status is CacheStatus.FRESH and entry is not None:
            return AccessResult(group, fmt, list(entry.data), DataSourceTag.CACHE, status)

        if not force_refresh and entry is not None and self.on_stale is not None:
            logger.debug("Serving %s cache for %s %s while a refresh is scheduled", status, group, fmt)
            self.on_stale()
            return AccessResult(group, fmt, list(entry.data), DataSourceTag.CACHE_STALE, status)

        resolution = self._orchestrator.resolve(group, fmt, force_refresh=force_refresh)
        outcome = resolution.outcome
        return AccessResult(
            group,
            fmt,
            resolution.entities,
            outcome.source,
            self._cache.status(group, fmt),
            outcome.error,
        )

    def tiers(
        self, group: Position, fmt: ScoringFormat, max_tiers: int | None = None
    ) -> tuple[AccessResult, list[TierGroup]]:
        result = self.get(group, fmt)
        count = self._default_tier_count if max_tiers is None else max_tiers
        tiers = generate_tiers(result.entities, count, fmt)
        return result, tiers

    def needs_background_refresh(self) -> dict[RankingsKey, bool]:
        return {key: self._cache.needs_refresh(*key) for key in self.tracked}


class BackgroundRefresher:
    """Daemon thread that refreshes tracked rankings whose cache needs it.

    Usage:
        refresher = BackgroundRefresher(accessor, orchestrator, interval_seconds=600)
        accessor.on_stale = refresher.wake
        refresher.start()
        # ... application runs ...
        refresher.stop()
    """

    def __init__(
        self,
        accessor: RankingsAccessor,
        orchestrator: FetchOrchestrator,
        interval_seconds: float = 600.0,
    ) -> None:
        self._accessor = accessor
        self._orchestrator = orchestrator
        self._interval = interval_seconds

        self._thread: threading.Thread | None = None
        self._stop_event = threading.Event()
        self._wake_event = threading.Event()
        self._run_lock = threading.Lock()
        self._last_run: datetime | None = None

    @property
    def is_running(self) -> bool:
        return self._thread is not None and self._thread.is_alive()

    @property
    def last_run(self) -> datetime | None:
        return self._last_run

    def start(self) -> bool:
        """Start the refresh thread. Returns False if it is already running."""
        if self.is_running:
            logger.warning("Background refresher already running")
            return False
        self._stop_event.clear()
        self._thread = threading.Thread(target=self._run_loop, name="fftiers-refresher", daemon=True)
        self._thread.start()
        logger.info("Background refresher started (interval: %ss)", self._interval)
        return True

    def stop(self, timeout: float = 30.0) -> bool:
        """Stop the thread, cancelling pairs that have not started. Returns False on timeout."""
        if not self.is_running:
            return True
        self._stop_event.set()
        self._wake_event.set()
        if self._thread is not None:
            self._thread.join(timeout=timeout)
            if self._thread.is_alive():
                logger.warning("Background refresher did not stop in time")
                return False
        logger.info("Background refresher stopped")
        return True

    def wake(self) -> None:
        """Ask for a refresh check now instead of at the next interval."""
        self._wake_event.set()

    def run_once(self) -> PipelineExecutionReport | None:
        """Refresh every tracked key that needs it.

        Returns None when nothing needed refreshing or another run is in progress.
        """
        if not self._run_lock.acquire(blocking=False):
            logger.debug("Refresh already in progress, skipping")
            return None
        try:
            self._last_run = datetime.now()
            stale = [key for key, needed in self._accessor.needs_background_refresh().items() if needed]
            if not stale:
                return None
            logger.info("Background refresh of %d rankings", len(stale))
            return self._orchestrator.run(PipelineRequest(), pairs=stale, cancel=self._stop_event)
        finally:
            self._run_lock.release()

    def _run_loop(self) -> None:
        while not self._stop_event.is_set():
            try:
                self.run_once()
            except Exception:
                logger.exception("Error in background refresh")
            self._wake_event.wait(self._interval)
            self._wake_event.clear()

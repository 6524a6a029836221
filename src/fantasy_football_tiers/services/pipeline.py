"""Fetch orchestrator: fill the cache for every requested (position, format) pair.

Per pair, in order:
1. fresh cache entry and no force refresh -> use it (source ``cache``)
2. upstream fetch succeeds -> write cache/database (source ``api``)
3. fetch fails but a cache entry survives -> use it (source ``cache-stale``)
4. otherwise the built-in sample dataset (source ``sample``)

Only a pair with no sample dataset either reports ``success: false``.
"""

import logging
import sqlite3
import threading
import time
import uuid
from collections.abc import Callable, Sequence
from concurrent.futures import ThreadPoolExecutor
from dataclasses import dataclass, field

from fantasy_football_tiers.cache.store import CacheStore
from fantasy_football_tiers.domain.cache_entry import CacheStatus
from fantasy_football_tiers.domain.errors import AllSourcesExhaustedError
from fantasy_football_tiers.domain.pipeline import (
    DataSourceTag,
    PipelineExecutionReport,
    PipelineItemOutcome,
    PipelineRequest,
)
from fantasy_football_tiers.domain.ranked_entity import Position, RankedEntity, ScoringFormat
from fantasy_football_tiers.domain.result import Ok
from fantasy_football_tiers.domain.settings import PipelineSettings
from fantasy_football_tiers.ingest.protocols import FallbackSource, UpstreamClient
from fantasy_football_tiers.repos.dataset_repo import SqliteDatasetRepo

logger = logging.getLogger(__name__)


class Pacer:
    """Keeps successive upstream calls at least ``delay_seconds`` apart, across threads."""

    def __init__(
        self,
        delay_seconds: float,
        clock: Callable[[], float] = time.monotonic,
        sleep: Callable[[float], None] = time.sleep,
    ) -> None:
        self._delay = delay_seconds
        self._clock = clock
        self._sleep = sleep
        self._lock = threading.Lock()
        self._next_allowed: float | None = None

    def wait(self) -> None:
        with self._lock:
            now = self._clock()
            if self._next_allowed is not None and now < self._next_allowed:
                self._sleep(self._next_allowed - now)
                now = self._next_allowed
            self._next_allowed = now + self._delay


@dataclass(frozen=True)
class ItemResolution:
    """Everything one pair produced: the outcome row, the data served and what was persisted."""

    outcome: PipelineItemOutcome
    entities: list[RankedEntity] = field(default_factory=list)
    cache_written: bool = False
    database_written: bool = False
    report_errors: tuple[str, ...] = ()


def new_execution_id(clock: Callable[[], float] = time.time) -> str:
    return f"pipeline-{int(clock() * 1000)}-{uuid.uuid4().hex[:9]}"


class FetchOrchestrator:
    def __init__(
        self,
        cache: CacheStore,
        upstream: UpstreamClient,
        sample: FallbackSource,
        repo: SqliteDatasetRepo | None = None,
        settings: PipelineSettings | None = None,
        pacer: Pacer | None = None,
        clock: Callable[[], float] = time.time,
    ) -> None:
        self._cache = cache
        self._upstream = upstream
        self._sample = sample
        self._repo = repo
        self._settings = settings or PipelineSettings()
        self._pacer = pacer or Pacer(self._settings.politeness_delay_ms / 1000)
        self._clock = clock

    def run(
        self,
        request: PipelineRequest,
        *,
        pairs: Sequence[tuple[Position, ScoringFormat]] | None = None,
        cancel: threading.Event | None = None,
    ) -> PipelineExecutionReport:
        """Process every pair; one pair failing never stops the others.

        ``pairs`` overrides the request's groups x formats matrix. A set
        ``cancel`` event skips pairs that have not started yet.
        """
        work = list(pairs) if pairs is not None else request.pairs()
        report = PipelineExecutionReport(
            execution_id=new_execution_id(self._clock),
            start_time=self._clock(),
            total_items=len(work),
        )
        logger.info(
            "Pipeline %s starting: %d items (force_refresh=%s)", report.execution_id, len(work), request.force_refresh
        )

        if work:
            workers = max(1, min(self._settings.max_workers, len(work)))
            with ThreadPoolExecutor(max_workers=workers, thread_name_prefix="fftiers-fetch") as executor:
                futures = [executor.submit(self._run_item, group, fmt, request, cancel) for group, fmt in work]
                # Submission order keeps report details in request order
                for (group, fmt), future in zip(work, futures, strict=True):
                    resolution = future.result()
                    self._record(report, resolution)
                    logger.info(
                        "  %s %s: %s via %s (%d players, %dms)",
                        group,
                        fmt,
                        "ok" if resolution.outcome.success else "FAILED",
                        resolution.outcome.source,
                        resolution.outcome.player_count,
                        resolution.outcome.duration_ms,
                    )

        report.end_time = self._clock()
        rate = report.successful_fetches / report.total_items * 100 if report.total_items else 0.0
        logger.info(
            "Pipeline %s finished in %dms. Success: %d/%d (%.1f%%)",
            report.execution_id,
            report.total_duration_ms,
            report.successful_fetches,
            report.total_items,
            rate,
        )
        return report

    def _run_item(
        self,
        group: Position,
        fmt: ScoringFormat,
        request: PipelineRequest,
        cancel: threading.Event | None,
    ) -> ItemResolution:
        if cancel is not None and cancel.is_set():
            return ItemResolution(
                outcome=PipelineItemOutcome(group, fmt, False, 0, DataSourceTag.NONE, 0, "cancelled"),
                report_errors=(f"{group} {fmt}: cancelled",),
            )
        started = time.perf_counter()
        try:
            return self.resolve(
                group,
                fmt,
                force_refresh=request.force_refresh,
                update_cache=request.update_cache,
                update_database=request.update_database,
            )
        except Exception as e:
            logger.exception("Unexpected failure processing %s %s", group, fmt)
            duration_ms = round((time.perf_counter() - started) * 1000)
            return ItemResolution(
                outcome=PipelineItemOutcome(group, fmt, False, 0, DataSourceTag.NONE, duration_ms, str(e)),
                report_errors=(f"{group} {fmt}: {e}",),
            )

    def resolve(
        self,
        group: Position,
        fmt: ScoringFormat,
        *,
        force_refresh: bool = False,
        update_cache: bool = True,
        update_database: bool = True,
    ) -> ItemResolution:
        """Best available data for one pair, walking fresh cache, upstream, stale cache, sample."""
        started = time.perf_counter()

        def elapsed_ms() -> int:
            return round((time.perf_counter() - started) * 1000)

        entry = self._cache.get(group, fmt)
        if not force_refresh and entry is not None and self._cache.classify(entry) is CacheStatus.FRESH:
            data = list(entry.data)
            return ItemResolution(
                outcome=PipelineItemOutcome(group, fmt, True, len(data), DataSourceTag.CACHE, elapsed_ms()),
                entities=data,
            )

        self._pacer.wait()
        result = self._upstream.fetch(group, fmt)
        if isinstance(result, Ok):
            entities = result.value
            cache_written = update_cache and self._cache.set(group, fmt, entities, DataSourceTag.API)
            database_written = False
            errors: list[str] = []
            if update_database and self._repo is not None:
                try:
                    self._repo.store_players(group.value, fmt.value, entities, DataSourceTag.API)
                    database_written = True
                except sqlite3.Error as e:
                    logger.warning("Could not store %s %s in the database: %s", group, fmt, e)
                    errors.append(f"{group} {fmt}: database write failed: {e}")
            return ItemResolution(
                outcome=PipelineItemOutcome(group, fmt, True, len(entities), DataSourceTag.API, elapsed_ms()),
                entities=entities,
                cache_written=cache_written,
                database_written=database_written,
                report_errors=tuple(errors),
            )

        fetch_error = result.error.message
        if entry is not None:
            logger.info("Serving cached %s %s after fetch failure: %s", group, fmt, fetch_error)
            data = list(entry.data)
            return ItemResolution(
                outcome=PipelineItemOutcome(
                    group, fmt, True, len(data), DataSourceTag.CACHE_STALE, elapsed_ms(), fetch_error
                ),
                entities=data,
            )

        sample = self._sample.get(group)
        if sample is not None:
            logger.warning("Falling back to sample data for %s %s: %s", group, fmt, fetch_error)
            return ItemResolution(
                outcome=PipelineItemOutcome(
                    group, fmt, True, len(sample), DataSourceTag.SAMPLE, elapsed_ms(), fetch_error
                ),
                entities=sample,
                report_errors=(f"{group} {fmt}: {fetch_error} (using sample data)",),
            )

        exhausted = AllSourcesExhaustedError(group.value, fmt.value, fetch_error)
        logger.error("%s", exhausted)
        return ItemResolution(
            outcome=PipelineItemOutcome(group, fmt, False, 0, DataSourceTag.NONE, elapsed_ms(), str(exhausted)),
            report_errors=(str(exhausted),),
        )

    @staticmethod
    def _record(report: PipelineExecutionReport, resolution: ItemResolution) -> None:
        report.record(resolution.outcome)
        report.errors.extend(resolution.report_errors)
        if resolution.cache_written:
            report.cache_entries_updated += 1
        if resolution.database_written:
            report.database_updated = True
        if resolution.cache_written or resolution.database_written:
            report.total_players_stored += resolution.outcome.player_count

"""Centralized service container for the CLI and the HTTP app."""

from __future__ import annotations

import logging
from dataclasses import dataclass
from functools import cached_property
from typing import TYPE_CHECKING

if TYPE_CHECKING:
    from config import ConfigurationSet

    from fantasy_football_tiers.cache.protocol import StorageBackend
    from fantasy_football_tiers.cache.store import CacheStore
    from fantasy_football_tiers.domain.settings import (
        CacheSettings,
        PipelineSettings,
        ServerSettings,
        UpstreamSettings,
    )
    from fantasy_football_tiers.ingest.protocols import FallbackSource, UpstreamClient
    from fantasy_football_tiers.repos.dataset_repo import SqliteDatasetRepo
    from fantasy_football_tiers.services.accessor import BackgroundRefresher, RankingsAccessor
    from fantasy_football_tiers.services.dataset_writer import DatasetWriter
    from fantasy_football_tiers.services.pipeline import FetchOrchestrator

logger = logging.getLogger(__name__)


@dataclass
class ServiceConfig:
    """Configuration options for service creation.

    Attributes:
        config_path: YAML file layered under env vars.
        overrides: Highest-priority config values, e.g. from CLI flags.
        http_retries: Upstream attempts per call; 1 or less disables retrying.
    """

    config_path: str = "config.yaml"
    overrides: dict[str, object] | None = None
    http_retries: int = 1


class ServiceContainer:
    """Lazily-initialized container for service dependencies.

    Supports explicit injection for testing via constructor parameters.
    When dependencies are not provided, they are created on first access
    using the default implementations.
    """

    def __init__(
        self,
        config: ServiceConfig | None = None,
        *,
        app_config: ConfigurationSet | None = None,
        backend: StorageBackend | None = None,
        upstream: UpstreamClient | None = None,
        sample: FallbackSource | None = None,
        repo: SqliteDatasetRepo | None = None,
    ) -> None:
        self._config = config or ServiceConfig()
        self._app_config = app_config
        self._backend = backend
        self._upstream = upstream
        self._sample = sample
        self._repo = repo

    @property
    def config(self) -> ServiceConfig:
        return self._config

    @cached_property
    def app_config(self) -> ConfigurationSet:
        if self._app_config is not None:
            return self._app_config
        from fantasy_football_tiers.config import create_config

        return create_config(yaml_path=self._config.config_path, overrides=self._config.overrides)

    @cached_property
    def cache_settings(self) -> CacheSettings:
        from fantasy_football_tiers.config import load_cache_settings

        return load_cache_settings(self.app_config)

    @cached_property
    def pipeline_settings(self) -> PipelineSettings:
        from fantasy_football_tiers.config import load_pipeline_settings

        return load_pipeline_settings(self.app_config)

    @cached_property
    def upstream_settings(self) -> UpstreamSettings:
        from fantasy_football_tiers.config import load_upstream_settings

        return load_upstream_settings(self.app_config)

    @cached_property
    def server_settings(self) -> ServerSettings:
        from fantasy_football_tiers.config import load_server_settings

        return load_server_settings(self.app_config)

    @cached_property
    def backend(self) -> StorageBackend:
        if self._backend is not None:
            return self._backend
        from fantasy_football_tiers.cache.sqlite_store import SqliteStorageBackend

        settings = self.cache_settings
        logger.debug("Opening cache at %s", settings.db_path)
        return SqliteStorageBackend(settings.db_path, max_bytes=settings.max_bytes)

    @cached_property
    def cache(self) -> CacheStore:
        from fantasy_football_tiers.cache.store import CacheStore

        return CacheStore(self.backend, self.cache_settings)

    @cached_property
    def upstream(self) -> UpstreamClient:
        if self._upstream is not None:
            return self._upstream
        from fantasy_football_tiers.ingest._retry import default_http_retry
        from fantasy_football_tiers.ingest.fantasypros_source import FantasyProsClient

        retry = None
        if self._config.http_retries > 1:
            retry = default_http_retry("FantasyPros request", attempts=self._config.http_retries)
        return FantasyProsClient(self.upstream_settings, retry=retry)

    @cached_property
    def sample(self) -> FallbackSource:
        if self._sample is not None:
            return self._sample
        from fantasy_football_tiers.ingest.sample_data import SampleDataSource

        return SampleDataSource()

    @cached_property
    def repo(self) -> SqliteDatasetRepo:
        if self._repo is not None:
            return self._repo
        from fantasy_football_tiers.db.connection import create_connection
        from fantasy_football_tiers.repos.dataset_repo import SqliteDatasetRepo

        path = self.server_settings.database_path
        logger.debug("Opening dataset database at %s", path)
        return SqliteDatasetRepo(create_connection(path, check_same_thread=False))

    @cached_property
    def orchestrator(self) -> FetchOrchestrator:
        from fantasy_football_tiers.services.pipeline import FetchOrchestrator

        return FetchOrchestrator(self.cache, self.upstream, self.sample, self.repo, self.pipeline_settings)

    @cached_property
    def accessor(self) -> RankingsAccessor:
        from fantasy_football_tiers.services.accessor import RankingsAccessor

        settings = self.pipeline_settings
        tracked = [(group, fmt) for group in settings.default_groups for fmt in settings.default_formats]
        return RankingsAccessor(
            self.cache,
            self.orchestrator,
            tracked=tracked,
            default_tier_count=self.server_settings.default_tier_count,
        )

    @cached_property
    def refresher(self) -> BackgroundRefresher:
        from fantasy_football_tiers.services.accessor import BackgroundRefresher

        refresher = BackgroundRefresher(
            self.accessor, self.orchestrator, interval_seconds=self.server_settings.refresh_interval_seconds
        )
        self.accessor.on_stale = refresher.wake
        return refresher

    @cached_property
    def writer(self) -> DatasetWriter:
        from fantasy_football_tiers.services.dataset_writer import DatasetWriter

        return DatasetWriter(self.cache, self.repo)

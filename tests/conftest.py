"""Shared pytest fixtures for test modules."""

from __future__ import annotations

import os
from typing import TYPE_CHECKING

import pytest

from fantasy_football_tiers.cache import CacheStore, InMemoryStorageBackend
from fantasy_football_tiers.domain.settings import CacheSettings
from tests.fakes.upstream import FakeClock

if TYPE_CHECKING:
    from pathlib import Path


@pytest.fixture(autouse=True)
def _clean_env(monkeypatch: pytest.MonkeyPatch) -> None:
    """Keep the developer's environment out of config-driven tests."""
    for key in list(os.environ):
        if key.startswith("FFTIERS__") or key in ("PIPELINE_SECRET", "CRON_SECRET", "FANTASYPROS_API_KEY"):
            monkeypatch.delenv(key)


@pytest.fixture
def clock() -> FakeClock:
    return FakeClock()


@pytest.fixture
def backend() -> InMemoryStorageBackend:
    return InMemoryStorageBackend()


@pytest.fixture
def cache(backend: InMemoryStorageBackend, clock: FakeClock) -> CacheStore:
    return CacheStore(backend, CacheSettings(), clock=clock)


@pytest.fixture
def db_path(tmp_path: Path) -> Path:
    return tmp_path / "datasets.db"

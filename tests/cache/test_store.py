import json
import threading
from pathlib import Path

import pytest

from fantasy_football_tiers.cache.memory_store import InMemoryStorageBackend
from fantasy_football_tiers.cache.sqlite_store import SqliteStorageBackend
from fantasy_football_tiers.cache.store import CacheStore
from fantasy_football_tiers.domain.cache_entry import CacheStatus
from fantasy_football_tiers.domain.pipeline import DataSourceTag
from fantasy_football_tiers.domain.ranked_entity import Position, ScoringFormat
from fantasy_football_tiers.domain.settings import CacheSettings
from tests.fakes.upstream import FakeClock
from tests.helpers import make_entities

RB = Position.RB
PPR = ScoringFormat.PPR


class TestGetSet:
    def test_roundtrip(self, cache: CacheStore, clock: FakeClock) -> None:
        players = make_entities(1, 2, 3)
        assert cache.set(RB, PPR, players) is True

        entry = cache.get(RB, PPR)
        assert entry is not None
        assert list(entry.data) == players
        assert entry.timestamp == clock.now
        assert entry.expiry == clock.now + cache.settings.max_age_seconds
        assert entry.source == "api"
        assert entry.group == "RB"
        assert entry.format == "PPR"

    def test_key_layout(self, cache: CacheStore, backend: InMemoryStorageBackend) -> None:
        cache.set(RB, PPR, make_entities(1))
        assert backend.keys("") == ["ff_cache_RB_PPR"]

    def test_formats_are_separate(self, cache: CacheStore) -> None:
        cache.set(RB, PPR, make_entities(1))
        assert cache.get(RB, ScoringFormat.STANDARD) is None

    def test_source_recorded(self, cache: CacheStore) -> None:
        cache.set(RB, PPR, make_entities(1), source=DataSourceTag.MANUAL)
        entry = cache.get(RB, PPR)
        assert entry is not None
        assert entry.source == "manual"

    def test_missing(self, cache: CacheStore) -> None:
        assert cache.get(RB, PPR) is None
        assert cache.status(RB, PPR) is CacheStatus.MISSING

    def test_version_mismatch_is_deleted(self, backend: InMemoryStorageBackend, clock: FakeClock) -> None:
        old = CacheStore(backend, CacheSettings(schema_version="0.9"), clock=clock)
        old.set(RB, PPR, make_entities(1))

        current = CacheStore(backend, CacheSettings(), clock=clock)
        assert current.get(RB, PPR) is None
        assert backend.get("ff_cache_RB_PPR") is None

    def test_unparseable_record_is_deleted(self, cache: CacheStore, backend: InMemoryStorageBackend) -> None:
        backend.put("ff_cache_RB_PPR", "{not json")
        assert cache.get(RB, PPR) is None
        assert backend.get("ff_cache_RB_PPR") is None

    def test_non_object_record_is_deleted(self, cache: CacheStore, backend: InMemoryStorageBackend) -> None:
        backend.put("ff_cache_RB_PPR", json.dumps([1, 2, 3]))
        assert cache.get(RB, PPR) is None
        assert backend.get("ff_cache_RB_PPR") is None

    def test_past_expiry_is_deleted(
        self, cache: CacheStore, backend: InMemoryStorageBackend, clock: FakeClock
    ) -> None:
        cache.set(RB, PPR, make_entities(1))
        clock.advance(cache.settings.max_age_seconds + 1)
        assert cache.get(RB, PPR) is None
        assert backend.get("ff_cache_RB_PPR") is None


class TestFreshness:
    @pytest.mark.parametrize(
        ("age", "expected"),
        [
            (0, CacheStatus.FRESH),
            (1800, CacheStatus.FRESH),
            (1801, CacheStatus.STALE),
            (7200, CacheStatus.STALE),
            (7201, CacheStatus.EXPIRED),
            (86400, CacheStatus.EXPIRED),
            (86401, CacheStatus.MISSING),
        ],
    )
    def test_status_by_age(self, cache: CacheStore, clock: FakeClock, age: int, expected: CacheStatus) -> None:
        cache.set(RB, PPR, make_entities(1))
        clock.advance(age)
        assert cache.status(RB, PPR) is expected

    def test_status_never_gets_fresher(self, cache: CacheStore, clock: FakeClock) -> None:
        cache.set(RB, PPR, make_entities(1))
        previous = cache.status(RB, PPR).rank
        for _ in range(30):
            clock.advance(3600)
            current = cache.status(RB, PPR).rank
            assert current <= previous
            previous = current

    def test_predicates(self, cache: CacheStore, clock: FakeClock) -> None:
        cache.set(RB, PPR, make_entities(1))
        assert cache.is_fresh(RB, PPR)
        assert not cache.needs_refresh(RB, PPR)

        clock.advance(3600)
        assert not cache.is_fresh(RB, PPR)
        assert cache.is_usable(RB, PPR)
        assert cache.needs_refresh(RB, PPR)

        clock.advance(7200)
        assert not cache.is_usable(RB, PPR)
        assert cache.needs_refresh(RB, PPR)

    def test_missing_needs_refresh(self, cache: CacheStore) -> None:
        assert cache.needs_refresh(RB, PPR)


class TestStatusDisplay:
    def test_missing(self, cache: CacheStore) -> None:
        display = cache.status_display(RB, PPR)
        assert display.status is CacheStatus.MISSING
        assert display.message == "No cached data"

    def test_just_written(self, cache: CacheStore) -> None:
        cache.set(RB, PPR, make_entities(1))
        assert cache.status_display(RB, PPR).message == "Updated just now"

    def test_fresh_minutes(self, cache: CacheStore, clock: FakeClock) -> None:
        cache.set(RB, PPR, make_entities(1))
        clock.advance(5 * 60 + 10)
        display = cache.status_display(RB, PPR)
        assert display.status is CacheStatus.FRESH
        assert display.message == "Updated 5m ago"

    def test_stale_hours(self, cache: CacheStore, clock: FakeClock) -> None:
        cache.set(RB, PPR, make_entities(1))
        clock.advance(3600 + 120)
        display = cache.status_display(RB, PPR)
        assert display.status is CacheStatus.STALE
        assert display.message == "Cached 1h ago"

    def test_expired(self, cache: CacheStore, clock: FakeClock) -> None:
        cache.set(RB, PPR, make_entities(1))
        clock.advance(3 * 3600)
        display = cache.status_display(RB, PPR)
        assert display.status is CacheStatus.EXPIRED
        assert display.message == "Data expired"


def _entry_size(clock: FakeClock) -> int:
    probe_backend = InMemoryStorageBackend()
    probe = CacheStore(probe_backend, CacheSettings(), clock=clock)
    probe.set(Position.QB, PPR, make_entities(1, 2, 3))
    return probe_backend.size_bytes("")


class TestEviction:
    def test_evict_oldest(self, cache: CacheStore, clock: FakeClock) -> None:
        for position in (Position.QB, Position.RB, Position.WR):
            cache.set(position, PPR, make_entities(1))
            clock.advance(1)

        assert cache.evict_oldest(2) == 2
        assert cache.get(Position.QB, PPR) is None
        assert cache.get(Position.RB, PPR) is None
        assert cache.get(Position.WR, PPR) is not None

    def test_evict_zero(self, cache: CacheStore) -> None:
        cache.set(RB, PPR, make_entities(1))
        assert cache.evict_oldest(0) == 0
        assert cache.get(RB, PPR) is not None

    def test_full_storage_evicts_and_retries(self, clock: FakeClock) -> None:
        size = _entry_size(clock)
        backend = InMemoryStorageBackend(max_bytes=2 * size + size // 2)
        cache = CacheStore(backend, CacheSettings(evict_count=1), clock=clock)

        assert cache.set(Position.QB, PPR, make_entities(1, 2, 3))
        clock.advance(1)
        assert cache.set(Position.RB, PPR, make_entities(1, 2, 3))
        clock.advance(1)
        assert cache.set(Position.WR, PPR, make_entities(1, 2, 3))

        assert cache.get(Position.QB, PPR) is None
        assert cache.get(Position.RB, PPR) is not None
        assert cache.get(Position.WR, PPR) is not None

    def test_gives_up_after_one_eviction_pass(self, clock: FakeClock) -> None:
        backend = InMemoryStorageBackend(max_bytes=10)
        cache = CacheStore(backend, CacheSettings(), clock=clock)

        assert cache.set(RB, PPR, make_entities(1)) is False
        assert cache.get(RB, PPR) is None


class TestMaintenance:
    def test_clear_only_touches_prefix(self, cache: CacheStore, backend: InMemoryStorageBackend) -> None:
        cache.set(RB, PPR, make_entities(1))
        cache.set(Position.QB, PPR, make_entities(1))
        backend.put("other_app_key", "keep me")

        assert cache.clear() == 2
        assert backend.keys("ff_cache_") == []
        assert backend.get("other_app_key") == "keep me"

    def test_remove(self, cache: CacheStore) -> None:
        cache.set(RB, PPR, make_entities(1))
        cache.remove(RB, PPR)
        assert cache.get(RB, PPR) is None

    def test_purge_older_than(self, backend: InMemoryStorageBackend, clock: FakeClock) -> None:
        cache = CacheStore(backend, CacheSettings(max_age_seconds=30 * 86400), clock=clock)
        cache.set(Position.QB, PPR, make_entities(1))
        clock.advance(5 * 86400)
        cache.set(RB, PPR, make_entities(1))
        survivor = backend.get("ff_cache_RB_PPR")
        clock.advance(3 * 86400)

        assert cache.purge_older_than(7) == 1
        assert cache.get(Position.QB, PPR) is None
        assert backend.get("ff_cache_RB_PPR") == survivor

    def test_cleanup_expired(self, cache: CacheStore, backend: InMemoryStorageBackend, clock: FakeClock) -> None:
        cache.set(RB, PPR, make_entities(1))
        clock.advance(cache.settings.max_age_seconds - 10)
        cache.set(Position.QB, PPR, make_entities(1))
        backend.put("ff_cache_WR_PPR", "garbage")
        clock.advance(20)

        assert cache.cleanup_expired() == 2
        assert backend.keys("ff_cache_") == ["ff_cache_QB_PPR"]

    def test_stats(self, cache: CacheStore, backend: InMemoryStorageBackend, clock: FakeClock) -> None:
        start = clock.now
        cache.set(RB, PPR, make_entities(1, 2))
        clock.advance(60)
        cache.set(Position.QB, PPR, make_entities(1))

        stats = cache.stats()
        assert stats.total_entries == 2
        assert stats.total_bytes == backend.size_bytes("ff_cache_")
        assert stats.oldest == start
        assert stats.newest == start + 60

    def test_empty_stats(self, cache: CacheStore) -> None:
        stats = cache.stats()
        assert stats.total_entries == 0
        assert stats.oldest is None


class TestConcurrentAccess:
    def test_readers_never_see_partial_entries(self, tmp_path: Path) -> None:
        cache = CacheStore(SqliteStorageBackend(tmp_path / "cache.db"), CacheSettings())
        snapshots = [make_entities(*range(1, 4)), make_entities(*range(1, 41))]
        cache.set(RB, PPR, snapshots[0])
        failures: list[object] = []
        done = threading.Event()

        def writer(snapshot: list) -> None:
            for _ in range(50):
                if not cache.set(RB, PPR, snapshot):
                    failures.append("write failed")

        def reader() -> None:
            while not done.is_set():
                entry = cache.get(RB, PPR)
                if entry is None or list(entry.data) not in snapshots:
                    failures.append(entry)

        readers = [threading.Thread(target=reader) for _ in range(4)]
        writers = [threading.Thread(target=writer, args=(s,)) for s in snapshots]
        for t in readers + writers:
            t.start()
        for t in writers:
            t.join()
        done.set()
        for t in readers:
            t.join()

        assert failures == []
        entry = cache.get(RB, PPR)
        assert entry is not None
        assert list(entry.data) in snapshots

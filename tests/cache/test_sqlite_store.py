import threading
from pathlib import Path

import pytest

from fantasy_football_tiers.cache.sqlite_store import SqliteStorageBackend
from fantasy_football_tiers.domain.errors import StorageFullError


class TestSqliteStorageBackend:
    def test_creates_parent_directories(self, tmp_path: Path) -> None:
        path = tmp_path / "nested" / "cache.db"
        backend = SqliteStorageBackend(path)
        backend.put("k", "v")
        assert path.exists()

    def test_put_get_delete(self, tmp_path: Path) -> None:
        backend = SqliteStorageBackend(tmp_path / "cache.db")
        backend.put("k", "v1")
        backend.put("k", "v2")
        assert backend.get("k") == "v2"
        backend.delete("k")
        assert backend.get("k") is None

    def test_persists_across_instances(self, tmp_path: Path) -> None:
        path = tmp_path / "cache.db"
        SqliteStorageBackend(path).put("k", "v")
        assert SqliteStorageBackend(path).get("k") == "v"

    def test_keys_by_prefix(self, tmp_path: Path) -> None:
        backend = SqliteStorageBackend(tmp_path / "cache.db")
        backend.put("ff_cache_RB_PPR", "abc")
        backend.put("ff_cache_QB_PPR", "de")
        backend.put("other", "xyz")
        assert sorted(backend.keys("ff_cache_")) == ["ff_cache_QB_PPR", "ff_cache_RB_PPR"]
        assert backend.size_bytes("ff_cache_") == 5

    def test_prefix_is_literal(self, tmp_path: Path) -> None:
        backend = SqliteStorageBackend(tmp_path / "cache.db")
        backend.put("a_b", "1")
        backend.put("axb", "2")
        assert backend.keys("a_") == ["a_b"]

    def test_budget_exceeded(self, tmp_path: Path) -> None:
        backend = SqliteStorageBackend(tmp_path / "cache.db", max_bytes=4)
        backend.put("a", "12")
        with pytest.raises(StorageFullError):
            backend.put("b", "345")
        assert backend.get("b") is None

    def test_shared_across_threads(self, tmp_path: Path) -> None:
        backend = SqliteStorageBackend(tmp_path / "cache.db")
        errors: list[BaseException] = []

        def worker(n: int) -> None:
            try:
                for i in range(20):
                    backend.put(f"t{n}_{i}", str(i))
                    assert backend.get(f"t{n}_{i}") == str(i)
            except BaseException as e:
                errors.append(e)

        threads = [threading.Thread(target=worker, args=(n,)) for n in range(8)]
        for t in threads:
            t.start()
        for t in threads:
            t.join()

        assert errors == []
        assert len(backend.keys("t")) == 160

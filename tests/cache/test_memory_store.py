import pytest

from fantasy_football_tiers.cache.memory_store import InMemoryStorageBackend
from fantasy_football_tiers.domain.errors import StorageFullError


class TestInMemoryStorageBackend:
    def test_put_get_delete(self) -> None:
        backend = InMemoryStorageBackend()
        backend.put("a", "1")
        assert backend.get("a") == "1"
        backend.delete("a")
        assert backend.get("a") is None

    def test_delete_missing_is_noop(self) -> None:
        InMemoryStorageBackend().delete("nope")

    def test_keys_by_prefix(self) -> None:
        backend = InMemoryStorageBackend()
        backend.put("ff_a", "1")
        backend.put("ff_b", "22")
        backend.put("other", "333")
        assert sorted(backend.keys("ff_")) == ["ff_a", "ff_b"]
        assert backend.size_bytes("ff_") == 3

    def test_budget_exceeded(self) -> None:
        backend = InMemoryStorageBackend(max_bytes=5)
        backend.put("a", "123")
        with pytest.raises(StorageFullError):
            backend.put("b", "456")
        assert backend.get("b") is None

    def test_overwrite_does_not_count_old_value(self) -> None:
        backend = InMemoryStorageBackend(max_bytes=5)
        backend.put("a", "1234")
        backend.put("a", "54321")
        assert backend.get("a") == "54321"

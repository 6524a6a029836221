from fantasy_football_tiers.cache.memory_store import InMemoryStorageBackend
from fantasy_football_tiers.cache.protocol import StorageBackend
from fantasy_football_tiers.cache.sqlite_store import SqliteStorageBackend
from fantasy_football_tiers.cache.store import CacheStore

__all__ = ["CacheStore", "InMemoryStorageBackend", "SqliteStorageBackend", "StorageBackend"]

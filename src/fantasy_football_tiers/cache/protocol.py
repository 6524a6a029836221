from __future__ import annotations

from typing import Protocol


class StorageBackend(Protocol):
    """String key/value medium under a CacheStore.

    ``put`` raises StorageFullError when the medium is full or unavailable.
    """

    def get(self, key: str) -> str | None: ...

    def put(self, key: str, value: str) -> None: ...

    def delete(self, key: str) -> None: ...

    def keys(self, prefix: str) -> list[str]: ...

    def size_bytes(self, prefix: str) -> int: ...

from __future__ import annotations

import threading

from fantasy_football_tiers.domain.errors import StorageFullError


class InMemoryStorageBackend:
    """Process-local storage backend with an optional byte budget."""

    def __init__(self, max_bytes: int = 0) -> None:
        self._max_bytes = max_bytes
        self._data: dict[str, str] = {}
        self._lock = threading.Lock()

    def get(self, key: str) -> str | None:
        with self._lock:
            return self._data.get(key)

    def put(self, key: str, value: str) -> None:
        with self._lock:
            if self._max_bytes:
                current = sum(len(v) for k, v in self._data.items() if k != key)
                if current + len(value) > self._max_bytes:
                    msg = f"Storing {key} would exceed {self._max_bytes} bytes"
                    raise StorageFullError(msg)
            self._data[key] = value

    def delete(self, key: str) -> None:
        with self._lock:
            self._data.pop(key, None)

    def keys(self, prefix: str) -> list[str]:
        with self._lock:
            return [k for k in self._data if k.startswith(prefix)]

    def size_bytes(self, prefix: str) -> int:
        with self._lock:
            return sum(len(v) for k, v in self._data.items() if k.startswith(prefix))

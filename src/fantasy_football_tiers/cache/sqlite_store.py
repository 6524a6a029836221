from __future__ import annotations

import sqlite3
from contextlib import contextmanager
from queue import Empty, Full, Queue
from typing import TYPE_CHECKING

from fantasy_football_tiers.domain.errors import StorageFullError

if TYPE_CHECKING:
    from collections.abc import Iterator
    from pathlib import Path


class _ConnectionPool:
    """Reuses up to ``size`` idle SQLite connections across threads."""

    def __init__(self, db_path: Path, size: int = 5) -> None:
        self._db_path = db_path
        self._idle: Queue[sqlite3.Connection] = Queue(maxsize=size)

    def _open(self) -> sqlite3.Connection:
        conn = sqlite3.connect(str(self._db_path), check_same_thread=False)
        conn.execute("PRAGMA busy_timeout=5000")
        conn.execute("PRAGMA journal_mode=WAL")
        return conn

    @contextmanager
    def connection(self) -> Iterator[sqlite3.Connection]:
        try:
            conn = self._idle.get_nowait()
        except Empty:
            conn = self._open()
        try:
            yield conn
        finally:
            try:
                self._idle.put_nowait(conn)
            except Full:
                conn.close()


class SqliteStorageBackend:
    """Local-persistent storage backend; each ``put`` is a single committed statement."""

    def __init__(self, db_path: Path, max_bytes: int = 0) -> None:
        self._max_bytes = max_bytes
        db_path.parent.mkdir(parents=True, exist_ok=True)
        self._pool = _ConnectionPool(db_path)
        with self._pool.connection() as conn:
            conn.execute("CREATE TABLE IF NOT EXISTS kv_store (key TEXT PRIMARY KEY, value TEXT NOT NULL)")
            conn.commit()

    def get(self, key: str) -> str | None:
        with self._pool.connection() as conn:
            row = conn.execute("SELECT value FROM kv_store WHERE key = ?", (key,)).fetchone()
            return row[0] if row is not None else None

    def put(self, key: str, value: str) -> None:
        try:
            with self._pool.connection() as conn:
                if self._max_bytes:
                    (current,) = conn.execute(
                        "SELECT COALESCE(SUM(LENGTH(value)), 0) FROM kv_store WHERE key != ?", (key,)
                    ).fetchone()
                    if current + len(value) > self._max_bytes:
                        msg = f"Storing {key} would exceed {self._max_bytes} bytes"
                        raise StorageFullError(msg)
                conn.execute("INSERT OR REPLACE INTO kv_store (key, value) VALUES (?, ?)", (key, value))
                conn.commit()
        except sqlite3.OperationalError as e:
            # disk full, read-only file system, locked database
            raise StorageFullError(str(e)) from e

    def delete(self, key: str) -> None:
        with self._pool.connection() as conn:
            conn.execute("DELETE FROM kv_store WHERE key = ?", (key,))
            conn.commit()

    def keys(self, prefix: str) -> list[str]:
        with self._pool.connection() as conn:
            rows = conn.execute(
                "SELECT key FROM kv_store WHERE substr(key, 1, ?) = ?", (len(prefix), prefix)
            ).fetchall()
            return [row[0] for row in rows]

    def size_bytes(self, prefix: str) -> int:
        with self._pool.connection() as conn:
            (total,) = conn.execute(
                "SELECT COALESCE(SUM(LENGTH(value)), 0) FROM kv_store WHERE substr(key, 1, ?) = ?",
                (len(prefix), prefix),
            ).fetchone()
            return int(total)

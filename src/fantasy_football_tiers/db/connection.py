"""SQLite connection for the dataset database, with numbered ``.sql`` migrations.

Migration files are named ``NNN_description.sql``; each runs once, in
version order, inside its own transaction, and is recorded in
``schema_version``.
"""

import logging
import re
import sqlite3
from dataclasses import dataclass
from pathlib import Path

logger = logging.getLogger(__name__)

_MIGRATIONS_DIR = Path(__file__).parent / "migrations"
_MIGRATION_NAME = re.compile(r"^(\d+)_\w+\.sql$")
_IN_MEMORY = ":memory:"


@dataclass(frozen=True)
class Migration:
    version: int
    path: Path

    def statements(self) -> list[str]:
        return [s.strip() for s in self.path.read_text().split(";") if s.strip()]


def discover_migrations(migrations_dir: Path = _MIGRATIONS_DIR) -> list[Migration]:
    """Migration files in version order; files not named ``NNN_name.sql`` are skipped."""
    found: list[Migration] = []
    for path in migrations_dir.glob("*.sql"):
        match = _MIGRATION_NAME.match(path.name)
        if match is None:
            logger.warning("Skipping migration file with unexpected name: %s", path.name)
            continue
        found.append(Migration(int(match.group(1)), path))
    return sorted(found, key=lambda m: m.version)


def create_connection(
    path: str | Path,
    *,
    check_same_thread: bool = True,
    migrations_dir: Path | None = None,
) -> sqlite3.Connection:
    """Open the dataset database and bring its schema up to date."""
    on_disk = str(path) != _IN_MEMORY
    if on_disk:
        Path(path).parent.mkdir(parents=True, exist_ok=True)
    conn = sqlite3.connect(str(path), check_same_thread=check_same_thread)
    conn.row_factory = sqlite3.Row

    pragmas = ["foreign_keys=ON"]
    if on_disk:
        pragmas += ["journal_mode=WAL", "busy_timeout=5000"]
    for pragma in pragmas:
        conn.execute(f"PRAGMA {pragma}")

    applied = migrate(conn, discover_migrations(migrations_dir or _MIGRATIONS_DIR))
    if applied:
        logger.info("Dataset database %s migrated to version %d", path, applied[-1])
    return conn


def get_schema_version(conn: sqlite3.Connection) -> int:
    """Return the current schema version, or 0 if no migrations have run."""
    try:
        row = conn.execute("SELECT MAX(version) FROM schema_version").fetchone()
    except sqlite3.OperationalError:
        return 0
    return row[0] if row and row[0] is not None else 0


def migrate(conn: sqlite3.Connection, migrations: list[Migration]) -> list[int]:
    """Apply migrations newer than the recorded schema version. Returns the versions applied."""
    conn.execute(
        "CREATE TABLE IF NOT EXISTS schema_version ("
        "    version INTEGER PRIMARY KEY,"
        "    applied_at TEXT NOT NULL DEFAULT (datetime('now'))"
        ")"
    )
    current = get_schema_version(conn)
    applied: list[int] = []
    for migration in migrations:
        if migration.version <= current:
            continue
        logger.debug("Applying migration %s", migration.path.name)
        _apply(conn, migration)
        applied.append(migration.version)
    return applied


def _apply(conn: sqlite3.Connection, migration: Migration) -> None:
    # DDL only joins the transaction when implicit transaction handling is off
    previous = conn.isolation_level
    conn.isolation_level = None
    try:
        conn.execute("BEGIN")
        try:
            for statement in migration.statements():
                conn.execute(statement)
            conn.execute("INSERT INTO schema_version (version) VALUES (?)", (migration.version,))
        except sqlite3.Error:
            conn.execute("ROLLBACK")
            raise
        conn.execute("COMMIT")
    finally:
        conn.isolation_level = previous

import logging
import sqlite3
from contextlib import contextmanager
from pathlib import Path
from typing import Iterator

logger = logging.getLogger(__name__)

_MIGRATIONS_DIR = Path(__file__).parent / "migrations"

# The candidate claim is a single UPDATE ... RETURNING that filters tags through json_each.
MIN_SQLITE_VERSION = (3, 35, 0)


def get_connection(db_path: str) -> sqlite3.Connection:
    """
    Open a connection to the submissions database.

    WAL lets status polls read while a claim holds the write lock; the 10s timeout is how
    long a concurrent claim waits for BEGIN IMMEDIATE before giving up. Foreign keys are on
    so that matched_with always resolves once a pairing commits.
    """
    Path(db_path).parent.mkdir(parents=True, exist_ok=True)
    conn = sqlite3.connect(db_path, timeout=10, check_same_thread=False)
    conn.row_factory = sqlite3.Row
    conn.execute("PRAGMA journal_mode=WAL")
    conn.execute("PRAGMA foreign_keys=ON")
    return conn


@contextmanager
def connection(db_path: str) -> Iterator[sqlite3.Connection]:
    """Yield a connection that commits on success, rolls back on error and is always closed."""
    conn = get_connection(db_path)
    try:
        with conn:
            yield conn
    finally:
        conn.close()


def check_sqlite_support(conn: sqlite3.Connection) -> None:
    """Fail fast when the linked SQLite cannot run the atomic claim."""
    if sqlite3.sqlite_version_info < MIN_SQLITE_VERSION:
        raise RuntimeError(
            f"SQLite {sqlite3.sqlite_version} is too old for pairing; "
            f"need {'.'.join(map(str, MIN_SQLITE_VERSION))}+ for UPDATE ... RETURNING"
        )
    try:
        conn.execute("SELECT value FROM json_each('[\"calm\"]')").fetchall()
    except sqlite3.OperationalError as exc:
        raise RuntimeError("SQLite was built without JSON support; tag matching needs json_each") from exc


def run_migrations(db_path: str) -> list[str]:
    """
    Bring the submissions schema up to date and return the migration files applied now.

    Files in migrations/ run once each, in name order, and are recorded in _schema_migrations.
    """
    conn = get_connection(db_path)
    applied_now = []
    try:
        check_sqlite_support(conn)
        conn.execute(
            """
            CREATE TABLE IF NOT EXISTS _schema_migrations (
                filename TEXT PRIMARY KEY,
                applied_at DATETIME NOT NULL DEFAULT CURRENT_TIMESTAMP
            )
            """
        )
        conn.commit()

        already = {row["filename"] for row in conn.execute("SELECT filename FROM _schema_migrations")}
        pending = [p for p in sorted(_MIGRATIONS_DIR.glob("*.sql")) if p.name not in already]
        for migration_path in pending:
            logger.info("[db] applying migration | file=%s | db=%s", migration_path.name, db_path)
            conn.executescript(migration_path.read_text())
            conn.execute("INSERT INTO _schema_migrations (filename) VALUES (?)", (migration_path.name,))
            conn.commit()
            applied_now.append(migration_path.name)

        if not pending:
            logger.debug("[db] schema up to date | db=%s", db_path)
    finally:
        conn.close()
    return applied_now

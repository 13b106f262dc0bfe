"""
Database connection layer (DB-API 2.0, SQLite).

NOT an ORM, just connection management. Every component that touches the
store receives a DatabaseManager through its constructor.

Usage:
    from core.db import DatabaseManager

    dm = DatabaseManager(db_path=Path("data/namhatta.db"))

    # Context manager (auto commit/rollback/release)
    with dm.connect() as conn:
        row = conn.execute("SELECT * FROM users WHERE id = ?", (1,)).fetchone()

    # Read-validate-write sequences that must not interleave with other writers
    with dm.connect(immediate=True) as conn:
        ...
"""

import logging
import queue
import sqlite3
from contextlib import contextmanager
from datetime import datetime, timezone
from pathlib import Path
from typing import Optional

logger = logging.getLogger(__name__)

_DEFAULT_DB_PATH = Path(__file__).parent.parent / "data" / "namhatta.db"


def to_db_time(value: datetime) -> str:
    """Serialize a datetime as a fixed-width UTC ISO string.

    Fixed width keeps lexicographic order equal to chronological order,
    so `expires_at < ?` comparisons work directly in SQL.
    """
    return value.astimezone(timezone.utc).isoformat(timespec="microseconds")


def from_db_time(value: str) -> datetime:
    """Parse a timestamp written by to_db_time."""
    parsed = datetime.fromisoformat(value)
    if parsed.tzinfo is None:
        parsed = parsed.replace(tzinfo=timezone.utc)
    return parsed


def sqlite_url(db_path: Path) -> str:
    """SQLAlchemy URL for a SQLite file (used by Alembic)."""
    return f"sqlite:///{db_path}"


# =============================================================================
# DatabaseManager: connection pool
# =============================================================================

class DatabaseManager:
    """
    Connection pool for the portal database.

    The app factory builds one per app and hands it to every store.
    """

    def __init__(
        self,
        db_path: Optional[Path] = None,
        pool_size: int = 10,
    ):
        self._db_path = Path(db_path) if db_path else _DEFAULT_DB_PATH
        self._pool_size = pool_size
        self._db_path.parent.mkdir(parents=True, exist_ok=True)
        self._pool: queue.Queue = queue.Queue(maxsize=pool_size)

    # ----- connection acquisition / release -----------------------------------

    def get_connection(self) -> sqlite3.Connection:
        """Acquire a connection from the pool."""
        try:
            conn = self._pool.get_nowait()
            # Verify connection is still usable
            conn.execute("SELECT 1")
            return conn
        except queue.Empty:
            pass
        except sqlite3.Error:
            pass  # Stale connection, create a new one

        conn = sqlite3.connect(str(self._db_path), check_same_thread=False, timeout=10)
        conn.row_factory = sqlite3.Row
        conn.execute("PRAGMA journal_mode=WAL")
        conn.execute("PRAGMA foreign_keys=ON")
        return conn

    def release_connection(self, conn: sqlite3.Connection):
        """Return a connection to the pool."""
        try:
            self._pool.put_nowait(conn)
        except queue.Full:
            conn.close()

    def close_all(self):
        """Close every pooled connection."""
        while not self._pool.empty():
            try:
                self._pool.get_nowait().close()
            except queue.Empty:
                break

    @contextmanager
    def connect(self, immediate: bool = False):
        """Context manager: acquire → yield → commit/rollback → release.

        Args:
            immediate: take the write lock up front (BEGIN IMMEDIATE) so the
                reads inside the block form a consistent snapshot for the
                writes that follow.
        """
        conn = self.get_connection()
        try:
            if immediate:
                conn.execute("BEGIN IMMEDIATE")
            yield conn
            conn.commit()
        except Exception:
            conn.rollback()
            raise
        finally:
            self.release_connection(conn)

    @property
    def db_path(self) -> Path:
        """Return the SQLite database path."""
        return self._db_path

    @property
    def url(self) -> str:
        """SQLAlchemy URL of this database."""
        return sqlite_url(self._db_path)

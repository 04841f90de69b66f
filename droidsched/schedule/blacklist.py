"""Persistent package blacklists, global and per schedule."""

import sqlite3
from pathlib import Path
from typing import Dict, Optional, Set

from ..util.logging import get_logger
from .models import GLOBAL_BLACKLIST_ID

logger = get_logger(__name__)

SCHEMA = """
CREATE TABLE IF NOT EXISTS blacklists (
  id INTEGER PRIMARY KEY AUTOINCREMENT,
  package_name TEXT NOT NULL,
  blacklist_id INTEGER NOT NULL,
  UNIQUE(package_name, blacklist_id)
);

CREATE INDEX IF NOT EXISTS idx_blacklists_id ON blacklists(blacklist_id);
"""


class BlacklistError(Exception):
    """The blacklist database cannot be opened or read."""
    pass


class BlacklistHandle:
    """An open connection to the blacklist database.

    Use as a context manager so the connection is closed on every path.
    """

    def __init__(self, connection: sqlite3.Connection, read_only: bool):
        self._conn: Optional[sqlite3.Connection] = connection
        self.read_only = read_only

    @property
    def closed(self) -> bool:
        return self._conn is None

    def _connection(self) -> sqlite3.Connection:
        if self._conn is None:
            raise BlacklistError("Blacklist database is closed")
        return self._conn

    def _write(self, sql: str, params: tuple) -> int:
        conn = self._connection()
        try:
            cursor = conn.execute(sql, params)
            conn.commit()
        except sqlite3.Error as e:
            raise BlacklistError(f"Failed to update blacklist database: {e}") from e
        return cursor.rowcount

    def get_blacklisted(self, blacklist_id: int = GLOBAL_BLACKLIST_ID) -> Set[str]:
        """Package names blacklisted under ``blacklist_id``."""
        try:
            rows = self._connection().execute(
                "SELECT package_name FROM blacklists WHERE blacklist_id = ?",
                (blacklist_id,),
            ).fetchall()
        except sqlite3.Error as e:
            raise BlacklistError(f"Failed to read blacklist {blacklist_id}: {e}") from e
        return {row[0] for row in rows}

    def list_all(self) -> Dict[int, Set[str]]:
        """Every blacklist keyed by its identifier."""
        result: Dict[int, Set[str]] = {}
        try:
            rows = self._connection().execute(
                "SELECT blacklist_id, package_name FROM blacklists ORDER BY blacklist_id, package_name"
            ).fetchall()
        except sqlite3.Error as e:
            raise BlacklistError(f"Failed to read blacklists: {e}") from e
        for blacklist_id, package_name in rows:
            result.setdefault(blacklist_id, set()).add(package_name)
        return result

    def add(self, package_name: str, blacklist_id: int = GLOBAL_BLACKLIST_ID) -> bool:
        """Blacklist a package; returns False if it already was."""
        return self._write(
            "INSERT OR IGNORE INTO blacklists (package_name, blacklist_id) VALUES (?, ?)",
            (package_name, blacklist_id),
        ) > 0

    def remove(self, package_name: str, blacklist_id: int = GLOBAL_BLACKLIST_ID) -> bool:
        """Remove a package from a blacklist; returns False if it was not there."""
        return self._write(
            "DELETE FROM blacklists WHERE package_name = ? AND blacklist_id = ?",
            (package_name, blacklist_id),
        ) > 0

    def remove_list(self, blacklist_id: int) -> int:
        """Drop a whole blacklist, e.g. when its schedule is deleted."""
        return self._write("DELETE FROM blacklists WHERE blacklist_id = ?", (blacklist_id,))

    def close(self) -> None:
        if self._conn is not None:
            self._conn.close()
            self._conn = None

    def __enter__(self) -> "BlacklistHandle":
        return self

    def __exit__(self, exc_type, exc, tb) -> None:
        self.close()


class BlacklistStore:
    """SQLite-backed blacklist storage.

    Every :meth:`open` returns a fresh handle so that runs of different
    schedules never share a connection.
    """

    def __init__(self, db_path: Path):
        self.db_path = Path(db_path)

    def _init_schema(self) -> None:
        self.db_path.parent.mkdir(parents=True, exist_ok=True)
        conn = sqlite3.connect(str(self.db_path))
        try:
            conn.executescript(SCHEMA)
            conn.commit()
        finally:
            conn.close()

    def open(self, read_only: bool = True) -> BlacklistHandle:
        """Open a handle on the database, creating it on first use."""
        try:
            if not self.db_path.exists() or not read_only:
                self._init_schema()

            if read_only:
                conn = sqlite3.connect(f"{self.db_path.resolve().as_uri()}?mode=ro", uri=True, check_same_thread=False)
            else:
                conn = sqlite3.connect(str(self.db_path), check_same_thread=False)
        except (sqlite3.Error, OSError) as e:
            raise BlacklistError(f"Cannot open blacklist database {self.db_path}: {e}") from e

        logger.debug(f"Opened blacklist database {self.db_path} (read_only={read_only})")
        return BlacklistHandle(conn, read_only)

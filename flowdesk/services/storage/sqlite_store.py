"""
SQLite Key-Value Storage Implementation

DESIGN DECISION: SQLite is the default local backend because:
1. It ships with Python, no server to run
2. Single-file database, easy to back up or move
3. Writes are atomic, so a crash mid-save never leaves half a ledger

Blocking sqlite3 calls run in a worker thread so the event loop never stalls
while a ledger is being written.
"""

import asyncio
import sqlite3
import threading
from pathlib import Path
from typing import Optional, Union

from flowdesk.services.storage.interface import KeyValueStore, PersistenceIOError


SCHEMA_SQL = """
CREATE TABLE IF NOT EXISTS kv_store (
    key TEXT PRIMARY KEY,
    value TEXT NOT NULL,
    updated_at TEXT NOT NULL DEFAULT (datetime('now'))
);
"""


class SQLiteKeyValueStore(KeyValueStore):
    """
    Key-value store backed by a single SQLite table.

    The connection is opened lazily on first use, so a bad path surfaces as a
    PersistenceIOError from the first operation rather than from the constructor.
    """

    def __init__(self, db_path: Union[str, Path]):
        self.db_path = Path(db_path)
        self._conn: Optional[sqlite3.Connection] = None
        # sqlite3 connections are not safe to share across threads unguarded
        self._lock = threading.Lock()

    def _get_conn(self) -> sqlite3.Connection:
        if self._conn is None:
            self.db_path.parent.mkdir(parents=True, exist_ok=True)
            conn = sqlite3.connect(str(self.db_path), check_same_thread=False)
            conn.execute("PRAGMA journal_mode = WAL")
            conn.execute("PRAGMA busy_timeout = 5000")
            conn.executescript(SCHEMA_SQL)
            conn.commit()
            self._conn = conn
        return self._conn

    def _get_sync(self, key: str) -> Optional[str]:
        with self._lock:
            row = self._get_conn().execute(
                "SELECT value FROM kv_store WHERE key = ?",
                (key,),
            ).fetchone()
        return row[0] if row else None

    def _set_sync(self, key: str, value: str) -> None:
        with self._lock:
            conn = self._get_conn()
            conn.execute(
                """
                INSERT INTO kv_store (key, value) VALUES (?, ?)
                ON CONFLICT(key) DO UPDATE SET
                    value = excluded.value,
                    updated_at = datetime('now')
                """,
                (key, value),
            )
            conn.commit()

    def _remove_sync(self, key: str) -> None:
        with self._lock:
            conn = self._get_conn()
            conn.execute("DELETE FROM kv_store WHERE key = ?", (key,))
            conn.commit()

    async def get(self, key: str) -> Optional[str]:
        try:
            return await asyncio.to_thread(self._get_sync, key)
        except (sqlite3.Error, OSError) as e:
            raise PersistenceIOError(f"Failed to read {key!r}: {e}") from e

    async def set(self, key: str, value: str) -> None:
        try:
            await asyncio.to_thread(self._set_sync, key, value)
        except (sqlite3.Error, OSError) as e:
            raise PersistenceIOError(f"Failed to write {key!r}: {e}") from e

    async def remove(self, key: str) -> None:
        try:
            await asyncio.to_thread(self._remove_sync, key)
        except (sqlite3.Error, OSError) as e:
            raise PersistenceIOError(f"Failed to delete {key!r}: {e}") from e

    def close(self) -> None:
        """Close the database connection."""
        with self._lock:
            if self._conn is not None:
                self._conn.close()
                self._conn = None

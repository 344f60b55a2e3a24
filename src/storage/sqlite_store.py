# src/storage/sqlite_store.py — v2
"""SQLite-based storage (STORAGE_BACKEND=sqlite).

Uses stdlib sqlite3; safer than the JSON file when several processes
share one store.
"""

from __future__ import annotations

import logging
import sqlite3
import time
from collections.abc import Callable
from pathlib import Path

from id5resolver.storage.base_storage import BaseStorage

logger = logging.getLogger(__name__)

_SCHEMA = """
CREATE TABLE IF NOT EXISTS kv_entries (
    key TEXT PRIMARY KEY,
    value TEXT NOT NULL,
    expires_at REAL NOT NULL
);
CREATE INDEX IF NOT EXISTS idx_expires_at ON kv_entries(expires_at);
"""


class SqliteStorage(BaseStorage):
    """SQLite-backed key/value storage."""

    def __init__(
        self, db_path: Path | str, clock: Callable[[], float] = time.time
    ) -> None:
        super().__init__(clock)
        self._db_path = Path(db_path).expanduser()
        self._db_path.parent.mkdir(parents=True, exist_ok=True)
        self._conn = sqlite3.connect(str(self._db_path))
        self._conn.execute("PRAGMA journal_mode=WAL")
        self._conn.executescript(_SCHEMA)

    def get(self, key: str) -> str | None:
        row = self._conn.execute(
            "SELECT value, expires_at FROM kv_entries WHERE key = ?", (key,)
        ).fetchone()
        if row is None:
            return None
        if self._is_expired(row[1]):
            self.remove(key)
            return None
        return row[0]

    def set(self, key: str, value: str, expires_in_s: float) -> None:
        if expires_in_s <= 0:
            self.remove(key)
            return
        self._conn.execute(
            "INSERT OR REPLACE INTO kv_entries (key, value, expires_at) VALUES (?, ?, ?)",
            (key, value, self._expires_at(expires_in_s)),
        )
        self._conn.commit()

    def remove(self, key: str) -> None:
        self._conn.execute("DELETE FROM kv_entries WHERE key = ?", (key,))
        self._conn.commit()

    def keys(self) -> list[str]:
        rows = self._conn.execute(
            "SELECT key FROM kv_entries WHERE expires_at > ?", (self._clock(),)
        ).fetchall()
        return [r[0] for r in rows]

    def close(self) -> None:
        self._conn.close()

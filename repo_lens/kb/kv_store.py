"""
String key/value persistence media for the scan cache.

Both media enforce a practical per-value size ceiling (``max_value_bytes``)
and report write failures by returning False instead of raising.
"""

from __future__ import annotations

import logging
import os
import sqlite3
import threading
from abc import ABC, abstractmethod
from contextlib import contextmanager
from typing import Optional

logger = logging.getLogger(__name__)

DEFAULT_MAX_VALUE_BYTES = 4_000_000


class KeyValueStore(ABC):
    """Minimal string-keyed storage medium."""

    def __init__(self, max_value_bytes: int = DEFAULT_MAX_VALUE_BYTES):
        self.max_value_bytes = max_value_bytes

    def fits(self, value: str) -> bool:
        return len(value.encode("utf-8")) <= self.max_value_bytes

    @abstractmethod
    def get(self, key: str) -> Optional[str]:
        ...

    @abstractmethod
    def set(self, key: str, value: str) -> bool:
        """Store *value*; False when it is too large or the write fails."""

    @abstractmethod
    def remove(self, key: str) -> None:
        ...


class MemoryKeyValueStore(KeyValueStore):
    """Process-local dict medium."""

    def __init__(self, max_value_bytes: int = DEFAULT_MAX_VALUE_BYTES):
        super().__init__(max_value_bytes)
        self._data: dict[str, str] = {}
        self._lock = threading.Lock()

    def get(self, key: str) -> Optional[str]:
        with self._lock:
            return self._data.get(key)

    def set(self, key: str, value: str) -> bool:
        if not self.fits(value):
            logger.warning("[KVStore] Value for %s exceeds %d bytes", key, self.max_value_bytes)
            return False
        with self._lock:
            self._data[key] = value
        return True

    def remove(self, key: str) -> None:
        with self._lock:
            self._data.pop(key, None)

    def keys(self) -> list[str]:
        with self._lock:
            return list(self._data)


_SCHEMA = """
CREATE TABLE IF NOT EXISTS kv (
    key         TEXT PRIMARY KEY,
    value       TEXT NOT NULL
);
"""


class SQLiteKeyValueStore(KeyValueStore):
    """
    SQLite-backed medium, one row per key.

    Parameters
    ----------
    db_path:
        Path to the SQLite database file.  Created (with parent directories)
        if absent.
    """

    def __init__(self, db_path: str, max_value_bytes: int = DEFAULT_MAX_VALUE_BYTES):
        super().__init__(max_value_bytes)
        self._db_path = db_path
        os.makedirs(os.path.dirname(os.path.abspath(db_path)), exist_ok=True)
        with self._connect() as conn:
            conn.executescript(_SCHEMA)

    @contextmanager
    def _connect(self):
        """Yield a connected SQLite connection with WAL mode for concurrency."""
        conn = sqlite3.connect(self._db_path, timeout=10)
        conn.execute("PRAGMA journal_mode=WAL")
        try:
            yield conn
            conn.commit()
        except Exception:
            conn.rollback()
            raise
        finally:
            conn.close()

    def get(self, key: str) -> Optional[str]:
        try:
            with self._connect() as conn:
                row = conn.execute("SELECT value FROM kv WHERE key = ?", (key,)).fetchone()
        except sqlite3.Error as exc:
            logger.warning("[KVStore] Read of %s failed: %s", key, exc)
            return None
        return row[0] if row else None

    def set(self, key: str, value: str) -> bool:
        if not self.fits(value):
            logger.warning("[KVStore] Value for %s exceeds %d bytes", key, self.max_value_bytes)
            return False
        try:
            with self._connect() as conn:
                conn.execute(
                    "INSERT INTO kv (key, value) VALUES (?, ?) "
                    "ON CONFLICT(key) DO UPDATE SET value = excluded.value",
                    (key, value),
                )
        except sqlite3.Error as exc:
            logger.warning("[KVStore] Write of %s failed: %s", key, exc)
            return False
        return True

    def remove(self, key: str) -> None:
        try:
            with self._connect() as conn:
                conn.execute("DELETE FROM kv WHERE key = ?", (key,))
        except sqlite3.Error as exc:
            logger.warning("[KVStore] Delete of %s failed: %s", key, exc)

    def keys(self) -> list[str]:
        with self._connect() as conn:
            return [row[0] for row in conn.execute("SELECT key FROM kv ORDER BY key")]

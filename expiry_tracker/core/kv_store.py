"""
Persistent key-value store - opaque byte values, optional TTL, prefix listing and
compare-and-swap. No transactions or secondary indexes are exposed to callers.
"""

import sqlite3
import threading
import time
from abc import ABC, abstractmethod
from typing import Dict, List, Optional, Tuple

from .db import get_db, init_db


class StoreError(Exception):
    """Raised when the backing store cannot complete an operation."""
    pass


class IKeyValueStore(ABC):
    """Abstract interface for the persistent key-value store."""

    @abstractmethod
    def get(self, key: str) -> Optional[bytes]:
        """Return the value for key, or None when absent or expired."""
        pass

    @abstractmethod
    def put(self, key: str, value: bytes, ttl_seconds: Optional[float] = None) -> None:
        """Store value under key, optionally expiring after ttl_seconds."""
        pass

    @abstractmethod
    def delete(self, key: str) -> None:
        """Remove key; deleting a missing key is not an error."""
        pass

    @abstractmethod
    def list_keys(self, prefix: str = "") -> List[str]:
        """Return live keys starting with prefix, in ascending order."""
        pass

    @abstractmethod
    def compare_and_swap(self, key: str, expected: Optional[bytes], new: Optional[bytes],
                         ttl_seconds: Optional[float] = None) -> bool:
        """Replace the value of key with new only if it currently equals expected.

        expected=None means "key must be absent"; new=None deletes the key.
        Returns True when the swap happened.
        """
        pass


class InMemoryKVStore(IKeyValueStore):
    """Lock-guarded dict store for tests and dry runs."""

    def __init__(self, clock=time.time):
        self._data: Dict[str, Tuple[bytes, Optional[float]]] = {}
        self._lock = threading.Lock()
        self._clock = clock

    def _live(self, key: str) -> Optional[bytes]:
        entry = self._data.get(key)
        if entry is None:
            return None
        value, expires_at = entry
        if expires_at is not None and expires_at <= self._clock():
            del self._data[key]
            return None
        return value

    def _expiry(self, ttl_seconds: Optional[float]) -> Optional[float]:
        return self._clock() + ttl_seconds if ttl_seconds else None

    def get(self, key: str) -> Optional[bytes]:
        with self._lock:
            return self._live(key)

    def put(self, key: str, value: bytes, ttl_seconds: Optional[float] = None) -> None:
        with self._lock:
            self._data[key] = (bytes(value), self._expiry(ttl_seconds))

    def delete(self, key: str) -> None:
        with self._lock:
            self._data.pop(key, None)

    def list_keys(self, prefix: str = "") -> List[str]:
        with self._lock:
            return sorted(k for k in list(self._data) if k.startswith(prefix) and self._live(k) is not None)

    def compare_and_swap(self, key: str, expected: Optional[bytes], new: Optional[bytes],
                         ttl_seconds: Optional[float] = None) -> bool:
        with self._lock:
            if self._live(key) != expected:
                return False
            if new is None:
                self._data.pop(key, None)
            else:
                self._data[key] = (bytes(new), self._expiry(ttl_seconds))
            return True


class SQLiteKVStore(IKeyValueStore):
    """Production store backed by the ``kv_store`` table."""

    def __init__(self, db_path: str = None, clock=time.time):
        self.db_path = db_path
        self._clock = clock
        try:
            init_db(db_path)
        except (sqlite3.Error, OSError) as e:
            raise StoreError(f"Failed to initialize store at {db_path}: {e}") from e

    def _expiry(self, ttl_seconds: Optional[float]) -> Optional[float]:
        return self._clock() + ttl_seconds if ttl_seconds else None

    def get(self, key: str) -> Optional[bytes]:
        try:
            with get_db(self.db_path) as conn:
                row = conn.execute(
                    "SELECT value FROM kv_store WHERE key = ? AND (expires_at IS NULL OR expires_at > ?)",
                    (key, self._clock())
                ).fetchone()
                return bytes(row[0]) if row else None
        except sqlite3.Error as e:
            raise StoreError(f"get '{key}' failed: {e}") from e

    def put(self, key: str, value: bytes, ttl_seconds: Optional[float] = None) -> None:
        try:
            with get_db(self.db_path) as conn:
                conn.execute(
                    "INSERT OR REPLACE INTO kv_store (key, value, expires_at, updated_at) "
                    "VALUES (?, ?, ?, CURRENT_TIMESTAMP)",
                    (key, sqlite3.Binary(value), self._expiry(ttl_seconds))
                )
        except sqlite3.Error as e:
            raise StoreError(f"put '{key}' failed: {e}") from e

    def delete(self, key: str) -> None:
        try:
            with get_db(self.db_path) as conn:
                conn.execute("DELETE FROM kv_store WHERE key = ?", (key,))
        except sqlite3.Error as e:
            raise StoreError(f"delete '{key}' failed: {e}") from e

    def list_keys(self, prefix: str = "") -> List[str]:
        # LIKE would need escaping for '_' and '%'; a range scan on the primary key does not
        upper = prefix + "\U0010ffff"
        try:
            with get_db(self.db_path) as conn:
                rows = conn.execute(
                    "SELECT key FROM kv_store WHERE key >= ? AND key < ? "
                    "AND (expires_at IS NULL OR expires_at > ?) ORDER BY key",
                    (prefix, upper, self._clock())
                ).fetchall()
                return [row[0] for row in rows]
        except sqlite3.Error as e:
            raise StoreError(f"list '{prefix}' failed: {e}") from e

    def compare_and_swap(self, key: str, expected: Optional[bytes], new: Optional[bytes],
                         ttl_seconds: Optional[float] = None) -> bool:
        try:
            with get_db(self.db_path) as conn:
                conn.execute("BEGIN IMMEDIATE")
                try:
                    row = conn.execute(
                        "SELECT value FROM kv_store WHERE key = ? AND (expires_at IS NULL OR expires_at > ?)",
                        (key, self._clock())
                    ).fetchone()
                    current = bytes(row[0]) if row else None
                    if current != expected:
                        conn.execute("ROLLBACK")
                        return False

                    if new is None:
                        conn.execute("DELETE FROM kv_store WHERE key = ?", (key,))
                    else:
                        conn.execute(
                            "INSERT OR REPLACE INTO kv_store (key, value, expires_at, updated_at) "
                            "VALUES (?, ?, ?, CURRENT_TIMESTAMP)",
                            (key, sqlite3.Binary(new), self._expiry(ttl_seconds))
                        )
                    conn.execute("COMMIT")
                    return True
                except sqlite3.Error:
                    conn.execute("ROLLBACK")
                    raise
        except sqlite3.Error as e:
            raise StoreError(f"compare_and_swap '{key}' failed: {e}") from e

    def purge_expired(self) -> int:
        """Delete rows whose TTL has passed; returns the number removed."""
        try:
            with get_db(self.db_path) as conn:
                cursor = conn.execute(
                    "DELETE FROM kv_store WHERE expires_at IS NOT NULL AND expires_at <= ?",
                    (self._clock(),)
                )
                return cursor.rowcount
        except sqlite3.Error as e:
            raise StoreError(f"purge failed: {e}") from e

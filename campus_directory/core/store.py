"""
Durable key-value store adapter.
Unit of truth for the directory cache, the migration flag and telemetry.
"""

import sqlite3
from abc import ABC, abstractmethod
from datetime import datetime
from typing import Dict, Optional

from .db import get_db, init_db


class StoreError(Exception):
    """Raised when the durable store cannot be read or written."""
    pass


class KeyValueStore(ABC):
    """Abstract interface for durable string storage."""

    @abstractmethod
    def get(self, key: str) -> Optional[str]:
        """Return the stored value or None when the key is absent."""
        pass

    @abstractmethod
    def set(self, key: str, value: str) -> None:
        """Store a value, replacing any previous one."""
        pass

    @abstractmethod
    def delete(self, key: str) -> None:
        """Delete a key. Deleting an absent key is not an error."""
        pass


class InMemoryKeyValueStore(KeyValueStore):
    """Dictionary-backed store for tests and offline runs."""

    def __init__(self, initial: Dict[str, str] = None):
        self._data = dict(initial or {})

    def get(self, key: str) -> Optional[str]:
        return self._data.get(key)

    def set(self, key: str, value: str) -> None:
        self._data[key] = value

    def delete(self, key: str) -> None:
        self._data.pop(key, None)

    def keys(self):
        return list(self._data.keys())


class SQLiteKeyValueStore(KeyValueStore):
    """Store backed by the `properties` table, one connection per call."""

    def __init__(self, db_path: str):
        self.db_path = db_path
        init_db(db_path)

    def get(self, key: str) -> Optional[str]:
        try:
            with get_db(self.db_path) as conn:
                cursor = conn.cursor()
                cursor.execute("SELECT value FROM properties WHERE key = ?", (key,))
                row = cursor.fetchone()
                return row[0] if row else None
        except sqlite3.Error as e:
            raise StoreError(f"Failed to read '{key}': {e}") from e

    def set(self, key: str, value: str) -> None:
        try:
            with get_db(self.db_path) as conn:
                cursor = conn.cursor()
                cursor.execute(
                    "INSERT OR REPLACE INTO properties (key, value, updated_at) VALUES (?, ?, ?)",
                    (key, value, datetime.now().isoformat())
                )
                conn.commit()
        except sqlite3.Error as e:
            raise StoreError(f"Failed to write '{key}': {e}") from e

    def delete(self, key: str) -> None:
        try:
            with get_db(self.db_path) as conn:
                cursor = conn.cursor()
                cursor.execute("DELETE FROM properties WHERE key = ?", (key,))
                conn.commit()
        except sqlite3.Error as e:
            raise StoreError(f"Failed to delete '{key}': {e}") from e

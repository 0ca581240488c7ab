"""
Key-value persistence with JSON (de)serialization.

Storage failures never propagate, whether SQLite errors or an unusable
database path: reads fall back to the caller's default and writes report
False, both with a log line.
"""

import json
import logging
import sqlite3
from datetime import datetime
from typing import Any, Dict, Optional

from .db import DEFAULT_DB_PATH, get_connection, initialize_schema

logger = logging.getLogger(__name__)


class KeyValueStore:
    """Raw string storage by key. Subclasses may raise on I/O failure."""

    def get_item(self, key: str) -> Optional[str]:
        raise NotImplementedError

    def set_item(self, key: str, value: str) -> None:
        raise NotImplementedError

    def remove_item(self, key: str) -> None:
        raise NotImplementedError

    def get_json(self, key: str, default: Any = None) -> Any:
        """Read and decode a JSON value, returning ``default`` on any failure."""
        try:
            raw = self.get_item(key)
        except (sqlite3.Error, OSError) as e:
            logger.warning("Failed to read %s from storage: %s", key, e)
            return default
        if raw is None or raw == "":
            return default
        try:
            return json.loads(raw)
        except ValueError as e:
            logger.warning("Corrupt JSON under %s, using default: %s", key, e)
            return default

    def set_json(self, key: str, value: Any) -> bool:
        """Encode and write a JSON value. Returns False if the write failed."""
        try:
            self.set_item(key, json.dumps(value, ensure_ascii=False))
            return True
        except (sqlite3.Error, OSError, TypeError, ValueError) as e:
            logger.error("Failed to save %s to storage: %s", key, e)
            return False

    def remove(self, key: str) -> bool:
        try:
            self.remove_item(key)
            return True
        except (sqlite3.Error, OSError) as e:
            logger.error("Failed to remove %s from storage: %s", key, e)
            return False


class MemoryKeyValueStore(KeyValueStore):
    """Process-local store, used for tests and when no database is configured."""

    def __init__(self, initial: Optional[Dict[str, str]] = None):
        self._items: Dict[str, str] = dict(initial or {})

    def get_item(self, key: str) -> Optional[str]:
        return self._items.get(key)

    def set_item(self, key: str, value: str) -> None:
        self._items[key] = value

    def remove_item(self, key: str) -> None:
        self._items.pop(key, None)

    def keys(self):
        return list(self._items)


class SQLiteKeyValueStore(KeyValueStore):
    """Key-value store persisted in a single SQLite table.

    Each call opens and closes its own connection, so instances are cheap and
    hold no open handles between operations.
    """

    def __init__(self, db_path: str = DEFAULT_DB_PATH, create: bool = True):
        """Initialize the store with a database path.

        Args:
            db_path: Path to SQLite database file
            create: Create the table on construction if missing
        """
        self.db_path = db_path
        if create:
            try:
                initialize_schema(db_path)
            except (sqlite3.Error, OSError) as e:
                logger.error("Could not initialize storage at %s: %s", db_path, e)

    def get_item(self, key: str) -> Optional[str]:
        conn = get_connection(self.db_path)
        try:
            row = conn.execute("SELECT value FROM kv_store WHERE key = ?", (key,)).fetchone()
            return row[0] if row else None
        finally:
            conn.close()

    def set_item(self, key: str, value: str) -> None:
        conn = get_connection(self.db_path)
        try:
            conn.execute(
                """
                INSERT INTO kv_store (key, value, updated_at) VALUES (?, ?, ?)
                ON CONFLICT(key) DO UPDATE SET value = excluded.value,
                                               updated_at = excluded.updated_at
                """,
                (key, value, datetime.now().isoformat()),
            )
            conn.commit()
        except Exception:
            conn.rollback()
            raise
        finally:
            conn.close()

    def remove_item(self, key: str) -> None:
        conn = get_connection(self.db_path)
        try:
            conn.execute("DELETE FROM kv_store WHERE key = ?", (key,))
            conn.commit()
        finally:
            conn.close()

#!/usr/bin/env python3
"""
SQLite-based persistent store for Jira data.

Records are JSON documents addressed by a two-part key:
- ('tickets', 'PROJ-123') -> ticket record (fields, cached comments)
- ('projects', 'PROJ')    -> project record

Writes are merges, never replacements: nested mappings are merged field by
field so a write that carries only comments cannot clobber the ticket's
other fields, and vice versa.

Thread Safety:
- Uses connection-per-thread pattern
- merge() is a read-modify-write serialized by a store-wide lock
- Safe for concurrent access from multiple threads
"""

import sqlite3
import json
import logging
import time
import threading
from pathlib import Path
from typing import Any, Dict, List, Optional

from jira_errors import StoreIOError

logger = logging.getLogger(__name__)


def deep_merge(base: Dict[str, Any], partial: Dict[str, Any]) -> Dict[str, Any]:
    """
    Merge `partial` onto `base` and return the result (inputs untouched).

    Nested dicts merge recursively; any other value (lists, scalars, None)
    replaces the existing one.
    """
    merged = dict(base)
    for field, value in partial.items():
        existing = merged.get(field)
        if isinstance(value, dict) and isinstance(existing, dict):
            merged[field] = deep_merge(existing, value)
        else:
            merged[field] = value
    return merged


class JiraSQLiteCache:
    """
    SQLite document store with select/merge semantics and thread safety.

    This is a cache of remote data, never the source of truth: every
    record can be rebuilt from the API.
    """

    def __init__(self, db_path: Path):
        """
        Initialize the store.

        Args:
            db_path: SQLite file (parent directory is created if missing)
        """
        self.db_path = Path(db_path)
        try:
            self.db_path.parent.mkdir(parents=True, exist_ok=True)
        except OSError as e:
            raise StoreIOError(f"Cannot create cache directory {self.db_path.parent}: {e}") from e

        # Thread-local storage for connections
        self._local = threading.local()

        # Serializes read-modify-write in merge()
        self._write_lock = threading.Lock()

        self._init_db()

    @classmethod
    def from_config(cls, config) -> 'JiraSQLiteCache':
        return cls(config.db_path)

    def _get_connection(self) -> sqlite3.Connection:
        """Get thread-local database connection."""
        if not hasattr(self._local, 'conn'):
            self._local.conn = sqlite3.connect(
                self.db_path,
                check_same_thread=False,
                timeout=10.0
            )
            self._local.conn.row_factory = sqlite3.Row
        return self._local.conn

    def _init_db(self):
        """Initialize database schema if not exists."""
        try:
            conn = self._get_connection()
            conn.execute('''
                CREATE TABLE IF NOT EXISTS records (
                    resource TEXT NOT NULL,
                    key TEXT NOT NULL,
                    data TEXT NOT NULL,
                    cached_at REAL NOT NULL,
                    PRIMARY KEY (resource, key)
                )
            ''')
            conn.commit()
        except sqlite3.Error as e:
            raise StoreIOError(f"Cannot initialize store at {self.db_path}: {e}") from e

    # ===== Document access =====

    def select(self, resource: str, key: str) -> Optional[Dict[str, Any]]:
        """Return the record for (resource, key), or None if never written."""
        try:
            cursor = self._get_connection().execute(
                'SELECT data FROM records WHERE resource = ? AND key = ?',
                (resource, key)
            )
            row = cursor.fetchone()
        except sqlite3.Error as e:
            raise StoreIOError(f"select {resource}:{key} failed: {e}") from e

        if not row:
            return None
        return json.loads(row['data'])

    def merge(self, resource: str, key: str, partial: Dict[str, Any]) -> Dict[str, Any]:
        """
        Merge a partial record into (resource, key), creating it if absent.

        Returns:
            The merged record as stored
        """
        with self._write_lock:
            conn = self._get_connection()
            try:
                row = conn.execute(
                    'SELECT data FROM records WHERE resource = ? AND key = ?',
                    (resource, key)
                ).fetchone()
                current = json.loads(row['data']) if row else {}
                merged = deep_merge(current, partial)

                conn.execute('''
                    INSERT OR REPLACE INTO records (resource, key, data, cached_at)
                    VALUES (?, ?, ?, ?)
                ''', (resource, key, json.dumps(merged), time.time()))
                conn.commit()
            except sqlite3.Error as e:
                conn.rollback()
                raise StoreIOError(f"merge {resource}:{key} failed: {e}") from e

        logger.debug("merged %s:%s (%s)", resource, key, ', '.join(sorted(partial)))
        return merged

    def select_all(self, resource: str) -> List[Dict[str, Any]]:
        """Return every record of a resource type, ordered by key."""
        try:
            cursor = self._get_connection().execute(
                'SELECT data FROM records WHERE resource = ? ORDER BY key',
                (resource,)
            )
            return [json.loads(row['data']) for row in cursor.fetchall()]
        except sqlite3.Error as e:
            raise StoreIOError(f"select_all {resource} failed: {e}") from e

    def clear(self) -> int:
        """Clear every record. Returns number of records cleared."""
        with self._write_lock:
            conn = self._get_connection()
            try:
                cursor = conn.execute('DELETE FROM records')
                conn.commit()
            except sqlite3.Error as e:
                raise StoreIOError(f"clear failed: {e}") from e
        return cursor.rowcount

    def close(self):
        """Close this thread's connection."""
        conn = getattr(self._local, 'conn', None)
        if conn is not None:
            conn.close()
            del self._local.conn


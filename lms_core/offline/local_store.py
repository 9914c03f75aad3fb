# =============================================================================
# lms_core/offline/local_store.py
# Local SQLite Key/Value Store for Offline Operations
# =============================================================================
"""
LocalStore - persistent, process-wide key/value store.

Features:
- One serialized JSON blob per key (``lms:<kind>[:<scope>]``)
- Whole-value replacement with INSERT OR REPLACE (never a partial write)
- Last-updated timestamp per key
- Thread-safe operations over a single connection
- DataFrame view of the stored keys (pandas)

Instances are passed explicitly to the components that use them, so several
isolated stores (e.g. ``":memory:"`` in tests) can coexist in one process.
"""

from __future__ import annotations
import json
import sqlite3
import threading
from contextlib import contextmanager
from datetime import datetime
from pathlib import Path
from typing import Any, List, Optional, Union
import logging

import pandas as pd

logger = logging.getLogger(__name__)


class LocalStore:
    """
    SQLite-backed key/value store.

    Usage:
        store = LocalStore("local_data/lms_cache.db")
        store.set("lms:courses", [...])
        courses = store.get("lms:courses", default=[])
    """

    MEMORY = ":memory:"

    # Default database location
    DEFAULT_DB_PATH = Path("local_data") / "lms_cache.db"

    SCHEMA = """
        CREATE TABLE IF NOT EXISTS collections (
            key TEXT PRIMARY KEY,
            value TEXT NOT NULL,
            updated_at TEXT NOT NULL
        )
    """

    def __init__(self, db_path: Optional[Union[str, Path]] = None):
        """
        Initialize local store.

        Args:
            db_path: Path to SQLite database file, or ":memory:"
        """
        self.db_path = str(db_path) if db_path is not None else str(self.DEFAULT_DB_PATH)
        self._lock = threading.RLock()
        self._connection: Optional[sqlite3.Connection] = None
        self._initialized = False

    @property
    def is_memory(self) -> bool:
        return self.db_path == self.MEMORY

    def _ensure_directory(self) -> None:
        """Ensure database directory exists."""
        if not self.is_memory:
            Path(self.db_path).parent.mkdir(parents=True, exist_ok=True)

    def _get_connection(self) -> sqlite3.Connection:
        """Get the shared database connection."""
        if self._connection is None:
            self._ensure_directory()
            self._connection = sqlite3.connect(self.db_path, check_same_thread=False)
            self._connection.row_factory = sqlite3.Row
        return self._connection

    @contextmanager
    def transaction(self):
        """Context manager for database transactions."""
        with self._lock:
            conn = self._get_connection()
            try:
                yield conn
                conn.commit()
            except Exception:
                conn.rollback()
                raise

    def initialize(self) -> None:
        """Initialize database schema."""
        with self._lock:
            if self._initialized:
                return
            with self.transaction() as conn:
                conn.execute(self.SCHEMA)
            self._initialized = True
        logger.info(f"Local store initialized at: {self.db_path}")

    # =========================================================================
    # KEY/VALUE OPERATIONS
    # =========================================================================

    def get(self, key: str, default: Any = None) -> Any:
        """
        Read the value stored under a key.

        Args:
            key: Store key
            default: Returned when the key is absent or unreadable

        Returns:
            Deserialized value
        """
        self.initialize()
        with self._lock:
            row = self._get_connection().execute(
                "SELECT value FROM collections WHERE key = ?", [key]
            ).fetchone()
        if row is None:
            return default
        try:
            return json.loads(row["value"])
        except json.JSONDecodeError as e:
            logger.warning(f"Discarding unreadable value for '{key}': {e}")
            return default

    def set(self, key: str, value: Any) -> None:
        """Replace the whole value stored under a key."""
        # Serialize before taking the lock so a bad value never reaches the table
        payload = json.dumps(value)
        self.initialize()
        with self.transaction() as conn:
            conn.execute(
                """
                INSERT OR REPLACE INTO collections (key, value, updated_at)
                VALUES (?, ?, ?)
                """,
                [key, payload, datetime.now().isoformat()],
            )
        logger.debug(f"Stored '{key}'")

    def has(self, key: str) -> bool:
        return self.last_updated(key) is not None

    def delete(self, key: str) -> bool:
        """Delete a key. Returns True if it existed."""
        self.initialize()
        with self.transaction() as conn:
            cursor = conn.execute("DELETE FROM collections WHERE key = ?", [key])
        return cursor.rowcount > 0

    def last_updated(self, key: str) -> Optional[datetime]:
        """Time of the last write to a key, or None if never written."""
        self.initialize()
        with self._lock:
            row = self._get_connection().execute(
                "SELECT updated_at FROM collections WHERE key = ?", [key]
            ).fetchone()
        return datetime.fromisoformat(row["updated_at"]) if row else None

    def keys(self, prefix: str = "") -> List[str]:
        """All keys starting with a prefix, sorted."""
        self.initialize()
        with self._lock:
            rows = self._get_connection().execute(
                "SELECT key FROM collections WHERE substr(key, 1, ?) = ? ORDER BY key",
                [len(prefix), prefix],
            ).fetchall()
        return [row["key"] for row in rows]

    def clear(self, prefix: str = "") -> int:
        """Delete every key starting with a prefix. Returns rows deleted."""
        self.initialize()
        with self.transaction() as conn:
            cursor = conn.execute(
                "DELETE FROM collections WHERE substr(key, 1, ?) = ?",
                [len(prefix), prefix],
            )
        return cursor.rowcount

    def to_dataframe(self, prefix: str = "") -> pd.DataFrame:
        """
        Summary of stored keys as a DataFrame.

        Returns:
            DataFrame with columns key, size, updated_at
        """
        self.initialize()
        with self._lock:
            rows = self._get_connection().execute(
                """
                SELECT key, length(value) AS size, updated_at FROM collections
                WHERE substr(key, 1, ?) = ? ORDER BY key
                """,
                [len(prefix), prefix],
            ).fetchall()

        df = pd.DataFrame([dict(row) for row in rows], columns=["key", "size", "updated_at"])
        df["updated_at"] = pd.to_datetime(df["updated_at"])
        return df

    def close(self) -> None:
        """Close database connection."""
        with self._lock:
            if self._connection is not None:
                self._connection.close()
                self._connection = None
                self._initialized = False

"""Durable key-value storage for sync state.

This module provides:
- KeyValueStore: Protocol for the durable local store
- MemoryKeyValueStore: In-memory store for tests and ephemeral sessions
- SQLiteKeyValueStore: SQLite-backed store surviving process restarts

Values are strings (serialized JSON); the engine owns the encoding.

Persistence (SQLite):
    Each set/remove commits immediately. WAL journal mode keeps readers
    unblocked during writes. Blocking calls run in a worker thread so the
    event loop is never stalled; an RLock serializes access to the
    connection.
"""

from __future__ import annotations

import asyncio
import logging
import sqlite3
import threading
from pathlib import Path
from typing import Protocol

from offlinesync.client.sync.types import PersistenceError

logger = logging.getLogger(__name__)


class KeyValueStore(Protocol):
    """Protocol for the durable local store."""

    async def get(self, key: str) -> str | None:
        """Get a value, or None if the key is absent."""
        ...

    async def set(self, key: str, value: str) -> None:
        """Store a value, replacing any previous one."""
        ...

    async def remove(self, key: str) -> None:
        """Remove a key (no-op if absent)."""
        ...


class MemoryKeyValueStore:
    """Dict-backed store. Nothing survives the process."""

    def __init__(self, initial: dict[str, str] | None = None) -> None:
        self._data: dict[str, str] = dict(initial or {})

    async def get(self, key: str) -> str | None:
        return self._data.get(key)

    async def set(self, key: str, value: str) -> None:
        self._data[key] = value

    async def remove(self, key: str) -> None:
        self._data.pop(key, None)

    def __contains__(self, key: str) -> bool:
        return key in self._data

    def __len__(self) -> int:
        return len(self._data)


class SQLiteKeyValueStore:
    """SQLite-backed key-value store.

    Usage:
        store = SQLiteKeyValueStore(Path("~/.offlinesync/state.db").expanduser())
        await store.set("offlinesync:pendingActions", "[]")
        store.close()
    """

    def __init__(self, db_path: Path) -> None:
        """Open (or create) the database.

        Args:
            db_path: Path to the SQLite file. Parent directories are created.

        Raises:
            PersistenceError: If the database cannot be opened.
        """
        self._db_path = Path(db_path)
        self._lock = threading.RLock()
        try:
            self._db_path.parent.mkdir(parents=True, exist_ok=True)
            self._conn: sqlite3.Connection | None = sqlite3.connect(
                str(self._db_path),
                check_same_thread=False,
            )
            self._conn.execute("PRAGMA journal_mode=WAL")
            self._conn.execute("""
                CREATE TABLE IF NOT EXISTS kv (
                    key TEXT PRIMARY KEY,
                    value TEXT NOT NULL
                )
            """)
            self._conn.commit()
        except (OSError, sqlite3.Error) as e:
            raise PersistenceError(f"Cannot open store at {self._db_path}: {e}") from e
        logger.debug("Opened key-value store at %s", self._db_path)

    @property
    def path(self) -> Path:
        """Get the database path."""
        return self._db_path

    def _connection(self) -> sqlite3.Connection:
        if self._conn is None:
            raise PersistenceError("Store is closed")
        return self._conn

    def _get_sync(self, key: str) -> str | None:
        with self._lock:
            try:
                row = self._connection().execute(
                    "SELECT value FROM kv WHERE key = ?", (key,)
                ).fetchone()
            except sqlite3.Error as e:
                raise PersistenceError(f"Cannot read {key}: {e}") from e
            return row[0] if row else None

    def _set_sync(self, key: str, value: str) -> None:
        with self._lock:
            conn = self._connection()
            try:
                conn.execute(
                    "INSERT OR REPLACE INTO kv (key, value) VALUES (?, ?)",
                    (key, value),
                )
                conn.commit()
            except sqlite3.Error as e:
                raise PersistenceError(f"Cannot write {key}: {e}") from e

    def _remove_sync(self, key: str) -> None:
        with self._lock:
            conn = self._connection()
            try:
                conn.execute("DELETE FROM kv WHERE key = ?", (key,))
                conn.commit()
            except sqlite3.Error as e:
                raise PersistenceError(f"Cannot remove {key}: {e}") from e

    async def get(self, key: str) -> str | None:
        return await asyncio.to_thread(self._get_sync, key)

    async def set(self, key: str, value: str) -> None:
        await asyncio.to_thread(self._set_sync, key, value)

    async def remove(self, key: str) -> None:
        await asyncio.to_thread(self._remove_sync, key)

    def close(self) -> None:
        """Close the database connection."""
        with self._lock:
            if self._conn is not None:
                self._conn.close()
                self._conn = None
                logger.debug("Closed key-value store at %s", self._db_path)

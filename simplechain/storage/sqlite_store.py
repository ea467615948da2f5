"""
SQLite Store Module

Persistent KeyValueStore engine backed by the standard library sqlite3
module (WAL journal). Blocking calls run in a worker thread through
asyncio.to_thread so the event loop never stalls on disk I/O.

Schema:
    blocks(key INTEGER PRIMARY KEY, value BLOB NOT NULL)

INTEGER keys keep the natural numeric order, so iteration yields
0, 1, 2, ..., 10 rather than the lexicographic order of text keys.
"""

import asyncio
import logging
import os
import sqlite3
import threading
from typing import AsyncIterator, List, Optional

from .kv_store import (
    KeyValueStore,
    KeyExistsError,
    KeyNotFoundError,
    StoreError,
    StoreWriteError,
)


logger = logging.getLogger(__name__)


_SCHEMA = """
CREATE TABLE IF NOT EXISTS blocks (
    key INTEGER PRIMARY KEY,
    value BLOB NOT NULL
);
"""

DEFAULT_PAGE_SIZE = 256


class SQLiteStore(KeyValueStore):
    """
    SQLite-backed ordered store.

    A single connection is shared across worker threads and serialized by
    a threading lock; sqlite3 errors are wrapped as StoreError subclasses.
    """

    def __init__(
        self,
        db_path: str,
        timeout: float = 30.0,
        page_size: int = DEFAULT_PAGE_SIZE
    ):
        """
        Open (or create) the database at db_path.

        Args:
            db_path: File path, or ":memory:" for a private in-memory database
            timeout: Seconds sqlite waits on a locked database
            page_size: Keys fetched per round-trip during iteration
        """
        if page_size < 1:
            raise ValueError("page_size must be positive")
        self._db_path = db_path
        self._page_size = page_size
        self._lock = threading.Lock()
        self._conn: Optional[sqlite3.Connection] = None

        d = os.path.dirname(db_path) if db_path != ':memory:' else ''
        if d:
            os.makedirs(d, exist_ok=True)

        try:
            self._conn = sqlite3.connect(
                db_path,
                timeout=timeout,
                isolation_level=None,
                check_same_thread=False,
            )
            if db_path != ':memory:':
                self._conn.execute("PRAGMA journal_mode=WAL;")
            self._conn.execute("PRAGMA synchronous=NORMAL;")
            self._conn.executescript(_SCHEMA)
        except sqlite3.Error as e:
            if self._conn is not None:
                self._conn.close()
                self._conn = None
            raise StoreError(f"Cannot open store at {db_path}: {e}") from e
        logger.debug("opened sqlite store at %s", db_path)

    @property
    def db_path(self) -> str:
        return self._db_path

    def _connection(self) -> sqlite3.Connection:
        if self._conn is None:
            raise StoreError("Store is closed")
        return self._conn

    # ------------------------------------------------------------------
    # Blocking helpers (run in worker threads)
    # ------------------------------------------------------------------

    def _get_sync(self, key: int) -> Optional[bytes]:
        with self._lock:
            row = self._connection().execute(
                "SELECT value FROM blocks WHERE key = ?", (key,)
            ).fetchone()
        return None if row is None else bytes(row[0])

    def _put_sync(self, key: int, value: bytes) -> None:
        with self._lock:
            self._connection().execute(
                "INSERT OR REPLACE INTO blocks(key, value) VALUES (?, ?)",
                (key, sqlite3.Binary(value)),
            )

    def _put_new_sync(self, key: int, value: bytes) -> None:
        with self._lock:
            self._connection().execute(
                "INSERT INTO blocks(key, value) VALUES (?, ?)",
                (key, sqlite3.Binary(value)),
            )

    def _keys_after_sync(self, after: int) -> List[int]:
        with self._lock:
            rows = self._connection().execute(
                "SELECT key FROM blocks WHERE key > ? ORDER BY key LIMIT ?",
                (after, self._page_size),
            ).fetchall()
        return [row[0] for row in rows]

    def _close_sync(self) -> None:
        with self._lock:
            if self._conn is not None:
                self._conn.close()
                self._conn = None

    # ------------------------------------------------------------------
    # KeyValueStore
    # ------------------------------------------------------------------

    async def get(self, key: int) -> bytes:
        try:
            value = await asyncio.to_thread(self._get_sync, key)
        except sqlite3.Error as e:
            raise StoreError(f"get({key}) failed: {e}") from e
        if value is None:
            raise KeyNotFoundError(key)
        return value

    async def put(self, key: int, value: bytes) -> None:
        try:
            await asyncio.to_thread(self._put_sync, key, value)
        except sqlite3.Error as e:
            raise StoreWriteError(f"put({key}) failed: {e}") from e
        logger.debug("sqlite put key=%d size=%d", key, len(value))

    async def put_new(self, key: int, value: bytes) -> None:
        try:
            await asyncio.to_thread(self._put_new_sync, key, value)
        except sqlite3.IntegrityError:
            raise KeyExistsError(key) from None
        except sqlite3.Error as e:
            raise StoreWriteError(f"put_new({key}) failed: {e}") from e
        logger.debug("sqlite put_new key=%d size=%d", key, len(value))

    async def iterate_keys(self) -> AsyncIterator[int]:
        after = -1
        while True:
            try:
                page = await asyncio.to_thread(self._keys_after_sync, after)
            except sqlite3.Error as e:
                raise StoreError(f"iterate_keys failed after {after}: {e}") from e
            for key in page:
                yield key
            if len(page) < self._page_size:
                return
            after = page[-1]

    async def close(self) -> None:
        await asyncio.to_thread(self._close_sync)
        logger.debug("closed sqlite store at %s", self._db_path)

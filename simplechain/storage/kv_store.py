"""
Key-Value Store Module

Ordered persistence contract used by the ledger, plus an in-memory engine.

The ledger only talks to KeyValueStore; the engine behind it (memory,
SQLite, anything ordered) is chosen at construction time.

Contract:
- get(key) -> bytes, KeyNotFoundError when absent
- put(key, value), unconditional overwrite
- put_new(key, value), insert-if-absent, KeyExistsError on collision
- iterate_keys() -> ascending keys, fresh iteration per call
"""

import asyncio
import logging
from abc import ABC, abstractmethod
from typing import AsyncIterator, Dict


logger = logging.getLogger(__name__)


# ============================================================================
# Errors
# ============================================================================

class StoreError(Exception):
    """Base class for storage-layer failures."""
    pass


class KeyNotFoundError(StoreError):
    """Raised when a key is absent from the store."""

    def __init__(self, key: int):
        super().__init__(f"Key not found: {key}")
        self.key = key


class KeyExistsError(StoreError):
    """Raised by put_new when the key is already taken."""

    def __init__(self, key: int):
        super().__init__(f"Key already exists: {key}")
        self.key = key


class StoreWriteError(StoreError):
    """Raised when a write could not be persisted."""
    pass


# ============================================================================
# Contract
# ============================================================================

class KeyValueStore(ABC):
    """
    Ordered key-value store with asynchronous access.

    Keys are non-negative integers (block heights), values are raw bytes.
    Implementations must surface every failure as a StoreError subclass.
    """

    @abstractmethod
    async def get(self, key: int) -> bytes:
        """Return the value stored at key."""

    @abstractmethod
    async def put(self, key: int, value: bytes) -> None:
        """Store value at key, replacing any existing value."""

    @abstractmethod
    async def put_new(self, key: int, value: bytes) -> None:
        """Store value at key only if the key is absent."""

    @abstractmethod
    def iterate_keys(self) -> AsyncIterator[int]:
        """Yield all keys in ascending order."""

    async def contains(self, key: int) -> bool:
        """Check whether key is present."""
        try:
            await self.get(key)
        except KeyNotFoundError:
            return False
        return True

    async def close(self) -> None:
        """Release engine resources."""

    def __bool__(self) -> bool:
        # An open handle is truthy even when it holds no keys
        return True

    async def __aenter__(self) -> 'KeyValueStore':
        return self

    async def __aexit__(self, exc_type, exc, tb) -> None:
        await self.close()


# ============================================================================
# In-Memory Engine
# ============================================================================

class MemoryStore(KeyValueStore):
    """
    Dict-backed store for tests and demos.

    Every operation yields to the event loop once, so callers observe the
    same suspension points they would with a real engine.
    """

    def __init__(self):
        self._data: Dict[int, bytes] = {}

    @staticmethod
    def _check_key(key: int) -> None:
        if not isinstance(key, int) or isinstance(key, bool) or key < 0:
            raise ValueError(f"Key must be a non-negative integer, got {key!r}")

    async def get(self, key: int) -> bytes:
        self._check_key(key)
        await asyncio.sleep(0)
        try:
            return self._data[key]
        except KeyError:
            raise KeyNotFoundError(key) from None

    async def put(self, key: int, value: bytes) -> None:
        self._check_key(key)
        await asyncio.sleep(0)
        self._data[key] = bytes(value)
        logger.debug("memory put key=%d size=%d", key, len(value))

    async def put_new(self, key: int, value: bytes) -> None:
        self._check_key(key)
        await asyncio.sleep(0)
        if key in self._data:
            raise KeyExistsError(key)
        self._data[key] = bytes(value)
        logger.debug("memory put_new key=%d size=%d", key, len(value))

    async def iterate_keys(self) -> AsyncIterator[int]:
        # Keys are snapshotted when iteration starts
        for key in sorted(self._data):
            await asyncio.sleep(0)
            yield key

    def __len__(self) -> int:
        return len(self._data)

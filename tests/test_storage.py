"""
Unit tests for the key-value store engines.

Tests:
- get / put / put_new semantics
- Ordered, re-invocable key iteration
- SQLite persistence and error wrapping
"""

import asyncio
import sqlite3

import pytest

from simplechain.storage import (
    KeyExistsError,
    KeyNotFoundError,
    MemoryStore,
    SQLiteStore,
    StoreError,
)


async def collect_keys(store):
    return [key async for key in store.iterate_keys()]


class TestMemoryStore:
    """Tests for the in-memory engine."""

    def test_put_and_get(self):
        """Stored values are returned unchanged."""
        async def scenario():
            store = MemoryStore()
            await store.put(0, b"zero")
            return await store.get(0)

        assert asyncio.run(scenario()) == b"zero"

    def test_missing_key(self):
        """Absent keys raise KeyNotFoundError."""
        store = MemoryStore()
        with pytest.raises(KeyNotFoundError) as info:
            asyncio.run(store.get(5))
        assert info.value.key == 5

    def test_put_overwrites(self):
        """put replaces an existing value."""
        async def scenario():
            store = MemoryStore()
            await store.put(1, b"old")
            await store.put(1, b"new")
            return await store.get(1)

        assert asyncio.run(scenario()) == b"new"

    def test_put_new_rejects_existing_key(self):
        """put_new fails visibly instead of overwriting."""
        async def scenario():
            store = MemoryStore()
            await store.put_new(1, b"first")
            with pytest.raises(KeyExistsError):
                await store.put_new(1, b"second")
            return await store.get(1)

        assert asyncio.run(scenario()) == b"first"

    def test_iteration_is_numeric_order(self):
        """Keys come back in ascending integer order."""
        async def scenario():
            store = MemoryStore()
            for key in (10, 2, 0, 1):
                await store.put(key, b"x")
            return await collect_keys(store)

        assert asyncio.run(scenario()) == [0, 1, 2, 10]

    def test_iteration_is_reinvocable(self):
        """Each call to iterate_keys starts over."""
        async def scenario():
            store = MemoryStore()
            await store.put(0, b"x")
            await store.put(1, b"y")
            return await collect_keys(store), await collect_keys(store)

        first, second = asyncio.run(scenario())
        assert first == second == [0, 1]

    def test_contains(self):
        """contains reflects presence."""
        async def scenario():
            store = MemoryStore()
            await store.put(3, b"x")
            return await store.contains(3), await store.contains(4)

        assert asyncio.run(scenario()) == (True, False)

    def test_invalid_key_rejected(self):
        """Negative or non-integer keys raise ValueError."""
        store = MemoryStore()
        with pytest.raises(ValueError):
            asyncio.run(store.put(-1, b"x"))
        with pytest.raises(ValueError):
            asyncio.run(store.get("1"))


class TestSQLiteStore:
    """Tests for the SQLite engine."""

    def test_put_get_and_collision(self, tmp_path):
        """Basic reads and writes, with put_new collisions."""
        async def scenario():
            async with SQLiteStore(str(tmp_path / "chain.db")) as store:
                await store.put_new(0, b"genesis")
                with pytest.raises(KeyExistsError):
                    await store.put_new(0, b"other")
                await store.put(0, b"rewritten")
                value = await store.get(0)
                with pytest.raises(KeyNotFoundError):
                    await store.get(1)
                return value

        assert asyncio.run(scenario()) == b"rewritten"

    def test_iteration_pages_in_numeric_order(self, tmp_path):
        """Iteration crosses page boundaries and keeps integer order."""
        async def scenario():
            store = SQLiteStore(str(tmp_path / "chain.db"), page_size=5)
            for key in reversed(range(12)):
                await store.put(key, str(key).encode())
            keys = await collect_keys(store)
            await store.close()
            return keys

        assert asyncio.run(scenario()) == list(range(12))

    def test_data_survives_reopen(self, tmp_path):
        """Values written before close are readable after reopening."""
        path = str(tmp_path / "nested" / "chain.db")

        async def write():
            async with SQLiteStore(path) as store:
                await store.put(0, b"persisted")

        async def read():
            async with SQLiteStore(path) as store:
                return await store.get(0)

        asyncio.run(write())
        assert asyncio.run(read()) == b"persisted"

    def test_in_memory_database(self):
        """':memory:' gives a private, empty database."""
        async def scenario():
            async with SQLiteStore(":memory:") as store:
                await store.put(1, b"x")
                return await collect_keys(store)

        assert asyncio.run(scenario()) == [1]

    def test_closed_store_raises_store_error(self, tmp_path):
        """Operations after close surface as StoreError."""
        async def scenario():
            store = SQLiteStore(str(tmp_path / "chain.db"))
            await store.close()
            await store.get(0)

        with pytest.raises(StoreError):
            asyncio.run(scenario())

    def test_invalid_page_size(self, tmp_path):
        """page_size must be positive."""
        with pytest.raises(ValueError):
            SQLiteStore(str(tmp_path / "chain.db"), page_size=0)

    def test_open_failure_raises_store_error(self, tmp_path):
        """A file that is not a database fails to open with StoreError."""
        path = tmp_path / "chain.db"
        path.write_bytes(b"this is not an sqlite database" * 8)
        with pytest.raises(StoreError):
            SQLiteStore(str(path))

    def test_open_failure_closes_connection(self, tmp_path, monkeypatch):
        """A failed pragma or schema step closes the half-open connection."""
        opened = []

        class BrokenConnection:
            closed = False

            def execute(self, sql):
                raise sqlite3.OperationalError("disk I/O error")

            def close(self):
                self.closed = True

        def connect(*args, **kwargs):
            conn = BrokenConnection()
            opened.append(conn)
            return conn

        monkeypatch.setattr(sqlite3, "connect", connect)
        with pytest.raises(StoreError):
            SQLiteStore(str(tmp_path / "chain.db"))
        assert len(opened) == 1
        assert opened[0].closed


class TestStoreTruthiness:
    """Tests for store handles in boolean context."""

    def test_empty_stores_are_truthy(self, tmp_path):
        """An open store with no keys is still truthy."""
        memory = MemoryStore()
        assert len(memory) == 0
        assert memory
        sqlite_store = SQLiteStore(str(tmp_path / "chain.db"))
        assert sqlite_store
        asyncio.run(sqlite_store.close())

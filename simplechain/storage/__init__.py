# Storage Module
"""
Ordered key-value persistence for the ledger:
- KeyValueStore contract and error types - kv_store.py
- In-memory engine (tests, demos) - kv_store.py
- SQLite engine (WAL, persistent) - sqlite_store.py

The ledger depends only on the KeyValueStore contract.
"""

from .kv_store import (
    KeyValueStore,
    MemoryStore,
    StoreError,
    KeyNotFoundError,
    KeyExistsError,
    StoreWriteError,
)

from .sqlite_store import SQLiteStore

__all__ = [
    # Contract
    'KeyValueStore',
    'StoreError',
    'KeyNotFoundError',
    'KeyExistsError',
    'StoreWriteError',
    # Engines
    'MemoryStore',
    'SQLiteStore',
]

"""
Unit tests for ledger configuration.
"""

import asyncio

import pytest

from simplechain.config import (
    DEFAULT_APPEND_RETRIES,
    DEFAULT_DB_PATH,
    LedgerConfig,
    open_store,
)
from simplechain.storage import MemoryStore, SQLiteStore


class TestLedgerConfig:
    """Tests for LedgerConfig."""

    def test_defaults(self):
        """An empty environment yields the module defaults."""
        config = LedgerConfig.from_env({})
        assert config.store == "sqlite"
        assert config.db_path == DEFAULT_DB_PATH
        assert config.append_retries == DEFAULT_APPEND_RETRIES

    def test_from_env(self):
        """SIMPLECHAIN_* variables override defaults."""
        config = LedgerConfig.from_env({
            "SIMPLECHAIN_STORE": "Memory",
            "SIMPLECHAIN_DB_PATH": "/tmp/chain.db",
            "SIMPLECHAIN_APPEND_RETRIES": "5",
            "SIMPLECHAIN_LOG_LEVEL": "debug",
            "SIMPLECHAIN_DEMO_BLOCKS": "3",
            "SIMPLECHAIN_DEMO_INTERVAL": "0",
        })
        assert config.store == "memory"
        assert config.db_path == "/tmp/chain.db"
        assert config.append_retries == 5
        assert config.log_level == "DEBUG"
        assert config.demo_blocks == 3
        assert config.demo_interval == 0.0

    def test_invalid_env_values(self):
        """Unparseable or out-of-range values raise ValueError."""
        with pytest.raises(ValueError):
            LedgerConfig.from_env({"SIMPLECHAIN_APPEND_RETRIES": "many"})
        with pytest.raises(ValueError):
            LedgerConfig.from_env({"SIMPLECHAIN_STORE": "leveldb"})
        with pytest.raises(ValueError):
            LedgerConfig.from_env({"SIMPLECHAIN_LOG_LEVEL": "LOUD"})

    def test_invalid_fields(self):
        """Direct construction validates too."""
        with pytest.raises(ValueError):
            LedgerConfig(append_retries=-1)
        with pytest.raises(ValueError):
            LedgerConfig(db_path="")
        with pytest.raises(ValueError):
            LedgerConfig(demo_interval=-0.5)

    def test_config_is_frozen(self):
        """Configs are immutable; with_overrides returns a copy."""
        config = LedgerConfig()
        with pytest.raises(Exception):  # FrozenInstanceError
            config.store = "memory"
        changed = config.with_overrides(store="memory")
        assert changed.store == "memory"
        assert config.store == "sqlite"


class TestOpenStore:
    """Tests for store selection."""

    def test_memory_backend(self):
        """store='memory' opens a MemoryStore."""
        assert isinstance(open_store(LedgerConfig(store="memory")), MemoryStore)

    def test_sqlite_backend(self, tmp_path):
        """store='sqlite' opens a SQLiteStore at db_path."""
        store = open_store(LedgerConfig(db_path=str(tmp_path / "chain.db")))
        assert isinstance(store, SQLiteStore)
        asyncio.run(store.close())

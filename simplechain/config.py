"""
Ledger Configuration

Settings for the ledger, its store and the demo driver. Defaults live in
module constants; LedgerConfig.from_env() overrides them from SIMPLECHAIN_*
environment variables.
"""

import os
from dataclasses import dataclass, replace
from typing import Mapping, Optional

from .storage import KeyValueStore, MemoryStore, SQLiteStore


# ============================================================================
# Constants
# ============================================================================

ENV_PREFIX = "SIMPLECHAIN_"
STORE_BACKENDS = ("sqlite", "memory")
LOG_LEVELS = ("DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL")

DEFAULT_STORE = "sqlite"
DEFAULT_DB_PATH = "./simpleChainData.db"
DEFAULT_APPEND_RETRIES = 3
DEFAULT_LOG_LEVEL = "INFO"
DEFAULT_DEMO_BLOCKS = 10
DEFAULT_DEMO_INTERVAL = 0.1  # seconds between demo appends


@dataclass(frozen=True)
class LedgerConfig:
    """Immutable ledger settings."""
    store: str = DEFAULT_STORE
    db_path: str = DEFAULT_DB_PATH
    append_retries: int = DEFAULT_APPEND_RETRIES
    log_level: str = DEFAULT_LOG_LEVEL
    demo_blocks: int = DEFAULT_DEMO_BLOCKS
    demo_interval: float = DEFAULT_DEMO_INTERVAL

    def __post_init__(self):
        if self.store not in STORE_BACKENDS:
            raise ValueError(
                f"store must be one of {STORE_BACKENDS}, got {self.store!r}"
            )
        if not self.db_path:
            raise ValueError("db_path cannot be empty")
        if self.append_retries < 0:
            raise ValueError("append_retries cannot be negative")
        if self.log_level not in LOG_LEVELS:
            raise ValueError(
                f"log_level must be one of {LOG_LEVELS}, got {self.log_level!r}"
            )
        if self.demo_blocks < 0:
            raise ValueError("demo_blocks cannot be negative")
        if self.demo_interval < 0:
            raise ValueError("demo_interval cannot be negative")

    @classmethod
    def from_env(cls, environ: Optional[Mapping[str, str]] = None) -> 'LedgerConfig':
        """
        Build a config from environment variables.

        Recognized variables (all optional):
            SIMPLECHAIN_STORE, SIMPLECHAIN_DB_PATH, SIMPLECHAIN_APPEND_RETRIES,
            SIMPLECHAIN_LOG_LEVEL, SIMPLECHAIN_DEMO_BLOCKS,
            SIMPLECHAIN_DEMO_INTERVAL

        Raises:
            ValueError: If a variable holds an invalid value
        """
        env = os.environ if environ is None else environ

        def get(name: str, default: str) -> str:
            return env.get(ENV_PREFIX + name, default).strip()

        try:
            return cls(
                store=get("STORE", DEFAULT_STORE).lower(),
                db_path=get("DB_PATH", DEFAULT_DB_PATH),
                append_retries=int(get("APPEND_RETRIES", str(DEFAULT_APPEND_RETRIES))),
                log_level=get("LOG_LEVEL", DEFAULT_LOG_LEVEL).upper(),
                demo_blocks=int(get("DEMO_BLOCKS", str(DEFAULT_DEMO_BLOCKS))),
                demo_interval=float(get("DEMO_INTERVAL", str(DEFAULT_DEMO_INTERVAL))),
            )
        except ValueError as e:
            raise ValueError(f"Invalid {ENV_PREFIX}* setting: {e}") from e

    def with_overrides(self, **changes) -> 'LedgerConfig':
        """Return a copy with some fields replaced."""
        return replace(self, **changes)


def open_store(config: LedgerConfig) -> KeyValueStore:
    """Open the store engine selected by config.store."""
    if config.store == "memory":
        return MemoryStore()
    return SQLiteStore(config.db_path)

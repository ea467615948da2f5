"""
Integration tests for simplechain.

Tests end-to-end workflows: a ledger persisted in SQLite, restarts, and the
demo driver.
"""

import asyncio

from simplechain.blockchain.ledger import (
    Blockchain,
    create_blockchain,
    induce_errors,
)
from simplechain.config import LedgerConfig
from simplechain.main import main, run
from simplechain.storage import SQLiteStore


class TestSQLiteLedger:
    """Ledger workflows against the SQLite engine."""

    def test_chain_survives_restart(self, tmp_path):
        """Blocks written before closing are valid after reopening."""
        path = str(tmp_path / "chain.db")

        async def write():
            async with Blockchain(SQLiteStore(path)) as bc:
                for body in ("A", "B", "C"):
                    await bc.append(body)
                return await bc.get_block(3)

        async def reopen():
            async with Blockchain(SQLiteStore(path)) as bc:
                await bc.bootstrap_genesis()
                return (
                    await bc.current_height(),
                    await bc.get_block(3),
                    await bc.validate_chain(),
                )

        written = asyncio.run(write())
        height, reread, errors = asyncio.run(reopen())
        assert height == 3
        assert reread == written
        assert errors == []

    def test_tamper_detection_on_disk(self, tmp_path):
        """Rewritten rows are reported after a restart."""
        config = LedgerConfig(db_path=str(tmp_path / "chain.db"))

        async def tamper():
            async with create_blockchain(config) as bc:
                for i in range(1, 11):
                    await bc.append(f"Testing data - block + {i}")
                await induce_errors(bc, [2, 4, 7])

        async def check():
            async with create_blockchain(config) as bc:
                return await bc.validate_chain()

        asyncio.run(tamper())
        assert asyncio.run(check()) == [2, 4, 7]

    def test_beyond_ten_blocks_keeps_numeric_order(self, tmp_path):
        """Heights past 9 are found as the tip (no text-key ordering)."""
        path = str(tmp_path / "chain.db")

        async def scenario():
            async with Blockchain(SQLiteStore(path)) as bc:
                for i in range(12):
                    await bc.append(f"tx{i}")
            async with Blockchain(SQLiteStore(path)) as bc:
                return await bc.current_height(), await bc.validate_chain()

        assert asyncio.run(scenario()) == (12, [])


class TestDemoDriver:
    """Tests for the append loop and entry point."""

    def test_run_appends_and_validates(self, capsys):
        """The demo loop appends the configured blocks and finds no errors."""
        config = LedgerConfig(store="memory", demo_blocks=3, demo_interval=0)
        assert asyncio.run(run(config)) == []
        out = capsys.readouterr().out
        assert "Block # 3 added to simpleChain" in out
        assert "blockHeight is 3" in out
        assert "No errors detected" in out

    def test_main_exit_code(self, tmp_path):
        """main returns 0 for a clean chain."""
        config = LedgerConfig(
            db_path=str(tmp_path / "chain.db"),
            demo_blocks=2,
            demo_interval=0,
            log_level="WARNING",
        )
        assert main(config) == 0

"""
simplechain - Main Entry Point
Appends a run of synthetic blocks and validates the resulting chain.

Settings come from SIMPLECHAIN_* environment variables (see config.py).
"""

import asyncio
import logging
from typing import List, Optional

from .blockchain.ledger import Blockchain, create_blockchain
from .config import LedgerConfig


def configure_logging(level: str) -> None:
    """Route ledger logs to the console."""
    logging.basicConfig(
        level=getattr(logging, level),
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )


async def run_loop(
    blockchain: Blockchain,
    count: int,
    interval: float
) -> List[int]:
    """
    Append count synthetic blocks, one every interval seconds.

    Each append is awaited before the next is scheduled.

    Returns:
        Heights of the appended blocks
    """
    await blockchain.bootstrap_genesis()
    heights = []
    for i in range(1, count + 1):
        block = await blockchain.append(f"Testing data - block + {i}")
        print(block.to_log_string(f"Block # {i} added to simpleChain"))
        heights.append(block.height)
        if interval and i < count:
            await asyncio.sleep(interval)
    return heights


async def run(config: LedgerConfig) -> List[int]:
    """Run the append loop, then validate. Returns offending heights."""
    async with create_blockchain(config) as blockchain:
        await run_loop(blockchain, config.demo_blocks, config.demo_interval)
        height = await blockchain.current_height()
        print(f"blockHeight is {height}")

        errors = await blockchain.validate_chain()
        if errors:
            print(f"Block errors = {len(errors)}")
            print(f"Blocks: {errors}")
        else:
            print("No errors detected")
        return errors


def main(config: Optional[LedgerConfig] = None) -> int:
    """Main entry point for simplechain."""
    config = config or LedgerConfig.from_env()
    configure_logging(config.log_level)

    print("=" * 50)
    print("simpleChain")
    print("=" * 50)
    print(f"  store: {config.store} ({config.db_path})")
    print(f"  blocks to add: {config.demo_blocks}\n")

    errors = asyncio.run(run(config))
    return 1 if errors else 0


if __name__ == "__main__":
    raise SystemExit(main())

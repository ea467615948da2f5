#!/usr/bin/env python
"""
SIMPLECHAIN LIVE DEMO

Walks through the ledger's lifecycle step by step:
- Genesis bootstrap
- Appending blocks
- Full-chain validation
- Tampering with stored blocks
- Tamper detection

Pass --no-pause to run straight through.
"""

import asyncio
import sys

from simplechain.blockchain.ledger import (
    DEFAULT_INDUCED_ERRORS,
    Blockchain,
    induce_errors,
)
from simplechain.storage import MemoryStore


INDUCED_ERROR_BLOCKS = DEFAULT_INDUCED_ERRORS


def print_header(title):
    """Print a formatted section header"""
    print("\n" + "═" * 70)
    print(f"  {title}")
    print("═" * 70)


def print_step(step_num, description):
    """Print a numbered step"""
    print(f"\n  [{step_num}] {description}")


def pause(enabled, message="Press ENTER to continue..."):
    """Pause for presenter to explain"""
    if enabled:
        print(f"\n  [PAUSE] {message}")
        input()


async def demo(interactive):
    blockchain = Blockchain(MemoryStore())

    print_header("PART 1: BUILDING THE CHAIN")

    print_step("1.1", "Bootstrapping the genesis block")
    await blockchain.bootstrap_genesis()
    genesis = await blockchain.get_block(0)
    print(genesis.to_log_string("  GENESIS Block added!"))
    pause(interactive)

    print_step("1.2", "Appending ten blocks")
    for i in range(1, 11):
        block = await blockchain.append(f"Testing data - block + {i}")
        print(f"  Block #{block.height}  hash={block.hash[:16]}...  "
              f"prev={block.previous_block_hash[:16]}...")
    print(f"\n  blockHeight is {await blockchain.current_height()}")
    pause(interactive)

    print_header("PART 2: VALIDATION")

    print_step("2.1", "Validating every block and link")
    errors = await blockchain.validate_chain()
    print(f"  [OK] Errors: {errors or 'none'}")
    pause(interactive)

    print_header("PART 3: TAMPERING")

    print_step("3.1", f"Rewriting bodies at heights {INDUCED_ERROR_BLOCKS}")
    await induce_errors(blockchain, INDUCED_ERROR_BLOCKS)
    tampered = await blockchain.get_block(INDUCED_ERROR_BLOCKS[0])
    print(tampered.to_log_string("  Tampered block (hash left unchanged):"))
    pause(interactive)

    print_step("3.2", "Validating again")
    report = await blockchain.validate_report()
    print(f"  [X] Invalid hashes: {report.invalid_hashes}")
    print(f"  [X] Broken links:   {report.broken_links}")
    print(f"  Block errors = {len(report.invalid_heights)}")
    print(f"  Blocks: {report.invalid_heights}")

    print_header("DEMO COMPLETE")
    return report.invalid_heights == INDUCED_ERROR_BLOCKS


def main():
    interactive = "--no-pause" not in sys.argv[1:]
    detected = asyncio.run(demo(interactive))
    return 0 if detected else 1


if __name__ == "__main__":
    sys.exit(main())

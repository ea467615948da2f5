"""
Blockchain Ledger Module

Implements an append-only, hash-linked ledger on top of an ordered
key-value store:
- SHA-256 chaining (each block stores its predecessor's hash)
- Genesis bootstrap (self-healing when the store is empty)
- Single-block and full-chain validation
- Asynchronous store access (asyncio)

Integrity features:
- Immutable sealed blocks (frozen dataclass)
- Serialized appends (asyncio.Lock) plus insert-if-absent writes, so a
  height is never silently overwritten
- Validation reports every inconsistency found in one pass
"""

import asyncio
import logging
import time
from dataclasses import dataclass, field
from typing import AsyncIterator, Callable, List, Optional, Union

from ..config import LedgerConfig, open_store
from ..core_crypto.hashing import BODY_ENCODING_FIELD, BlockHasher
from ..storage.kv_store import (
    KeyValueStore,
    KeyExistsError,
    KeyNotFoundError,
    StoreError,
)
from .block import (
    Block,
    BlockDraft,
    CorruptRecordError,
    GENESIS_BODY,
    GENESIS_HEIGHT,
    GENESIS_PREV_HASH,
    Payload,
)


logger = logging.getLogger(__name__)


# ============================================================================
# Constants
# ============================================================================

EMPTY_HEIGHT = -1  # current_height() of a store with no blocks
DEFAULT_INDUCED_ERRORS = [2, 4, 7]  # heights rewritten by the tamper demo


def get_timestamp() -> int:
    """Current Unix time in whole seconds."""
    return int(time.time())


# ============================================================================
# Errors
# ============================================================================

class LedgerError(Exception):
    """Base class for ledger failures."""
    pass


class BootstrapError(LedgerError):
    """Raised when the genesis block cannot be created. Fatal."""
    pass


class AppendError(LedgerError):
    """Raised when an append could not complete. Safe to retry."""
    pass


class LedgerReadError(LedgerError):
    """Raised when the store fails during a read."""
    pass


class BlockNotFoundError(LedgerError):
    """Raised when no block is stored at the requested height."""

    def __init__(self, height: int):
        super().__init__(f"Block #{height} not found")
        self.height = height


class CorruptBlockError(LedgerError):
    """Raised when stored bytes do not decode to a valid block."""

    def __init__(self, height: int, reason: str):
        super().__init__(f"Block #{height} is corrupt: {reason}")
        self.height = height
        self.reason = reason


# ============================================================================
# Validation Report
# ============================================================================

@dataclass
class ChainReport:
    """
    Result of a full-chain scan.

    height is the tip observed when the scan started; only heights up to
    it are examined.
    """
    height: int
    invalid_hashes: List[int] = field(default_factory=list)
    broken_links: List[int] = field(default_factory=list)
    missing: List[int] = field(default_factory=list)
    genesis_mismatch: bool = False

    @property
    def invalid_heights(self) -> List[int]:
        """Every offending height, sorted and without duplicates."""
        heights = set(self.invalid_hashes) | set(self.broken_links) | set(self.missing)
        if self.genesis_mismatch:
            heights.add(GENESIS_HEIGHT)
        return sorted(heights)

    @property
    def is_valid(self) -> bool:
        return not self.invalid_heights


# ============================================================================
# Blockchain
# ============================================================================

class Blockchain:
    """
    Append-only ledger persisted in a KeyValueStore.

    Height and tip are always derivable from the store. The in-memory
    height cache is advanced only after a successful write and dropped on
    any collision, so a fresh instance over the same store sees the same
    chain.
    """

    def __init__(
        self,
        store: KeyValueStore,
        config: Optional[LedgerConfig] = None,
        hasher: Optional[BlockHasher] = None,
        clock: Optional[Callable[[], int]] = None
    ):
        """
        Initialize a ledger over an open store.

        Args:
            store: Ordered key-value store holding the blocks
            config: Ledger settings (append_retries is used here)
            hasher: Digest strategy for sealing and validation
            clock: Returns the Unix timestamp used when sealing
        """
        self._store = store
        self._config = config or LedgerConfig()
        self._hasher = hasher or BlockHasher()
        self._clock = clock or get_timestamp
        self._height: Optional[int] = None
        self._write_lock = asyncio.Lock()

    @property
    def store(self) -> KeyValueStore:
        """The underlying store handle."""
        return self._store

    @property
    def hasher(self) -> BlockHasher:
        return self._hasher

    # ========================================================================
    # Height
    # ========================================================================

    async def _scan_height(self) -> int:
        height = EMPTY_HEIGHT
        try:
            async for key in self._store.iterate_keys():
                if key > height:
                    height = key
        except StoreError as e:
            raise LedgerReadError(f"current_height: key scan failed: {e}") from e
        return height

    async def current_height(self, refresh: bool = False) -> int:
        """
        Get the highest stored height.

        Args:
            refresh: Ignore the cache and rescan every key in the store

        Returns:
            Highest height, or -1 if the store is empty
        """
        if refresh or self._height is None:
            self._height = await self._scan_height()
        return self._height

    async def block_count(self) -> int:
        """Number of blocks in the chain, genesis included."""
        return await self.current_height() + 1

    # ========================================================================
    # Genesis
    # ========================================================================

    async def bootstrap_genesis(self) -> None:
        """
        Ensure the genesis block exists at height 0.

        No-op when it is already stored.

        Raises:
            BootstrapError: If the store cannot be read or written
        """
        async with self._write_lock:
            await self._bootstrap_locked()

    async def _bootstrap_locked(self) -> None:
        try:
            exists = await self._store.contains(GENESIS_HEIGHT)
        except StoreError as e:
            raise BootstrapError(
                f"FATAL. Can't read genesis block: {e}"
            ) from e

        if exists:
            if self._height == EMPTY_HEIGHT:
                self._height = None
            return

        genesis = Block.seal(
            BlockDraft(GENESIS_BODY),
            height=GENESIS_HEIGHT,
            previous_block_hash=GENESIS_PREV_HASH,
            time=self._clock(),
            hasher=self._hasher,
        )
        try:
            await self._store.put_new(GENESIS_HEIGHT, genesis.to_record())
        except KeyExistsError:
            logger.info("Genesis block already created by another writer")
            if self._height == EMPTY_HEIGHT:
                self._height = None
            return
        except StoreError as e:
            raise BootstrapError(
                f"FATAL. Can't add genesis block to chain: {e}"
            ) from e

        if self._height == EMPTY_HEIGHT:
            self._height = GENESIS_HEIGHT
        logger.info("GENESIS block added hash=%s", genesis.hash)

    # ========================================================================
    # Append
    # ========================================================================

    async def append(self, body: Union[Payload, BlockDraft]) -> Block:
        """
        Seal a new block on top of the tip and persist it.

        Args:
            body: Payload (str or bytes) or an existing draft

        Returns:
            The sealed, stored block

        Raises:
            AppendError: If any read or write fails; the chain is unchanged
            TypeError: If body is not a valid payload
        """
        draft = body if isinstance(body, BlockDraft) else BlockDraft(body)
        attempts = self._config.append_retries + 1

        async with self._write_lock:
            last_error: Optional[Exception] = None
            for attempt in range(1, attempts + 1):
                try:
                    return await self._append_once(draft)
                except KeyExistsError as e:
                    # Another writer took this height; rediscover the tip
                    self._height = None
                    last_error = e
                    logger.warning(
                        "Height %d already taken (attempt %d/%d)",
                        e.key, attempt, attempts,
                    )
                except BlockNotFoundError as e:
                    # Cached tip is gone (store wiped or truncated)
                    self._height = None
                    last_error = e
                    logger.warning(
                        "Tip #%d not found, rescanning (attempt %d/%d)",
                        e.height, attempt, attempts,
                    )

        raise AppendError(
            f"unable to add new block after {attempts} attempts: {last_error}"
        ) from last_error

    async def _append_once(self, draft: BlockDraft) -> Block:
        try:
            height = await self.current_height()
        except LedgerReadError as e:
            raise AppendError(f"unable to add new block: {e}") from e

        if height == EMPTY_HEIGHT:
            try:
                await self._bootstrap_locked()
            except BootstrapError as e:
                raise AppendError(f"unable to add new block: {e}") from e
            height = GENESIS_HEIGHT

        try:
            tip = await self.get_block(height)
        except BlockNotFoundError:
            raise
        except LedgerError as e:
            self._height = None
            raise AppendError(
                f"unable to add new block: cannot load tip #{height}: {e}"
            ) from e

        block = Block.seal(
            draft,
            height=tip.height + 1,
            previous_block_hash=tip.hash,
            time=self._clock(),
            hasher=self._hasher,
        )

        try:
            await self._store.put_new(block.height, block.to_record())
        except KeyExistsError:
            raise
        except StoreError as e:
            raise AppendError(
                f"unable to add new block #{block.height}: {e}"
            ) from e

        self._height = block.height
        logger.info("Block #%d added hash=%s", block.height, block.hash)
        return block

    # ========================================================================
    # Reads
    # ========================================================================

    async def get_block(self, height: int) -> Block:
        """
        Fetch and decode the block at height.

        Raises:
            BlockNotFoundError: If no block is stored there
            CorruptBlockError: If the stored value is not a valid block
            LedgerReadError: If the store fails
        """
        if not isinstance(height, int) or isinstance(height, bool) or height < 0:
            raise BlockNotFoundError(height)

        try:
            raw = await self._store.get(height)
        except KeyNotFoundError:
            raise BlockNotFoundError(height) from None
        except StoreError as e:
            raise LedgerReadError(f"get_block({height}) failed: {e}") from e

        try:
            block = Block.from_record(raw)
        except CorruptRecordError as e:
            raise CorruptBlockError(height, str(e)) from e

        if block.height != height:
            raise CorruptBlockError(
                height, f"record claims height {block.height}"
            )
        return block

    async def iter_blocks(self, start: int = 0) -> AsyncIterator[Block]:
        """Yield stored blocks from start up to the current tip."""
        tip = await self.current_height()
        for height in range(max(start, 0), tip + 1):
            yield await self.get_block(height)

    # ========================================================================
    # Validation
    # ========================================================================

    def _hash_matches(self, block: Block) -> bool:
        expected = block.compute_hash(self._hasher)
        if block.hash == expected:
            return True
        logger.warning(
            "Block #%d invalid hash:\n%s<>%s", block.height, block.hash, expected
        )
        return False

    async def validate_block(self, height: int) -> bool:
        """
        Check that the stored hash matches the block's content.

        Read-only. A record that cannot be decoded counts as invalid.

        Raises:
            BlockNotFoundError: If no block is stored at height
        """
        try:
            block = await self.get_block(height)
        except CorruptBlockError as e:
            logger.warning("Block #%d invalid record: %s", height, e.reason)
            return False
        return self._hash_matches(block)

    async def _load_checked(self, height: int, report: ChainReport) -> Optional[Block]:
        """Load a block for the chain scan, recording hash findings."""
        try:
            block = await self.get_block(height)
        except BlockNotFoundError:
            logger.warning("Block #%d missing", height)
            report.missing.append(height)
            return None
        except CorruptBlockError as e:
            logger.warning("Block #%d invalid record: %s", height, e.reason)
            report.invalid_hashes.append(height)
            return None

        if not self._hash_matches(block):
            report.invalid_hashes.append(height)
        return block

    async def validate_report(self) -> ChainReport:
        """
        Scan the whole chain and collect every inconsistency.

        Checks each block's own hash (tip included), each link
        block[i].hash == block[i+1].previous_block_hash, and the genesis
        sentinel. The scan is sequential and covers heights up to the tip
        read when it starts.
        """
        # Fresh scan; the cache belongs to the append path
        tip = await self._scan_height()
        report = ChainReport(height=tip)
        if tip == EMPTY_HEIGHT:
            return report

        previous = await self._load_checked(GENESIS_HEIGHT, report)
        if previous is not None and (
            previous.body != GENESIS_BODY
            or previous.previous_block_hash != GENESIS_PREV_HASH
        ):
            logger.warning("Genesis block does not match the sentinel")
            report.genesis_mismatch = True

        for i in range(tip):
            current = await self._load_checked(i + 1, report)
            if previous is None or current is None \
                    or previous.hash != current.previous_block_hash:
                report.broken_links.append(i)
            previous = current

        if report.is_valid:
            logger.info("No errors detected (height=%d)", tip)
        else:
            logger.warning(
                "Block errors = %d, Blocks: %s",
                len(report.invalid_heights), report.invalid_heights,
            )
        return report

    async def validate_chain(self) -> List[int]:
        """
        Validate the entire chain.

        Returns:
            Sorted heights with a detected inconsistency (empty if valid)
        """
        report = await self.validate_report()
        return report.invalid_heights

    # ========================================================================
    # Lifecycle
    # ========================================================================

    async def close(self) -> None:
        """Close the underlying store."""
        await self._store.close()

    async def __aenter__(self) -> 'Blockchain':
        return self

    async def __aexit__(self, exc_type, exc, tb) -> None:
        await self.close()


# ============================================================================
# Convenience Functions
# ============================================================================

def create_blockchain(config: Optional[LedgerConfig] = None) -> Blockchain:
    """Create a ledger over the store selected by config (or the environment)."""
    config = config or LedgerConfig.from_env()
    return Blockchain(open_store(config), config=config)


async def induce_errors(
    blockchain: Blockchain,
    heights: Optional[List[int]] = None,
    body: str = "induced chain error"
) -> List[int]:
    """
    Overwrite the body of stored blocks without recomputing their hash.

    Demonstrates tamper detection; validate_chain() reports the heights
    afterwards.

    Args:
        blockchain: Ledger whose store is rewritten
        heights: Heights to tamper with (default [2, 4, 7])
        body: Replacement text body

    Returns:
        The heights that were rewritten
    """
    if heights is None:
        heights = DEFAULT_INDUCED_ERRORS
    rewritten = []
    for height in heights:
        block = await blockchain.get_block(height)
        record = block.to_dict()
        record.pop(BODY_ENCODING_FIELD, None)
        record['body'] = body
        tampered = Block.from_dict(record)
        await blockchain.store.put(height, tampered.to_record())
        rewritten.append(height)
    logger.info("errors induced into chain: %s", rewritten)
    return rewritten

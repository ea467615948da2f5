"""
Block Structures

Two states of a ledger entry:
- BlockDraft: a caller-supplied body, not yet part of the chain
- Block: a sealed, immutable record with height, time, link and hash

Only Block.seal() (called by the ledger) and Block.from_record() (reading
the store) produce a Block, so a draft can never be mistaken for a
persisted entry.
"""

import json
from dataclasses import dataclass
from typing import Any, Dict, Optional, Union

from ..core_crypto.hashing import (
    BODY_ENCODING_FIELD,
    BlockHasher,
    RECORD_FIELDS,
    decode_body,
    encode_body,
    serialize_block,
)


# ============================================================================
# Constants
# ============================================================================

GENESIS_HEIGHT = 0
GENESIS_BODY = "simpleChain - Genesis block"
GENESIS_PREV_HASH = ""  # Genesis has no predecessor

Payload = Union[str, bytes]


class CorruptRecordError(ValueError):
    """Raised when stored bytes do not decode to a valid block."""
    pass


def normalize_body(body: Payload) -> Payload:
    """
    Check a payload and freeze bytes-like bodies into bytes.

    Text stays text and binary stays binary; the ledger never decodes it.

    Raises:
        TypeError: If body is neither str nor bytes-like
    """
    if isinstance(body, str):
        return body
    if isinstance(body, (bytes, bytearray, memoryview)):
        return bytes(body)
    raise TypeError(f"Block body must be str or bytes, got {type(body).__name__}")


# ============================================================================
# Draft
# ============================================================================

@dataclass(frozen=True)
class BlockDraft:
    """A block body waiting to be sealed by the ledger."""
    body: Payload

    def __post_init__(self):
        object.__setattr__(self, 'body', normalize_body(self.body))


# ============================================================================
# Sealed Block (Immutable)
# ============================================================================

@dataclass(frozen=True)
class Block:
    """
    Immutable, sealed ledger entry.

    frozen=True keeps blocks read-only once sealed; the hash covers every
    other field.
    """
    height: int
    body: Payload
    time: int
    previous_block_hash: str
    hash: str

    @classmethod
    def seal(
        cls,
        draft: BlockDraft,
        height: int,
        previous_block_hash: str,
        time: int,
        hasher: BlockHasher
    ) -> 'Block':
        """
        Assign height, link, timestamp and hash to a draft in one step.

        Args:
            draft: The unsealed block
            height: Height the block will occupy
            previous_block_hash: Hash of the block at height - 1
            time: Unix timestamp in seconds
            hasher: Digest strategy

        Returns:
            The sealed block
        """
        if height < 0:
            raise ValueError(f"Invalid height: {height}")
        block_hash = hasher.digest(height, draft.body, time, previous_block_hash)
        return cls(
            height=height,
            body=draft.body,
            time=time,
            previous_block_hash=previous_block_hash,
            hash=block_hash,
        )

    @property
    def is_genesis(self) -> bool:
        return self.height == GENESIS_HEIGHT

    def compute_hash(self, hasher: BlockHasher) -> str:
        """Recompute the digest of this block with its hash field cleared."""
        return hasher.digest(
            self.height, self.body, self.time, self.previous_block_hash
        )

    def has_valid_hash(self, hasher: BlockHasher) -> bool:
        """Check the stored hash against a fresh digest."""
        return self.hash == self.compute_hash(hasher)

    def to_dict(self) -> Dict[str, Any]:
        """
        Convert block to the record dictionary (stored field names).

        Bytes bodies appear base64-encoded with a bodyEncoding tag.
        """
        text, encoding = encode_body(self.body)
        data = {
            'hash': self.hash,
            'height': self.height,
            'body': text,
            'time': self.time,
            'previousBlockHash': self.previous_block_hash,
        }
        if encoding is not None:
            data[BODY_ENCODING_FIELD] = encoding
        return data

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> 'Block':
        """
        Create block from a record dictionary.

        Raises:
            CorruptRecordError: If fields are missing or mistyped
        """
        if not isinstance(data, dict):
            raise CorruptRecordError(f"Record is not an object: {type(data).__name__}")
        missing = [f for f in RECORD_FIELDS if f not in data]
        if missing:
            raise CorruptRecordError(f"Record missing fields: {missing}")

        height = data['height']
        stamp = data['time']
        for name, value in (('height', height), ('time', stamp)):
            if not isinstance(value, int) or isinstance(value, bool):
                raise CorruptRecordError(f"Field {name!r} must be an integer")
        if height < 0:
            raise CorruptRecordError(f"Negative height: {height}")
        for name in ('hash', 'body', 'previousBlockHash'):
            if not isinstance(data[name], str):
                raise CorruptRecordError(f"Field {name!r} must be a string")

        encoding = data.get(BODY_ENCODING_FIELD)
        if BODY_ENCODING_FIELD in data and not isinstance(encoding, str):
            raise CorruptRecordError(f"Field {BODY_ENCODING_FIELD!r} must be a string")
        try:
            body = decode_body(data['body'], encoding)
        except ValueError as e:
            raise CorruptRecordError(str(e)) from e

        return cls(
            height=height,
            body=body,
            time=stamp,
            previous_block_hash=data['previousBlockHash'],
            hash=data['hash'],
        )

    def to_record(self) -> bytes:
        """Serialize to the canonical stored value."""
        return serialize_block(
            self.hash, self.height, self.body, self.time, self.previous_block_hash
        )

    @classmethod
    def from_record(cls, raw: bytes) -> 'Block':
        """
        Decode a stored value.

        Raises:
            CorruptRecordError: If raw is not a valid block record
        """
        try:
            data = json.loads(bytes(raw).decode('utf-8'))
        except (UnicodeDecodeError, ValueError) as e:
            raise CorruptRecordError(f"Undecodable record: {e}") from e
        return cls.from_dict(data)

    def to_log_string(self, msg: Optional[str] = None) -> str:
        """Render every field on its own line, optionally under a heading."""
        block_string = '' if msg is None else f"{msg}\n"
        block_string += (
            f"block.height = {self.height}\n"
            f"block.body = {self.body}\n"
            f"block.hash = {self.hash}\n"
            f"block.time = {self.time}\n"
            f"block.previousBlockHash = {self.previous_block_hash}\n"
        )
        return block_string

    def __str__(self) -> str:
        return (
            f"Block #{self.height}\n"
            f"  Hash: {self.hash[:16]}...\n"
            f"  Prev: {self.previous_block_hash[:16] or '-'}...\n"
            f"  Time: {self.time}\n"
            f"  Body: {self.body[:40]}"
        )

"""
Block Hashing Module

Computes the digest that binds a block's content to its hash field.

Components:
- Canonical serialization: compact JSON, fixed field order
- Digest: SHA-256 over the serialization with the hash field cleared
- Output: 64-character lowercase hex string

The field order (hash, height, body, time, previousBlockHash[, bodyEncoding])
is part of the on-disk format. Changing it invalidates every stored hash.
"""

import base64
import binascii
import json
from typing import Callable, Optional, Tuple, Union

from cryptography.hazmat.primitives import hashes


# ============================================================================
# Constants
# ============================================================================

DIGEST_SIZE = 32  # SHA-256 output in bytes
DIGEST_HEX_LENGTH = DIGEST_SIZE * 2
RECORD_FIELDS = ('hash', 'height', 'body', 'time', 'previousBlockHash')
BODY_ENCODING_FIELD = 'bodyEncoding'  # present only for bytes bodies
BASE64_ENCODING = 'base64'

Body = Union[str, bytes]


# ============================================================================
# Canonical Serialization
# ============================================================================

def encode_body(body: Body) -> Tuple[str, Optional[str]]:
    """
    Convert a body to its record text and encoding tag.

    Text bodies are stored verbatim (tag None); bytes bodies are stored
    as standard base64 with the tag 'base64'.
    """
    if isinstance(body, bytes):
        return base64.b64encode(body).decode('ascii'), BASE64_ENCODING
    return body, None


def decode_body(text: str, encoding: Optional[str]) -> Body:
    """
    Inverse of encode_body.

    Raises:
        ValueError: If the tag is unknown or the base64 text is not the
            canonical encoding of its bytes
    """
    if encoding is None:
        return text
    if encoding != BASE64_ENCODING:
        raise ValueError(f"Unknown body encoding: {encoding!r}")
    try:
        raw = base64.b64decode(text.encode('ascii'), validate=True)
    except (UnicodeEncodeError, binascii.Error) as e:
        raise ValueError(f"Invalid base64 body: {e}") from e
    if base64.b64encode(raw).decode('ascii') != text:
        raise ValueError("Non-canonical base64 body")
    return raw


def serialize_block(
    hash: str,
    height: int,
    body: Body,
    time: int,
    previous_block_hash: str
) -> bytes:
    """
    Serialize block fields into the canonical record.

    The same bytes are both the persisted value and (with hash="") the
    input of the digest. A bytes body adds a trailing bodyEncoding field,
    so the text "QUJD" and the bytes b"ABC" never share a digest.

    Args:
        hash: Block hash, or "" when computing the digest
        height: Block height
        body: Block payload (str or bytes)
        time: Unix timestamp in seconds
        previous_block_hash: Hash of the block at height - 1

    Returns:
        UTF-8 encoded compact JSON
    """
    text, encoding = encode_body(body)
    record = {
        'hash': hash,
        'height': height,
        'body': text,
        'time': time,
        'previousBlockHash': previous_block_hash,
    }
    if encoding is not None:
        record[BODY_ENCODING_FIELD] = encoding
    return json.dumps(
        record, separators=(',', ':'), ensure_ascii=False
    ).encode('utf-8')


# ============================================================================
# Digest
# ============================================================================

def sha256_hex(data: bytes) -> str:
    """Compute SHA-256 of data and return it as a hex string."""
    digest = hashes.Hash(hashes.SHA256())
    digest.update(data)
    return digest.finalize().hex()


def compute_block_hash(
    height: int,
    body: Body,
    time: int,
    previous_block_hash: str
) -> str:
    """
    Compute the hash for a block (public function).

    Example:
        >>> len(compute_block_hash(0, "genesis", 0, ""))
        64
    """
    return sha256_hex(
        serialize_block('', height, body, time, previous_block_hash)
    )


class BlockHasher:
    """
    Digest strategy used by the ledger.

    Wraps compute_block_hash so tests or alternative deployments can
    inject a different digest function without touching the ledger.
    """

    def __init__(
        self,
        digest_fn: Optional[Callable[[bytes], str]] = None
    ):
        self._digest_fn = digest_fn or sha256_hex

    def digest(
        self,
        height: int,
        body: Body,
        time: int,
        previous_block_hash: str
    ) -> str:
        """Hash the canonical serialization with the hash field cleared."""
        return self._digest_fn(
            serialize_block('', height, body, time, previous_block_hash)
        )


# Self-test when run directly
if __name__ == "__main__":
    test_cases = [
        (b"", "e3b0c44298fc1c149afbf4c8996fb92427ae41e4649b934ca495991b7852b855"),
        (b"abc", "ba7816bf8f01cfea414140de5dae2223b00361a396177a9cb410ff61f20015ad"),
    ]

    print("Block Hashing Self-Test")
    print("=" * 60)

    all_passed = True
    for data, expected in test_cases:
        result = sha256_hex(data)
        passed = result == expected
        all_passed = all_passed and passed
        print(f"\nInput:    {data!r}")
        print(f"Expected: {expected}")
        print(f"Got:      {result}")
        print(f"Status:   {'✓ PASS' if passed else '✗ FAIL'}")

    print("\n" + "=" * 60)
    print(f"Overall: {'All tests passed!' if all_passed else 'Some tests failed!'}")

# Core Cryptography Module
"""
Core hashing primitives for the ledger:
- Canonical block serialization
- SHA-256 block digests
"""

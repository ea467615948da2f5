# simplechain Test Suite
"""
Test suite including:
- Unit tests (hashing, storage, blocks, config)
- Ledger tests (append, validation, failure paths)
- Integration tests (persistence, demo driver)

Run with: pytest
"""

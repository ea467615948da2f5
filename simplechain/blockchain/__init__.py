# Blockchain Module
"""
Blockchain Ledger implementation including:
- Draft and sealed block types
- SHA-256 chaining over a key-value store
- Genesis bootstrap
- Single-block and full-chain validation

Integrity features:
- Immutable sealed blocks (frozen dataclass)
- Serialized appends with insert-if-absent writes
- Complete, deterministic validation reports
"""

# Lazy imports to avoid RuntimeWarning when running module directly
def __getattr__(name):
    """Lazy import to avoid circular import issues."""
    from . import block, ledger
    if hasattr(block, name):
        return getattr(block, name)
    return getattr(ledger, name)

__all__ = [
    'Block',
    'BlockDraft',
    'Blockchain',
    'ChainReport',
    'LedgerError',
    'BootstrapError',
    'AppendError',
    'BlockNotFoundError',
    'CorruptBlockError',
    'LedgerReadError',
    'create_blockchain',
    'induce_errors',
    'GENESIS_BODY',
    'GENESIS_PREV_HASH',
    'EMPTY_HEIGHT',
]

"""Index storage."""

from docindex.db.errors import (
    IdentifierRace,
    StoreError,
    StoreUnavailable,
    TransactionFailed,
)
from docindex.db.store import IdMapping, IndexStore

__all__ = [
    "IndexStore",
    "IdMapping",
    "StoreError",
    "StoreUnavailable",
    "TransactionFailed",
    "IdentifierRace",
]

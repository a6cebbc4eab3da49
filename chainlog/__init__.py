"""
chainlog - an append-only, hash-linked sequence log over a key-value store.

Features:
- Append arbitrary JSON values and get back a random unique identifier
- Lookup by identifier or by 0-based index
- Forward, backward and index-range traversal
- Every append committed as one atomic batch
- In-memory and crash-safe file-backed stores
"""

__version__ = "0.1.0"

from chainlog.core.errors import (
    BatchCommitError,
    ChainLogError,
    CorruptEntryError,
    NotFoundError,
    StoreClosedError,
    StoreError,
)
from chainlog.core.log import Entry, EntryCodec, EntryStream, LogHead, SequenceLog
from chainlog.core.store import FileStore, KeyValueStore, MemoryStore

__all__ = [
    "BatchCommitError",
    "ChainLogError",
    "CorruptEntryError",
    "Entry",
    "EntryCodec",
    "EntryStream",
    "FileStore",
    "KeyValueStore",
    "LogHead",
    "MemoryStore",
    "NotFoundError",
    "SequenceLog",
    "StoreClosedError",
    "StoreError",
]

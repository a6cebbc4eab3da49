"""
Key-value stores the sequence log can sit on.

- MemoryStore keeps everything in a dict
- FileStore appends CRC-framed batch records to a data file and recovers
  from torn writes on open
"""

from chainlog.core.store.base import KeyValueStore, WriteBatch
from chainlog.core.store.file import FileStore
from chainlog.core.store.memory import MemoryStore
from chainlog.core.store.record import BatchRecord, RecordMagic

__all__ = [
    "BatchRecord",
    "FileStore",
    "KeyValueStore",
    "MemoryStore",
    "RecordMagic",
    "WriteBatch",
]

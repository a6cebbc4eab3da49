"""
Hash-linked sequence log.

This package provides:
- Random entry identifiers
- CRC-framed entry encoding
- Append, lookup by identifier or index, and ordered traversal
"""

from chainlog.core.log.entry import Entry, LogHead
from chainlog.core.log.format import CodecVersion, EntryCodec
from chainlog.core.log.identifier import generate_identifier, is_identifier
from chainlog.core.log.sequence_log import EntryStream, SequenceLog

__all__ = [
    "CodecVersion",
    "Entry",
    "EntryCodec",
    "EntryStream",
    "LogHead",
    "SequenceLog",
    "generate_identifier",
    "is_identifier",
]

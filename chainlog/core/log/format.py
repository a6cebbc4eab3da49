"""
Entry codec: serialization of log entries to the store's byte values.

Entries are stored as CRC-framed JSON so that a damaged value is detected
on read instead of being handed back as garbage.

Wire format:
    Length (4 bytes) - Total length excluding this field
    CRC32C (4 bytes) - Checksum of remaining data
    Magic byte (1 byte) - Format version
    Payload (variable) - UTF-8 JSON object: hash, index, value, previous, next

Pointer values (firstHash, lastHash and the index mapping) are stored as the
plain ASCII bytes of the identifier.
"""

import json
import struct
from enum import IntEnum
from typing import Any, Dict, Optional, Set

import crc32c

from chainlog.core.errors import CorruptEntryError
from chainlog.core.log.entry import Entry


def _check_keys(value: Any, active: Optional[Set[int]] = None) -> None:
    """Reject mappings whose keys JSON would silently turn into strings."""
    if isinstance(value, dict):
        for key in value:
            if not isinstance(key, str):
                raise TypeError(
                    f"Entry value has a non-string mapping key: {key!r}"
                )
        children = value.values()
    elif isinstance(value, (list, tuple)):
        children = value
    else:
        return

    if active is None:
        active = set()
    # Cycles are left for json to report
    if id(value) in active:
        return
    active.add(id(value))
    for child in children:
        _check_keys(child, active)
    active.discard(id(value))


class CodecVersion(IntEnum):
    """Entry format version."""

    V1 = 1
    CURRENT = V1


class EntryCodec:
    """
    Encodes entries to bytes and back.

    Values must be JSON-serializable. Round-trips are exact for JSON-native
    values (dict with str keys, list, str, int, float, bool, None); tuples
    come back as lists. Mappings with non-string keys are rejected.
    """

    LENGTH_FIELD_SIZE = 4
    HEADER_SIZE = 4 + 4 + 1
    REQUIRED_FIELDS = ("hash", "index", "value", "previous", "next")

    def __init__(self, magic_byte: int = CodecVersion.CURRENT):
        self.magic_byte = magic_byte

    def encode(self, entry: Entry) -> bytes:
        """
        Serialize an entry.

        Args:
            entry: Entry to encode

        Returns:
            Framed entry bytes

        Raises:
            TypeError: If the entry value is not JSON-serializable
        """
        _check_keys(entry.value)
        document = self.to_json(entry)
        try:
            payload = json.dumps(
                document,
                separators=(",", ":"),
                ensure_ascii=False,
                allow_nan=False,
            ).encode("utf-8")
        except ValueError as e:
            raise TypeError(f"Entry value is not serializable: {e}") from e

        body = struct.pack(">B", self.magic_byte) + payload
        crc = crc32c.crc32c(body)
        total_length = 4 + len(body)

        return struct.pack(">II", total_length, crc) + body

    def decode(self, data: bytes) -> Entry:
        """
        Deserialize an entry.

        Args:
            data: Framed entry bytes

        Returns:
            Decoded entry

        Raises:
            CorruptEntryError: If the data is truncated, corrupted or invalid
        """
        if len(data) < self.HEADER_SIZE:
            raise CorruptEntryError(f"Data too short: {len(data)} bytes")

        length, crc = struct.unpack(">II", data[:8])

        if len(data) != self.LENGTH_FIELD_SIZE + length:
            raise CorruptEntryError(
                f"Length mismatch: expected {self.LENGTH_FIELD_SIZE + length} bytes, "
                f"got {len(data)} bytes"
            )

        body = data[8:]
        computed_crc = crc32c.crc32c(body)
        if computed_crc != crc:
            raise CorruptEntryError(
                f"CRC mismatch: expected {crc}, computed {computed_crc}"
            )

        magic_byte = body[0]
        if magic_byte != CodecVersion.V1:
            raise CorruptEntryError(f"Unsupported magic byte: {magic_byte}")

        try:
            document = json.loads(body[1:].decode("utf-8"))
        except ValueError as e:
            raise CorruptEntryError(f"Invalid entry payload: {e}") from e

        return self._from_document(document)

    def _from_document(self, document: Any) -> Entry:
        if not isinstance(document, dict):
            raise CorruptEntryError("Entry payload must be an object")

        missing = [name for name in self.REQUIRED_FIELDS if name not in document]
        if missing:
            raise CorruptEntryError(f"Entry payload missing fields: {missing}")

        try:
            return Entry(
                identifier=document["hash"],
                index=document["index"],
                value=document["value"],
                previous=document["previous"],
                next=document["next"],
            )
        except (TypeError, ValueError) as e:
            raise CorruptEntryError(f"Invalid entry: {e}") from e

    @staticmethod
    def encode_pointer(identifier: str) -> bytes:
        """Encode an identifier stored as a pointer value."""
        return identifier.encode("ascii")

    @staticmethod
    def decode_pointer(data: bytes) -> str:
        """
        Decode a pointer value.

        Raises:
            CorruptEntryError: If the value is not a valid pointer
        """
        try:
            identifier = data.decode("ascii")
        except UnicodeDecodeError as e:
            raise CorruptEntryError(f"Invalid pointer value: {e}") from e
        if not identifier:
            raise CorruptEntryError("Empty pointer value")
        return identifier

    def to_json(self, entry: Entry) -> Dict[str, Any]:
        """Entry as a JSON-ready dictionary using the stored field names."""
        return {
            "hash": entry.identifier,
            "index": entry.index,
            "value": entry.value,
            "previous": entry.previous,
            "next": entry.next,
        }

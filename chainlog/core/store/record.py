"""
On-disk batch record format for the file store.

Every committed batch is written as one record, so a batch is atomic as
long as a torn or corrupted record can be detected and dropped on recovery.

Wire format:
    Length (4 bytes) - Total length excluding this field
    CRC32C (4 bytes) - Checksum of remaining data
    Magic byte (1 byte) - Format version
    Op count (4 bytes) - Number of puts in the batch
    Repeated op count times:
        Key length (4 bytes) - Length of UTF-8 key
        Key (variable)
        Value length (4 bytes) - Length of value
        Value (variable)
"""

import struct
from dataclasses import dataclass
from enum import IntEnum
from typing import List, Tuple

import crc32c


class RecordMagic(IntEnum):
    """Record format version."""

    V1 = 1
    CURRENT = V1


@dataclass
class ValueSlot:
    """
    Location of one value inside a serialized record.

    Attributes:
        key: Key the value belongs to
        offset: Byte offset of the value from the start of the record
        length: Value length in bytes
    """

    key: str
    offset: int
    length: int


@dataclass
class BatchRecord:
    """A batch of puts as stored on disk."""

    operations: List[Tuple[str, bytes]]
    magic_byte: int = RecordMagic.CURRENT

    LENGTH_FIELD_SIZE = 4
    CRC_FIELD_SIZE = 4
    HEADER_SIZE = LENGTH_FIELD_SIZE + CRC_FIELD_SIZE + 1 + 4
    MAX_RECORD_SIZE = 100 * 1024 * 1024

    def serialize(self) -> bytes:
        """
        Serialize the batch to bytes.

        Returns:
            Serialized record

        Raises:
            ValueError: If the record exceeds MAX_RECORD_SIZE
        """
        parts = [struct.pack(">BI", self.magic_byte, len(self.operations))]
        for key, value in self.operations:
            key_bytes = key.encode("utf-8")
            parts.append(struct.pack(">I", len(key_bytes)))
            parts.append(key_bytes)
            parts.append(struct.pack(">I", len(value)))
            parts.append(value)

        payload = b"".join(parts)
        crc = crc32c.crc32c(payload)
        total_length = self.CRC_FIELD_SIZE + len(payload)

        if total_length > self.MAX_RECORD_SIZE:
            raise ValueError(
                f"Record too large: {total_length} bytes "
                f"(max {self.MAX_RECORD_SIZE})"
            )

        return struct.pack(">II", total_length, crc) + payload

    @classmethod
    def locate(cls, data: bytes) -> List[ValueSlot]:
        """
        Validate a serialized record and find where each value lives.

        Args:
            data: Serialized record, starting at its length field

        Returns:
            One slot per operation, in write order

        Raises:
            ValueError: If data is truncated, corrupted or invalid
        """
        if len(data) < cls.HEADER_SIZE:
            raise ValueError(f"Data too short: {len(data)} bytes")

        length, crc = struct.unpack(">II", data[:8])

        if len(data) != cls.LENGTH_FIELD_SIZE + length:
            raise ValueError(
                f"Record length mismatch: expected {cls.LENGTH_FIELD_SIZE + length} "
                f"bytes, got {len(data)} bytes"
            )

        payload = data[8:]

        computed_crc = crc32c.crc32c(payload)
        if computed_crc != crc:
            raise ValueError(f"CRC mismatch: expected {crc}, computed {computed_crc}")

        magic_byte, op_count = struct.unpack(">BI", payload[:5])
        if magic_byte != RecordMagic.V1:
            raise ValueError(f"Unsupported magic byte: {magic_byte}")

        slots = []
        position = cls.HEADER_SIZE
        try:
            for _ in range(op_count):
                key_length = struct.unpack(">I", data[position : position + 4])[0]
                position += 4
                key = data[position : position + key_length].decode("utf-8")
                position += key_length

                value_length = struct.unpack(">I", data[position : position + 4])[0]
                position += 4
                if position + value_length > len(data):
                    raise ValueError(
                        f"Value for {key!r} runs past end of record"
                    )

                slots.append(ValueSlot(key=key, offset=position, length=value_length))
                position += value_length
        except struct.error as e:
            raise ValueError(f"Truncated operation at byte {position}: {e}") from e

        if position != len(data):
            raise ValueError(
                f"Trailing bytes in record: {len(data) - position}"
            )

        return slots

    @classmethod
    def deserialize(cls, data: bytes) -> "BatchRecord":
        """
        Deserialize a record.

        Raises:
            ValueError: If data is corrupted or invalid
        """
        operations = [
            (slot.key, data[slot.offset : slot.offset + slot.length])
            for slot in cls.locate(data)
        ]
        return cls(operations=operations, magic_byte=data[8])

"""Tests for the on-disk batch record format."""

import struct

import pytest

from chainlog.core.store.record import BatchRecord, RecordMagic


class TestBatchRecord:
    """Test BatchRecord serialization and validation."""

    def test_serialize_deserialize(self):
        """Test that a record decodes back to its operations."""
        record = BatchRecord(operations=[("firstHash", b"abc"), ("0", b""), ("ключ", b"\x00\xff")])

        decoded = BatchRecord.deserialize(record.serialize())

        assert decoded.operations == record.operations
        assert decoded.magic_byte == RecordMagic.V1

    def test_locate_slots(self):
        """Test that slots point at each value inside the record."""
        data = BatchRecord(operations=[("a", b"first"), ("bb", b"second")]).serialize()

        slots = BatchRecord.locate(data)

        assert [slot.key for slot in slots] == ["a", "bb"]
        for slot, expected in zip(slots, [b"first", b"second"]):
            assert data[slot.offset : slot.offset + slot.length] == expected

    def test_length_prefix(self):
        """Test that the length field excludes itself."""
        data = BatchRecord(operations=[("k", b"v")]).serialize()

        length = struct.unpack(">I", data[:4])[0]

        assert length == len(data) - 4

    def test_detects_corruption(self):
        """Test CRC validation."""
        data = bytearray(BatchRecord(operations=[("k", b"value")]).serialize())
        data[-1] ^= 0xFF

        with pytest.raises(ValueError, match="CRC mismatch"):
            BatchRecord.locate(bytes(data))

    def test_detects_truncation(self):
        """Test that a torn record is rejected."""
        data = BatchRecord(operations=[("k", b"value")]).serialize()

        with pytest.raises(ValueError):
            BatchRecord.locate(data[:-2])
        with pytest.raises(ValueError, match="too short"):
            BatchRecord.locate(data[:5])

    def test_rejects_unknown_magic(self):
        """Test format version validation."""
        record = BatchRecord(operations=[("k", b"v")], magic_byte=9)

        with pytest.raises(ValueError, match="magic"):
            BatchRecord.locate(record.serialize())

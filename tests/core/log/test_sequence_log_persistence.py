"""Tests for the sequence log over the file store."""

import asyncio
import tempfile
import threading
from pathlib import Path

import pytest

from chainlog.core.log.sequence_log import SequenceLog
from chainlog.core.store.file import FileStore


class TestPersistentSequenceLog:
    """Test that a file-backed log survives reopening."""

    @pytest.fixture
    def temp_dir(self):
        """Create a temporary directory for tests."""
        with tempfile.TemporaryDirectory() as tmpdir:
            yield Path(tmpdir)

    @pytest.mark.asyncio
    async def test_reopen_and_continue(self, temp_dir):
        """Test appending across a close and reopen."""
        async with SequenceLog(FileStore(directory=temp_dir)) as log:
            first_batch = [await log.append(f"msg-{i}") for i in range(10)]

        async with SequenceLog(FileStore(directory=temp_dir)) as log:
            assert await log.get_first_hash() == first_batch[0]
            assert await log.get_last_hash() == first_batch[-1]
            assert await log.get_current_index() == 9

            second_batch = [await log.append(f"msg-{i}") for i in range(10, 15)]

            entries = await log.read_all().to_list()

        assert [entry.value for entry in entries] == [f"msg-{i}" for i in range(15)]
        assert [entry.identifier for entry in entries] == first_batch + second_batch

    @pytest.mark.asyncio
    async def test_read_from_on_disk(self, temp_dir):
        """Test ranged reads from a file-backed log."""
        async with SequenceLog(FileStore(directory=temp_dir)) as log:
            for i in range(30):
                await log.append({"n": i})

            entries = await log.read_from(3, 17).to_list()

        assert [entry.index for entry in entries] == list(range(3, 18))
        assert [entry.value["n"] for entry in entries] == list(range(3, 18))

    @pytest.mark.asyncio
    async def test_torn_append_is_invisible(self, temp_dir):
        """Test that a crash mid-append leaves the previous state intact."""
        async with SequenceLog(FileStore(directory=temp_dir)) as log:
            identifiers = [await log.append(i) for i in range(3)]

        data_file = temp_dir / FileStore.DATA_FILE_NAME
        size = data_file.stat().st_size
        with open(data_file, "ab") as f:
            f.write(b"\x00\x00\x01\x00partial")

        async with SequenceLog(FileStore(directory=temp_dir)) as log:
            assert data_file.stat().st_size == size
            assert await log.get_last_hash() == identifiers[-1]
            assert (await log.get(identifiers[-1])).next is None
            assert [entry.value async for entry in log.read_all()] == [0, 1, 2]

    @pytest.mark.asyncio
    async def test_cancelled_append_matches_reopened_log(self, temp_dir):
        """Test that an append cancelled during the write agrees with what reopen sees."""
        log = SequenceLog(FileStore(directory=temp_dir))
        first = await log.append("first")

        started = threading.Event()
        release = threading.Event()
        append_record = log.store._append_record

        def gated_append(data, slots):
            started.set()
            release.wait(5)
            return append_record(data, slots)

        log.store._append_record = gated_append

        task = asyncio.create_task(log.append("second"))
        await asyncio.get_running_loop().run_in_executor(None, started.wait, 5)

        task.cancel()
        release.set()

        with pytest.raises(asyncio.CancelledError):
            await task

        in_process = await log.get_current_index()
        last = await log.get_last_hash()
        third = await log.append("third")
        await log.close()

        async with SequenceLog(FileStore(directory=temp_dir)) as reopened:
            assert await reopened.get_current_index() == in_process + 1
            entries = await reopened.read_all().to_list()

        assert in_process == 1
        assert last != first
        assert [entry.value for entry in entries] == ["first", "second", "third"]
        assert [entry.index for entry in entries] == [0, 1, 2]
        assert entries[1].identifier == last
        assert entries[2].identifier == third

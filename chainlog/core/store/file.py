"""
Durable key-value store backed by a single append-only data file.

Each committed batch is appended to the data file as one CRC-framed record.
An in-memory index maps every key to the position of its latest value, so
reads are a single positional read. On open the file is scanned, valid
records are replayed into the index, and anything after the last valid
record (a torn write from a crash) is truncated away.

Disk I/O is blocking, so it runs on a small thread pool and the async API
awaits it.
"""

import asyncio
import errno
import os
import threading
from concurrent.futures import ThreadPoolExecutor
from pathlib import Path
from typing import Dict, Iterator, List, Optional, Tuple

from chainlog.core.errors import BatchCommitError, StoreError
from chainlog.core.store.base import KeyValueStore, Operation
from chainlog.core.store.record import BatchRecord, ValueSlot
from chainlog.utils.logging import get_logger

logger = get_logger(__name__)


class FileStore(KeyValueStore):
    """
    Append-only file store with crash recovery.

    Attributes:
        directory: Directory holding the data file
        path: Path to the data file
        fsync_on_write: Whether to fsync after each batch
    """

    DATA_FILE_NAME = "chainlog.data"

    def __init__(
        self,
        directory: Path,
        fsync_on_write: bool = False,
        io_threads: int = 1,
    ):
        """
        Open (or create) a file store.

        Args:
            directory: Directory to store the data file in
            fsync_on_write: Whether to fsync after each batch
            io_threads: Thread pool size for disk I/O

        Raises:
            StoreError: If the data file cannot be opened
        """
        super().__init__()
        self.directory = Path(directory)
        self.fsync_on_write = fsync_on_write
        self.path = self.directory / self.DATA_FILE_NAME

        self._index: Dict[str, Tuple[int, int]] = {}
        self._size = 0
        self._write_fd: Optional[int] = None
        self._read_fd: Optional[int] = None

        self._write_lock = threading.Lock()
        self._batch_lock = asyncio.Lock()
        self._executor = ThreadPoolExecutor(
            max_workers=io_threads,
            thread_name_prefix="chainlog-io",
        )

        try:
            self.directory.mkdir(parents=True, exist_ok=True)
            self._recover()
            self._open()
        except OSError as e:
            self._executor.shutdown(wait=False)
            raise StoreError(f"Cannot open data file {self.path}: {e}") from e

        logger.info(
            "Opened file store",
            path=str(self.path),
            keys=len(self._index),
            size=self._size,
            fsync_on_write=fsync_on_write,
        )

    def _open(self) -> None:
        """Open the data file for appending and for positional reads."""
        flags = os.O_WRONLY | os.O_CREAT | os.O_APPEND
        self._write_fd = os.open(self.path, flags, 0o644)
        self._read_fd = os.open(self.path, os.O_RDONLY)

    def _scan(self, fd: int) -> Iterator[Tuple[int, bytes]]:
        """
        Yield (position, record bytes) for each valid record in the file.

        Stops at the first partial or corrupted record.
        """
        position = 0

        while True:
            length_bytes = os.pread(fd, BatchRecord.LENGTH_FIELD_SIZE, position)

            if len(length_bytes) == 0:
                return

            if len(length_bytes) < BatchRecord.LENGTH_FIELD_SIZE:
                logger.warning(
                    "Partial write detected at end of data file",
                    path=str(self.path),
                    position=position,
                    bytes_read=len(length_bytes),
                )
                return

            length = int.from_bytes(length_bytes, byteorder="big")

            if length <= 0 or length > BatchRecord.MAX_RECORD_SIZE:
                logger.error(
                    "Invalid record length",
                    path=str(self.path),
                    position=position,
                    length=length,
                )
                return

            remaining = os.pread(fd, length, position + BatchRecord.LENGTH_FIELD_SIZE)

            if len(remaining) < length:
                logger.warning(
                    "Incomplete record at end of data file",
                    path=str(self.path),
                    position=position,
                    expected=length,
                    got=len(remaining),
                )
                return

            data = length_bytes + remaining
            yield position, data
            position += len(data)

    def _recover(self) -> None:
        """Rebuild the key index from disk and drop any torn tail."""
        if not self.path.exists():
            return

        fd = os.open(self.path, os.O_RDWR)
        try:
            file_size = os.fstat(fd).st_size
            valid_bytes = 0
            records = 0

            for position, data in self._scan(fd):
                try:
                    slots = BatchRecord.locate(data)
                except ValueError as e:
                    logger.error(
                        "Failed to decode record",
                        path=str(self.path),
                        position=position,
                        error=str(e),
                    )
                    break

                for slot in slots:
                    self._index[slot.key] = (position + slot.offset, slot.length)

                valid_bytes = position + len(data)
                records += 1

            if valid_bytes < file_size:
                logger.warning(
                    "Truncating data file after last valid record",
                    path=str(self.path),
                    valid_bytes=valid_bytes,
                    discarded_bytes=file_size - valid_bytes,
                )
                os.ftruncate(fd, valid_bytes)
                os.fsync(fd)
        finally:
            os.close(fd)

        self._size = valid_bytes

        logger.info(
            "Recovery complete",
            path=str(self.path),
            records=records,
            keys=len(self._index),
            bytes=valid_bytes,
        )

    async def _run(self, func, *args):
        loop = asyncio.get_running_loop()
        return await loop.run_in_executor(self._executor, func, *args)

    def _pread(self, position: int, length: int) -> bytes:
        data = os.pread(self._read_fd, length, position)
        if len(data) != length:
            raise StoreError(
                f"Short read at {position}: expected {length} bytes, got {len(data)}"
            )
        return data

    async def _read(self, key: str) -> Optional[bytes]:
        location = self._index.get(key)
        if location is None:
            return None

        position, length = location
        try:
            return await self._run(self._pread, position, length)
        except OSError as e:
            logger.error("Read failed", key=key, position=position, error=str(e))
            raise StoreError(f"Read of {key!r} failed: {e}") from e

    def _append_record(self, data: bytes, slots: List[ValueSlot]) -> int:
        """
        Append one record to the data file and index its values.

        The index is updated here, on the I/O thread, so a record that reached
        the file is always visible even if the awaiting task was cancelled.

        Returns:
            Position the record was written at

        Raises:
            OSError: If the write fails. The file is truncated back so no
                partial record is left behind.
        """
        with self._write_lock:
            position = self._size
            try:
                bytes_written = os.write(self._write_fd, data)
                if bytes_written != len(data):
                    # A regular file only comes up short when the disk is full
                    raise OSError(
                        errno.ENOSPC,
                        f"Partial write: expected {len(data)} bytes, "
                        f"wrote {bytes_written} bytes",
                    )
                if self.fsync_on_write:
                    os.fsync(self._write_fd)
            except OSError:
                self._truncate_to(position)
                raise

            self._size = position + len(data)
            for slot in slots:
                self._index[slot.key] = (position + slot.offset, slot.length)
            return position

    def _truncate_to(self, position: int) -> None:
        """Drop a failed write, keeping the caller's error if this fails too."""
        try:
            os.ftruncate(self._write_fd, position)
        except OSError as e:
            logger.error(
                "Failed to truncate after write error",
                path=str(self.path),
                position=position,
                error=str(e),
            )

    async def _apply_batch(self, operations: List[Operation]) -> None:
        record = BatchRecord(operations=operations)
        try:
            data = record.serialize()
        except ValueError as e:
            raise BatchCommitError(str(e)) from e
        slots = BatchRecord.locate(data)

        async with self._batch_lock:
            write = asyncio.ensure_future(self._run(self._append_record, data, slots))
            try:
                position = await asyncio.shield(write)
            except asyncio.CancelledError:
                # The I/O thread cannot be stopped; hold the lock until it is done
                await asyncio.wait([write])
                if not write.cancelled() and write.exception() is not None:
                    logger.error(
                        "Batch write failed after cancellation",
                        path=str(self.path),
                        operations=len(operations),
                        error=str(write.exception()),
                    )
                raise
            except OSError as e:
                logger.error(
                    "Batch write failed",
                    path=str(self.path),
                    operations=len(operations),
                    error=str(e),
                )
                if e.errno == errno.ENOSPC:
                    raise BatchCommitError("Disk is full, batch not written") from e
                raise BatchCommitError(f"Batch write failed: {e}") from e

        logger.debug(
            "Appended batch record",
            position=position,
            operations=len(operations),
            size=len(data),
        )

    def _close_files(self) -> None:
        if self._write_fd is not None:
            os.fsync(self._write_fd)
            os.close(self._write_fd)
            self._write_fd = None
        if self._read_fd is not None:
            os.close(self._read_fd)
            self._read_fd = None

    async def _close(self) -> None:
        async with self._batch_lock:
            try:
                await self._run(self._close_files)
            finally:
                self._executor.shutdown(wait=True)

        logger.info(
            "Closed file store",
            path=str(self.path),
            keys=len(self._index),
            size=self._size,
        )

    def keys(self) -> List[str]:
        """All keys in ascending order."""
        return sorted(self._index)

    def size(self) -> int:
        """Size of the data file in bytes."""
        return self._size

    def __repr__(self) -> str:
        return f"FileStore(path={str(self.path)!r}, keys={len(self._index)}, size={self._size})"

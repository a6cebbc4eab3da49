"""
Key-value store interface consumed by the sequence log.

A store maps string keys to byte values and supports atomic multi-put
batches. Implementations only need to provide `_read`, `_apply_batch` and
`_close`; the public surface and the batch builder live here.
"""

from abc import ABC, abstractmethod
from typing import List, Optional, Tuple

from chainlog.core.errors import NotFoundError, StoreClosedError, StoreError
from chainlog.utils.logging import get_logger

logger = get_logger(__name__)

Operation = Tuple[str, bytes]


class WriteBatch:
    """
    Accumulates puts and commits them as a single all-or-nothing write.

    A batch is single use: once written it rejects further puts and writes.

    Attributes:
        store: Store the batch will be applied to
    """

    def __init__(self, store: "KeyValueStore"):
        self.store = store
        self._operations: List[Operation] = []
        self._written = False

    def put(self, key: str, value: bytes) -> "WriteBatch":
        """
        Add a put to the batch.

        Args:
            key: Key to write
            value: Value bytes

        Returns:
            The batch itself, for chaining

        Raises:
            StoreError: If the batch was already written
            TypeError: If key or value has the wrong type
        """
        if self._written:
            raise StoreError("Cannot add to a batch that was already written")
        _check_key(key)
        if not isinstance(value, (bytes, bytearray)):
            raise TypeError(f"Value must be bytes, got {type(value)}")

        self._operations.append((key, bytes(value)))
        return self

    def operations(self) -> List[Operation]:
        """Puts accumulated so far, in insertion order."""
        return list(self._operations)

    def __len__(self) -> int:
        return len(self._operations)

    async def write(self) -> None:
        """
        Commit all puts atomically.

        Raises:
            BatchCommitError: If the store could not apply the batch
            StoreError: If the batch was already written
        """
        if self._written:
            raise StoreError("Batch was already written")
        self.store._ensure_open()
        self._written = True

        if not self._operations:
            return

        await self.store._apply_batch(self._operations)

        logger.debug("Wrote batch", operations=len(self._operations))


class KeyValueStore(ABC):
    """
    Abstract async key-value store with atomic batches.

    Subclasses implement raw access; absence is signalled by `_read`
    returning None so that real failures are never confused with missing keys.
    """

    def __init__(self):
        self._closed = False

    @abstractmethod
    async def _read(self, key: str) -> Optional[bytes]:
        """Return the value for key, or None if absent."""

    @abstractmethod
    async def _apply_batch(self, operations: List[Operation]) -> None:
        """Apply all operations or none. Raise BatchCommitError on failure."""

    @abstractmethod
    async def _close(self) -> None:
        """Release resources held by the store."""

    @property
    def closed(self) -> bool:
        return self._closed

    def _ensure_open(self) -> None:
        if self._closed:
            raise StoreClosedError(f"{type(self).__name__} is closed")

    async def get(self, key: str) -> bytes:
        """
        Get the value stored under key.

        Raises:
            NotFoundError: If the key is absent
            StoreError: On any other store failure
        """
        value = await self.get_optional(key)
        if value is None:
            raise NotFoundError(key)
        return value

    async def get_optional(self, key: str) -> Optional[bytes]:
        """
        Get the value stored under key, or None if the key is absent.

        Raises:
            StoreError: On any failure other than absence
        """
        self._ensure_open()
        _check_key(key)
        return await self._read(key)

    async def has(self, key: str) -> bool:
        return await self.get_optional(key) is not None

    async def put(self, key: str, value: bytes) -> None:
        """Write a single key. Applied as a one-operation batch."""
        await self.batch().put(key, value).write()

    def batch(self) -> WriteBatch:
        """Start a new atomic batch."""
        self._ensure_open()
        return WriteBatch(self)

    async def close(self) -> None:
        """Close the store. Closing twice is a no-op."""
        if self._closed:
            return
        await self._close()
        self._closed = True

    async def __aenter__(self) -> "KeyValueStore":
        return self

    async def __aexit__(self, exc_type, exc_val, exc_tb) -> None:
        await self.close()


def _check_key(key: str) -> None:
    if not isinstance(key, str):
        raise TypeError(f"Key must be str, got {type(key)}")
    if not key:
        raise ValueError("Key must not be empty")

"""
Append-only, hash-linked sequence log on top of a key-value store.

Store layout:
    "firstHash"      -> identifier of the entry at index 0
    "lastHash"       -> identifier of the most recently appended entry
    "<index>"        -> identifier of the entry at that index (decimal key)
    "<identifier>"   -> encoded entry

Entries form a doubly-linked chain through their `previous` and `next`
identifiers. Every append is committed as one atomic batch that updates the
pointers, the index mapping, the old tail's `next` link and the new entry.
"""

import asyncio
from typing import Any, AsyncIterator, Callable, List, Optional, Tuple

from chainlog.core.errors import CorruptEntryError, NotFoundError, StoreError
from chainlog.core.log.entry import Entry, LogHead
from chainlog.core.log.format import EntryCodec
from chainlog.core.log.identifier import generate_identifier
from chainlog.core.store.base import KeyValueStore
from chainlog.utils.logging import get_logger

logger = get_logger(__name__)

FIRST_HASH_KEY = "firstHash"
LAST_HASH_KEY = "lastHash"

Walk = Callable[[], AsyncIterator[Tuple[bytes, Entry]]]


def index_key(index: int) -> str:
    """Store key of the index mapping for index."""
    return str(index)


def is_reserved_key(key: str) -> bool:
    """Whether key belongs to the pointer records or the index mapping."""
    if key in (FIRST_HASH_KEY, LAST_HASH_KEY):
        return True
    return key.lstrip("-").isdecimal()


class EntryStream:
    """
    Lazy, restartable walk over part of the chain.

    Every `async for` starts a fresh walk from the beginning and reads one
    entry from the store per step. Nothing is held between steps, so a
    consumer may stop at any point.
    """

    def __init__(self, walk: Walk):
        self._walk = walk

    def __aiter__(self) -> AsyncIterator[Entry]:
        return self._entries()

    async def _entries(self) -> AsyncIterator[Entry]:
        async for _, entry in self._walk():
            yield entry

    async def raw(self) -> AsyncIterator[bytes]:
        """Walk the same entries, yielding their encoded bytes."""
        async for data, _ in self._walk():
            yield data

    async def to_list(self) -> List[Entry]:
        return [entry async for entry in self]


class SequenceLog:
    """
    Append-only sequence log with lookup by identifier and by index.

    Reads may run concurrently with each other and with appends. Appends are
    serialized by a lock owned by this instance; the log assumes it is the
    only writer to its store, so two instances (or processes) must never
    append to the same store.

    Attributes:
        store: Backing key-value store
        codec: Entry codec
    """

    def __init__(
        self,
        store: KeyValueStore,
        codec: Optional[EntryCodec] = None,
        identifier_factory: Optional[Callable[[], str]] = None,
    ):
        """
        Initialize a sequence log.

        Args:
            store: Backing key-value store
            codec: Entry codec (default: EntryCodec())
            identifier_factory: Source of new identifiers
                (default: generate_identifier)
        """
        self.store = store
        self.codec = codec or EntryCodec()
        self._identifier_factory = identifier_factory or generate_identifier
        self._append_lock = asyncio.Lock()

        logger.info("Initialized sequence log", store=type(store).__name__)

    async def _read_pointer(self, key: str) -> Optional[str]:
        data = await self.store.get_optional(key)
        if data is None:
            return None
        return self.codec.decode_pointer(data)

    async def _load_head(self) -> Tuple[LogHead, Optional[Entry]]:
        """
        Read both end pointers and the tail entry.

        Raises:
            CorruptEntryError: If lastHash points at a missing entry
        """
        first_hash = await self._read_pointer(FIRST_HASH_KEY)
        last_hash = await self._read_pointer(LAST_HASH_KEY)

        if last_hash is None:
            return LogHead(first_hash=first_hash), None

        tail = await self._get_linked(last_hash, LAST_HASH_KEY)
        head = LogHead(
            first_hash=first_hash,
            last_hash=last_hash,
            last_index=tail.index,
        )
        return head, tail

    async def _get_linked(self, identifier: str, referrer: str) -> Entry:
        """Fetch an entry another record points at. A miss means corruption."""
        try:
            return await self.get(identifier)
        except NotFoundError as e:
            raise CorruptEntryError(
                f"Dangling pointer from {referrer!r} to {identifier!r}"
            ) from e

    def _new_identifier(self) -> str:
        identifier = self._identifier_factory()
        if not isinstance(identifier, str) or not identifier:
            raise ValueError(f"Invalid identifier from factory: {identifier!r}")
        if is_reserved_key(identifier):
            raise ValueError(f"Identifier collides with a reserved key: {identifier!r}")
        return identifier

    async def append(self, value: Any) -> str:
        """
        Append a value to the log.

        Args:
            value: JSON-serializable payload

        Returns:
            Identifier of the new entry

        Raises:
            TypeError: If value cannot be encoded (nothing is written)
            BatchCommitError: If the store rejected the batch (nothing is written)
            StoreError: On any other store failure
        """
        async with self._append_lock:
            identifier = self._new_identifier()
            head, tail = await self._load_head()

            index = head.next_index
            entry = Entry(
                identifier=identifier,
                index=index,
                value=value,
                previous=head.last_hash,
                next=None,
            )
            encoded = self.codec.encode(entry)
            pointer = self.codec.encode_pointer(identifier)

            batch = self.store.batch()

            if head.first_hash is None:
                batch.put(FIRST_HASH_KEY, pointer)

            if tail is not None:
                batch.put(tail.identifier, self.codec.encode(tail.with_next(identifier)))

            batch.put(LAST_HASH_KEY, pointer)
            batch.put(index_key(index), pointer)
            batch.put(identifier, encoded)

            try:
                await batch.write()
            except StoreError as e:
                logger.error(
                    "Append failed",
                    index=index,
                    identifier=identifier,
                    error=str(e),
                )
                raise

            logger.debug(
                "Appended entry",
                index=index,
                identifier=identifier,
                size=len(encoded),
            )

            return identifier

    async def get(self, identifier: str) -> Entry:
        """
        Get an entry by identifier.

        Raises:
            NotFoundError: If no entry has this identifier
        """
        return self.codec.decode(await self.get_raw(identifier))

    async def get_raw(self, identifier: str) -> bytes:
        """
        Get the encoded bytes of an entry.

        Raises:
            NotFoundError: If no entry has this identifier
        """
        if not identifier or is_reserved_key(identifier):
            raise NotFoundError(identifier)
        return await self.store.get(identifier)

    async def has(self, identifier: str) -> bool:
        """Whether an entry with this identifier exists."""
        if not identifier or is_reserved_key(identifier):
            return False
        return await self.store.has(identifier)

    async def get_first_hash(self) -> Optional[str]:
        """Identifier of the entry at index 0, or None if the log is empty."""
        return await self._read_pointer(FIRST_HASH_KEY)

    async def get_last_hash(self) -> Optional[str]:
        """Identifier of the newest entry, or None if the log is empty."""
        return await self._read_pointer(LAST_HASH_KEY)

    async def get_current_index(self) -> Optional[int]:
        """Index of the newest entry, or None if the log is empty."""
        last_hash = await self.get_last_hash()
        if last_hash is None:
            return None
        return (await self._get_linked(last_hash, LAST_HASH_KEY)).index

    async def get_head(self) -> LogHead:
        head, _ = await self._load_head()
        return head

    async def get_by_index(self, index: int) -> Entry:
        """
        Get the entry at a sequence position.

        Raises:
            NotFoundError: If index is negative or beyond the end of the log
        """
        key = index_key(index)
        identifier = self.codec.decode_pointer(await self.store.get(key))
        return await self._get_linked(identifier, key)

    def read_all(self) -> EntryStream:
        """Stream every entry from index 0 to the tail."""

        async def walk() -> AsyncIterator[Tuple[bytes, Entry]]:
            identifier = await self.get_first_hash()
            expected = 0
            referrer = FIRST_HASH_KEY
            while identifier is not None:
                data, entry = await self._step(identifier, referrer, expected)
                yield data, entry
                identifier = entry.next
                referrer = entry.identifier
                expected += 1

        return EntryStream(walk)

    def read_from(self, start: int, end: int) -> EntryStream:
        """
        Stream entries from index start through index end, inclusive.

        The walk stops after the first entry whose index is >= end, or at the
        tail. If end < start exactly one entry (the start) is produced.

        Args:
            start: First index to read
            end: Last index to read (inclusive)

        Raises:
            TypeError: If start or end is not an int
            NotFoundError: On iteration, if start is not a valid index
        """
        for name, bound in (("start", start), ("end", end)):
            if isinstance(bound, bool) or not isinstance(bound, int):
                raise TypeError(f"{name} must be an int, got {type(bound)}")

        async def walk() -> AsyncIterator[Tuple[bytes, Entry]]:
            key = index_key(start)
            identifier = self.codec.decode_pointer(await self.store.get(key))
            expected = start
            referrer = key
            while identifier is not None:
                data, entry = await self._step(identifier, referrer, expected)
                yield data, entry
                if entry.index >= end:
                    break
                identifier = entry.next
                referrer = entry.identifier
                expected += 1

        return EntryStream(walk)

    def read_backward(self) -> EntryStream:
        """Stream every entry from the tail back to index 0."""

        async def walk() -> AsyncIterator[Tuple[bytes, Entry]]:
            head, _ = await self._load_head()
            identifier = head.last_hash
            expected = head.last_index
            referrer = LAST_HASH_KEY
            while identifier is not None:
                data, entry = await self._step(identifier, referrer, expected)
                yield data, entry
                identifier = entry.previous
                referrer = entry.identifier
                expected -= 1

        return EntryStream(walk)

    async def _step(
        self,
        identifier: str,
        referrer: str,
        expected_index: int,
    ) -> Tuple[bytes, Entry]:
        """Read one entry of a walk and check it sits where the chain says."""
        try:
            data = await self.get_raw(identifier)
        except NotFoundError as e:
            raise CorruptEntryError(
                f"Dangling pointer from {referrer!r} to {identifier!r}"
            ) from e

        entry = self.codec.decode(data)
        if entry.index != expected_index:
            raise CorruptEntryError(
                f"Chain out of order: expected index {expected_index}, "
                f"found {entry.index} at {identifier!r}"
            )
        return data, entry

    async def close(self) -> None:
        await self.store.close()
        logger.info("Closed sequence log")

    async def __aenter__(self) -> "SequenceLog":
        return self

    async def __aexit__(self, exc_type, exc_val, exc_tb) -> None:
        await self.close()

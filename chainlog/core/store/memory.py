"""In-memory key-value store."""

from typing import Dict, List, Optional

from chainlog.core.store.base import KeyValueStore, Operation
from chainlog.utils.logging import get_logger

logger = get_logger(__name__)


class MemoryStore(KeyValueStore):
    """
    Dict-backed store for tests and ephemeral logs.

    Operations are collected into a staging dict and merged with one update,
    so a batch is either fully visible or not at all.
    """

    def __init__(self):
        super().__init__()
        self._data: Dict[str, bytes] = {}
        logger.debug("Initialized memory store")

    async def _read(self, key: str) -> Optional[bytes]:
        return self._data.get(key)

    async def _apply_batch(self, operations: List[Operation]) -> None:
        staged = dict(operations)
        self._data.update(staged)

    async def _close(self) -> None:
        logger.debug("Closed memory store", keys=len(self._data))
        self._data.clear()

    def keys(self) -> List[str]:
        """All keys in ascending order."""
        return sorted(self._data)

    def __len__(self) -> int:
        return len(self._data)

"""
Build stores and logs from configuration.
"""

from pathlib import Path
from typing import Optional

from chainlog.core.log.sequence_log import SequenceLog
from chainlog.core.store.base import KeyValueStore
from chainlog.core.store.file import FileStore
from chainlog.core.store.memory import MemoryStore
from chainlog.utils.config import Config, get_config
from chainlog.utils.logging import get_logger

logger = get_logger(__name__)

BACKENDS = ("file", "memory")


def open_store(config: Optional[Config] = None) -> KeyValueStore:
    """
    Open the store selected by `store.backend`.

    Args:
        config: Configuration (default: global configuration)

    Returns:
        Opened store

    Raises:
        ValueError: If the backend is unknown
    """
    config = config or get_config()
    backend = config.get("store.backend", "file")

    if backend == "memory":
        store: KeyValueStore = MemoryStore()
    elif backend == "file":
        store = FileStore(
            directory=Path(config.get("store.data_dir", "./data")),
            fsync_on_write=bool(config.get("store.fsync_on_write", False)),
            io_threads=int(config.get("store.io_threads", 1)),
        )
    else:
        raise ValueError(f"Unknown store backend {backend!r}, expected one of {BACKENDS}")

    logger.debug("Opened store from config", backend=backend)
    return store


def open_log(config: Optional[Config] = None) -> SequenceLog:
    """Open a sequence log over the configured store."""
    return SequenceLog(open_store(config))

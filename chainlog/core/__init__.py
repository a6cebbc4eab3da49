"""Core components: stores and the sequence log."""

from chainlog.core import errors, log, store

__all__ = ["errors", "log", "store"]

"""
Error types shared by the store layer and the sequence log.

Absence of a key is reported with NotFoundError. Every other failure coming
out of a store is a StoreError and is always propagated to the caller.
"""


class ChainLogError(Exception):
    """Base class for all chainlog errors."""
    pass


class NotFoundError(ChainLogError, KeyError):
    """Raised when a key is not present in the store."""
    
    def __init__(self, key: str):
        super().__init__(key)
        self.key = key
    
    def __str__(self) -> str:
        return f"Key not found: {self.key!r}"


class StoreError(ChainLogError):
    """Raised when the store fails for a reason other than key absence."""
    pass


class BatchCommitError(StoreError):
    """Raised when an atomic batch could not be applied. Nothing was written."""
    pass


class StoreClosedError(StoreError):
    """Raised when operating on a closed store."""
    pass


class CorruptEntryError(StoreError):
    """Raised when a stored record fails validation."""
    pass

"""
Data model for the sequence log.
"""

from dataclasses import dataclass, replace
from typing import Any, Optional


@dataclass(frozen=True)
class Entry:
    """
    A single entry in the sequence log.

    Attributes:
        identifier: Random unique key the entry is stored under
        index: 0-based position in append order
        value: Caller payload, opaque to the log
        previous: Identifier of the preceding entry (None for index 0)
        next: Identifier of the following entry (None for the tail)
    """

    identifier: str
    index: int
    value: Any
    previous: Optional[str] = None
    next: Optional[str] = None

    def __post_init__(self) -> None:
        """Validate entry fields."""
        if not self.identifier:
            raise ValueError("Identifier must not be empty")
        if isinstance(self.index, bool) or not isinstance(self.index, int):
            raise TypeError(f"Index must be an int, got {type(self.index)}")
        if self.index < 0:
            raise ValueError(f"Index must be non-negative, got {self.index}")
        if self.index == 0 and self.previous is not None:
            raise ValueError("Entry at index 0 cannot have a previous entry")

    def with_next(self, identifier: str) -> "Entry":
        """Copy of this entry linked forward to identifier."""
        return replace(self, next=identifier)

    @property
    def is_first(self) -> bool:
        return self.previous is None

    @property
    def is_last(self) -> bool:
        return self.next is None


@dataclass(frozen=True)
class LogHead:
    """
    Snapshot of the chain's end pointers.

    Attributes:
        first_hash: Identifier of the entry at index 0
        last_hash: Identifier of the most recently appended entry
        last_index: Index of the entry at last_hash
    """

    first_hash: Optional[str] = None
    last_hash: Optional[str] = None
    last_index: Optional[int] = None

    @classmethod
    def empty(cls) -> "LogHead":
        return cls()

    @property
    def is_empty(self) -> bool:
        return self.last_hash is None

    @property
    def next_index(self) -> int:
        """Index the next appended entry will receive."""
        return 0 if self.last_index is None else self.last_index + 1

    @property
    def length(self) -> int:
        return self.next_index

"""
Identifier generation for log entries.

Identifiers are SHA-256 digests of fresh random bytes. They are unique and
unpredictable but carry no relation to the entry's value, so they cannot be
used for content addressing or deduplication.
"""

import hashlib
import re
import secrets

RANDOM_BYTES = 32
IDENTIFIER_LENGTH = 64

_IDENTIFIER_PATTERN = re.compile(r"^[0-9a-f]{64}$")


def generate_identifier() -> str:
    """
    Generate a new entry identifier.

    Returns:
        64-character lowercase hex string
    """
    return hashlib.sha256(secrets.token_bytes(RANDOM_BYTES)).hexdigest()


def is_identifier(text: str) -> bool:
    """Check whether text has the shape of a generated identifier."""
    return isinstance(text, str) and _IDENTIFIER_PATTERN.match(text) is not None

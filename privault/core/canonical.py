"""
Privault: Canonical JSON Encoding — RFC 8785 (JCS)

Authorization intents, witness signatures and journal entries are all
hashed over this encoding, so two processes that build the same intent
always derive the same digest regardless of key order.

RFC 8785: https://www.rfc-editor.org/rfc/rfc8785
"""

import hashlib
from enum import Enum
from typing import Any

import jcs


def _plain(value: Any) -> Any:
    """Reduce enums, tuples and ints to JSON primitives."""
    if isinstance(value, Enum):
        return value.value
    if isinstance(value, int) and not isinstance(value, bool):
        # JCS numbers are IEEE-754 doubles; uint128 amounts travel as strings
        return str(value)
    if isinstance(value, dict):
        return {str(k): _plain(v) for k, v in value.items()}
    if isinstance(value, (list, tuple)):
        return [_plain(v) for v in value]
    return value


def canonicalize(obj: dict) -> bytes:
    """
    Encode a dict to RFC 8785 canonical JSON bytes.

    Enum members are encoded by value and ints as decimal strings.
    """
    return jcs.canonicalize(_plain(obj))


def canonical_hash(obj: dict) -> str:
    """Lowercase hex SHA-256 of the canonical form (64 characters)."""
    return hashlib.sha256(canonicalize(obj)).hexdigest()

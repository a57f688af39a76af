"""
Small helpers shared across the package: identifiers and clocks.

This module intentionally avoids third-party dependencies.
"""

from __future__ import annotations

import os
import time
from datetime import datetime, timezone
from typing import Callable


_CROCKFORD32 = "0123456789ABCDEFGHJKMNPQRSTVWXYZ"

Clock = Callable[[], datetime]


def utc_now() -> datetime:
    return datetime.now(timezone.utc)


def _encode_base32(value: int, length: int) -> str:
    chars = ["0"] * length
    for i in range(length - 1, -1, -1):
        chars[i] = _CROCKFORD32[value & 31]
        value >>= 5
    return "".join(chars)


def new_id(prefix: str = "") -> str:
    """
    Generate a sortable unique identifier.

    The body is a ULID: 48-bit millisecond timestamp followed by 80 random
    bits, Crockford base32 encoded. An optional prefix ("co", "aud", ...)
    makes ids self-describing in logs.
    """
    timestamp_ms = int(time.time() * 1000) & ((1 << 48) - 1)
    randomness = int.from_bytes(os.urandom(10), "big")
    body = _encode_base32((timestamp_ms << 80) | randomness, 26)
    return f"{prefix}-{body.lower()}" if prefix else body

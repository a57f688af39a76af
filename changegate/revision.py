"""
Revision code allocation.

Revision codes are bijective base-26 numerals over A-Z: A=1 ... Z=26,
AA=27 ... AZ=52, BA=53 ... ZZ=702, AAA=703. There is no zero digit, so
every positive integer has exactly one code and ordering by value is the
same as ordering by (length, lexicographic).
"""

from __future__ import annotations

import re
from typing import Iterable

from .errors import InvalidRevisionCodeError


_CODE_RE = re.compile(r"^[A-Z]+$")


def validate_revision_code(code: object) -> bool:
    """True for a non-empty string made only of uppercase letters A-Z."""
    return isinstance(code, str) and _CODE_RE.fullmatch(code) is not None


def _require_valid(code: object) -> str:
    if not validate_revision_code(code):
        raise InvalidRevisionCodeError(code)
    assert isinstance(code, str)
    return code


def revision_index(code: str) -> int:
    """Numeric value of a revision code (A -> 1, Z -> 26, AA -> 27)."""
    value = 0
    for ch in _require_valid(code):
        value = value * 26 + (ord(ch) - ord("A") + 1)
    return value


def next_revision_code(current: str | None) -> str:
    """
    Allocate the revision after `current`.

    None (a part that has never been released) gets "A". Otherwise the
    last letter is incremented with carry: Z -> AA, AZ -> BA, ZZ -> AAA.
    """
    if current is None:
        return "A"

    chars = list(_require_valid(current))
    i = len(chars) - 1
    while i >= 0:
        if chars[i] != "Z":
            chars[i] = chr(ord(chars[i]) + 1)
            return "".join(chars)
        chars[i] = "A"
        i -= 1

    # Every position carried
    return "A" + "".join(chars)


def previous_revision_code(current: str) -> str | None:
    """
    The revision before `current`, or None for "A".

    Decrement with borrow; when the leading letter borrows from an "A" it
    disappears (AA -> Z, BA -> AZ, AAA -> ZZ).
    """
    chars = list(_require_valid(current))
    if chars == ["A"]:
        return None

    for i in range(len(chars) - 1, -1, -1):
        if chars[i] != "A":
            chars[i] = chr(ord(chars[i]) - 1)
            return "".join(chars)
        chars[i] = "Z"

    # All letters were "A": the leading digit is consumed by the borrow
    return "".join(chars[1:])


def compare_revision_codes(a: str, b: str) -> int:
    """Return -1, 0 or 1 ordering by length first, then lexicographically."""
    _require_valid(a)
    _require_valid(b)
    key_a = (len(a), a)
    key_b = (len(b), b)
    if key_a < key_b:
        return -1
    if key_a > key_b:
        return 1
    return 0


def sort_revision_codes(codes: Iterable[str]) -> list[str]:
    """Return a new, ascending, stable-sorted list. The input is not touched."""
    items = list(codes)
    for code in items:
        _require_valid(code)
    return sorted(items, key=lambda c: (len(c), c))

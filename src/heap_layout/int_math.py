from __future__ import annotations

from numbers import Integral


def imin(a: int, b: int) -> int:
    return a if a < b else b


def imax(a: int, b: int) -> int:
    return a if a > b else b


def compare(a: int, b: int) -> int:
    """Three-way comparison returning -1, 0 or 1."""
    if a < b:
        return -1
    if a > b:
        return 1
    return 0


def is_exact_int(value: object) -> bool:
    # bool is an Integral but never a valid address or size.
    return isinstance(value, Integral) and not isinstance(value, bool)


def row_index(address: int, base: int, row_size: int) -> int:
    """
    Index of the row holding ``address`` relative to ``base``.

    Uses floor division so addresses below the base land on negative indices
    instead of being truncated towards zero.
    """
    return (address - base) // row_size

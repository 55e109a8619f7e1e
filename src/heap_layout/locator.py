from __future__ import annotations

from typing import Optional, Sequence

from .rows import RowAllocSegment, RowEntry


def find_row_index(rows: Sequence[RowEntry], address: int) -> Optional[int]:
    """
    Binary search for the row whose ``[base, base + size)`` holds ``address``.

    Relies on the rows being sorted, disjoint and contiguous, which is what
    the layout engine produces. Returns None when the address is outside
    every row.
    """
    low = 0
    high = len(rows) - 1
    while low <= high:
        mid = (low + high) // 2
        row = rows[mid]
        if row.contains(address):
            return mid
        if address < row.base:
            high = mid - 1
        else:
            low = mid + 1
    return None


def find_row_containing(rows: Sequence[RowEntry], address: int) -> Optional[RowEntry]:
    index = find_row_index(rows, address)
    if index is None:
        return None
    return rows[index]


def find_allocation(rows: Sequence[RowEntry], address: int) -> Optional[RowAllocSegment]:
    """Segment in the located row whose allocation covers ``address``."""
    row = find_row_containing(rows, address)
    if row is None:
        return None
    for seg in row.allocs:
        if seg.address <= address < seg.address + seg.actual_size:
            return seg
    return None

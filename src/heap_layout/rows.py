from __future__ import annotations

from dataclasses import dataclass, field
from fractions import Fraction
from typing import List

from .formatting import format_hex

FULL_WIDTH = Fraction(100)


@dataclass(frozen=True, slots=True)
class RowAllocSegment:
    """
    The part of one allocation that falls inside one row.

    ``address`` is the start of the whole allocation, not of this segment.
    Percentages are exact fractions of the row span.
    """

    address: int
    left_pct: Fraction
    width_pct: Fraction
    requested_pct: Fraction
    size: int
    actual_size: int
    type: str
    group_id: int
    color: str

    @property
    def right_pct(self) -> Fraction:
        return self.left_pct + self.width_pct


@dataclass(frozen=True, slots=True)
class RowGap:
    left_pct: Fraction
    width_pct: Fraction
    size_hex: str


@dataclass(slots=True)
class RowEntry:
    """One row of the address grid, or a collapsed run of empty rows."""

    base: int
    size: int
    allocs: List[RowAllocSegment] = field(default_factory=list)
    gaps: List[RowGap] = field(default_factory=list)
    collapsed: bool = False

    @property
    def end(self) -> int:
        return self.base + self.size

    def contains(self, address: int) -> bool:
        return self.base <= address < self.end


def gap_bytes(width_pct: Fraction, row_size: int) -> int:
    """Byte size of a gap, rounded half-up from the exact rational width."""
    exact = width_pct * row_size / 100
    return int((exact + Fraction(1, 2)) // 1)


def compute_gaps(row: RowEntry, row_size: int) -> None:
    """Sort a row's segments and fill in the uncovered spans of [0, 100]."""
    if row.collapsed:
        return
    row.allocs.sort(key=lambda seg: seg.left_pct)
    gaps: List[RowGap] = []
    cursor = Fraction(0)
    for seg in row.allocs:
        if seg.left_pct > cursor:
            gaps.append(_make_gap(cursor, seg.left_pct - cursor, row_size))
        # Overlapping segments must not move the cursor backwards.
        cursor = max(cursor, min(FULL_WIDTH, seg.right_pct))
    if cursor < FULL_WIDTH:
        gaps.append(_make_gap(cursor, FULL_WIDTH - cursor, row_size))
    row.gaps = gaps


def _make_gap(left_pct: Fraction, width_pct: Fraction, row_size: int) -> RowGap:
    return RowGap(left_pct=left_pct, width_pct=width_pct, size_hex=format_hex(gap_bytes(width_pct, row_size)))

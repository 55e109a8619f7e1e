from __future__ import annotations

from fractions import Fraction
from typing import List, Optional, Sequence

from .formatting import format_hex
from .rows import RowEntry

FREE_CHAR = "."
COLLAPSED_CHAR = "~"


def _column(pct: Fraction, width: int) -> int:
    return int((pct * width / 100) // 1)


def _label(address: int) -> str:
    # Rows laid out below a caller-supplied base can start under zero.
    if address < 0:
        return "-" + format_hex(-address)
    return format_hex(address)


def render_row(row: RowEntry, width: int = 64) -> str:
    if row.collapsed:
        return COLLAPSED_CHAR * width
    buf = [FREE_CHAR] * width
    for seg in row.allocs:
        start = _column(seg.left_pct, width)
        stop = _column(seg.right_pct, width)
        ch = seg.type[:1].upper() or "#"
        # Every segment gets at least one column, however narrow.
        for i in range(max(0, start), min(width, max(start + 1, stop))):
            buf[i] = ch
    return "".join(buf)


def render_rows(rows: Sequence[RowEntry], width: int = 64, row_size: Optional[int] = None) -> str:
    """One line per row: hex base, occupancy bar, and a summary for collapsed runs."""
    if not rows:
        return ""
    if row_size is None:
        row_size = min(row.size for row in rows)
    label_width = max(len(_label(row.base)) for row in rows)
    lines: List[str] = []
    for row in rows:
        line = f"{_label(row.base):>{label_width}} |{render_row(row, width)}|"
        if row.collapsed:
            line += f" ({row.size // row_size} rows collapsed, {format_hex(row.size)} bytes)"
        lines.append(line)
    return "\n".join(lines)

from fractions import Fraction
from typing import Iterable, List, Optional

from heap_layout import Allocation, RowEntry


def alloc(address: int, size: int, actual_size: Optional[int] = None, *, type: str = "malloc", group_id: int = 1) -> Allocation:
    return Allocation(
        address=address,
        size=size,
        actual_size=size if actual_size is None else actual_size,
        type=type,
        group_id=group_id,
    )


def segments_of(rows: Iterable[RowEntry], address: int):
    for row in rows:
        for seg in row.allocs:
            if seg.address == address:
                yield row, seg


def covered_bytes(rows: List[RowEntry], address: int, row_size: int) -> Fraction:
    return sum((seg.width_pct * row_size / 100 for _, seg in segments_of(rows, address)), Fraction(0))


def requested_bytes(rows: List[RowEntry], address: int, row_size: int) -> Fraction:
    total = Fraction(0)
    for _, seg in segments_of(rows, address):
        seg_len = seg.width_pct * row_size / 100
        total += seg.requested_pct / 100 * seg_len
    return total


def tiling(row: RowEntry):
    spans = [(seg.left_pct, seg.width_pct) for seg in row.allocs]
    spans.extend((gap.left_pct, gap.width_pct) for gap in row.gaps)
    return sorted(spans)

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from fractions import Fraction
from typing import TYPE_CHECKING, Dict, Iterable, List, Optional, Sequence

from .allocation import Allocation
from .collapse import CollapseConfig, plan_empty_run
from .config import DEFAULT_MAX_ROWS_PER_ALLOCATION, LayoutSettings
from .formatting import format_hex
from .int_math import imax, imin, is_exact_int, row_index
from .rows import RowAllocSegment, RowEntry, compute_gaps

if TYPE_CHECKING:
    from .instrumentation import LayoutProfiler

logger = logging.getLogger(__name__)


class LayoutConfigError(ValueError):
    """Raised when the grid parameters handed to the engine are unusable."""


@dataclass(frozen=True, slots=True)
class LayoutDiagnostic:
    kind: str
    address: int
    actual_size: int
    row_span: int
    message: str


@dataclass
class RowLayout:
    """Result of one layout pass: the rows plus anything the engine dropped."""

    rows: List[RowEntry]
    row_size: int
    base: int
    diagnostics: List[LayoutDiagnostic] = field(default_factory=list)

    @property
    def skipped_addresses(self) -> List[int]:
        return [diag.address for diag in self.diagnostics]


class _RowSequence:
    """
    Append-only row list used while a single layout pass runs.

    Rows are only ever added at the end, so contiguity holds by construction:
    every new row starts where the previous one ended.
    """

    def __init__(self, row_size: int, collapse: CollapseConfig) -> None:
        self.row_size = row_size
        self.collapse = collapse
        self.rows: List[RowEntry] = []
        self._by_base: Dict[int, RowEntry] = {}

    @property
    def last(self) -> RowEntry:
        return self.rows[-1]

    def start_at(self, base: int) -> None:
        self._append(RowEntry(base=base, size=self.row_size))

    def advance_to(self, target_base: int) -> None:
        """Emit the empty run between the last row and ``target_base``, then the target row."""
        empty_rows = (target_base - self.last.end) // self.row_size
        self.add_empty_rows(empty_rows)
        self._append(RowEntry(base=self.last.end, size=self.row_size))

    def add_empty_rows(self, count: int) -> None:
        for row_count, collapsed in plan_empty_run(count, self.collapse):
            self._append(RowEntry(base=self.last.end, size=row_count * self.row_size, collapsed=collapsed))

    def row_at(self, base: int) -> RowEntry:
        if base == self.last.end:
            self._append(RowEntry(base=base, size=self.row_size))
        return self._by_base[base]

    def _append(self, row: RowEntry) -> None:
        self.rows.append(row)
        if not row.collapsed:
            self._by_base[row.base] = row


def validate_grid(row_size: object, base: object, collapse: CollapseConfig) -> None:
    if not is_exact_int(row_size):
        raise LayoutConfigError(f"row_size must be an integer, got {row_size!r}")
    if row_size <= 0:
        raise LayoutConfigError(f"row_size must be positive, got {row_size}")
    if not is_exact_int(base):
        raise LayoutConfigError(f"base address must be an integer, got {base!r}")
    if base < 0:
        raise LayoutConfigError(f"base address must be non-negative, got {base}")
    if not is_exact_int(collapse.threshold) or collapse.threshold < 1:
        raise LayoutConfigError(f"collapse threshold must be an integer >= 1, got {collapse.threshold!r}")


def build_layout(
    allocations: Iterable[Allocation],
    row_size: int,
    base: int,
    collapse: CollapseConfig,
    *,
    end_address: Optional[int] = None,
    max_rows_per_allocation: int = DEFAULT_MAX_ROWS_PER_ALLOCATION,
    profiler: Optional["LayoutProfiler"] = None,
) -> RowLayout:
    """
    Partition the address space into rows of ``row_size`` bytes starting at
    ``base`` and slice every allocation into per-row segments.

    Allocations are visited in address order (stable on ties). Runs of empty
    rows between occupied rows follow the collapse policy. When
    ``end_address`` is given, empty rows after the last occupied row up to the
    row holding ``end_address - 1`` are emitted as a trailing run.
    """
    validate_grid(row_size, base, collapse)
    if not is_exact_int(max_rows_per_allocation) or max_rows_per_allocation < 1:
        raise LayoutConfigError(f"max_rows_per_allocation must be an integer >= 1, got {max_rows_per_allocation!r}")
    if end_address is not None and not is_exact_int(end_address):
        raise LayoutConfigError(f"end address must be an integer, got {end_address!r}")

    layout = RowLayout(rows=[], row_size=row_size, base=base)
    ordered = sorted(allocations, key=lambda alloc: alloc.address)
    if not ordered:
        return layout

    sequence = _RowSequence(row_size, collapse)
    for alloc in ordered:
        start_index = row_index(alloc.address, base, row_size)
        end_index = row_index(alloc.end - 1, base, row_size)
        row_span = end_index - start_index + 1
        if row_span > max_rows_per_allocation:
            _report_skip(layout, alloc, row_span, max_rows_per_allocation, profiler)
            continue

        target_base = base + start_index * row_size
        if not sequence.rows:
            sequence.start_at(target_base)
        elif target_base >= sequence.last.end:
            sequence.advance_to(target_base)

        _place_segments(sequence, alloc, base, start_index, end_index)

    if sequence.rows and end_address is not None and end_address > sequence.last.end:
        last_base = base + row_index(end_address - 1, base, row_size) * row_size
        sequence.add_empty_rows((last_base - sequence.last.end) // row_size + 1)

    for row in sequence.rows:
        compute_gaps(row, row_size)

    layout.rows = sequence.rows
    if profiler is not None:
        profiler.record_layout(layout, allocation_count=len(ordered))
    return layout


def build_rows(
    allocations: Iterable[Allocation],
    row_size: int,
    base: int,
    collapse: CollapseConfig,
) -> List[RowEntry]:
    return build_layout(allocations, row_size, base, collapse).rows


def _place_segments(
    sequence: _RowSequence,
    alloc: Allocation,
    base: int,
    start_index: int,
    end_index: int,
) -> None:
    row_size = sequence.row_size
    requested_remaining = alloc.size
    for index in range(start_index, end_index + 1):
        row_base = base + index * row_size
        seg_start = imax(alloc.address, row_base)
        seg_stop = imin(alloc.end, row_base + row_size)
        seg_len = seg_stop - seg_start

        requested = imin(requested_remaining, seg_len)
        requested_remaining -= requested
        requested_pct = Fraction(requested * 100, seg_len) if seg_len else Fraction(0)

        sequence.row_at(row_base).allocs.append(
            RowAllocSegment(
                address=alloc.address,
                left_pct=Fraction((seg_start - row_base) * 100, row_size),
                width_pct=Fraction(seg_len * 100, row_size),
                requested_pct=requested_pct,
                size=alloc.size,
                actual_size=alloc.actual_size,
                type=alloc.type,
                group_id=alloc.group_id,
                color=alloc.color,
            )
        )


def _report_skip(
    layout: RowLayout,
    alloc: Allocation,
    row_span: int,
    limit: int,
    profiler: Optional["LayoutProfiler"],
) -> None:
    message = (
        f"Skipping allocation at {format_hex(alloc.address)}: actual size "
        f"{format_hex(alloc.actual_size)} spans {row_span} rows (limit {limit})"
    )
    logger.warning(message)
    diagnostic = LayoutDiagnostic(
        kind="anomalous_allocation",
        address=alloc.address,
        actual_size=alloc.actual_size,
        row_span=row_span,
        message=message,
    )
    layout.diagnostics.append(diagnostic)
    if profiler is not None:
        profiler.record_skip(diagnostic)


# -- Address window ---------------------------------------------------------------


def filter_window(
    allocations: Iterable[Allocation],
    base_address: Optional[int] = None,
    end_address: Optional[int] = None,
) -> List[Allocation]:
    """Keep allocations overlapping ``[base_address, end_address)``; either bound may be open."""
    kept: List[Allocation] = []
    for alloc in allocations:
        if base_address is not None and alloc.end <= base_address:
            continue
        if end_address is not None and alloc.address >= end_address:
            continue
        kept.append(alloc)
    return kept


def layout_from_settings(
    allocations: Sequence[Allocation],
    settings: LayoutSettings,
    *,
    profiler: Optional["LayoutProfiler"] = None,
) -> RowLayout:
    """
    Apply the configured address window and build the rows.

    The base falls back to the lowest visible allocation address when the
    settings leave it unset.
    """
    visible = filter_window(allocations, settings.base_address, settings.end_address)
    if settings.base_address is not None:
        base = settings.base_address
    elif visible:
        base = min(alloc.address for alloc in visible)
    else:
        base = 0
    logger.debug(
        "Laying out %d of %d allocations from base %#x with row size %r",
        len(visible),
        len(allocations),
        base,
        settings.row_size,
    )
    return build_layout(
        visible,
        settings.row_size,
        base,
        settings.collapse_config(),
        end_address=settings.end_address,
        max_rows_per_allocation=settings.max_rows_per_allocation,
        profiler=profiler,
    )

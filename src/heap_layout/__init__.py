"""
Address-space row layout for heap dump visualization.

Expose the engine, the row locator and the supporting types.
"""

from .allocation import Allocation, AllocationFormatError, load_allocations
from .collapse import CollapseConfig
from .config import LayoutSettings, load_settings
from .formatting import format_hex, parse_hex
from .instrumentation import LayoutProfiler
from .layout import (
    LayoutConfigError,
    LayoutDiagnostic,
    RowLayout,
    build_layout,
    build_rows,
    layout_from_settings,
)
from .locator import find_row_containing
from .rows import RowAllocSegment, RowEntry, RowGap

__all__ = [
    "Allocation",
    "AllocationFormatError",
    "CollapseConfig",
    "LayoutConfigError",
    "LayoutDiagnostic",
    "LayoutProfiler",
    "LayoutSettings",
    "RowAllocSegment",
    "RowEntry",
    "RowGap",
    "RowLayout",
    "build_layout",
    "build_rows",
    "find_row_containing",
    "format_hex",
    "layout_from_settings",
    "load_allocations",
    "load_settings",
    "parse_hex",
]

from __future__ import annotations

import argparse
import json
import logging
import sys
from pathlib import Path
from typing import List, Optional

from .allocation import Allocation, AllocationFormatError, first_in_group, group_ids, load_allocations
from .config import LayoutSettings
from .formatting import format_hex, parse_hex
from .instrumentation import LayoutProfiler
from .layout import LayoutConfigError, RowLayout, layout_from_settings
from .locator import find_allocation, find_row_containing
from .render import render_rows

logger = logging.getLogger(__name__)


def main(argv: Optional[List[str]] = None) -> int:
    parser = argparse.ArgumentParser(description="Lay out a heap dump as fixed-size address rows")
    subparsers = parser.add_subparsers(dest="command", required=True)

    rows_parser = subparsers.add_parser("rows", help="Print the row layout of an allocation list.")
    rows_parser.add_argument("allocations", type=Path, help="Path to a JSON array of normalized allocations")
    rows_parser.add_argument("--row-size", type=parse_hex, default=None, help="Row size in bytes (hex or decimal)")
    rows_parser.add_argument("--base", type=parse_hex, default=None, help="Base address, defaults to the lowest allocation")
    rows_parser.add_argument("--end", type=parse_hex, default=None, help="Exclusive end of the visible address window")
    rows_parser.add_argument("--no-collapse", action="store_true", help="Do not collapse runs of empty rows")
    rows_parser.add_argument("--threshold", type=int, default=None, help="Empty rows needed before collapsing")
    rows_parser.add_argument("--width", type=int, default=64, help="Characters per rendered row")
    rows_parser.add_argument("--goto", type=parse_hex, default=None, help="Report the row holding this address")
    rows_parser.add_argument("--group", type=int, default=None, help="Report the row holding the first allocation of a group")
    rows_parser.add_argument("--profile-dir", type=str, default=None, help="Write layout events as JSONL/CSV here")
    rows_parser.add_argument("-v", "--verbose", action="store_true", help="Enable debug logging")

    args = parser.parse_args(argv)
    logging.basicConfig(
        level=logging.DEBUG if args.verbose else logging.WARNING,
        format="%(levelname)s %(name)s: %(message)s",
    )

    if args.command == "rows":
        settings = LayoutSettings().with_overrides(
            row_size=args.row_size,
            base_address=args.base,
            end_address=args.end,
            collapse_threshold=args.threshold,
        )
        if args.no_collapse:
            settings = settings.with_overrides(collapse_empty_rows=False)
        return command_rows(args.allocations, settings, args.width, args.goto, args.group, args.profile_dir)

    parser.error(f"Unknown command {args.command}")
    return 1


def command_rows(
    path: Path,
    settings: LayoutSettings,
    width: int,
    goto: Optional[int],
    group: Optional[int],
    profile_dir: Optional[str],
) -> int:
    allocations = _load_allocations_or_exit(path)
    profiler = LayoutProfiler(run_id=path.stem, output_dir=profile_dir) if profile_dir else None
    try:
        layout = layout_from_settings(allocations, settings, profiler=profiler)
    except LayoutConfigError as exc:
        print(f"Invalid layout settings: {exc}", file=sys.stderr)
        return 2

    if not layout.rows:
        print("All allocations were filtered")
    else:
        print(render_rows(layout.rows, width=width, row_size=layout.row_size))
    for diagnostic in layout.diagnostics:
        print(f"warning: {diagnostic.message}", file=sys.stderr)

    if goto is not None:
        _report_location(layout, goto)
    if group is not None:
        member = first_in_group(allocations, group)
        if member is None:
            available = ", ".join(str(gid) for gid in group_ids(allocations))
            print(f"Group {group} not found (available: {available or 'none'})")
        else:
            _report_location(layout, member.address)

    if profiler is not None:
        profiler.flush()
    return 0


def _report_location(layout: RowLayout, address: int) -> None:
    row = find_row_containing(layout.rows, address)
    if row is None:
        print(f"{format_hex(address)}: not found")
        return
    seg = find_allocation(layout.rows, address)
    owner = f" in {seg.type} #{seg.group_id} @ {format_hex(seg.address)}" if seg else ""
    print(f"{format_hex(address)}: row {format_hex(row.base)}{owner}")


def _load_allocations_or_exit(path: Path) -> List[Allocation]:
    if not path.exists():
        print(f"Allocation file not found: {path}", file=sys.stderr)
        raise SystemExit(2)
    try:
        text = path.read_text(encoding="utf-8")
    except (OSError, UnicodeDecodeError) as exc:
        print(f"Cannot read allocation file {path}: {exc}", file=sys.stderr)
        raise SystemExit(2)
    try:
        allocations = load_allocations(json.loads(text))
    except (json.JSONDecodeError, AllocationFormatError) as exc:
        print(f"Cannot read allocations from {path}: {exc}", file=sys.stderr)
        raise SystemExit(2)
    logger.debug("Loaded %d allocations from %s", len(allocations), path)
    return allocations


if __name__ == "__main__":
    raise SystemExit(main())

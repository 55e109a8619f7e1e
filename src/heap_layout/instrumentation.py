from __future__ import annotations

import csv
import json
import time
from dataclasses import dataclass, field
from pathlib import Path
from typing import TYPE_CHECKING, Dict, List, Optional

from .formatting import format_hex

if TYPE_CHECKING:
    from .layout import LayoutDiagnostic, RowLayout


@dataclass
class LayoutProfiler:
    """
    Lightweight event recorder for layout passes.

    Each event is a flat dict tagged with the run id and a timestamp. Addresses
    are stored as hex strings so JSONL consumers with 53-bit numbers read them
    back exactly. Events can be flushed to disk as JSONL and CSV.
    """

    run_id: str
    output_dir: Optional[str] = None
    write_immediately: bool = False
    events: List[Dict[str, object]] = field(default_factory=list)

    def record_event(self, event_type: str, payload: Dict[str, object]) -> None:
        record: Dict[str, object] = {"timestamp": time.time(), "run_id": self.run_id, "event": event_type}
        record.update(payload)
        self.events.append(record)
        if self.write_immediately and self.output_dir:
            with self._path("jsonl").open("a", encoding="utf-8") as handle:
                handle.write(json.dumps(record) + "\n")

    def record_layout(self, layout: "RowLayout", *, allocation_count: int) -> None:
        collapsed = sum(1 for row in layout.rows if row.collapsed)
        occupied = sum(1 for row in layout.rows if row.allocs)
        self.record_event(
            "layout_built",
            {
                "allocations": allocation_count,
                "skipped": len(layout.diagnostics),
                "rows": len(layout.rows),
                "occupied_rows": occupied,
                "collapsed_rows": collapsed,
                "row_size": format_hex(layout.row_size),
                "base": format_hex(layout.base),
            },
        )

    def record_skip(self, diagnostic: "LayoutDiagnostic") -> None:
        self.record_event(
            "allocation_skipped",
            {
                "kind": diagnostic.kind,
                "address": format_hex(diagnostic.address),
                "actual_size": format_hex(diagnostic.actual_size),
                "row_span": diagnostic.row_span,
            },
        )

    def events_of(self, event_type: str) -> List[Dict[str, object]]:
        return [event for event in self.events if event["event"] == event_type]

    def flush(self) -> None:
        if not self.output_dir or not self.events:
            return
        with self._path("jsonl").open("w", encoding="utf-8") as handle:
            for record in self.events:
                handle.write(json.dumps(record) + "\n")
        # Skip and layout events carry different keys; the CSV takes the union.
        fieldnames = sorted({key for event in self.events for key in event})
        with self._path("csv").open("w", newline="", encoding="utf-8") as handle:
            writer = csv.DictWriter(handle, fieldnames=fieldnames)
            writer.writeheader()
            writer.writerows(self.events)

    def _path(self, suffix: str) -> Path:
        output_path = Path(self.output_dir)
        output_path.mkdir(parents=True, exist_ok=True)
        return output_path / f"{self.run_id}.{suffix}"

from __future__ import annotations

from dataclasses import dataclass
from typing import List, Tuple

# Hard ceiling on individually materialized empty rows in a single run,
# applied even when collapsing is switched off.
MAX_UNALLOCATED_ROWS = 20


@dataclass(frozen=True, slots=True)
class CollapseConfig:
    enabled: bool = True
    threshold: int = 4


def plan_empty_run(count: int, config: CollapseConfig) -> List[Tuple[int, bool]]:
    """
    Decide how ``count`` consecutive empty rows are materialized.

    Returns a list of ``(row_count, collapsed)`` spans in address order. A
    collapsed span stands for ``row_count`` rows; an uncollapsed span is always
    a single row.
    """
    if count <= 0:
        return []
    if config.enabled and count >= config.threshold:
        return [(count, True)]
    if count > MAX_UNALLOCATED_ROWS:
        half = MAX_UNALLOCATED_ROWS // 2
        plan: List[Tuple[int, bool]] = [(1, False)] * half
        plan.append((count - MAX_UNALLOCATED_ROWS, True))
        plan.extend([(1, False)] * (MAX_UNALLOCATED_ROWS - half))
        return plan
    return [(1, False)] * count

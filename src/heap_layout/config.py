"""Layout settings and their defaults."""
from __future__ import annotations

from dataclasses import dataclass, replace
from typing import Any, Mapping, Optional

from .collapse import CollapseConfig
from .formatting import parse_hex
from .int_math import is_exact_int

DEFAULT_ROW_SIZE = 0x1000
DEFAULT_COLLAPSE_THRESHOLD = 4
DEFAULT_MAX_ROWS_PER_ALLOCATION = 512


@dataclass(frozen=True)
class LayoutSettings:
    row_size: int = DEFAULT_ROW_SIZE
    base_address: Optional[int] = None
    end_address: Optional[int] = None
    collapse_empty_rows: bool = True
    collapse_threshold: int = DEFAULT_COLLAPSE_THRESHOLD
    max_rows_per_allocation: int = DEFAULT_MAX_ROWS_PER_ALLOCATION

    def collapse_config(self) -> CollapseConfig:
        return CollapseConfig(enabled=self.collapse_empty_rows, threshold=self.collapse_threshold)

    def with_overrides(self, **changes: Any) -> "LayoutSettings":
        """Copy with the given fields replaced; ``None`` values are ignored."""
        return replace(self, **{key: value for key, value in changes.items() if value is not None})


def _coerce_int(value: Any, name: str) -> int:
    if is_exact_int(value):
        return int(value)
    if isinstance(value, str):
        return parse_hex(value)
    raise ValueError(f"Setting '{name}' must be an integer or numeric string, got {value!r}")


def load_settings(raw: Optional[Mapping[str, Any]] = None) -> LayoutSettings:
    """
    Build settings from a plain mapping such as a parsed JSON object.

    Numeric values may be ints or hex/decimal strings; unknown keys are
    rejected so typos do not silently fall back to defaults.
    """
    if not raw:
        return LayoutSettings()
    known = set(LayoutSettings.__dataclass_fields__)
    unknown = set(raw) - known
    if unknown:
        raise ValueError(f"Unknown layout settings: {', '.join(sorted(unknown))}")
    values: dict = {}
    for key, value in raw.items():
        if key == "collapse_empty_rows":
            if not isinstance(value, bool):
                raise ValueError(f"Setting 'collapse_empty_rows' must be a boolean, got {value!r}")
            values[key] = value
        elif value is None:
            values[key] = None
        else:
            values[key] = _coerce_int(value, key)
    return LayoutSettings(**values)

from __future__ import annotations

from dataclasses import dataclass
from typing import Any, Callable, Dict, Hashable, Iterable, List, Mapping, Optional, Sequence, Tuple, TypeVar

from .formatting import parse_hex
from .int_math import is_exact_int

DEFAULT_COLOR = "#4db6ac"

K = TypeVar("K", bound=Hashable)


class AllocationFormatError(ValueError):
    """Raised when a normalized allocation record cannot be read."""


@dataclass(frozen=True, slots=True)
class Allocation:
    """
    One normalized heap allocation.

    ``size`` is the number of bytes the caller asked for while ``actual_size``
    is the real footprint including padding, alignment and allocator headers.
    The producer guarantees ``size > 0`` and ``actual_size >= size``; nothing
    here re-validates it.
    """

    address: int
    size: int
    actual_size: int
    type: str
    group_id: int
    color: str = DEFAULT_COLOR

    @property
    def end(self) -> int:
        return self.address + self.actual_size

    @classmethod
    def from_mapping(cls, record: Mapping[str, Any]) -> "Allocation":
        """
        Build an allocation from a record using either camelCase or snake_case
        keys. Numeric fields may be ints or hex/decimal strings.
        """
        if not isinstance(record, Mapping):
            raise AllocationFormatError(f"Entry is not an object: {record!r}")
        return cls(
            address=_read_int(record, "address"),
            size=_read_int(record, "size"),
            actual_size=_read_int(record, "actualSize", "actual_size"),
            type=str(_read_field(record, "type")),
            group_id=_read_int(record, "groupId", "group_id"),
            color=str(record.get("color") or DEFAULT_COLOR),
        )


def _read_field(record: Mapping[str, Any], *keys: str) -> Any:
    for key in keys:
        if key in record:
            return record[key]
    raise AllocationFormatError(f"Entry missing required field '{keys[0]}': {dict(record)!r}")


def _read_int(record: Mapping[str, Any], *keys: str) -> int:
    value = _read_field(record, *keys)
    if is_exact_int(value):
        return int(value)
    if isinstance(value, str):
        try:
            return parse_hex(value)
        except ValueError as exc:
            raise AllocationFormatError(f"Field '{keys[0]}': {exc}") from exc
    raise AllocationFormatError(f"Field '{keys[0]}' has unsupported type {type(value).__name__}")


def load_allocations(records: Iterable[Mapping[str, Any]]) -> List[Allocation]:
    """Convert a sequence of records, reporting the offending index on failure."""
    if isinstance(records, (str, bytes, Mapping)) or not isinstance(records, Iterable):
        raise AllocationFormatError("Allocation list must be an array of entries")
    allocations: List[Allocation] = []
    for idx, record in enumerate(records):
        try:
            allocations.append(Allocation.from_mapping(record))
        except AllocationFormatError as exc:
            raise AllocationFormatError(f"Entry {idx}: {exc}") from exc
    return allocations


def compute_address_bounds(allocations: Iterable[Allocation]) -> Tuple[int, int]:
    """Return (lowest address, highest end) or (0, 0) when there is nothing."""
    lowest: Optional[int] = None
    highest = 0
    for alloc in allocations:
        if lowest is None or alloc.address < lowest:
            lowest = alloc.address
        if alloc.end > highest:
            highest = alloc.end
    return (lowest if lowest is not None else 0), highest


def group_by(allocations: Iterable[Allocation], key: Callable[[Allocation], K]) -> Dict[K, List[Allocation]]:
    grouped: Dict[K, List[Allocation]] = {}
    for alloc in allocations:
        grouped.setdefault(key(alloc), []).append(alloc)
    return grouped


def group_ids(allocations: Iterable[Allocation]) -> List[int]:
    return sorted({alloc.group_id for alloc in allocations})


def first_in_group(allocations: Sequence[Allocation], group_id: int) -> Optional[Allocation]:
    """Lowest-address allocation of a group, used to jump to that group."""
    members = group_by(allocations, lambda alloc: alloc.group_id).get(group_id)
    if not members:
        return None
    return min(members, key=lambda alloc: alloc.address)

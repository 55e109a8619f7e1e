from __future__ import annotations

import re

_HEX_RE = re.compile(r"^0[xX][0-9a-fA-F]+$")
_DEC_RE = re.compile(r"^[0-9]+$")


def format_hex(value: int) -> str:
    """Render a non-negative integer as ``0x`` followed by uppercase hex digits."""
    if value < 0:
        raise ValueError(f"Cannot format negative value {value} as hex")
    return "0x" + format(value, "X")


def parse_hex(text: str) -> int:
    """
    Parse a ``0x``-prefixed hex string or a plain decimal string.

    This is the inverse of format_hex and is also used for user-supplied
    addresses and sizes, so surrounding whitespace is ignored.
    """
    trimmed = text.strip()
    if _HEX_RE.match(trimmed):
        return int(trimmed[2:], 16)
    if _DEC_RE.match(trimmed):
        return int(trimmed, 10)
    raise ValueError(f"Invalid numeric value: {text!r}")

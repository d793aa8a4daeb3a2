from __future__ import annotations

import random
from typing import Optional

from . import common


def rand_exp(rand: random.Random, limit: int = 32) -> int:
    """Return n with probability 1/2^(n+1), capped at limit - 1."""

    result = 0
    while result < limit - 1 and rand.getrandbits(1):
        result += 1
    return result


def choose_len(rand: random.Random, n: int) -> int:
    """
    Choose a length in 1..n, preferring short lengths.

    Lengths up to 8 are chosen in 90% of cases, up to 32 in 9% and any
    length up to n in the remaining 1%.
    """
    if n < 1:
        raise common.OutOfBoundsError(f"Length must be positive ({n=})")
    r = rand.randrange(100)
    if r < 90:
        return rand.randrange(min(8, n)) + 1
    if r < 99:
        return rand.randrange(min(32, n)) + 1
    return rand.randrange(n) + 1


def _check_span(name: str, key: str, start: int, length: int, size: int) -> None:
    if start >= size:
        raise common.OutOfBoundsError(f"{name} out of range ({key}={start}, length={size})")
    if start + length > size:
        raise common.OutOfBoundsError(
            f"{name} end out of range (end={start + length - 1}, length={size})",
        )


def copy(data: bytearray, source: int, dest: int, length: Optional[int] = None) -> None:
    """
    Overwrite part of data with another part of itself.

    Without length, everything from source to the end of data is copied. Both spans must lie
    within data, which never changes its size.
    """
    if length is None:
        length = len(data) - source
    _check_span("Source", "source", source, length, len(data))
    _check_span("Destination", "dest", dest, length, len(data))
    data[dest : dest + length] = data[source : source + length]


def remove(data: bytearray, start: int, length: int) -> None:
    """Cut length bytes out of data, beginning at start."""
    if start >= len(data):
        raise common.OutOfBoundsError(f"Start out of range ({start=}, length={len(data)})")
    if start + length > len(data):
        raise common.OutOfBoundsError(
            f"End out of range (end={start + length - 1}, length={len(data)})",
        )
    del data[start : start + length]


def insert(data: bytearray, start: int, data_to_insert: bytes) -> None:
    """Splice data_to_insert into data before offset start (len(data) appends)."""
    if start > len(data):
        raise common.OutOfBoundsError(f"Start out of range ({start=}, length={len(data)})")
    data[start:start] = data_to_insert


_PRINTABLE = bytes(b if 32 <= b < 127 else ord(".") for b in range(256))


def hexdump(title: str, data: bytes, width: int = 16) -> str:
    lines = [title]
    for offset in range(0, len(data), width):
        row = data[offset : offset + width]
        text = row.translate(_PRINTABLE).decode("ascii")
        lines.append(f"{offset:08x}: {row.hex(' '):<{3 * width}} {text}")
    return "\n".join(lines)

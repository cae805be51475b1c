"""Four-axis positions: bytes, chars, graphemes and lines."""

from __future__ import annotations

from dataclasses import dataclass
from enum import IntEnum

from utf8lex.errors import ErrorKind, Utf8LexError


class Unit(IntEnum):
    BYTE = 0
    CHAR = 1
    GRAPHEME = 2
    LINE = 3


UNITS = tuple(Unit)

# Sentinel for Location.after: continue from start + length.
NO_RESET = -1

HASH_MASK = (1 << 64) - 1

_UNIT_LABELS = ("bytes", "chars", "graphemes", "lines")


@dataclass(slots=True)
class Location:
    """Span along one unit: absolute start, length, reset target and hash."""

    start: int = 0
    length: int = 0
    after: int = NO_RESET
    hash: int = 0

    def copy(self) -> Location:
        return Location(self.start, self.length, self.after, self.hash)

    def check(self) -> None:
        """Raise if any field is out of range."""
        if self.start < 0:
            raise Utf8LexError(ErrorKind.BAD_START, f"negative start {self.start}")
        if self.length < 0:
            raise Utf8LexError(ErrorKind.BAD_LENGTH, f"negative length {self.length}")
        if self.after < NO_RESET:
            raise Utf8LexError(ErrorKind.BAD_AFTER, f"bad after {self.after}")
        if self.hash < 0:
            raise Utf8LexError(ErrorKind.BAD_HASH, f"negative hash {self.hash}")


@dataclass(frozen=True, slots=True)
class Position:
    """Absolute position snapshot; line and char are 0-based."""

    byte: int
    char: int
    grapheme: int
    line: int


def new_locations(start: int = 0) -> list[Location]:
    """Return one fresh Location per unit."""
    return [Location(start=start) for _ in UNITS]


def copy_locations(locs: list[Location]) -> list[Location]:
    return [loc.copy() for loc in locs]


def position_of(locs: list[Location]) -> Position:
    return Position(
        byte=locs[Unit.BYTE].start,
        char=locs[Unit.CHAR].start,
        grapheme=locs[Unit.GRAPHEME].start,
        line=locs[Unit.LINE].start,
    )


def extend_locations(acc: list[Location], piece: list[Location]) -> None:
    """Append *piece* to the span accumulated in *acc*.

    Lengths add up.  A reset inside *piece* replaces the accumulated
    ``after``; otherwise an existing ``after`` moves forward by the
    piece's length, so it keeps pointing just past the span.  Hashes
    keep rolling one byte (8 bits) at a time.
    """
    nbytes = piece[Unit.BYTE].length
    for unit in UNITS:
        a = acc[unit]
        p = piece[unit]
        a.length += p.length
        if p.after != NO_RESET:
            a.after = p.after
        elif a.after != NO_RESET:
            a.after += p.length
        if unit != Unit.LINE:
            a.hash = ((a.hash << (8 * nbytes)) | p.hash) & HASH_MASK


def next_start(current: int, loc: Location) -> int:
    """Where the next step starts on one axis after consuming *loc*."""
    if loc.after == NO_RESET:
        return current + loc.length
    return loc.after


def advance_locations(positions: list[Location], loc: list[Location]) -> None:
    for unit in UNITS:
        positions[unit].start = next_start(positions[unit].start, loc[unit])
        positions[unit].length = 0
        positions[unit].after = NO_RESET


def format_locations(locs: list[Location]) -> str:
    """Render as ``(bytes@S[L], chars@S[L], graphemes@S[L], lines@S[L])``."""
    parts = [
        f"{label}@{locs[unit].start}[{locs[unit].length}]"
        for unit, label in zip(UNITS, _UNIT_LABELS)
    ]
    return "(" + ", ".join(parts) + ")"

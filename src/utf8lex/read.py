"""Grapheme reader: one extended grapheme cluster at a time, straight from bytes."""

from __future__ import annotations

import codecs
from dataclasses import dataclass
from typing import TYPE_CHECKING

import regex

from utf8lex.cat import EXT_SEP_LINE, SEP_LINE, SEP_PARAGRAPH, classify
from utf8lex.errors import ErrorKind, MoreNeeded, NoMatch, Utf8LexError
from utf8lex.location import HASH_MASK, NO_RESET, Location

if TYPE_CHECKING:
    from utf8lex.state import State

_CLUSTER = regex.compile(r"\X")

_LINE_SEPARATORS = SEP_LINE | SEP_PARAGRAPH | EXT_SEP_LINE

# Initial window; doubled while a cluster runs into the end of the window.
_WINDOW = 32


@dataclass(slots=True)
class Grapheme:
    """One cluster: bytes consumed, per-unit locations, first codepoint and its category."""

    size: int
    loc: list[Location]
    codepoint: int
    cat: int


def decode_prefix(data: bytes, final: bool) -> tuple[str, bool]:
    """Decode the longest valid UTF-8 prefix of *data*.

    An incomplete sequence at the very end is held back unless *final*.
    Returns the text and whether decoding stopped at an invalid byte.
    Raises BAD_UTF8 when *data* does not start with valid UTF-8.
    """
    decoder = codecs.getincrementaldecoder("utf-8")()
    try:
        return decoder.decode(data, final=final), False
    except UnicodeDecodeError as exc:
        if exc.start == 0:
            raise Utf8LexError(ErrorKind.BAD_UTF8, f"bad UTF-8 byte 0x{data[0]:02x}") from exc
        return data[: exc.start].decode("utf-8"), True


def read_grapheme_bytes(data: bytes, final: bool) -> Grapheme | None:
    """Read the cluster at the start of *data*.

    Returns None when the cluster might continue past the end of *data*
    (the caller decides whether to widen its window or ask for more
    bytes).  When *final* is true no more bytes exist after *data*.
    """
    if not data:
        if final:
            raise NoMatch("end of input")
        return None

    text, stopped = decode_prefix(data, final)
    if not text:
        if final:
            raise Utf8LexError(ErrorKind.BAD_UTF8, "truncated UTF-8 sequence")
        return None

    match = _CLUSTER.match(text)
    cluster = match.group()
    if match.end() == len(text) and not (final or stopped):
        # A following combining mark (or LF after CR) could still extend it.
        return None

    raw = cluster.encode("utf-8")
    h = 0
    for b in raw:
        h = ((h << 8) | b) & HASH_MASK

    lines = 0
    char_after = NO_RESET
    for ch in cluster:
        if classify(ord(ch)) & _LINE_SEPARATORS:
            lines = 1
            char_after = 0
        elif char_after != NO_RESET:
            char_after += 1

    loc = [
        Location(length=len(raw), hash=h),
        Location(length=len(cluster), after=char_after, hash=h),
        Location(length=1, after=0 if lines else NO_RESET, hash=h),
        Location(length=lines),
    ]
    codepoint = ord(cluster[0])
    return Grapheme(size=len(raw), loc=loc, codepoint=codepoint, cat=classify(codepoint))


def read_grapheme(state: State, offset: int) -> Grapheme:
    """Read the cluster *offset* bytes past the state's read position.

    Locations in the result carry lengths, ``after`` resets and hashes;
    their starts are left at zero.  Raises MoreNeeded when the cluster
    is (or may be) incomplete and the input is not at EOF, BAD_UTF8 when
    it is incomplete at EOF, and NoMatch at the end of the input.
    """
    window = _WINDOW
    while True:
        total = state.remaining_length(offset)
        data = state.peek(offset, min(window, total))
        truncated = len(data) < total
        final = not truncated and state.at_eof
        grapheme = read_grapheme_bytes(data, final)
        if grapheme is not None:
            return grapheme
        if not truncated:
            raise MoreNeeded()
        window *= 2


def read_all(data: bytes) -> list[Grapheme]:
    """Split complete *data* into clusters."""
    graphemes: list[Grapheme] = []
    pos = 0
    while pos < len(data):
        grapheme = read_grapheme_bytes(data[pos:], final=True)
        graphemes.append(grapheme)
        pos += grapheme.size
    return graphemes

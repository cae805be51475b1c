"""Error kinds, soft signals, and error types with formatted source context."""

from __future__ import annotations

from enum import IntEnum
from typing import TYPE_CHECKING

if TYPE_CHECKING:
    from utf8lex.location import Position


class ErrorKind(IntEnum):
    # Success and soft signals
    OK = 0
    EOF = 1  # lexing completed
    MORE = 2  # need more bytes from the source
    NO_MATCH = 3  # bytes did not match the definition(s)

    # Hard errors
    NULL_POINTER = 4
    FILE_OPEN = 5
    FILE_DESCRIPTOR = 6
    FILE_EMPTY = 7
    FILE_MMAP = 8
    FILE_READ = 9
    FILE_SIZE = 10
    FILE_WRITE = 11
    CHAIN_INSERT = 12  # buffers can only be appended to a chain
    CAT = 13  # invalid category mask or name
    DEFINITION_TYPE = 14
    EMPTY_DEFINITION = 15  # "" literal, or composite without references
    MAX_LENGTH = 16  # too many definitions, rules, bytes, ...
    NOT_A_RULE = 17
    NOT_FOUND = 18
    NOT_IMPLEMENTED = 19
    REGEX = 20
    UNIT = 21
    UNRESOLVED_DEFINITION = 22
    INFINITE_LOOP = 23
    BAD_LENGTH = 24
    BAD_OFFSET = 25
    BAD_START = 26
    BAD_AFTER = 27
    BAD_HASH = 28
    BAD_ID = 29
    BAD_MIN = 30
    BAD_MAX = 31
    BAD_MULTI_TYPE = 32
    BAD_REGEX = 33
    BAD_UTF8 = 34
    SUB_TOKENS_EXHAUSTED = 35
    TOKEN = 36  # unexpected token in the lexicon file
    STATE = 37


_SOFT = frozenset({ErrorKind.OK, ErrorKind.EOF, ErrorKind.MORE, ErrorKind.NO_MATCH})

_DESCRIPTIONS: dict[ErrorKind, str] = {
    ErrorKind.OK: "ok",
    ErrorKind.EOF: "end of input",
    ErrorKind.MORE: "more bytes needed",
    ErrorKind.NO_MATCH: "no match",
    ErrorKind.NULL_POINTER: "missing value",
    ErrorKind.FILE_OPEN: "cannot open file",
    ErrorKind.FILE_DESCRIPTOR: "invalid file descriptor",
    ErrorKind.FILE_EMPTY: "empty file",
    ErrorKind.FILE_MMAP: "cannot memory-map file",
    ErrorKind.FILE_READ: "cannot read file",
    ErrorKind.FILE_SIZE: "cannot determine file size",
    ErrorKind.FILE_WRITE: "cannot write file",
    ErrorKind.CHAIN_INSERT: "buffers can only be appended to the end of a chain",
    ErrorKind.CAT: "bad category",
    ErrorKind.DEFINITION_TYPE: "definition type mismatch",
    ErrorKind.EMPTY_DEFINITION: "empty definition",
    ErrorKind.MAX_LENGTH: "maximum length exceeded",
    ErrorKind.NOT_A_RULE: "not a rule",
    ErrorKind.NOT_FOUND: "not found",
    ErrorKind.NOT_IMPLEMENTED: "not implemented",
    ErrorKind.REGEX: "regular expression matching failed",
    ErrorKind.UNIT: "bad unit",
    ErrorKind.UNRESOLVED_DEFINITION: "unresolved definition",
    ErrorKind.INFINITE_LOOP: "possible infinite loop",
    ErrorKind.BAD_LENGTH: "bad length",
    ErrorKind.BAD_OFFSET: "bad offset",
    ErrorKind.BAD_START: "bad start",
    ErrorKind.BAD_AFTER: "bad after",
    ErrorKind.BAD_HASH: "bad hash",
    ErrorKind.BAD_ID: "bad id",
    ErrorKind.BAD_MIN: "min must be 0 or greater (1 or greater for categories)",
    ErrorKind.BAD_MAX: "max must be -1 (unbounded) or at least min",
    ErrorKind.BAD_MULTI_TYPE: "cannot mix sequence and alternation",
    ErrorKind.BAD_REGEX: "bad regular expression",
    ErrorKind.BAD_UTF8: "bad UTF-8",
    ErrorKind.SUB_TOKENS_EXHAUSTED: "sub-tokens exhausted",
    ErrorKind.TOKEN: "unexpected token",
    ErrorKind.STATE: "bad state",
}


def error_string(kind: ErrorKind) -> str:
    """Return the canonical constant name for *kind*, e.g. ``UTF8LEX_ERROR_BAD_UTF8``."""
    if kind in _SOFT:
        return f"UTF8LEX_{kind.name}"
    return f"UTF8LEX_ERROR_{kind.name}"


def describe(kind: ErrorKind) -> str:
    """Return a short human-readable description of *kind*."""
    return _DESCRIPTIONS[kind]


class Utf8LexError(Exception):
    """Base of every error and soft signal raised by utf8lex."""

    def __init__(
        self,
        kind: ErrorKind,
        message: str | None = None,
        position: Position | None = None,
        source: str | None = None,
    ) -> None:
        self.kind = kind
        self.message = message if message else _DESCRIPTIONS[kind]
        self.position = position
        self.source = source
        super().__init__(self.message)

    def __str__(self) -> str:
        return self.format()

    def format(self, filename: str = "input.l") -> str:
        if self.position is None:
            return f"error: {self.message}"

        line_no = self.position.line + 1
        col = self.position.char + 1
        gutter_width = len(str(line_no)) + 1
        header = (
            f"error: {self.message}\n"
            f"{' ' * gutter_width}--> {filename}:{line_no}:{col}"
        )
        if self.source is None:
            return header

        lines = self.source.splitlines()
        line_idx = self.position.line
        if 0 <= line_idx < len(lines):
            source_line = lines[line_idx]
        else:
            source_line = ""

        pad = " " * (col - 1)
        blank_gutter = " " * gutter_width + "|"
        line_gutter = f"{line_no:>{gutter_width - 1}} |"

        return (
            f"{header}\n"
            f"{blank_gutter}\n"
            f"{line_gutter} {source_line}\n"
            f"{blank_gutter} {pad}^"
        )


class MoreNeeded(Utf8LexError):
    """The caller must append more bytes (or flag EOF) and try again."""

    def __init__(self, message: str | None = None, position: Position | None = None) -> None:
        super().__init__(ErrorKind.MORE, message, position)


class NoMatch(Utf8LexError):
    """The bytes at the current position do not match."""

    def __init__(self, message: str | None = None, position: Position | None = None) -> None:
        super().__init__(ErrorKind.NO_MATCH, message, position)


class EndOfInput(Utf8LexError):
    """Every byte of the input has been lexed."""

    def __init__(self, message: str | None = None, position: Position | None = None) -> None:
        super().__init__(ErrorKind.EOF, message, position)

"""Tokens, sub-token trees, and the user-facing location struct."""

from __future__ import annotations

from collections.abc import Iterator
from dataclasses import dataclass, field
from typing import TYPE_CHECKING

from utf8lex.errors import ErrorKind, Utf8LexError
from utf8lex.location import NO_RESET, UNITS, Location, Position, Unit, position_of

if TYPE_CHECKING:
    from utf8lex.buffer import Buffer
    from utf8lex.definitions import Definition
    from utf8lex.rules import Rule
    from utf8lex.state import State


@dataclass(eq=False, slots=True)
class Token:
    """A matched span of input."""

    rule: Rule | None
    definition: Definition
    buffer: Buffer
    start: int  # byte offset into buffer
    raw: bytes
    loc: list[Location]
    sub_tokens: list[SubToken] = field(default_factory=list)
    parent: Token | None = None

    @property
    def length(self) -> int:
        return self.loc[Unit.BYTE].length

    @property
    def text(self) -> str:
        return self.raw.decode("utf-8")

    @property
    def position(self) -> Position:
        return position_of(self.loc)

    def walk(self) -> Iterator[SubToken]:
        """Yield every sub-token, depth first."""
        for sub_token in self.sub_tokens:
            yield sub_token
            yield from sub_token.walk()

    def find(self, name: str) -> SubToken:
        for sub_token in self.walk():
            if sub_token.name == name:
                return sub_token
        raise Utf8LexError(ErrorKind.NOT_FOUND, f"no sub-token named {name!r}")


@dataclass(eq=False, slots=True)
class SubToken:
    """One reference's contribution to a composite match."""

    id: int
    name: str
    token: Token
    parent: SubToken | None = None
    children: list[SubToken] = field(default_factory=list)

    @property
    def text(self) -> str:
        return self.token.text

    @property
    def loc(self) -> list[Location]:
        return self.token.loc

    def walk(self) -> Iterator[SubToken]:
        for child in self.children:
            yield child
            yield from child.walk()


def make_token(
    rule: Rule | None,
    definition: Definition,
    loc: list[Location],
    state: State,
) -> Token:
    """Build a token for a span of *loc* lengths at the state's current position.

    Starts are filled in from the state.  The span must be non-empty
    and must lie within the bytes written so far.
    """
    for unit in UNITS:
        if loc[unit].start != state.loc[unit].start:
            raise Utf8LexError(
                ErrorKind.BAD_START,
                f"token starts at {loc[unit].start}, state is at {state.loc[unit].start}",
            )
        loc[unit].check()
    length = loc[Unit.BYTE].length
    if length <= 0:
        raise Utf8LexError(ErrorKind.BAD_LENGTH, "empty token")
    if length > state.remaining_length():
        raise Utf8LexError(
            ErrorKind.BAD_LENGTH,
            f"token of {length} bytes runs past the {state.remaining_length()} bytes written",
        )
    return Token(
        rule=rule,
        definition=definition,
        buffer=state.buffer,
        start=state.buffer.loc[Unit.BYTE].start,
        raw=state.peek(0, length),
        loc=loc,
    )


@dataclass(slots=True)
class TokenLocation:
    """Location of the last token, in the shape parsers expect (``yylloc``).

    Lines and columns are 0-based; columns count chars.
    """

    first_line: int = 0
    first_column: int = 0
    last_line: int = 0
    last_column: int = 0
    start_byte: int = 0
    length_bytes: int = 0
    start_char: int = 0
    length_chars: int = 0
    start_grapheme: int = 0
    length_graphemes: int = 0
    start_line: int = 0
    length_lines: int = 0

    def update(self, token: Token) -> None:
        byte, char, grapheme, line = (token.loc[unit] for unit in UNITS)
        self.first_line = line.start
        self.first_column = char.start
        self.last_line = line.start + line.length
        self.last_column = char.after if char.after != NO_RESET else char.start + char.length
        self.start_byte, self.length_bytes = byte.start, byte.length
        self.start_char, self.length_chars = char.start, char.length
        self.start_grapheme, self.length_graphemes = grapheme.start, grapheme.length
        self.start_line, self.length_lines = line.start, line.length

    @classmethod
    def from_token(cls, token: Token) -> TokenLocation:
        location = cls()
        location.update(token)
        return location

"""Settings and per-session lexing state."""

from __future__ import annotations

from dataclasses import dataclass
from pathlib import Path
from typing import TYPE_CHECKING

from utf8lex.buffer import Buffer
from utf8lex.errors import ErrorKind, Utf8LexError
from utf8lex.location import (
    UNITS,
    Location,
    Position,
    Unit,
    advance_locations,
    format_locations,
    new_locations,
    position_of,
)

if TYPE_CHECKING:
    from utf8lex.token import SubToken, Token

SUB_TOKENS_MAX = 256


@dataclass(frozen=True, slots=True)
class Settings:
    """Options passed through from the front end."""

    tracing: bool = False
    input_path: Path | None = None
    output_path: Path | None = None


class SubTokenArena:
    """Fixed pool of sub-token slots shared by a state and its nested states."""

    def __init__(self, capacity: int = SUB_TOKENS_MAX) -> None:
        self.capacity = capacity
        self._slots: list[SubToken | None] = [None] * capacity
        self.used = 0

    def allocate(self, name: str, token: Token) -> SubToken:
        from utf8lex.token import SubToken

        if self.used >= self.capacity:
            raise Utf8LexError(
                ErrorKind.SUB_TOKENS_EXHAUSTED,
                f"more than {self.capacity} sub-tokens in one token",
            )
        sub_token = SubToken(id=self.used, name=name, token=token)
        self._slots[self.used] = sub_token
        self.used += 1
        return sub_token

    def find(self, sub_token_id: int) -> SubToken:
        if not 0 <= sub_token_id < self.used:
            raise Utf8LexError(ErrorKind.BAD_ID, f"no sub-token #{sub_token_id}")
        sub_token = self._slots[sub_token_id]
        assert sub_token is not None
        return sub_token

    def release(self, mark: int) -> None:
        """Drop every sub-token allocated after *mark*."""
        for i in range(mark, self.used):
            self._slots[i] = None
        self.used = mark

    def reset(self) -> None:
        self.release(0)


class State:
    """Current buffer, absolute four-axis position, sub-token arena and settings.

    Nested states (see :meth:`nested`) read ahead from the same bytes
    without disturbing their parent, and allocate sub-tokens from the
    parent's arena.
    """

    def __init__(
        self,
        buffer: Buffer,
        settings: Settings | None = None,
        *,
        arena: SubTokenArena | None = None,
        depth: int = 0,
    ) -> None:
        self.buffer = buffer
        self.settings = settings if settings is not None else Settings()
        self.arena = arena if arena is not None else SubTokenArena()
        self.depth = depth
        self.loc: list[Location] = new_locations()

    def nested(self) -> State:
        child = State(
            self.buffer.snapshot(),
            self.settings,
            arena=self.arena,
            depth=self.depth + 1,
        )
        for unit in UNITS:
            child.loc[unit].start = self.loc[unit].start
        return child

    @property
    def is_nested(self) -> bool:
        return self.depth > 0

    @property
    def position(self) -> Position:
        return position_of(self.loc)

    # ------------------------------------------------------------------
    # Reading
    # ------------------------------------------------------------------

    @property
    def at_eof(self) -> bool:
        return self.buffer.at_eof

    def peek(self, offset: int, size: int) -> bytes:
        return self.buffer.peek(offset, size)

    def remaining_length(self, offset: int = 0) -> int:
        return self.buffer.remaining_length(offset)

    # ------------------------------------------------------------------
    # Moving
    # ------------------------------------------------------------------

    def reset(self) -> None:
        """Zero all four axes, in the state and in its buffer."""
        for unit in UNITS:
            self.loc[unit] = Location()
            self.buffer.loc[unit] = Location()

    def advance(self, loc: list[Location]) -> None:
        """Move past a matched span, honouring ``after`` resets."""
        advance_locations(self.loc, loc)
        advance_locations(self.buffer.loc, loc)
        # A span that straddled into the next buffer carries its overflow over.
        overflow = self.buffer.loc[Unit.BYTE].start - self.buffer.length
        while overflow > 0 and self.buffer.next is not None:
            self.step(overflow)
            overflow = self.buffer.loc[Unit.BYTE].start - self.buffer.length

    def step(self, offset: int = 0) -> None:
        """Move on to the next buffer in the chain, *offset* bytes in."""
        following = self.buffer.next
        if following is None:
            raise Utf8LexError(ErrorKind.STATE, "no next buffer")
        if self.is_nested:
            following = following.snapshot()
        following.loc = new_locations()
        following.loc[Unit.BYTE].start = offset
        self.buffer = following

    def __str__(self) -> str:
        return format_locations(self.loc)

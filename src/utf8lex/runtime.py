"""Runtime glue for generated lexers: one lexing session over one input."""

from __future__ import annotations

import sys
from collections.abc import Callable, Sequence
from typing import TextIO

from utf8lex.buffer import Buffer
from utf8lex.emit import printable
from utf8lex.errors import EndOfInput, Utf8LexError
from utf8lex.lex import lex_next
from utf8lex.rules import Rule
from utf8lex.state import Settings, State
from utf8lex.token import Token, TokenLocation

YYEOF = -1
YYERROR = -2

# Bytes of upcoming input quoted in error messages.
_CONTEXT_BYTES = 40


class Session:
    """Drives the rule chain over a buffer, handing each token to *callback*.

    ``callback(token)`` returns the token code: the rule id, whatever the
    rule's action returned, or a negative sentinel.
    """

    def __init__(
        self,
        rules: Sequence[Rule],
        callback: Callable[[Token], int],
        buffer: Buffer,
        settings: Settings | None = None,
        *,
        filename: str = "<input>",
        stderr: TextIO | None = None,
    ) -> None:
        self.rules = tuple(rules)
        self.callback = callback
        self.buffer = buffer
        self.state = State(buffer, settings)
        self.filename = filename
        self.stderr = stderr
        self.token: Token | None = None
        self.error: Utf8LexError | None = None

    def next(self, location: TokenLocation | None = None) -> int:
        """Lex one token and return its code, YYEOF at the end, or YYERROR."""
        try:
            token = lex_next(self.rules, self.state)
        except EndOfInput:
            self.token = None
            return YYEOF
        except Utf8LexError as exc:
            self.token = None
            self.error = exc
            self._print_error(exc)
            return YYERROR

        self.token = token
        if location is not None:
            location.update(token)
        return self.callback(token)

    def _print_error(self, exc: Utf8LexError) -> None:
        near = self.state.peek(0, _CONTEXT_BYTES).decode("utf-8", errors="replace")
        if self.state.remaining_length() > _CONTEXT_BYTES:
            near += "..."
        out = self.stderr if self.stderr is not None else sys.stderr
        out.write(f"{exc.format(self.filename)}\n")
        if near:
            out.write(f'  near "{printable(near)}"\n')

    def close(self) -> None:
        self.buffer.close()

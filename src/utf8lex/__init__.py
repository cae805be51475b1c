"""utf8lex: a lexical-analyzer generator for UTF-8 input."""

from __future__ import annotations

from typing import TYPE_CHECKING

if TYPE_CHECKING:
    from utf8lex.state import Settings

__version__ = "0.1.0"


def generate(source: str, settings: Settings | None = None) -> str:
    """Compile lexicon source into the source of a Python lexer module."""
    from utf8lex.emit import generate as _generate

    return _generate(source, settings=settings)

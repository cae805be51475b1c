"""--tracing dumps to stderr."""

from __future__ import annotations

import sys
from typing import TYPE_CHECKING, TextIO

from utf8lex.definitions import CompositeDefinition, format_definition
from utf8lex.location import format_locations

if TYPE_CHECKING:
    from utf8lex.database import Database
    from utf8lex.state import State
    from utf8lex.token import SubToken, Token


def dump_database(db: Database, *, file: TextIO = sys.stderr) -> None:
    """Print every definition and rule, in id order, to *file*."""
    file.write("Definitions\n")
    for definition in db.definitions:
        file.write(f"  #{definition.id} {format_definition(definition)}\n")
        if isinstance(definition, CompositeDefinition):
            for child in definition.children:
                file.write(f"    child {format_definition(child)}\n")
    file.write("Rules\n")
    for rule in db.rules:
        code = " ".join(rule.code.split())
        file.write(f"  #{rule.id} {rule.name} -> {rule.definition.name} {{ {code} }}\n")


def trace_token(token: Token, state: State, *, file: TextIO = sys.stderr) -> None:
    """Print one matched token, then its sub-token tree, to *file*."""
    name = token.rule.name if token.rule is not None else token.definition.name
    file.write(f"TRACE {name} {format_locations(token.loc)} at {state}: {token.text!r}\n")
    for sub_token in token.sub_tokens:
        _trace_sub_token(sub_token, 1, file)


def _trace_sub_token(sub_token: SubToken, depth: int, f: TextIO) -> None:
    f.write(f"{'  ' * depth}#{sub_token.id} {sub_token.name}: {sub_token.text!r}\n")
    for child in sub_token.children:
        _trace_sub_token(child, depth + 1, f)

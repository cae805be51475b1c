"""Shared test fixtures and helpers."""

from __future__ import annotations

import pytest

from utf8lex.buffer import Buffer
from utf8lex.database import Database
from utf8lex.definitions import CompositeDefinition, Definition, resolve
from utf8lex.emit import generate
from utf8lex.errors import EndOfInput, MoreNeeded
from utf8lex.grammar_parser import Lexicon, parse_lexicon
from utf8lex.lex import lex_next
from utf8lex.location import Unit
from utf8lex.rules import Rule
from utf8lex.state import State
from utf8lex.token import Token


@pytest.fixture
def make_rules():
    """Return a helper that registers definitions and makes rules out of them.

    Every definition goes into a database holding the predefined
    categories; composites are resolved.  Rules are made for the names
    in *only* (in that order), or for every definition.
    """

    def _make(*definitions: Definition, only: list[str] | None = None) -> list[Rule]:
        db = Database.with_categories()
        for definition in definitions:
            db.add_definition(definition)
        for definition in definitions:
            if isinstance(definition, CompositeDefinition):
                resolve(definition, db)
        names = only if only is not None else [d.name for d in definitions]
        return [db.add_rule(Rule(name, db.find(name))) for name in names]

    return _make


@pytest.fixture
def lex_all():
    """Return a helper that lexes complete input and returns every token."""

    def _lex(rules: list[Rule], data: bytes) -> list[Token]:
        state = State(Buffer(data, eof=True))
        tokens: list[Token] = []
        while True:
            try:
                tokens.append(lex_next(rules, state))
            except EndOfInput:
                return tokens

    return _lex


@pytest.fixture
def feed_bytes():
    """Return a helper that lexes input handed over one byte at a time."""

    def _feed(rules: list[Rule], data: bytes) -> list[Token]:
        buffer = Buffer()
        state = State(buffer)
        tokens: list[Token] = []
        fed = 0
        while True:
            try:
                tokens.append(lex_next(rules, state))
            except MoreNeeded:
                if fed < len(data):
                    buffer.append(data[fed : fed + 1])
                    fed += 1
                else:
                    buffer.set_eof()
            except EndOfInput:
                return tokens

    return _feed


@pytest.fixture
def parse_source():
    """Return a helper that compiles lexicon source."""

    def _parse(source: str) -> Lexicon:
        return parse_lexicon(source)

    return _parse


@pytest.fixture
def load_lexer():
    """Return a helper that generates a lexer module and executes it."""

    def _load(source: str) -> dict:
        code = generate(source)
        namespace: dict = {"__name__": "generated_lexer"}
        exec(compile(code, "<generated>", "exec"), namespace)
        return namespace

    return _load


def summarize(tokens: list[Token]) -> list[tuple[str, str]]:
    """(rule name, text) for each token."""
    return [(t.rule.name, t.text) for t in tokens]


def spans(token: Token) -> list[tuple[int, int]]:
    """(start, length) per unit: bytes, chars, graphemes, lines."""
    return [(token.loc[unit].start, token.loc[unit].length) for unit in Unit]


def assert_lengths(token: Token, expected: tuple[int, int, int, int]) -> None:
    """Assert the token's byte, char, grapheme and line lengths."""
    actual = tuple(token.loc[unit].length for unit in Unit)
    assert actual == expected, f"Expected lengths {expected}, got {actual}"

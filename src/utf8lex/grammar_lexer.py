"""Built-in rule chain that tokenizes lexicon files, run through the lexing core."""

from __future__ import annotations

from enum import Enum

from utf8lex.cat import EXT_SEP_LINE, SEP_LINE, SEP_PARAGRAPH
from utf8lex.database import Database
from utf8lex.definitions import UNBOUNDED, CategoryDefinition, LiteralDefinition, RegexDefinition
from utf8lex.rules import Rule
from utf8lex.token import Token


class Meta(Enum):
    """Meta-token kinds; each value is the name of the rule that produces it."""

    NEWLINE = "NEWLINE"
    SECTION_DIVIDER = "SECTION_DIVIDER"
    ENCLOSED_OPEN = "ENCLOSED_OPEN"
    ENCLOSED_CLOSE = "ENCLOSED_CLOSE"
    QUOTE = "QUOTE"
    OR = "OR"
    BRACE_OPEN = "BRACE_OPEN"
    BRACE_CLOSE = "BRACE_CLOSE"
    STAR = "STAR"
    PLUS = "PLUS"
    BACKSLASH = "BACKSLASH"
    ID = "ID"
    SPACE = "SPACE"
    NOT_BACKSLASH = "NOT_BACKSLASH"
    ANY = "ANY"
    TO_EOL = "TO_EOL"


def _build() -> tuple[tuple[Rule, ...], Rule, Rule]:
    db = Database()

    def rule(meta: Meta, definition) -> Rule:
        db.add_definition(definition)
        return db.add_rule(Rule(meta.value, definition))

    chain = (
        rule(
            Meta.NEWLINE,
            CategoryDefinition(
                "newline", SEP_LINE | SEP_PARAGRAPH | EXT_SEP_LINE, 1, UNBOUNDED
            ),
        ),
        rule(Meta.SECTION_DIVIDER, LiteralDefinition("section_divider", "%%")),
        rule(Meta.ENCLOSED_OPEN, LiteralDefinition("enclosed_open", "%{")),
        rule(Meta.ENCLOSED_CLOSE, LiteralDefinition("enclosed_close", "%}")),
        rule(Meta.QUOTE, LiteralDefinition("quote", '"')),
        rule(Meta.OR, LiteralDefinition("or", "|")),
        rule(Meta.BRACE_OPEN, LiteralDefinition("brace_open", "{")),
        rule(Meta.BRACE_CLOSE, LiteralDefinition("brace_close", "}")),
        rule(Meta.STAR, LiteralDefinition("star", "*")),
        rule(Meta.PLUS, LiteralDefinition("plus", "+")),
        rule(Meta.BACKSLASH, LiteralDefinition("backslash", "\\")),
        rule(Meta.ID, RegexDefinition("id", r"[_\p{L}][_\p{L}\p{N}]*")),
        rule(Meta.SPACE, RegexDefinition("space", r"[\h]+")),
        rule(Meta.NOT_BACKSLASH, RegexDefinition("not_backslash", r"[^\\]")),
        rule(Meta.ANY, RegexDefinition("any", r"\X")),
    )
    to_eol = rule(
        Meta.TO_EOL,
        RegexDefinition("to_eol", r"[^\n\x0b\x0c\r\x85\u2028\u2029]+"),
    )
    line_break = rule(
        Meta.NEWLINE,
        CategoryDefinition("line_break", SEP_LINE | SEP_PARAGRAPH | EXT_SEP_LINE, 1, 1),
    )
    return chain, to_eol, line_break


META_RULES, TO_EOL_RULE, LINE_BREAK_RULE = _build()


def meta_of(token: Token) -> Meta:
    assert token.rule is not None
    return Meta(token.rule.name)

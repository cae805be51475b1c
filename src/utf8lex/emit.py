"""Code emitter: turns a compiled lexicon into a Python lexer module."""

from __future__ import annotations

import io
import textwrap
from typing import TextIO

from utf8lex.cat import format_cat
from utf8lex.definitions import (
    CategoryDefinition,
    CompositeDefinition,
    Definition,
    LiteralDefinition,
    RegexDefinition,
)
from utf8lex.errors import ErrorKind, Utf8LexError
from utf8lex.grammar_parser import Lexicon, Passthrough, parse_lexicon
from utf8lex.state import Settings
from utf8lex.templates import DEFAULT_HEAD, DEFAULT_TAIL

_ESCAPES = {
    "\\": "\\\\",
    '"': '\\"',
    "\a": "\\a",
    "\b": "\\b",
    "\f": "\\f",
    "\n": "\\n",
    "\r": "\\r",
    "\t": "\\t",
    "\v": "\\v",
}

_STORAGE = (
    (CategoryDefinition, "YY_CATEGORY_DEFINITIONS"),
    (LiteralDefinition, "YY_LITERAL_DEFINITIONS"),
    (RegexDefinition, "YY_REGEX_DEFINITIONS"),
    (CompositeDefinition, "YY_COMPOSITE_DEFINITIONS"),
)

_ACTION_INDENT = " " * 8


def printable(text: str) -> str:
    """Escape *text* for the inside of a double-quoted string literal."""
    result: list[str] = []
    for ch in text:
        code = ord(ch)
        if ch in _ESCAPES:
            result.append(_ESCAPES[ch])
        elif code < 0x20 or 0x7F <= code <= 0x9F:
            result.append(f"\\x{code:02x}")
        elif code in (0x2028, 0x2029):
            result.append(f"\\u{code:04x}")
        else:
            result.append(ch)
    return "".join(result)


def _quoted(text: str) -> str:
    return f'"{printable(text)}"'


# ---------------------------------------------------------------------------
# Checked output
# ---------------------------------------------------------------------------


def _write(out: TextIO, text: str) -> None:
    try:
        written = out.write(text)
    except OSError as exc:
        raise Utf8LexError(ErrorKind.FILE_WRITE, f"cannot write output: {exc}") from exc
    if written is not None and written != len(text):
        raise Utf8LexError(
            ErrorKind.FILE_WRITE, f"short write: {written} of {len(text)} characters"
        )


def _passthrough(chunks: list[Passthrough]) -> str:
    parts: list[str] = []
    for chunk in chunks:
        text = textwrap.dedent(chunk.text) if chunk.indented else chunk.text
        if text and not text.endswith("\n"):
            text += "\n"
        parts.append(text)
    return "".join(parts)


# ---------------------------------------------------------------------------
# Storage and initialization
# ---------------------------------------------------------------------------


class _Slots:
    """Assigns each definition, reference and rule its storage list slot."""

    def __init__(self, lexicon: Lexicon) -> None:
        self.counts = {storage: 0 for _, storage in _STORAGE}
        self.references = 0
        self.rules = len(lexicon.rules)
        self._slots: dict[int, str] = {}
        for definition in lexicon.definitions:
            self._assign(definition)

    def _assign(self, definition: Definition) -> None:
        storage = _storage_of(definition)
        self._slots[id(definition)] = f"{storage}[{self.counts[storage]}]"
        self.counts[storage] += 1
        if isinstance(definition, CompositeDefinition):
            self.references += len(definition.references)
            for child in definition.children:
                self._assign(child)

    def __getitem__(self, definition: Definition) -> str:
        return self._slots[id(definition)]

    def expression(self, definition: Definition) -> str:
        """Storage slot of a lexicon definition, else a lookup of a predefined one."""
        slot = self._slots.get(id(definition))
        if slot is None:
            return f"YY_DATABASE.find({_quoted(definition.name)})"
        return slot


def _storage_of(definition: Definition) -> str:
    for kind, storage in _STORAGE:
        if isinstance(definition, kind):
            return storage
    raise Utf8LexError(
        ErrorKind.DEFINITION_TYPE, f"not a definition: {type(definition).__name__}"
    )


def _construct(definition: Definition) -> str:
    match definition:
        case CategoryDefinition(name=name, cat=cat, min=lo, max=hi):
            cat_names = _quoted(format_cat(cat))
            return f"CategoryDefinition({_quoted(name)}, parse_cat({cat_names}), {lo}, {hi})"
        case LiteralDefinition(name=name, text=text):
            return f"LiteralDefinition({_quoted(name)}, {_quoted(text)})"
        case RegexDefinition(name=name, pattern=pattern):
            return f"RegexDefinition({_quoted(name)}, {_quoted(pattern)})"
        case CompositeDefinition(name=name, combinator=combinator):
            return f"CompositeDefinition({_quoted(name)}, Combinator.{combinator.name})"
    raise Utf8LexError(
        ErrorKind.DEFINITION_TYPE, f"not a definition: {type(definition).__name__}"
    )


def _emit_storage(slots: _Slots) -> str:
    lines = [f"{storage} = [None] * {slots.counts[storage]}" for _, storage in _STORAGE]
    lines.append(f"YY_REFERENCES = [None] * {slots.references}")
    lines.append(f"YY_RULES = [None] * {slots.rules}")
    lines.append("YY_DATABASE = Database()")
    return "\n".join(lines) + "\n"


def _emit_references(
    definition: CompositeDefinition, slots: _Slots, lines: list[str], counter: list[int]
) -> None:
    for child in definition.children:
        lines.append(f"    {slots[child]} = {_construct(child)}")
        lines.append(f"    {slots[definition]}.add_child({slots[child]})")
    for reference in definition.references:
        lines.append(
            f"    YY_REFERENCES[{counter[0]}] = {slots[definition]}.add_reference("
            f"{_quoted(reference.name)}, {reference.min}, {reference.max})"
        )
        counter[0] += 1
    for child in definition.children:
        if isinstance(child, CompositeDefinition):
            _emit_references(child, slots, lines, counter)


def _emit_init(lexicon: Lexicon, slots: _Slots) -> str:
    lines = [
        "def yy_rules_init():",
        "    YY_DATABASE.clear()",
        "    YY_DATABASE.add_categories()",
    ]
    for definition in lexicon.definitions:
        lines.append(
            f"    {slots[definition]} = YY_DATABASE.add_definition({_construct(definition)})"
        )
    counter = [0]
    composites = [d for d in lexicon.definitions if isinstance(d, CompositeDefinition)]
    for composite in composites:
        _emit_references(composite, slots, lines, counter)
    for composite in composites:
        lines.append(f"    resolve({slots[composite]}, YY_DATABASE)")
    for index, rule in enumerate(lexicon.rules):
        target = slots.expression(rule.definition)
        lines.append(
            f"    YY_RULES[{index}] = YY_DATABASE.add_rule("
            f"Rule({_quoted(rule.name)}, {target}, {_quoted(rule.code)}))"
        )
    return "\n".join(lines) + "\n"


# ---------------------------------------------------------------------------
# Rule dispatch
# ---------------------------------------------------------------------------


def _action_body(code: str) -> list[str]:
    """Normalize an action block's indentation to the callback body's."""
    first, _, rest = code.partition("\n")
    lines = [first.strip()] if first.strip() else []
    if rest:
        lines.extend(textwrap.dedent(rest).rstrip().splitlines())
    return [_ACTION_INDENT + line if line.strip() else "" for line in lines]


def _emit_callback(lexicon: Lexicon) -> str:
    lines = [
        "def yy_rule_callback(token):",
        "    yytext = token.text",
        "    rule_id = token.rule.id",
    ]
    for rule in lexicon.rules:
        lines.append(f"    if rule_id == {rule.id}:  # {printable(rule.name)}")
        lines.extend(_action_body(rule.code))
        lines.append(f"{_ACTION_INDENT}return rule_id")
    lines.append("    return YYERROR")
    return "\n".join(lines) + "\n"


# ---------------------------------------------------------------------------
# Whole module
# ---------------------------------------------------------------------------


def emit(
    lexicon: Lexicon,
    out: TextIO,
    *,
    head: str = DEFAULT_HEAD,
    tail: str = DEFAULT_TAIL,
) -> None:
    """Write the lexer module for *lexicon* to *out*."""
    slots = _Slots(lexicon)
    for part in (
        head,
        _passthrough(lexicon.definitions_code),
        "\n",
        _emit_storage(slots),
        "\n\n",
        _emit_init(lexicon, slots),
        "\n\n",
        _emit_callback(lexicon),
        "\n",
        _passthrough(lexicon.rules_code),
        lexicon.user_code,
        tail,
    ):
        _write(out, part)


def generate(
    source: str,
    *,
    head: str = DEFAULT_HEAD,
    tail: str = DEFAULT_TAIL,
    settings: Settings | None = None,
) -> str:
    """Compile lexicon *source* and return the generated module's text."""
    out = io.StringIO()
    emit(parse_lexicon(source, settings), out, head=head, tail=tail)
    return out.getvalue()

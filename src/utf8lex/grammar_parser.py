"""Lexicon-file parser: sections, passthrough code, and the per-line declaration FSM.

A lexicon file has three sections separated by ``%%`` lines::

    NAME    body            definitions
    %%
    body    { action }      rules
    %%
    user code

Bodies are a quoted literal, one identifier (optionally quantified
with ``*`` or ``+``), identifiers in sequence, identifiers separated by
``|``, or failing all of those, a regular expression running to the end
of the line.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum, auto

from utf8lex.buffer import Buffer
from utf8lex.database import Database
from utf8lex.definitions import (
    UNBOUNDED,
    Combinator,
    CompositeDefinition,
    Definition,
    LiteralDefinition,
    RegexDefinition,
    resolve,
)
from utf8lex.errors import EndOfInput, ErrorKind, NoMatch, Utf8LexError
from utf8lex.grammar_lexer import LINE_BREAK_RULE, META_RULES, TO_EOL_RULE, Meta, meta_of
from utf8lex.lex import lex_next
from utf8lex.location import Position, Unit
from utf8lex.rules import Rule
from utf8lex.state import Settings, State
from utf8lex.token import Token

DEFINITIONS_MAX = 1024
RULES_MAX = 1024
LINES_MAX = 65536
ID_LENGTH_MAX = 64
ACTION_LENGTH_MAX = 1024
PATTERN_LENGTH_MAX = 256

_ESCAPES = {
    "\\": "\\",
    "a": "\a",
    "b": "\b",
    "f": "\f",
    "n": "\n",
    "r": "\r",
    "t": "\t",
    "v": "\v",
    '"': '"',
}


class Section(Enum):
    DEFINITIONS = auto()
    RULES = auto()
    USER_CODE = auto()


class LineState(Enum):
    DEFINITION = auto()  # expecting the definition's name
    DEFINITION_ID = auto()  # name read, expecting whitespace
    DEFINITION_BODY = auto()  # expecting the body
    MULTI_ID = auto()  # first identifier
    MULTI_ID_SPACE = auto()
    MULTI_SEQUENCE_ID = auto()  # later identifier in a sequence
    MULTI_SEQUENCE_ID_SPACE = auto()
    MULTI_SEQUENCE_ID_STAR = auto()
    MULTI_SEQUENCE_ID_PLUS = auto()
    MULTI_OR = auto()  # after |
    MULTI_OR_ID = auto()
    MULTI_OR_ID_STAR = auto()
    MULTI_OR_ID_PLUS = auto()
    LITERAL = auto()
    LITERAL_BACKSLASH = auto()
    LITERAL_COMPLETE = auto()
    REGEX = auto()
    REGEX_SPACE = auto()
    RULE = auto()  # inside the action's braces
    COMPLETE = auto()  # action closed, only whitespace may follow


@dataclass(frozen=True, slots=True)
class Passthrough:
    """Code copied from the lexicon into the output.

    ``indented`` blocks come from indented lines and are dedented on
    output; ``%{ ... %}`` blocks are copied exactly.
    """

    text: str
    indented: bool = False


@dataclass(slots=True)
class Lexicon:
    """Everything a lexicon file compiles to."""

    database: Database
    definitions: list[Definition] = field(default_factory=list)
    rules: list[Rule] = field(default_factory=list)
    definitions_code: list[Passthrough] = field(default_factory=list)
    rules_code: list[Passthrough] = field(default_factory=list)
    user_code: str = ""
    declarations: dict[int, Position] = field(default_factory=dict)

    def position_of(self, definition: Definition) -> Position | None:
        """Where *definition* was declared, if it came from the lexicon."""
        return self.declarations.get(id(definition))


@dataclass(slots=True)
class _Ref:
    """An identifier in a body, with its quantifier applied."""

    name: str
    min: int = 1
    max: int = 1


@dataclass(slots=True)
class _Body:
    """What the declaration FSM has collected so far on one line."""

    name: str | None = None
    text: str = ""
    pending_space: str = ""
    ids: list[_Ref] = field(default_factory=list)
    combinator: Combinator | None = None
    literal: str | None = None
    is_regex: bool = False
    code: str = ""
    depth: int = 0

    def add_text(self, text: str) -> None:
        self.text += self.pending_space + text
        self.pending_space = ""


class _Parser:
    def __init__(self, source: str, settings: Settings | None = None) -> None:
        self.source = source
        self.data = source.encode("utf-8")
        self.state = State(Buffer(self.data, eof=True), settings)
        self.lexicon = Lexicon(Database.with_categories())
        self.section = Section.DEFINITIONS

    # ------------------------------------------------------------------
    # Errors
    # ------------------------------------------------------------------

    def _error(
        self,
        message: str,
        position: Position | None,
        kind: ErrorKind = ErrorKind.TOKEN,
    ) -> Utf8LexError:
        return Utf8LexError(kind, message, position, self.source)

    def _located(self, exc: Utf8LexError, position: Position) -> Utf8LexError:
        if exc.position is None:
            exc.position = position
        exc.source = self.source
        return exc

    # ------------------------------------------------------------------
    # Meta-token stream
    # ------------------------------------------------------------------

    def _next(self) -> Token | None:
        """Next meta-token, or None at the end of the file."""
        try:
            token = lex_next(META_RULES, self.state)
        except EndOfInput:
            return None
        except Utf8LexError as exc:
            exc.source = self.source
            raise
        if token.loc[Unit.LINE].start >= LINES_MAX:
            raise self._error(
                f"more than {LINES_MAX} lines", token.position, ErrorKind.MAX_LENGTH
            )
        return token

    def _rest_of_line(self) -> str:
        try:
            return lex_next((TO_EOL_RULE,), self.state).text
        except (NoMatch, EndOfInput):
            return ""

    def _line_break(self) -> str | None:
        """Consume the newline(s) ending the current line; None at the end of the file."""
        token = self._next()
        if token is None:
            return None
        if meta_of(token) is not Meta.NEWLINE:
            raise self._error(f"expected end of line, found {token.text!r}", token.position)
        return token.text

    def _expect_end_of_line(self, after: Token) -> None:
        rest = self._rest_of_line()
        if rest.strip(" \t"):
            raise self._error(f"unexpected {rest.strip()!r} after {after.text!r}", after.position)
        # Exactly one separator: blank lines that follow belong to the passthrough.
        try:
            lex_next((LINE_BREAK_RULE,), self.state)
        except EndOfInput:
            pass

    # ------------------------------------------------------------------
    # Sections
    # ------------------------------------------------------------------

    def parse(self) -> Lexicon:
        while self.section is not Section.USER_CODE:
            token = self._next()
            if token is None:
                break
            match meta_of(token):
                case Meta.NEWLINE:
                    continue
                case Meta.SECTION_DIVIDER:
                    self._expect_end_of_line(token)
                    self._divide()
                case Meta.ENCLOSED_OPEN:
                    self._expect_end_of_line(token)
                    self._enclosed(token)
                case Meta.SPACE:
                    self._indented(token)
                case _:
                    self._declaration(token)

        if self.section is Section.DEFINITIONS:
            self._resolve_definitions()
        elif self.section is Section.USER_CODE:
            start = self.state.loc[Unit.BYTE].start
            self.lexicon.user_code = self.data[start:].decode("utf-8")
        return self.lexicon

    def _divide(self) -> None:
        if self.section is Section.DEFINITIONS:
            self._resolve_definitions()
            self.section = Section.RULES
        else:
            self.section = Section.USER_CODE

    def _passthrough(self) -> list[Passthrough]:
        if self.section is Section.DEFINITIONS:
            return self.lexicon.definitions_code
        return self.lexicon.rules_code

    def _enclosed(self, opener: Token) -> None:
        lines: list[str] = []
        while True:
            line = self._rest_of_line()
            newline = self._line_break()
            if line.strip(" \t") == "%}":
                break
            if newline is None:
                raise self._error("%{ without a closing %}", opener.position)
            lines.append(line + newline)
        self._passthrough().append(Passthrough("".join(lines)))

    def _indented(self, space: Token) -> None:
        line = space.text + self._rest_of_line()
        newline = self._line_break() or "\n"
        chunks = self._passthrough()
        if chunks and chunks[-1].indented:
            chunks[-1] = Passthrough(chunks[-1].text + line + newline, indented=True)
        elif line.strip():
            chunks.append(Passthrough(line + newline, indented=True))

    # ------------------------------------------------------------------
    # Declarations
    # ------------------------------------------------------------------

    def _declaration(self, first: Token) -> None:
        position = first.position
        body = _Body()
        line_state = (
            LineState.DEFINITION
            if self.section is Section.DEFINITIONS
            else LineState.DEFINITION_BODY
        )
        token: Token | None = first
        previous: Meta | None = None
        while True:
            if token is None or meta_of(token) is Meta.NEWLINE and line_state is not LineState.RULE:
                self._end_of_line(line_state, body, token, position)
                break
            meta = meta_of(token)
            handler = _HANDLERS[line_state]
            line_state = handler(self, body, token, meta, previous is Meta.SPACE)
            previous = meta
            token = self._next()
            if token is None and line_state is LineState.RULE:
                raise self._error("action without a closing }", position)

        try:
            if self.section is Section.DEFINITIONS:
                self._add_definition(body, position)
            else:
                self._add_rule(body, position)
        except Utf8LexError as exc:
            raise self._located(exc, position) from None

    def _end_of_line(
        self,
        line_state: LineState,
        body: _Body,
        token: Token | None,
        position: Position,
    ) -> None:
        where = token.position if token is not None else position
        match line_state:
            case LineState.DEFINITION | LineState.DEFINITION_ID | LineState.DEFINITION_BODY:
                raise self._error("definition without a body", where)
            case LineState.MULTI_OR:
                raise self._error("expected an identifier after |", where)
            case LineState.LITERAL | LineState.LITERAL_BACKSLASH:
                raise self._error("unterminated literal", where)
            case LineState.COMPLETE:
                pass
            case _ if self.section is Section.RULES:
                raise self._error("rule without an action", where)
        if body.literal is None and not body.is_regex and not body.ids:
            raise self._error("empty body", where)

    def _add_definition(self, body: _Body, position: Position) -> None:
        assert body.name is not None
        if len(self.lexicon.definitions) >= DEFINITIONS_MAX:
            raise self._error(
                f"more than {DEFINITIONS_MAX} definitions", position, ErrorKind.MAX_LENGTH
            )
        definition = self._build_definition(body.name, body)
        self.lexicon.database.add_definition(definition)
        self.lexicon.definitions.append(definition)
        self.lexicon.declarations[id(definition)] = position

    def _add_rule(self, body: _Body, position: Position) -> None:
        if len(self.lexicon.rules) >= RULES_MAX:
            raise self._error(f"more than {RULES_MAX} rules", position, ErrorKind.MAX_LENGTH)
        db = self.lexicon.database
        single = body.ids[0] if len(body.ids) == 1 else None
        if single is not None and (single.min, single.max) == (1, 1) and body.literal is None:
            try:
                definition = db.find(single.name)
            except Utf8LexError as exc:
                raise self._error(
                    f"unresolved definition {single.name!r}",
                    position,
                    ErrorKind.UNRESOLVED_DEFINITION,
                ) from exc
        else:
            if len(self.lexicon.definitions) >= DEFINITIONS_MAX:
                raise self._error(
                    f"more than {DEFINITIONS_MAX} definitions", position, ErrorKind.MAX_LENGTH
                )
            definition = self._build_definition(body.text, body)
            db.add_definition(definition)
            self.lexicon.definitions.append(definition)
            self.lexicon.declarations[id(definition)] = position
            if isinstance(definition, CompositeDefinition):
                resolve(definition, db)
        rule = db.add_rule(Rule(body.text, definition, body.code))
        self.lexicon.rules.append(rule)

    def _build_definition(self, name: str, body: _Body) -> Definition:
        if body.literal is not None:
            return LiteralDefinition(name, body.literal)
        if body.is_regex:
            return RegexDefinition(name, body.text)
        composite = CompositeDefinition(name, body.combinator or Combinator.SEQUENCE)
        for ref in body.ids:
            composite.add_reference(ref.name, ref.min, ref.max)
        return composite

    def _resolve_definitions(self) -> None:
        for definition in self.lexicon.definitions:
            if isinstance(definition, CompositeDefinition):
                try:
                    resolve(definition, self.lexicon.database)
                except Utf8LexError as exc:
                    position = self.lexicon.position_of(definition)
                    assert position is not None
                    raise self._located(exc, position) from None

    # ------------------------------------------------------------------
    # Line states
    # ------------------------------------------------------------------

    def _check_id(self, token: Token) -> str:
        if token.length > ID_LENGTH_MAX:
            raise self._error(
                f"identifier longer than {ID_LENGTH_MAX} bytes",
                token.position,
                ErrorKind.MAX_LENGTH,
            )
        return token.text

    def _check_pattern(self, body: _Body, token: Token) -> None:
        size = len((body.literal if body.literal is not None else body.text).encode("utf-8"))
        if size > PATTERN_LENGTH_MAX:
            raise self._error(
                f"literal or regex longer than {PATTERN_LENGTH_MAX} bytes",
                token.position,
                ErrorKind.MAX_LENGTH,
            )

    def _join(self, body: _Body, combinator: Combinator, token: Token) -> None:
        if body.combinator is not None and body.combinator is not combinator:
            raise self._error(
                "cannot mix | with a sequence", token.position, ErrorKind.BAD_MULTI_TYPE
            )
        body.combinator = combinator

    def _to_regex(self, body: _Body, token: Token) -> LineState:
        body.is_regex = True
        body.ids.clear()
        body.combinator = None
        body.add_text(token.text)
        self._check_pattern(body, token)
        return LineState.REGEX

    def _opens_action(self, meta: Meta, after_space: bool) -> bool:
        return self.section is Section.RULES and meta is Meta.BRACE_OPEN and after_space

    def _on_definition(self, body: _Body, token: Token, meta: Meta, after_space: bool) -> LineState:
        if meta is not Meta.ID:
            raise self._error(f"expected a definition name, found {token.text!r}", token.position)
        body.name = self._check_id(token)
        return LineState.DEFINITION_ID

    def _on_definition_id(
        self, body: _Body, token: Token, meta: Meta, after_space: bool
    ) -> LineState:
        if meta is not Meta.SPACE:
            raise self._error(f"expected whitespace after {body.name!r}", token.position)
        return LineState.DEFINITION_BODY

    def _on_definition_body(
        self, body: _Body, token: Token, meta: Meta, after_space: bool
    ) -> LineState:
        match meta:
            case Meta.SPACE:
                return LineState.DEFINITION_BODY
            case Meta.QUOTE:
                body.add_text(token.text)
                body.literal = ""
                return LineState.LITERAL
            case Meta.ID:
                body.add_text(token.text)
                body.ids.append(_Ref(self._check_id(token)))
                return LineState.MULTI_ID
        return self._to_regex(body, token)

    def _quantify(
        self, body: _Body, token: Token, meta: Meta, star: LineState, plus: LineState
    ) -> LineState:
        body.add_text(token.text)
        last = body.ids[-1]
        last.min, last.max = (0, UNBOUNDED) if meta is Meta.STAR else (1, UNBOUNDED)
        return star if meta is Meta.STAR else plus

    def _on_multi_id(self, body: _Body, token: Token, meta: Meta, after_space: bool) -> LineState:
        match meta:
            case Meta.SPACE:
                body.pending_space += token.text
                return LineState.MULTI_ID_SPACE
            case Meta.STAR | Meta.PLUS:
                return self._quantify(
                    body,
                    token,
                    meta,
                    LineState.MULTI_SEQUENCE_ID_STAR,
                    LineState.MULTI_SEQUENCE_ID_PLUS,
                )
            case Meta.OR:
                body.add_text(token.text)
                self._join(body, Combinator.ALTERNATION, token)
                return LineState.MULTI_OR
        return self._to_regex(body, token)

    def _on_multi_id_space(
        self, body: _Body, token: Token, meta: Meta, after_space: bool
    ) -> LineState:
        if self._opens_action(meta, after_space):
            return self._open_action(body)
        match meta:
            case Meta.SPACE:
                body.pending_space += token.text
                return LineState.MULTI_ID_SPACE
            case Meta.ID:
                self._join(body, Combinator.SEQUENCE, token)
                body.add_text(token.text)
                body.ids.append(_Ref(self._check_id(token)))
                return LineState.MULTI_SEQUENCE_ID
            case Meta.OR:
                self._join(body, Combinator.ALTERNATION, token)
                body.add_text(token.text)
                return LineState.MULTI_OR
        return self._to_regex(body, token)

    def _on_multi_sequence_id(
        self, body: _Body, token: Token, meta: Meta, after_space: bool
    ) -> LineState:
        match meta:
            case Meta.SPACE:
                body.pending_space += token.text
                return LineState.MULTI_SEQUENCE_ID_SPACE
            case Meta.STAR | Meta.PLUS:
                return self._quantify(
                    body,
                    token,
                    meta,
                    LineState.MULTI_SEQUENCE_ID_STAR,
                    LineState.MULTI_SEQUENCE_ID_PLUS,
                )
            case Meta.OR:
                self._join(body, Combinator.ALTERNATION, token)
                body.add_text(token.text)
                return LineState.MULTI_OR
        return self._to_regex(body, token)

    def _on_multi_sequence_id_space(
        self, body: _Body, token: Token, meta: Meta, after_space: bool
    ) -> LineState:
        if self._opens_action(meta, after_space):
            return self._open_action(body)
        match meta:
            case Meta.SPACE:
                body.pending_space += token.text
                return LineState.MULTI_SEQUENCE_ID_SPACE
            case Meta.ID:
                self._join(body, Combinator.SEQUENCE, token)
                body.add_text(token.text)
                body.ids.append(_Ref(self._check_id(token)))
                return LineState.MULTI_SEQUENCE_ID
            case Meta.OR:
                self._join(body, Combinator.ALTERNATION, token)
                body.add_text(token.text)
                return LineState.MULTI_OR
        return self._to_regex(body, token)

    def _on_multi_sequence_id_quantified(
        self, body: _Body, token: Token, meta: Meta, after_space: bool
    ) -> LineState:
        match meta:
            case Meta.SPACE:
                body.pending_space += token.text
                if body.combinator is Combinator.ALTERNATION:
                    return LineState.MULTI_OR_ID
                return LineState.MULTI_SEQUENCE_ID_SPACE
            case Meta.OR:
                self._join(body, Combinator.ALTERNATION, token)
                body.add_text(token.text)
                return LineState.MULTI_OR
        return self._to_regex(body, token)

    def _on_multi_or(self, body: _Body, token: Token, meta: Meta, after_space: bool) -> LineState:
        match meta:
            case Meta.SPACE:
                body.pending_space += token.text
                return LineState.MULTI_OR
            case Meta.ID:
                body.add_text(token.text)
                body.ids.append(_Ref(self._check_id(token)))
                return LineState.MULTI_OR_ID
        return self._to_regex(body, token)

    def _on_multi_or_id(
        self, body: _Body, token: Token, meta: Meta, after_space: bool
    ) -> LineState:
        if self._opens_action(meta, after_space):
            return self._open_action(body)
        match meta:
            case Meta.SPACE:
                body.pending_space += token.text
                return LineState.MULTI_OR_ID
            case Meta.OR:
                body.add_text(token.text)
                return LineState.MULTI_OR
            case Meta.STAR | Meta.PLUS if not after_space:
                return self._quantify(
                    body, token, meta, LineState.MULTI_OR_ID_STAR, LineState.MULTI_OR_ID_PLUS
                )
            case Meta.ID:
                self._join(body, Combinator.SEQUENCE, token)
        return self._to_regex(body, token)

    def _on_multi_or_id_quantified(
        self, body: _Body, token: Token, meta: Meta, after_space: bool
    ) -> LineState:
        match meta:
            case Meta.SPACE:
                body.pending_space += token.text
                return LineState.MULTI_OR_ID
            case Meta.OR:
                body.add_text(token.text)
                return LineState.MULTI_OR
        return self._to_regex(body, token)

    def _on_literal(self, body: _Body, token: Token, meta: Meta, after_space: bool) -> LineState:
        assert body.literal is not None
        body.add_text(token.text)
        match meta:
            case Meta.QUOTE:
                return LineState.LITERAL_COMPLETE
            case Meta.BACKSLASH:
                return LineState.LITERAL_BACKSLASH
        body.literal += token.text
        self._check_pattern(body, token)
        return LineState.LITERAL

    def _on_literal_backslash(
        self, body: _Body, token: Token, meta: Meta, after_space: bool
    ) -> LineState:
        assert body.literal is not None
        body.add_text(token.text)
        first, rest = token.text[0], token.text[1:]
        if first in _ESCAPES:
            body.literal += _ESCAPES[first] + rest
        else:
            body.literal += "\\" + token.text
        self._check_pattern(body, token)
        return LineState.LITERAL

    def _on_literal_complete(
        self, body: _Body, token: Token, meta: Meta, after_space: bool
    ) -> LineState:
        if self._opens_action(meta, after_space):
            return self._open_action(body)
        if meta is Meta.SPACE:
            return LineState.LITERAL_COMPLETE
        raise self._error(f"unexpected {token.text!r} after literal", token.position)

    def _on_regex(self, body: _Body, token: Token, meta: Meta, after_space: bool) -> LineState:
        if meta is Meta.SPACE:
            body.pending_space += token.text
            return LineState.REGEX_SPACE
        body.add_text(token.text)
        self._check_pattern(body, token)
        return LineState.REGEX

    def _on_regex_space(
        self, body: _Body, token: Token, meta: Meta, after_space: bool
    ) -> LineState:
        if self._opens_action(meta, after_space):
            return self._open_action(body)
        return self._on_regex(body, token, meta, after_space)

    def _open_action(self, body: _Body) -> LineState:
        body.pending_space = ""
        body.depth = 1
        return LineState.RULE

    def _on_rule(self, body: _Body, token: Token, meta: Meta, after_space: bool) -> LineState:
        if meta is Meta.BRACE_OPEN:
            body.depth += 1
        elif meta is Meta.BRACE_CLOSE:
            body.depth -= 1
            if body.depth == 0:
                return LineState.COMPLETE
        body.code += token.text
        if len(body.code.encode("utf-8")) > ACTION_LENGTH_MAX:
            raise self._error(
                f"action longer than {ACTION_LENGTH_MAX} bytes",
                token.position,
                ErrorKind.MAX_LENGTH,
            )
        return LineState.RULE

    def _on_complete(self, body: _Body, token: Token, meta: Meta, after_space: bool) -> LineState:
        if meta is not Meta.SPACE:
            raise self._error(f"unexpected {token.text!r} after action", token.position)
        return LineState.COMPLETE


_HANDLERS = {
    LineState.DEFINITION: _Parser._on_definition,
    LineState.DEFINITION_ID: _Parser._on_definition_id,
    LineState.DEFINITION_BODY: _Parser._on_definition_body,
    LineState.MULTI_ID: _Parser._on_multi_id,
    LineState.MULTI_ID_SPACE: _Parser._on_multi_id_space,
    LineState.MULTI_SEQUENCE_ID: _Parser._on_multi_sequence_id,
    LineState.MULTI_SEQUENCE_ID_SPACE: _Parser._on_multi_sequence_id_space,
    LineState.MULTI_SEQUENCE_ID_STAR: _Parser._on_multi_sequence_id_quantified,
    LineState.MULTI_SEQUENCE_ID_PLUS: _Parser._on_multi_sequence_id_quantified,
    LineState.MULTI_OR: _Parser._on_multi_or,
    LineState.MULTI_OR_ID: _Parser._on_multi_or_id,
    LineState.MULTI_OR_ID_STAR: _Parser._on_multi_or_id_quantified,
    LineState.MULTI_OR_ID_PLUS: _Parser._on_multi_or_id_quantified,
    LineState.LITERAL: _Parser._on_literal,
    LineState.LITERAL_BACKSLASH: _Parser._on_literal_backslash,
    LineState.LITERAL_COMPLETE: _Parser._on_literal_complete,
    LineState.REGEX: _Parser._on_regex,
    LineState.REGEX_SPACE: _Parser._on_regex_space,
    LineState.RULE: _Parser._on_rule,
    LineState.COMPLETE: _Parser._on_complete,
}


def parse_lexicon(source: str, settings: Settings | None = None) -> Lexicon:
    """Compile lexicon *source* into a resolved database plus passthrough code."""
    return _Parser(source, settings).parse()

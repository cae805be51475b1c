"""The lexing core: match one definition, or walk the rule chain for the next token."""

from __future__ import annotations

import sys
from collections.abc import Sequence

from utf8lex.debug import trace_token
from utf8lex.definitions import (
    UNBOUNDED,
    CategoryDefinition,
    Combinator,
    CompositeDefinition,
    Definition,
    LiteralDefinition,
    Reference,
    RegexDefinition,
    measure,
)
from utf8lex.errors import EndOfInput, ErrorKind, MoreNeeded, NoMatch, Utf8LexError
from utf8lex.location import UNITS, Location, Unit, copy_locations, extend_locations, new_locations
from utf8lex.read import decode_prefix, read_grapheme
from utf8lex.rules import Rule
from utf8lex.state import State
from utf8lex.token import Token, make_token

# Initial regex window in bytes; doubled while a match runs into its end.
_REGEX_WINDOW = 4096


def lex_definition(definition: Definition, rule: Rule | None, state: State) -> Token:
    """Match *definition* at the state's position without moving the state.

    Raises NoMatch, MoreNeeded, or a hard Utf8LexError.
    """
    match definition:
        case CategoryDefinition():
            return _lex_category(definition, rule, state)
        case LiteralDefinition():
            return _lex_literal(definition, rule, state)
        case RegexDefinition():
            return _lex_regex(definition, rule, state)
        case CompositeDefinition():
            return _lex_composite(definition, rule, state)
        case _:
            raise Utf8LexError(
                ErrorKind.DEFINITION_TYPE, f"not a definition: {type(definition).__name__}"
            )


def _starting_at(state: State, loc: list[Location] | None = None) -> list[Location]:
    loc = new_locations() if loc is None else loc
    for unit in UNITS:
        loc[unit].start = state.loc[unit].start
    return loc


# ---------------------------------------------------------------------------
# Category
# ---------------------------------------------------------------------------


def _lex_category(definition: CategoryDefinition, rule: Rule | None, state: State) -> Token:
    loc = _starting_at(state)
    offset = 0
    count = 0
    while definition.max == UNBOUNDED or count < definition.max:
        try:
            grapheme = read_grapheme(state, offset)
        except MoreNeeded:
            raise
        except Utf8LexError:
            if count >= definition.min:
                break
            raise
        if not grapheme.cat & definition.cat:
            break
        extend_locations(loc, grapheme.loc)
        offset += grapheme.size
        count += 1

    if count < definition.min:
        raise NoMatch(f"{definition.name}: {count} of at least {definition.min} graphemes")
    return make_token(rule, definition, loc, state)


# ---------------------------------------------------------------------------
# Literal
# ---------------------------------------------------------------------------


def _lex_literal(definition: LiteralDefinition, rule: Rule | None, state: State) -> Token:
    expected = definition.data
    actual = state.peek(0, len(expected))
    if actual != expected[: len(actual)]:
        raise NoMatch(f"{definition.name}: literal differs")
    if len(actual) < len(expected):
        if state.at_eof:
            raise NoMatch(f"{definition.name}: input ends inside literal")
        raise MoreNeeded()
    return make_token(rule, definition, _starting_at(state, copy_locations(definition.loc)), state)


# ---------------------------------------------------------------------------
# Regex
# ---------------------------------------------------------------------------


def _could_extend(definition: RegexDefinition, text: str) -> bool:
    """True when all of *text* is a prefix of some longer match.

    ``match(partial=True)`` prefers a shorter complete match ("12" for
    ``[0-9]+(\\.[0-9]+)?`` on "12."), so the whole text is checked too.
    """
    whole = definition.compiled.fullmatch(text, partial=True)
    return whole is not None and whole.partial


def _lex_regex(definition: RegexDefinition, rule: Rule | None, state: State) -> Token:
    window = _REGEX_WINDOW
    while True:
        total = state.remaining_length()
        data = state.peek(0, min(window, total))
        truncated = len(data) < total
        final = not truncated and state.at_eof
        if not data:
            if final:
                raise NoMatch(f"{definition.name}: end of input")
            raise MoreNeeded()

        text, stopped = decode_prefix(data, final)
        complete = final or stopped
        found = definition.compiled.match(text, partial=not complete)
        if found is None:
            raise NoMatch(f"{definition.name}: regex does not match")
        if not complete and (
            found.partial or found.end() == len(text) or _could_extend(definition, text)
        ):
            # More input could lengthen (or complete) the match.
            if truncated:
                window *= 2
                continue
            raise MoreNeeded()
        break

    if found.end() == 0:
        raise NoMatch(f"{definition.name}: empty regex match")
    loc = measure(text[: found.end()].encode("utf-8"))
    return make_token(rule, definition, _starting_at(state, loc), state)


# ---------------------------------------------------------------------------
# Composite
# ---------------------------------------------------------------------------


def _lex_reference(reference: Reference, state: State) -> list[Token]:
    """Match up to ``reference.max`` consecutive tokens, advancing *state* past them."""
    target = reference.definition
    if target is None:
        raise Utf8LexError(
            ErrorKind.UNRESOLVED_DEFINITION, f"unresolved reference {reference.name!r}"
        )
    limit = state.arena.capacity if reference.max == UNBOUNDED else reference.max
    tokens: list[Token] = []
    while len(tokens) < limit:
        try:
            token = lex_definition(target, None, state)
        except NoMatch:
            break
        state.advance(token.loc)
        tokens.append(token)
    return tokens


def _lex_composite(definition: CompositeDefinition, rule: Rule | None, state: State) -> Token:
    if not definition.references:
        raise Utf8LexError(
            ErrorKind.EMPTY_DEFINITION, f"{definition.name}: composite without references"
        )
    arena = state.arena
    mark = arena.used
    matched: list[tuple[Reference, list[Token]]] = []
    try:
        if definition.combinator is Combinator.SEQUENCE:
            nested = state.nested()
            for reference in definition.references:
                tokens = _lex_reference(reference, nested)
                if len(tokens) < reference.min:
                    raise NoMatch(
                        f"{definition.name}: {reference.name} matched {len(tokens)} "
                        f"of at least {reference.min}"
                    )
                matched.append((reference, tokens))
        else:
            for reference in definition.references:
                branch = arena.used
                tokens = _lex_reference(reference, state.nested())
                if len(tokens) >= reference.min:
                    matched.append((reference, tokens))
                    break
                arena.release(branch)
            else:
                raise NoMatch(f"{definition.name}: no alternative matches")

        loc = _starting_at(state)
        for _, tokens in matched:
            for child in tokens:
                extend_locations(loc, child.loc)
        if loc[Unit.BYTE].length == 0:
            raise NoMatch(f"{definition.name}: empty match")

        token = make_token(rule, definition, loc, state)
        _attach_sub_tokens(definition, token, matched, state)
    except Utf8LexError:
        arena.release(mark)
        raise
    return token


def _attach_sub_tokens(
    definition: CompositeDefinition,
    token: Token,
    matched: list[tuple[Reference, list[Token]]],
    state: State,
) -> None:
    (first, first_tokens), *_ = matched
    if (
        len(definition.references) == 1
        and first.min == first.max == 1
        and len(first_tokens) == 1
    ):
        # Plain alias: take over the child's sub-tokens rather than wrapping it.
        child = first_tokens[0]
        child.parent = token
        token.sub_tokens = child.sub_tokens
        return

    for reference, tokens in matched:
        for child in tokens:
            child.parent = token
            sub_token = state.arena.allocate(reference.name, child)
            sub_token.children = child.sub_tokens
            for grandchild in sub_token.children:
                grandchild.parent = sub_token
            token.sub_tokens.append(sub_token)


# ---------------------------------------------------------------------------
# Rule chain
# ---------------------------------------------------------------------------


def lex_next(rules: Sequence[Rule], state: State) -> Token:
    """Produce the next token from the first rule that matches, and move past it.

    Raises EndOfInput once every byte has been consumed and the input
    is flagged EOF, MoreNeeded when the caller must supply more bytes,
    and NoMatch when no rule matches at the current position.
    """
    if any(loc.start < 0 for loc in state.loc):
        state.reset()
    state.arena.reset()

    try:
        while state.buffer.is_exhausted:
            if state.buffer.next is None:
                if state.buffer.eof:
                    raise EndOfInput()
                raise MoreNeeded()
            state.step()

        for rule in rules:
            if not isinstance(rule, Rule):
                raise Utf8LexError(ErrorKind.NOT_A_RULE, f"not a rule: {rule!r}")
            try:
                token = lex_definition(rule.definition, rule, state)
            except NoMatch:
                continue
            if state.settings.tracing:
                trace_token(token, state, file=sys.stderr)
            state.advance(token.loc)
            return token
        raise NoMatch("no rule matches")
    except Utf8LexError as exc:
        if exc.position is None:
            exc.position = state.position
        raise

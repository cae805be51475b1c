"""Tests for the lexing core: leaf matching, the rule chain and streaming input."""

from __future__ import annotations

import io

import pytest

from utf8lex.buffer import Buffer
from utf8lex.cat import GROUP_LETTER, GROUP_VSPACE, NUM_DECIMAL, SEP_SPACE
from utf8lex.database import Database
from utf8lex.debug import dump_database, trace_token
from utf8lex.definitions import UNBOUNDED, CategoryDefinition, LiteralDefinition, RegexDefinition
from utf8lex.errors import EndOfInput, ErrorKind, MoreNeeded, NoMatch, Utf8LexError
from utf8lex.lex import lex_definition, lex_next
from utf8lex.location import Unit
from utf8lex.rules import Rule
from utf8lex.state import State
from utf8lex.token import TokenLocation

from tests.conftest import assert_lengths, spans, summarize


def letters() -> CategoryDefinition:
    return CategoryDefinition("LETTERS", GROUP_LETTER, 1, UNBOUNDED)


def newlines(max: int = UNBOUNDED) -> CategoryDefinition:
    return CategoryDefinition("NEWLINES", GROUP_VSPACE, 1, max)


# ---------------------------------------------------------------------------
# Category
# ---------------------------------------------------------------------------


class TestCategory:
    def test_bounded_repetition(self, make_rules, lex_all) -> None:
        rules = make_rules(CategoryDefinition("D", NUM_DECIMAL, 2, 3))
        assert [t.text for t in lex_all(rules, b"12345")] == ["123", "45"]

    def test_below_min(self, make_rules) -> None:
        rules = make_rules(CategoryDefinition("D", NUM_DECIMAL, 2, 3))
        state = State(Buffer(b"1x", eof=True))
        with pytest.raises(NoMatch):
            lex_next(rules, state)

    def test_grapheme_cluster_counts_once(self, make_rules, lex_all) -> None:
        rules = make_rules(CategoryDefinition("ONE", GROUP_LETTER, 1, 1))
        (token,) = lex_all(rules, "e\u0301".encode())
        assert_lengths(token, (3, 2, 1, 0))

    def test_crlf_is_one_line(self, make_rules, lex_all) -> None:
        rules = make_rules(newlines(max=1))
        (token,) = lex_all(rules, b"\r\n")
        assert_lengths(token, (2, 2, 1, 1))

    def test_lfcr_is_two_lines(self, make_rules, lex_all) -> None:
        rules = make_rules(newlines(max=1))
        tokens = lex_all(rules, b"\n\r")
        assert len(tokens) == 2
        assert [t.loc[Unit.LINE].start for t in tokens] == [0, 1]

    def test_bad_utf8_after_min_ends_the_token(self, make_rules) -> None:
        rules = make_rules(letters())
        state = State(Buffer(b"ab\xff", eof=True))
        assert lex_next(rules, state).text == "ab"
        with pytest.raises(Utf8LexError) as exc_info:
            lex_next(rules, state)
        assert exc_info.value.kind == ErrorKind.BAD_UTF8


# ---------------------------------------------------------------------------
# Literal and regex
# ---------------------------------------------------------------------------


class TestLiteral:
    def test_match(self, make_rules, lex_all) -> None:
        rules = make_rules(LiteralDefinition("ARROW", "->"))
        assert summarize(lex_all(rules, b"->->")) == [("ARROW", "->"), ("ARROW", "->")]

    def test_partial_needs_more(self, make_rules) -> None:
        rules = make_rules(LiteralDefinition("KW", "abc"))
        with pytest.raises(MoreNeeded):
            lex_next(rules, State(Buffer(b"ab")))

    def test_partial_at_eof_does_not_match(self, make_rules) -> None:
        rules = make_rules(LiteralDefinition("KW", "abc"))
        with pytest.raises(NoMatch):
            lex_next(rules, State(Buffer(b"ab", eof=True)))

    def test_mismatch_is_immediate(self, make_rules) -> None:
        rules = make_rules(LiteralDefinition("KW", "abc"))
        with pytest.raises(NoMatch):
            lex_next(rules, State(Buffer(b"x")))


class TestRegex:
    def test_lengths_across_lines(self, make_rules, lex_all) -> None:
        rules = make_rules(RegexDefinition("R", r"a\s+b"))
        (token,) = lex_all(rules, b"a\n\nb")
        assert_lengths(token, (4, 4, 4, 2))
        assert token.loc[Unit.CHAR].after == 1

    def test_match_reaching_buffer_end_needs_more(self, make_rules) -> None:
        rules = make_rules(RegexDefinition("ID", "[a-z]+"))
        with pytest.raises(MoreNeeded):
            lex_next(rules, State(Buffer(b"abc")))

    def test_match_complete_before_buffer_end(self, make_rules) -> None:
        rules = make_rules(RegexDefinition("ID", "[a-z]+"))
        assert lex_next(rules, State(Buffer(b"abc "))).text == "abc"

    def test_optional_tail_needs_more(self, make_rules) -> None:
        rules = make_rules(RegexDefinition("NUMBER", r"[0-9]+(\.[0-9]+)?"))
        with pytest.raises(MoreNeeded):
            lex_next(rules, State(Buffer(b"12.")))

    def test_optional_tail_absent_at_eof(self, make_rules, lex_all) -> None:
        rules = make_rules(
            RegexDefinition("NUMBER", r"[0-9]+(\.[0-9]+)?"), LiteralDefinition("DOT", ".")
        )
        assert summarize(lex_all(rules, b"12.")) == [("NUMBER", "12"), ("DOT", ".")]

    def test_optional_tail_ruled_out(self, make_rules) -> None:
        rules = make_rules(RegexDefinition("NUMBER", r"[0-9]+(\.[0-9]+)?"))
        assert lex_next(rules, State(Buffer(b"12.x"))).text == "12"

    def test_empty_match_is_no_match(self, make_rules) -> None:
        rules = make_rules(RegexDefinition("AS", "a*"))
        with pytest.raises(NoMatch):
            lex_next(rules, State(Buffer(b"b", eof=True)))

    def test_window_grows_for_long_matches(self, make_rules, lex_all) -> None:
        rules = make_rules(RegexDefinition("ID", "[a-z]+"))
        (token,) = lex_all(rules, b"a" * 5000)
        assert token.length == 5000

    def test_bad_utf8_ends_the_match(self, make_rules) -> None:
        rules = make_rules(RegexDefinition("ID", "[a-z]+"))
        state = State(Buffer(b"abc\xff", eof=True))
        assert lex_next(rules, state).text == "abc"


# ---------------------------------------------------------------------------
# Rule chain
# ---------------------------------------------------------------------------


class TestLexNext:
    def test_line_reset(self, make_rules, lex_all) -> None:
        rules = make_rules(letters(), newlines())
        a, newline, b = lex_all(rules, b"a\nb")
        assert spans(a) == [(0, 1), (0, 1), (0, 1), (0, 0)]
        assert spans(newline) == [(1, 1), (1, 1), (1, 1), (0, 1)]
        assert newline.loc[Unit.CHAR].after == 0
        assert spans(b) == [(2, 1), (0, 1), (0, 1), (1, 0)]

    def test_first_rule_wins(self, make_rules, lex_all) -> None:
        rules = make_rules(LiteralDefinition("IF", "if"), RegexDefinition("ID", "[a-z]+"))
        assert summarize(lex_all(rules, b"iffy")) == [("IF", "if"), ("ID", "fy")]

    def test_rule_order_matters(self, make_rules, lex_all) -> None:
        rules = make_rules(RegexDefinition("ID", "[a-z]+"), LiteralDefinition("IF", "if"))
        assert summarize(lex_all(rules, b"iffy")) == [("ID", "iffy")]

    def test_no_rule_matches(self, make_rules) -> None:
        rules = make_rules(letters())
        state = State(Buffer(b"a1", eof=True))
        lex_next(rules, state)
        with pytest.raises(NoMatch) as exc_info:
            lex_next(rules, state)
        assert exc_info.value.position.byte == 1

    def test_state_unchanged_after_no_match(self, make_rules) -> None:
        rules = make_rules(letters())
        state = State(Buffer(b"1", eof=True))
        with pytest.raises(NoMatch):
            lex_next(rules, state)
        assert state.loc[Unit.BYTE].start == 0

    def test_end_of_input(self, make_rules) -> None:
        rules = make_rules(letters())
        with pytest.raises(EndOfInput):
            lex_next(rules, State(Buffer(b"", eof=True)))

    def test_more_needed_when_empty(self, make_rules) -> None:
        rules = make_rules(letters())
        with pytest.raises(MoreNeeded):
            lex_next(rules, State(Buffer()))

    def test_not_a_rule(self) -> None:
        with pytest.raises(Utf8LexError) as exc_info:
            lex_next(["LETTER"], State(Buffer(b"a", eof=True)))
        assert exc_info.value.kind == ErrorKind.NOT_A_RULE

    def test_negative_start_resets(self, make_rules) -> None:
        rules = make_rules(letters())
        state = State(Buffer(b"ab", eof=True))
        state.loc[Unit.LINE].start = -1
        token = lex_next(rules, state)
        assert token.loc[Unit.LINE].start == 0

    def test_chained_buffers(self, make_rules) -> None:
        rules = make_rules(letters())
        first = Buffer(b"ab")
        first.chain(Buffer(b"cd", eof=True))
        state = State(first)
        assert lex_next(rules, state).text == "abcd"
        with pytest.raises(EndOfInput):
            lex_next(rules, state)

    def test_steps_to_next_buffer(self, make_rules) -> None:
        rules = make_rules(letters(), CategoryDefinition("SPACE", SEP_SPACE))
        first = Buffer(b"ab ")
        first.chain(Buffer(b"cd", eof=True))
        state = State(first)
        texts = [lex_next(rules, state).text for _ in range(3)]
        assert texts == ["ab", " ", "cd"]
        assert state.loc[Unit.BYTE].start == 5


class TestStreaming:
    def test_bytewise_matches_whole_input(self, make_rules, lex_all, feed_bytes) -> None:
        rules = make_rules(
            letters(),
            newlines(),
            RegexDefinition("NUMBER", r"[0-9]+(\.[0-9]+)?"),
            RegexDefinition("SPACE", r"[\h]+"),
            LiteralDefinition("ARROW", "->"),
        )
        data = "ab 12.5\r\ncaf\u00e9 -> xe\u0301\n7".encode()
        whole = [(t.rule.name, t.raw, spans(t)) for t in lex_all(rules, data)]
        fed = [(t.rule.name, t.raw, spans(t)) for t in feed_bytes(rules, data)]
        assert fed == whole
        assert [name for name, _, _ in whole] == [
            "LETTERS",
            "SPACE",
            "NUMBER",
            "NEWLINES",
            "LETTERS",
            "SPACE",
            "ARROW",
            "SPACE",
            "LETTERS",
            "NEWLINES",
            "NUMBER",
        ]

    def test_appending_resumes(self, make_rules) -> None:
        rules = make_rules(RegexDefinition("ID", "[a-z]+"))
        buffer = Buffer(b"ab")
        state = State(buffer)
        with pytest.raises(MoreNeeded):
            lex_next(rules, state)
        buffer.append(b"c")
        buffer.set_eof()
        assert lex_next(rules, state).text == "abc"


# ---------------------------------------------------------------------------
# Single definitions, token locations and tracing
# ---------------------------------------------------------------------------


class TestLexDefinition:
    def test_does_not_move_state(self) -> None:
        state = State(Buffer(b"abc", eof=True))
        token = lex_definition(letters(), None, state)
        assert token.text == "abc"
        assert token.rule is None
        assert state.loc[Unit.BYTE].start == 0

    def test_not_a_definition(self) -> None:
        with pytest.raises(Utf8LexError) as exc_info:
            lex_definition("LETTER", None, State(Buffer(b"a", eof=True)))
        assert exc_info.value.kind == ErrorKind.DEFINITION_TYPE


class TestTokenLocation:
    def test_update(self, make_rules, lex_all) -> None:
        rules = make_rules(letters(), newlines())
        tokens = lex_all(rules, b"ab\ncd")
        location = TokenLocation.from_token(tokens[2])
        assert (location.first_line, location.first_column) == (1, 0)
        assert (location.last_line, location.last_column) == (1, 2)
        assert (location.start_byte, location.length_bytes) == (3, 2)

    def test_newline_resets_last_column(self, make_rules, lex_all) -> None:
        rules = make_rules(letters(), newlines())
        tokens = lex_all(rules, b"ab\ncd")
        location = TokenLocation.from_token(tokens[1])
        assert (location.first_line, location.last_line) == (0, 1)
        assert location.last_column == 0


class TestDebug:
    def test_trace_token(self, make_rules) -> None:
        rules = make_rules(letters())
        state = State(Buffer(b"ab", eof=True))
        token = lex_next(rules, state)
        out = io.StringIO()
        trace_token(token, state, file=out)
        assert out.getvalue().startswith("TRACE LETTERS (bytes@0[2], chars@0[2]")
        assert out.getvalue().rstrip().endswith("'ab'")

    def test_dump_database(self) -> None:
        db = Database()
        definition = db.add_definition(LiteralDefinition("IF", "if"))
        db.add_rule(Rule("IF", definition, " return 1 "))
        out = io.StringIO()
        dump_database(db, file=out)
        assert out.getvalue() == (
            "Definitions\n"
            "  #1 IF [literal] 'if'\n"
            "Rules\n"
            "  #1 IF -> IF { return 1 }\n"
        )

"""Tests for buffers, chains and file/stream loading."""

from __future__ import annotations

import io
from pathlib import Path

import pytest

from utf8lex.buffer import Buffer
from utf8lex.errors import ErrorKind, Utf8LexError
from utf8lex.location import Unit


class TestAppend:
    def test_append_grows(self) -> None:
        buffer = Buffer(b"ab")
        buffer.append(b"cd")
        assert buffer.length == 4
        assert buffer.peek(0, 10) == b"abcd"

    def test_capacity(self) -> None:
        buffer = Buffer(b"ab", capacity=3)
        buffer.append(b"c")
        with pytest.raises(Utf8LexError) as exc_info:
            buffer.append(b"d")
        assert exc_info.value.kind == ErrorKind.BAD_LENGTH

    def test_initial_data_over_capacity(self) -> None:
        with pytest.raises(Utf8LexError) as exc_info:
            Buffer(b"abcd", capacity=2)
        assert exc_info.value.kind == ErrorKind.BAD_LENGTH

    def test_append_after_eof(self) -> None:
        buffer = Buffer(b"ab", eof=True)
        with pytest.raises(Utf8LexError) as exc_info:
            buffer.append(b"c")
        assert exc_info.value.kind == ErrorKind.STATE

    def test_set_eof(self) -> None:
        buffer = Buffer(b"ab")
        assert not buffer.at_eof
        buffer.set_eof()
        assert buffer.at_eof


class TestChain:
    def test_chain_links_both_ways(self) -> None:
        first = Buffer(b"ab")
        second = first.chain(Buffer(b"cd", eof=True))
        assert first.next is second
        assert second.prev is first

    def test_eof_is_the_tail_flag(self) -> None:
        first = Buffer(b"ab")
        first.chain(Buffer(b"cd", eof=True))
        assert first.at_eof

    def test_insert_in_the_middle_rejected(self) -> None:
        first = Buffer(b"ab")
        first.chain(Buffer(b"cd"))
        with pytest.raises(Utf8LexError) as exc_info:
            first.chain(Buffer(b"ef"))
        assert exc_info.value.kind == ErrorKind.CHAIN_INSERT

    def test_peek_across_buffers(self) -> None:
        first = Buffer(b"ab")
        first.chain(Buffer(b"cd")).chain(Buffer(b"ef"))
        first.loc[Unit.BYTE].start = 1
        assert first.peek(0, 4) == b"bcde"
        assert first.peek(2, 10) == b"def"
        assert first.remaining_length() == 5
        assert first.remaining_length(2) == 3

    def test_negative_offset(self) -> None:
        with pytest.raises(Utf8LexError) as exc_info:
            Buffer(b"ab").peek(-1, 1)
        assert exc_info.value.kind == ErrorKind.BAD_OFFSET


class TestSnapshot:
    def test_snapshot_has_private_position(self) -> None:
        buffer = Buffer(b"abc")
        copy = buffer.snapshot()
        copy.loc[Unit.BYTE].start = 2
        assert buffer.loc[Unit.BYTE].start == 0
        assert copy.peek(0, 1) == b"c"

    def test_snapshot_sees_appended_bytes(self) -> None:
        buffer = Buffer(b"ab")
        copy = buffer.snapshot()
        buffer.append(b"c")
        assert copy.peek(0, 3) == b"abc"


class TestLoading:
    def test_from_path(self, tmp_path: Path) -> None:
        path = tmp_path / "input.txt"
        path.write_bytes(b"hello\n")
        buffer = Buffer.from_path(path)
        try:
            assert buffer.eof
            assert buffer.length == 6
            assert buffer.peek(0, 5) == b"hello"
        finally:
            buffer.close()

    def test_from_path_missing(self, tmp_path: Path) -> None:
        with pytest.raises(Utf8LexError) as exc_info:
            Buffer.from_path(tmp_path / "nope.txt")
        assert exc_info.value.kind == ErrorKind.FILE_OPEN

    def test_from_path_empty(self, tmp_path: Path) -> None:
        path = tmp_path / "empty.txt"
        path.write_bytes(b"")
        with pytest.raises(Utf8LexError) as exc_info:
            Buffer.from_path(path)
        assert exc_info.value.kind == ErrorKind.FILE_EMPTY

    def test_from_stream(self) -> None:
        buffer = Buffer.from_stream(io.BytesIO(b"abc"))
        assert buffer.eof
        assert buffer.peek(0, 3) == b"abc"

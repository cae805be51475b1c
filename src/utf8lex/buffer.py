"""Byte buffers with written-vs-capacity accounting, chained for streaming."""

from __future__ import annotations

import mmap
from pathlib import Path
from typing import BinaryIO

from utf8lex.errors import ErrorKind, Utf8LexError
from utf8lex.location import Location, Unit, new_locations

_STREAM_CHUNK = 65536


class Buffer:
    """A run of input bytes.

    ``loc`` holds the buffer-relative position where the next read
    happens (``loc[Unit.BYTE].start`` is a byte offset into this
    buffer).  Buffers link through ``next``/``prev``; the chain as a
    whole is at EOF once its last buffer is flagged ``eof``.
    """

    __slots__ = ("_data", "capacity", "eof", "next", "prev", "loc", "_mapped")

    def __init__(
        self,
        data: bytes | bytearray = b"",
        *,
        capacity: int | None = None,
        eof: bool = False,
    ) -> None:
        if capacity is not None and len(data) > capacity:
            raise Utf8LexError(
                ErrorKind.BAD_LENGTH,
                f"{len(data)} bytes exceed buffer capacity {capacity}",
            )
        self._data: bytearray | mmap.mmap = bytearray(data)
        self._mapped = False
        self.capacity = capacity
        self.eof = eof
        self.next: Buffer | None = None
        self.prev: Buffer | None = None
        self.loc: list[Location] = new_locations()

    # ------------------------------------------------------------------
    # Constructors
    # ------------------------------------------------------------------

    @classmethod
    def from_path(cls, path: str | Path) -> Buffer:
        """Memory-map a whole file as a single EOF-flagged buffer."""
        try:
            f = open(path, "rb")
        except OSError as exc:
            raise Utf8LexError(ErrorKind.FILE_OPEN, f"cannot open {path}: {exc.strerror}") from exc
        with f:
            try:
                size = Path(path).stat().st_size
            except OSError as exc:
                raise Utf8LexError(ErrorKind.FILE_SIZE, f"cannot stat {path}") from exc
            if size == 0:
                raise Utf8LexError(ErrorKind.FILE_EMPTY, f"{path} is empty")
            try:
                mapped = mmap.mmap(f.fileno(), 0, access=mmap.ACCESS_READ)
            except (OSError, ValueError) as exc:
                raise Utf8LexError(ErrorKind.FILE_MMAP, f"cannot mmap {path}") from exc

        buffer = cls(eof=True)
        buffer._data = mapped
        buffer._mapped = True
        buffer.capacity = size
        return buffer

    @classmethod
    def from_stream(cls, stream: BinaryIO) -> Buffer:
        """Read a binary stream to its end into a single EOF-flagged buffer."""
        data = bytearray()
        try:
            while True:
                chunk = stream.read(_STREAM_CHUNK)
                if not chunk:
                    break
                data.extend(chunk)
        except OSError as exc:
            raise Utf8LexError(ErrorKind.FILE_READ, f"cannot read stream: {exc}") from exc
        return cls(data, eof=True)

    def close(self) -> None:
        """Release a memory-mapped file; a no-op for in-memory buffers."""
        if self._mapped:
            self._data.close()
            self._data = bytearray()
            self._mapped = False

    # ------------------------------------------------------------------
    # Writing
    # ------------------------------------------------------------------

    @property
    def length(self) -> int:
        """Number of bytes written so far."""
        return len(self._data)

    def append(self, data: bytes) -> None:
        if self.eof:
            raise Utf8LexError(ErrorKind.STATE, "cannot append to a buffer flagged EOF")
        if self.capacity is not None and len(self._data) + len(data) > self.capacity:
            raise Utf8LexError(
                ErrorKind.BAD_LENGTH,
                f"appending {len(data)} bytes exceeds buffer capacity {self.capacity}",
            )
        self._data.extend(data)

    def set_eof(self) -> None:
        self.eof = True

    def chain(self, buffer: Buffer) -> Buffer:
        """Link *buffer* after this one and return it."""
        if self.next is not None or buffer.prev is not None:
            raise Utf8LexError(ErrorKind.CHAIN_INSERT)
        self.next = buffer
        buffer.prev = self
        return buffer

    # ------------------------------------------------------------------
    # Reading
    # ------------------------------------------------------------------

    @property
    def at_eof(self) -> bool:
        """True when no more bytes can arrive anywhere in the rest of the chain."""
        buffer = self
        while buffer.next is not None:
            buffer = buffer.next
        return buffer.eof

    @property
    def is_exhausted(self) -> bool:
        return self.loc[Unit.BYTE].start >= len(self._data)

    def remaining_length(self, offset: int = 0) -> int:
        """Bytes available from the read position + *offset* to the end of the chain."""
        total = len(self._data) - self.loc[Unit.BYTE].start
        buffer = self.next
        while buffer is not None:
            total += buffer.length
            buffer = buffer.next
        return max(0, total - offset)

    def peek(self, offset: int, size: int) -> bytes:
        """Return up to *size* bytes starting *offset* bytes past the read position.

        Reads continue into ``next`` buffers when this one runs out.
        """
        if offset < 0:
            raise Utf8LexError(ErrorKind.BAD_OFFSET, f"negative offset {offset}")
        pos = self.loc[Unit.BYTE].start + offset
        buffer: Buffer | None = self
        parts: list[bytes] = []
        while buffer is not None and size > 0:
            if pos < buffer.length:
                piece = bytes(buffer._data[pos : pos + size])
                parts.append(piece)
                size -= len(piece)
                pos = 0
            else:
                pos -= buffer.length
            buffer = buffer.next
        return b"".join(parts)

    def snapshot(self) -> Buffer:
        """Share this buffer's bytes and links, with a private copy of ``loc``."""
        copy = Buffer.__new__(Buffer)
        copy._data = self._data
        copy._mapped = False
        copy.capacity = self.capacity
        copy.eof = self.eof
        copy.next = self.next
        copy.prev = self.prev
        copy.loc = [loc.copy() for loc in self.loc]
        return copy

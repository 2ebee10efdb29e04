"""Streaming parser: JUMBF from a sequential binary source.

When the JUMBF lives in a file or socket there's no need to materialize
it just to discover its shape.  The parser reads headers, description
box payloads and child payloads exactly as declared, appending them to
one buffer that becomes the owned `bytes` behind the whole tree, so the
result is self-contained and outlives the source.

Only `read()` is ever called on the source; seeking is never required.

One SharedReader (one logical cursor) serves the whole parse.  Each read
takes the reader through `access()`, which refuses re-entry.  Open
superboxes live on an explicit stack, and nesting depth is checked on
entry to every superbox, so deep input fails with RecursionLimitError
rather than exhausting the interpreter's stack.
"""

from __future__ import annotations

import logging
from contextlib import contextmanager
from typing import Any, Iterator, List, Optional, Tuple

from ._constants import (
    DEFAULT_MAX_DEPTH,
    DESCRIPTION_BOX_TYPE,
    READ_CHUNK_SIZE,
    SUPER_BOX_TYPE,
)
from ._data_box import DataBox
from ._description_box import decode_description
from ._errors import BoundsError, SourceError, StructureError, TruncationError
from ._header import BoxHeader, read_header
from ._input_data import InputData
from ._super_box import SuperBox, check_depth, owned_super_box

logger = logging.getLogger(__name__)


class SharedReader:
    """A single cursor over a binary stream, shared by a whole parse.

    Wrap a stream once and pass the SharedReader to several from_reader()
    calls to parse consecutive boxes.  The stream is read from wherever
    it's positioned; `position` counts bytes consumed through this object.
    """

    def __init__(self, stream: Any) -> None:
        self._stream = stream
        self._position = 0
        self._busy = False

    @property
    def position(self) -> int:
        return self._position

    @contextmanager
    def access(self) -> Iterator["SharedReader"]:
        """Hold exclusive use of the cursor for the duration of the block."""
        if self._busy:
            raise RuntimeError("SharedReader is already in use")
        self._busy = True
        try:
            yield self
        finally:
            self._busy = False

    def _read_chunk(self, n: int) -> bytes:
        if not self._busy:
            raise RuntimeError("SharedReader read outside access()")
        try:
            chunk = self._stream.read(n)
        except OSError as exc:
            raise SourceError(
                "read failed at offset {}: {}".format(self._position, exc)) from exc
        if chunk is None:
            raise SourceError(
                "source had no data available at offset {}".format(self._position))
        self._position += len(chunk)
        return chunk

    def read_exact(self, n: int, eof_ok: bool = False) -> bytes:
        """Read exactly `n` bytes.

        With `eof_ok`, a source that is already exhausted yields b""
        instead of a TruncationError.
        """
        buf = bytearray()
        while len(buf) < n:
            chunk = self._read_chunk(min(n - len(buf), READ_CHUNK_SIZE))
            if not chunk:
                if eof_ok and not buf:
                    return b""
                raise TruncationError(
                    "unexpected end of stream at offset {}: {} more bytes needed".format(
                        self._position, n - len(buf)),
                    needed=n - len(buf))
            buf += chunk
        return bytes(buf)

    def read_into(self, buf: bytearray, n: Optional[int] = None) -> int:
        """Append the next `n` bytes to `buf` (all of them up to EOF if None).

        Returns the number of bytes appended.
        """
        count = 0
        while n is None or count < n:
            want = READ_CHUNK_SIZE if n is None else min(n - count, READ_CHUNK_SIZE)
            chunk = self._read_chunk(want)
            if not chunk:
                if n is None:
                    break
                raise TruncationError(
                    "unexpected end of stream at offset {}: {} more bytes needed".format(
                        self._position, n - count),
                    needed=n - count)
            buf += chunk
            count += len(chunk)
        return count


class _Scope:
    """The unread byte budget of one enclosing box (None: until EOF)."""

    def __init__(self, reader: SharedReader, remaining: Optional[int]) -> None:
        self.reader = reader
        self.remaining = remaining

    def read_exact(self, n: int, eof_ok: bool = False) -> bytes:
        if self.remaining is not None:
            if eof_ok and self.remaining == 0:
                return b""
            if n > self.remaining:
                raise TruncationError(
                    "box content ends {} bytes short of a {}-byte field".format(
                        n - self.remaining, n),
                    needed=n - self.remaining)
        with self.reader.access():
            data = self.reader.read_exact(n, eof_ok and self.remaining is None)
        if self.remaining is not None:
            self.remaining -= len(data)
        return data

    def read_rest_into(self, buf: bytearray) -> int:
        with self.reader.access():
            n = self.reader.read_into(buf, self.remaining)
        if self.remaining is not None:
            self.remaining = 0
        return n

    def read_rest(self) -> bytes:
        buf = bytearray()
        self.read_rest_into(buf)
        return bytes(buf)

    def enter(self, header: BoxHeader) -> "_Scope":
        """Claim the payload of a box whose header was just read."""
        size = header.payload_size
        if size is None:
            size = self.remaining
        elif self.remaining is not None:
            if size > self.remaining:
                raise BoundsError(
                    "box {!r} declares {} payload bytes, enclosing box has {}".format(
                        str(header.box_type), size, self.remaining))
        if self.remaining is not None:
            self.remaining -= size
        return _Scope(self.reader, size)


def _shared(reader: Any) -> SharedReader:
    return reader if isinstance(reader, SharedReader) else SharedReader(reader)


def read_data_box(reader: Any) -> DataBox:
    """Read one box of any type into owned bytes."""
    scope = _Scope(_shared(reader), None)
    header, raw = read_header(scope.read_exact)
    buf = bytearray(raw)
    scope.enter(header).read_rest_into(buf)
    whole = bytes(buf)
    return DataBox(header.box_type,
                   InputData.owned_window(whole, memoryview(whole)[len(raw):]),
                   InputData.owned(whole))


def read_super_box(reader: Any, max_depth: Optional[int] = None) -> SuperBox:
    """Parse the superbox at the reader's position into an owned tree.

    `reader` is a binary file-like object or a SharedReader.  A superbox
    nested deeper than `max_depth` (the outermost box is depth 1; default
    DEFAULT_MAX_DEPTH) fails with RecursionLimitError.  OSErrors from the
    source surface as SourceError, chained to the original exception.

    The box is read into a single `bytes` object; every `original`, `data`
    and `private` in the returned tree is a window on it.
    """
    if max_depth is None:
        max_depth = DEFAULT_MAX_DEPTH
    scope = _Scope(_shared(reader), None)
    header, raw = read_header(scope.read_exact)
    if header.box_type != SUPER_BOX_TYPE:
        raise StructureError(
            "expected superbox 'jumb', found {!r}".format(str(header.box_type)),
            expected=SUPER_BOX_TYPE, found=header.box_type)
    buf = bytearray(raw)
    _read_tree(scope.enter(header), buf, max_depth)
    return owned_super_box(bytes(buf))


def _read_tree(root: _Scope, buf: bytearray, max_depth: int) -> None:
    """Append the payload of the superbox `root` covers to `buf`.

    Every box is checked as it arrives, in stream order, so the error
    raised for malformed input is the one the slice parser would raise.
    Open superboxes are kept on an explicit stack of (scope, start) pairs.
    """
    stack: List[Tuple[_Scope, int]] = []
    _open_super_box(root, buf, len(stack) + 1, max_depth)
    stack.append((root, 0))
    while stack:
        payload, start = stack[-1]
        found = read_header(payload.read_exact, eof_ok=True)
        if found is None:
            stack.pop()
            logger.debug("depth %d: read 'jumb' box (%d bytes)",
                         len(stack) + 1, len(buf) - start)
            continue
        header, raw = found
        child_start = len(buf)
        buf += raw
        scope = payload.enter(header)
        if header.box_type == SUPER_BOX_TYPE:
            _open_super_box(scope, buf, len(stack) + 1, max_depth)
            stack.append((scope, child_start))
        else:
            scope.read_rest_into(buf)
            logger.debug("depth %d: read %r box (%d bytes)",
                         len(stack), str(header.box_type), len(buf) - child_start)


def _open_super_box(payload: _Scope, buf: bytearray, depth: int,
                    max_depth: int) -> None:
    """Read and check the description box that starts a superbox payload."""
    check_depth(depth, max_depth)
    found = read_header(payload.read_exact, eof_ok=True)
    if found is None:
        raise StructureError("superbox has no description box",
                             expected=DESCRIPTION_BOX_TYPE, found=None)
    header, raw = found
    if header.box_type != DESCRIPTION_BOX_TYPE:
        raise StructureError(
            "expected description box 'jumd', found {!r}".format(str(header.box_type)),
            expected=DESCRIPTION_BOX_TYPE, found=header.box_type)
    desc_payload = payload.enter(header).read_rest()
    decode_description(memoryview(desc_payload), 0,
                       InputData.owned(raw + desc_payload), desc_payload)
    buf += raw
    buf += desc_payload

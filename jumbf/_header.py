"""Box header codec: the (size, type) prefix shared by every JUMBF box.

Wire layout (ISO/IEC 19566-5 §A.2, identical to ISO-BMFF):

    uint32be size       total box length, header included
    char[4]  type
    uint64be xl_size    present only when size == 1

A size of 0 means the box runs to the end of its enclosing scope (end of
the stream, or end of the parent's remaining payload).  Sizes 2..7 are
impossible, since they can't even cover the header.
"""

from __future__ import annotations

import struct
from typing import Callable, NamedTuple, Optional, Tuple, Union

from ._constants import (
    EXTENDED_HEADER_SIZE,
    HEADER_SIZE,
    MAX_COMPACT_SIZE,
    MAX_EXTENDED_SIZE,
    SIZE_EXTENDED,
    SIZE_TO_END,
)
from ._errors import BoundsError, TruncationError


class BoxType(bytes):
    """A 4-byte box type such as ``b"jumb"``.

    Compares equal to the plain bytes it wraps.  Any byte values are
    allowed; the printable-ASCII convention is not enforced.
    """

    def __new__(cls, value: Union[bytes, bytearray, memoryview, str]) -> "BoxType":
        if isinstance(value, str):
            value = value.encode("latin-1")
        value = bytes(value)
        if len(value) != 4:
            raise ValueError("box type must be exactly 4 bytes, got {}".format(len(value)))
        return super().__new__(cls, value)

    def __repr__(self) -> str:
        return "BoxType({})".format(bytes.__repr__(self))

    def __str__(self) -> str:
        return self.decode("latin-1")


class BoxHeader(NamedTuple):
    """A decoded box header.

    `payload_size` is None when the box runs to the end of its scope.
    """

    box_type: BoxType
    payload_size: Optional[int]
    header_size: int

    @property
    def box_size(self) -> Optional[int]:
        if self.payload_size is None:
            return None
        return self.header_size + self.payload_size


def _check_declared(size: int, header_size: int, box_type: BoxType) -> int:
    if size < header_size:
        raise BoundsError(
            "box {!r} declares size {} smaller than its {}-byte header".format(
                str(box_type), size, header_size))
    return size - header_size


def decode_header(buf: memoryview, off: int = 0,
                  end: Optional[int] = None) -> BoxHeader:
    """Decode the box header at `buf[off:]`, not reading past `end`."""
    if end is None:
        end = len(buf)
    avail = end - off
    if avail < HEADER_SIZE:
        raise TruncationError(
            "truncated box header: need {} bytes, have {}".format(HEADER_SIZE, avail),
            needed=HEADER_SIZE - avail)
    size = struct.unpack_from(">I", buf, off)[0]
    box_type = BoxType(buf[off + 4:off + 8])

    if size == SIZE_TO_END:
        return BoxHeader(box_type, None, HEADER_SIZE)

    if size == SIZE_EXTENDED:
        if avail < EXTENDED_HEADER_SIZE:
            raise TruncationError(
                "truncated extended size for box {!r}".format(str(box_type)),
                needed=EXTENDED_HEADER_SIZE - avail)
        xl = struct.unpack_from(">Q", buf, off + HEADER_SIZE)[0]
        payload = _check_declared(xl, EXTENDED_HEADER_SIZE, box_type)
        return BoxHeader(box_type, payload, EXTENDED_HEADER_SIZE)

    return BoxHeader(box_type, _check_declared(size, HEADER_SIZE, box_type), HEADER_SIZE)


def read_header(read_exact: Callable[[int, bool], bytes],
                eof_ok: bool = False) -> Optional[Tuple[BoxHeader, bytes]]:
    """Decode a box header from a sequential source.

    `read_exact(n, eof_ok)` must return exactly n bytes, or b"" when
    `eof_ok` is set and the source is cleanly exhausted.  Returns the
    header plus the raw header bytes consumed, or None at a clean end.
    """
    raw = read_exact(HEADER_SIZE, eof_ok)
    if not raw:
        return None
    size = struct.unpack(">I", raw[:4])[0]
    if size == SIZE_EXTENDED:
        raw += read_exact(EXTENDED_HEADER_SIZE - HEADER_SIZE, False)
    return decode_header(memoryview(raw)), raw


def header_size_for(payload_size: int) -> int:
    """Header length the builder will emit for a payload of this size."""
    if HEADER_SIZE + payload_size <= MAX_COMPACT_SIZE:
        return HEADER_SIZE
    return EXTENDED_HEADER_SIZE


def encode_header(box_type: bytes, payload_size: int) -> bytes:
    """Encode a box header, using the extended form only when required."""
    if len(box_type) != 4:
        raise ValueError("box type must be exactly 4 bytes")
    if payload_size < 0:
        raise ValueError("payload size must be non-negative")
    total = HEADER_SIZE + payload_size
    if total <= MAX_COMPACT_SIZE:
        return struct.pack(">I", total) + bytes(box_type)
    total = EXTENDED_HEADER_SIZE + payload_size
    if total > MAX_EXTENDED_SIZE:
        raise ValueError("payload too large for a JUMBF box")
    return struct.pack(">I", SIZE_EXTENDED) + bytes(box_type) + struct.pack(">Q", total)

"""Generic (data) boxes: any box whose payload this library doesn't interpret."""

from __future__ import annotations

from dataclasses import dataclass
from typing import TYPE_CHECKING, Any, Optional, Tuple

from ._errors import BoundsError, TruncationError
from ._header import BoxHeader, BoxType, decode_header
from ._input_data import InputData

if TYPE_CHECKING:
    from ._super_box import SuperBox


def as_byte_view(buffer: Any) -> memoryview:
    """Return a flat unsigned-byte memoryview over `buffer` without copying."""
    view = buffer if isinstance(buffer, memoryview) else memoryview(buffer)
    if view.format != "B" or view.ndim != 1:
        view = view.cast("B")
    return view


def locate_box(view: memoryview, off: int, end: int,
               nested: bool) -> Tuple[BoxHeader, int, int]:
    """Find the box starting at `view[off]` inside the scope ending at `end`.

    Returns (header, payload_start, box_end).  A box that declares more
    bytes than its scope holds is a BoundsError inside a parent box and a
    TruncationError at the top level, where the buffer itself is short.
    """
    header = decode_header(view, off, end)
    start = off + header.header_size
    if header.payload_size is None:
        return header, start, end
    box_end = start + header.payload_size
    if box_end > end:
        msg = "box {!r} at offset {} declares {} bytes, scope has {}".format(
            str(header.box_type), off, header.box_size, end - off)
        if nested:
            raise BoundsError(msg)
        raise TruncationError(msg, needed=box_end - end)
    return header, start, box_end


@dataclass(frozen=True)
class DataBox:
    """A single JUMBF box whose payload is opaque to this library.

    `data` is the payload; `original` is header plus payload exactly as it
    appeared in the source, so the box can be re-serialized byte for byte.
    """

    box_type: BoxType
    data: InputData
    original: InputData

    @classmethod
    def from_slice(cls, buffer: Any) -> Tuple["DataBox", memoryview]:
        """Parse one box from the front of `buffer` without copying.

        Returns the box and a memoryview of the unconsumed remainder.
        """
        view = as_byte_view(buffer)
        box, end = data_box_at(view, 0, 0, len(view), nested=False)
        return box, view[end:]

    @classmethod
    def from_reader(cls, reader: Any) -> "DataBox":
        """Read one box from a binary stream into owned bytes."""
        from ._reader import read_data_box
        return read_data_box(reader)

    def offset_within_superbox(self, super_box: "SuperBox") -> Optional[int]:
        """Offset of this box's payload from the start of `super_box`.

        Only meaningful when both were borrowed from the same buffer;
        returns None otherwise, or when this box lies outside `super_box`.
        """
        outer = super_box.original
        if not (self.data.is_borrowed and outer.is_borrowed):
            return None
        if self.data.source is not outer.source:
            return None
        offset = self.data.offset - outer.offset
        if offset < 0 or offset + len(self.data) > len(outer):
            return None
        return offset


def window(view: memoryview, start: int, end: int, base: int,
           backing: Optional[bytes]) -> InputData:
    """`view[start:end]` as borrowed data, or as owned data when `view` is
    over the `backing` bytes object."""
    if backing is None:
        return InputData.borrowed(view[start:end], base + start)
    return InputData.owned_window(backing, view[start:end])


def data_box_at(view: memoryview, base: int, off: int, end: int,
                nested: bool, backing: Optional[bytes] = None) -> Tuple[DataBox, int]:
    """The box at `view[off]`; `base` is the view's offset in the root buffer."""
    header, start, box_end = locate_box(view, off, end, nested)
    box = DataBox(
        header.box_type,
        window(view, start, box_end, base, backing),
        window(view, off, box_end, base, backing),
    )
    return box, box_end

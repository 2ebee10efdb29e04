"""Superboxes (`jumb`) and the zero-copy slice parser.

A superbox payload is exactly one description box followed by zero or
more child boxes filling the remainder.  Children of type `jumb` are
parsed as nested superboxes; anything else is kept as an opaque
DataBox.  Child order is the on-disk order and is preserved.

The slice parser never copies.  Every InputData/Label in the result is a
memoryview into the caller's buffer, which must outlive the tree.  The
streaming parser reuses the same walk over the one `bytes` object it read,
handing out owned windows on it instead.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Any, List, Optional, Tuple, Union

from ._constants import DESCRIPTION_BOX_TYPE, SUPER_BOX_TYPE
from ._data_box import DataBox, as_byte_view, locate_box, window
from ._description_box import DescriptionBox, decode_description
from ._errors import RecursionLimitError, StructureError
from ._input_data import InputData


@dataclass(frozen=True)
class SuperBox:
    """A JUMBF superbox: a description box plus ordered child boxes."""

    desc: DescriptionBox
    child_boxes: Tuple["ChildBox", ...]
    original: InputData

    @classmethod
    def from_slice(cls, buffer: Any) -> Tuple["SuperBox", memoryview]:
        """Parse the superbox at the front of `buffer` without copying.

        Nested superboxes are parsed with no depth ceiling;
        use from_slice_with_depth_limit() for untrusted input.  Returns
        the superbox and a memoryview of the unconsumed remainder.
        """
        return _parse_root(buffer, None)

    @classmethod
    def from_slice_with_depth_limit(cls, buffer: Any,
                                    max_depth: int) -> Tuple["SuperBox", memoryview]:
        """Like from_slice(), failing with RecursionLimitError past `max_depth`.

        The outermost superbox is depth 1.
        """
        return _parse_root(buffer, max_depth)

    @classmethod
    def from_data_box(cls, data_box: DataBox) -> "SuperBox":
        """Re-parse an already-parsed `jumb` box as a superbox.

        Borrowed input gives a borrowed tree; owned input gives owned
        windows on the same backing bytes.
        """
        _expect_type(data_box.box_type, SUPER_BOX_TYPE, "superbox")
        original = data_box.original
        view = original.as_memoryview()
        header_size = len(original) - len(data_box.data)
        if original.is_borrowed:
            return _parse_payload(view, original.offset, 0, header_size, len(view),
                                  None, None)
        return _parse_payload(view, 0, 0, header_size, len(view), None, original.backing)

    @classmethod
    def from_reader(cls, reader: Any, max_depth: Optional[int] = None) -> "SuperBox":
        """Parse a superbox from a binary stream into owned bytes.

        See jumbf._reader.read_super_box for details.
        """
        from ._reader import read_super_box
        return read_super_box(reader, max_depth)

    def find_by_label(self, label: str) -> Optional["SuperBox"]:
        """Find the one requestable child superbox labelled `label`.

        A label containing `/` is a path through nested superboxes.
        Returns None if no child matches, or if more than one does.
        """
        head, sep, rest = label.partition("/")
        matches = [
            child.box for child in self.child_boxes
            if child.is_super_box
            and child.box.desc.requestable
            and child.box.desc.label is not None
            and child.box.desc.label.as_str() == head
        ]
        if len(matches) != 1:
            return None
        if sep:
            return matches[0].find_by_label(rest)
        return matches[0]

    def data_box(self) -> Optional[DataBox]:
        """The first child box, if it's a data box."""
        if not self.child_boxes:
            return None
        return self.child_boxes[0].as_data_box()


@dataclass(frozen=True)
class ChildBox:
    """One child of a superbox: either a nested SuperBox or a DataBox.

    Use as_super_box() / as_data_box() to get at the variant you expect.
    """

    box: Union[SuperBox, DataBox]

    @property
    def is_super_box(self) -> bool:
        return isinstance(self.box, SuperBox)

    @property
    def is_data_box(self) -> bool:
        return isinstance(self.box, DataBox)

    @property
    def box_type(self) -> bytes:
        if isinstance(self.box, SuperBox):
            return SUPER_BOX_TYPE
        return self.box.box_type

    @property
    def original(self) -> InputData:
        return self.box.original

    def as_super_box(self) -> Optional[SuperBox]:
        return self.box if isinstance(self.box, SuperBox) else None

    def as_data_box(self) -> Optional[DataBox]:
        return self.box if isinstance(self.box, DataBox) else None


def _expect_type(found: bytes, expected: bytes, what: str) -> None:
    if found != expected:
        raise StructureError(
            "expected {} {!r}, found {!r}".format(
                what, expected.decode("latin-1"), bytes(found).decode("latin-1")),
            expected=expected, found=found)


def check_depth(depth: int, max_depth: Optional[int]) -> None:
    if max_depth is not None and depth > max_depth:
        raise RecursionLimitError(
            "superbox nesting depth {} exceeds max_depth {}".format(depth, max_depth),
            max_depth=max_depth)


def _parse_root(buffer: Any, max_depth: Optional[int]) -> Tuple[SuperBox, memoryview]:
    view = as_byte_view(buffer)
    header, start, end = locate_box(view, 0, len(view), nested=False)
    _expect_type(header.box_type, SUPER_BOX_TYPE, "superbox")
    sbox = _parse_payload(view, 0, 0, start, end, max_depth, None)
    return sbox, view[end:]


def owned_super_box(whole: bytes) -> SuperBox:
    """Build the tree for the superbox filling `whole` as owned windows on it.

    `whole` must already be known to hold one well-formed superbox.
    """
    view = memoryview(whole)
    header, start, end = locate_box(view, 0, len(view), nested=False)
    return _parse_payload(view, 0, 0, start, end, None, whole)


class _Frame:
    """One superbox under construction on the parser's explicit stack."""

    __slots__ = ("off", "end", "pos", "depth", "desc", "children")

    def __init__(self, off: int, end: int, pos: int, depth: int,
                 desc: DescriptionBox) -> None:
        self.off = off
        self.end = end
        self.pos = pos
        self.depth = depth
        self.desc = desc
        self.children: List[ChildBox] = []


def _open_frame(view: memoryview, base: int, off: int, start: int, end: int,
                depth: int, max_depth: Optional[int],
                backing: Optional[bytes]) -> _Frame:
    check_depth(depth, max_depth)
    if start >= end:
        raise StructureError("superbox has no description box",
                             expected=DESCRIPTION_BOX_TYPE, found=None)
    header, dstart, dend = locate_box(view, start, end, nested=True)
    _expect_type(header.box_type, DESCRIPTION_BOX_TYPE, "description box")
    desc = decode_description(view[dstart:dend], base + dstart,
                              window(view, start, dend, base, backing), backing)
    return _Frame(off, end, dend, depth, desc)


def _parse_payload(view: memoryview, base: int, off: int, start: int, end: int,
                   max_depth: Optional[int], backing: Optional[bytes]) -> SuperBox:
    """Parse the superbox whose header is at `off` and payload is view[start:end].

    Nested superboxes go on an explicit stack rather than the call stack,
    so nesting is bounded only by `max_depth`.
    """
    stack = [_open_frame(view, base, off, start, end, 1, max_depth, backing)]
    while True:
        frame = stack[-1]
        if frame.pos < frame.end:
            pos = frame.pos
            header, cstart, cend = locate_box(view, pos, frame.end, nested=True)
            frame.pos = cend
            if header.box_type == SUPER_BOX_TYPE:
                stack.append(_open_frame(view, base, pos, cstart, cend,
                                         frame.depth + 1, max_depth, backing))
            else:
                frame.children.append(ChildBox(DataBox(
                    header.box_type,
                    window(view, cstart, cend, base, backing),
                    window(view, pos, cend, base, backing),
                )))
            continue

        stack.pop()
        sbox = SuperBox(frame.desc, tuple(frame.children),
                        window(view, frame.off, frame.end, base, backing))
        if not stack:
            return sbox
        stack[-1].children.append(ChildBox(sbox))

"""Borrowed-or-owned byte and text containers.

The slice parser never copies: every InputData/Label it produces is a
read-only memoryview window on the caller's buffer (the *borrowed* form).
The streaming parser can't borrow from a transient stream, so it hands
back `bytes`/`str` (the *owned* form).  Both forms expose the same
read-only accessors so downstream code needn't care which one it got.
"""

from __future__ import annotations

from typing import Any, Optional, Union

from ._errors import EncodingError

BytesLike = Union[bytes, bytearray, memoryview]

_PREVIEW_LEN = 20


def _preview(data: memoryview) -> str:
    shown = " ".join("{:02x}".format(b) for b in data[:_PREVIEW_LEN])
    if len(data) > _PREVIEW_LEN:
        shown += " ..."
    return shown


class InputData:
    """Immutable bytes that are either borrowed from a buffer or owned.

    Construct with `InputData.borrowed()`, `InputData.owned()` or
    `InputData.owned_window()`; the variant can't change afterwards.
    Equality is by content, so a borrowed and an owned InputData holding
    the same bytes compare equal.
    """

    __slots__ = ("_view", "_owned", "_offset")

    def __init__(self, view: memoryview, owned: Optional[bytes],
                 offset: Optional[int]) -> None:
        self._view = view
        self._owned = owned
        self._offset = offset

    @classmethod
    def borrowed(cls, view: memoryview, offset: int = 0) -> "InputData":
        """Wrap `view` without copying.

        `offset` is where the window starts inside the root buffer; the
        parser uses it to relate nested boxes to their parents.
        """
        if not isinstance(view, memoryview):
            view = memoryview(view)
        return cls(view.toreadonly(), None, offset)

    @classmethod
    def owned(cls, data: BytesLike) -> "InputData":
        data = bytes(data)
        return cls(memoryview(data), data, None)

    @classmethod
    def owned_window(cls, backing: bytes, view: memoryview) -> "InputData":
        """Owned data that is a window on a larger `bytes` object.

        The streaming parser reads each root box into one `bytes` object
        and hands out windows on it, so nested boxes share that buffer.
        """
        return cls(view.toreadonly(), backing, None)

    # ── variant queries ───────────────────────────────────────

    @property
    def is_borrowed(self) -> bool:
        return self._owned is None

    @property
    def is_owned(self) -> bool:
        return self._owned is not None

    @property
    def offset(self) -> Optional[int]:
        """Start of this window in the source buffer (None when owned)."""
        return self._offset

    @property
    def source(self) -> Optional[Any]:
        """The buffer a borrowed window points into (None when owned)."""
        if self._owned is not None:
            return None
        return self._view.obj

    @property
    def backing(self) -> Optional[bytes]:
        """The `bytes` object owned data lives in (None when borrowed)."""
        return self._owned

    # ── uniform accessors ─────────────────────────────────────

    def as_memoryview(self) -> memoryview:
        return self._view

    def to_bytes(self) -> bytes:
        """Return the contents as bytes (a copy, unless they fill the backing object)."""
        if self._owned is not None and len(self._owned) == len(self._view):
            return self._owned
        return self._view.tobytes()

    def __bytes__(self) -> bytes:
        return self.to_bytes()

    def __len__(self) -> int:
        return len(self._view)

    def __eq__(self, other: object) -> bool:
        if isinstance(other, InputData):
            return self._view == other._view
        if isinstance(other, (bytes, bytearray, memoryview)):
            return self._view == other
        return NotImplemented

    def __hash__(self) -> int:
        return hash(self.to_bytes())

    def __repr__(self) -> str:
        kind = "owned" if self.is_owned else "borrowed"
        return "InputData({}, {} bytes: [{}])".format(kind, len(self), _preview(self._view))


class Label:
    """UTF-8 text that is either borrowed from a buffer or owned.

    A borrowed label is validated once at construction and decoded on
    demand by `as_str()`.  `None` (no label) and an empty label are
    different things; this class only represents the latter.
    """

    __slots__ = ("_view", "_text", "_offset")

    def __init__(self, view: Optional[memoryview], text: Optional[str],
                 offset: Optional[int]) -> None:
        self._view = view
        self._text = text
        self._offset = offset

    @classmethod
    def borrowed(cls, view: memoryview, offset: int = 0) -> "Label":
        """Wrap UTF-8 bytes without copying; raises EncodingError if invalid."""
        if not isinstance(view, memoryview):
            view = memoryview(view)
        try:
            str(view, "utf-8")
        except UnicodeDecodeError as exc:
            raise EncodingError("label is not valid UTF-8: {}".format(exc.reason)) from exc
        return cls(view.toreadonly(), None, offset)

    @classmethod
    def owned(cls, text: str) -> "Label":
        return cls(None, text, None)

    @classmethod
    def from_utf8(cls, raw: BytesLike) -> "Label":
        """Decode owned UTF-8 bytes; raises EncodingError if invalid."""
        try:
            text = bytes(raw).decode("utf-8")
        except UnicodeDecodeError as exc:
            raise EncodingError("label is not valid UTF-8: {}".format(exc.reason)) from exc
        return cls.owned(text)

    @property
    def is_borrowed(self) -> bool:
        return self._text is None

    @property
    def is_owned(self) -> bool:
        return self._text is not None

    @property
    def offset(self) -> Optional[int]:
        return self._offset

    def as_str(self) -> str:
        if self._text is not None:
            return self._text
        return str(self._view, "utf-8")

    def to_bytes(self) -> bytes:
        """Return the UTF-8 encoding of the label (without the NUL)."""
        if self._view is not None:
            return self._view.tobytes()
        return self._text.encode("utf-8")

    def __str__(self) -> str:
        return self.as_str()

    def __len__(self) -> int:
        """Length of the UTF-8 encoding in bytes, like InputData."""
        if self._view is not None:
            return len(self._view)
        return len(self._text.encode("utf-8"))

    def __eq__(self, other: object) -> bool:
        if isinstance(other, Label):
            return self.as_str() == other.as_str()
        if isinstance(other, str):
            return self.as_str() == other
        return NotImplemented

    def __hash__(self) -> int:
        return hash(self.as_str())

    def __repr__(self) -> str:
        kind = "owned" if self.is_owned else "borrowed"
        return "Label({}, {!r})".format(kind, self.as_str())

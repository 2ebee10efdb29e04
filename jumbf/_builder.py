"""Builders: assemble a JUMBF tree and serialize it to a byte sink.

Boxes are length-prefixed, so each box is measured before it's written:
payload_size() is computed for the whole tree without building any
bytes, then each header is emitted with its known size, then the payload
streams straight into the sink.  Both passes walk the tree with explicit
stacks, so nesting depth is limited only by memory.  The compact 8-byte
header is always used unless the box is too large for it.

Builders never copy or mutate caller payloads; borrowed payloads must
stay alive and unchanged until serialization finishes.  Any error from
the sink propagates immediately, leaving partial output for the caller
to deal with.
"""

from __future__ import annotations

import io
import logging
from typing import Any, Dict, List, Optional, Sequence, Tuple, Union

from ._constants import (
    DESCRIPTION_BOX_TYPE,
    HASH_SIZE,
    MAX_ID,
    SUPER_BOX_TYPE,
    UUID_SIZE,
)
from ._description_box import encode_description_payload
from ._header import BoxType, encode_header, header_size_for
from ._input_data import BytesLike

logger = logging.getLogger(__name__)


class _BoxBuilder:
    """Shared measure-then-emit serialization for every builder."""

    box_type: BoxType

    def payload_size(self) -> int:
        raise NotImplementedError

    def write_payload(self, sink: Any) -> None:
        raise NotImplementedError

    def box_size(self) -> int:
        """Total serialized size of this box, header included."""
        size = self.payload_size()
        return header_size_for(size) + size

    def write_jumbf(self, sink: Any) -> int:
        """Write this box to `sink` (anything with write()); return bytes written."""
        sizes, descs = _measure(self)
        _write_boxes(sink, [self], sizes, descs)
        size = sizes[id(self)]
        return header_size_for(size) + size

    def to_bytes(self) -> bytes:
        buf = io.BytesIO()
        self.write_jumbf(buf)
        return buf.getvalue()


class DataBoxBuilder(_BoxBuilder):
    """A box with an opaque payload.

    `data` may be bytes (owned) or a bytearray/memoryview (borrowed); it
    is written as-is, never copied.
    """

    def __init__(self, box_type: Union[bytes, str], data: BytesLike) -> None:
        self.box_type = BoxType(box_type)
        self._data = memoryview(data).cast("B") if not isinstance(data, bytes) else data

    @classmethod
    def from_borrowed(cls, box_type: Union[bytes, str], data: BytesLike) -> "DataBoxBuilder":
        """Reference `data` without copying; it must outlive serialization."""
        return cls(box_type, memoryview(data))

    @classmethod
    def from_owned(cls, box_type: Union[bytes, str], data: BytesLike) -> "DataBoxBuilder":
        """Take a private copy of `data`."""
        return cls(box_type, bytes(data))

    @property
    def data(self) -> BytesLike:
        return self._data

    def payload_size(self) -> int:
        return len(self._data)

    def write_payload(self, sink: Any) -> None:
        sink.write(self._data)


class PlaceholderDataBox(_BoxBuilder):
    """Reserve `size` zero bytes to be filled in after serialization.

    Typical use is a signature that covers the rest of the tree: write the
    tree once, compute the signature, then replace_payload() it in place.
    The sink must support tell() and seek().
    """

    def __init__(self, box_type: Union[bytes, str], size: int) -> None:
        if size < 0:
            raise ValueError("placeholder size must be non-negative")
        self.box_type = BoxType(box_type)
        self.size = size
        self._offset: Optional[int] = None

    @property
    def offset(self) -> Optional[int]:
        """Stream offset of the reserved payload; None until written."""
        return self._offset

    def payload_size(self) -> int:
        return self.size

    def write_payload(self, sink: Any) -> None:
        self._offset = sink.tell()
        sink.write(bytes(self.size))

    def replace_payload(self, sink: Any, payload: BytesLike) -> None:
        """Overwrite the reserved bytes with `payload`.

        Restores the sink's position afterwards.  A payload shorter than
        the reservation leaves the remaining reserved bytes zero.
        """
        payload = memoryview(payload).cast("B")
        if len(payload) > self.size:
            raise ValueError(
                "replace_payload: payload ({} bytes) is larger than reserved "
                "capacity ({} bytes)".format(len(payload), self.size))
        if self._offset is None:
            raise ValueError("replace_payload: no offset recorded; call write_jumbf() first")
        pos = sink.tell()
        sink.seek(self._offset)
        sink.write(payload)
        sink.seek(pos)


class SuperBoxBuilder(_BoxBuilder):
    """A superbox: description box fields plus ordered child builders.

    Only the UUID is required.  Children are written in the order they
    were added with add_child_box().
    """

    box_type = BoxType(SUPER_BOX_TYPE)

    def __init__(self, uuid: BytesLike, label: Optional[str] = None,
                 requestable: bool = False, id: Optional[int] = None,
                 hash: Optional[BytesLike] = None,
                 private: Optional[BytesLike] = None) -> None:
        uuid = bytes(uuid)
        if len(uuid) != UUID_SIZE:
            raise ValueError("uuid must be exactly {} bytes".format(UUID_SIZE))
        if label is not None and "\x00" in label:
            raise ValueError("label must not contain NUL")
        if id is not None and not 0 <= id <= MAX_ID:
            raise ValueError("id must fit in an unsigned 32-bit integer")
        if hash is not None:
            hash = bytes(hash)
            if len(hash) != HASH_SIZE:
                raise ValueError("hash must be exactly {} bytes".format(HASH_SIZE))
        self.uuid = uuid
        self.label = label
        self.requestable = requestable
        self.id = id
        self.hash = hash
        self.private = private
        self._children: List[_BoxBuilder] = []

    def add_child_box(self, child: _BoxBuilder) -> None:
        if not isinstance(child, _BoxBuilder):
            raise TypeError("child must be a DataBoxBuilder, SuperBoxBuilder "
                            "or PlaceholderDataBox, not {}".format(type(child).__name__))
        self._children.append(child)

    @property
    def child_boxes(self) -> Tuple[_BoxBuilder, ...]:
        return tuple(self._children)

    def _desc_payload(self) -> bytes:
        return encode_description_payload(
            self.uuid,
            self.label.encode("utf-8") if self.label is not None else None,
            self.requestable, self.id, self.hash, self.private)

    def payload_size(self) -> int:
        return _measure(self)[0][id(self)]

    def write_payload(self, sink: Any) -> None:
        sizes, descs = _measure(self)
        _write_description(sink, descs[id(self)])
        _write_boxes(sink, self._children, sizes, descs)


def _measure(root: _BoxBuilder) -> Tuple[Dict[int, int], Dict[int, bytes]]:
    """Payload sizes of every box under `root`, and each superbox's `jumd` payload.

    Both maps are keyed by id() of the builder.  A superbox that contains
    itself is a ValueError.
    """
    sizes: Dict[int, int] = {}
    descs: Dict[int, bytes] = {}
    active = set()
    stack: List[Tuple[_BoxBuilder, bool]] = [(root, False)]
    while stack:
        node, expanded = stack.pop()
        key = id(node)
        if not isinstance(node, SuperBoxBuilder):
            sizes[key] = node.payload_size()
            continue
        if expanded:
            active.discard(key)
            desc = descs[key]
            sizes[key] = header_size_for(len(desc)) + len(desc) + sum(
                header_size_for(sizes[id(c)]) + sizes[id(c)] for c in node._children)
            continue
        if key in sizes:
            continue
        if key in active:
            raise ValueError("superbox builder {!r} contains itself".format(node.label))
        active.add(key)
        descs[key] = node._desc_payload()
        stack.append((node, True))
        stack.extend((child, False) for child in reversed(node._children))
    return sizes, descs


def _write_description(sink: Any, desc: bytes) -> None:
    sink.write(encode_header(DESCRIPTION_BOX_TYPE, len(desc)))
    sink.write(desc)


def _write_boxes(sink: Any, boxes: Sequence[_BoxBuilder],
                 sizes: Dict[int, int], descs: Dict[int, bytes]) -> None:
    """Write `boxes` and everything under them in document order."""
    stack = list(reversed(boxes))
    while stack:
        node = stack.pop()
        sink.write(encode_header(node.box_type, sizes[id(node)]))
        if isinstance(node, SuperBoxBuilder):
            _write_description(sink, descs[id(node)])
            stack.extend(reversed(node._children))
            logger.debug("wrote superbox %r with %d children", node.label, len(node._children))
        else:
            node.write_payload(sink)

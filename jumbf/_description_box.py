"""Description box (`jumd`): identity and labeling for a superbox.

Payload layout (ISO/IEC 19566-5 §B.3), strictly in this order:

    byte[16] uuid
    uint8    toggles          bit 0 requestable, 1 label, 2 id, 3 hash, 4 private
    utf8z    label            if toggles & 0x02, NUL-terminated
    uint32be id               if toggles & 0x04
    byte[32] hash             if toggles & 0x08
    byte[]   private          if toggles & 0x10, all remaining bytes

The toggle byte is never stored: it's recomputed from which optional
fields are present, so the model can't disagree with itself.
"""

from __future__ import annotations

import logging
import struct
from dataclasses import dataclass
from typing import Any, Optional, Tuple

from ._constants import (
    DESCRIPTION_BOX_TYPE,
    HASH_SIZE,
    ID_SIZE,
    TOGGLE_HASH,
    TOGGLE_ID,
    TOGGLE_LABEL,
    TOGGLE_PRIVATE,
    TOGGLE_REQUESTABLE,
    UUID_SIZE,
)
from ._data_box import DataBox, as_byte_view, data_box_at, window
from ._errors import StructureError, TruncationError
from ._input_data import BytesLike, InputData, Label

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class DescriptionBox:
    """Decoded contents of a `jumd` box.

    `hash` is carried as-is; this library never checks it against the
    superbox contents.
    """

    uuid: bytes
    label: Optional[Label]
    requestable: bool
    id: Optional[int]
    hash: Optional[bytes]
    private: Optional[InputData]
    original: InputData

    @property
    def toggles(self) -> int:
        return make_toggles(self.requestable, self.label is not None,
                            self.id is not None, self.hash is not None,
                            self.private is not None)

    @classmethod
    def from_slice(cls, buffer: Any) -> Tuple["DescriptionBox", memoryview]:
        """Parse a `jumd` box from the front of `buffer` without copying."""
        view = as_byte_view(buffer)
        box, end = data_box_at(view, 0, 0, len(view), nested=False)
        return cls.from_data_box(box), view[end:]

    @classmethod
    def from_data_box(cls, data_box: DataBox) -> "DescriptionBox":
        """Re-interpret an already-parsed box as a description box.

        Borrowed input yields borrowed fields; owned input yields owned ones.
        """
        if data_box.box_type != DESCRIPTION_BOX_TYPE:
            raise StructureError(
                "expected description box 'jumd', found {!r}".format(str(data_box.box_type)),
                expected=DESCRIPTION_BOX_TYPE, found=data_box.box_type)
        data = data_box.data
        return decode_description(data.as_memoryview(), data.offset or 0,
                                  data_box.original, data.backing)

    @classmethod
    def from_reader(cls, reader: Any) -> "DescriptionBox":
        """Read a `jumd` box from a binary stream into owned fields."""
        return cls.from_data_box(DataBox.from_reader(reader))

    def payload_bytes(self) -> bytes:
        """Re-encode the payload from the decoded fields."""
        return encode_description_payload(
            self.uuid,
            self.label.to_bytes() if self.label is not None else None,
            self.requestable, self.id, self.hash,
            self.private.as_memoryview() if self.private is not None else None)


def make_toggles(requestable: bool, has_label: bool, has_id: bool,
                 has_hash: bool, has_private: bool) -> int:
    toggles = 0
    if requestable:
        toggles |= TOGGLE_REQUESTABLE
    if has_label:
        toggles |= TOGGLE_LABEL
    if has_id:
        toggles |= TOGGLE_ID
    if has_hash:
        toggles |= TOGGLE_HASH
    if has_private:
        toggles |= TOGGLE_PRIVATE
    return toggles


def _need(payload: memoryview, pos: int, size: int, field: str) -> None:
    have = len(payload) - pos
    if have < size:
        raise TruncationError(
            "description box: truncated {} (need {} bytes, have {})".format(field, size, have),
            needed=size - have)


def decode_description(payload: memoryview, base: int, original: InputData,
                       backing: Optional[bytes]) -> DescriptionBox:
    """Decode a `jumd` payload.

    With `backing` None every Label/InputData borrows from `payload`, and
    `base` is the payload's offset in the root buffer.  Otherwise
    `payload` is a view on the `backing` bytes and the fields are owned.
    """
    _need(payload, 0, UUID_SIZE, "uuid")
    uuid = payload[:UUID_SIZE].tobytes()
    pos = UUID_SIZE

    _need(payload, pos, 1, "toggles")
    toggles = payload[pos]
    pos += 1

    label: Optional[Label] = None
    if toggles & TOGGLE_LABEL:
        nul = next((i for i in range(pos, len(payload)) if payload[i] == 0), -1)
        if nul < 0:
            raise TruncationError("description box: label has no NUL terminator", needed=1)
        if backing is not None:
            label = Label.from_utf8(payload[pos:nul])
        else:
            label = Label.borrowed(payload[pos:nul], base + pos)
        pos = nul + 1

    box_id: Optional[int] = None
    if toggles & TOGGLE_ID:
        _need(payload, pos, ID_SIZE, "id")
        box_id = struct.unpack_from(">I", payload, pos)[0]
        pos += ID_SIZE

    box_hash: Optional[bytes] = None
    if toggles & TOGGLE_HASH:
        _need(payload, pos, HASH_SIZE, "hash")
        box_hash = payload[pos:pos + HASH_SIZE].tobytes()
        pos += HASH_SIZE

    private: Optional[InputData] = None
    if toggles & TOGGLE_PRIVATE:
        private = window(payload, pos, len(payload), base, backing)
        pos = len(payload)
    elif pos < len(payload):
        logger.debug("description box: ignoring %d trailing bytes", len(payload) - pos)

    return DescriptionBox(
        uuid=uuid,
        label=label,
        requestable=bool(toggles & TOGGLE_REQUESTABLE),
        id=box_id,
        hash=box_hash,
        private=private,
        original=original,
    )


def encode_description_payload(uuid: bytes, label: Optional[bytes],
                               requestable: bool, box_id: Optional[int],
                               box_hash: Optional[bytes],
                               private: Optional[BytesLike]) -> bytes:
    """Encode a `jumd` payload; `label` is UTF-8 without its NUL."""
    parts = [bytes(uuid), bytes([make_toggles(requestable, label is not None,
                                              box_id is not None,
                                              box_hash is not None,
                                              private is not None)])]
    if label is not None:
        parts.append(bytes(label) + b"\x00")
    if box_id is not None:
        parts.append(struct.pack(">I", box_id))
    if box_hash is not None:
        parts.append(bytes(box_hash))
    if private is not None:
        parts.append(bytes(private))
    return b"".join(parts)

"""jumbf: JUMBF (ISO/IEC 19566-5) parser and builder.

JUMBF is the nestable box container used to embed metadata such as C2PA
manifests in media files.  This package understands superboxes (`jumb`)
and description boxes (`jumd`); every other box is an opaque DataBox.

Quick start:
    >>> from jumbf import SuperBox
    >>> jumbf = bytes.fromhex(
    ...     "0000002f" "6a756d62"
    ...     "00000027" "6a756d64" + "00" * 16 + "03"
    ...     "746573742e7375706572626f7800")
    >>> sbox, rest = SuperBox.from_slice(jumbf)
    >>> str(sbox.desc.label), sbox.desc.requestable, len(rest)
    ('test.superbox', True, 0)

Two parsers produce the same tree:

  - SuperBox.from_slice(buffer) borrows from an in-memory buffer (zero-copy).
  - SuperBox.from_reader(stream, max_depth=None) reads a binary stream into
    owned bytes, with a nesting ceiling.

SuperBoxBuilder / DataBoxBuilder go the other way.
"""

from __future__ import annotations

import logging

from ._builder import DataBoxBuilder, PlaceholderDataBox, SuperBoxBuilder
from ._constants import (
    DEFAULT_MAX_DEPTH,
    DESCRIPTION_BOX_TYPE,
    SUPER_BOX_TYPE,
)
from ._data_box import DataBox
from ._description_box import DescriptionBox
from ._errors import (
    ERR_BOUNDS,
    ERR_LIMIT_DEPTH,
    ERR_SOURCE,
    ERR_STRUCTURE,
    ERR_TRUNCATED,
    ERR_UTF8,
    BoundsError,
    EncodingError,
    JumbfError,
    RecursionLimitError,
    SourceError,
    StructureError,
    TruncationError,
)
from ._header import BoxHeader, BoxType, decode_header, encode_header
from ._input_data import InputData, Label
from ._reader import SharedReader
from ._super_box import ChildBox, SuperBox

__version__ = "0.4.1"

logging.getLogger(__name__).addHandler(logging.NullHandler())

__all__ = [
    # Model
    "BoxType",
    "BoxHeader",
    "InputData",
    "Label",
    "DataBox",
    "DescriptionBox",
    "SuperBox",
    "ChildBox",
    "SharedReader",
    # Builders
    "DataBoxBuilder",
    "SuperBoxBuilder",
    "PlaceholderDataBox",
    # Header codec
    "decode_header",
    "encode_header",
    # Constants
    "SUPER_BOX_TYPE",
    "DESCRIPTION_BOX_TYPE",
    "DEFAULT_MAX_DEPTH",
    # Exceptions
    "JumbfError",
    "TruncationError",
    "StructureError",
    "BoundsError",
    "EncodingError",
    "RecursionLimitError",
    "SourceError",
    # Error codes
    "ERR_TRUNCATED",
    "ERR_STRUCTURE",
    "ERR_BOUNDS",
    "ERR_UTF8",
    "ERR_LIMIT_DEPTH",
    "ERR_SOURCE",
]

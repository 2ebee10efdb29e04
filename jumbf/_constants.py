"""JUMBF constants: box types, header layout, toggle bits and limits.

References: ISO/IEC 19566-5 §A (box syntax) and §B (description box).
"""

from __future__ import annotations

__format_version__ = "ISO/IEC 19566-5:2023"

# ── Box types (4-byte identifiers) ───────────────────────────
SUPER_BOX_TYPE = b"jumb"
DESCRIPTION_BOX_TYPE = b"jumd"

# ── Box header layout ────────────────────────────────────────
# Compact header: uint32be size + 4-byte type.
# Extended header: uint32be 1 + 4-byte type + uint64be size.
HEADER_SIZE: int = 8
EXTENDED_HEADER_SIZE: int = 16

SIZE_TO_END: int = 0      # payload runs to the end of the enclosing scope
SIZE_EXTENDED: int = 1    # an 8-byte extended size follows the type

MAX_COMPACT_SIZE: int = 0xFFFFFFFF
MAX_EXTENDED_SIZE: int = 0xFFFFFFFFFFFFFFFF

# ── Description box layout ───────────────────────────────────
UUID_SIZE: int = 16
HASH_SIZE: int = 32
ID_SIZE: int = 4
MAX_ID: int = 0xFFFFFFFF

# Toggle bits.  Bits 5–7 are reserved and ignored on decode.
TOGGLE_REQUESTABLE: int = 0x01
TOGGLE_LABEL: int = 0x02
TOGGLE_ID: int = 0x04
TOGGLE_HASH: int = 0x08
TOGGLE_PRIVATE: int = 0x10

# ── Limits ───────────────────────────────────────────────────
# The root superbox is depth 1.  Each nested superbox adds one.
DEFAULT_MAX_DEPTH: int = 64

# Upper bound on a single read() against a streaming source.
READ_CHUNK_SIZE: int = 65_536

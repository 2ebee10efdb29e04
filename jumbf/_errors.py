"""JUMBF error codes and exception classes.

Every parse failure is reported as a JumbfError subclass.  The `.code`
attribute is one of the ERR_* strings below and is what the conformance
vectors compare against, so it must stay stable across releases.

The split between codes lets a caller tell "this is not JUMBF at all"
(ERR_STRUCTURE at the root) from "this JUMBF is truncated or corrupt"
(ERR_TRUNCATED / ERR_BOUNDS) from "this input is pathologically deep"
(ERR_LIMIT_DEPTH).
"""

from __future__ import annotations

from typing import Optional

# ── Error codes ──────────────────────────────────────────────

ERR_TRUNCATED: str = "ERR_TRUNCATED"      # fewer bytes than a field needs
ERR_STRUCTURE: str = "ERR_STRUCTURE"      # jumb/jumd expected, found another
ERR_BOUNDS: str = "ERR_BOUNDS"            # declared size overruns its scope
ERR_UTF8: str = "ERR_UTF8"                # label is not valid UTF-8
ERR_LIMIT_DEPTH: str = "ERR_LIMIT_DEPTH"  # superbox nesting exceeds max_depth
ERR_SOURCE: str = "ERR_SOURCE"            # the byte source raised an OSError

ERROR_CODES = (
    ERR_TRUNCATED,
    ERR_STRUCTURE,
    ERR_BOUNDS,
    ERR_UTF8,
    ERR_LIMIT_DEPTH,
    ERR_SOURCE,
)


class JumbfError(Exception):
    """Base exception for JUMBF parse errors.

    Catch this to handle any failure from the parsers; inspect `.code` (or
    catch a subclass) to find out which structural expectation failed.
    """

    code: str = ""

    def __init__(self, code: str, msg: str = "") -> None:
        super().__init__(msg or code)
        self.code = code


class TruncationError(JumbfError):
    """Fewer bytes were available than a declared or required field needs."""

    def __init__(self, msg: str = "", *, needed: Optional[int] = None) -> None:
        super().__init__(ERR_TRUNCATED, msg)
        self.needed = needed


class StructureError(JumbfError):
    """A `jumb` or `jumd` box was required at a fixed position but absent."""

    def __init__(self, msg: str = "", *, expected: bytes = b"",
                 found: Optional[bytes] = None) -> None:
        super().__init__(ERR_STRUCTURE, msg)
        self.expected = expected
        self.found = found


class BoundsError(JumbfError):
    """A declared box size is impossible or overruns the enclosing scope."""

    def __init__(self, msg: str = "") -> None:
        super().__init__(ERR_BOUNDS, msg)


class EncodingError(JumbfError):
    """A description box label is not valid UTF-8."""

    def __init__(self, msg: str = "") -> None:
        super().__init__(ERR_UTF8, msg)


class RecursionLimitError(JumbfError):
    """Superbox nesting went deeper than the configured ceiling."""

    def __init__(self, msg: str = "", *, max_depth: Optional[int] = None) -> None:
        super().__init__(ERR_LIMIT_DEPTH, msg)
        self.max_depth = max_depth


class SourceError(JumbfError):
    """The underlying byte source failed.

    The original OSError is available as `__cause__` and is never retried.
    """

    def __init__(self, msg: str = "") -> None:
        super().__init__(ERR_SOURCE, msg)


"""Error taxonomy for the scanning engine.

There are exactly two ways a scan can fail:

- PatternDefinitionError: a malformed catalog entry. Fatal, raised while the
  catalog is loaded or compiled, never mid-scan.
- DecodeError: a single file could not be read as text. Recovered by the
  scanner facade, which skips the file and counts it.

Callers branch on ``ScanError.kind`` rather than parsing messages.

Provides:
- ScanErrorKind: Closed set of error kinds
- ScanError: Base exception carrying a kind
- PatternDefinitionError: Malformed pattern definition
- DecodeError: Undecodable file content
"""

from enum import Enum


class ScanErrorKind(str, Enum):
    """Kind of scan error."""

    PATTERN_DEFINITION = "pattern_definition"
    DECODE = "decode"


class ScanError(Exception):
    """Base class for scanning engine errors."""

    kind: ScanErrorKind

    def __init__(self, kind: ScanErrorKind, message: str):
        super().__init__(message)
        self.kind = kind
        self.message = message


class PatternDefinitionError(ScanError):
    """A catalog entry is malformed (bad regex, bad field, duplicate id).

    Attributes:
        pattern_id: Offending pattern id, or None when the catalog as a whole
            could not be parsed
        reason: What is wrong with it
    """

    def __init__(self, pattern_id: str | None, reason: str):
        label = pattern_id or "<catalog>"
        super().__init__(
            ScanErrorKind.PATTERN_DEFINITION,
            f"Invalid pattern definition {label}: {reason}",
        )
        self.pattern_id = pattern_id
        self.reason = reason


class DecodeError(ScanError):
    """File content could not be decoded as text.

    Attributes:
        path: Repository-relative path of the file
        reason: Why decoding failed
    """

    def __init__(self, path: str, reason: str):
        super().__init__(ScanErrorKind.DECODE, f"Cannot decode {path}: {reason}")
        self.path = path
        self.reason = reason

"""codesentry: pattern-based security scanning for source files and diffs.

Example:
    >>> from codesentry import ScanInput, scan
    >>> result = scan(ScanInput.from_texts({"app.py": source}))
    >>> result.counts
    {'critical': 0, 'high': 1, 'medium': 0, 'low': 0}
"""

from .core import (
    Confidence,
    DecodeError,
    FileInput,
    Finding,
    PatternCatalog,
    PatternDefinitionError,
    ScanError,
    ScanErrorKind,
    ScanInput,
    ScanResult,
    Severity,
    default_catalog,
    load_catalog,
)
from .prefilter import ChangedFile, needs_security_scan
from .scanner import SecurityScanner, scan

__all__ = [
    "Confidence",
    "DecodeError",
    "FileInput",
    "Finding",
    "PatternCatalog",
    "PatternDefinitionError",
    "ScanError",
    "ScanErrorKind",
    "ScanInput",
    "ScanResult",
    "Severity",
    "default_catalog",
    "load_catalog",
    "ChangedFile",
    "needs_security_scan",
    "SecurityScanner",
    "scan",
]

"""Core scanning engine.

Provides:
- Value types for inputs, matches, findings and results
- Pattern catalog loading and compilation
- Confidence scoring and severity resolution
- Finding aggregation (dedup + canonical order)
- Unified diff intake and user ignore rules
"""

from .aggregate import aggregate
from .catalog import PatternCatalog, default_catalog, load_catalog
from .errors import DecodeError, PatternDefinitionError, ScanError, ScanErrorKind
from .types import (
    Confidence,
    DiffHunk,
    FileInput,
    Finding,
    PatternDefinition,
    PatternFamily,
    ScanInput,
    ScanResult,
    Severity,
)

__all__ = [
    "aggregate",
    "PatternCatalog",
    "default_catalog",
    "load_catalog",
    "DecodeError",
    "PatternDefinitionError",
    "ScanError",
    "ScanErrorKind",
    "Confidence",
    "DiffHunk",
    "FileInput",
    "Finding",
    "PatternDefinition",
    "PatternFamily",
    "ScanInput",
    "ScanResult",
    "Severity",
]

"""Value types shared by every stage of a scan.

All models are frozen pydantic models: a catalog entry is never mutated after
load, and Findings/ScanResults are transient values created by one scan call.

Provides:
- Severity, Confidence: Ordered rating enums
- PatternFamily: Vulnerability family a pattern belongs to
- CredentialShape, PatternDefinition: Catalog entry types
- DiffHunk, FileInput, ScanInput: What the caller hands to the scanner
- ScanContext, RawMatch: Engine-level match data
- Finding, ScanResult: What the scanner hands back
"""

import hashlib
import re
from enum import Enum

from pydantic import BaseModel, ConfigDict, Field, field_validator, model_validator


class Severity(str, Enum):
    """Impact rating of a finding."""

    CRITICAL = "critical"
    HIGH = "high"
    MEDIUM = "medium"
    LOW = "low"

    @property
    def rank(self) -> int:
        return _SEVERITY_RANK[self]


_SEVERITY_RANK = {
    Severity.LOW: 0,
    Severity.MEDIUM: 1,
    Severity.HIGH: 2,
    Severity.CRITICAL: 3,
}


class Confidence(str, Enum):
    """Estimated likelihood that a finding is a true positive.

    HIGH: Matched text has the shape of a real issue
    MEDIUM: Plausible, worth a manual look
    LOW: Likely noise (test data, placeholders)
    """

    HIGH = "high"
    MEDIUM = "medium"
    LOW = "low"

    @property
    def rank(self) -> int:
        return _CONFIDENCE_ORDER.index(self)

    def promote(self, ceiling: "Confidence") -> "Confidence":
        """One tier up, never past ``ceiling``."""
        if self.rank >= ceiling.rank:
            return self
        return _CONFIDENCE_ORDER[self.rank + 1]

    def demote(self) -> "Confidence":
        """One tier down, floored at LOW."""
        return _CONFIDENCE_ORDER[max(self.rank - 1, 0)]


_CONFIDENCE_ORDER = [Confidence.LOW, Confidence.MEDIUM, Confidence.HIGH]


class PatternFamily(str, Enum):
    """Vulnerability family; drives scoring rules and documentation."""

    HARDCODED_SECRET = "hardcoded-secret"
    SQL_INJECTION = "sql-injection"
    COMMAND_INJECTION = "command-injection"
    WEAK_CRYPTO = "weak-crypto"
    PATH_TRAVERSAL = "path-traversal"
    UNESCAPED_OUTPUT = "unescaped-output"


_PATTERN_ID = re.compile(r"^[a-z0-9]+(?:-[a-z0-9]+)*$")
_CWE_ID = re.compile(r"^CWE-\d+$")


class CredentialShape(BaseModel):
    """Shape of a genuine credential for a secret pattern.

    A value matches when it starts with one of ``prefixes``, or when it is at
    least ``min_length`` long and uses at least ``min_char_classes`` of
    (lowercase, uppercase, digit, symbol).
    """

    model_config = ConfigDict(frozen=True, extra="forbid")

    min_length: int = Field(default=20, ge=1)
    min_char_classes: int = Field(default=2, ge=1, le=4)
    prefixes: tuple[str, ...] = ()


class PatternDefinition(BaseModel):
    """A single vulnerability signature in the catalog.

    Attributes:
        id: Stable kebab-case identifier (e.g. "sql-injection-concat")
        family: Vulnerability family
        cwe: CWE identifier ("CWE-89")
        owasp: OWASP Top-10 category ("A03:2021-Injection")
        message: Human-readable description used for every finding
        matchers: Regex sources; an optional named group ``secret`` marks the
            credential value inside the match
        severity: Default severity
        confidence: Default confidence
        max_confidence: Ceiling for confidence promotion
        file_extensions: Extensions the pattern applies to (empty = all)
        languages: Language hints the pattern applies to (empty = all)
        exclude_keywords: Line substrings that suppress a match
        credential_shape: Shape of a real credential, for promotion
    """

    model_config = ConfigDict(frozen=True, extra="forbid")

    id: str
    family: PatternFamily
    cwe: str
    owasp: str
    message: str
    matchers: tuple[str, ...] = Field(min_length=1)
    severity: Severity
    confidence: Confidence
    max_confidence: Confidence | None = None
    file_extensions: tuple[str, ...] = ()
    languages: tuple[str, ...] = ()
    exclude_keywords: tuple[str, ...] = ()
    credential_shape: CredentialShape | None = None

    @field_validator("id")
    @classmethod
    def _check_id(cls, value: str) -> str:
        if not _PATTERN_ID.match(value):
            raise ValueError(f"pattern id must be kebab-case, got {value!r}")
        return value

    @field_validator("cwe")
    @classmethod
    def _check_cwe(cls, value: str) -> str:
        if not _CWE_ID.match(value):
            raise ValueError(f"cwe must look like 'CWE-<n>', got {value!r}")
        return value

    @field_validator("file_extensions")
    @classmethod
    def _normalize_extensions(cls, value: tuple[str, ...]) -> tuple[str, ...]:
        return tuple(
            ext.lower() if ext.startswith(".") else f".{ext.lower()}" for ext in value
        )

    @field_validator("languages")
    @classmethod
    def _normalize_languages(cls, value: tuple[str, ...]) -> tuple[str, ...]:
        return tuple(lang.lower() for lang in value)

    @model_validator(mode="after")
    def _check_ceiling(self) -> "PatternDefinition":
        if self.max_confidence is not None and self.max_confidence.rank < self.confidence.rank:
            raise ValueError("max_confidence must not be below confidence")
        return self

    @property
    def ceiling(self) -> Confidence:
        return self.max_confidence or self.confidence


class DiffHunk(BaseModel):
    """Lines added by one diff hunk, keyed by new-file line number."""

    model_config = ConfigDict(frozen=True)

    added_lines: dict[int, str]

    def segments(self) -> list[tuple[int, str]]:
        """Split added lines into contiguous runs.

        Returns:
            List of (first_line_number, text) pairs, one per run of
            consecutive line numbers
        """
        segments: list[tuple[int, str]] = []
        run: list[str] = []
        run_start = prev = None
        for line_number in sorted(self.added_lines):
            if prev is not None and line_number != prev + 1:
                segments.append((run_start, "\n".join(run)))
                run = []
                run_start = None
            if run_start is None:
                run_start = line_number
            run.append(self.added_lines[line_number])
            prev = line_number
        if run:
            segments.append((run_start, "\n".join(run)))
        return segments


class FileInput(BaseModel):
    """One file handed to the scanner: full content or diff hunks.

    Attributes:
        content: Full file text, or raw bytes to be decoded as UTF-8
        hunks: Added-line hunks from a diff (instead of ``content``)
        language: Optional language hint ("python", "rust", ...)
        is_test_fixture: Caller knows this path is test/fixture data
    """

    model_config = ConfigDict(frozen=True)

    content: str | bytes | None = None
    hunks: tuple[DiffHunk, ...] | None = None
    language: str | None = None
    is_test_fixture: bool = False

    @model_validator(mode="after")
    def _one_source(self) -> "FileInput":
        if (self.content is None) == (self.hunks is None):
            raise ValueError("exactly one of content or hunks must be set")
        return self


class ScanInput(BaseModel):
    """Batch of files to scan, keyed by repository-relative path."""

    model_config = ConfigDict(frozen=True)

    files: dict[str, FileInput] = Field(default_factory=dict)

    @classmethod
    def from_texts(cls, texts: dict[str, str | bytes]) -> "ScanInput":
        """Build an input from a plain ``{path: content}`` mapping."""
        return cls(files={path: FileInput(content=text) for path, text in texts.items()})

    @classmethod
    def from_unified_diff(cls, diff: str) -> "ScanInput":
        """Build an input from the added lines of a unified diff."""
        from codesentry.core.diff import parse_unified_diff

        return cls(
            files={
                path: FileInput(hunks=tuple(hunks))
                for path, hunks in parse_unified_diff(diff).items()
            }
        )


class ScanContext(BaseModel):
    """Per-file facts the engine and scorer look at."""

    model_config = ConfigDict(frozen=True)

    path: str
    language: str | None = None
    is_test_fixture: bool = False


class RawMatch(BaseModel):
    """A matcher hit before scoring.

    ``line_text`` holds the full text of every line the match touches; the
    scanner builds the excerpt from it.
    """

    model_config = ConfigDict(frozen=True)

    pattern_id: str
    file_path: str
    start: int
    end: int
    start_line: int
    end_line: int
    matched_text: str
    line_text: str
    secret: str | None = None


class Finding(BaseModel):
    """One reported potential vulnerability.

    Attributes:
        pattern_id: Pattern that matched
        file_path: Repository-relative path
        start_line: First line (1-indexed)
        end_line: Last line, inclusive
        excerpt: Truncated source excerpt with secrets redacted
        severity: Resolved severity
        confidence: Scored confidence
        cwe: CWE identifier
        owasp: OWASP Top-10 category
        message: Human-readable description
    """

    model_config = ConfigDict(frozen=True)

    pattern_id: str
    file_path: str
    start_line: int = Field(ge=1)
    end_line: int = Field(ge=1)
    excerpt: str
    severity: Severity
    confidence: Confidence
    cwe: str
    owasp: str
    message: str

    def overlaps(self, other: "Finding") -> bool:
        return self.start_line <= other.end_line and other.start_line <= self.end_line

    def fingerprint(self) -> str:
        """Stable SHA-256 of (file path, start line, pattern id)."""
        raw = f"{self.file_path}:{self.start_line}:{self.pattern_id}"
        return hashlib.sha256(raw.encode("utf-8")).hexdigest()


class ScanResult(BaseModel):
    """Ordered findings of one scan plus summary counts.

    Attributes:
        findings: Findings ordered by severity (desc), path, line
        counts: Number of findings per severity, every severity present
        skipped_files: Files skipped because they could not be decoded
    """

    model_config = ConfigDict(frozen=True)

    findings: tuple[Finding, ...] = ()
    counts: dict[str, int] = Field(default_factory=lambda: severity_counts(()))
    skipped_files: int = Field(default=0, ge=0)

    @classmethod
    def empty(cls) -> "ScanResult":
        return cls()

    @property
    def total(self) -> int:
        return len(self.findings)


def severity_counts(findings) -> dict[str, int]:
    """Count findings per severity, highest first, zeros included."""
    counts = {severity.value: 0 for severity in Severity}
    for finding in findings:
        counts[finding.severity.value] += 1
    return counts

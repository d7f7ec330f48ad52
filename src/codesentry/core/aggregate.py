"""Deduplication and canonical ordering of findings.

Findings of the same pattern in the same file are merged when their line
ranges overlap or touch (``next.start_line <= current.end_line + 1``). A
merged finding keeps the earliest excerpt and the highest confidence and
severity of its members. The result is ordered by severity (descending), file
path, start line, then pattern id and end line so the order is total.

Aggregation is idempotent: a ScanResult fed back in comes out unchanged.

Provides:
- aggregate: Merge findings into an ordered ScanResult
- sort_key: Canonical ordering key
"""

from collections.abc import Iterable
from itertools import groupby

from codesentry.core.types import Finding, ScanResult, severity_counts


def sort_key(finding: Finding) -> tuple:
    return (
        -finding.severity.rank,
        finding.file_path,
        finding.start_line,
        finding.pattern_id,
        finding.end_line,
    )


def _group_key(finding: Finding) -> tuple[str, str]:
    return (finding.file_path, finding.pattern_id)


def _member_key(finding: Finding) -> tuple:
    # Ties on position prefer the strongest member, then a stable excerpt.
    return (
        finding.start_line,
        finding.end_line,
        -finding.severity.rank,
        -finding.confidence.rank,
        finding.excerpt,
    )


def _merge(current: Finding, other: Finding) -> Finding:
    return current.model_copy(
        update={
            "end_line": max(current.end_line, other.end_line),
            "severity": max(current.severity, other.severity, key=lambda s: s.rank),
            "confidence": max(current.confidence, other.confidence, key=lambda c: c.rank),
        }
    )


def _merge_group(findings: list[Finding]) -> list[Finding]:
    merged: list[Finding] = []
    for finding in sorted(findings, key=_member_key):
        if merged and finding.start_line <= merged[-1].end_line + 1:
            merged[-1] = _merge(merged[-1], finding)
        else:
            merged.append(finding)
    return merged


def aggregate(
    findings: Iterable[Finding] | ScanResult,
    skipped_files: int = 0,
) -> ScanResult:
    """Merge findings and build an ordered ScanResult.

    Args:
        findings: Scored findings, or an existing ScanResult
        skipped_files: Undecodable files to report (added to the skipped
            count of a ScanResult passed as ``findings``)

    Returns:
        ScanResult with merged, canonically ordered findings and counts
    """
    if isinstance(findings, ScanResult):
        skipped_files += findings.skipped_files
        findings = findings.findings

    merged: list[Finding] = []
    for _, group in groupby(sorted(findings, key=_group_key), key=_group_key):
        merged.extend(_merge_group(list(group)))

    ordered = tuple(sorted(merged, key=sort_key))
    return ScanResult(
        findings=ordered,
        counts=severity_counts(ordered),
        skipped_files=skipped_files,
    )

"""Severity resolution from pattern default and scored confidence.

Severity is looked up in a fixed table keyed by (pattern default severity,
confidence tier). The table is exhaustive, so every pattern family resolves
deterministically:

    default \\ confidence   high       medium   low
    critical               critical   high     medium
    high                   high       medium   medium
    medium                 medium     medium   low
    low                    low        low      low

Low confidence never resolves above MEDIUM, whatever the default, so
low-confidence noise is never reported as critical.

Shipped family defaults (see data/patterns.yaml):
- hardcoded-secret: high
- sql-injection: high
- command-injection: critical
- weak-crypto: medium
- path-traversal: high
- unescaped-output: high

Provides:
- SEVERITY_TABLE: The (default, confidence) -> severity table
- FAMILY_DEFAULT_SEVERITY: Default severity per pattern family
- resolve: Resolve a pattern's severity for a confidence tier
- cap_for_confidence: The low-confidence ceiling
"""

from codesentry.core.types import Confidence, PatternDefinition, PatternFamily, Severity

SEVERITY_TABLE: dict[tuple[Severity, Confidence], Severity] = {
    (Severity.CRITICAL, Confidence.HIGH): Severity.CRITICAL,
    (Severity.CRITICAL, Confidence.MEDIUM): Severity.HIGH,
    (Severity.CRITICAL, Confidence.LOW): Severity.MEDIUM,
    (Severity.HIGH, Confidence.HIGH): Severity.HIGH,
    (Severity.HIGH, Confidence.MEDIUM): Severity.MEDIUM,
    (Severity.HIGH, Confidence.LOW): Severity.MEDIUM,
    (Severity.MEDIUM, Confidence.HIGH): Severity.MEDIUM,
    (Severity.MEDIUM, Confidence.MEDIUM): Severity.MEDIUM,
    (Severity.MEDIUM, Confidence.LOW): Severity.LOW,
    (Severity.LOW, Confidence.HIGH): Severity.LOW,
    (Severity.LOW, Confidence.MEDIUM): Severity.LOW,
    (Severity.LOW, Confidence.LOW): Severity.LOW,
}

FAMILY_DEFAULT_SEVERITY: dict[PatternFamily, Severity] = {
    PatternFamily.HARDCODED_SECRET: Severity.HIGH,
    PatternFamily.SQL_INJECTION: Severity.HIGH,
    PatternFamily.COMMAND_INJECTION: Severity.CRITICAL,
    PatternFamily.WEAK_CRYPTO: Severity.MEDIUM,
    PatternFamily.PATH_TRAVERSAL: Severity.HIGH,
    PatternFamily.UNESCAPED_OUTPUT: Severity.HIGH,
}


def cap_for_confidence(severity: Severity, confidence: Confidence) -> Severity:
    """Clamp severity to MEDIUM when confidence is LOW."""
    if confidence == Confidence.LOW and severity.rank > Severity.MEDIUM.rank:
        return Severity.MEDIUM
    return severity


def resolve(pattern: PatternDefinition, confidence: Confidence) -> Severity:
    """Resolve the final severity for a scored match.

    Args:
        pattern: Pattern that matched (its ``severity`` is the default)
        confidence: Confidence after scoring

    Returns:
        Final severity

    Example:
        >>> resolve(catalog.get("command-injection"), Confidence.MEDIUM)
        <Severity.HIGH: 'high'>
    """
    return cap_for_confidence(SEVERITY_TABLE[(pattern.severity, confidence)], confidence)

"""Confidence scoring for raw matches.

Scoring starts at the pattern's default confidence and walks the ordered rule
table from heuristics.yaml. Each rule names a predicate kind and an action:

- promote: one tier up, never past the pattern's ``max_confidence``
- demote: one tier down, floored at LOW

If any demotion fired, the result is capped at MEDIUM. The shipped order is
credential-shape, test-path, fixture-flag, placeholder-token, low-variety,
low-class-variety.
New rules over existing predicate kinds are added in YAML only; a new kind
means adding one function to ``PREDICATES``.

Provides:
- score: Scored confidence for one raw match
- is_test_path: Test/fixture path convention check
- looks_like_placeholder: Placeholder token check
- char_classes: Number of character classes in a value
- matches_credential_shape: Credential shape check
- PREDICATES: Predicate registry keyed by rule kind
"""

from fnmatch import fnmatch
from typing import Callable

from codesentry.core.catalog import Heuristics
from codesentry.core.types import (
    Confidence,
    CredentialShape,
    PatternDefinition,
    RawMatch,
    ScanContext,
)


def char_classes(value: str) -> int:
    """Count character classes used: lowercase, uppercase, digit, other."""
    classes = [
        any(c.islower() for c in value),
        any(c.isupper() for c in value),
        any(c.isdigit() for c in value),
        any(not c.isalnum() for c in value),
    ]
    return sum(classes)


def is_test_path(path: str, heuristics: Heuristics) -> bool:
    """Check a path against the test/fixture naming conventions."""
    normalized = path.lower().replace("\\", "/")
    if normalized.startswith("./"):
        normalized = normalized[2:]
    normalized = "/" + normalized.lstrip("/")
    if any(f"/{segment.strip('/')}/" in normalized for segment in heuristics.test_path_segments):
        return True
    name = normalized.rsplit("/", 1)[-1]
    return any(fnmatch(name, glob) for glob in heuristics.test_file_globs)


def looks_like_placeholder(value: str, heuristics: Heuristics) -> bool:
    lowered = value.lower()
    return any(token in lowered for token in heuristics.placeholder_tokens)


def matches_credential_shape(value: str, shape: CredentialShape) -> bool:
    """Check whether a value has the shape of a real credential."""
    if any(value.startswith(prefix) for prefix in shape.prefixes):
        return True
    return len(value) >= shape.min_length and char_classes(value) >= shape.min_char_classes


def _value(match: RawMatch) -> str:
    return match.secret if match.secret is not None else match.matched_text


def _credential_shape(match, pattern, context, heuristics) -> bool:
    if pattern.credential_shape is None:
        return False
    value = _value(match)
    if looks_like_placeholder(value, heuristics):
        return False
    return matches_credential_shape(value, pattern.credential_shape)


def _test_path(match, pattern, context, heuristics) -> bool:
    return is_test_path(context.path, heuristics)


def _fixture_flag(match, pattern, context, heuristics) -> bool:
    return context.is_test_fixture


def _placeholder_token(match, pattern, context, heuristics) -> bool:
    return looks_like_placeholder(_value(match), heuristics)


def _low_variety(match, pattern, context, heuristics) -> bool:
    return len(set(_value(match))) < heuristics.min_distinct_chars


def _low_char_class_variety(match, pattern, context, heuristics) -> bool:
    return char_classes(_value(match)) < heuristics.min_char_classes_variety


Predicate = Callable[[RawMatch, PatternDefinition, ScanContext, Heuristics], bool]

PREDICATES: dict[str, Predicate] = {
    "credential_shape": _credential_shape,
    "test_path": _test_path,
    "fixture_flag": _fixture_flag,
    "placeholder_token": _placeholder_token,
    "low_variety": _low_variety,
    "low_char_class_variety": _low_char_class_variety,
}


def score(
    match: RawMatch,
    pattern: PatternDefinition,
    context: ScanContext,
    heuristics: Heuristics,
) -> Confidence:
    """Score a raw match.

    Args:
        match: Raw match from the engine
        pattern: Definition of the pattern that matched
        context: File context of the match
        heuristics: Rule table and keyword tables from the catalog

    Returns:
        Adjusted confidence
    """
    confidence = pattern.confidence
    demoted = False

    for rule in heuristics.rules:
        if not rule.applies_to(pattern.family):
            continue
        if not PREDICATES[rule.kind](match, pattern, context, heuristics):
            continue
        if rule.action == "promote":
            confidence = confidence.promote(pattern.ceiling)
        else:
            confidence = confidence.demote()
            demoted = True

    if demoted and confidence.rank > Confidence.MEDIUM.rank:
        confidence = Confidence.MEDIUM
    return confidence

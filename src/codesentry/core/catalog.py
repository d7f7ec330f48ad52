"""Pattern catalog: vulnerability signatures plus confidence heuristics.

The catalog ships as two YAML files next to this module:

- data/patterns.yaml: the PatternDefinition list
- data/heuristics.yaml: the ordered confidence rule table and the keyword,
  path and threshold tables the scorer and pre-filter read

Both are validated through pydantic when loaded. Any problem surfaces as a
PatternDefinitionError before a single file is scanned. The resulting
PatternCatalog is frozen and is passed by reference into every scan.

Provides:
- ConfidenceRule, PrefilterTables, Heuristics: Tunable tables
- PatternCatalog: Immutable catalog value
- catalog_from_dicts: Build a catalog from already-parsed data
- load_catalog: Build a catalog from YAML text or the packaged files
- default_catalog: Process-wide cached catalog built from the packaged files
"""

from functools import lru_cache
from importlib.resources import files
from typing import Any, Literal

import structlog
import yaml
from pydantic import BaseModel, ConfigDict, Field, PrivateAttr, ValidationError, model_validator

from codesentry.core.errors import PatternDefinitionError
from codesentry.core.types import PatternDefinition, PatternFamily

logger = structlog.get_logger()

RuleKind = Literal[
    "credential_shape",
    "test_path",
    "fixture_flag",
    "placeholder_token",
    "low_variety",
    "low_char_class_variety",
]


class ConfidenceRule(BaseModel):
    """One row of the confidence rule table.

    Attributes:
        name: Rule name, for logs and docs
        kind: Which predicate evaluates the rule
        action: Move confidence one tier up or down when the predicate holds
        families: Pattern families the rule applies to (empty = all)
    """

    model_config = ConfigDict(frozen=True, extra="forbid")

    name: str
    kind: RuleKind
    action: Literal["promote", "demote"]
    families: tuple[PatternFamily, ...] = ()

    def applies_to(self, family: PatternFamily) -> bool:
        return not self.families or family in self.families


class PrefilterTables(BaseModel):
    """Keyword and extension tables for the pre-filter."""

    model_config = ConfigDict(frozen=True, extra="forbid")

    doc_extensions: tuple[str, ...] = ()
    doc_filenames: tuple[str, ...] = ()
    security_keywords: tuple[str, ...] = ()
    sensitive_path_keywords: tuple[str, ...] = ()


class Heuristics(BaseModel):
    """Tunable tables shipped alongside the patterns."""

    model_config = ConfigDict(frozen=True, extra="forbid")

    rules: tuple[ConfidenceRule, ...] = ()
    test_path_segments: tuple[str, ...] = ()
    test_file_globs: tuple[str, ...] = ()
    placeholder_tokens: tuple[str, ...] = ()
    min_distinct_chars: int = Field(default=6, ge=1)
    min_char_classes_variety: int = Field(default=2, ge=1, le=4)
    max_line_length: int = Field(default=4096, ge=1)
    prefilter: PrefilterTables = Field(default_factory=PrefilterTables)


class PatternCatalog(BaseModel):
    """Immutable set of pattern definitions and heuristics."""

    model_config = ConfigDict(frozen=True)

    patterns: tuple[PatternDefinition, ...]
    heuristics: Heuristics = Field(default_factory=Heuristics)

    _by_id: dict[str, PatternDefinition] = PrivateAttr(default_factory=dict)

    @model_validator(mode="after")
    def _unique_ids(self) -> "PatternCatalog":
        seen: set[str] = set()
        for pattern in self.patterns:
            if pattern.id in seen:
                raise PatternDefinitionError(pattern.id, "duplicate pattern id")
            seen.add(pattern.id)
        return self

    def model_post_init(self, __context: Any) -> None:
        self._by_id = {pattern.id: pattern for pattern in self.patterns}

    def get(self, pattern_id: str) -> PatternDefinition:
        """Look up a pattern by id.

        Raises:
            KeyError: If no pattern has that id
        """
        return self._by_id[pattern_id]

    @property
    def pattern_count(self) -> int:
        return len(self.patterns)

    @property
    def families(self) -> set[PatternFamily]:
        return {pattern.family for pattern in self.patterns}


def catalog_from_dicts(
    patterns: list[dict[str, Any]],
    heuristics: dict[str, Any] | None = None,
) -> PatternCatalog:
    """Validate parsed pattern and heuristics data into a catalog.

    Args:
        patterns: One dict per pattern definition
        heuristics: Heuristics table dict (defaults to empty tables)

    Returns:
        Frozen PatternCatalog

    Raises:
        PatternDefinitionError: If any entry fails validation
    """
    if not isinstance(patterns, list):
        raise PatternDefinitionError(None, "patterns must be a list")

    definitions = []
    for index, raw in enumerate(patterns):
        pattern_id = raw.get("id") if isinstance(raw, dict) else None
        try:
            definitions.append(PatternDefinition.model_validate(raw))
        except ValidationError as e:
            reason = "; ".join(
                f"{'.'.join(str(p) for p in err['loc']) or 'entry'}: {err['msg']}"
                for err in e.errors()
            )
            raise PatternDefinitionError(pattern_id or f"#{index}", reason) from e

    try:
        tables = Heuristics.model_validate(heuristics or {})
    except ValidationError as e:
        raise PatternDefinitionError(None, f"invalid heuristics: {e}") from e

    return PatternCatalog(patterns=tuple(definitions), heuristics=tables)


def _parse_yaml(text: str, what: str) -> Any:
    try:
        return yaml.safe_load(text)
    except yaml.YAMLError as e:
        raise PatternDefinitionError(None, f"{what} is not valid YAML: {e}") from e


def load_catalog(
    patterns_yaml: str | None = None,
    heuristics_yaml: str | None = None,
) -> PatternCatalog:
    """Load a catalog from YAML text, defaulting to the packaged files.

    Args:
        patterns_yaml: YAML document with a top-level ``patterns`` list
        heuristics_yaml: YAML document with the heuristics tables

    Returns:
        Frozen PatternCatalog

    Raises:
        PatternDefinitionError: If either document is malformed
    """
    data_dir = files("codesentry.core").joinpath("data")
    if patterns_yaml is None:
        patterns_yaml = data_dir.joinpath("patterns.yaml").read_text(encoding="utf-8")
    if heuristics_yaml is None:
        heuristics_yaml = data_dir.joinpath("heuristics.yaml").read_text(encoding="utf-8")

    pattern_doc = _parse_yaml(patterns_yaml, "pattern catalog")
    if not isinstance(pattern_doc, dict) or "patterns" not in pattern_doc:
        raise PatternDefinitionError(None, "pattern catalog needs a top-level 'patterns' list")

    heuristics_doc = _parse_yaml(heuristics_yaml, "heuristics") or {}
    if not isinstance(heuristics_doc, dict):
        raise PatternDefinitionError(None, "heuristics must be a mapping")

    catalog = catalog_from_dicts(pattern_doc["patterns"], heuristics_doc)
    logger.debug(
        "catalog_loaded",
        pattern_count=catalog.pattern_count,
        rule_count=len(catalog.heuristics.rules),
    )
    return catalog


@lru_cache(maxsize=1)
def default_catalog() -> PatternCatalog:
    """Catalog built from the packaged YAML files, loaded once per process."""
    return load_catalog()

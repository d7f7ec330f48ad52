"""Cheap gate deciding whether a change set warrants a security scan.

The gate is conservative: it answers False only when it is sure nothing
scannable changed, i.e. every changed file is documentation and nothing about
the change looks security-related. Anything unknown, binary, undecodable or
with lines too long to match counts as scan-worthy.

Provides:
- ChangedFile: Path (and optionally content) of one changed file
- needs_security_scan: The gate itself
"""

from collections.abc import Iterable
from functools import lru_cache

import structlog
from pydantic import BaseModel, ConfigDict

from codesentry.core.catalog import PatternCatalog, PrefilterTables, default_catalog
from codesentry.core.engine import (
    CompiledMatchers,
    any_match,
    compile_catalog,
    decode_content,
    longest_line,
)
from codesentry.core.errors import DecodeError
from codesentry.core.types import ScanContext

logger = structlog.get_logger()


class ChangedFile(BaseModel):
    """Changed-file metadata handed to the pre-filter.

    Attributes:
        path: Repository-relative path
        content: New content, when the caller already has it
    """

    model_config = ConfigDict(frozen=True)

    path: str
    content: str | bytes | None = None


@lru_cache(maxsize=1)
def _default_matchers() -> CompiledMatchers:
    return compile_catalog(default_catalog())


def _is_documentation(path: str, tables: PrefilterTables) -> bool:
    name = path.lower().replace("\\", "/").rsplit("/", 1)[-1]
    if any(name.endswith(ext) for ext in tables.doc_extensions):
        return True
    return "." not in name and name in tables.doc_filenames


def _has_keyword(text: str, keywords: Iterable[str]) -> bool:
    lowered = text.lower()
    return any(keyword in lowered for keyword in keywords)


def _scan_reason(
    file: ChangedFile,
    tables: PrefilterTables,
    compiled: CompiledMatchers,
) -> str | None:
    """Why this file needs a scan, or None if it does not."""
    if _has_keyword(file.path, tables.sensitive_path_keywords):
        return "sensitive_path"
    if not _is_documentation(file.path, tables):
        return "non_documentation_file"
    if file.content is None:
        return None

    try:
        text = decode_content(file.path, file.content)
    except DecodeError:
        return "undecodable_content"
    if longest_line(text) > compiled.catalog.heuristics.max_line_length:
        return "oversized_line"
    if any_match(compiled, text, ScanContext(path=file.path)):
        return "pattern_in_documentation"
    return None


def needs_security_scan(
    changed_files: Iterable[ChangedFile | str],
    labels: Iterable[str] = (),
    description: str = "",
    catalog: PatternCatalog | None = None,
) -> bool:
    """Decide whether a change set should be scanned.

    Args:
        changed_files: Changed files, as ChangedFile or bare paths
        labels: Issue/PR labels
        description: PR title and body
        catalog: Catalog whose keyword tables and patterns are used
            (defaults to the packaged catalog)

    Returns:
        True if a scan is warranted. False only for an empty change set or
        one made solely of documentation files with no security trigger.

    Example:
        >>> needs_security_scan(["README.md", "docs/guide.md"])
        False
        >>> needs_security_scan(["README.md", "src/main.rs"])
        True
    """
    if catalog is None:
        catalog = default_catalog()
        compiled = _default_matchers()
    else:
        compiled = compile_catalog(catalog)
    tables = catalog.heuristics.prefilter

    if any(_has_keyword(label, tables.security_keywords) for label in labels):
        logger.debug("security_scan_needed", reason="security_label")
        return True
    if _has_keyword(description, tables.security_keywords):
        logger.debug("security_scan_needed", reason="security_description")
        return True

    for file in changed_files:
        if isinstance(file, str):
            file = ChangedFile(path=file)
        reason = _scan_reason(file, tables, compiled)
        if reason is not None:
            logger.debug("security_scan_needed", reason=reason, path=file.path)
            return True

    return False

"""Pattern engine: compiles the catalog and runs matchers over text.

Matchers are plain ``re`` patterns compiled with MULTILINE, so a match can
span lines (e.g. a SQL string concatenated on the next line). Every matcher
must pass a linear-time guard when compiled: nested unbounded quantifiers
like ``(a+)+`` and backreferences are rejected, and catalog patterns use
bounded repetition (``{0,120}``) for wildcards, kept inside one string
literal where they precede a keyword. Lines longer than the catalog's
``max_line_length`` are blanked before matching (offsets and line numbers are
kept), so no single line can hold a worker for long.

Provides:
- CompiledPattern, CompiledMatchers: Compiled catalog
- compile_catalog: Validate and compile every matcher
- check_linear_time: The load-time regex guard
- decode_content: Turn file content into text or raise DecodeError
- longest_line: Length of the longest line in a text
- mask_long_lines: Blank lines too long to match
- is_applicable: Applicability predicate (extension / language)
- scan_text: Run applicable matchers over text
- any_match: Short-circuit variant used by the pre-filter
"""

import re
from bisect import bisect_right
from dataclasses import dataclass

import structlog

from codesentry.core.catalog import PatternCatalog
from codesentry.core.errors import DecodeError, PatternDefinitionError
from codesentry.core.types import PatternDefinition, RawMatch, ScanContext

logger = structlog.get_logger()

SECRET_GROUP = "secret"

_BACKREFERENCE = re.compile(r"\\[1-9]|\(\?P=")
_UNBOUNDED_BRACE = re.compile(r"\{\d*,\}")


@dataclass(frozen=True)
class CompiledPattern:
    """A pattern definition with its compiled matchers."""

    definition: PatternDefinition
    regexes: tuple[re.Pattern, ...]


@dataclass(frozen=True)
class CompiledMatchers:
    """Compiled form of a whole catalog; read-only, shared across scans."""

    catalog: PatternCatalog
    patterns: tuple[CompiledPattern, ...]

    def __len__(self) -> int:
        return len(self.patterns)


def check_linear_time(source: str) -> None:
    """Reject regex constructs that can backtrack catastrophically.

    Args:
        source: Regex source

    Raises:
        ValueError: On a backreference, or on a quantified group that itself
            contains an unbounded quantifier
    """
    if _BACKREFERENCE.search(source):
        raise ValueError("backreferences are not allowed")

    # One flag per open group: does it contain an unbounded quantifier?
    stack = [False]
    i = 0
    n = len(source)
    while i < n:
        char = source[i]
        if char == "\\":
            i += 2
            continue
        if char == "[":
            # Skip the character class, including a leading ']' or '^]'
            j = i + 1
            if j < n and source[j] == "^":
                j += 1
            if j < n and source[j] == "]":
                j += 1
            while j < n and source[j] != "]":
                j += 2 if source[j] == "\\" else 1
            i = j + 1
            continue
        if char == "(":
            stack.append(False)
        elif char == ")":
            if len(stack) == 1:
                raise ValueError("unbalanced parenthesis")
            inner_unbounded = stack.pop()
            following = source[i + 1] if i + 1 < n else ""
            if inner_unbounded and following in ("*", "+", "{"):
                raise ValueError("nested quantifiers can backtrack catastrophically")
            stack[-1] = stack[-1] or inner_unbounded
        elif char in ("*", "+"):
            stack[-1] = True
        elif char == "{" and _UNBOUNDED_BRACE.match(source, i):
            stack[-1] = True
        i += 1


def compile_catalog(catalog: PatternCatalog) -> CompiledMatchers:
    """Compile every matcher in the catalog.

    Args:
        catalog: Validated pattern catalog

    Returns:
        CompiledMatchers ready to be shared across scans

    Raises:
        PatternDefinitionError: If any matcher fails to compile or fails the
            linear-time guard
    """
    compiled = []
    for pattern in catalog.patterns:
        regexes = []
        for index, source in enumerate(pattern.matchers):
            try:
                check_linear_time(source)
                regexes.append(re.compile(source, re.MULTILINE))
            except (re.error, ValueError) as e:
                raise PatternDefinitionError(
                    pattern.id, f"matcher #{index} rejected: {e}"
                ) from e
        compiled.append(CompiledPattern(definition=pattern, regexes=tuple(regexes)))

    logger.debug("catalog_compiled", pattern_count=len(compiled))
    return CompiledMatchers(catalog=catalog, patterns=tuple(compiled))


def decode_content(path: str, content: str | bytes) -> str:
    """Return file content as text.

    Bytes are decoded as strict UTF-8 (a leading BOM is dropped). Content
    containing NUL characters is treated as binary.

    Raises:
        DecodeError: If the content is binary or not valid UTF-8
    """
    if isinstance(content, bytes):
        if b"\x00" in content:
            raise DecodeError(path, "binary content (NUL byte)")
        try:
            return content.decode("utf-8-sig")
        except UnicodeDecodeError as e:
            raise DecodeError(path, f"invalid UTF-8 at byte {e.start}") from e

    if "\x00" in content:
        raise DecodeError(path, "binary content (NUL character)")
    return content


def is_applicable(pattern: PatternDefinition, context: ScanContext) -> bool:
    """Check whether a pattern applies to a file.

    A pattern with neither extensions nor languages applies everywhere.
    Otherwise the file name must end with one of its extensions, or the
    language hint must be one of its languages.
    """
    if not pattern.file_extensions and not pattern.languages:
        return True

    name = context.path.rsplit("/", 1)[-1].lower()
    if any(name.endswith(ext) for ext in pattern.file_extensions):
        return True

    if context.language and context.language.lower() in pattern.languages:
        return True

    return False


def longest_line(text: str) -> int:
    return max((len(line) for line in text.split("\n")), default=0)


def mask_long_lines(text: str, max_length: int) -> tuple[str, int]:
    """Replace every line longer than max_length with spaces.

    Returns:
        Tuple of (masked text, number of lines masked)
    """
    if len(text) <= max_length:
        return text, 0
    lines = text.split("\n")
    masked = 0
    for index, line in enumerate(lines):
        if len(line) > max_length:
            lines[index] = " " * len(line)
            masked += 1
    if not masked:
        return text, 0
    return "\n".join(lines), masked


def _line_starts(text: str) -> list[int]:
    return [0] + [m.end() for m in re.finditer("\n", text)]


def _pattern_matches(
    compiled: CompiledPattern,
    text: str,
    context: ScanContext,
    line_starts: list[int],
    first_line: int,
):
    """Yield RawMatches of one pattern, first match per start line only."""
    definition = compiled.definition

    hits = []
    for matcher_index, regex in enumerate(compiled.regexes):
        for match in regex.finditer(text):
            if match.end() > match.start():
                hits.append((match.start(), matcher_index, match))
    hits.sort(key=lambda hit: (hit[0], hit[1]))

    used_lines: set[int] = set()
    for start, _, match in hits:
        start_index = bisect_right(line_starts, start) - 1
        if start_index in used_lines:
            continue

        end_index = bisect_right(line_starts, max(match.end() - 1, start)) - 1
        line_end = text.find("\n", line_starts[end_index])
        line_text = text[line_starts[start_index]: line_end if line_end != -1 else len(text)]

        if any(keyword in line_text for keyword in definition.exclude_keywords):
            continue

        used_lines.add(start_index)
        secret = match.group(SECRET_GROUP) if SECRET_GROUP in match.re.groupindex else None

        logger.debug(
            "security_pattern_matched",
            pattern_id=definition.id,
            file=context.path,
            line=first_line + start_index,
        )
        yield RawMatch(
            pattern_id=definition.id,
            file_path=context.path,
            start=start,
            end=match.end(),
            start_line=first_line + start_index,
            end_line=first_line + end_index,
            matched_text=match.group(0),
            line_text=line_text,
            secret=secret,
        )


def scan_text(
    compiled: CompiledMatchers,
    text: str,
    context: ScanContext,
    first_line: int = 1,
) -> list[RawMatch]:
    """Run every applicable pattern over text.

    Args:
        compiled: Compiled catalog
        text: Text to scan (a whole file or one diff segment)
        context: File path, language hint and fixture flag
        first_line: Line number of the first line of ``text``

    Returns:
        RawMatches in catalog order, then by position
    """
    if not text:
        return []

    max_length = compiled.catalog.heuristics.max_line_length
    text, masked = mask_long_lines(text, max_length)
    if masked:
        logger.warning(
            "long_lines_skipped",
            file=context.path,
            line_count=masked,
            max_line_length=max_length,
        )

    line_starts = _line_starts(text)
    matches: list[RawMatch] = []
    for pattern in compiled.patterns:
        if not is_applicable(pattern.definition, context):
            continue
        matches.extend(_pattern_matches(pattern, text, context, line_starts, first_line))
    return matches


def any_match(compiled: CompiledMatchers, text: str, context: ScanContext) -> bool:
    """True if any applicable pattern matches text."""
    if not text:
        return False
    text, _ = mask_long_lines(text, compiled.catalog.heuristics.max_line_length)
    line_starts = _line_starts(text)
    for pattern in compiled.patterns:
        if not is_applicable(pattern.definition, context):
            continue
        for _ in _pattern_matches(pattern, text, context, line_starts, 1):
            return True
    return False

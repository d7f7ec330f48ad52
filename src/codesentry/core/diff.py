"""Unified diff intake.

Turns the text of a unified diff (as returned for a pull request) into added
lines per file, keyed by their line numbers in the new file. Removed lines,
``\\ No newline at end of file`` markers and deleted files are ignored: only
code a change introduces is scanned.

Provides:
- parse_unified_diff: Diff text -> {path: [DiffHunk, ...]}
"""

import re

import structlog

from codesentry.core.types import DiffHunk

logger = structlog.get_logger()

_HUNK_HEADER = re.compile(r"^@@ -\d+(?:,(\d+))? \+(\d+)(?:,(\d+))? @@")
_DEV_NULL = "/dev/null"


def _new_path(header: str) -> str | None:
    """Extract the new-file path from a ``+++`` header line."""
    path = header[4:].split("\t", 1)[0].strip()
    if path == _DEV_NULL:
        return None
    if path.startswith("b/"):
        path = path[2:]
    return path or None


def parse_unified_diff(diff: str) -> dict[str, list[DiffHunk]]:
    """Collect added lines per file from a unified diff.

    Hunk line counts from the ``@@`` headers decide where a hunk ends, so an
    added line whose own text starts with ``++`` is not mistaken for a file
    header.

    Args:
        diff: Unified diff text (``git diff`` format)

    Returns:
        Mapping of new-file path to its hunks, in diff order. Files without
        added lines are omitted.

    Example:
        >>> parse_unified_diff(
        ...     "+++ b/app.py\\n@@ -1,1 +1,2 @@\\n x = 1\\n+y = 2\\n"
        ... )
        {'app.py': [DiffHunk(added_lines={2: 'y = 2'})]}
    """
    files: dict[str, list[DiffHunk]] = {}
    current_path: str | None = None
    added: dict[int, str] = {}
    line_number = 0
    old_remaining = new_remaining = 0

    def flush() -> None:
        nonlocal added
        if current_path is not None and added:
            files.setdefault(current_path, []).append(DiffHunk(added_lines=added))
        added = {}

    for line in diff.splitlines():
        in_hunk = old_remaining > 0 or new_remaining > 0
        if in_hunk and (line == "" or line[0] in "+- \\"):
            marker = line[:1]
            if marker == "+":
                added[line_number] = line[1:]
                line_number += 1
                new_remaining -= 1
            elif marker == "-":
                old_remaining -= 1
            elif marker == "\\":
                pass
            else:
                line_number += 1
                old_remaining -= 1
                new_remaining -= 1
            continue

        if in_hunk:
            logger.debug("diff_hunk_truncated", path=current_path, line=line_number)
            old_remaining = new_remaining = 0

        if line.startswith("diff --git "):
            flush()
            current_path = None
        elif line.startswith("+++ "):
            flush()
            current_path = _new_path(line)
        elif line.startswith("@@"):
            flush()
            header = _HUNK_HEADER.match(line)
            if header is None:
                logger.debug("diff_hunk_header_unparsed", header=line)
                continue
            old_count, new_start, new_count = header.groups()
            old_remaining = int(old_count) if old_count is not None else 1
            line_number = int(new_start)
            new_remaining = int(new_count) if new_count is not None else 1

    flush()
    return files

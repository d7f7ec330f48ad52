"""Tests for unified diff intake.

Tests cover:
- Added-line extraction with new-file line numbers
- Removed lines, context lines and no-newline markers
- New and deleted files
- Segmenting hunks into contiguous runs
- Scanning a diff end to end
"""

from codesentry.core.diff import parse_unified_diff
from codesentry.core.types import DiffHunk, ScanInput
from codesentry.scanner import SecurityScanner

MODIFIED = """\
diff --git a/src/app.py b/src/app.py
index 1111111..2222222 100644
--- a/src/app.py
+++ b/src/app.py
@@ -1,3 +1,4 @@
 import os
-x = 1
+x = 2
+y = 3
 print(x)
@@ -10,2 +11,3 @@ def main():
 a = 1
+b = 2
 c = 3
"""

DELETED = """\
diff --git a/old.py b/old.py
deleted file mode 100644
--- a/old.py
+++ /dev/null
@@ -1,2 +0,0 @@
-a = 1
-b = 2
"""

NEW_FILE = """\
diff --git a/new.py b/new.py
new file mode 100644
--- /dev/null
+++ b/new.py
@@ -0,0 +1,2 @@
+first = 1
+second = 2
\\ No newline at end of file
"""


def test_added_lines_with_new_line_numbers():
    """Test added lines are keyed by their new-file line number."""
    files = parse_unified_diff(MODIFIED)

    assert files == {
        "src/app.py": [
            DiffHunk(added_lines={2: "x = 2", 3: "y = 3"}),
            DiffHunk(added_lines={12: "b = 2"}),
        ]
    }


def test_deleted_file_omitted():
    """Test files deleted by the diff contribute nothing."""
    assert parse_unified_diff(DELETED) == {}


def test_new_file_and_no_newline_marker():
    """Test new files are read in full and markers are skipped."""
    files = parse_unified_diff(NEW_FILE)

    assert files == {"new.py": [DiffHunk(added_lines={1: "first = 1", 2: "second = 2"})]}


def test_multiple_files():
    files = parse_unified_diff(MODIFIED + DELETED + NEW_FILE)
    assert list(files) == ["src/app.py", "new.py"]


def test_added_line_that_looks_like_header():
    """Test an added line starting with '++' stays an added line."""
    diff = (
        "--- a/c.c\n"
        "+++ b/c.c\n"
        "@@ -1,0 +1,2 @@\n"
        "+int i = 0;\n"
        "+++i;\n"
    )

    files = parse_unified_diff(diff)

    assert files == {"c.c": [DiffHunk(added_lines={1: "int i = 0;", 2: "++i;"})]}


def test_header_without_counts():
    """Test hunk headers with omitted counts default to one line."""
    diff = "+++ b/one.txt\n@@ -1 +1 @@\n-old\n+new\n"
    assert parse_unified_diff(diff) == {"one.txt": [DiffHunk(added_lines={1: "new"})]}


def test_timestamped_header():
    diff = "+++ b/app.py\t2024-01-01 00:00:00\n@@ -0,0 +1 @@\n+x = 1\n"
    assert list(parse_unified_diff(diff)) == ["app.py"]


def test_empty_diff():
    assert parse_unified_diff("") == {}


# Segment Tests


def test_hunk_segments():
    """Test added lines split into contiguous runs."""
    hunk = DiffHunk(added_lines={5: "a", 3: "x", 4: "y", 9: "z"})
    assert hunk.segments() == [(3, "x\ny\na"), (9, "z")]


# Scanning Tests


def test_scan_diff_reports_new_file_lines():
    """Test findings in a diff carry new-file line numbers."""
    diff = (
        "diff --git a/src/crypto.py b/src/crypto.py\n"
        "--- a/src/crypto.py\n"
        "+++ b/src/crypto.py\n"
        "@@ -40,3 +40,4 @@ def digest(data):\n"
        " import hashlib\n"
        "-    return hashlib.sha256(data).hexdigest()\n"
        "+    h = hashlib.md5(data)\n"
        "+    return h.hexdigest()\n"
        " # end\n"
    )

    result = SecurityScanner().scan(ScanInput.from_unified_diff(diff))

    assert [(f.pattern_id, f.file_path, f.start_line) for f in result.findings] == [
        ("weak-crypto-md5", "src/crypto.py", 41)
    ]


def test_scan_diff_ignores_removed_lines():
    """Test vulnerable code removed by a diff is not reported."""
    diff = (
        "+++ b/src/crypto.py\n"
        "@@ -1,2 +1,2 @@\n"
        "-h = hashlib.md5(data)\n"
        "+h = hashlib.sha256(data)\n"
        " x = 1\n"
    )

    result = SecurityScanner().scan(ScanInput.from_unified_diff(diff))

    assert result.total == 0

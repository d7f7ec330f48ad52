"""Tests for the SecurityScanner facade.

Tests cover:
- End-to-end detection on single lines and fixture files
- Confidence/severity adjustment for test paths
- Determinism across runs, input order and worker counts
- Partial-failure isolation for undecodable files
- Excerpt redaction and truncation
- Async entry point
"""

import time
from pathlib import Path

import pytest

from codesentry import scan
from codesentry.core.catalog import catalog_from_dicts
from codesentry.core.errors import PatternDefinitionError
from codesentry.core.types import Confidence, FileInput, ScanInput, ScanResult, Severity
from codesentry.scanner import SecurityScanner, redact_secret

FIXTURES = Path(__file__).parent / "security_fixtures"

SECRET = "sk-1234567890abcdefghijklmnopqrstuvwxyz"
SECRET_LINE = f'let api_key = "{SECRET}";'

SAFE_PYTHON = '''\
import hashlib
from markupsafe import escape


def get_user(cursor, user_id):
    cursor.execute("SELECT * FROM users WHERE id = %s", (user_id,))
    return cursor.fetchone()


def digest(data):
    return hashlib.sha256(data).hexdigest()


def render(name):
    return "<p>{}</p>".format(escape(name))
'''


@pytest.fixture(scope="module")
def scanner():
    """Scanner over the packaged catalog."""
    return SecurityScanner()


def _read(relative: str) -> str:
    return (FIXTURES / relative).read_text(encoding="utf-8")


# Detection Tests


def test_hardcoded_secret(scanner):
    """Test a real-looking API key yields one high-confidence finding."""
    result = scanner.scan(ScanInput.from_texts({"src/client.rs": SECRET_LINE}))

    assert result.total == 1
    finding = result.findings[0]
    assert finding.pattern_id == "hardcoded-secret"
    assert finding.cwe == "CWE-798"
    assert finding.confidence == Confidence.HIGH
    assert finding.severity == Severity.HIGH
    assert finding.start_line == 1


def test_hardcoded_secret_in_fixture_path(scanner):
    """Test the same key under a test fixture path is demoted."""
    path = "tests/security_fixtures/vulnerable/hardcoded_secrets.rs"

    result = scanner.scan(ScanInput.from_texts({path: SECRET_LINE}))

    assert result.total == 1
    finding = result.findings[0]
    assert finding.pattern_id == "hardcoded-secret"
    assert finding.confidence == Confidence.MEDIUM
    assert finding.severity == Severity.MEDIUM


def test_fixture_flag(scanner):
    """Test the caller's fixture flag demotes like a fixture path."""
    inputs = ScanInput(files={"src/client.rs": FileInput(content=SECRET_LINE, is_test_fixture=True)})

    finding = scanner.scan(inputs).findings[0]

    assert finding.confidence == Confidence.MEDIUM
    assert finding.severity == Severity.MEDIUM


def test_sql_injection_concat(scanner):
    """Test string-concatenated SQL yields one CWE-89 finding."""
    code = 'execute("SELECT * FROM users WHERE id = " + user_id);'

    result = scanner.scan(ScanInput.from_texts({"src/db.rs": code}))

    assert result.total == 1
    assert result.findings[0].pattern_id == "sql-injection-concat"
    assert result.findings[0].cwe == "CWE-89"
    assert result.findings[0].owasp == "A03:2021-Injection"


def test_safe_code_has_no_findings(scanner):
    """Test parameterized queries, modern hashing and escaping are clean."""
    inputs = ScanInput.from_texts(
        {
            "src/safe_patterns.rs": _read("safe/safe_patterns.rs"),
            "app/views.py": SAFE_PYTHON,
        }
    )

    result = scanner.scan(inputs)

    assert result.findings == ()
    assert result.counts == {"critical": 0, "high": 0, "medium": 0, "low": 0}


def test_vulnerable_secrets_fixture(scanner):
    """Test adjacent secrets in the fixture merge per pattern."""
    result = scanner.scan(
        ScanInput.from_texts({"src/secrets.rs": _read("vulnerable/hardcoded_secrets.rs")})
    )

    assert [(f.pattern_id, f.start_line, f.end_line) for f in result.findings] == [
        ("hardcoded-secret", 6, 8),
        ("hardcoded-password", 16, 18),
    ]
    assert all(f.confidence == Confidence.HIGH for f in result.findings)


def test_vulnerable_injection_fixture(scanner):
    """Test every injection family in the fixture is reported in order."""
    result = scanner.scan(ScanInput.from_texts({"src/db.rs": _read("vulnerable/injection.rs")}))

    assert [f.pattern_id for f in result.findings] == [
        "command-injection",
        "sql-injection-concat",
        "sql-injection-format",
        "path-traversal",
        "weak-crypto-md5",
        "weak-crypto-sha1",
    ]
    assert result.counts == {"critical": 1, "high": 3, "medium": 2, "low": 0}


def test_fixture_path_never_exceeds_medium(scanner):
    """Test everything found under a test path is at most MEDIUM."""
    inputs = ScanInput.from_texts(
        {
            "tests/security_fixtures/vulnerable/hardcoded_secrets.rs": _read(
                "vulnerable/hardcoded_secrets.rs"
            ),
            "tests/security_fixtures/vulnerable/injection.rs": _read("vulnerable/injection.rs"),
        }
    )

    result = scanner.scan(inputs)

    assert result.total > 0
    for finding in result.findings:
        assert finding.confidence != Confidence.HIGH
        if finding.confidence == Confidence.LOW:
            assert finding.severity.rank <= Severity.MEDIUM.rank


def test_language_hint(scanner):
    """Test a language hint enables web patterns for extensionless files."""
    code = "el.innerHTML = comment.body;"

    hinted = scanner.scan(ScanInput(files={"widget": FileInput(content=code, language="javascript")}))
    plain = scanner.scan(ScanInput.from_texts({"widget": code}))

    assert [f.pattern_id for f in hinted.findings] == ["xss-dom-sink"]
    assert plain.total == 0


def test_no_duplicate_findings(scanner):
    """Test no two findings share pattern, file and overlapping lines."""
    inputs = ScanInput.from_texts(
        {
            "src/secrets.rs": _read("vulnerable/hardcoded_secrets.rs"),
            "src/db.rs": _read("vulnerable/injection.rs"),
        }
    )

    findings = scanner.scan(inputs).findings

    for i, a in enumerate(findings):
        for b in findings[i + 1:]:
            if (a.pattern_id, a.file_path) == (b.pattern_id, b.file_path):
                assert not a.overlaps(b)


# Determinism Tests


def _mixed_inputs(reverse: bool = False) -> dict[str, str]:
    texts = {
        "src/secrets.rs": _read("vulnerable/hardcoded_secrets.rs"),
        "src/db.rs": _read("vulnerable/injection.rs"),
        "src/safe.rs": _read("safe/safe_patterns.rs"),
        "web/app.js": "el.innerHTML = input;\nconst h = md5(x);\n",
    }
    if reverse:
        texts = dict(reversed(list(texts.items())))
    return texts


def test_scan_is_deterministic(scanner):
    """Test identical inputs give byte-identical results."""
    first = scanner.scan(ScanInput.from_texts(_mixed_inputs()))
    second = scanner.scan(ScanInput.from_texts(_mixed_inputs()))
    reordered = scanner.scan(ScanInput.from_texts(_mixed_inputs(reverse=True)))

    assert first.model_dump_json() == second.model_dump_json()
    assert first.model_dump_json() == reordered.model_dump_json()


def test_thread_pool_matches_sequential(scanner):
    """Test worker threads do not change the result."""
    inputs = ScanInput.from_texts(_mixed_inputs())

    pooled = SecurityScanner(max_workers=4).scan(inputs)

    assert pooled.model_dump_json() == scanner.scan(inputs).model_dump_json()


@pytest.mark.asyncio
async def test_scan_async_matches_sync(scanner):
    """Test the async entry point returns the same result."""
    inputs = ScanInput.from_texts(_mixed_inputs())

    result = await scanner.scan_async(inputs)

    assert result == scanner.scan(inputs)


def test_module_level_scan(scanner):
    """Test the module-level helper uses the packaged catalog."""
    inputs = ScanInput.from_texts({"src/client.rs": SECRET_LINE})
    assert scan(inputs) == scanner.scan(inputs)


def test_fingerprint_stable(scanner):
    """Test fingerprints depend only on path, line and pattern."""
    inputs = ScanInput.from_texts({"src/client.rs": SECRET_LINE})

    first = scanner.scan(inputs).findings[0]
    second = scanner.scan(inputs).findings[0]

    assert first.fingerprint() == second.fingerprint()
    assert len(first.fingerprint()) == 64


# Failure Isolation Tests


def test_undecodable_file_is_skipped(scanner):
    """Test a binary file is counted as skipped without aborting the batch."""
    inputs = ScanInput.from_texts(
        {
            "assets/logo.png": b"\x89PNG\r\n\x1a\n\x00\x00\x00\rIHDR",
            "docs/latin1.txt": b"caf\xe9",
            "src/client.rs": SECRET_LINE.encode("utf-8"),
        }
    )

    result = scanner.scan(inputs)

    assert result.skipped_files == 2
    assert [f.file_path for f in result.findings] == ["src/client.rs"]


def test_long_quoted_line_does_not_stall(scanner):
    """Test one huge line of unterminated SQL-looking literals returns quickly."""
    inputs = ScanInput.from_texts({"app.py": '"select from ' * 3000})

    started = time.perf_counter()
    result = scanner.scan(inputs)
    elapsed = time.perf_counter() - started

    assert result.total == 0
    assert result.skipped_files == 0
    assert elapsed < 2.0


def test_empty_input(scanner):
    assert scanner.scan(ScanInput()) == ScanResult.empty()


def test_malformed_catalog_fails_at_construction():
    """Test a bad matcher is reported before anything is scanned."""
    catalog = catalog_from_dicts(
        [
            {
                "id": "greedy",
                "family": "weak-crypto",
                "cwe": "CWE-327",
                "owasp": "A02:2021-Cryptographic Failures",
                "message": "Bad",
                "matchers": [r"(\w+)+x"],
                "severity": "medium",
                "confidence": "high",
            }
        ]
    )

    with pytest.raises(PatternDefinitionError):
        SecurityScanner(catalog=catalog)


def test_custom_catalog(scanner):
    """Test scanning with a caller-supplied catalog."""
    catalog = catalog_from_dicts(
        [
            {
                "id": "todo-marker",
                "family": "weak-crypto",
                "cwe": "CWE-327",
                "owasp": "A02:2021-Cryptographic Failures",
                "message": "Marker",
                "matchers": [r"\bFIXME\b"],
                "severity": "low",
                "confidence": "high",
            }
        ]
    )

    result = scan(ScanInput.from_texts({"a.py": "x = 1  # FIXME\n"}), catalog=catalog)

    assert [(f.pattern_id, f.severity) for f in result.findings] == [("todo-marker", Severity.LOW)]


# Excerpt Tests


def test_excerpt_redacts_secret(scanner):
    """Test the secret value never appears in the excerpt."""
    finding = scanner.scan(ScanInput.from_texts({"src/client.rs": SECRET_LINE})).findings[0]

    assert SECRET not in finding.excerpt
    assert finding.excerpt.startswith('let api_key = "sk-1')
    assert finding.excerpt.endswith('wxyz";')


def test_excerpt_truncated():
    """Test long lines are truncated to the configured size."""
    line = "h = md5(x)  # " + "padding " * 40
    scanner = SecurityScanner(excerpt_max_chars=40)

    finding = scanner.scan(ScanInput.from_texts({"a.py": line})).findings[0]

    assert len(finding.excerpt) <= 40
    assert finding.excerpt.endswith("...")
    assert finding.excerpt.startswith("h = md5(x)")


def test_redact_secret():
    assert redact_secret("abcdefghijkl") == "abcd****ijkl"
    assert redact_secret("short") == "*****"

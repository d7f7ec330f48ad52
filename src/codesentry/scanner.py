"""Security scanner facade.

Orchestrates the engine, scorer, severity resolver and aggregator over a batch
of files. A scan is a pure function of (catalog, ScanInput): no I/O happens
inside it, and scanned content is only ever matched against regexes, never
evaluated.

Failure semantics:
- A malformed catalog raises PatternDefinitionError when the scanner is
  constructed, before anything is scanned.
- An undecodable file contributes no findings and is counted in
  ``ScanResult.skipped_files``; the rest of the batch is still scanned.

Provides:
- SecurityScanner: Configured scanner (catalog, ignore rules, workers)
- scan: Scan with the default catalog
- redact_secret: Mask a credential value for excerpts
"""

import asyncio
from concurrent.futures import ThreadPoolExecutor
from functools import lru_cache

import structlog

from codesentry.core.aggregate import aggregate
from codesentry.core.catalog import PatternCatalog, default_catalog
from codesentry.core.config import Config, load_config
from codesentry.core.engine import compile_catalog, decode_content, scan_text
from codesentry.core.errors import DecodeError
from codesentry.core.ignore import IgnoreConfig
from codesentry.core.log import configure_logging_from_config
from codesentry.core.scorer import score
from codesentry.core.severity import resolve
from codesentry.core.types import (
    FileInput,
    Finding,
    RawMatch,
    ScanContext,
    ScanInput,
    ScanResult,
)

logger = structlog.get_logger()

DEFAULT_EXCERPT_MAX_CHARS = 160


def redact_secret(value: str) -> str:
    """Redact a secret value, showing only first 4 and last 4 chars."""
    if len(value) <= 8:
        return "*" * len(value)
    return f"{value[:4]}{'*' * (len(value) - 8)}{value[-4:]}"


def _excerpt(match: RawMatch, max_chars: int) -> str:
    text = match.line_text
    if match.secret:
        text = text.replace(match.secret, redact_secret(match.secret))
    text = " ".join(line.strip() for line in text.splitlines() if line.strip())
    if len(text) > max_chars:
        text = text[: max_chars - 3].rstrip() + "..."
    return text


class SecurityScanner:
    """Pattern-based security scanner for file contents and diffs.

    The compiled catalog is read-only and shared by every file, so files can
    be scanned on a thread pool without synchronization. Results never depend
    on scheduling: aggregation re-establishes the canonical order.

    Example:
        >>> scanner = SecurityScanner()
        >>> result = scanner.scan(ScanInput.from_texts({"app.py": source}))
        >>> for finding in result.findings:
        ...     print(finding.severity, finding.pattern_id, finding.start_line)
    """

    def __init__(
        self,
        catalog: PatternCatalog | None = None,
        ignore: IgnoreConfig | None = None,
        max_workers: int = 1,
        excerpt_max_chars: int = DEFAULT_EXCERPT_MAX_CHARS,
    ):
        """Initialize the scanner and compile the catalog.

        Args:
            catalog: Pattern catalog (defaults to the packaged catalog)
            ignore: Ignore rules (defaults to none)
            max_workers: Worker threads for per-file scanning
            excerpt_max_chars: Maximum excerpt length in findings

        Raises:
            PatternDefinitionError: If any catalog matcher is malformed
        """
        self.catalog = catalog if catalog is not None else default_catalog()
        self.compiled = compile_catalog(self.catalog)
        self.ignore = ignore or IgnoreConfig()
        self.max_workers = max(1, max_workers)
        self.excerpt_max_chars = excerpt_max_chars
        self.log = logger.bind(scanner=self.__class__.__name__)

    @classmethod
    def from_config(
        cls,
        config: Config | None = None,
        configure_logs: bool = False,
    ) -> "SecurityScanner":
        """Build a scanner from engine configuration and the ignore file.

        Args:
            config: Engine configuration (defaults to the environment)
            configure_logs: Also apply ``log_level``/``log_json`` to structlog;
                leave False when the host application configures logging
        """
        config = config or load_config()
        if configure_logs:
            configure_logging_from_config(config)
        return cls(
            ignore=IgnoreConfig.load(config.ignore_file),
            max_workers=config.max_workers,
            excerpt_max_chars=config.excerpt_max_chars,
        )

    def _to_finding(self, match: RawMatch, context: ScanContext) -> Finding:
        pattern = self.catalog.get(match.pattern_id)
        confidence = score(match, pattern, context, self.catalog.heuristics)
        return Finding(
            pattern_id=pattern.id,
            file_path=match.file_path,
            start_line=match.start_line,
            end_line=match.end_line,
            excerpt=_excerpt(match, self.excerpt_max_chars),
            severity=resolve(pattern, confidence),
            confidence=confidence,
            cwe=pattern.cwe,
            owasp=pattern.owasp,
            message=pattern.message,
        )

    def scan_file(self, path: str, file: FileInput) -> tuple[list[Finding], bool]:
        """Scan a single file.

        Args:
            path: Repository-relative path
            file: File content or diff hunks

        Returns:
            Tuple of (findings, skipped) where ``skipped`` is True when the
            file could not be decoded
        """
        if self.ignore.should_ignore_path(path):
            return [], False

        context = ScanContext(
            path=path,
            language=file.language,
            is_test_fixture=file.is_test_fixture,
        )

        if file.hunks is not None:
            segments = [segment for hunk in file.hunks for segment in hunk.segments()]
        else:
            try:
                segments = [(1, decode_content(path, file.content))]
            except DecodeError as e:
                self.log.warning("file_skipped_undecodable", path=path, reason=e.reason)
                return [], True

        findings = []
        for first_line, text in segments:
            for match in scan_text(self.compiled, text, context, first_line=first_line):
                finding = self._to_finding(match, context)
                if not self.ignore.should_ignore(finding):
                    findings.append(finding)
        return findings, False

    def _collect(self, outcomes) -> ScanResult:
        findings: list[Finding] = []
        skipped = 0
        for file_findings, was_skipped in outcomes:
            findings.extend(file_findings)
            skipped += int(was_skipped)
        return aggregate(findings, skipped_files=skipped)

    def scan(self, inputs: ScanInput) -> ScanResult:
        """Scan every file in a batch.

        Args:
            inputs: Files keyed by repository-relative path

        Returns:
            ScanResult with ordered findings, severity counts and the number
            of files skipped as undecodable
        """
        paths = sorted(inputs.files)
        log = self.log.bind(file_count=len(paths))

        if self.max_workers > 1 and len(paths) > 1:
            with ThreadPoolExecutor(max_workers=self.max_workers) as pool:
                outcomes = list(pool.map(lambda p: self.scan_file(p, inputs.files[p]), paths))
        else:
            outcomes = [self.scan_file(path, inputs.files[path]) for path in paths]

        result = self._collect(outcomes)
        log.info(
            "scan_complete",
            finding_count=result.total,
            skipped_files=result.skipped_files,
        )
        return result

    async def scan_async(self, inputs: ScanInput) -> ScanResult:
        """Scan a batch from async code without blocking the event loop.

        Each file is scanned in a worker thread; the result is identical to
        ``scan(inputs)``.
        """
        paths = sorted(inputs.files)
        outcomes = await asyncio.gather(
            *(asyncio.to_thread(self.scan_file, path, inputs.files[path]) for path in paths)
        )
        result = self._collect(outcomes)
        self.log.info(
            "scan_complete",
            file_count=len(paths),
            finding_count=result.total,
            skipped_files=result.skipped_files,
        )
        return result


@lru_cache(maxsize=1)
def _default_scanner() -> SecurityScanner:
    return SecurityScanner()


def scan(inputs: ScanInput, catalog: PatternCatalog | None = None) -> ScanResult:
    """Scan a batch with the given catalog, or the packaged default.

    Args:
        inputs: Files keyed by repository-relative path
        catalog: Pattern catalog to use (defaults to the packaged catalog)

    Returns:
        ScanResult for the batch
    """
    scanner = _default_scanner() if catalog is None else SecurityScanner(catalog=catalog)
    return scanner.scan(inputs)

"""User ignore list for security findings.

Lets users skip known false positives before findings reach the triage
pipeline. Loaded from a YAML file (``~/.config/codesentry/security.yaml`` by
default)::

    ignore_patterns:
      - weak-crypto-md5
    ignore_paths:
      - vendor/
      - third_party/

Provides:
- IgnoreConfig: Pattern ids and path prefixes to ignore
- default_ignore_file: Default location of the ignore file
"""

from pathlib import Path

import structlog
import yaml
from pydantic import BaseModel, ConfigDict, ValidationError

from codesentry.core.types import Finding

logger = structlog.get_logger()


def default_ignore_file() -> Path:
    return Path.home() / ".config" / "codesentry" / "security.yaml"


class IgnoreConfig(BaseModel):
    """Ignore rules applied by the scanner facade.

    Attributes:
        ignore_patterns: Pattern ids whose findings are dropped
        ignore_paths: Path prefixes; matching files are not scanned at all
    """

    model_config = ConfigDict(frozen=True, extra="ignore")

    ignore_patterns: tuple[str, ...] = ()
    ignore_paths: tuple[str, ...] = ()

    @classmethod
    def load(cls, path: Path | None = None) -> "IgnoreConfig":
        """Load ignore rules from a YAML file.

        A missing file yields the defaults. An unreadable or invalid file is
        logged and also yields the defaults, so a broken ignore file never
        blocks a scan.

        Args:
            path: File to read (defaults to ``default_ignore_file()``)

        Returns:
            Loaded or default configuration
        """
        path = path or default_ignore_file()
        if not path.exists():
            return cls()

        try:
            data = yaml.safe_load(path.read_text(encoding="utf-8")) or {}
            return cls.model_validate(data)
        except (OSError, yaml.YAMLError, ValidationError) as e:
            logger.warning("ignore_config_load_failed", path=str(path), error=str(e))
            return cls()

    def should_ignore_path(self, file_path: str) -> bool:
        return any(file_path.startswith(prefix) for prefix in self.ignore_paths)

    def should_ignore(self, finding: Finding) -> bool:
        """Check whether a finding is ignored by pattern id or path prefix."""
        if finding.pattern_id in self.ignore_patterns:
            return True
        return self.should_ignore_path(finding.file_path)

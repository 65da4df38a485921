"""Run ktlint and decode its JSON reporter output."""

from __future__ import annotations

import glob
import json
import logging
import os
import shutil
import subprocess
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Optional

from .errors import KtlintError, KtlintNotFoundError, KtlintReportError
from .validate_json import validate_report_file

logger = logging.getLogger(__name__)

# ktlint exits 1 when it found violations; that is still a successful run.
_OK_RETURN_CODES = (0, 1)


@dataclass(frozen=True)
class LintViolation:
    line: int
    column: int
    message: str
    rule: str = ""


@dataclass
class LintResult:
    """All violations ktlint reported for one file."""

    file: str
    errors: list[LintViolation] = field(default_factory=list)


def _parse_violation(raw: Any, file: str) -> LintViolation:
    if not isinstance(raw, dict):
        raise KtlintReportError(f"error entry for {file} must be an object, got {type(raw).__name__}")

    line = raw.get("line")
    if isinstance(line, bool) or not isinstance(line, int):
        raise KtlintReportError(f"error entry for {file} has invalid line: {line!r}")

    column = raw.get("column", 0)
    if isinstance(column, bool) or not isinstance(column, int):
        column = 0

    return LintViolation(
        line=line,
        column=column,
        message=str(raw.get("message") or "").strip(),
        rule=str(raw.get("rule") or "").strip(),
    )


def results_from_data(data: Any) -> list[LintResult]:
    """Convert decoded ktlint reporter JSON into LintResult objects.

    Raises:
        KtlintReportError: If the data does not look like a ktlint report.
    """
    if not isinstance(data, list):
        raise KtlintReportError(f"ktlint report must be a JSON array, got {type(data).__name__}")

    results: list[LintResult] = []
    for index, entry in enumerate(data):
        if not isinstance(entry, dict):
            raise KtlintReportError(f"report entry {index} must be an object, got {type(entry).__name__}")

        file = entry.get("file")
        if not isinstance(file, str) or not file:
            raise KtlintReportError(f"report entry {index} is missing 'file'")

        errors = entry.get("errors") or []
        if not isinstance(errors, list):
            raise KtlintReportError(f"report entry {index} 'errors' must be an array")

        results.append(LintResult(file=file, errors=[_parse_violation(e, file) for e in errors]))

    return results


def parse_results(raw_json: str) -> list[LintResult]:
    """Decode ktlint ``--reporter=json`` output.

    Empty output means ktlint had nothing to report.
    """
    if not raw_json or not raw_json.strip():
        return []

    try:
        data = json.loads(raw_json)
    except json.JSONDecodeError as exc:
        raise KtlintReportError(f"unable to parse ktlint JSON output: {exc}") from exc

    return results_from_data(data)


def load_reports(
    report_file: Optional[str] = None,
    report_files_pattern: Optional[str] = None,
) -> list[LintResult]:
    """Load pre-generated ktlint JSON reports.

    Args:
        report_file: Single report path.
        report_files_pattern: Glob matching several reports; takes precedence.

    Raises:
        KtlintReportError: If no report is configured, a named report is
            missing, or a report fails validation.
    """
    if report_files_pattern:
        paths = sorted(glob.glob(report_files_pattern, recursive=True))
        if not paths:
            logger.warning(f"No ktlint reports matched pattern: {report_files_pattern}")
        logger.info(f"Loading {len(paths)} ktlint reports matching {report_files_pattern}")
    elif report_file:
        paths = [report_file]
    else:
        raise KtlintReportError(
            "If skip_lint is specified, you must specify a ktlint report json file "
            "with `report_file` or `report_files_pattern`."
        )

    results: list[LintResult] = []
    for path in paths:
        report_path = Path(path)
        if not report_path.is_file():
            raise KtlintReportError(
                f"Couldn't find ktlint result json file: {path}\n"
                "You must specify it with `report_file` in your ktlint-review config."
            )
        data = validate_report_file(report_path)
        results.extend(results_from_data(data))

    return results


class KtlintRunner:
    """Thin wrapper around the ktlint command line."""

    def __init__(self, executable: str = "ktlint", cwd: Path | None = None, timeout: int = 600):
        self.executable = executable
        self.cwd = cwd
        self.timeout = timeout

    def exists(self) -> bool:
        return shutil.which(self.executable) is not None

    def _ensure_exists(self) -> None:
        if not self.exists():
            logger.error(f"ktlint executable not found: {self.executable}")
            raise KtlintNotFoundError(self.executable)

    def lint(self, targets: list[str], filtering: bool = True) -> list[LintResult]:
        """Lint target files and return decoded results.

        Args:
            targets: Files to lint, relative to cwd.
            filtering: When False, targets are ignored and ktlint walks the
                whole tree with its default patterns.
        """
        self._ensure_exists()

        if filtering and not targets:
            logger.info("No Kotlin files changed, skipping ktlint")
            return []

        args = [self.executable, "--reporter=json", "--relative"]
        if filtering:
            args.extend(targets)

        logger.info(f"Running ktlint on {len(targets) if filtering else 'all'} files")
        logger.debug(f"ktlint command: {args}")

        result = subprocess.run(
            args,
            capture_output=True,
            text=True,
            check=False,
            cwd=self.cwd,
            timeout=self.timeout,
            env=os.environ.copy(),
        )

        if result.returncode not in _OK_RETURN_CODES:
            logger.error(f"ktlint failed with exit code {result.returncode}: {result.stderr}")
            raise KtlintError(
                f"ktlint exited with status {result.returncode}",
                returncode=result.returncode,
                stderr=result.stderr,
            )

        results = parse_results(result.stdout)
        logger.info(f"ktlint reported {sum(len(r.errors) for r in results)} violations in {len(results)} files")
        return results

    def format_source(self, path: str) -> Optional[str]:
        """Return the text ktlint would rewrite path to, or None.

        The file on disk is left untouched: the source is piped through
        ``ktlint --format --stdin`` with ``--stdin-path`` so .editorconfig
        lookups still resolve against the real location.
        """
        self._ensure_exists()

        source_path = Path(self.cwd or ".") / path
        try:
            source = source_path.read_text(encoding="utf-8")
        except OSError as exc:
            logger.warning(f"Cannot read {source_path} for formatting: {exc}")
            return None

        result = subprocess.run(
            [self.executable, "--format", "--stdin", f"--stdin-path={path}", "--log-level=none"],
            input=source,
            capture_output=True,
            text=True,
            check=False,
            cwd=self.cwd,
            timeout=self.timeout,
        )

        if result.returncode not in _OK_RETURN_CODES:
            logger.warning(f"ktlint --format failed for {path} ({result.returncode}): {result.stderr}")
            return None

        if not result.stdout:
            return None

        return result.stdout

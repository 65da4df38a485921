"""Validate ktlint JSON reports against the bundled schema.

Reports produced elsewhere in a pipeline (``skip_lint`` mode) are checked
before any comment is built from them, so a truncated or foreign JSON file
fails loudly instead of producing an empty review.
"""

import json
import logging
import sys
from pathlib import Path
from typing import Any, List

from jsonschema import Draft7Validator

from .errors import ReportValidationError

logger = logging.getLogger(__name__)

DEFAULT_SCHEMA_PATH = Path(__file__).resolve().parent / "templates" / "ktlint-report.schema.json"


def load_schema(schema_path: Path = None) -> dict[str, Any]:
    """Load a JSON schema, defaulting to the bundled ktlint report schema."""
    schema_path = schema_path or DEFAULT_SCHEMA_PATH

    if not schema_path.is_file():
        logger.error(f"Schema file not found: {schema_path}")
        raise FileNotFoundError(f"schema file not found: {schema_path}")

    try:
        return json.loads(schema_path.read_text(encoding="utf-8"))
    except json.JSONDecodeError as exc:
        logger.error(f"Invalid JSON in schema file {schema_path}: {exc}")
        raise ValueError(f"unable to parse schema JSON from {schema_path}: {exc}") from exc


def validate_report(data: Any, schema_path: Path = None) -> List[str]:
    """Validate decoded report data against the schema.

    Args:
        data: Decoded ktlint JSON report.
        schema_path: Optional schema override.

    Returns:
        Formatted validation errors ("<path>: <message>"); empty when valid.
    """
    validator = Draft7Validator(load_schema(schema_path))
    errors = sorted(validator.iter_errors(data), key=lambda err: [str(p) for p in err.path])

    formatted: List[str] = []
    for error in errors:
        path = "/".join(str(part) for part in error.path) or "<root>"
        formatted.append(f"{path}: {error.message}")

    if formatted:
        logger.warning(f"Report validation found {len(formatted)} errors")
        for error in formatted[:5]:
            logger.warning(f"Validation error: {error}")
        if len(formatted) > 5:
            logger.warning(f"... and {len(formatted) - 5} more errors")

    return formatted


def validate_report_file(report_path: Path, schema_path: Path = None) -> Any:
    """Load a ktlint report file and validate it.

    Returns:
        The decoded report data.

    Raises:
        FileNotFoundError: If the report file does not exist.
        ReportValidationError: If the file is not JSON or fails the schema.
    """
    if not report_path.is_file():
        raise FileNotFoundError(f"Report file not found: {report_path}")

    content = report_path.read_text(encoding="utf-8")
    if not content.strip():
        logger.info(f"Report file {report_path} is empty, treating as no violations")
        return []

    try:
        data = json.loads(content)
    except json.JSONDecodeError as exc:
        raise ReportValidationError(f"Invalid JSON in {report_path}: {exc.msg}") from exc

    errors = validate_report(data, schema_path)
    if errors:
        raise ReportValidationError(
            f"{report_path} is not a valid ktlint JSON report ({len(errors)} errors)",
            errors=errors,
        )

    logger.debug(f"Report JSON validation passed: {report_path}")
    return data


def main(argv: List[str] = None) -> None:
    """CLI entry point for validation.

    Usage:
        python -m ktlint_review.validate_json <report.json> [schema.json]
    """
    import argparse

    parser = argparse.ArgumentParser(description="Validate a ktlint JSON report")
    parser.add_argument("report_json", type=Path, help="Path to the ktlint report")
    parser.add_argument(
        "schema_json",
        type=Path,
        nargs="?",
        help="Optional path to an alternative JSON schema",
    )
    parser.add_argument("-v", "--verbose", action="store_true", help="Enable verbose logging")
    args = parser.parse_args(argv)

    logging.basicConfig(
        level=logging.DEBUG if args.verbose else logging.INFO,
        format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
    )

    try:
        validate_report_file(args.report_json, args.schema_json)
        print(f"✓ Validation passed: {args.report_json}")
        sys.exit(0)
    except ReportValidationError as e:
        print(f"✗ Validation failed: {e}", file=sys.stderr)
        for error in e.errors:
            print(f"  {error}", file=sys.stderr)
        sys.exit(1)
    except (OSError, ValueError) as e:
        print(f"✗ Error: {e}", file=sys.stderr)
        sys.exit(1)


if __name__ == "__main__":
    main()

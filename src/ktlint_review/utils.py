"""Utility functions shared by the reporter and services."""

import os
import re
from pathlib import Path


def truncate(text: str, limit: int = 300) -> str:
    """Truncate text to a maximum length, adding "..." if truncated.

    Args:
        text: The text to truncate.
        limit: Maximum length before truncation.

    Returns:
        Truncated text with "..." appended if shortened.
    """
    text = (text or "").strip()
    if len(text) <= limit:
        return text
    return text[: limit - 3] + "..."


def relative_file_path(file_path: str, root: Path = None) -> str:
    """Make a reported path relative to root so it compares against PR paths.

    ktlint reports absolute paths unless ``--relative`` is passed, and
    pre-generated reports may come from another checkout location.
    """
    root = Path(root) if root is not None else Path.cwd()
    prefix = str(root).rstrip(os.sep) + os.sep
    normalized = file_path
    if normalized.startswith(prefix):
        normalized = normalized[len(prefix):]
    if normalized.startswith("./"):
        normalized = normalized[2:]
    return normalized


_TABLE_ESCAPE_RE = re.compile(r"([|])")


def escape_table_cell(text: str) -> str:
    """Escape text for a single Markdown table cell."""
    flattened = " ".join((text or "").split())
    return _TABLE_ESCAPE_RE.sub(r"\\\1", flattened)


def format_rule(rule: str) -> str:
    """Format a ktlint rule id for display, e.g. ``standard:indent``."""
    rule = (rule or "").strip()
    return f"`{rule}`" if rule else ""

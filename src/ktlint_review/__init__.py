"""ktlint-review - ktlint results as pull request review comments."""

__version__ = "0.1.0"

from .config import LintConfig, load_lint_config
from .diff_parser import Correction, parse_added_lines, parse_commentable_lines, parse_corrections
from .ktlint import KtlintRunner, LintResult, LintViolation, load_reports, parse_results
from .reporter import send_inline_comments, send_markdown_comment
from .run_lint import LintOrchestrator, main as run_lint_main

__all__ = [
    "LintConfig",
    "load_lint_config",
    "Correction",
    "parse_added_lines",
    "parse_commentable_lines",
    "parse_corrections",
    "KtlintRunner",
    "LintResult",
    "LintViolation",
    "load_reports",
    "parse_results",
    "send_inline_comments",
    "send_markdown_comment",
    "LintOrchestrator",
    "run_lint_main",
]

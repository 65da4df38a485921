"""Turn ktlint results into pull request comments."""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from pathlib import Path
from typing import Iterable, Mapping, Optional

from jinja2 import Environment, FileSystemLoader, Template

from .config import LintConfig
from .diff_parser import Correction, find_correction, parse_added_lines, parse_commentable_lines
from .ktlint import LintResult
from .services import ChangedFile, InlineComment, ReviewService
from .utils import escape_table_cell, format_rule, relative_file_path, truncate

logger = logging.getLogger(__name__)

TEMPLATE_DIR = Path(__file__).resolve().parent / "templates"
SUMMARY_TEMPLATE = "summary.md.j2"


@dataclass(frozen=True)
class Violation:
    """A ktlint violation located in the pull request."""

    path: str
    line: int
    column: int
    message: str
    rule: str = ""


@dataclass
class Selection:
    """Violations chosen for reporting, plus how many matched in total."""

    violations: list[Violation] = field(default_factory=list)
    total: int = 0

    @property
    def hidden(self) -> int:
        return self.total - len(self.violations)


def collect_targets(changed_files: Iterable[ChangedFile], config: LintConfig) -> list[str]:
    """Return added/modified Kotlin paths from the pull request's changed files."""
    return [
        changed.path
        for changed in changed_files
        if changed.is_lint_candidate and config.is_target(changed.path)
    ]


def added_lines_by_file(changed_files: Iterable[ChangedFile]) -> dict[str, set[int]]:
    return {changed.path: parse_added_lines(changed.patch) for changed in changed_files}


def select_violations(
    results: list[LintResult],
    targets: list[str],
    config: LintConfig,
    added_lines: Optional[Mapping[str, set[int]]] = None,
    root: Path = None,
) -> Selection:
    """Filter ktlint results down to what should be commented on.

    A violation is kept when its file is a target (only checked when
    ``config.filtering`` is on) and, with ``config.filtering_lines``, when its
    line was added by the pull request. At most ``config.limit`` violations
    are kept; ``total`` still counts every match.
    """
    target_set = set(targets)
    selection = Selection()

    for result in results:
        path = relative_file_path(result.file, root)
        if config.filtering and path not in target_set:
            logger.debug(f"Skipping {path}: not changed in this pull request")
            continue

        file_added = None
        if config.filtering_lines:
            file_added = (added_lines or {}).get(path, set())

        for error in result.errors:
            if file_added is not None and error.line not in file_added:
                continue
            selection.total += 1
            if config.limit is not None and len(selection.violations) >= config.limit:
                continue
            selection.violations.append(
                Violation(path=path, line=error.line, column=error.column, message=error.message, rule=error.rule)
            )

    if selection.hidden:
        logger.info(f"Comment limit {config.limit} reached, {selection.hidden} violations not reported")
    return selection


def get_template() -> Template:
    """Load the summary comment template."""
    env = Environment(
        loader=FileSystemLoader(str(TEMPLATE_DIR)),
        autoescape=False,
        trim_blocks=True,
        lstrip_blocks=True,
    )
    return env.get_template(SUMMARY_TEMPLATE)


def build_markdown(
    selection: Selection,
    service: ReviewService,
    limit: Optional[int] = None,
    title: str = "ktlint",
) -> str:
    """Render the summary comment for a selection of violations."""
    rows = [
        {
            "link": service.html_link(violation.path, violation.line),
            "message": escape_table_cell(truncate(violation.message, 280)),
            "rule": format_rule(violation.rule),
        }
        for violation in selection.violations
    ]
    files = {violation.path for violation in selection.violations}

    markdown = get_template().render(
        title=title,
        violations=rows,
        total=selection.total,
        file_count=len(files),
        hidden=selection.hidden,
        limit=limit,
    )
    logger.debug(f"Rendered summary markdown ({len(markdown)} chars)")
    return markdown


def send_markdown_comment(
    service: ReviewService,
    results: list[LintResult],
    targets: list[str],
    config: LintConfig,
    root: Path = None,
) -> Selection:
    """Post every selected violation in one summary comment.

    Nothing is posted when no violation survives filtering.
    """
    added = added_lines_by_file(service.changed_files()) if config.filtering_lines else None
    selection = select_violations(results, targets, config, added, root)

    if not selection.violations:
        logger.info("No ktlint violations to report")
        return selection

    service.post_summary(build_markdown(selection, service, config.limit))
    logger.info(f"Posted summary comment with {len(selection.violations)} violations")
    return selection


def build_inline_body(violation: Violation, correction: Optional[Correction] = None) -> str:
    """Format the body of one inline comment."""
    lines = [f":no_entry_sign: {violation.message}"]
    if violation.rule:
        lines.append("")
        lines.append(f"Rule: {format_rule(violation.rule)}")
    if correction is not None:
        lines.append("")
        lines.append("```suggestion")
        lines.extend(correction.replacement)
        lines.append("```")
    return "\n".join(lines)


def send_inline_comments(
    service: ReviewService,
    results: list[LintResult],
    targets: list[str],
    config: LintConfig,
    corrections: Optional[Mapping[str, list[Correction]]] = None,
    root: Path = None,
) -> Selection:
    """Post one inline comment per selected violation.

    Violations on lines the diff does not show cannot carry inline comments;
    they are listed in the review body instead. A suggestion block is added
    when a correction covers the line and every line of its span is visible
    in the diff. Each correction is suggested at most once.
    """
    changed = service.changed_files()
    added = added_lines_by_file(changed) if config.filtering_lines else None
    selection = select_violations(results, targets, config, added, root)

    if not selection.violations:
        logger.info("No ktlint violations to report")
        return selection

    commentable = {item.path: parse_commentable_lines(item.patch) for item in changed}
    corrections = corrections or {}
    suggested: set[tuple[str, Correction]] = set()

    comments: list[InlineComment] = []
    outside = Selection(total=0)
    for violation in selection.violations:
        visible = commentable.get(violation.path, set())
        if violation.line not in visible:
            outside.violations.append(violation)
            outside.total += 1
            continue

        correction = find_correction(corrections.get(violation.path, []), violation.line)
        if correction is not None:
            span = range(correction.start_line, correction.end_line + 1)
            if (violation.path, correction) in suggested or not all(line in visible for line in span):
                correction = None

        if correction is None:
            comments.append(InlineComment(violation.path, violation.line, build_inline_body(violation)))
            continue

        suggested.add((violation.path, correction))
        comments.append(
            InlineComment(
                violation.path,
                correction.end_line,
                build_inline_body(violation, correction),
                start_line=correction.start_line,
            )
        )

    body = ""
    if outside.violations:
        logger.info(f"{len(outside.violations)} violations are outside the diff, adding them to the review body")
        body = build_markdown(outside, service, title="ktlint (lines outside the diff)")

    service.post_review(body, comments)
    logger.info(f"Posted review with {len(comments)} inline comments")
    return selection

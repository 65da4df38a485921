"""ktlint plugin: lint changed Kotlin files and comment on the violations."""

import logging
from typing import Optional

from ..diff_parser import Correction, build_correction_diff, parse_corrections
from ..errors import KtlintReviewError
from ..ktlint import KtlintRunner, LintResult, load_reports
from ..reporter import collect_targets, send_inline_comments, send_markdown_comment
from ..utils import relative_file_path
from .base import Plugin, PluginContext, PluginResult

logger = logging.getLogger(__name__)


class KtlintPlugin(Plugin):
    """Plugin that runs ktlint (or reads its reports) and posts review comments."""

    def __init__(self, runner: Optional[KtlintRunner] = None):
        self._runner = runner

    @property
    def name(self) -> str:
        return "ktlint"

    def runner(self, context: PluginContext) -> KtlintRunner:
        if self._runner is None:
            self._runner = KtlintRunner(context.config.ktlint_path, cwd=context.workspace_root)
        return self._runner

    def detects(self, context: PluginContext) -> bool:
        """Run when a Kotlin file was added or modified, or filtering is off."""
        if not context.config.filtering:
            return True
        return bool(collect_targets(context.changed_files, context.config))

    def execute(self, context: PluginContext) -> PluginResult:
        """Lint, then post either one summary comment or inline comments.

        Args:
            context: Plugin context with the service, config and changed files.

        Returns:
            PluginResult; failures carry a comment explaining what went wrong.
        """
        logger.info("Executing ktlint plugin")
        config = context.config
        targets = collect_targets(context.changed_files, config)

        try:
            results = self._results(context, targets)
        except KtlintReviewError as e:
            logger.error(f"ktlint plugin failed: {e}")
            return PluginResult(
                success=False,
                message=str(e),
                metadata={"targets": targets},
                comment_content=f":no_entry_sign: {e}",
            )

        if not results:
            return PluginResult(
                success=True,
                message="ktlint reported no violations",
                metadata={"targets": targets, "reported": 0, "total": 0},
            )

        if config.inline_mode:
            corrections = self._corrections(context, results) if config.suggestions else None
            selection = send_inline_comments(
                context.service, results, targets, config, corrections, root=context.workspace_root
            )
        else:
            selection = send_markdown_comment(context.service, results, targets, config, root=context.workspace_root)

        return PluginResult(
            success=True,
            message=f"Reported {len(selection.violations)} of {selection.total} ktlint violations",
            metadata={
                "targets": targets,
                "reported": len(selection.violations),
                "total": selection.total,
            },
        )

    def _results(self, context: PluginContext, targets: list[str]) -> list[LintResult]:
        config = context.config
        if config.skip_lint:
            logger.info("skip_lint is set, reading existing ktlint reports")
            return load_reports(config.report_file, config.report_files_pattern)
        return self.runner(context).lint(targets, filtering=config.filtering)

    def _corrections(self, context: PluginContext, results: list[LintResult]) -> dict[str, list[Correction]]:
        """Compute auto-fix corrections for each file with violations.

        Formatting problems are logged and skipped; suggestions are optional.
        """
        runner = self.runner(context)
        if not runner.exists():
            logger.warning("ktlint not available, skipping suggestions")
            return {}

        corrections: dict[str, list[Correction]] = {}
        paths = {relative_file_path(result.file, context.workspace_root) for result in results if result.errors}
        for path in sorted(paths):
            source_path = context.workspace_root / path
            try:
                original = source_path.read_text(encoding="utf-8")
            except OSError as exc:
                logger.warning(f"Cannot read {source_path} for suggestions: {exc}")
                continue

            try:
                formatted = runner.format_source(path)
            except KtlintReviewError as exc:
                logger.warning(f"Cannot format {path} for suggestions: {exc}")
                continue
            if formatted is None or formatted == original:
                continue

            diff = build_correction_diff(path, original, formatted)
            corrections[path] = parse_corrections(diff, original)
            logger.debug(f"{path}: {len(corrections[path])} corrections")

        return corrections

"""Lint orchestrator: detect the service, run plugins, publish failures."""

import argparse
import logging
import subprocess
import sys
from pathlib import Path
from typing import Optional

from .config import LintConfig, apply_env_overrides, load_lint_config
from .errors import KtlintReviewError
from .plugins import KtlintPlugin, Plugin, PluginContext, PluginResult
from .services import SUPPORTED_SERVICES, ReviewService, create_service, detect_service

logger = logging.getLogger(__name__)


class LintOrchestrator:
    """Orchestrates the lint-and-comment workflow."""

    def __init__(
        self,
        config: LintConfig,
        service: ReviewService,
        workspace_root: Optional[Path] = None,
        plugins: Optional[list[Plugin]] = None,
        fail_on_violations: bool = False,
    ):
        """Initialize the lint orchestrator.

        Args:
            config: Lint settings.
            service: Review-hosting service to read changes from and post to.
            workspace_root: Repository checkout the linter runs in.
            plugins: Plugins to run. Defaults to the ktlint plugin.
            fail_on_violations: Exit non-zero when any violation was reported.
        """
        self.config = config
        self.service = service
        self.workspace_root = workspace_root or Path.cwd()
        self.plugins = plugins if plugins is not None else [KtlintPlugin()]
        self.fail_on_violations = fail_on_violations
        self.results: list[PluginResult] = []

    def run(self) -> int:
        """Run every applicable plugin and return a process exit code."""
        logger.info("Starting ktlint review")

        context = PluginContext(
            service=self.service,
            config=self.config,
            workspace_root=self.workspace_root,
            changed_files=self.service.changed_files(),
        )
        logger.info(f"Pull request changes {len(context.changed_files)} files")

        self.results = self._run_plugins(context)

        exit_code = 0
        for result in self.results:
            if not result.success:
                exit_code = 1
                if result.comment_content:
                    self._post_failure(result.comment_content)
            elif self.fail_on_violations and result.metadata.get("reported"):
                exit_code = 1

        logger.info(f"ktlint review complete (exit code {exit_code})")
        return exit_code

    @property
    def reported(self) -> int:
        """Violations reported by all plugins in the last run."""
        return sum(result.metadata.get("reported", 0) for result in self.results)

    def _run_plugins(self, context: PluginContext) -> list[PluginResult]:
        results = []
        for plugin in self.plugins:
            if not plugin.detects(context):
                logger.info(f"Plugin {plugin.name} did not detect applicable changes")
                continue

            logger.info(f"Running plugin: {plugin.name}")
            try:
                result = plugin.execute(context)
            except KtlintReviewError as e:
                logger.error(f"Plugin {plugin.name} failed: {e}")
                result = PluginResult(success=False, message=f"Plugin {plugin.name} failed: {e}")
            results.append(result)
            logger.info(f"Plugin {plugin.name}: {result.message}")

        return results

    def _post_failure(self, content: str) -> None:
        try:
            self.service.post_summary(content)
        except (KtlintReviewError, ValueError) as e:
            logger.warning(f"Failed to post failure comment: {e}")


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="ktlint-review",
        description="Run ktlint on pull request changes and post review comments",
    )
    parser.add_argument("--config", type=Path, help="Path to a ktlint-review YAML config")
    parser.add_argument("--inline", action="store_true", default=None, help="Post inline comments per line")
    parser.add_argument("--limit", type=int, help="Maximum number of comments to post")
    parser.add_argument("--skip-lint", action="store_true", default=None, help="Read existing ktlint reports")
    parser.add_argument("--report-file", help="ktlint JSON report to read with --skip-lint")
    parser.add_argument("--report-files-pattern", help="Glob of ktlint JSON reports to read with --skip-lint")
    parser.add_argument(
        "--no-filtering",
        dest="filtering",
        action="store_false",
        default=None,
        help="Lint the whole project instead of only changed files",
    )
    parser.add_argument(
        "--filtering-lines",
        action="store_true",
        default=None,
        help="Only report violations on lines added by the pull request",
    )
    parser.add_argument("--suggestions", action="store_true", default=None, help="Attach ktlint --format suggestions")
    parser.add_argument("--ktlint-path", help="ktlint executable")
    parser.add_argument("--base-ref", help="Base ref for local runs")
    parser.add_argument("--service", choices=SUPPORTED_SERVICES, help="Override service detection")
    parser.add_argument("--output-dir", default="output", help="Where local runs write comments")
    parser.add_argument("--fail-on-violations", action="store_true", help="Exit 1 when violations were reported")
    parser.add_argument("--verbose", "-v", action="store_true", help="Verbose logging")
    return parser


def apply_cli_overrides(config: LintConfig, args: argparse.Namespace) -> LintConfig:
    """Apply flags the user actually passed on top of file/env settings."""
    overrides = {
        "inline_mode": args.inline,
        "skip_lint": args.skip_lint,
        "report_file": args.report_file,
        "report_files_pattern": args.report_files_pattern,
        "filtering": args.filtering,
        "filtering_lines": args.filtering_lines,
        "suggestions": args.suggestions,
        "ktlint_path": args.ktlint_path,
        "base_ref": args.base_ref,
        "limit": args.limit,
    }
    for attr, value in overrides.items():
        if value is not None:
            setattr(config, attr, value)
    return config


def run_from_args(args: argparse.Namespace, workspace_root: Path = None) -> tuple[int, int]:
    """Run a review from parsed arguments.

    Returns:
        (exit code, number of violations reported).
    """
    workspace_root = workspace_root or Path.cwd()
    try:
        config = load_lint_config(args.config)
        apply_env_overrides(config)
        apply_cli_overrides(config, args)

        service_name = args.service or detect_service()
        service = create_service(
            service_name,
            base_ref=config.base_ref,
            workspace_root=workspace_root,
            output_dir=Path(args.output_dir),
        )

        orchestrator = LintOrchestrator(
            config=config,
            service=service,
            workspace_root=workspace_root,
            fail_on_violations=args.fail_on_violations,
        )
        exit_code = orchestrator.run()
        return exit_code, orchestrator.reported
    except KeyboardInterrupt:
        logger.error("Interrupted by user")
        return 130, 0
    except (KtlintReviewError, EnvironmentError, ValueError, subprocess.CalledProcessError) as e:
        logger.error(f"ktlint review failed: {e}")
        print(f"ERROR: {e}", file=sys.stderr)
        return 1, 0


def main(argv: Optional[list[str]] = None) -> int:
    """Main entry point for ktlint-review.

    Environment variables used on GitHub:
        GITHUB_TOKEN: GitHub token for API access
        GITHUB_REPOSITORY: Repository name (owner/repo)
        GITHUB_EVENT_PATH: Path to event JSON file
        REVIEW_PR_NUMBER: Optional PR number override

    Returns:
        Process exit code.
    """
    args = build_parser().parse_args(argv)

    logging.basicConfig(
        level=logging.DEBUG if args.verbose else logging.INFO,
        format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
    )

    exit_code, _ = run_from_args(args)
    return exit_code


def cli() -> None:
    sys.exit(main())


if __name__ == "__main__":
    cli()

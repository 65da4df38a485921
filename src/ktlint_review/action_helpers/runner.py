"""
Action runner for ktlint-review.

Maps GitHub Action inputs (``INPUT_*`` environment variables) onto the
ktlint-review command line and exposes the result as step outputs.
"""

import logging
import os
import sys
from pathlib import Path
from typing import Mapping, Optional

import structlog

logger = structlog.get_logger(__name__)

_TRUE_VALUES = {"1", "true", "yes", "on"}

# action input name -> CLI flag taking a value
_VALUE_INPUTS = {
    "limit": "--limit",
    "report_file": "--report-file",
    "report_files_pattern": "--report-files-pattern",
    "ktlint_path": "--ktlint-path",
    "base_ref": "--base-ref",
    "config": "--config",
    "service": "--service",
    "output_dir": "--output-dir",
}

# action input name -> CLI switch
_FLAG_INPUTS = {
    "inline_mode": "--inline",
    "skip_lint": "--skip-lint",
    "filtering_lines": "--filtering-lines",
    "suggestions": "--suggestions",
    "fail_on_violations": "--fail-on-violations",
    "verbose": "--verbose",
}


def get_input(name: str, env: Mapping[str, str] = None) -> str:
    """Read an action input the way the Actions runner exposes it."""
    if env is None:
        env = os.environ
    key = f"INPUT_{name.replace(' ', '_').upper()}"
    return (env.get(key) or "").strip()


def get_workspace_path(env: Mapping[str, str] = None) -> Path:
    """Get the workspace path from GitHub Actions environment.

    Returns:
        Path to the workspace directory
    """
    if env is None:
        env = os.environ
    workspace = env.get("GITHUB_WORKSPACE", "")
    if workspace:
        return Path(workspace)
    return Path.cwd()


def build_cli_args(env: Mapping[str, str] = None) -> list[str]:
    """Translate action inputs into ktlint-review CLI arguments."""
    args: list[str] = []

    for name, flag in _VALUE_INPUTS.items():
        value = get_input(name, env)
        if value:
            args.extend([flag, value])

    for name, flag in _FLAG_INPUTS.items():
        if get_input(name, env).lower() in _TRUE_VALUES:
            args.append(flag)

    filtering = get_input("filtering", env).lower()
    if filtering and filtering not in _TRUE_VALUES:
        args.append("--no-filtering")

    return args


def write_outputs(outputs: Mapping[str, object], env: Mapping[str, str] = None) -> bool:
    """Append step outputs to $GITHUB_OUTPUT.

    Returns:
        True if the outputs were written, False when not running in Actions.
    """
    if env is None:
        env = os.environ
    github_output = env.get("GITHUB_OUTPUT")
    if not github_output:
        logger.debug("github_output_not_set")
        return False

    with open(github_output, "a", encoding="utf-8") as f:
        for key, value in outputs.items():
            f.write(f"{key}={value}\n")
    logger.info("outputs_written", outputs=dict(outputs))
    return True


def run_action(env: Optional[Mapping[str, str]] = None) -> int:
    """Run ktlint-review as a GitHub Action step.

    Returns:
        Exit code (0 for success, non-zero for failure)
    """
    from ktlint_review.run_lint import build_parser, run_from_args

    if env is None:
        env = os.environ

    workspace_path = get_workspace_path(env)
    cli_args = build_cli_args(env)
    logger.info("action_start", workspace_path=str(workspace_path), args=cli_args)

    try:
        args = build_parser().parse_args(cli_args)
    except SystemExit as e:
        logger.error("invalid_action_inputs", args=cli_args)
        return int(e.code or 2)

    logging.basicConfig(
        level=logging.DEBUG if args.verbose else logging.INFO,
        format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
    )

    original_cwd = Path.cwd()
    os.chdir(workspace_path)
    try:
        exit_code, reported = run_from_args(args, workspace_root=workspace_path)
    finally:
        os.chdir(original_cwd)

    write_outputs({"violations": reported}, env)

    if exit_code:
        logger.error("action_failed", exit_code=exit_code, violations=reported)
    else:
        logger.info("action_complete", violations=reported)
    return exit_code


def main() -> None:
    sys.exit(run_action())


if __name__ == "__main__":
    main()

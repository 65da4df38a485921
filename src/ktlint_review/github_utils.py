"""GitHub API utilities for pull request lookup and review publishing."""

import json
import logging
import os
import re
import time
from pathlib import Path
from typing import Any, Callable, Mapping, Optional, TypeVar

from github import Github
from github.GithubException import GithubException
from github.PullRequest import PullRequest

logger = logging.getLogger(__name__)

T = TypeVar("T")

# GitHub rejects issue comments longer than this
MAX_COMMENT_LENGTH = 65536


def with_retries(action: Callable[[], T], description: str, max_retries: int = 3) -> T:
    """Run a GitHub API call, retrying GithubException with exponential backoff.

    Raises:
        ValueError: When every attempt failed, chained to the last GithubException.
    """
    for attempt in range(max_retries):
        try:
            logger.debug(f"{description} (attempt {attempt + 1}/{max_retries})")
            return action()
        except GithubException as exc:
            logger.warning(f"GitHub API error during {description} (attempt {attempt + 1}): {exc}")
            if attempt == max_retries - 1:
                logger.error(f"Failed to {description} after {max_retries} attempts: {exc}")
                raise ValueError(f"failed to {description}: {exc}") from exc
            time.sleep(2 ** attempt)
    raise ValueError(f"failed to {description}: no attempts made")


def load_pull_request(
    token: str,
    repository: str,
    pr_number: Optional[int] = None,
    base_url: Optional[str] = None,
) -> PullRequest:
    """Load the pull request under review.

    Args:
        token: GitHub token.
        repository: Repository name (e.g., "owner/repo").
        pr_number: Pull request number. If None, resolved from the environment.
        base_url: API base URL for GitHub Enterprise.

    Returns:
        PyGithub PullRequest.
    """
    if pr_number is None:
        pr_number = _resolve_pr_number()

    logger.info(f"Loading pull request {repository}#{pr_number}")
    gh = Github(token, base_url=base_url) if base_url else Github(token)

    repo = with_retries(lambda: gh.get_repo(repository), f"get repository {repository}")
    pr = with_retries(lambda: repo.get_pull(pr_number), f"get pull request #{pr_number}")
    logger.info(f"Loaded pull request #{pr_number}: {pr.title}")
    return pr


def list_pull_request_files(pr: PullRequest) -> list[dict[str, Any]]:
    """Return changed files of a pull request as plain dicts.

    Each entry has ``filename``, ``status`` and ``patch`` (empty for binary
    files or patches GitHub considers too large).
    """
    files = with_retries(lambda: list(pr.get_files()), f"list files of pull request #{pr.number}")
    entries = []
    for changed in files:
        entries.append({
            "filename": changed.filename,
            "status": changed.status,
            "patch": changed.patch or "",
        })
    logger.info(f"Pull request #{pr.number} changes {len(entries)} files")
    return entries


_PULL_REF_RE = re.compile(r"^refs/pull/(\d+)/")


def _as_pr_number(value: Any) -> Optional[int]:
    if isinstance(value, bool):
        return None
    if isinstance(value, int):
        return value
    if isinstance(value, dict):
        return _as_pr_number(value.get("number"))
    if isinstance(value, str) and value.strip().isdigit():
        return int(value.strip())
    return None


def _resolve_pr_number(env: Mapping[str, str] = None) -> int:
    """Work out which pull request this run is for.

    ``REVIEW_PR_NUMBER`` wins. Otherwise the event payload is consulted
    (``number``, ``pull_request.number``, then workflow_dispatch inputs),
    and finally a ``refs/pull/<n>/merge`` style ``GITHUB_REF``.

    Raises:
        ValueError: If no pull request number can be found.
    """
    if env is None:
        env = os.environ

    override = (env.get("REVIEW_PR_NUMBER") or "").strip()
    if override:
        number = _as_pr_number(override)
        if number is None:
            raise ValueError(f"Invalid REVIEW_PR_NUMBER: {override}")
        return number

    event_path = env.get("GITHUB_EVENT_PATH")
    if not event_path:
        raise ValueError("GITHUB_EVENT_PATH not set")

    event_file = Path(event_path)
    if not event_file.exists():
        raise ValueError(f"Event file not found: {event_path}")

    event = json.loads(event_file.read_text(encoding="utf-8"))
    inputs = event.get("inputs") or {}
    candidates = [event.get("number"), event.get("pull_request")]
    candidates.extend(inputs.get(key) for key in ("pr_number", "pr", "pull_request"))
    for candidate in candidates:
        number = _as_pr_number(candidate)
        if number is not None:
            return number

    ref_match = _PULL_REF_RE.match(env.get("GITHUB_REF", ""))
    if ref_match:
        return int(ref_match.group(1))

    raise ValueError("Could not determine PR number from event payload")


def publish_comment(pr: PullRequest, markdown: str) -> None:
    """Publish a summary comment on the pull request."""
    if not markdown or not markdown.strip():
        logger.warning("Empty markdown content, skipping comment publication")
        return

    if len(markdown) > MAX_COMMENT_LENGTH:
        logger.warning(f"Comment too long ({len(markdown)} chars), truncating to {MAX_COMMENT_LENGTH}")
        suffix = "\n\n... (truncated due to length)"
        markdown = markdown[: MAX_COMMENT_LENGTH - len(suffix)] + suffix

    comment = with_retries(lambda: pr.create_issue_comment(markdown), "publish comment on pull request")
    logger.info(f"Successfully created comment (ID: {getattr(comment, 'id', 'unknown')})")


def publish_review(
    pr: PullRequest,
    body: str,
    comments: list[dict[str, Any]],
    head_sha: Optional[str] = None,
) -> None:
    """Publish a review with inline comments.

    Args:
        pr: Pull request to review.
        body: Review body; may be empty when every comment is inline.
        comments: Review comment dicts with ``path``, ``line``, ``side`` and ``body``.
        head_sha: Commit the line numbers refer to. Defaults to the PR head.
    """
    if not comments and not (body or "").strip():
        logger.info("Nothing to publish in review")
        return

    sha = head_sha or pr.head.sha
    commit = with_retries(lambda: pr.base.repo.get_commit(sha), f"get commit {sha}")

    kwargs: dict[str, Any] = {"commit": commit, "event": "COMMENT"}
    if body and body.strip():
        kwargs["body"] = body[:MAX_COMMENT_LENGTH]
    if comments:
        kwargs["comments"] = comments

    with_retries(lambda: pr.create_review(**kwargs), "create review on pull request")
    logger.info(f"Successfully created review with {len(comments)} inline comments")

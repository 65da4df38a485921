"""Review-hosting services: where changed files come from and where comments go."""

from __future__ import annotations

import logging
import os
import subprocess
from abc import ABC, abstractmethod
from dataclasses import dataclass
from pathlib import Path
from typing import Any, Mapping, Optional

from github.PullRequest import PullRequest

from .errors import UnsupportedServiceError
from .github_utils import list_pull_request_files, load_pull_request, publish_comment, publish_review

logger = logging.getLogger(__name__)

GITHUB = "github"
GITLAB = "gitlab"
BITBUCKET = "bitbucket"
LOCAL = "local"

SUPPORTED_SERVICES = (GITHUB, GITLAB, BITBUCKET, LOCAL)

# Statuses that make a file worth linting. Removed files never are.
TARGET_STATUSES = frozenset({"added", "modified", "renamed", "copied", "changed"})

_GIT_STATUS = {
    "A": "added",
    "M": "modified",
    "D": "removed",
    "R": "renamed",
    "C": "copied",
    "T": "changed",
}


@dataclass(frozen=True)
class ChangedFile:
    path: str
    status: str
    patch: str = ""

    @property
    def is_lint_candidate(self) -> bool:
        return self.status in TARGET_STATUSES


@dataclass(frozen=True)
class InlineComment:
    path: str
    line: int
    body: str
    # first line of a multi-line comment, e.g. a suggestion spanning lines
    start_line: Optional[int] = None

    def as_github_payload(self) -> dict[str, Any]:
        payload: dict[str, Any] = {"path": self.path, "line": self.line, "side": "RIGHT", "body": self.body}
        if self.start_line is not None and self.start_line < self.line:
            payload["start_line"] = self.start_line
            payload["start_side"] = "RIGHT"
        return payload


def detect_service(env: Mapping[str, str] = None) -> str:
    """Work out which review-hosting service we are running under.

    ``KTLINT_REVIEW_SERVICE`` forces a value; otherwise CI environment markers
    decide, falling back to ``local``.
    """
    if env is None:
        env = os.environ

    forced = (env.get("KTLINT_REVIEW_SERVICE") or "").strip().lower()
    if forced:
        if forced not in SUPPORTED_SERVICES:
            raise UnsupportedServiceError(forced)
        return forced

    if env.get("GITHUB_TOKEN") and (env.get("GITHUB_ACTIONS") or env.get("GITHUB_REPOSITORY")):
        return GITHUB
    if env.get("GITLAB_CI"):
        return GITLAB
    if env.get("BITBUCKET_BUILD_NUMBER"):
        return BITBUCKET
    return LOCAL


class ReviewService(ABC):
    """A place that knows the PR's changed files and accepts review comments."""

    name: str = ""

    @abstractmethod
    def changed_files(self) -> list[ChangedFile]:
        """Files touched by the pull request, with their patches."""

    @abstractmethod
    def html_link(self, path: str, line: int) -> str:
        """Markdown link to a line of a file at the reviewed revision."""

    @abstractmethod
    def post_summary(self, markdown: str) -> None:
        """Post one summary comment."""

    @abstractmethod
    def post_review(self, body: str, comments: list[InlineComment]) -> None:
        """Post inline comments, with an optional review body."""

    def patch_for(self, path: str) -> str:
        for changed in self.changed_files():
            if changed.path == path:
                return changed.patch
        return ""


class GitHubService(ReviewService):
    """Pull request on GitHub, accessed through PyGithub."""

    name = GITHUB

    def __init__(
        self,
        token: str,
        repository: str,
        pr_number: Optional[int] = None,
        pr: Optional[PullRequest] = None,
        server_url: str = "https://github.com",
        api_url: Optional[str] = None,
    ):
        if not repository:
            raise ValueError("GITHUB_REPOSITORY environment variable not set")
        self.repository = repository
        self.server_url = server_url.rstrip("/")
        self.pr = pr or load_pull_request(token, repository, pr_number, base_url=api_url)
        self._changed: Optional[list[ChangedFile]] = None

    @property
    def head_sha(self) -> str:
        return self.pr.head.sha

    def changed_files(self) -> list[ChangedFile]:
        if self._changed is None:
            self._changed = [
                ChangedFile(path=entry["filename"], status=entry["status"], patch=entry["patch"])
                for entry in list_pull_request_files(self.pr)
            ]
        return self._changed

    def html_link(self, path: str, line: int) -> str:
        text = f"{path}#L{line}"
        return f"[{text}]({self.server_url}/{self.repository}/blob/{self.head_sha}/{text})"

    def post_summary(self, markdown: str) -> None:
        publish_comment(self.pr, markdown)

    def post_review(self, body: str, comments: list[InlineComment]) -> None:
        publish_review(
            self.pr,
            body,
            [comment.as_github_payload() for comment in comments],
            head_sha=self.head_sha,
        )


def _run_git(args: list[str], cwd: Path) -> str:
    result = subprocess.run(
        ["git", *args],
        cwd=cwd,
        capture_output=True,
        text=True,
        check=True,
    )
    return result.stdout


def parse_name_status(output: str) -> list[tuple[str, str]]:
    """Parse ``git diff --name-status -z`` output into (path, status) pairs.

    With ``-z`` fields are NUL-separated and paths are never quoted. Renames
    and copies carry the old and the new path; the new one is reviewed.
    """
    entries: list[tuple[str, str]] = []
    fields = output.split("\0")
    index = 0
    while index < len(fields):
        status = fields[index].strip()
        index += 1
        if not status:
            continue
        code = status[0]
        width = 2 if code in ("R", "C") else 1
        paths = fields[index:index + width]
        index += width
        if len(paths) < width or not paths[-1]:
            logger.warning(f"Truncated git name-status entry: {status}")
            break
        entries.append((paths[-1], _GIT_STATUS.get(code, "changed")))
    return entries


class LocalService(ReviewService):
    """Working tree compared against a base ref with the git CLI.

    Nothing is posted anywhere: comments are logged and written to
    ``output_dir`` so the run can be inspected or uploaded later.
    """

    name = LOCAL

    def __init__(self, base_ref: str = "origin/main", workspace_root: Path = None, output_dir: Path = None):
        self.base_ref = base_ref
        self.workspace_root = workspace_root or Path.cwd()
        self.output_dir = output_dir or self.workspace_root / "output"
        self._changed: Optional[list[ChangedFile]] = None

    def changed_files(self) -> list[ChangedFile]:
        if self._changed is None:
            logger.info(f"Collecting changed files against {self.base_ref}")
            output = _run_git(["diff", "--name-status", "-z", "-M", self.base_ref], self.workspace_root)
            changed = []
            for path, status in parse_name_status(output):
                patch = ""
                if status != "removed":
                    patch = _run_git(["diff", "-M", self.base_ref, "--", path], self.workspace_root)
                changed.append(ChangedFile(path=path, status=status, patch=patch))
            self._changed = changed
            logger.info(f"Found {len(changed)} changed files")
        return self._changed

    def html_link(self, path: str, line: int) -> str:
        return f"`{path}#L{line}`"

    def _write(self, filename: str, content: str) -> Path:
        self.output_dir.mkdir(parents=True, exist_ok=True)
        target = self.output_dir / filename
        target.write_text(content, encoding="utf-8")
        return target

    def post_summary(self, markdown: str) -> None:
        target = self._write("ktlint-review.md", markdown)
        logger.info(f"Summary comment written to {target}")

    def post_review(self, body: str, comments: list[InlineComment]) -> None:
        sections = [body.strip()] if body and body.strip() else []
        for comment in comments:
            sections.append(f"### {comment.path}:{comment.line}\n\n{comment.body}")
        target = self._write("ktlint-review.md", "\n\n".join(sections) + "\n")
        logger.info(f"Review with {len(comments)} inline comments written to {target}")


class LinkOnlyService(LocalService):
    """GitLab or Bitbucket: links point at the hosted file, posting is unsupported."""

    def __init__(self, name: str, env: Mapping[str, str], **kwargs: Any):
        super().__init__(**kwargs)
        self.name = name
        self.env = env

    def html_link(self, path: str, line: int) -> str:
        if self.name == GITLAB:
            project_url = self.env.get("CI_PROJECT_URL", "").rstrip("/")
            sha = self.env.get("CI_COMMIT_SHA", "HEAD")
            url = f"{project_url}/-/blob/{sha}/{path}#L{line}"
        else:
            repo = self.env.get("BITBUCKET_REPO_FULL_NAME", "")
            sha = self.env.get("BITBUCKET_COMMIT", "HEAD")
            url = f"https://bitbucket.org/{repo}/src/{sha}/{path}#lines-{line}"
        return f"[{path}#L{line}]({url})"

    def post_summary(self, markdown: str) -> None:
        raise UnsupportedServiceError(self.name)

    def post_review(self, body: str, comments: list[InlineComment]) -> None:
        raise UnsupportedServiceError(self.name)


def create_service(
    name: str,
    base_ref: str = "origin/main",
    workspace_root: Path = None,
    output_dir: Path = None,
    env: Mapping[str, str] = None,
) -> ReviewService:
    """Instantiate the service for name, reading credentials from env."""
    if env is None:
        env = os.environ

    logger.info(f"Using review service: {name}")

    if name == GITHUB:
        token = env.get("GITHUB_TOKEN", "").strip()
        if not token:
            raise EnvironmentError("GITHUB_TOKEN must be provided to publish ktlint results")
        return GitHubService(
            token=token,
            repository=env.get("GITHUB_REPOSITORY", ""),
            server_url=env.get("GITHUB_SERVER_URL", "https://github.com"),
            api_url=env.get("GITHUB_API_URL") or None,
        )
    if name in (GITLAB, BITBUCKET):
        return LinkOnlyService(name, env, base_ref=base_ref, workspace_root=workspace_root, output_dir=output_dir)
    if name == LOCAL:
        return LocalService(base_ref=base_ref, workspace_root=workspace_root, output_dir=output_dir)
    raise UnsupportedServiceError(name)

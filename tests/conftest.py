"""Shared pytest fixtures and configuration."""

import json
from pathlib import Path
from typing import Any
from unittest.mock import Mock

import pytest
from _pytest.monkeypatch import MonkeyPatch

from github.PullRequest import PullRequest
from github.Repository import Repository

from ktlint_review.config import LintConfig
from ktlint_review.ktlint import LintResult, LintViolation
from ktlint_review.services import ChangedFile, InlineComment, ReviewService


# new-file lines: 1-2 context, 3-5 added, 6-8 context
MODEL_PATCH = "\n".join([
    "@@ -1,6 +1,8 @@",
    " package com.example",
    " ",
    "-data class Model(val id: Int)",
    "+data class Model(val id: Int,",
    "+    val name: String)",
    "+",
    " fun helper() {",
    "     println(\"hi\")",
    " }",
])

VIEW_PATCH = """@@ -0,0 +1,3 @@
+package com.example
+
+class View
"""


class RecordingService(ReviewService):
    """In-memory review service that records what would have been posted."""

    name = "recording"

    def __init__(self, changed: list[ChangedFile]):
        self.changed = changed
        self.summaries: list[str] = []
        self.reviews: list[tuple[str, list[InlineComment]]] = []

    def changed_files(self) -> list[ChangedFile]:
        return self.changed

    def html_link(self, path: str, line: int) -> str:
        return f"[{path}#L{line}](https://example.test/{path}#L{line})"

    def post_summary(self, markdown: str) -> None:
        self.summaries.append(markdown)

    def post_review(self, body: str, comments: list[InlineComment]) -> None:
        self.reviews.append((body, comments))


@pytest.fixture
def github_token() -> str:
    """Fake GitHub token for testing."""
    return "ghp_test_token_1234567890"


@pytest.fixture
def repository() -> str:
    """Test repository name."""
    return "test-owner/test-repo"


@pytest.fixture
def pr_number() -> int:
    """Test PR number."""
    return 42


@pytest.fixture
def mock_repo(repository: str) -> Mock:
    """Mock GitHub Repository object."""
    repo = Mock(spec=Repository)
    repo.full_name = repository
    return repo


@pytest.fixture
def mock_pr(mock_repo: Mock, pr_number: int) -> Mock:
    """Mock GitHub PullRequest object."""
    pr = Mock(spec=PullRequest)
    pr.number = pr_number
    pr.title = "Test PR"

    pr.head = Mock()
    pr.head.ref = "feature-branch"
    pr.head.sha = "abc123def456"
    pr.head.repo = mock_repo

    pr.base = Mock()
    pr.base.ref = "main"
    pr.base.sha = "def456abc123"
    pr.base.repo = mock_repo

    return pr


@pytest.fixture
def changed_files() -> list[ChangedFile]:
    """Changed files of a typical Kotlin pull request."""
    return [
        ChangedFile("app/src/main/kotlin/com/example/Model.kt", "modified", MODEL_PATCH),
        ChangedFile("app/src/main/kotlin/com/example/View.kt", "added", VIEW_PATCH),
        ChangedFile("app/src/main/kotlin/com/example/Old.kt", "removed", ""),
        ChangedFile("README.md", "modified", "@@ -1 +1 @@\n-a\n+b\n"),
    ]


@pytest.fixture
def recording_service(changed_files: list[ChangedFile]) -> RecordingService:
    return RecordingService(changed_files)


@pytest.fixture
def config() -> LintConfig:
    return LintConfig()


@pytest.fixture
def sample_report_data() -> list[dict[str, Any]]:
    """Sample ktlint --reporter=json output."""
    return [
        {
            "file": "app/src/main/kotlin/com/example/Model.kt",
            "errors": [
                {
                    "line": 3,
                    "column": 30,
                    "message": "Missing newline before \")\"",
                    "rule": "standard:wrapping",
                },
                {
                    "line": 7,
                    "column": 5,
                    "message": "Unexpected indentation (4) (should be 8)",
                    "rule": "standard:indent",
                },
            ],
        },
        {
            "file": "app/src/main/kotlin/com/example/Other.kt",
            "errors": [
                {
                    "line": 1,
                    "column": 1,
                    "message": "File must end with a newline (\\n)",
                    "rule": "standard:final-newline",
                },
            ],
        },
    ]


@pytest.fixture
def sample_report_json(sample_report_data: list[dict[str, Any]]) -> str:
    return json.dumps(sample_report_data, indent=2)


@pytest.fixture
def sample_results() -> list[LintResult]:
    return [
        LintResult(
            file="app/src/main/kotlin/com/example/Model.kt",
            errors=[
                LintViolation(3, 30, "Missing newline before \")\"", "standard:wrapping"),
                LintViolation(7, 5, "Unexpected indentation (4) (should be 8)", "standard:indent"),
            ],
        ),
        LintResult(
            file="app/src/main/kotlin/com/example/View.kt",
            errors=[LintViolation(3, 1, "File must end with a newline (\\n)", "standard:final-newline")],
        ),
        LintResult(
            file="app/src/main/kotlin/com/example/Other.kt",
            errors=[LintViolation(1, 1, "Unused import", "standard:no-unused-imports")],
        ),
    ]


@pytest.fixture
def workspace(tmp_path: Path) -> Path:
    """Create a temporary workspace directory structure."""
    workspace = tmp_path / "workspace"
    (workspace / "app" / "src" / "main" / "kotlin" / "com" / "example").mkdir(parents=True)
    (workspace / "output").mkdir()
    return workspace


@pytest.fixture
def mock_env(monkeypatch: MonkeyPatch, github_token: str, repository: str, workspace: Path) -> None:
    """Set up mock GitHub Actions environment variables."""
    for name in ("GITLAB_CI", "BITBUCKET_BUILD_NUMBER", "KTLINT_REVIEW_SERVICE", "REVIEW_PR_NUMBER", "GITHUB_REF"):
        monkeypatch.delenv(name, raising=False)
    monkeypatch.setenv("GITHUB_TOKEN", github_token)
    monkeypatch.setenv("GITHUB_REPOSITORY", repository)
    monkeypatch.setenv("GITHUB_ACTIONS", "true")
    monkeypatch.setenv("GITHUB_EVENT_NAME", "pull_request")
    monkeypatch.setenv("GITHUB_WORKSPACE", str(workspace))
    monkeypatch.setenv("GITHUB_EVENT_PATH", str(workspace / "event.json"))


@pytest.fixture
def mock_event_payload(workspace: Path, pr_number: int) -> None:
    """Create a sample GitHub event payload."""
    event = {
        "number": pr_number,
        "pull_request": {
            "number": pr_number,
            "title": "Test PR",
            "base": {"ref": "main", "sha": "def456abc123"},
            "head": {"ref": "feature-branch", "sha": "abc123def456"},
        },
    }
    (workspace / "event.json").write_text(json.dumps(event))


@pytest.fixture(autouse=True)
def clean_ktlint_env(monkeypatch: MonkeyPatch) -> None:
    """Keep KTLINT_* settings from the developer's shell out of tests."""
    import os

    for name in list(os.environ):
        if name.startswith("KTLINT_"):
            monkeypatch.delenv(name, raising=False)

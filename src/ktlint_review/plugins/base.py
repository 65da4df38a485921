"""Plugin interface for lint steps run against a pull request."""

from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any

from ..config import LintConfig
from ..services import ChangedFile, ReviewService


@dataclass
class PluginContext:
    """Everything a plugin needs to lint a pull request and comment on it."""

    service: ReviewService
    config: LintConfig

    # checkout the linter runs in; reported paths are relative to it
    workspace_root: Path

    changed_files: list[ChangedFile] = field(default_factory=list)

    # scratch space shared between plugins of one run
    plugin_data: dict[str, Any] = field(default_factory=dict)

    @property
    def changed_paths(self) -> list[str]:
        return [changed.path for changed in self.changed_files]


@dataclass
class PluginResult:
    """Outcome of one plugin run."""

    success: bool
    message: str = ""
    metadata: dict[str, Any] = field(default_factory=dict)

    # posted as a summary comment when the run failed
    comment_content: str | None = None


class Plugin(ABC):
    """A lint step: decides whether it applies, then lints and reports."""

    @property
    @abstractmethod
    def name(self) -> str:
        """Short identifier used in logs."""

    @abstractmethod
    def detects(self, context: PluginContext) -> bool:
        """Return True when the pull request has something for this plugin to lint."""

    @abstractmethod
    def execute(self, context: PluginContext) -> PluginResult:
        """Lint and publish comments through ``context.service``.

        Expected failures are reported through the returned result rather
        than raised; the orchestrator still catches ``KtlintReviewError``.
        """

"""Configuration loader for ktlint-review.

Settings come from a YAML file in the repository, then ``KTLINT_*``
environment variables, then command line flags (applied by the caller).
"""

from dataclasses import dataclass, field, fields
import logging
import os
from pathlib import Path
from typing import Any, Dict, Iterable, Mapping, Optional

import yaml

from .errors import UnexpectedLimitTypeError


logger = logging.getLogger(__name__)

DEFAULT_CONFIG_FILES = (
    Path(".github/ktlint-review.yaml"),
    Path(".github/ktlint-review.yml"),
)

DEFAULT_EXTENSIONS = (".kt", ".kts")

_TRUE_VALUES = {"1", "true", "yes", "on"}
_FALSE_VALUES = {"0", "false", "no", "off", ""}


def _validate_limit(value: Any) -> Optional[int]:
    # bool is an int subclass but never a sensible comment count
    if value is None:
        return None
    if isinstance(value, bool) or not isinstance(value, int) or value < 0:
        raise UnexpectedLimitTypeError(value)
    return value


@dataclass
class LintConfig:
    """Settings controlling how ktlint runs and how results are reported."""

    filtering: bool = True
    filtering_lines: bool = False
    skip_lint: bool = False
    report_file: Optional[str] = None
    report_files_pattern: Optional[str] = None
    inline_mode: bool = False
    suggestions: bool = False
    ktlint_path: str = "ktlint"
    extensions: list[str] = field(default_factory=lambda: list(DEFAULT_EXTENSIONS))
    base_ref: str = "origin/main"
    limit: Optional[int] = None

    def __setattr__(self, name: str, value: Any) -> None:
        if name == "limit":
            value = _validate_limit(value)
        super().__setattr__(name, value)

    def set_limit(self, value: Any) -> None:
        """Set the maximum number of comments to post.

        Raises:
            UnexpectedLimitTypeError: If value is not None or an integer.
        """
        self.limit = value

    def is_target(self, path: str) -> bool:
        """Return True when path has one of the configured Kotlin suffixes."""
        return any(path.endswith(ext) for ext in self.extensions)


def _search_upwards(candidates: Iterable[Path]) -> Path | None:
    current = Path.cwd()
    for base in (current, *current.parents):
        for candidate in candidates:
            resolved = base / candidate
            if resolved.is_file():
                return resolved
    return None


def _parse_bool(value: Any, key: str) -> bool:
    if isinstance(value, bool):
        return value
    if isinstance(value, str):
        normalized = value.strip().lower()
        if normalized in _TRUE_VALUES:
            return True
        if normalized in _FALSE_VALUES:
            return False
    raise ValueError(f"{key} must be a boolean, got {value!r}")


def _normalize_string_list(value: Any) -> list[str]:
    if value is None:
        return []
    if isinstance(value, str):
        return [item.strip() for item in value.split(",") if item.strip()]
    if isinstance(value, list):
        return [entry.strip() for entry in value if isinstance(entry, str) and entry.strip()]
    return []


_BOOL_FIELDS = {"filtering", "filtering_lines", "skip_lint", "inline_mode", "suggestions"}
_STR_FIELDS = {"report_file", "report_files_pattern", "ktlint_path", "base_ref"}
_REQUIRED_STR_FIELDS = {"ktlint_path", "base_ref"}


def config_from_mapping(data: Mapping[str, Any]) -> LintConfig:
    """Build a LintConfig from a parsed YAML mapping.

    Unknown keys are ignored. A bad ``limit`` raises UnexpectedLimitTypeError;
    other malformed values raise ValueError.
    """
    config = LintConfig()
    known = {f.name for f in fields(LintConfig)}

    for key, value in data.items():
        if key not in known:
            logger.debug(f"Ignoring unknown config key: {key}")
            continue
        if key in _BOOL_FIELDS:
            setattr(config, key, _parse_bool(value, key))
        elif key in _STR_FIELDS:
            cleaned = str(value).strip() if value is not None else ""
            if cleaned:
                setattr(config, key, cleaned)
            elif key not in _REQUIRED_STR_FIELDS:
                setattr(config, key, None)
        elif key == "extensions":
            extensions = _normalize_string_list(value)
            config.extensions = extensions or list(DEFAULT_EXTENSIONS)
        elif key == "limit":
            config.limit = value

    return config


def load_lint_config(config_path: Path = None) -> LintConfig:
    """Load ktlint-review settings from a YAML file.

    Args:
        config_path: Optional override path. Defaults to KTLINT_REVIEW_CONFIG_PATH,
            then .github/ktlint-review.yaml (or .yml) searched upwards from cwd.

    Returns:
        LintConfig. Defaults are returned when the file is missing or invalid.
    """
    env_override = (os.environ.get("KTLINT_REVIEW_CONFIG_PATH") or "").strip()
    if config_path is None and env_override:
        config_path = Path(env_override)

    if config_path is None:
        config_path = _search_upwards(DEFAULT_CONFIG_FILES)

    if config_path is None or not config_path.exists():
        logger.debug("No ktlint-review config file found, using defaults")
        return LintConfig()

    try:
        data = yaml.safe_load(config_path.read_text(encoding="utf-8"))
    except (OSError, yaml.YAMLError) as exc:
        logger.warning("Failed to load ktlint-review config at %s: %s", config_path, exc)
        return LintConfig()

    if data is None:
        return LintConfig()

    if not isinstance(data, dict):
        logger.warning("ktlint-review config %s did not contain a YAML mapping", config_path)
        return LintConfig()

    try:
        config = config_from_mapping(data)
    except ValueError as exc:
        logger.warning("Invalid ktlint-review config at %s: %s", config_path, exc)
        return LintConfig()

    logger.info(f"Loaded ktlint-review config from {config_path}")
    return config


_ENV_OVERRIDES: Dict[str, str] = {
    "KTLINT_FILTERING": "filtering",
    "KTLINT_FILTERING_LINES": "filtering_lines",
    "KTLINT_SKIP_LINT": "skip_lint",
    "KTLINT_REPORT_FILE": "report_file",
    "KTLINT_REPORT_FILES_PATTERN": "report_files_pattern",
    "KTLINT_INLINE_MODE": "inline_mode",
    "KTLINT_SUGGESTIONS": "suggestions",
    "KTLINT_PATH": "ktlint_path",
    "KTLINT_BASE_REF": "base_ref",
}


def apply_env_overrides(config: LintConfig, env: Mapping[str, str] = None) -> LintConfig:
    """Override config fields from KTLINT_* environment variables.

    Raises:
        UnexpectedLimitTypeError: If KTLINT_LIMIT is set but not an integer.
    """
    if env is None:
        env = os.environ

    for env_name, attr in _ENV_OVERRIDES.items():
        raw = env.get(env_name)
        if raw is None:
            continue
        if attr in _BOOL_FIELDS:
            # workflows often map unset inputs to an empty string
            if not raw.strip():
                continue
            setattr(config, attr, _parse_bool(raw, env_name))
        elif raw.strip():
            setattr(config, attr, raw.strip())
        elif attr not in _REQUIRED_STR_FIELDS:
            setattr(config, attr, None)
        logger.debug(f"{attr} overridden from {env_name}")

    raw_limit = env.get("KTLINT_LIMIT")
    if raw_limit is not None and raw_limit.strip():
        try:
            config.limit = int(raw_limit.strip())
        except ValueError:
            raise UnexpectedLimitTypeError(raw_limit) from None

    return config

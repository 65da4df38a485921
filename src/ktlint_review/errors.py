"""Exception types raised by ktlint-review."""

from typing import List


class KtlintReviewError(Exception):
    """Base class for all ktlint-review failures."""


class UnexpectedLimitTypeError(KtlintReviewError, TypeError):
    """Raised when the comment limit is neither None nor a non-negative integer."""

    def __init__(self, value: object):
        super().__init__(f"limit must be a non-negative integer or None, got {type(value).__name__}: {value!r}")
        self.value = value


class KtlintNotFoundError(KtlintReviewError):
    """Raised when the ktlint executable cannot be located."""

    def __init__(self, executable: str = "ktlint"):
        super().__init__(f"Couldn't find {executable} command. Install first.")
        self.executable = executable


class KtlintError(KtlintReviewError):
    """Raised when ktlint exits with an unexpected status."""

    def __init__(self, message: str, returncode: int | None = None, stderr: str = ""):
        super().__init__(message)
        self.returncode = returncode
        self.stderr = stderr


class KtlintReportError(KtlintReviewError):
    """Raised when a ktlint JSON report is missing or malformed."""


class ReportValidationError(KtlintReportError):
    """Raised when a ktlint report does not match the bundled schema."""

    def __init__(self, message: str, errors: List[str] = None):
        super().__init__(message)
        self.errors = errors or []


class UnsupportedServiceError(KtlintReviewError):
    """Raised when comments are requested on a service we cannot post to."""

    def __init__(self, service: str):
        super().__init__(f"This plugin does not support {service}")
        self.service = service

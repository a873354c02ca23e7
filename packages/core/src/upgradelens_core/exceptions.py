"""Exception hierarchy for upgradelens.

Every error the pipeline raises derives from UpgradeLensError so the CLI can
turn them into one-line messages without catching unrelated bugs. Which
errors abort a batch and which are recorded against a single file is decided
in upgradelens_core.batch, not here.
"""

from __future__ import annotations


class UpgradeLensError(Exception):
    """Base exception for all upgradelens errors."""


class ScanError(UpgradeLensError):
    """A module directory is missing or cannot be read."""


class AnalysisError(UpgradeLensError):
    """The AI service failed irrecoverably for one file.

    ``status_code`` carries the HTTP status when there was one (401, 429,
    500...) and is None for transport failures.
    """

    def __init__(self, message: str, status_code: int | None = None):
        super().__init__(message)
        self.status_code = status_code


class RateLimitError(AnalysisError):
    """The AI service answered 429.

    ``retry_after`` is the server's "try again in N s" hint, already rounded
    up to whole seconds, or None when the response carried no hint.
    """

    def __init__(self, message: str, retry_after: int | None = None):
        super().__init__(message, status_code=429)
        self.retry_after = retry_after


class ParseError(UpgradeLensError):
    """The AI response did not match the expected JSON contract."""


class PatchError(UpgradeLensError):
    """A patch could not be generated, applied or rolled back."""


class ConfigError(UpgradeLensError):
    """Configuration is invalid or a required credential is unusable."""


class BatchError(UpgradeLensError):
    """Base for batch lifecycle errors."""


class BatchInProgressError(BatchError):
    """A second batch was started while another one is still active."""

    def __init__(self, batch_id: str):
        super().__init__(
            f"Batch {batch_id} is still active. Resume it with --resume {batch_id} "
            "or discard it with `upgradelens progress --abandon`."
        )
        self.batch_id = batch_id


class NothingToResumeError(BatchError):
    """No persisted batch state exists for the requested id."""


class AuthenticationError(AnalysisError, ConfigError):
    """The AI service rejected the credential (401/403).

    Both an AnalysisError, because it is a failed call, and a ConfigError,
    because every later call would fail the same way.
    """

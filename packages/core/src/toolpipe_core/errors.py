"""Error taxonomy shared by every pipeline component.

Each class maps to one propagation rule:
  ConfigError        missing / malformed credentials; fatal, never retried
  AuthError          installation or token resolution failed; fatal per request
  ValidationError    malformed caller input; raised before any network call
  UpstreamError      GitHub API failure (NotFoundError for 404s)
  GenerationError    model call failure, scoped to one file (SafetyBlockedError
                     when the provider refused for safety reasons)
  PartialBatchFailure  some or all units of a batch failed
"""

from __future__ import annotations

from typing import TYPE_CHECKING

if TYPE_CHECKING:
    from github import GithubException


class ToolpipeError(Exception):
    """Base class for all toolpipe errors."""


class ConfigError(ToolpipeError):
    pass


class AuthError(ToolpipeError):
    pass


class ValidationError(ToolpipeError):
    pass


class UpstreamError(ToolpipeError):
    def __init__(self, message: str, status: int | None = None):
        super().__init__(message)
        self.status = status

    @classmethod
    def from_github(cls, exc: GithubException, context: str = "") -> UpstreamError:
        """Convert a PyGithub exception, picking NotFoundError for 404s."""
        detail = exc.data.get("message") if isinstance(exc.data, dict) else None
        message = f"{context}: {detail or exc}" if context else str(detail or exc)
        if exc.status == 404:
            return NotFoundError(message, status=404)
        return cls(message, status=exc.status)


class NotFoundError(UpstreamError):
    pass


class GenerationError(ToolpipeError):
    pass


class SafetyBlockedError(GenerationError):
    pass


class PartialBatchFailure(ToolpipeError):
    def __init__(self, failed_paths: list[str], total: int):
        self.failed_paths = failed_paths
        self.total = total
        super().__init__(f"{len(failed_paths)} of {total} file(s) failed: {', '.join(failed_paths)}")

    @property
    def all_failed(self) -> bool:
        return self.total > 0 and len(self.failed_paths) == self.total

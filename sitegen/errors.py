"""Exception hierarchy for the generation pipeline."""

from __future__ import annotations


class SiteGenError(RuntimeError):
    """Base class for every error raised by sitegen."""


class ConfigurationError(SiteGenError):
    """Raised when a required setting (such as the model credential) is missing."""


class RateLimitExceeded(SiteGenError):
    """Raised when a request arrives before the minimum interval has elapsed."""

    def __init__(self, retry_after_seconds: float) -> None:
        super().__init__("Too many requests. Please wait before generating again.")
        self.retry_after_seconds = retry_after_seconds


class GenerationServiceError(SiteGenError):
    """Non-retryable failure of the remote generation service."""

    def __init__(self, message: str, *, status: int | None = None) -> None:
        super().__init__(message)
        self.status = status


class TransientServiceError(GenerationServiceError):
    """The remote service is temporarily unavailable; the call may be retried."""


class WorkspaceError(SiteGenError):
    """The workspace root could not be reset."""


class InstallError(SiteGenError):
    """Dependency installation exited non-zero or timed out."""

    def __init__(self, message: str, *, returncode: int | None = None) -> None:
        super().__init__(message)
        self.returncode = returncode


class EmptyWorkspaceError(SiteGenError):
    """Raised when there is nothing to package."""


class PipelineError(SiteGenError):
    """A fatal error at one stage of the generation pipeline."""

    def __init__(self, stage: str, message: str) -> None:
        super().__init__(f"{stage} failed: {message}")
        self.stage = stage
        self.detail = message


__all__ = [
    "ConfigurationError",
    "EmptyWorkspaceError",
    "GenerationServiceError",
    "InstallError",
    "PipelineError",
    "RateLimitExceeded",
    "SiteGenError",
    "TransientServiceError",
    "WorkspaceError",
]

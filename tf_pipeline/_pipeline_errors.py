"""Shared error types for the Terraform pipeline bootstrapper.

This module defines the exception hierarchy used across the synchronizer and
destroy workflows, covering validation failures, GitHub API failures,
reference-update conflicts, secret publication, and destroy dispatch issues.

Exceptions
----------
PipelineError
PipelineValidationError
GitHubAPIError
GitHubNotFoundError
GitHubConflictError
GitHubRateLimitError
SecretPublicationError
PipelineSyncError
DestroyError
"""

from __future__ import annotations


class PipelineError(Exception):
    """Base error for pipeline bootstrap operations."""


class PipelineValidationError(PipelineError):
    """Raised when inputs are missing, unsafe, or inconsistent."""


class GitHubAPIError(PipelineError):
    """Raised when a GitHub REST call fails.

    Parameters
    ----------
    operation
        Name of the remote operation that failed (e.g. ``create blob``).
    status_code
        HTTP status code, or ``None`` when the request never completed.
    message
        Error detail reported by GitHub or the transport.

    Examples
    --------
    >>> str(GitHubAPIError("create blob", 500, "boom"))
    'create blob failed (HTTP 500): boom'
    """

    def __init__(self, operation: str, status_code: int | None, message: str) -> None:
        self.operation = operation
        self.status_code = status_code
        self.message = message
        status = f"HTTP {status_code}" if status_code is not None else "no response"
        super().__init__(f"{operation} failed ({status}): {message}")


class GitHubNotFoundError(GitHubAPIError):
    """Raised when a required GitHub resource does not exist."""


class GitHubConflictError(GitHubAPIError):
    """Raised when a branch reference moved during a non-force update."""


class GitHubRateLimitError(GitHubAPIError):
    """Raised when GitHub signals a primary or secondary rate limit."""

    def __init__(
        self,
        operation: str,
        status_code: int | None,
        message: str,
        retry_after: float | None = None,
    ) -> None:
        super().__init__(operation, status_code, message)
        self.retry_after = retry_after


class SecretPublicationError(PipelineError):
    """Raised when publishing a repository secret fails."""

    def __init__(self, secret_name: str, message: str) -> None:
        self.secret_name = secret_name
        super().__init__(f"failed to publish secret {secret_name}: {message}")


class PipelineSyncError(PipelineError):
    """Raised when a synchronizer step fails; ``step`` names the step."""

    def __init__(self, step: str, message: str) -> None:
        self.step = step
        super().__init__(f"failed to {step}: {message}")


class DestroyError(PipelineError):
    """Raised when the destroy workflow cannot be refreshed or dispatched."""

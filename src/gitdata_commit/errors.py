"""Error taxonomy for Git Data API operations."""

import time
from typing import Any, Dict, Optional


class GitHubError(Exception):
    """Base class for every failure surfaced by gitdata_commit."""


class InvalidBranch(GitHubError):
    def __init__(self, name: str):
        self.name = name
        super().__init__(f"The branch '{name}' does not exist")


class InvalidParameter(GitHubError):
    def __init__(self, description: str):
        self.description = description
        super().__init__(f"Invalid parameter: {description}")


class UnexpectedStatus(GitHubError):
    """The remote answered with a non-success status not otherwise classified."""

    def __init__(self, status: int, body: Optional[str] = None):
        self.status = status
        self.body = body
        message = f"Unexpected response status {status}"
        if body:
            message += f" body: {body}"
        super().__init__(message)


class DecodingFailure(GitHubError):
    def __init__(self, message: str):
        self.message = message
        super().__init__(f"Decoding error: {message}")


class RefUpdateConflict(GitHubError):
    """The ref update was rejected because it is not a fast forward.

    The branch moved after it was read. Nothing created during the run is
    reachable from it; re-run the whole batch to retry.
    """

    def __init__(self, branch: str, sha: str, body: Optional[str] = None):
        self.branch = branch
        self.sha = sha
        self.body = body
        super().__init__(
            f"Updating '{branch}' to {sha} was rejected (not a fast forward)"
        )


class ConfigurationError(GitHubError):
    def __init__(self, message: str):
        self.message = message
        super().__init__(f"Configuration error: {message}")


class ErrorContext:
    """Where a commit run stopped and what that means for the branch."""

    def __init__(
        self,
        error: BaseException,
        operation: str = "",
        branch: Optional[str] = None,
        before_commit_point: bool = True,
        read_only: bool = False,
        metadata: Optional[Dict[str, Any]] = None,
    ):
        self.error = error
        self.operation = operation
        self.branch = branch
        self.before_commit_point = before_commit_point
        self.read_only = read_only
        self.metadata = metadata or {}
        self.error_time = time.time()

    @property
    def branch_unchanged(self) -> bool:
        return self.before_commit_point

    def describe(self) -> str:
        kind = type(self.error).__name__
        where = f" during {self.operation}" if self.operation else ""
        outcome = (
            "branch left unchanged"
            if self.branch_unchanged
            else "branch may have been updated"
        )
        return f"{kind}{where}: {self.error} ({outcome})"

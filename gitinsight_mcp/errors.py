"""
Error types for the GitInsight MCP Server.

GitHub failures are classified from the HTTP status code and rate-limit
headers of the response, never from the text of an exception message.
"""
from typing import Any, Dict, Optional


class GitInsightError(Exception):
    """Base class for all errors raised by this package."""

    kind = "internal"

    def __init__(self, message: str):
        super().__init__(message)
        self.message = message

    def to_details(self) -> Dict[str, Any]:
        return {"category": self.kind}


class ConfigurationError(GitInsightError):
    """A required setting is missing or invalid. Fatal at startup."""

    kind = "configuration"


class ToolValidationError(GitInsightError):
    """A tool was called with missing or malformed arguments."""

    kind = "validation"


class GitHubAPIError(GitInsightError):
    """A GitHub API call failed."""

    kind = "api_error"

    def __init__(self, message: str, status_code: Optional[int] = None):
        super().__init__(message)
        self.status_code = status_code

    def to_details(self) -> Dict[str, Any]:
        details = super().to_details()
        if self.status_code is not None:
            details["status_code"] = self.status_code
        return details


class GitHubTransportError(GitHubAPIError):
    """The request never produced an HTTP response (DNS, connect, timeout)."""

    kind = "transport"


class AuthenticationError(GitHubAPIError):
    kind = "authentication"

    def __init__(self, status_code: Optional[int] = 401):
        super().__init__(
            "Invalid GitHub token. Please check GITHUB_TOKEN in your .env file.",
            status_code=status_code,
        )


class RateLimitError(GitHubAPIError):
    """The GitHub API rate limit is exhausted. Never retried automatically."""

    kind = "rate_limit"

    def __init__(self, status_code: Optional[int] = 403, reset_at: Optional[str] = None):
        super().__init__(
            "GitHub API rate limit exceeded. Please try again later.",
            status_code=status_code,
        )
        self.reset_at = reset_at

    def to_details(self) -> Dict[str, Any]:
        details = super().to_details()
        details["reset_at"] = self.reset_at
        details["hint"] = "Retry after the reset time, or call the tool with use_cache=true."
        return details


class NotFoundError(GitHubAPIError):
    kind = "not_found"

    def __init__(self, resource: str = "", status_code: Optional[int] = 404):
        message = "Repository or resource not found."
        if resource:
            message = f"Repository or resource not found: {resource}"
        super().__init__(message, status_code=status_code)
        self.resource = resource

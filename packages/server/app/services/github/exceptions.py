"""Exceptions raised by the GitHub integration layer."""

from __future__ import annotations


class GitHubError(Exception):
    """Base exception for GitHub failures."""

    status_code: int | None = None

    @property
    def http_status(self) -> int:
        """Status to surface to our caller: upstream 4xx kept, anything else 502."""
        if self.status_code is not None and 400 <= self.status_code < 500:
            return self.status_code
        return 502


class GitHubConfigurationError(GitHubError):
    """Raised when the App ID or private key is missing or unusable."""

    @property
    def http_status(self) -> int:
        return 500


class GitHubAPIError(GitHubError):
    """Raised for any non-2xx response from the REST API."""

    def __init__(self, message: str, status_code: int, method: str = "", path: str = ""):
        super().__init__(message)
        self.status_code = status_code
        self.method = method
        self.path = path

    @property
    def not_found(self) -> bool:
        return self.status_code == 404

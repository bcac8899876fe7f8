"""Custom exceptions for swsync."""

from typing import Optional


class StudioWebAPIError(Exception):
    """Base exception for Studio Web API errors."""

    def __init__(self, message: str, status_code: Optional[int] = None):
        super().__init__(message)
        self.status_code = status_code


class StudioWebConfigError(StudioWebAPIError):
    """Raised when required configuration is missing or invalid."""


class StudioWebAuthenticationError(StudioWebAPIError):
    """Raised when the access token is rejected."""


class StudioWebPermissionError(StudioWebAPIError):
    """Raised when the caller lacks permission for an operation."""


class StudioWebNotFoundError(StudioWebAPIError):
    """Raised when a remote project, item or resource does not exist."""


class StudioWebConflictError(StudioWebAPIError):
    """Raised when the server reports a conflict (HTTP 409)."""


class StudioWebFileExistsError(StudioWebConflictError):
    """Raised when creating a file that already exists remotely."""


class StudioWebRateLimitError(StudioWebAPIError):
    """Raised when the API rate limit has been exceeded."""


class StudioWebNetworkError(StudioWebAPIError):
    """Raised on connection failures and timeouts."""


class StudioWebInvalidResponseError(StudioWebAPIError):
    """Raised when the server returns a response that cannot be parsed."""


class PushError(Exception):
    """Raised when a push cannot complete."""


class LockNotAcquiredError(PushError):
    """Raised when the remote project lock could not be obtained."""


class ContentRootError(PushError):
    """Raised when the remote content root folder cannot be materialised."""


class PullError(Exception):
    """Raised when a pull cannot complete."""

    def __init__(self, message: str, failed_paths: Optional[list[str]] = None):
        super().__init__(message)
        self.failed_paths = failed_paths or []

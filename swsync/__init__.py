"""swsync - push and pull coded web apps to UiPath Studio Web projects."""

from .api import StudioWebClient
from .exceptions import (
    ContentRootError,
    LockNotAcquiredError,
    PullError,
    PushError,
    StudioWebAPIError,
    StudioWebAuthenticationError,
    StudioWebConfigError,
    StudioWebConflictError,
    StudioWebFileExistsError,
    StudioWebInvalidResponseError,
    StudioWebNetworkError,
    StudioWebNotFoundError,
    StudioWebPermissionError,
    StudioWebRateLimitError,
)
from .utils import compute_hash

__version__ = "0.1.0"

__all__ = [
    "StudioWebClient",
    "StudioWebAPIError",
    "StudioWebAuthenticationError",
    "StudioWebConfigError",
    "StudioWebConflictError",
    "StudioWebFileExistsError",
    "StudioWebInvalidResponseError",
    "StudioWebNetworkError",
    "StudioWebNotFoundError",
    "StudioWebPermissionError",
    "StudioWebRateLimitError",
    "PushError",
    "LockNotAcquiredError",
    "ContentRootError",
    "PullError",
    "compute_hash",
]

"""Utility functions for swsync."""

import hashlib
import re
from typing import Optional

# =============================================================================
# Constants for remote operations
# =============================================================================

# Number of concurrent requests per batch of file operations
WORKER_POOL_SIZE: int = 8

# Retry configuration for transient errors
DEFAULT_MAX_RETRIES: int = 3
DEFAULT_RETRY_DELAY: float = 1.0  # seconds

# HTTP timeout for a single request
DEFAULT_TIMEOUT: float = 30.0  # seconds

# Maximum number of conflicting paths listed in a pull error message
MAX_LISTED_CONFLICTS: int = 10

# Code version used when the remote metadata carries no usable version
DEFAULT_CODE_VERSION: str = "0.1.1"

_UUID_RE = re.compile(
    r"^[0-9a-f]{8}-[0-9a-f]{4}-[0-9a-f]{4}-[0-9a-f]{4}-[0-9a-f]{12}$",
    re.IGNORECASE,
)
_SEMVER_RE = re.compile(r"^(\d+)\.(\d+)\.(\d+)$")


# =============================================================================
# Content hashing
# =============================================================================


def normalize_line_endings(content: bytes) -> bytes:
    """Convert CRLF and lone CR line endings to LF.

    Example:
        >>> normalize_line_endings(b"a\\r\\nb\\rc\\n")
        b'a\\nb\\nc\\n'
    """
    return content.replace(b"\r\n", b"\n").replace(b"\r", b"\n")


def compute_hash(content: bytes) -> str:
    """Compute the content hash used to compare local and remote files.

    Line endings are normalized before hashing so that a file checked out
    with CRLF endings compares equal to the LF copy stored remotely.

    Args:
        content: Raw file bytes

    Returns:
        Hex encoded SHA-256 digest
    """
    return hashlib.sha256(normalize_line_endings(content)).hexdigest()


# =============================================================================
# Version and identifier helpers
# =============================================================================


def bump_patch_version(version: Optional[str]) -> str:
    """Increment the patch component of an ``x.y.z`` version string.

    Args:
        version: Current version, may be None or malformed

    Returns:
        The bumped version, or DEFAULT_CODE_VERSION when the input is unusable

    Examples:
        >>> bump_patch_version("1.2.3")
        '1.2.4'
        >>> bump_patch_version("banana")
        '0.1.1'
    """
    if not version:
        return DEFAULT_CODE_VERSION
    match = _SEMVER_RE.match(version.strip())
    if not match:
        return DEFAULT_CODE_VERSION
    major, minor, patch = (int(part) for part in match.groups())
    return f"{major}.{minor}.{patch + 1}"


def is_uuid(value: Optional[str]) -> bool:
    """Check whether a string looks like a UUID."""
    return bool(value) and bool(_UUID_RE.match(value or ""))


# =============================================================================
# Size formatting utilities
# =============================================================================


def format_size(size_bytes: int) -> str:
    """Format file size in human-readable format.

    Args:
        size_bytes: Size in bytes

    Returns:
        Formatted size string (e.g., "1.5 MB")
    """
    size = float(size_bytes)
    for unit in ["B", "KB", "MB", "GB"]:
        if size < 1024.0:
            return f"{size:.1f} {unit}"
        size /= 1024.0
    return f"{size:.1f} TB"

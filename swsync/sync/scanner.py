"""Local file collection for push operations."""

import logging
from dataclasses import dataclass
from pathlib import Path
from typing import Optional

from ..utils import compute_hash
from .ignore import IGNORE_FILE_NAME, IgnoreFileManager
from .structure import normalize_bundle_path

logger = logging.getLogger(__name__)


@dataclass
class LocalFile:
    """A local file ready to be pushed."""

    relative_path: str
    """Path relative to the project root, forward slashes (e.g. ``dist/index.html``)"""

    path: Path
    """Absolute path to the file"""

    hash: str
    """Content hash with normalized line endings"""

    content: bytes
    """Raw file content"""

    @classmethod
    def from_path(cls, file_path: Path, base_path: Path) -> "LocalFile":
        """Read a file and compute its hash.

        Args:
            file_path: Absolute path to the file
            base_path: Project root used for the relative path

        Returns:
            LocalFile instance
        """
        content = file_path.read_bytes()
        return cls(
            relative_path=file_path.relative_to(base_path).as_posix(),
            path=file_path,
            hash=compute_hash(content),
            content=content,
        )

    @property
    def size(self) -> int:
        return len(self.content)


class DirectoryScanner:
    """Collects the files of a build output directory.

    Supports ``.swsyncignore`` files with gitignore-style patterns. The
    ignore file in the project root applies to the whole scan. An ignore file
    inside the bundle directory only covers its own directory and below, and
    its anchored patterns are relative to that directory.

    Examples:
        >>> scanner = DirectoryScanner(ignore_patterns=["*.map"])
        >>> files = scanner.scan_bundle(Path("/work/app"), "dist")
        >>> files[0].relative_path
        'dist/index.html'
    """

    def __init__(
        self,
        ignore_patterns: Optional[list[str]] = None,
        exclude_dot_files: bool = True,
        use_ignore_files: bool = True,
    ):
        """Initialize directory scanner.

        Args:
            ignore_patterns: Glob patterns to exclude (e.g. ["*.map", "tmp/"])
            exclude_dot_files: Whether to skip files and folders starting with a dot
            use_ignore_files: Whether to load .swsyncignore files
        """
        self.ignore_patterns = ignore_patterns or []
        self.exclude_dot_files = exclude_dot_files
        self.use_ignore_files = use_ignore_files
        self._ignore_manager: Optional[IgnoreFileManager] = None

    def should_ignore(self, path: Path, base_path: Path, is_dir: bool = False) -> bool:
        """Check if a path should be skipped.

        Args:
            path: Path to check
            base_path: Project root for relative path calculation
            is_dir: Whether the path is a directory

        Returns:
            True if path should be ignored
        """
        if path.name == IGNORE_FILE_NAME:
            return True

        if self.exclude_dot_files and path.name.startswith("."):
            return True

        if self._ignore_manager is not None:
            relative_path = path.relative_to(base_path).as_posix()
            if self._ignore_manager.is_ignored(relative_path, is_dir=is_dir):
                logger.debug(f"Ignoring (from rules): {relative_path}")
                return True

        return False

    def scan_bundle(self, root_dir: Path, bundle_path: str) -> list[LocalFile]:
        """Collect every file under ``root_dir/bundle_path``.

        Args:
            root_dir: Project root; relative paths start here
            bundle_path: Build output directory relative to the root

        Returns:
            Files sorted by relative path; empty if the directory is missing
        """
        bundle_dir = root_dir / normalize_bundle_path(bundle_path)
        if not bundle_dir.is_dir():
            logger.debug(f"Bundle directory not found: {bundle_dir}")
            return []

        self._ignore_manager = IgnoreFileManager(base_path=root_dir)
        if self.ignore_patterns:
            self._ignore_manager.load_cli_patterns(self.ignore_patterns)
        if self.use_ignore_files:
            self._ignore_manager.load_from_directory(root_dir)

        files = self._scan(bundle_dir, root_dir)
        files.sort(key=lambda f: f.relative_path)
        logger.debug(f"Collected {len(files)} local file(s) from {bundle_dir}")
        return files

    def _scan(self, directory: Path, base_path: Path) -> list[LocalFile]:
        files: list[LocalFile] = []

        try:
            if self.use_ignore_files and self._ignore_manager is not None:
                if directory != base_path:
                    self._ignore_manager.load_from_directory(directory)

            for item in sorted(directory.iterdir()):
                is_dir = item.is_dir()
                if self.should_ignore(item, base_path, is_dir=is_dir):
                    continue

                if item.is_file():
                    try:
                        files.append(LocalFile.from_path(item, base_path))
                    except OSError as e:
                        logger.warning(f"Skipping unreadable file {item}: {e}")
                elif is_dir:
                    files.extend(self._scan(item, base_path))
        except PermissionError:
            logger.warning(f"Skipping unreadable directory {directory}")

        return files

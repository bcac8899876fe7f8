"""Gitignore-style exclude rules for local scans."""

import fnmatch
import logging
from dataclasses import dataclass
from pathlib import Path
from typing import Optional

logger = logging.getLogger(__name__)

IGNORE_FILE_NAME = ".swsyncignore"


@dataclass
class IgnoreRule:
    """A single parsed ignore pattern."""

    pattern: str
    """Glob pattern with markers stripped"""

    negated: bool = False
    """Pattern started with ``!`` and re-includes matches"""

    dir_only: bool = False
    """Pattern ended with ``/`` and only matches directories"""

    anchored: bool = False
    """Pattern is matched against the whole path below ``base``"""

    base: str = ""
    """Directory holding the ignore file, relative to the scan root"""

    @classmethod
    def parse(cls, line: str, base: str = "") -> Optional["IgnoreRule"]:
        """Parse one line of an ignore file.

        Args:
            line: Raw line
            base: Directory the rule applies below; empty for the scan root

        Returns:
            The rule, or None for blank lines and comments
        """
        line = line.rstrip("\n").rstrip()
        if not line or line.startswith("#"):
            return None

        negated = line.startswith("!")
        if negated:
            line = line[1:]

        dir_only = line.endswith("/")
        line = line.rstrip("/")

        anchored = line.startswith("/") or "/" in line
        line = line.lstrip("/")
        if not line:
            return None

        return cls(
            pattern=line, negated=negated, dir_only=dir_only, anchored=anchored, base=base
        )

    def matches(self, relative_path: str, is_dir: bool = False) -> bool:
        """Check whether a path relative to the scan root matches this rule.

        Rules loaded from a nested ignore file only see paths below their
        own directory, and match them relative to it.
        """
        if self.dir_only and not is_dir:
            return False
        if self.base:
            if not relative_path.startswith(self.base + "/"):
                return False
            relative_path = relative_path[len(self.base) + 1 :]
        if self.anchored:
            return fnmatch.fnmatchcase(relative_path, self.pattern)
        name = relative_path.rsplit("/", 1)[-1]
        return fnmatch.fnmatchcase(name, self.pattern)


class IgnoreFileManager:
    """Collects ignore rules and answers whether a path is excluded.

    Rules are evaluated in order; the last matching rule wins, so a
    ``!pattern`` line can re-include something an earlier line excluded.
    A path is also excluded when any of its parent directories is.
    """

    def __init__(self, base_path: Path):
        self.base_path = base_path
        self.rules: list[IgnoreRule] = []

    def load_cli_patterns(self, patterns: list[str]) -> None:
        for pattern in patterns:
            rule = IgnoreRule.parse(pattern)
            if rule is not None:
                self.rules.append(rule)

    def load_file(self, ignore_file: Path) -> int:
        """Load rules from an ignore file.

        Returns:
            Number of rules loaded
        """
        try:
            lines = ignore_file.read_text(encoding="utf-8").splitlines()
        except OSError as e:
            logger.warning(f"Could not read {ignore_file}: {e}")
            return 0

        base = self._relative_dir(ignore_file.parent)
        count = 0
        for line in lines:
            rule = IgnoreRule.parse(line, base=base)
            if rule is not None:
                self.rules.append(rule)
                count += 1
        logger.debug(f"Loaded {count} ignore rule(s) from {ignore_file}")
        return count

    def _relative_dir(self, directory: Path) -> str:
        try:
            relative = directory.relative_to(self.base_path).as_posix()
        except ValueError:
            return ""
        return "" if relative == "." else relative

    def load_from_directory(self, directory: Path) -> None:
        ignore_file = directory / IGNORE_FILE_NAME
        if ignore_file.is_file():
            self.load_file(ignore_file)

    def _matches(self, relative_path: str, is_dir: bool) -> bool:
        ignored = False
        for rule in self.rules:
            if rule.matches(relative_path, is_dir=is_dir):
                ignored = not rule.negated
        return ignored

    def is_ignored(self, relative_path: str, is_dir: bool = False) -> bool:
        """Check whether a path relative to the base path is excluded."""
        if not self.rules:
            return False
        parts = relative_path.split("/")
        for i in range(1, len(parts)):
            if self._matches("/".join(parts[:i]), is_dir=True):
                return True
        return self._matches(relative_path, is_dir=is_dir)

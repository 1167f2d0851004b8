"""Directory scanning utilities for the initial sync pass."""

import fnmatch
import logging
from dataclasses import dataclass
from pathlib import Path
from typing import Optional

logger = logging.getLogger(__name__)


@dataclass
class LocalFile:
    """Represents a local file with metadata."""

    path: Path
    """Absolute path to the file"""

    relative_path: str
    """Relative path (using forward slashes for cross-platform compatibility)"""

    size: int
    """File size in bytes"""

    mtime: float
    """Last modification time (Unix timestamp)"""

    @classmethod
    def from_path(cls, file_path: Path, base_path: Path) -> "LocalFile":
        """Create LocalFile from a path.

        Args:
            file_path: Absolute path to the file
            base_path: Base path for calculating relative paths

        Returns:
            LocalFile instance
        """
        stat = file_path.stat()
        return cls(
            path=file_path,
            relative_path=file_path.relative_to(base_path).as_posix(),
            size=stat.st_size,
            mtime=stat.st_mtime,
        )


class DirectoryScanner:
    """Scans directories and builds file lists.

    Examples:
        >>> scanner = DirectoryScanner(ignore_patterns=["*.tmp"])
        >>> files = scanner.scan_local(Path("/sync/folder"))
    """

    def __init__(
        self,
        ignore_patterns: Optional[list[str]] = None,
        exclude_dot_files: bool = False,
    ):
        """Initialize directory scanner.

        Args:
            ignore_patterns: Glob patterns matched against relative paths and
                file names (e.g., ["*.log", "temp/*"])
            exclude_dot_files: Whether to exclude files/folders starting with dot
        """
        self.ignore_patterns = ignore_patterns or []
        self.exclude_dot_files = exclude_dot_files

    def should_ignore(self, path: Path, base_path: Path) -> bool:
        """Check if a path should be ignored.

        Every component of the relative path is checked, so files inside an
        ignored (or hidden) directory are ignored too.

        Args:
            path: Path to check
            base_path: Base path for relative path calculation

        Returns:
            True if path should be ignored
        """
        try:
            relative = path.relative_to(base_path)
        except ValueError:
            return False

        parts = relative.parts
        if self.exclude_dot_files and any(p.startswith(".") for p in parts):
            return True

        relative_posix = relative.as_posix()
        for pattern in self.ignore_patterns:
            if fnmatch.fnmatch(relative_posix, pattern) or any(
                fnmatch.fnmatch(part, pattern) for part in parts
            ):
                logger.debug(f"Ignoring (pattern '{pattern}'): {relative_posix}")
                return True
        return False

    def scan_local(
        self, directory: Path, base_path: Optional[Path] = None
    ) -> list[LocalFile]:
        """Recursively scan a local directory.

        Args:
            directory: Directory to scan
            base_path: Base path for calculating relative paths (defaults to directory)

        Returns:
            List of LocalFile objects, sorted by relative path
        """
        if base_path is None:
            base_path = directory

        files: list[LocalFile] = []

        try:
            for item in directory.iterdir():
                if self.should_ignore(item, base_path):
                    continue

                if item.is_file():
                    try:
                        files.append(LocalFile.from_path(item, base_path))
                    except OSError as e:
                        logger.warning(f"Cannot read {item}: {e}")
                elif item.is_dir():
                    files.extend(self.scan_local(item, base_path))
        except PermissionError as e:
            logger.warning(f"Permission denied: {e}")

        return sorted(files, key=lambda f: f.relative_path)

"""Directory scanning utilities for sync operations."""

import logging
from dataclasses import dataclass
from pathlib import Path
from typing import Optional

logger = logging.getLogger(__name__)


@dataclass
class LocalFile:
    """Represents a local file in the mirrored tree."""

    path: Path
    """Absolute path to the file"""

    relative_path: str
    """Relative path (using forward slashes, this is the secret key)"""

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
        # Use as_posix() to ensure forward slashes on all platforms
        relative_path = file_path.relative_to(base_path).as_posix()
        return cls(
            path=file_path,
            relative_path=relative_path,
            size=stat.st_size,
            mtime=stat.st_mtime,
        )

    def read_bytes(self) -> bytes:
        """Read the current content of the file."""
        return self.path.read_bytes()


class DirectoryScanner:
    """Walks the mirror directory and builds file lists.

    Directories are transparent: only regular files are reported, keyed by
    their path relative to the scan root. Unlike a best-effort backup scan,
    any I/O error while walking is raised so that the calling pass aborts.

    Examples:
        >>> scanner = DirectoryScanner()
        >>> files = scanner.scan_local(Path("/etc/mirror"))
        >>> [f.relative_path for f in files]
        ['config.yaml', 'tls/tls.crt', 'tls/tls.key']
    """

    def scan_local(
        self, directory: Path, base_path: Optional[Path] = None
    ) -> list[LocalFile]:
        """Recursively scan a local directory.

        Args:
            directory: Directory to scan
            base_path: Base path for calculating relative paths (defaults to directory)

        Returns:
            List of LocalFile objects, ordered by relative path

        Raises:
            OSError: If a directory cannot be listed or a file cannot be stat'ed
        """
        if base_path is None:
            base_path = directory

        files: list[LocalFile] = []
        for item in sorted(directory.iterdir()):
            if item.is_dir():
                if item.is_symlink():
                    logger.debug(f"Not following directory symlink: {item}")
                    continue
                files.extend(self.scan_local(item, base_path))
            elif item.is_file():
                files.append(LocalFile.from_path(item, base_path))
            else:
                logger.debug(f"Skipping non-regular file: {item}")

        if directory == base_path:
            files.sort(key=lambda f: f.relative_path)
        return files

    def snapshot(self, directory: Path) -> dict[str, bytes]:
        """Read the whole tree into a relative path -> bytes mapping.

        Raises:
            OSError: If any file cannot be read
        """
        return {f.relative_path: f.read_bytes() for f in self.scan_local(directory)}

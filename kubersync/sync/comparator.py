"""Comparison logic for mirroring secret entries onto the local tree."""

import logging
from dataclasses import dataclass
from enum import Enum
from pathlib import Path
from typing import Optional

from ..utils import contents_equal, resolve_key
from .scanner import LocalFile

logger = logging.getLogger(__name__)


class SyncAction(str, Enum):
    """Actions that can be taken on a local path during a remote->local pass."""

    WRITE = "write"
    """Write the entry's bytes to the local file"""

    DELETE_LOCAL = "delete_local"
    """Delete a local file that is no longer in the secret"""

    SKIP = "skip"
    """Leave the local file alone"""


@dataclass
class SyncDecision:
    """Represents a decision about one local path."""

    action: SyncAction
    """Action to take"""

    reason: str
    """Human-readable reason for this decision"""

    relative_path: str
    """Relative path of the file (the secret key)"""

    path: Path
    """Absolute local path"""

    data: Optional[bytes] = None
    """Bytes to write (WRITE only)"""


def _read_current(path: Path) -> Optional[bytes]:
    """Current on-disk bytes, or None if the file cannot be read."""
    try:
        return path.read_bytes()
    except OSError:
        # a failed read just means "different"; the write reports real errors
        return None


class FileComparator:
    """Decides which local files to write, keep or delete for a secret."""

    def __init__(self, allow_delete: bool):
        """Initialize file comparator.

        Args:
            allow_delete: Whether local-only files are deleted. False until
                the initial sync completed, so the first pass is a union.
        """
        self.allow_delete = allow_delete

    def compare(
        self,
        root: Path,
        entries: dict[str, bytes],
        local_files: list[LocalFile],
    ) -> list[SyncDecision]:
        """Compare secret entries against the local tree.

        Args:
            root: Local mirror directory
            entries: Secret entries (relative path -> bytes)
            local_files: Result of scanning root

        Returns:
            List of SyncDecision objects, entries first, then deletions

        Raises:
            UnsafePathError: If a key resolves outside root
        """
        # every file starts out marked for deletion
        to_delete = {f.relative_path: f.path for f in local_files}
        decisions: list[SyncDecision] = []

        for key in sorted(entries):
            path = resolve_key(root, key)
            rel = path.relative_to(root).as_posix()
            to_delete.pop(rel, None)
            decisions.append(self._compare_entry(rel, path, entries[key]))

        for rel in sorted(to_delete):
            decisions.append(self._handle_local_only(rel, to_delete[rel]))

        return decisions

    def _compare_entry(self, rel: str, path: Path, data: bytes) -> SyncDecision:
        if contents_equal(_read_current(path), data):
            return SyncDecision(
                action=SyncAction.SKIP,
                reason="Contents are identical",
                relative_path=rel,
                path=path,
            )
        return SyncDecision(
            action=SyncAction.WRITE,
            reason="Entry differs from local file",
            relative_path=rel,
            path=path,
            data=data,
        )

    def _handle_local_only(self, rel: str, path: Path) -> SyncDecision:
        if self.allow_delete:
            return SyncDecision(
                action=SyncAction.DELETE_LOCAL,
                reason="Not present in secret",
                relative_path=rel,
                path=path,
            )
        return SyncDecision(
            action=SyncAction.SKIP,
            reason="Local-only file kept until initial sync completes",
            relative_path=rel,
            path=path,
        )

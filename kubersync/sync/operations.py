"""Write operations against both stores."""

import logging
import os
from pathlib import Path

from ..api import KubeClient
from ..models import Secret
from ..utils import DIR_MODE, FILE_MODE

logger = logging.getLogger(__name__)


class SyncOperations:
    """The only code paths that mutate the local tree or the secret."""

    def __init__(self, client: KubeClient):
        """Initialize sync operations.

        Args:
            client: Kubernetes API client
        """
        self.client = client

    def write_local(self, path: Path, data: bytes) -> None:
        """Write bytes to a local file, creating parent directories.

        New files get mode 0644 (before umask); existing files keep theirs.
        """
        path.parent.mkdir(mode=DIR_MODE, parents=True, exist_ok=True)
        fd = os.open(path, os.O_WRONLY | os.O_CREAT | os.O_TRUNC, FILE_MODE)
        with os.fdopen(fd, "wb") as f:
            f.write(data)

    def delete_local(self, path: Path) -> None:
        """Delete a local file. Parent directories are left in place."""
        path.unlink()

    def replace_remote(self, secret: Secret, entries: dict[str, bytes]) -> Secret:
        """Overwrite the secret's entries in full.

        Args:
            secret: Cached secret to replace (its resourceVersion is sent along)
            entries: New entries

        Returns:
            The secret as stored by the API server
        """
        return self.client.replace_secret(secret.with_data(entries))

"""Utility functions for kubersync."""

import base64
import binascii
from pathlib import Path, PurePosixPath
from typing import Optional

from .exceptions import KubeInvalidResponseError, UnsafePathError

# =============================================================================
# Constants
# =============================================================================

# How often the informer re-delivers every cached object (seconds)
DEFAULT_RESYNC_PERIOD: float = 30.0

# Retry configuration for transient API errors
DEFAULT_MAX_RETRIES: int = 3
DEFAULT_RETRY_DELAY: float = 1.0  # seconds

# Server side timeout for a single watch request (seconds)
DEFAULT_WATCH_TIMEOUT: int = 300

# Permissions for mirrored files and directories created on demand
FILE_MODE: int = 0o644
DIR_MODE: int = 0o755


# =============================================================================
# Content helpers
# =============================================================================


def contents_equal(a: Optional[bytes], b: Optional[bytes]) -> bool:
    """Byte-exact comparison used to suppress redundant writes.

    A missing value (None) only equals another missing value.
    """
    if a is None or b is None:
        return a is None and b is None
    return bytes(a) == bytes(b)


def entries_equal(a: dict[str, bytes], b: dict[str, bytes]) -> bool:
    """Check whether two entry maps hold the same keys with the same bytes."""
    if a.keys() != b.keys():
        return False
    return all(contents_equal(a[key], b[key]) for key in a)


def encode_data(entries: dict[str, bytes]) -> dict[str, str]:
    """Encode an entry map to the base64 form used by the Secret API."""
    return {key: base64.b64encode(value).decode("ascii") for key, value in entries.items()}


def decode_data(data: Optional[dict[str, str]]) -> dict[str, bytes]:
    """Decode the base64 ``data`` field of a Secret into raw bytes.

    Raises:
        KubeInvalidResponseError: If a value is not valid base64
    """
    if not data:
        return {}
    entries = {}
    for key, value in data.items():
        try:
            entries[key] = base64.b64decode(value or "")
        except (TypeError, binascii.Error) as e:
            raise KubeInvalidResponseError(f"Invalid base64 data for key {key!r}") from e
    return entries


# =============================================================================
# Path helpers
# =============================================================================


def resolve_key(root: Path, key: str) -> Path:
    """Map a secret key to its path under ``root``.

    Args:
        root: Local mirror directory
        key: Relative path stored as a secret key

    Returns:
        Path of the mirrored file under root

    Raises:
        UnsafePathError: If the key is absolute or climbs out of root
    """
    rel = PurePosixPath(key)
    if not key or rel.is_absolute() or ".." in rel.parts:
        raise UnsafePathError(f"Refusing to mirror key outside of root: {key!r}")
    return root.joinpath(*rel.parts)


def object_key(namespace: str, name: str) -> str:
    """Build the cache key of a namespaced object."""
    return f"{namespace}/{name}"

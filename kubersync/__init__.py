"""Kubersync - mirror a Kubernetes Secret to a local directory and back."""

from .api import KubeClient
from .config import ClusterConfig, build_config_from_flags
from .exceptions import (
    InitialSyncError,
    KubeAPIError,
    KubeAuthenticationError,
    KubeConfigError,
    KubeConflictError,
    KubeGoneError,
    KubeInvalidResponseError,
    KubeNetworkError,
    KubeNotFoundError,
    KubePermissionError,
    KubeRateLimitError,
    KubersyncError,
    SyncError,
    UnsafePathError,
)
from .models import Secret

__version__ = "0.1.0"

__all__ = [
    "KubeClient",
    "ClusterConfig",
    "build_config_from_flags",
    "Secret",
    "KubersyncError",
    "KubeConfigError",
    "KubeAPIError",
    "KubeAuthenticationError",
    "KubePermissionError",
    "KubeNotFoundError",
    "KubeConflictError",
    "KubeGoneError",
    "KubeRateLimitError",
    "KubeNetworkError",
    "KubeInvalidResponseError",
    "SyncError",
    "InitialSyncError",
    "UnsafePathError",
]

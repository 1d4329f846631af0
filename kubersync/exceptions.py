"""Custom exceptions for kubersync."""


class KubersyncError(Exception):
    """Base exception for all kubersync errors."""


class KubeConfigError(KubersyncError):
    """Raised when the cluster connection cannot be configured."""


class KubeAPIError(KubersyncError):
    """Base exception for Kubernetes API errors."""

    def __init__(self, message: str, status_code: int = 0):
        super().__init__(message)
        self.status_code = status_code


class KubeAuthenticationError(KubeAPIError):
    """Raised when the API server rejects our credentials (401)."""


class KubePermissionError(KubeAPIError):
    """Raised when the credentials lack access to the resource (403)."""


class KubeNotFoundError(KubeAPIError):
    """Raised when the requested object does not exist (404)."""


class KubeConflictError(KubeAPIError):
    """Raised when a replace lost against a newer resourceVersion (409)."""


class KubeGoneError(KubeAPIError):
    """Raised when a watch resourceVersion is too old (410)."""


class KubeRateLimitError(KubeAPIError):
    """Raised when the API server throttles us (429)."""


class KubeNetworkError(KubeAPIError):
    """Raised on connection level failures."""


class KubeInvalidResponseError(KubeAPIError):
    """Raised when the API server returns something we cannot parse."""


class SyncError(KubersyncError):
    """Base exception for reconciliation errors."""


class InitialSyncError(SyncError):
    """Raised when the secret cache never reports its initial sync."""


class UnsafePathError(SyncError):
    """Raised when a secret key would resolve outside the local root."""

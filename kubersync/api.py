"""API client for the Kubernetes Secret endpoints."""

from __future__ import annotations

import json
import logging
import random
import time
from collections.abc import Iterator
from typing import Any

import httpx

from .config import ClusterConfig
from .exceptions import (
    KubeAPIError,
    KubeAuthenticationError,
    KubeConflictError,
    KubeGoneError,
    KubeInvalidResponseError,
    KubeNetworkError,
    KubeNotFoundError,
    KubePermissionError,
    KubeRateLimitError,
)
from .models import Secret
from .utils import DEFAULT_MAX_RETRIES, DEFAULT_RETRY_DELAY, DEFAULT_WATCH_TIMEOUT

logger = logging.getLogger(__name__)


class KubeClient:
    """Client for reading, replacing and watching Secrets."""

    def __init__(
        self,
        config: ClusterConfig,
        max_retries: int = DEFAULT_MAX_RETRIES,
        retry_delay: float = DEFAULT_RETRY_DELAY,
        timeout: float = 30.0,
        transport: httpx.BaseTransport | None = None,
    ):
        """Initialize the API client.

        Args:
            config: Cluster connection settings
            max_retries: Maximum number of retry attempts for reads (default: 3)
            retry_delay: Initial delay between retries in seconds (default: 1.0)
            timeout: Request timeout in seconds (default: 30.0)
            transport: Optional httpx transport (used by tests)
        """
        self.config = config
        self.max_retries = max_retries
        self.retry_delay = retry_delay
        self.timeout = timeout
        self._transport = transport
        self._client: httpx.Client | None = None

    def _get_client(self) -> httpx.Client:
        """Get or create the httpx client."""
        if self._client is None or self._client.is_closed:
            kwargs: dict[str, Any] = {
                "base_url": self.config.server,
                "headers": self.config.headers,
                "timeout": httpx.Timeout(self.timeout),
            }
            if self._transport is not None:
                kwargs["transport"] = self._transport
            else:
                kwargs["verify"] = self.config.verify
                if self.config.cert:
                    kwargs["cert"] = self.config.cert
            self._client = httpx.Client(**kwargs)
        return self._client

    def close(self) -> None:
        """Close the client, release connections and remove temp credentials."""
        if self._client is not None and not self._client.is_closed:
            self._client.close()
            self._client = None
        self.config.cleanup()

    def _calculate_retry_delay(self, attempt: int) -> float:
        """Calculate delay before next retry using exponential backoff.

        Args:
            attempt: Current attempt number (0-based)

        Returns:
            Delay in seconds
        """
        base_delay = self.retry_delay * (2**attempt)
        # Add jitter: +/- 25% of base delay
        jitter = base_delay * 0.25 * (2 * random.random() - 1)
        return base_delay + jitter

    def _error_for_status(self, response: httpx.Response) -> KubeAPIError:
        """Map an HTTP error response to the matching exception."""
        status_code = response.status_code

        # Kubernetes returns a Status object with a human readable message
        message = ""
        try:
            if response.content:
                body = response.json()
                if isinstance(body, dict):
                    message = body.get("message") or body.get("reason") or ""
        except ValueError:
            pass
        detail = f": {message}" if message else ""

        if status_code == 401:
            return KubeAuthenticationError(
                f"Unauthorized - check your credentials{detail}", status_code
            )
        if status_code == 403:
            return KubePermissionError(f"Access forbidden{detail}", status_code)
        if status_code == 404:
            return KubeNotFoundError(f"Resource not found{detail}", status_code)
        if status_code == 409:
            return KubeConflictError(f"Conflict{detail}", status_code)
        if status_code == 410:
            return KubeGoneError(f"Resource version expired{detail}", status_code)
        if status_code == 429:
            return KubeRateLimitError(f"Rate limit exceeded{detail}", status_code)
        return KubeAPIError(
            f"API request failed with status {status_code}{detail}", status_code
        )

    def _should_retry(self, error: KubeAPIError, attempt: int) -> bool:
        """Determine if a request should be retried.

        Args:
            error: The exception that occurred
            attempt: Current attempt number (0-based)

        Returns:
            True if the request should be retried, False otherwise
        """
        if attempt >= self.max_retries:
            return False
        if isinstance(error, (KubeNetworkError, KubeRateLimitError)):
            return True
        # Retry on server errors (500-599)
        return 500 <= error.status_code < 600

    def _request(
        self, method: str, path: str, retry: bool = True, **kwargs: Any
    ) -> Any:
        """Make an API request.

        Args:
            method: HTTP method
            path: API path, e.g. /api/v1/namespaces/default/secrets
            retry: Whether transient failures are retried
            **kwargs: Additional arguments passed to httpx

        Returns:
            Response JSON data

        Raises:
            KubeAPIError: If the request fails (after all retries)
        """
        client = self._get_client()
        attempts = self.max_retries + 1 if retry else 1

        for attempt in range(attempts):
            try:
                response = client.request(method, path, **kwargs)
            except httpx.RequestError as e:
                error: KubeAPIError = KubeNetworkError(f"Network error: {e}")
                if retry and self._should_retry(error, attempt):
                    time.sleep(self._calculate_retry_delay(attempt))
                    continue
                raise error from e

            if response.is_error:
                error = self._error_for_status(response)
                if retry and self._should_retry(error, attempt):
                    retry_after = response.headers.get("Retry-After")
                    if retry_after and retry_after.isdigit():
                        delay = float(retry_after)
                    else:
                        delay = self._calculate_retry_delay(attempt)
                    logger.debug(f"{method} {path} failed ({error}), retrying")
                    time.sleep(delay)
                    continue
                raise error

            if not response.content:
                return {}
            try:
                return response.json()
            except ValueError as e:
                raise KubeInvalidResponseError(
                    f"Invalid JSON response from {method} {path}"
                ) from e

        raise KubeAPIError("Request failed after all retry attempts")

    # =========================
    # Secret Operations
    # =========================

    @staticmethod
    def _secrets_path(namespace: str, name: str | None = None) -> str:
        path = f"/api/v1/namespaces/{namespace}/secrets"
        if name:
            path = f"{path}/{name}"
        return path

    def list_secrets(
        self, namespace: str, field_selector: str | None = None
    ) -> tuple[list[Secret], str]:
        """List secrets in a namespace.

        Args:
            namespace: Namespace to list
            field_selector: Optional field selector, e.g. metadata.name=foo

        Returns:
            Tuple of (secrets, list resourceVersion)
        """
        params = {}
        if field_selector:
            params["fieldSelector"] = field_selector
        data = self._request("GET", self._secrets_path(namespace), params=params)
        if not isinstance(data, dict):
            raise KubeInvalidResponseError("Unexpected list response")
        items = [Secret.from_dict(item) for item in data.get("items") or []]
        for secret in items:
            # list items do not always repeat the namespace
            secret.namespace = secret.namespace or namespace
        resource_version = (data.get("metadata") or {}).get("resourceVersion", "")
        return items, resource_version

    def replace_secret(self, secret: Secret) -> Secret:
        """Replace a secret in full (HTTP PUT).

        Never retried: a failed write-back is reported to the caller.

        Raises:
            KubeConflictError: If the secret changed since it was read
        """
        data = self._request(
            "PUT",
            self._secrets_path(secret.namespace, secret.name),
            retry=False,
            json=secret.to_dict(),
        )
        return Secret.from_dict(data)

    def watch_secrets(
        self,
        namespace: str,
        resource_version: str,
        field_selector: str | None = None,
        timeout_seconds: int = DEFAULT_WATCH_TIMEOUT,
    ) -> Iterator[tuple[str, dict[str, Any]]]:
        """Stream watch events for secrets in a namespace.

        Yields ``(type, object)`` tuples where type is one of ADDED, MODIFIED,
        DELETED, BOOKMARK or ERROR and object is the raw JSON payload. The
        iterator ends when the server closes the watch.

        Raises:
            KubeGoneError: If resource_version is too old
            KubeNetworkError: If the stream breaks
        """
        params: dict[str, Any] = {
            "watch": "true",
            "resourceVersion": resource_version,
            "allowWatchBookmarks": "true",
            "timeoutSeconds": timeout_seconds,
        }
        if field_selector:
            params["fieldSelector"] = field_selector

        client = self._get_client()
        # the server holds the stream open for timeout_seconds
        timeout = httpx.Timeout(self.timeout, read=timeout_seconds + self.timeout)
        try:
            with client.stream(
                "GET",
                self._secrets_path(namespace),
                params=params,
                timeout=timeout,
            ) as response:
                if response.is_error:
                    response.read()
                    raise self._error_for_status(response)
                for line in response.iter_lines():
                    if not line.strip():
                        continue
                    try:
                        event = json.loads(line)
                    except ValueError as e:
                        raise KubeInvalidResponseError(
                            f"Invalid watch event: {line[:200]}"
                        ) from e
                    yield event.get("type", ""), event.get("object") or {}
        except httpx.RequestError as e:
            raise KubeNetworkError(f"Watch stream failed: {e}") from e

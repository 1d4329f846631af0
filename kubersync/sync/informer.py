"""List/watch cache of the secrets in a namespace.

The informer keeps a local copy of every secret matching its selector and
tells registered handlers about changes:

- On start it LISTs once and replays every object as ``SecretAdded``; after
  that replay ``has_synced()`` is True.
- It then WATCHes from the list's resourceVersion, turning watch events into
  ``SecretAdded`` / ``SecretUpdated`` / ``SecretDeleted``.
- If the watch expires (410 Gone) or breaks, it re-LISTs and diffs the result
  against the cache so no change is lost.
- Every ``resync_period`` seconds every cached object is re-delivered as
  ``SecretUpdated(obj, obj)``.
"""

import logging
import threading
import time
from typing import Callable, Optional

from ..api import KubeClient
from ..exceptions import KubeAPIError, KubeGoneError
from ..models import Secret
from ..utils import DEFAULT_RESYNC_PERIOD, DEFAULT_WATCH_TIMEOUT
from .events import SecretAdded, SecretDeleted, SecretEvent, SecretUpdated

logger = logging.getLogger(__name__)

EventHandler = Callable[[SecretEvent], None]

# Backoff between failed list/watch attempts after the initial sync
MIN_BACKOFF = 1.0
MAX_BACKOFF = 30.0


class SecretInformer:
    """Watches secrets in one namespace and caches them."""

    def __init__(
        self,
        client: KubeClient,
        namespace: str,
        field_selector: Optional[str] = None,
        resync_period: float = DEFAULT_RESYNC_PERIOD,
        watch_timeout: int = DEFAULT_WATCH_TIMEOUT,
    ):
        """Initialize the informer.

        Args:
            client: Kubernetes API client
            namespace: Namespace to watch
            field_selector: Optional field selector to narrow the watch
            resync_period: Seconds between full re-deliveries (0 disables)
            watch_timeout: Server side timeout of one watch request
        """
        self.client = client
        self.namespace = namespace
        self.field_selector = field_selector
        self.resync_period = resync_period
        self.watch_timeout = watch_timeout

        self._store: dict[str, Secret] = {}
        self._store_lock = threading.Lock()
        self._handlers: list[EventHandler] = []
        self._synced = threading.Event()
        self._stop = threading.Event()
        self._threads: list[threading.Thread] = []
        self._resource_version = ""
        self.last_error: Optional[Exception] = None

    # -------- public interface --------

    def add_handler(self, handler: EventHandler) -> None:
        """Register a callback for every change event."""
        self._handlers.append(handler)

    def start(self) -> None:
        """Start the list/watch and resync threads."""
        self._threads = [
            threading.Thread(target=self._run, name="secret-informer", daemon=True)
        ]
        if self.resync_period > 0:
            self._threads.append(
                threading.Thread(
                    target=self._resync_loop, name="secret-resync", daemon=True
                )
            )
        for thread in self._threads:
            thread.start()

    def stop(self) -> None:
        """Stop delivering events. In-flight handler calls finish normally."""
        self._stop.set()

    @property
    def stopped(self) -> bool:
        return self._stop.is_set()

    def has_synced(self) -> bool:
        """Whether the initial list has been replayed to the handlers."""
        return self._synced.is_set()

    def wait_for_sync(self, timeout: Optional[float] = None) -> bool:
        """Block until the initial replay completed.

        Returns:
            True once synced; False if the informer stopped first (for
            example because the initial list failed) or the timeout elapsed
        """
        deadline = None if timeout is None else time.monotonic() + timeout
        while not self._synced.is_set():
            if self._stop.is_set():
                return False
            if deadline is not None and time.monotonic() >= deadline:
                return False
            self._synced.wait(0.1)
        return True

    def get_by_key(self, key: str) -> Optional[Secret]:
        """Return the cached secret for ``namespace/name``, if any."""
        with self._store_lock:
            return self._store.get(key)

    def list(self) -> list[Secret]:
        """Return all cached secrets."""
        with self._store_lock:
            return list(self._store.values())

    def update_cache(
        self, secret: Secret, expected_version: Optional[str] = None
    ) -> bool:
        """Store our own successful write before the watch echoes it back.

        Args:
            secret: Secret as returned by the API server
            expected_version: Only update if the cached copy still has this
                resourceVersion, so a newer watch event is never clobbered

        Returns:
            True if the cache was updated
        """
        with self._store_lock:
            current = self._store.get(secret.key)
            if current is None:
                return False
            if expected_version is not None and current.resource_version != expected_version:
                return False
            self._store[secret.key] = secret
            return True

    # -------- internals --------

    def _dispatch(self, event: SecretEvent) -> None:
        if self._stop.is_set():
            return
        for handler in list(self._handlers):
            try:
                handler(event)
            except Exception:
                logger.exception(f"Handler failed for {event.type.value} event")

    def _relist(self) -> None:
        """LIST and reconcile the cache with the result."""
        items, resource_version = self.client.list_secrets(
            self.namespace, self.field_selector
        )
        fresh = {secret.key: secret for secret in items}
        with self._store_lock:
            previous = self._store
            self._store = fresh
        self._resource_version = resource_version
        logger.debug(f"Listed {len(fresh)} secret(s) at version {resource_version}")

        for key, secret in fresh.items():
            old = previous.get(key)
            if old is None:
                self._dispatch(SecretAdded(secret))
            else:
                self._dispatch(SecretUpdated(old, secret))
        for key, old in previous.items():
            if key not in fresh:
                self._dispatch(SecretDeleted(old))

    def _handle_watch_event(self, event_type: str, obj: dict) -> None:
        if event_type == "ERROR":
            code = obj.get("code", 0)
            message = obj.get("message", "watch error")
            if code == 410:
                raise KubeGoneError(message, code)
            raise KubeAPIError(message, code)

        version = (obj.get("metadata") or {}).get("resourceVersion")
        if version:
            self._resource_version = version
        if event_type == "BOOKMARK":
            return

        secret = Secret.from_dict(obj)
        secret.namespace = secret.namespace or self.namespace
        with self._store_lock:
            old = self._store.get(secret.key)
            if event_type == "DELETED":
                self._store.pop(secret.key, None)
            else:
                self._store[secret.key] = secret

        if event_type == "DELETED":
            self._dispatch(SecretDeleted(old or secret))
        elif old is None:
            self._dispatch(SecretAdded(secret))
        else:
            self._dispatch(SecretUpdated(old, secret))

    def _watch(self) -> None:
        """Follow the watch stream until it ends or stop() is called."""
        for event_type, obj in self.client.watch_secrets(
            self.namespace,
            self._resource_version,
            field_selector=self.field_selector,
            timeout_seconds=self.watch_timeout,
        ):
            if self._stop.is_set():
                return
            self._handle_watch_event(event_type, obj)

    def _run(self) -> None:
        try:
            self._relist()
        except Exception as e:
            # failing to sync is fatal: the caller sees wait_for_sync() False
            if isinstance(e, KubeAPIError):
                logger.error(f"Initial list of secrets failed: {e}")
            else:
                logger.exception("Initial list of secrets failed")
            self.last_error = e
            self._stop.set()
            return
        self._synced.set()

        backoff = MIN_BACKOFF
        need_relist = False
        while not self._stop.is_set():
            try:
                if need_relist:
                    self._relist()
                    need_relist = False
                self._watch()
                backoff = MIN_BACKOFF
            except KubeGoneError:
                logger.debug("Watch expired, relisting")
                need_relist = True
            except KubeAPIError as e:
                logger.warning(f"Secret watch failed, retrying in {backoff:.0f}s: {e}")
                self.last_error = e
                need_relist = True
                self._stop.wait(backoff)
                backoff = min(backoff * 2, MAX_BACKOFF)
            except Exception as e:
                logger.exception(f"Secret watch crashed, retrying in {backoff:.0f}s")
                self.last_error = e
                need_relist = True
                self._stop.wait(backoff)
                backoff = min(backoff * 2, MAX_BACKOFF)

    def _resync_loop(self) -> None:
        while not self._stop.wait(self.resync_period):
            if not self._synced.is_set():
                continue
            for secret in self.list():
                self._dispatch(SecretUpdated(secret, secret))

"""Core sync engine mirroring one secret to one directory."""

import logging
import threading
from pathlib import Path
from typing import Callable, Optional, Union

from ..api import KubeClient
from ..exceptions import InitialSyncError, KubersyncError, SyncError
from ..models import Secret
from ..output import OutputFormatter
from ..utils import entries_equal, object_key
from .comparator import FileComparator, SyncAction, SyncDecision
from .events import SecretEvent, SecretEventType
from .informer import SecretInformer
from .operations import SyncOperations
from .scanner import DirectoryScanner
from .state import EngineState, SyncState
from .watcher import LocalWatcher

logger = logging.getLogger(__name__)

STOP_SECRET_DELETED = "tracked secret deleted"

WatcherFactory = Callable[[Path, Callable[[str], None]], LocalWatcher]


class SyncEngine:
    """Keeps a secret and a local directory mirrored in both directions.

    Two triggers feed the engine: changes to the secret (from the informer)
    and changes under the directory (from the local watcher). Each trigger
    runs a full pass in one direction; a single lock makes sure at most one
    pass runs at a time.

    Before the initial sync completes, remote->local passes only add or
    overwrite files, so local-only files survive and get folded into the
    secret by the first local->remote pass. After that, a file missing from
    the secret is deleted locally.
    """

    def __init__(
        self,
        client: KubeClient,
        informer: SecretInformer,
        local_path: Union[str, Path],
        namespace: str,
        name: str,
        output: Optional[OutputFormatter] = None,
        watcher_factory: WatcherFactory = LocalWatcher,
    ):
        """Initialize sync engine.

        Args:
            client: Kubernetes API client used for write-back
            informer: Secret cache delivering change events
            local_path: Directory mirroring the secret
            namespace: Namespace of the tracked secret
            name: Name of the tracked secret
            output: Output formatter for user-facing lines
            watcher_factory: Builds the local watcher (replaced in tests)
        """
        self.client = client
        self.informer = informer
        self.local_path = Path(local_path)
        self.namespace = namespace
        self.name = name
        self.output = output or OutputFormatter()
        self.operations = SyncOperations(client)
        self.scanner = DirectoryScanner()
        self.state = SyncState()
        self.watcher: Optional[LocalWatcher] = None
        self._watcher_factory = watcher_factory
        self._lock = threading.Lock()
        # reentrant so stop() can run from a signal handler on a thread that
        # is already inside a state change
        self._state_lock = threading.RLock()
        self._stopped = threading.Event()
        self.stats = {"writes": 0, "deletes": 0, "replaces": 0, "errors": 0}

        self.informer.add_handler(self.handle_event)

    @property
    def key(self) -> str:
        """Cache key of the tracked secret."""
        return object_key(self.namespace, self.name)

    @property
    def stopped(self) -> bool:
        return self._stopped.is_set()

    # -------- lifecycle --------

    def start(self, timeout: Optional[float] = None) -> None:
        """Start watching both sides.

        Blocks until the informer replayed the current state of the cluster,
        then pushes the local tree once and starts the local watcher.

        Args:
            timeout: Seconds to wait for the initial sync (None waits forever)

        Raises:
            InitialSyncError: If the informer never syncs or stop() was called
                before startup finished
            SyncError: If the first local->remote pass fails
        """
        with self._state_lock:
            self.state.transition(EngineState.AWAITING_INITIAL_SYNC)

        self.informer.start()
        self.output.info("loading")
        if not self.informer.wait_for_sync(timeout):
            cause = self.informer.last_error
            self.stop("initial sync failed")
            if cause is not None:
                raise InitialSyncError(f"Failed to sync secret cache: {cause}") from cause
            raise InitialSyncError("Timed out waiting for caches to sync")

        with self._lock:
            if self.stopped:
                raise InitialSyncError("Engine stopped during initial sync")
            try:
                self._push_local()
            except (OSError, KubersyncError) as e:
                # deleting local-only files after a failed first push would lose them
                raise SyncError(f"Initial local->remote sync failed: {e}") from e
            self.state.mark_synced()
            with self._state_lock:
                steady = self.state.transition(EngineState.STEADY)
        if not steady or self.stopped:
            raise InitialSyncError("Engine stopped during initial sync")

        self.output.info("ready")
        self.watcher = self._watcher_factory(self.local_path, self._on_file_event)
        self.watcher.start()
        if self.stopped:
            # stop() ran before the watcher existed
            self.watcher.stop()

    def stop(self, reason: str = "shutdown") -> None:
        """Stop servicing new triggers. A pass already running completes.

        Safe to call from a signal handler: the merge gate is not taken, so a
        pass running on the interrupted thread cannot deadlock it. The first
        caller's reason wins.
        """
        with self._state_lock:
            if not self.state.transition(EngineState.STOPPED):
                return
            self.state.stop_reason = reason
        self._stopped.set()
        logger.debug(f"Engine stopping: {reason}")
        self.informer.stop()
        if self.watcher is not None:
            self.watcher.stop()

    def wait(self, timeout: Optional[float] = None) -> bool:
        """Block until the engine stopped. Returns True if it did."""
        return self._stopped.wait(timeout)

    # -------- triggers --------

    def handle_event(self, event: SecretEvent) -> None:
        """Dispatch an informer event for the tracked secret."""
        secret = event.secret
        if secret.namespace != self.namespace or secret.name != self.name:
            return

        if event.type == SecretEventType.DELETED:
            self.on_remote_deleted(secret)
        elif event.type in (SecretEventType.ADDED, SecretEventType.UPDATED):
            self._run_pass("remote->local", lambda: self.on_remote_changed(secret))

    def _on_file_event(self, path: str) -> None:
        # the path is not trusted, every event triggers a full rescan
        self._run_pass("local->remote", self.on_local_changed)

    def _run_pass(self, direction: str, run: Callable[[], object]) -> None:
        """Run a pass from an event callback, reporting instead of raising."""
        try:
            run()
        except (OSError, KubersyncError) as e:
            self.stats["errors"] += 1
            logger.debug(f"{direction} pass failed", exc_info=True)
            self.output.error(f"{direction} sync failed: {e}")

    # -------- remote -> local --------

    def on_remote_changed(self, secret: Secret) -> int:
        """Mirror the secret's entries onto the local tree.

        Returns:
            Number of files written or deleted

        Raises:
            OSError: On any filesystem failure; files already written stay
            UnsafePathError: If a key points outside the directory
        """
        with self._lock:
            if self.stopped:
                return 0
            return self._apply_remote(secret)

    def _apply_remote(self, secret: Secret) -> int:
        if self.local_path.is_dir():
            local_files = self.scanner.scan_local(self.local_path)
        else:
            local_files = []

        comparator = FileComparator(allow_delete=self.state.have_synced)
        decisions = comparator.compare(self.local_path, secret.data, local_files)

        changed = 0
        for decision in decisions:
            if self._execute_decision(decision):
                changed += 1
        logger.debug(f"remote->local pass for {self.key}: {changed} change(s)")
        return changed

    def _execute_decision(self, decision: SyncDecision) -> bool:
        if decision.action == SyncAction.WRITE:
            self.output.info(f"write {decision.path}")
            self.operations.write_local(decision.path, decision.data or b"")
            self.stats["writes"] += 1
            return True
        if decision.action == SyncAction.DELETE_LOCAL:
            self.output.info(f"delete {decision.path}")
            self.operations.delete_local(decision.path)
            self.stats["deletes"] += 1
            return True
        logger.debug(f"skip {decision.relative_path}: {decision.reason}")
        return False

    # -------- local -> remote --------

    def on_local_changed(self) -> bool:
        """Push the local tree into the secret.

        Returns:
            True if the secret was replaced

        Raises:
            OSError: If the tree cannot be read
            KubeAPIError: If the replace call fails
        """
        with self._lock:
            if self.stopped:
                return False
            return self._push_local()

    def _push_local(self) -> bool:
        secret = self.informer.get_by_key(self.key)
        if secret is None:
            logger.debug(f"Secret {self.key} not in cache, nothing to push")
            return False

        before = secret.data
        after = self.scanner.snapshot(self.local_path)
        if entries_equal(before, after):
            return False

        stored = self.operations.replace_remote(secret, after)
        self.stats["replaces"] += 1
        self.informer.update_cache(stored, expected_version=secret.resource_version)
        self.output.info("updated secret")
        return True

    # -------- deletion --------

    def on_remote_deleted(self, secret: Secret) -> None:
        """The tracked secret is gone: halt rather than guess intent."""
        self.output.error(f"secret {secret.key} was deleted, stopping")
        self.stop(STOP_SECRET_DELETED)

"""Filesystem change notifications for the mirror directory."""

import logging
from pathlib import Path
from typing import Callable, Optional

from watchdog.events import FileSystemEvent, FileSystemEventHandler
from watchdog.observers import Observer

logger = logging.getLogger(__name__)


class _ChangeHandler(FileSystemEventHandler):
    """Forwards every watchdog event to a single callback."""

    def __init__(self, callback: Callable[[str], None]):
        self.callback = callback

    def on_any_event(self, event: FileSystemEvent) -> None:
        if event.event_type in ("opened", "closed_no_write"):
            # reads do not change the tree
            return
        logger.debug(f"{event.event_type}: {event.src_path}")
        try:
            self.callback(str(event.src_path))
        except Exception:
            logger.exception(f"Change callback failed for {event.src_path}")


class LocalWatcher:
    """Recursively watches a directory and reports that something changed.

    The reported path is informational only: notifications may be coalesced,
    duplicated or dropped, so consumers should rescan the whole tree.
    """

    def __init__(self, root: Path, callback: Callable[[str], None]):
        """Initialize the watcher.

        Args:
            root: Directory to watch recursively
            callback: Called with the event path for every change
        """
        self.root = root
        self.callback = callback
        self._observer: Optional[Observer] = None

    def start(self) -> None:
        """Subscribe to changes under root."""
        if self._observer is not None:
            return
        observer = Observer()
        observer.schedule(_ChangeHandler(self.callback), str(self.root), recursive=True)
        observer.daemon = True
        observer.start()
        self._observer = observer
        logger.debug(f"Watching {self.root}")

    def stop(self, timeout: float = 10) -> None:
        """Unsubscribe and wait for the observer thread to exit."""
        observer = self._observer
        if observer is None:
            return
        self._observer = None
        observer.stop()
        observer.join(timeout=timeout)

    @property
    def is_alive(self) -> bool:
        return self._observer is not None and self._observer.is_alive()

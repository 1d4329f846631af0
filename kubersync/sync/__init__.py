"""Sync engine for kubersync - two-way secret <-> directory mirroring."""

from .comparator import FileComparator, SyncAction, SyncDecision
from .engine import SyncEngine
from .events import (
    SecretAdded,
    SecretDeleted,
    SecretEvent,
    SecretEventType,
    SecretUpdated,
)
from .informer import SecretInformer
from .operations import SyncOperations
from .scanner import DirectoryScanner, LocalFile
from .state import EngineState, SyncState
from .watcher import LocalWatcher

__all__ = [
    "SyncEngine",
    "SyncOperations",
    "SecretInformer",
    "LocalWatcher",
    "DirectoryScanner",
    "LocalFile",
    "FileComparator",
    "SyncAction",
    "SyncDecision",
    "EngineState",
    "SyncState",
    "SecretEvent",
    "SecretEventType",
    "SecretAdded",
    "SecretUpdated",
    "SecretDeleted",
]

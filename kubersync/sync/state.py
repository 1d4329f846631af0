"""Engine lifecycle state.

The engine moves through four states::

    UNINITIALIZED -> AWAITING_INITIAL_SYNC -> STEADY
                              |                 |
                              +----> STOPPED <--+

STEADY is reached exactly once, after the secret cache replayed its initial
state and the first local->remote pass ran. Shutdown or deletion of the
tracked secret moves to STOPPED from anywhere.
"""

import logging
from dataclasses import dataclass
from enum import Enum
from typing import Optional

logger = logging.getLogger(__name__)


class EngineState(str, Enum):
    """Lifecycle states of the sync engine."""

    UNINITIALIZED = "uninitialized"
    AWAITING_INITIAL_SYNC = "awaiting_initial_sync"
    STEADY = "steady"
    STOPPED = "stopped"


_TRANSITIONS = {
    EngineState.UNINITIALIZED: {EngineState.AWAITING_INITIAL_SYNC, EngineState.STOPPED},
    EngineState.AWAITING_INITIAL_SYNC: {EngineState.STEADY, EngineState.STOPPED},
    EngineState.STEADY: {EngineState.STOPPED},
    EngineState.STOPPED: set(),
}


@dataclass
class SyncState:
    """Mutable engine state, guarded by the engine's merge lock."""

    state: EngineState = EngineState.UNINITIALIZED
    """Current lifecycle state"""

    have_synced: bool = False
    """Whether the initial sync completed; never reset once True"""

    stop_reason: Optional[str] = None
    """Why the engine stopped, if it did"""

    def transition(self, target: EngineState) -> bool:
        """Move to ``target`` if allowed.

        Returns:
            True if the state changed
        """
        if target == self.state:
            return False
        if target not in _TRANSITIONS[self.state]:
            logger.debug(f"Ignoring transition {self.state.value} -> {target.value}")
            return False
        logger.debug(f"Engine state {self.state.value} -> {target.value}")
        self.state = target
        return True

    def mark_synced(self) -> None:
        """Record that the initial sync completed (false -> true only)."""
        self.have_synced = True

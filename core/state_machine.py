"""
Plugin Lifecycle State Machine
------------------------------
Tracks the lifecycle of one plugin with validated transitions.
All transitions are logged and auditable.

UNLOADED -> LOADING -> LOADED | FAILED
LOADED -> LOADING while a replacement is validated; a rejected
replacement returns to LOADED with the previous fiber.
"""

from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum, auto
from typing import Dict, List, Optional, Set
import logging


class PluginState(Enum):
    """Lifecycle states of a plugin."""
    UNLOADED = auto()   # Not registered
    LOADING = auto()    # Config checks and initialize() in progress
    LOADED = auto()     # Fiber registered
    FAILED = auto()     # Last load attempt failed


@dataclass
class StateTransition:
    """Record of a state transition."""
    from_state: PluginState
    to_state: PluginState
    timestamp: datetime
    reason: str
    metadata: Dict = field(default_factory=dict)

    def __repr__(self) -> str:
        return (
            f"StateTransition({self.from_state.name} → {self.to_state.name}, "
            f"reason='{self.reason}')"
        )


VALID_TRANSITIONS: Dict[PluginState, Set[PluginState]] = {
    PluginState.UNLOADED: {PluginState.LOADING},
    PluginState.LOADING: {PluginState.LOADED, PluginState.FAILED},
    PluginState.LOADED: {PluginState.LOADING, PluginState.UNLOADED},
    PluginState.FAILED: {PluginState.LOADING, PluginState.UNLOADED},
}


class LifecycleStateMachine:
    """
    Lifecycle state machine for a single plugin.

    Responsibilities:
    - Track current state
    - Validate state transitions
    - Log all transitions
    """

    def __init__(self, plugin_id: str, initial_state: PluginState = PluginState.UNLOADED):
        self.plugin_id = plugin_id
        self._state = initial_state
        self._history: List[StateTransition] = []
        self._logger = logging.getLogger("terminal.plugins.lifecycle")

    @property
    def state(self) -> PluginState:
        """Get current state."""
        return self._state

    @property
    def history(self) -> List[StateTransition]:
        """Get transition history."""
        return self._history.copy()

    def can_transition(self, to_state: PluginState) -> bool:
        """Check if transition to given state is valid."""
        return to_state in VALID_TRANSITIONS.get(self._state, set())

    def transition(
        self,
        to_state: PluginState,
        reason: str,
        metadata: Optional[Dict] = None
    ) -> StateTransition:
        """
        Transition to a new state.

        Raises:
            ValueError: If transition is not valid
        """
        if not self.can_transition(to_state):
            valid_names = [s.name for s in VALID_TRANSITIONS.get(self._state, set())]
            raise ValueError(
                f"Invalid transition for plugin {self.plugin_id}: "
                f"{self._state.name} → {to_state.name}. "
                f"Valid targets: {valid_names}"
            )

        transition = StateTransition(
            from_state=self._state,
            to_state=to_state,
            timestamp=datetime.now(),
            reason=reason,
            metadata=metadata or {}
        )

        old_state = self._state
        self._state = to_state
        self._history.append(transition)

        self._logger.info(
            f"Plugin {self.plugin_id}: {old_state.name} → {to_state.name} "
            f"(reason: {reason})"
        )

        return transition

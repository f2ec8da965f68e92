# Memory module - Persisted user state
# Fixed size, explicit updates, no auto-learning

from .preferences import StoredPreferences, PreferenceStore
from .history import CommandLineHistory, MAX_COMMAND_HISTORY

__all__ = [
    "StoredPreferences",
    "PreferenceStore",
    "CommandLineHistory",
    "MAX_COMMAND_HISTORY",
]

"""
Protocol Preferences
--------------------
Persisted protocol selection preferences.
Manual updates only - resolution never writes here.

Rules:
- defaults: command id -> protocol used when several protocols match
- priority: ordered protocol list, tried after defaults
- Explicit updates only
"""

from dataclasses import dataclass, field
from datetime import datetime
from pathlib import Path
from typing import Dict, List, Optional
import logging

import yaml

from core.types import ProtocolPreferences


@dataclass
class StoredPreferences:
    """On-disk preference document."""
    defaults: Dict[str, str] = field(default_factory=dict)
    priority: List[str] = field(default_factory=list)
    updated_at: datetime = field(default_factory=datetime.now)

    def to_dict(self) -> Dict:
        return {
            "defaults": dict(self.defaults),
            "priority": list(self.priority),
            "updated_at": self.updated_at.isoformat(),
        }

    @classmethod
    def from_dict(cls, data: Dict) -> "StoredPreferences":
        prefs = cls(
            defaults={str(k): str(v) for k, v in (data.get("defaults") or {}).items()},
            priority=[str(p) for p in (data.get("priority") or [])],
        )
        if "updated_at" in data:
            prefs.updated_at = datetime.fromisoformat(str(data["updated_at"]))
        return prefs


class PreferenceStore:
    """
    Persistent protocol preference storage (YAML).

    A store without a path keeps preferences in memory only.
    """

    def __init__(self, store_path: Optional[str] = None):
        self._path = Path(store_path) if store_path else None
        self._preferences = StoredPreferences()
        self._logger = logging.getLogger("terminal.memory.preferences")

        self._load()

    def _load(self) -> None:
        """Load preferences from disk."""
        if self._path is None or not self._path.exists():
            return

        try:
            with open(self._path, "r", encoding="utf-8") as f:
                data = yaml.safe_load(f)
        except (OSError, yaml.YAMLError) as e:
            self._logger.error(f"Failed to load preferences: {e}")
            return

        if data:
            self._preferences = StoredPreferences.from_dict(data)
            self._logger.info(
                f"Loaded {len(self._preferences.defaults)} protocol defaults"
            )

    def _save(self) -> None:
        """Save preferences to disk."""
        if self._path is None:
            return

        try:
            self._path.parent.mkdir(parents=True, exist_ok=True)
            with open(self._path, "w", encoding="utf-8") as f:
                yaml.safe_dump(self._preferences.to_dict(), f, default_flow_style=False)
            self._logger.debug("Preferences saved")
        except OSError as e:
            self._logger.error(f"Failed to save preferences: {e}")

    def _touch(self, save: bool) -> None:
        self._preferences.updated_at = datetime.now()
        if save:
            self._save()

    def get_default(self, command_id: str) -> Optional[str]:
        return self._preferences.defaults.get(command_id)

    def set_default(self, command_id: str, protocol: str, save: bool = True) -> None:
        """
        Prefer a protocol for a command.

        This is the ONLY way to add a default.
        """
        self._preferences.defaults[command_id] = protocol
        self._logger.info(f"Preference updated: {command_id} -> {protocol}")
        self._touch(save)

    def remove_default(self, command_id: str, save: bool = True) -> bool:
        """Remove a default. Returns True if it existed."""
        if command_id not in self._preferences.defaults:
            return False
        del self._preferences.defaults[command_id]
        self._touch(save)
        return True

    def set_priority(self, priority: List[str], save: bool = True) -> None:
        # Keep first occurrence of each protocol
        ordered: List[str] = []
        for protocol in priority:
            if protocol not in ordered:
                ordered.append(protocol)
        self._preferences.priority = ordered
        self._logger.info(f"Protocol priority updated: {ordered}")
        self._touch(save)

    def reset_all(self) -> None:
        """Drop every preference."""
        self._preferences = StoredPreferences()
        self._save()
        self._logger.info("All preferences reset")

    @property
    def defaults(self) -> Dict[str, str]:
        return dict(self._preferences.defaults)

    @property
    def priority(self) -> List[str]:
        return list(self._preferences.priority)

    def to_protocol_preferences(self) -> ProtocolPreferences:
        """Snapshot for a ResolutionContext."""
        return ProtocolPreferences(defaults=self.defaults, priority=self.priority)

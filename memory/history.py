"""
Command-Line History
--------------------
Typed input lines, recalled with the up/down keys.

Rules:
- Fixed maximum size, oldest entries evicted first
- Empty lines are not recorded
- Separate from the execution history kept in the context
"""

from pathlib import Path
from typing import List, Optional
import json
import logging


MAX_COMMAND_HISTORY = 1000


class CommandLineHistory:
    """
    Bounded input history with a recall cursor.

    The cursor sits past the newest entry until previous() is called;
    recording a line resets it.
    """

    def __init__(self, path: Optional[str] = None, limit: int = MAX_COMMAND_HISTORY):
        if limit < 1:
            raise ValueError("History limit must be at least 1")

        self._path = Path(path) if path else None
        self._limit = limit
        self._entries: List[str] = []
        self._cursor = 0
        self._logger = logging.getLogger("terminal.memory.history")

        self._load()

    def _load(self) -> None:
        if self._path is None or not self._path.exists():
            return

        try:
            with open(self._path, "r", encoding="utf-8") as f:
                data = json.load(f)
        except (OSError, ValueError) as e:
            self._logger.error(f"Failed to load command history: {e}")
            return

        if isinstance(data, list):
            self._entries = [str(line) for line in data][-self._limit:]
            self._cursor = len(self._entries)
            self._logger.debug(f"Loaded {len(self._entries)} history lines")

    def save(self) -> None:
        if self._path is None:
            return

        try:
            self._path.parent.mkdir(parents=True, exist_ok=True)
            with open(self._path, "w", encoding="utf-8") as f:
                json.dump(self._entries, f)
        except OSError as e:
            self._logger.error(f"Failed to save command history: {e}")

    def record(self, line: str) -> None:
        """Append an input line and reset the recall cursor."""
        line = line.strip()
        if line:
            self._entries.append(line)
            if len(self._entries) > self._limit:
                del self._entries[:len(self._entries) - self._limit]
        self._cursor = len(self._entries)

    def previous(self) -> Optional[str]:
        """Older entry (up key). Stays on the oldest entry."""
        if not self._entries:
            return None
        self._cursor = max(0, self._cursor - 1)
        return self._entries[self._cursor]

    def next(self) -> Optional[str]:
        """Newer entry (down key). None once past the newest."""
        if self._cursor >= len(self._entries) - 1:
            self._cursor = len(self._entries)
            return None
        self._cursor += 1
        return self._entries[self._cursor]

    @property
    def entries(self) -> List[str]:
        return list(self._entries)

    @property
    def limit(self) -> int:
        return self._limit

    def clear(self) -> None:
        self._entries = []
        self._cursor = 0

    def __len__(self) -> int:
        return len(self._entries)

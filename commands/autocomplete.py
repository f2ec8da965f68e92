"""
Autocomplete Engine
-------------------
Live command suggestions while the user types the command token.

Rules:
- Suggestions only for the first word (input with a space gets none)
- Recomputation is debounced; a newer request supersedes older ones
- Navigation never leaves the bounds of the current list
"""

from dataclasses import dataclass, field
from typing import List, Optional
import asyncio
import logging

from core.context import ExecutionContext
from core.types import AutocompleteSuggestion, ProtocolPreferences, ResolutionContext

from .registry import CommandRegistry


@dataclass
class AutocompleteConfig:
    """Configuration for the autocomplete engine."""
    min_chars: int = 1
    max_suggestions: int = 8
    debounce_ms: int = 150
    threshold: float = 0.3
    enabled: bool = True


@dataclass
class Completion:
    """Result of Tab completion."""
    completed: Optional[str] = None
    suggestions: List[AutocompleteSuggestion] = field(default_factory=list)

    @property
    def is_unique(self) -> bool:
        return self.completed is not None


class AutocompleteEngine:
    """
    Suggestion list with debounced updates and keyboard navigation.

    update() is the live path (one call per keystroke); compute() is the
    synchronous core used by update() and complete().
    """

    def __init__(
        self,
        registry: CommandRegistry,
        config: Optional[AutocompleteConfig] = None,
        priority: Optional[List[str]] = None
    ):
        self._registry = registry
        self.config = config or AutocompleteConfig()
        self._priority = list(priority or [])
        self._suggestions: List[AutocompleteSuggestion] = []
        self._selected_index = 0
        self._request_id = 0
        self._applied_input: Optional[str] = None
        self._applied_request_id = 0
        self._is_loading = False
        self._logger = logging.getLogger("terminal.autocomplete")

    @property
    def suggestions(self) -> List[AutocompleteSuggestion]:
        return list(self._suggestions)

    @property
    def selected_index(self) -> int:
        return self._selected_index

    @property
    def is_loading(self) -> bool:
        return self._is_loading

    @property
    def request_id(self) -> int:
        return self._request_id

    def set_priority(self, priority: List[str]) -> None:
        self._priority = list(priority)

    def compute(self, text: str, context: ExecutionContext) -> List[AutocompleteSuggestion]:
        """Suggestions for the given input, without touching engine state."""
        if not self.config.enabled:
            return []

        trimmed = text.strip()
        if len(trimmed) < self.config.min_chars or " " in trimmed:
            return []

        ctx = ResolutionContext(
            input=trimmed,
            execution_context=context,
            preferences=ProtocolPreferences(
                defaults=dict(context.protocol_preferences),
                priority=list(self._priority),
            ),
        )
        results = self._registry.suggest(ctx, self.config.threshold)
        return results[:self.config.max_suggestions]

    async def update(
        self,
        text: str,
        context: ExecutionContext
    ) -> Optional[List[AutocompleteSuggestion]]:
        """
        Debounced recomputation for a new input value.

        Returns:
            The applied suggestion list, or None if a newer update()
            superseded this one
        """
        # Reuse the list only when no newer request is pending
        if text == self._applied_input and self._applied_request_id == self._request_id:
            return self.suggestions

        self._request_id += 1
        request_id = self._request_id

        trimmed = text.strip()
        self._is_loading = len(trimmed) >= self.config.min_chars and " " not in trimmed

        if self.config.debounce_ms > 0:
            await asyncio.sleep(self.config.debounce_ms / 1000)

        if request_id != self._request_id:
            self._logger.debug(f"Dropped stale suggestion request {request_id}")
            return None

        try:
            suggestions = self.compute(text, context)
        finally:
            self._is_loading = False

        self._suggestions = suggestions
        self._selected_index = 0
        self._applied_input = text
        self._applied_request_id = request_id
        return self.suggestions

    # ------------------------------------------------------------------
    # Navigation
    # ------------------------------------------------------------------

    def select_next(self) -> int:
        if self._selected_index < len(self._suggestions) - 1:
            self._selected_index += 1
        return self._selected_index

    def select_prev(self) -> int:
        if self._selected_index > 0:
            self._selected_index -= 1
        return self._selected_index

    def set_selected_index(self, index: int) -> int:
        if not self._suggestions:
            self._selected_index = 0
        else:
            self._selected_index = max(0, min(index, len(self._suggestions) - 1))
        return self._selected_index

    def get_selected(self) -> Optional[AutocompleteSuggestion]:
        if not self._suggestions or self._selected_index >= len(self._suggestions):
            return None
        return self._suggestions[self._selected_index]

    def clear(self) -> None:
        """Drop the list. Pending updates are superseded."""
        self._request_id += 1
        self._suggestions = []
        self._selected_index = 0
        self._applied_input = None
        self._is_loading = False

    # ------------------------------------------------------------------
    # Tab completion
    # ------------------------------------------------------------------

    def complete(self, text: str, context: ExecutionContext) -> Completion:
        """
        Tab completion.

        A single command id left after deduplication fills the input;
        otherwise the candidates are listed.
        """
        suggestions = self.compute(text, context)

        ids = []
        for suggestion in suggestions:
            if suggestion.id not in ids:
                ids.append(suggestion.id)

        if len(ids) == 1:
            return Completion(completed=ids[0], suggestions=suggestions)

        self._suggestions = suggestions
        self._selected_index = 0
        self._applied_input = None
        return Completion(suggestions=suggestions)

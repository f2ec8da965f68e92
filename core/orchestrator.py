"""
Orchestrator
------------
Session coordinator for the terminal.
All user input flows through the orchestrator.

Pipeline for one line of input:
    parse -> resolve -> execute -> adopt the new context

Resolution failures never reach the executor: NOT_FOUND comes back with
"did you mean" candidates, AMBIGUOUS with the candidate protocols.
"""

from dataclasses import dataclass, field
from enum import Enum, auto
from typing import Any, Dict, List, Optional, Sequence
import logging

from commands.autocomplete import AutocompleteConfig, AutocompleteEngine, Completion
from commands.builtins import register_builtins
from commands.parser import CommandArgs, ParsedCommand, parse_command_line
from commands.registry import CommandRegistry
from infra.config import TerminalSettings
from memory.history import CommandLineHistory
from memory.preferences import PreferenceStore
from plugins.base import Plugin, PluginLoadResult
from plugins.loader import PluginLoader

from .context import ExecutionContext, Services, WalletState, create_execution_context
from .errors import ErrorCategory, ErrorHandler, ResolutionFailure, TerminalError
from .executor import CommandExecutor
from .results import CommandResult
from .types import AutocompleteSuggestion, ResolutionContext, ResolvedCommand


class OutcomeKind(Enum):
    """What happened to one line of input."""
    EMPTY = auto()
    EXECUTED = auto()
    NOT_FOUND = auto()
    AMBIGUOUS = auto()


@dataclass
class CommandOutcome:
    """Result of handling one line of input."""
    kind: OutcomeKind
    input: str
    result: Optional[CommandResult] = None
    resolved: Optional[ResolvedCommand] = None
    failure: Optional[ResolutionFailure] = None
    did_you_mean: List[ResolvedCommand] = field(default_factory=list)
    elapsed_ms: float = 0.0

    @property
    def success(self) -> bool:
        return self.kind == OutcomeKind.EXECUTED and self.result.success

    @property
    def candidates(self) -> Sequence[str]:
        return self.failure.candidates if self.failure else ()

    @property
    def message(self) -> str:
        """User-facing text for non-payload outcomes."""
        if self.kind == OutcomeKind.NOT_FOUND:
            text = self.failure.message
            if self.did_you_mean:
                names = ", ".join(_display_name(r) for r in self.did_you_mean)
                text += f"\nDid you mean: {names}?"
            return text
        if self.kind == OutcomeKind.AMBIGUOUS:
            return self.failure.message
        if self.result is not None and not self.result.success:
            return self.result.error.message
        return ""

    def __repr__(self) -> str:
        return f"CommandOutcome({self.kind.name}, input='{self.input}')"


def _display_name(resolved: ResolvedCommand) -> str:
    if resolved.protocol:
        return f"{resolved.protocol}:{resolved.command.id}"
    return resolved.command.id


class Orchestrator:
    """
    Central coordinator for a terminal session.

    Responsibilities:
    - Own the registry, plugin loader, executor and autocomplete engine
    - Hold the current execution context and replace it after each command
    - Route resolution failures into user-facing outcomes

    This is the ONLY entry point for the interactive terminal.
    """

    def __init__(
        self,
        settings: Optional[TerminalSettings] = None,
        plugins: Optional[Sequence[Plugin]] = None,
        services: Optional[Services] = None,
        wallet: Optional[WalletState] = None,
        preferences: Optional[PreferenceStore] = None,
        history: Optional[CommandLineHistory] = None,
    ):
        self.settings = settings or TerminalSettings()
        self._plugins = list(plugins or [])
        self._logger = logging.getLogger("terminal.orchestrator")

        self.registry = CommandRegistry()
        self.loader = PluginLoader(
            self.registry,
            health_timeout_seconds=self.settings.health_timeout_seconds
        )
        self.executor = CommandExecutor()
        self.error_handler = ErrorHandler()

        self.preferences = preferences or PreferenceStore()
        self.history = history or CommandLineHistory(
            limit=self.settings.storage.history_limit
        )

        ac = self.settings.autocomplete
        self.autocomplete = AutocompleteEngine(
            self.registry,
            AutocompleteConfig(
                min_chars=ac.min_chars,
                max_suggestions=ac.max_suggestions,
                debounce_ms=ac.debounce_ms,
                threshold=ac.threshold,
                enabled=ac.enabled,
            ),
            priority=self.preferences.priority,
        )

        self._context = create_execution_context(
            wallet=wallet,
            services=services,
            protocol_preferences=self.preferences.defaults,
        )
        self._started = False

    @property
    def context(self) -> ExecutionContext:
        """Current execution context."""
        return self._context

    @property
    def is_started(self) -> bool:
        return self._started

    async def start(self) -> List[PluginLoadResult]:
        """
        Register built-in commands and load the configured plugins.

        Returns:
            One load result per plugin
        """
        if self._started:
            self._logger.warning("Orchestrator already started")
            return []

        self._logger.info("Starting terminal session...")
        register_builtins(self.registry)

        results = await self.loader.load_all(
            self._plugins, self.settings.plugins, self._context
        )
        for result in results:
            if not result.success:
                self.error_handler.handle(result.error)

        self._started = True
        self._logger.info(
            f"Session ready: {len(self.registry)} commands, "
            f"protocols={self.registry.get_protocols()}"
        )
        return results

    # ------------------------------------------------------------------
    # Input handling
    # ------------------------------------------------------------------

    def _resolution_context(self, token: str, explicit_protocol: Optional[str]) -> ResolutionContext:
        return ResolutionContext(
            input=token,
            execution_context=self._context,
            preferences=self.preferences.to_protocol_preferences(),
            explicit_protocol=explicit_protocol,
        )

    def _rewrite_protocol_switch(self, parsed: ParsedCommand) -> ParsedCommand:
        """A bare protocol id switches to that protocol."""
        args = parsed.args
        if (
            args.protocol is None
            and not args.positional
            and not args.flags
            and self.registry.get_fiber(parsed.token) is not None
        ):
            return ParsedCommand(
                token="use",
                args=CommandArgs(raw=parsed.token, positional=[parsed.token]),
            )
        return parsed

    async def handle_input(self, text: str) -> CommandOutcome:
        """
        Handle one line of user input.

        Returns:
            CommandOutcome describing what happened
        """
        self.history.record(text)
        self.autocomplete.clear()

        parsed = parse_command_line(text)
        if parsed.is_empty:
            return CommandOutcome(kind=OutcomeKind.EMPTY, input=text)

        parsed = self._rewrite_protocol_switch(parsed)
        ctx = self._resolution_context(parsed.token, parsed.args.protocol)
        resolution = self.registry.resolve(ctx)

        if isinstance(resolution, ResolutionFailure):
            return self._handle_failure(text, ctx, resolution)

        self._logger.info(f"Resolved '{parsed.token}' -> {resolution!r}")

        outcome = await self.executor.execute(resolution, parsed.args, self._context)
        self._context = outcome.context

        if not outcome.success:
            self.error_handler.handle(outcome.result.error)

        return CommandOutcome(
            kind=OutcomeKind.EXECUTED,
            input=text,
            result=outcome.result,
            resolved=resolution,
            elapsed_ms=outcome.elapsed_ms,
        )

    def _handle_failure(
        self,
        text: str,
        ctx: ResolutionContext,
        failure: ResolutionFailure
    ) -> CommandOutcome:
        self.error_handler.handle(TerminalError(
            category=failure.category,
            message=failure.message,
            details={"input": failure.input, "candidates": list(failure.candidates)},
        ))

        if failure.category == ErrorCategory.AMBIGUOUS:
            return CommandOutcome(kind=OutcomeKind.AMBIGUOUS, input=text, failure=failure)

        limit = self.settings.resolution.did_you_mean_limit
        did_you_mean = self.registry.resolve_fuzzy(
            ctx, self.settings.resolution.fuzzy_threshold
        )[:limit]

        return CommandOutcome(
            kind=OutcomeKind.NOT_FOUND,
            input=text,
            failure=failure,
            did_you_mean=did_you_mean,
        )

    # ------------------------------------------------------------------
    # Preferences, suggestions, wallet
    # ------------------------------------------------------------------

    def set_preference(self, command_id: str, protocol: str) -> None:
        """Prefer a protocol for a command (persisted)."""
        if self.registry.get_fiber(protocol) is None:
            self._logger.warning(f"Preference for unknown protocol {protocol}")
        self.preferences.set_default(command_id, protocol)
        self._context = self._context.with_preferences(self.preferences.defaults)

    def set_priority(self, priority: List[str]) -> None:
        self.preferences.set_priority(priority)
        self.autocomplete.set_priority(self.preferences.priority)

    def set_wallet(self, wallet: WalletState) -> None:
        self._context = self._context.with_wallet(wallet)

    def suggest(self, text: str) -> List[AutocompleteSuggestion]:
        return self.autocomplete.compute(text, self._context)

    async def update_suggestions(self, text: str) -> Optional[List[AutocompleteSuggestion]]:
        return await self.autocomplete.update(text, self._context)

    def complete(self, text: str) -> Completion:
        return self.autocomplete.complete(text, self._context)

    async def health_check(self) -> Dict[str, bool]:
        return await self.loader.health_check_all(self._context)

    def get_status(self) -> Dict[str, Any]:
        """Get current session status."""
        return {
            "started": self._started,
            "commands": len(self.registry),
            "protocols": self.registry.get_protocols(),
            "active_protocol": self._context.active_protocol,
            "executions": len(self._context.history),
            "errors": self.error_handler.get_error_stats(),
        }

    async def shutdown(self) -> None:
        """Unload plugins and persist the input history."""
        self._logger.info("Shutting down terminal session...")

        for plugin_id in list(self.loader.get_loaded_plugin_ids()):
            try:
                await self.loader.unload_plugin(plugin_id, self._context)
            except Exception as e:
                self._logger.error(f"Failed to unload {plugin_id}: {e}")

        self.history.save()
        self._started = False
        self._logger.info("Shutdown complete")

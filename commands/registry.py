"""
Command Registry
----------------
Deterministic command resolution from user text.
No I/O. No execution. Only lookup and matching.

Partitions:
- core: always-available commands (help, use, ...)
- aliased: protocol-agnostic commands bound to a protocol at resolve time
- fibers: protocol id -> ProtocolFiber

Exact resolution precedence:
1. Explicit protocol (hard constraint, no fallback)
2. Core ids, then core aliases
3. Aliased-global ids and aliases
4. Protocol fibers, disambiguated by preferences
"""

from dataclasses import dataclass
from typing import Dict, List, Optional, Tuple, Union
import logging

from core.errors import ClosureViolationError, ResolutionFailure, ambiguous, not_found
from core.monoid import verify_fiber_identity
from core.types import (
    AutocompleteSuggestion,
    Command,
    CommandScope,
    ProtocolFiber,
    ProtocolId,
    ResolutionContext,
    ResolutionMethod,
    ResolvedCommand,
)

from .matching import match


Resolution = Union[ResolvedCommand, ResolutionFailure]


@dataclass(frozen=True)
class _FuzzyCandidate:
    """A scored token with its owning command."""
    resolved: ResolvedCommand
    is_alias: bool
    is_prefix: bool

    @property
    def sort_key(self) -> Tuple:
        command = self.resolved.command
        return (
            -self.resolved.confidence,
            self.is_alias,
            command.scope == CommandScope.PROTOCOL,
            command.id,
            self.resolved.protocol or "",
        )

    @property
    def dedupe_key(self) -> Tuple:
        command = self.resolved.command
        return (command.scope, command.protocol, command.id)


class CommandRegistry:
    """
    Registry of commands across the three partitions.

    Responsibilities:
    - Hold core, aliased-global and protocol-scoped commands
    - Keep every registered fiber closed and with its identity
    - Resolve user input exactly (resolve) or fuzzily (resolve_fuzzy)

    The registry is an owned value: callers pass it to the operations
    that need it. There is no module-level instance.
    """

    def __init__(self):
        self._core: Dict[str, Command] = {}
        self._core_aliases: Dict[str, Command] = {}
        self._aliased: Dict[str, Command] = {}
        self._aliased_aliases: Dict[str, Command] = {}
        self._fibers: Dict[ProtocolId, ProtocolFiber] = {}
        self._logger = logging.getLogger("terminal.registry")

    # ------------------------------------------------------------------
    # Mutation
    # ------------------------------------------------------------------

    def register_core_command(self, command: Command) -> None:
        """Register a core global command."""
        self._register_global(command, CommandScope.CORE, self._core, self._core_aliases)

    def register_aliased_command(self, command: Command) -> None:
        """Register an aliased global command."""
        self._register_global(command, CommandScope.ALIAS, self._aliased, self._aliased_aliases)

    def _register_global(
        self,
        command: Command,
        scope: CommandScope,
        by_id: Dict[str, Command],
        by_alias: Dict[str, Command]
    ) -> None:
        if command.scope != scope:
            raise ValueError(
                f"Command '{command.id}' has scope {command.scope.value}, "
                f"expected {scope.value}"
            )

        if command.id in by_id:
            self._logger.warning(f"Replacing {scope.value} command '{command.id}'")
            previous = by_id[command.id]
            for alias in previous.aliases:
                if by_alias.get(alias) is previous:
                    del by_alias[alias]

        by_id[command.id] = command
        for alias in command.aliases:
            if alias in by_alias and by_alias[alias].id != command.id:
                self._logger.warning(
                    f"Alias '{alias}' moved from '{by_alias[alias].id}' "
                    f"to '{command.id}'"
                )
            by_alias[alias] = command

        self._logger.debug(f"Registered {scope.value} command '{command.id}'")

    def register_fiber(self, fiber: ProtocolFiber) -> None:
        """
        Register a protocol fiber.

        Raises:
            ClosureViolationError: If the fiber lacks its identity command or
                holds a command of another protocol
        """
        report = verify_fiber_identity(fiber)
        if not report.valid:
            self._logger.error(f"Rejected fiber {fiber.id}: {report.reason}")
            raise ClosureViolationError(report.reason, details={"fiber": fiber.id})

        if fiber.id in self._fibers:
            self._logger.warning(f"Replacing fiber {fiber.id}")

        self._fibers[fiber.id] = fiber
        self._logger.info(
            f"Registered fiber {fiber.id} "
            f"({len(fiber.visible_commands())} commands)"
        )

    def unregister_fiber(self, protocol: ProtocolId) -> Optional[ProtocolFiber]:
        """Remove a fiber. Returns the removed fiber, or None if absent."""
        fiber = self._fibers.pop(protocol, None)
        if fiber is not None:
            self._logger.info(f"Unregistered fiber {protocol}")
        return fiber

    # ------------------------------------------------------------------
    # Queries
    # ------------------------------------------------------------------

    def get_fiber(self, protocol: ProtocolId) -> Optional[ProtocolFiber]:
        return self._fibers.get(protocol)

    def get_protocols(self) -> List[ProtocolId]:
        """Registered protocol ids, in registration order."""
        return list(self._fibers)

    def get_commands_by_scope(self, scope: CommandScope) -> List[Command]:
        if scope == CommandScope.CORE:
            return list(self._core.values())
        if scope == CommandScope.ALIAS:
            return list(self._aliased.values())
        return [
            command
            for fiber in self._fibers.values()
            for command in fiber.visible_commands()
        ]

    def get_all_commands(self) -> List[Command]:
        """All user-visible commands (fiber identities excluded)."""
        return (
            self.get_commands_by_scope(CommandScope.CORE)
            + self.get_commands_by_scope(CommandScope.ALIAS)
            + self.get_commands_by_scope(CommandScope.PROTOCOL)
        )

    def __len__(self) -> int:
        return len(self.get_all_commands())

    def __contains__(self, token: str) -> bool:
        return any(token == t for t, _, _, _ in self._iter_tokens())

    # ------------------------------------------------------------------
    # Exact resolution
    # ------------------------------------------------------------------

    def resolve(self, ctx: ResolutionContext) -> Resolution:
        """
        Resolve input to exactly one command.

        Returns:
            ResolvedCommand, or a ResolutionFailure (NOT_FOUND / AMBIGUOUS)
        """
        token = ctx.input.strip()

        if not token:
            return not_found(token, ctx.explicit_protocol)

        # 1. Explicit protocol
        if ctx.explicit_protocol:
            fiber = self._fibers.get(ctx.explicit_protocol)
            command = fiber.find(token) if fiber is not None else None
            if command is None:
                return not_found(token, ctx.explicit_protocol)
            return ResolvedCommand(
                command=command,
                resolution_method=ResolutionMethod.PROTOCOL_SCOPED,
                protocol=fiber.id,
                matched_token=token,
            )

        # 2. Core
        if token in self._core:
            return ResolvedCommand(
                command=self._core[token],
                resolution_method=ResolutionMethod.EXACT,
                matched_token=token,
            )
        if token in self._core_aliases:
            return ResolvedCommand(
                command=self._core_aliases[token],
                resolution_method=ResolutionMethod.ALIAS,
                matched_token=token,
            )

        # 3. Aliased global
        command = self._aliased.get(token) or self._aliased_aliases.get(token)
        if command is not None:
            return ResolvedCommand(
                command=command,
                resolution_method=ResolutionMethod.ALIAS,
                protocol=self._bind_protocol(command, ctx),
                matched_token=token,
            )

        # 4. Fibers
        matches: Dict[ProtocolId, Command] = {}
        for protocol, fiber in self._fibers.items():
            found = fiber.find(token)
            if found is not None and not found.is_identity:
                matches[protocol] = found

        if not matches:
            return not_found(token)

        if len(matches) == 1:
            protocol, command = next(iter(matches.items()))
            return ResolvedCommand(
                command=command,
                resolution_method=ResolutionMethod.EXACT,
                protocol=protocol,
                matched_token=token,
            )

        chosen = self._disambiguate(token, matches, ctx)
        if chosen is None:
            self._logger.warning(
                f"Ambiguous input '{token}': {sorted(matches)}"
            )
            return ambiguous(token, list(matches))

        return ResolvedCommand(
            command=matches[chosen],
            resolution_method=ResolutionMethod.EXACT,
            protocol=chosen,
            matched_token=token,
        )

    def resolve_exact(self, ctx: ResolutionContext) -> Optional[ResolvedCommand]:
        """Exact resolution, returning None on any failure."""
        result = self.resolve(ctx)
        if isinstance(result, ResolutionFailure):
            return None
        return result

    def _defaults(self, ctx: ResolutionContext) -> Dict[str, ProtocolId]:
        # Explicit preferences win over the session's stored ones
        merged = dict(ctx.execution_context.protocol_preferences)
        merged.update(ctx.preferences.defaults)
        return merged

    def _bind_protocol(self, command: Command, ctx: ResolutionContext) -> Optional[ProtocolId]:
        defaults = self._defaults(ctx)
        if command.id in defaults:
            return defaults[command.id]
        if ctx.execution_context.active_protocol:
            return ctx.execution_context.active_protocol
        if ctx.preferences.priority:
            return ctx.preferences.priority[0]
        return None

    def _disambiguate(
        self,
        token: str,
        matches: Dict[ProtocolId, Command],
        ctx: ResolutionContext
    ) -> Optional[ProtocolId]:
        defaults = self._defaults(ctx)

        preferred = defaults.get(token)
        if preferred in matches:
            return preferred

        for command in matches.values():
            preferred = defaults.get(command.id)
            if preferred in matches:
                return preferred

        active = ctx.execution_context.active_protocol
        if active in matches:
            return active

        for protocol in ctx.preferences.priority:
            if protocol in matches:
                return protocol

        return None

    # ------------------------------------------------------------------
    # Fuzzy resolution
    # ------------------------------------------------------------------

    def _iter_tokens(self):
        """Yield (token, command, protocol, is_alias) for every matchable token."""
        for commands in (self._core.values(), self._aliased.values()):
            for command in commands:
                for index, token in enumerate(command.tokens()):
                    yield token, command, None, index > 0

        for protocol, fiber in self._fibers.items():
            for command in fiber.visible_commands():
                for index, token in enumerate(command.tokens()):
                    yield token, command, protocol, index > 0

    def _score(self, ctx: ResolutionContext, threshold: float) -> List[_FuzzyCandidate]:
        query = ctx.input.strip()
        if not query:
            return []

        scored: List[_FuzzyCandidate] = []
        for token, command, protocol, is_alias in self._iter_tokens():
            if ctx.explicit_protocol and protocol != ctx.explicit_protocol:
                continue

            confidence, is_prefix = match(query, token)
            if confidence < threshold:
                continue

            scored.append(_FuzzyCandidate(
                resolved=ResolvedCommand(
                    command=command,
                    resolution_method=ResolutionMethod.FUZZY,
                    protocol=protocol,
                    confidence=confidence,
                    matched_token=token,
                ),
                is_alias=is_alias,
                is_prefix=is_prefix,
            ))

        scored.sort(key=lambda c: c.sort_key)

        # Keep the best-scoring token per command
        seen = set()
        unique: List[_FuzzyCandidate] = []
        for candidate in scored:
            if candidate.dedupe_key in seen:
                continue
            seen.add(candidate.dedupe_key)
            unique.append(candidate)

        return unique

    def resolve_fuzzy(
        self,
        ctx: ResolutionContext,
        threshold: float = 0.3
    ) -> List[ResolvedCommand]:
        """
        Fuzzy resolution over every id and alias.

        Returns:
            Matches at or above threshold, best first, one per command
        """
        return [candidate.resolved for candidate in self._score(ctx, threshold)]

    def suggest(
        self,
        ctx: ResolutionContext,
        threshold: float = 0.3
    ) -> List[AutocompleteSuggestion]:
        """Autocomplete suggestions: prefix matches first, then the rest."""
        candidates = self._score(ctx, threshold)
        ordered = (
            [c for c in candidates if c.is_prefix]
            + [c for c in candidates if not c.is_prefix]
        )

        return [
            AutocompleteSuggestion(
                id=c.resolved.command.id,
                aliases=c.resolved.command.aliases,
                description=c.resolved.command.description,
                protocol=c.resolved.protocol,
                confidence=c.resolved.confidence,
            )
            for c in ordered
        ]


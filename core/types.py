"""
Core Types
----------
Algebraic types for the command space.

Commands are organised as a fibered monoid:
- CORE commands are always available
- ALIAS commands are protocol-agnostic, bound to a protocol at resolve time
- PROTOCOL commands live in exactly one protocol fiber

Every fiber is a submonoid: it carries its own identity command and is
closed under composition.
"""

from dataclasses import dataclass, field
from enum import Enum
from typing import (
    TYPE_CHECKING, Any, Awaitable, Callable, Dict, List, Optional, Tuple
)

if TYPE_CHECKING:
    from .context import ExecutionContext
    from .results import CommandResult


ProtocolId = str

IDENTITY_ID = "identity"


class CommandScope(str, Enum):
    """Where a command lives in the command space."""
    CORE = "core"           # Core global commands
    ALIAS = "alias"         # Aliased global commands (bound at resolve time)
    PROTOCOL = "protocol"   # Protocol-scoped commands (inside a fiber)


class ResolutionMethod(str, Enum):
    """How a command was resolved from user input."""
    EXACT = "exact"
    ALIAS = "alias"
    FUZZY = "fuzzy"
    PROTOCOL_SCOPED = "protocol-scoped"


# async (args, context) -> CommandResult
CommandAction = Callable[[Any, "ExecutionContext"], Awaitable["CommandResult"]]
FiberHook = Callable[["ExecutionContext"], Awaitable[None]]


@dataclass(frozen=True)
class Command:
    """
    Immutable command descriptor.

    A PROTOCOL command always carries a protocol; CORE and ALIAS commands
    never do. Violations raise ValueError at construction.
    """
    id: str
    scope: CommandScope
    action: CommandAction
    protocol: Optional[ProtocolId] = None
    aliases: Tuple[str, ...] = ()
    description: str = ""
    compose: Optional[Callable[["Command"], "Command"]] = None

    def __post_init__(self) -> None:
        if not self.id:
            raise ValueError("Command id must be non-empty")

        if self.scope == CommandScope.PROTOCOL and not self.protocol:
            raise ValueError(
                f"Command '{self.id}' is protocol-scoped but has no protocol"
            )
        if self.scope != CommandScope.PROTOCOL and self.protocol is not None:
            raise ValueError(
                f"Command '{self.id}' has scope {self.scope.value} "
                f"and must not carry a protocol"
            )

        # Accept lists from callers, store an immutable tuple
        if not isinstance(self.aliases, tuple):
            object.__setattr__(self, "aliases", tuple(self.aliases))

    @property
    def is_identity(self) -> bool:
        return self.id == IDENTITY_ID

    @property
    def qualified_id(self) -> str:
        """Namespaced id, e.g. 'uniswap:swap'."""
        if self.protocol:
            return f"{self.protocol}:{self.id}"
        return self.id

    def tokens(self) -> Tuple[str, ...]:
        """Id followed by aliases."""
        return (self.id,) + self.aliases

    async def run(self, args: Any, context: "ExecutionContext") -> "CommandResult":
        """Execute the command action."""
        return await self.action(args, context)

    def __repr__(self) -> str:
        return f"Command({self.qualified_id}, scope={self.scope.value})"


@dataclass
class ProtocolFiber:
    """
    A protocol fiber: the closed set of commands of one protocol.

    Build fibers with core.monoid.create_protocol_fiber so the identity
    command is always present.
    """
    id: ProtocolId
    name: str
    description: str = ""
    commands: Dict[str, Command] = field(default_factory=dict)
    initialize: Optional[FiberHook] = None
    cleanup: Optional[FiberHook] = None

    @property
    def identity(self) -> Optional[Command]:
        return self.commands.get(IDENTITY_ID)

    def find(self, token: str) -> Optional[Command]:
        """Find a command by id first, then by alias."""
        command = self.commands.get(token)
        if command is not None:
            return command

        for candidate in self.commands.values():
            if token in candidate.aliases:
                return candidate
        return None

    def visible_commands(self) -> List[Command]:
        """Commands shown to users (identity excluded)."""
        return [c for c in self.commands.values() if not c.is_identity]

    def __len__(self) -> int:
        return len(self.commands)

    def __contains__(self, command_id: str) -> bool:
        return command_id in self.commands

    def __repr__(self) -> str:
        return f"ProtocolFiber(id={self.id}, commands={len(self.commands)})"


@dataclass
class ProtocolPreferences:
    """User preferences for protocol selection."""
    defaults: Dict[str, ProtocolId] = field(default_factory=dict)
    priority: List[ProtocolId] = field(default_factory=list)


@dataclass
class ResolutionContext:
    """Input to the resolution operators."""
    input: str
    execution_context: "ExecutionContext"
    preferences: ProtocolPreferences = field(default_factory=ProtocolPreferences)
    explicit_protocol: Optional[ProtocolId] = None


@dataclass(frozen=True)
class ResolvedCommand:
    """Result of resolving user input to a command."""
    command: Command
    resolution_method: ResolutionMethod
    protocol: Optional[ProtocolId] = None
    confidence: float = 1.0
    matched_token: str = ""

    def __repr__(self) -> str:
        return (
            f"ResolvedCommand({self.command.id}, protocol={self.protocol}, "
            f"method={self.resolution_method.value}, "
            f"confidence={self.confidence:.2f})"
        )


@dataclass(frozen=True)
class AutocompleteSuggestion:
    """A single entry in the autocomplete list."""
    id: str
    aliases: Tuple[str, ...] = ()
    description: str = ""
    protocol: Optional[ProtocolId] = None
    confidence: float = 0.0

    @property
    def label(self) -> str:
        if self.protocol:
            return f"{self.id} ({self.protocol})"
        return self.id

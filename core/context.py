"""
Execution Context
-----------------
Per-session state threaded through every command execution.

Rules:
- One context per session, created by create_execution_context()
- Every execution produces a NEW context (update_execution_context)
- History is append-only and never pruned here
- Wallet state is owned by the wallet collaborator and only read here
"""

from dataclasses import dataclass, field, replace
from datetime import datetime, timezone
from typing import Any, Dict, Mapping, Optional, Protocol, Tuple, runtime_checkable

from .errors import TerminalError
from .results import CommandResult, TransactionRequest
from .types import Command, ProtocolId


@dataclass(frozen=True)
class WalletState:
    """Wallet connection snapshot."""
    address: Optional[str] = None
    chain_id: Optional[int] = None
    is_connected: bool = False
    is_connecting: bool = False
    is_disconnecting: bool = False


@dataclass(frozen=True)
class CommandExecution:
    """One entry of the execution history."""
    command_id: str
    args: Any
    result: Any
    success: bool
    protocol: Optional[ProtocolId] = None
    error: Optional[TerminalError] = None
    timestamp: datetime = field(default_factory=lambda: datetime.now(timezone.utc))


# Collaborator contracts (implemented outside the engine)

@runtime_checkable
class NetworkCapability(Protocol):
    """Calls a proxied protocol endpoint and returns parsed data or a typed failure."""

    async def call(
        self,
        protocol: str,
        action: str,
        params: Optional[Dict[str, Any]] = None,
        method: str = "POST",
    ) -> Any: ...


@runtime_checkable
class TransactionSigner(Protocol):
    """Signs and broadcasts a transaction, returning its hash or raising."""

    async def sign_and_broadcast(self, request: TransactionRequest) -> str: ...


@runtime_checkable
class SymbolLookup(Protocol):
    """Maps a token/coin symbol to an address or id."""

    async def resolve(self, symbol: str, chain_id: Optional[int] = None) -> Optional[str]: ...


@dataclass(frozen=True)
class Services:
    """Injected collaborators. All optional."""
    network: Optional[NetworkCapability] = None
    signer: Optional[TransactionSigner] = None
    symbols: Optional[SymbolLookup] = None


@dataclass
class ExecutionContext:
    """
    Session state for command execution.

    Actions receive a working copy (fork) they may write to; the executor
    turns that copy into the next context. The previous context is never
    touched.
    """
    protocol_preferences: Dict[str, ProtocolId] = field(default_factory=dict)
    wallet: WalletState = field(default_factory=WalletState)
    global_state: Dict[str, Any] = field(default_factory=dict)
    protocol_state: Dict[ProtocolId, Dict[str, Any]] = field(default_factory=dict)
    history: Tuple[CommandExecution, ...] = ()
    active_protocol: Optional[ProtocolId] = None
    services: Services = field(default_factory=Services)

    def fork(self) -> "ExecutionContext":
        """Working copy with its own state bags. History is shared (immutable)."""
        return replace(
            self,
            protocol_preferences=dict(self.protocol_preferences),
            global_state=dict(self.global_state),
            protocol_state={
                pid: dict(state)
                for pid, state in self.protocol_state.items()
            },
        )

    def get_protocol_state(self, protocol: ProtocolId) -> Dict[str, Any]:
        """Mutable state bag for a protocol (created on first use)."""
        return self.protocol_state.setdefault(protocol, {})

    def with_active_protocol(self, protocol: Optional[ProtocolId]) -> "ExecutionContext":
        return replace(self, active_protocol=protocol)

    def with_wallet(self, wallet: WalletState) -> "ExecutionContext":
        return replace(self, wallet=wallet)

    def with_preferences(self, preferences: Mapping[str, ProtocolId]) -> "ExecutionContext":
        return replace(self, protocol_preferences=dict(preferences))

    def with_protocol_state(
        self,
        protocol: ProtocolId,
        state: Mapping[str, Any]
    ) -> "ExecutionContext":
        bags = dict(self.protocol_state)
        bags[protocol] = dict(state)
        return replace(self, protocol_state=bags)

    @property
    def last_execution(self) -> Optional[CommandExecution]:
        return self.history[-1] if self.history else None


def create_execution_context(
    wallet: Optional[WalletState] = None,
    services: Optional[Services] = None,
    protocol_preferences: Optional[Mapping[str, ProtocolId]] = None,
) -> ExecutionContext:
    """Create an execution context with default values."""
    return ExecutionContext(
        protocol_preferences=dict(protocol_preferences or {}),
        wallet=wallet or WalletState(),
        services=services or Services(),
    )


def update_execution_context(
    context: ExecutionContext,
    command: Command,
    args: Any,
    result: CommandResult,
    protocol: Optional[ProtocolId] = None,
) -> ExecutionContext:
    """
    Produce the context that follows an execution.

    The returned context carries the given context's fields plus one new
    history entry. The input context is not modified.
    """
    execution = CommandExecution(
        command_id=command.id,
        protocol=protocol if protocol is not None else command.protocol,
        args=args,
        result=result.value if result.success else result.error,
        success=result.success,
        error=None if result.success else result.error,
    )

    return replace(context, history=context.history + (execution,))

# Core module - Command algebra, execution context and execution
# Resolution lives in commands/, plugins in plugins/
#
# The session Orchestrator sits on top of every package and is imported
# from core.orchestrator directly.

from .types import (
    Command, CommandScope, ProtocolFiber, ProtocolPreferences,
    ResolutionContext, ResolutionMethod, ResolvedCommand, AutocompleteSuggestion,
    IDENTITY_ID,
)
from .results import CommandResult, Message, Table, TransactionRequest, Cleared
from .errors import (
    ErrorHandler, ErrorCategory, TerminalError, TerminalException,
    ClosureViolationError, FiberIdentityMismatchError, PluginDisabledError,
    InvalidConfigError, PluginNotLoadedError, ResolutionFailure,
)
from .context import (
    ExecutionContext, WalletState, CommandExecution, Services,
    create_execution_context, update_execution_context,
)
from .monoid import (
    IDENTITY_COMMAND, create_protocol_fiber, add_command_to_fiber,
    compose_commands, compose_in_fiber, chain_commands,
)
from .state_machine import LifecycleStateMachine, PluginState, StateTransition
from .executor import CommandExecutor, ExecutionOutcome

__all__ = [
    "Command", "CommandScope", "ProtocolFiber", "ProtocolPreferences",
    "ResolutionContext", "ResolutionMethod", "ResolvedCommand", "AutocompleteSuggestion",
    "IDENTITY_ID",
    "CommandResult", "Message", "Table", "TransactionRequest", "Cleared",
    "ErrorHandler", "ErrorCategory", "TerminalError", "TerminalException",
    "ClosureViolationError", "FiberIdentityMismatchError", "PluginDisabledError",
    "InvalidConfigError", "PluginNotLoadedError", "ResolutionFailure",
    "ExecutionContext", "WalletState", "CommandExecution", "Services",
    "create_execution_context", "update_execution_context",
    "IDENTITY_COMMAND", "create_protocol_fiber", "add_command_to_fiber",
    "compose_commands", "compose_in_fiber", "chain_commands",
    "LifecycleStateMachine", "PluginState", "StateTransition",
    "CommandExecutor", "ExecutionOutcome",
]

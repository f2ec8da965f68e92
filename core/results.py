"""
Command Results
---------------
Result type returned by every command action, plus the closed set of
payload variants the terminal knows how to render.

The UI switches on the payload type:
- Message: plain text
- Table: columns and rows
- TransactionRequest: an unsigned transaction for the wallet signer
- Cleared: clear the screen
Any other value is rendered as-is (composition chains pass raw values).
"""

from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional, Sequence, Union

from .errors import ErrorCategory, TerminalError


@dataclass(frozen=True)
class Message:
    """Plain text output."""
    text: str


@dataclass(frozen=True)
class Table:
    """Tabular output."""
    columns: Sequence[str]
    rows: Sequence[Sequence[Any]]
    title: str = ""


@dataclass(frozen=True)
class TransactionRequest:
    """An unsigned transaction handed to the signing collaborator."""
    to: str
    data: str = "0x"
    value: int = 0
    chain_id: Optional[int] = None
    protocol: Optional[str] = None
    description: str = ""
    metadata: Dict[str, Any] = field(default_factory=dict)


@dataclass(frozen=True)
class Cleared:
    """Instructs the UI to clear its output."""


Payload = Union[Message, Table, TransactionRequest, Cleared]


@dataclass(frozen=True)
class CommandResult:
    """Success value or typed error."""
    success: bool
    value: Any = None
    error: Optional[TerminalError] = None

    @classmethod
    def ok(cls, value: Any = None) -> "CommandResult":
        return cls(success=True, value=value)

    @classmethod
    def fail(
        cls,
        error: Union[TerminalError, Exception, str],
        details: Optional[Dict[str, Any]] = None,
    ) -> "CommandResult":
        """Build a failed result, normalising the error to ACTION_FAILURE."""
        if isinstance(error, TerminalError):
            terminal_error = error
        elif isinstance(error, Exception):
            terminal_error = TerminalError.from_exception(
                error, ErrorCategory.ACTION_FAILURE, details
            )
        else:
            terminal_error = TerminalError(
                category=ErrorCategory.ACTION_FAILURE,
                message=str(error),
                details=details,
            )
        return cls(success=False, error=terminal_error)

    def __repr__(self) -> str:
        if self.success:
            return f"CommandResult(ok, value={self.value!r})"
        return f"CommandResult(failed, error={self.error!r})"


def message(text: str) -> CommandResult:
    """Shortcut for a successful Message result."""
    return CommandResult.ok(Message(text))


def table(columns: List[str], rows: List[Sequence[Any]], title: str = "") -> CommandResult:
    """Shortcut for a successful Table result."""
    return CommandResult.ok(Table(columns=tuple(columns), rows=tuple(tuple(r) for r in rows), title=title))

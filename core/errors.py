"""
Error Handling Module
---------------------
Typed errors for resolution, plugin lifecycle and command execution.

Rules:
- Resolution failures (NOT_FOUND, AMBIGUOUS) are values, never raised
- Invariant violations abort the single load/insert and are logged loudly
- Action failures are recorded in history and never end the session
"""

from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum, auto
from typing import Any, Dict, List, Optional
import logging
import traceback


class ErrorCategory(Enum):
    """Categories of errors for handling decisions."""
    NOT_FOUND = auto()                # No command matches the input
    AMBIGUOUS = auto()                # Several protocols match, nothing disambiguates
    DISABLED = auto()                 # Plugin load blocked by config
    INVALID_CONFIG = auto()           # Plugin config rejected
    FIBER_IDENTITY_MISMATCH = auto()  # Plugin returned a fiber with a foreign id
    CLOSURE_VIOLATION = auto()        # Command added to a fiber it does not belong to
    ACTION_FAILURE = auto()           # The command's own execution failed
    PLUGIN_NOT_LOADED = auto()        # Lifecycle call for an unknown plugin
    INVALID_INPUT = auto()            # Unparseable command line


@dataclass
class TerminalError:
    """
    Structured error with metadata.

    Used for consistent error handling and reporting.
    """
    category: ErrorCategory
    message: str
    details: Optional[Dict[str, Any]] = None
    timestamp: datetime = field(default_factory=datetime.now)
    stack_trace: Optional[str] = None
    recoverable: bool = True

    @classmethod
    def from_exception(
        cls,
        exception: Exception,
        category: ErrorCategory,
        details: Optional[Dict] = None
    ) -> "TerminalError":
        """Create error from an exception."""
        if isinstance(exception, TerminalException):
            return exception.error

        return cls(
            category=category,
            message=str(exception) or exception.__class__.__name__,
            details=details,
            stack_trace="".join(traceback.format_exception(
                type(exception), exception, exception.__traceback__
            )),
            recoverable=category not in FATAL_CATEGORIES
        )

    def __repr__(self) -> str:
        return f"TerminalError({self.category.name}: {self.message})"


# Programmer / plugin-author errors
FATAL_CATEGORIES = {
    ErrorCategory.FIBER_IDENTITY_MISMATCH,
    ErrorCategory.CLOSURE_VIOLATION,
}


class TerminalException(Exception):
    """Base exception carrying a TerminalError."""

    category: ErrorCategory = ErrorCategory.ACTION_FAILURE

    def __init__(self, message: str, details: Optional[Dict[str, Any]] = None):
        super().__init__(message)
        self.error = TerminalError(
            category=self.category,
            message=message,
            details=details,
            recoverable=self.category not in FATAL_CATEGORIES
        )


class ClosureViolationError(TerminalException):
    """A command does not belong to the fiber it is added to."""
    category = ErrorCategory.CLOSURE_VIOLATION


class FiberIdentityMismatchError(TerminalException):
    """A plugin returned a fiber whose id differs from its declared id."""
    category = ErrorCategory.FIBER_IDENTITY_MISMATCH


class PluginDisabledError(TerminalException):
    """Plugin load blocked because its config is disabled."""
    category = ErrorCategory.DISABLED


class InvalidConfigError(TerminalException):
    """Plugin config rejected by its validator."""
    category = ErrorCategory.INVALID_CONFIG


class PluginNotLoadedError(TerminalException):
    """Lifecycle operation on a plugin that was never loaded."""
    category = ErrorCategory.PLUGIN_NOT_LOADED


@dataclass(frozen=True)
class ResolutionFailure:
    """
    Outcome of a resolution that found nothing usable.

    Callers decide how to present it (fall back to fuzzy resolution,
    prompt for a protocol, or show "command not found").
    """
    category: ErrorCategory
    input: str
    candidates: tuple = ()
    explicit_protocol: Optional[str] = None

    @property
    def is_ambiguous(self) -> bool:
        return self.category == ErrorCategory.AMBIGUOUS

    @property
    def message(self) -> str:
        if self.category == ErrorCategory.AMBIGUOUS:
            return (
                f"'{self.input}' is defined by several protocols: "
                f"{', '.join(self.candidates)}. "
                f"Use --protocol <id> or set a default."
            )
        if self.explicit_protocol:
            return f"Command not found: {self.explicit_protocol}:{self.input}"
        return f"Command not found: {self.input}"

    def __bool__(self) -> bool:
        return False

    def __repr__(self) -> str:
        return f"ResolutionFailure({self.category.name}: '{self.input}')"


def not_found(input_text: str, explicit_protocol: Optional[str] = None) -> ResolutionFailure:
    """Create a NOT_FOUND resolution failure."""
    return ResolutionFailure(
        category=ErrorCategory.NOT_FOUND,
        input=input_text,
        explicit_protocol=explicit_protocol
    )


def ambiguous(input_text: str, candidates: List[str]) -> ResolutionFailure:
    """Create an AMBIGUOUS resolution failure."""
    return ResolutionFailure(
        category=ErrorCategory.AMBIGUOUS,
        input=input_text,
        candidates=tuple(sorted(candidates))
    )


class ErrorHandler:
    """
    Central error handler with logging and user messages.
    """

    def __init__(self, max_history: int = 100):
        self._logger = logging.getLogger("terminal.errors")
        self._error_history: List[TerminalError] = []
        self._max_history = max_history

    def handle(self, error: TerminalError) -> str:
        """
        Handle an error and return user-friendly message.
        """
        self._log_error(error)

        self._error_history.append(error)
        if len(self._error_history) > self._max_history:
            self._error_history.pop(0)

        return self._get_user_message(error)

    def _log_error(self, error: TerminalError) -> None:
        """Log error with appropriate level."""
        level_map = {
            ErrorCategory.NOT_FOUND: logging.INFO,
            ErrorCategory.INVALID_INPUT: logging.INFO,
            ErrorCategory.AMBIGUOUS: logging.WARNING,
            ErrorCategory.DISABLED: logging.INFO,
            ErrorCategory.INVALID_CONFIG: logging.WARNING,
            ErrorCategory.PLUGIN_NOT_LOADED: logging.WARNING,
            ErrorCategory.ACTION_FAILURE: logging.ERROR,
            ErrorCategory.FIBER_IDENTITY_MISMATCH: logging.CRITICAL,
            ErrorCategory.CLOSURE_VIOLATION: logging.CRITICAL,
        }

        level = level_map.get(error.category, logging.ERROR)

        self._logger.log(
            level,
            f"{error.category.name}: {error.message}",
            extra={"details": error.details}
        )

        if error.stack_trace and level >= logging.ERROR:
            self._logger.debug(f"Stack trace:\n{error.stack_trace}")

    def _get_user_message(self, error: TerminalError) -> str:
        """Generate user-friendly error message."""
        messages = {
            ErrorCategory.DISABLED: "That protocol is disabled in your configuration.",
            ErrorCategory.INVALID_CONFIG: "That protocol's configuration is invalid.",
            ErrorCategory.FIBER_IDENTITY_MISMATCH: "A protocol plugin is broken and was not loaded.",
            ErrorCategory.CLOSURE_VIOLATION: "A protocol plugin is broken and was not loaded.",
            ErrorCategory.PLUGIN_NOT_LOADED: "That protocol is not loaded.",
        }

        # Resolution and action errors carry their own user-facing text
        return messages.get(error.category, error.message)

    def get_error_stats(self) -> Dict[str, int]:
        """Get error statistics."""
        stats: Dict[str, int] = {}
        for error in self._error_history:
            key = error.category.name
            stats[key] = stats.get(key, 0) + 1
        return stats

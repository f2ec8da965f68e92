"""
Terminal Logging
----------------
Structured logging with a per-execution trace id.

Design:
- Every command execution gets a unique trace_id
- trace_id propagates through: resolution -> executor -> network client
- Console output through rich, file output as JSON lines
- Severity discipline: INFO=state, WARNING=recoverable, ERROR=abort

Usage:
    from infra.logging import get_logger, ExecutionTrace, log_execution_end

    logger = get_logger("executor")

    with ExecutionTrace() as trace_id:
        logger.info("Running swap")
        log_execution_end(trace_id, "swap", success=True)
"""

import contextvars
import json
import logging
import logging.handlers
import uuid
from datetime import datetime, timezone
from pathlib import Path
from typing import Optional, Union

from rich.console import Console
from rich.logging import RichHandler


ROOT_LOGGER = "terminal"

# Async-safe: each task sees the trace of the execution it belongs to
_trace_id_var: contextvars.ContextVar[Optional[str]] = contextvars.ContextVar(
    "trace_id", default=None
)


def generate_trace_id() -> str:
    """Generate a unique trace ID."""
    return f"exec_{uuid.uuid4().hex[:12]}"


def get_trace_id() -> Optional[str]:
    """Get the current trace ID from context."""
    return _trace_id_var.get()


class ExecutionTrace:
    """
    Context manager scoping one command execution.

    Usage:
        with ExecutionTrace() as trace_id:
            # All logs within this block carry trace_id
            logger.info("Executing...")
    """

    def __init__(self, trace_id: Optional[str] = None):
        self._trace_id = trace_id or generate_trace_id()
        self._token: Optional[contextvars.Token] = None

    def __enter__(self) -> str:
        self._token = _trace_id_var.set(self._trace_id)
        return self._trace_id

    def __exit__(self, *args) -> None:
        if self._token is not None:
            _trace_id_var.reset(self._token)


class TraceIdFilter(logging.Filter):
    """Logging filter that adds trace_id to every log record."""

    def filter(self, record: logging.LogRecord) -> bool:
        if getattr(record, "trace_id", None) is None:
            record.trace_id = get_trace_id() or "-"
        return True


class JSONFormatter(logging.Formatter):
    """JSON formatter for structured file logging."""

    EXTRA_FIELDS = (
        "command_id", "protocol", "success", "elapsed_ms",
        "plugin_id", "error", "details",
    )

    def format(self, record: logging.LogRecord) -> str:
        log_entry = {
            "timestamp": datetime.now(timezone.utc).isoformat(),
            "level": record.levelname,
            "logger": record.name,
            "message": record.getMessage(),
            "trace_id": getattr(record, "trace_id", "-"),
        }

        if record.exc_info:
            log_entry["exception"] = self.formatException(record.exc_info)

        for key in self.EXTRA_FIELDS:
            if hasattr(record, key):
                log_entry[key] = getattr(record, key)

        return json.dumps(log_entry, default=str)


class TraceRichHandler(RichHandler):
    """RichHandler that prefixes messages with the trace id."""

    def render_message(self, record: logging.LogRecord, message: str):
        trace_id = getattr(record, "trace_id", "-")
        if trace_id != "-":
            message = f"[{trace_id}] {message}"
        return super().render_message(record, message)


# Rotation limits for the JSON log file
MAX_BYTES = 10 * 1024 * 1024  # 10 MB
BACKUP_COUNT = 3

_log_file_path: Optional[Path] = None


def configure_logging(
    level: Union[int, str] = logging.INFO,
    log_dir: Optional[str] = None,
    console: bool = True,
    file: bool = True,
    console_stream: Optional[Console] = None,
) -> logging.Logger:
    """
    Configure the terminal logging system.

    Calling it again replaces the handlers installed by the previous call.

    Args:
        level: Logging level (default INFO)
        log_dir: Directory for log files (default: ./logs)
        console: Enable console output
        file: Enable file output
        console_stream: Console the rich handler writes to (default stderr)

    Returns:
        The root terminal logger
    """
    global _log_file_path

    if isinstance(level, str):
        level = logging.getLevelName(level.upper())

    root_logger = logging.getLogger(ROOT_LOGGER)
    root_logger.setLevel(level)
    for handler in list(root_logger.handlers):
        root_logger.removeHandler(handler)
        handler.close()

    trace_filter = TraceIdFilter()

    if console:
        console_handler = TraceRichHandler(
            console=console_stream or Console(stderr=True),
            show_path=False,
            rich_tracebacks=True,
        )
        console_handler.setLevel(level)
        console_handler.addFilter(trace_filter)
        root_logger.addHandler(console_handler)

    if file:
        log_path = Path(log_dir) if log_dir else Path("logs")
        log_path.mkdir(parents=True, exist_ok=True)

        _log_file_path = log_path / "terminal.log"

        file_handler = logging.handlers.RotatingFileHandler(
            str(_log_file_path),
            maxBytes=MAX_BYTES,
            backupCount=BACKUP_COUNT,
            encoding="utf-8",
        )
        file_handler.setLevel(logging.DEBUG)  # File gets everything
        file_handler.setFormatter(JSONFormatter())
        file_handler.addFilter(trace_filter)
        root_logger.addHandler(file_handler)

    return root_logger


def get_log_file_path() -> Optional[Path]:
    return _log_file_path


def get_logger(name: str) -> logging.Logger:
    """
    Get a logger in the terminal namespace.

    Args:
        name: Logger name (prefixed with 'terminal.' if not already)
    """
    if not name.startswith(ROOT_LOGGER):
        name = f"{ROOT_LOGGER}.{name}"

    return logging.getLogger(name)


def log_execution_end(
    trace_id: str,
    command_id: str,
    success: bool,
    protocol: Optional[str] = None,
    elapsed_ms: float = 0.0,
    error: Optional[str] = None,
) -> None:
    """
    Log the end of a command execution with summary information.

    This is the EXEC_END boundary event for post-mortems.
    """
    logger = get_logger("executor.trace")

    extra = {
        "trace_id": trace_id,
        "command_id": command_id,
        "protocol": protocol,
        "success": success,
        "elapsed_ms": round(elapsed_ms, 2),
    }

    target = f"{protocol}:{command_id}" if protocol else command_id

    if success:
        logger.info(
            f"EXEC_END: {target} success=True ({elapsed_ms:.1f}ms)",
            extra=extra,
        )
    else:
        extra["error"] = error or "Unknown error"
        logger.error(
            f"EXEC_END: {target} success=False, error={error or 'Unknown'}",
            extra=extra,
        )

# Infrastructure module - Logging and configuration
# No command semantics here

from .logging import (
    get_logger, configure_logging, ExecutionTrace,
    log_execution_end, get_trace_id, generate_trace_id
)

__all__ = [
    # Logging
    "get_logger",
    "configure_logging",
    "ExecutionTrace",
    "log_execution_end",
    "get_trace_id",
    "generate_trace_id",
]

"""
Command Executor
----------------
Runs a resolved command against an execution context.

Rules:
- The action works on a fork of the context, never the original
- Only a successful action's fork becomes the next context
- Raised exceptions and failed results become ACTION_FAILURE
- Every execution appends exactly one history entry
- Every execution is logged under its own trace id
"""

from dataclasses import dataclass
from datetime import datetime, timezone
from typing import Any, Optional
import logging

from infra.logging import ExecutionTrace, log_execution_end

from .context import ExecutionContext, update_execution_context
from .errors import ErrorCategory, TerminalError
from .results import CommandResult
from .types import ResolvedCommand


@dataclass
class ExecutionOutcome:
    """Result of one command execution."""
    result: CommandResult
    context: ExecutionContext
    elapsed_ms: float = 0.0
    trace_id: Optional[str] = None

    @property
    def success(self) -> bool:
        return self.result.success

    def __repr__(self) -> str:
        status = "✓" if self.success else "✗"
        return f"ExecutionOutcome({status} {self.result!r}, {self.elapsed_ms:.1f}ms)"


class CommandExecutor:
    """
    Executes resolved commands.

    The outcome carries the next context; the caller decides whether to
    adopt it (the orchestrator always does).
    """

    def __init__(self):
        self._logger = logging.getLogger("terminal.executor")

    async def execute(
        self,
        resolved: ResolvedCommand,
        args: Any,
        context: ExecutionContext
    ) -> ExecutionOutcome:
        """
        Execute a resolved command.

        Args:
            resolved: Output of exact or fuzzy resolution
            args: Parsed arguments passed to the action
            context: Current context (left untouched)

        Returns:
            ExecutionOutcome with the result and the next context
        """
        command = resolved.command
        protocol = resolved.protocol or command.protocol

        with ExecutionTrace() as trace_id:
            start_time = datetime.now(timezone.utc)
            working = context.fork()

            self._logger.info(
                f"Executing {command.qualified_id} "
                f"(method={resolved.resolution_method.value}, protocol={protocol})"
            )

            try:
                result = await command.run(args, working)
                if not isinstance(result, CommandResult):
                    # Bare values are accepted as success
                    result = CommandResult.ok(result)
            except Exception as e:
                self._logger.exception(f"Command {command.qualified_id} raised: {e}")
                result = CommandResult.fail(e, details={"command": command.id})

            if not result.success and result.error.category != ErrorCategory.ACTION_FAILURE:
                result = CommandResult.fail(TerminalError(
                    category=ErrorCategory.ACTION_FAILURE,
                    message=result.error.message,
                    details=result.error.details,
                    stack_trace=result.error.stack_trace,
                ))

            # A failed action's writes to the fork are discarded
            new_context = update_execution_context(
                working if result.success else context,
                command, args, result, protocol
            )

            elapsed_ms = (datetime.now(timezone.utc) - start_time).total_seconds() * 1000

            log_execution_end(
                trace_id,
                command.id,
                success=result.success,
                protocol=protocol,
                elapsed_ms=elapsed_ms,
                error=None if result.success else result.error.message,
            )

            return ExecutionOutcome(
                result=result,
                context=new_context,
                elapsed_ms=elapsed_ms,
                trace_id=trace_id,
            )

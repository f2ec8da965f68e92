"""
Built-in Commands
-----------------
Core global commands. Always available, whatever protocol is active.

help, protocols, use, history, clear, version
"""

from typing import Any, List, Optional

from core.context import ExecutionContext
from core.results import Cleared, CommandResult, Message, table
from core.types import Command, CommandScope

from .market import market_commands
from .registry import CommandRegistry


TERMINAL_NAME = "The DeFi Terminal"
TERMINAL_VERSION = "0.1.0"

# `use none` clears the active protocol
CLEAR_PROTOCOL_WORDS = ("none", "off", "clear")


def _positional(args: Any) -> List[str]:
    positional = getattr(args, "positional", None)
    if positional is not None:
        return list(positional)
    if isinstance(args, str):
        return args.split()
    return []


def builtin_commands(registry: CommandRegistry) -> List[Command]:
    """Create the core commands bound to a registry."""

    async def help_action(args: Any, context: ExecutionContext) -> CommandResult:
        rows = []
        for command in registry.get_commands_by_scope(CommandScope.CORE):
            rows.append((command.id, ", ".join(command.aliases), "core", command.description))
        for command in registry.get_commands_by_scope(CommandScope.ALIAS):
            rows.append((command.id, ", ".join(command.aliases), "global", command.description))
        for protocol in registry.get_protocols():
            fiber = registry.get_fiber(protocol)
            for command in fiber.visible_commands():
                rows.append((
                    command.id,
                    ", ".join(command.aliases),
                    protocol,
                    command.description,
                ))

        return table(
            ["Command", "Aliases", "Scope", "Description"],
            rows,
            title="Available commands",
        )

    async def protocols_action(args: Any, context: ExecutionContext) -> CommandResult:
        rows = []
        for protocol in registry.get_protocols():
            fiber = registry.get_fiber(protocol)
            marker = "*" if protocol == context.active_protocol else ""
            rows.append((
                f"{protocol}{marker}",
                fiber.name,
                len(fiber.visible_commands()),
                fiber.description,
            ))

        if not rows:
            return CommandResult.ok(Message("No protocols loaded."))

        return table(["ID", "Name", "Commands", "Description"], rows, title="Protocols")

    async def use_action(args: Any, context: ExecutionContext) -> CommandResult:
        words = _positional(args)
        if not words:
            if context.active_protocol:
                return CommandResult.ok(Message(f"Active protocol: {context.active_protocol}"))
            return CommandResult.fail("Protocol ID required. Usage: use <protocol-id>")

        protocol = words[0]
        if protocol.lower() in CLEAR_PROTOCOL_WORDS:
            context.active_protocol = None
            return CommandResult.ok(Message("Active protocol cleared"))

        fiber = registry.get_fiber(protocol)
        if fiber is None:
            available = ", ".join(registry.get_protocols()) or "none"
            return CommandResult.fail(
                f"Protocol '{protocol}' not found. Available protocols: {available}"
            )

        context.active_protocol = protocol
        return CommandResult.ok(Message(f"Active protocol set to: {fiber.name}"))

    async def history_action(args: Any, context: ExecutionContext) -> CommandResult:
        words = _positional(args)
        limit: Optional[int] = None
        if words and words[0].isdigit():
            limit = int(words[0])

        entries = list(enumerate(context.history, start=1))
        if limit is not None:
            entries = entries[-limit:] if limit else []

        if not entries:
            return CommandResult.ok(Message("No commands executed yet."))

        rows = [
            (
                index,
                execution.command_id,
                execution.protocol or "",
                execution.timestamp.strftime("%H:%M:%S"),
                "ok" if execution.success else f"failed: {execution.error.message}",
            )
            for index, execution in entries
        ]
        return table(["#", "Command", "Protocol", "Time", "Status"], rows, title="History")

    async def clear_action(args: Any, context: ExecutionContext) -> CommandResult:
        return CommandResult.ok(Cleared())

    async def version_action(args: Any, context: ExecutionContext) -> CommandResult:
        return CommandResult.ok(Message(
            f"{TERMINAL_NAME} v{TERMINAL_VERSION} (fibered monoid command engine)"
        ))

    return [
        Command(
            id="help",
            scope=CommandScope.CORE,
            action=help_action,
            aliases=("h", "?"),
            description="Display available commands",
        ),
        Command(
            id="protocols",
            scope=CommandScope.CORE,
            action=protocols_action,
            aliases=("ls-protocols", "list-protocols"),
            description="List all available protocols",
        ),
        Command(
            id="use",
            scope=CommandScope.CORE,
            action=use_action,
            aliases=("protocol", "set-protocol"),
            description="Set the active protocol (use none to clear)",
        ),
        Command(
            id="history",
            scope=CommandScope.CORE,
            action=history_action,
            aliases=("hist",),
            description="Show command execution history",
        ),
        Command(
            id="clear",
            scope=CommandScope.CORE,
            action=clear_action,
            aliases=("cls",),
            description="Clear the terminal",
        ),
        Command(
            id="version",
            scope=CommandScope.CORE,
            action=version_action,
            aliases=("v", "ver"),
            description="Show terminal version",
        ),
    ]


def register_builtins(registry: CommandRegistry) -> None:
    """Register the core commands and the bundled aliased-global commands."""
    for command in builtin_commands(registry):
        registry.register_core_command(command)
    for command in market_commands():
        registry.register_aliased_command(command)

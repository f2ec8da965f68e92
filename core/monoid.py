"""
Command Monoid
--------------
Composition and fiber construction for the command space.

Structure:
- Commands form a monoid under composition (f then g)
- Each protocol fiber is a submonoid with its own identity command
- Composition inside a fiber stays in that fiber

Closure is enforced when commands are inserted and asserted again
before a composed command is accepted into a chain.
"""

from dataclasses import dataclass
from typing import Any, Iterable, Optional
import logging

from .context import ExecutionContext
from .errors import ClosureViolationError
from .results import CommandResult
from .types import IDENTITY_ID, Command, CommandScope, ProtocolFiber, ProtocolId


_logger = logging.getLogger("terminal.monoid")


async def _identity_action(args: Any, context: ExecutionContext) -> CommandResult:
    return CommandResult.ok(args)


# Identity for the global scope (cross-protocol chains and core commands)
IDENTITY_COMMAND = Command(
    id=IDENTITY_ID,
    scope=CommandScope.CORE,
    action=_identity_action,
    description="Identity operation (no-op) for global scope",
)


def create_protocol_identity(protocol: ProtocolId, name: str = "") -> Command:
    """
    Identity command of a protocol fiber.

    Returns its input unchanged. The context it receives is the one the
    chain threads through, so the protocol's state survives composition.
    """
    return Command(
        id=IDENTITY_ID,
        scope=CommandScope.PROTOCOL,
        protocol=protocol,
        action=_identity_action,
        description=f"Identity operation for {name or protocol}",
    )


def create_protocol_fiber(
    id: ProtocolId,
    name: str,
    description: str = ""
) -> ProtocolFiber:
    """Create a protocol fiber holding exactly one identity command."""
    fiber = ProtocolFiber(id=id, name=name, description=description)
    fiber.commands[IDENTITY_ID] = create_protocol_identity(id, name)
    return fiber


def add_command_to_fiber(fiber: ProtocolFiber, command: Command) -> None:
    """
    Add a command to a fiber.

    Raises:
        ClosureViolationError: If the command is not protocol-scoped or
            belongs to another protocol
    """
    if command.scope != CommandScope.PROTOCOL:
        raise ClosureViolationError(
            f"Cannot add command '{command.id}' with scope {command.scope.value} "
            f"to protocol fiber '{fiber.id}'",
            details={"command": command.id, "fiber": fiber.id}
        )

    if command.protocol != fiber.id:
        raise ClosureViolationError(
            f"Command protocol ({command.protocol}) does not match "
            f"fiber protocol ({fiber.id})",
            details={"command": command.id, "fiber": fiber.id,
                     "protocol": command.protocol}
        )

    if command.is_identity:
        raise ClosureViolationError(
            f"Fiber '{fiber.id}' already has an identity command",
            details={"fiber": fiber.id}
        )

    fiber.commands[command.id] = command


def compose_commands(f: Command, g: Command) -> Command:
    """
    Compose two commands: run f, then feed its value to g.

    Scope of the result:
    - f and g in the same fiber -> PROTOCOL, same protocol
    - f and g both ALIAS -> ALIAS
    - anything else -> CORE
    """
    scope = CommandScope.CORE
    protocol: Optional[ProtocolId] = None

    if (
        f.scope == CommandScope.PROTOCOL
        and g.scope == CommandScope.PROTOCOL
        and f.protocol == g.protocol
    ):
        scope = CommandScope.PROTOCOL
        protocol = f.protocol
    elif f.scope == CommandScope.ALIAS and g.scope == CommandScope.ALIAS:
        scope = CommandScope.ALIAS

    async def composed_action(args: Any, context: ExecutionContext) -> CommandResult:
        result_f = await f.run(args, context)
        if not result_f.success:
            return result_f
        return await g.run(result_f.value, context)

    return Command(
        id=f"{f.id}_then_{g.id}",
        scope=scope,
        protocol=protocol,
        action=composed_action,
        description=f"{f.description or f.id} then {g.description or g.id}",
    )


def compose_in_fiber(fiber: ProtocolFiber, f: Command, g: Command) -> Command:
    """
    Compose two commands of a fiber and check the result stays in it.

    Uses f's own composition operator when it supplies one.

    Raises:
        ClosureViolationError: If either operand or the composed command
            is not tagged with the fiber id
    """
    for operand in (f, g):
        if operand.scope != CommandScope.PROTOCOL or operand.protocol != fiber.id:
            raise ClosureViolationError(
                f"Command '{operand.id}' is not in fiber '{fiber.id}'",
                details={"command": operand.id, "fiber": fiber.id}
            )

    composed = f.compose(g) if f.compose is not None else compose_commands(f, g)

    if composed.scope != CommandScope.PROTOCOL or composed.protocol != fiber.id:
        _logger.error(
            f"Composition {f.id} then {g.id} left fiber {fiber.id} "
            f"(got protocol={composed.protocol})"
        )
        raise ClosureViolationError(
            f"Composed command '{composed.id}' has protocol "
            f"{composed.protocol}, expected {fiber.id}",
            details={"command": composed.id, "fiber": fiber.id}
        )

    return composed


def chain_commands(
    commands: Iterable[Command],
    fiber: Optional[ProtocolFiber] = None
) -> Command:
    """
    Fold a pipeline of commands into one (quote -> approve -> execute).

    With a fiber, every step is checked for closure and the fiber's
    identity seeds the fold; otherwise the global identity does.
    """
    steps = list(commands)

    if fiber is not None:
        identity = fiber.identity
        if identity is None:
            raise ClosureViolationError(
                f"Fiber '{fiber.id}' has no identity command",
                details={"fiber": fiber.id}
            )
        if not steps:
            return identity
        if len(steps) == 1:
            # Checks membership; the step itself is the chain
            compose_in_fiber(fiber, identity, steps[0])
            return steps[0]

        chained = steps[0]
        for step in steps[1:]:
            chained = compose_in_fiber(fiber, chained, step)
        return chained

    if not steps:
        return IDENTITY_COMMAND

    chained = steps[0]
    for step in steps[1:]:
        chained = compose_commands(chained, step)
    return chained


@dataclass
class ClosureReport:
    """Outcome of a fiber closure check."""
    valid: bool
    reason: str = ""
    composed_command: Optional[Command] = None


@dataclass
class MonoidLawReport:
    """Outcome of a monoid law check."""
    left_identity: bool
    right_identity: bool
    associativity: bool

    @property
    def holds(self) -> bool:
        return self.left_identity and self.right_identity and self.associativity


def verify_fiber_identity(fiber: ProtocolFiber) -> ClosureReport:
    """Check a fiber has exactly one identity command and only its own commands."""
    identities = [c for c in fiber.commands.values() if c.is_identity]
    if len(identities) != 1:
        return ClosureReport(
            valid=False,
            reason=f"Fiber {fiber.id} has {len(identities)} identity commands"
        )

    for key, command in fiber.commands.items():
        if key != command.id:
            return ClosureReport(
                valid=False,
                reason=f"Command '{command.id}' is registered under key '{key}'"
            )
        if command.scope != CommandScope.PROTOCOL or command.protocol != fiber.id:
            return ClosureReport(
                valid=False,
                reason=f"Command '{command.id}' is not in fiber {fiber.id}"
            )

    return ClosureReport(valid=True)


def verify_fiber_closure(fiber: ProtocolFiber, f: Command, g: Command) -> ClosureReport:
    """Check that composing f and g from a fiber yields a command of that fiber."""
    try:
        composed = compose_in_fiber(fiber, f, g)
    except ClosureViolationError as e:
        return ClosureReport(valid=False, reason=str(e))

    return ClosureReport(valid=True, composed_command=composed)


async def verify_monoid_laws(
    f: Command,
    test_input: Any,
    context: ExecutionContext,
    g: Optional[Command] = None,
    h: Optional[Command] = None,
    identity: Optional[Command] = None,
) -> MonoidLawReport:
    """
    Check identity and associativity laws by running the commands.

    Pass a fiber's identity to check the laws inside that fiber.
    """
    e = identity or IDENTITY_COMMAND
    g = g or e
    h = h or e

    direct = await f.run(test_input, context)
    left = await compose_commands(e, f).run(test_input, context)
    right = await compose_commands(f, e).run(test_input, context)

    left_assoc = compose_commands(compose_commands(f, g), h)
    right_assoc = compose_commands(f, compose_commands(g, h))
    left_assoc_result = await left_assoc.run(test_input, context)
    right_assoc_result = await right_assoc.run(test_input, context)

    return MonoidLawReport(
        left_identity=_same_outcome(left, direct),
        right_identity=_same_outcome(right, direct),
        associativity=_same_outcome(left_assoc_result, right_assoc_result),
    )


def _same_outcome(a: CommandResult, b: CommandResult) -> bool:
    if a.success != b.success:
        return False
    if a.success:
        return a.value == b.value
    return a.error.message == b.error.message

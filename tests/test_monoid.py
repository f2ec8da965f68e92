"""
Monoid Tests
------------
Tests for the fibered command monoid.

Tests cover:
- Command construction invariants
- Fiber identity and closure
- Composition scopes and chains
- Identity and associativity laws
"""

import asyncio

import pytest

from conftest import echo_action, make_fiber, protocol_cmd
from core.context import create_execution_context
from core.errors import ClosureViolationError, ErrorCategory
from core.monoid import (
    IDENTITY_COMMAND,
    add_command_to_fiber,
    chain_commands,
    compose_commands,
    compose_in_fiber,
    create_protocol_fiber,
    verify_fiber_closure,
    verify_fiber_identity,
    verify_monoid_laws,
)
from core.results import CommandResult
from core.types import IDENTITY_ID, Command, CommandScope


def value_command(id: str, fn, scope=CommandScope.CORE, protocol=None) -> Command:
    async def action(args, context):
        return CommandResult.ok(fn(args))
    return Command(id=id, scope=scope, protocol=protocol, action=action)


class TestCommandInvariants:
    """Scope and protocol must agree."""

    def test_protocol_command_requires_protocol(self):
        """A protocol-scoped command without a protocol is rejected."""
        with pytest.raises(ValueError):
            Command(id="swap", scope=CommandScope.PROTOCOL, action=echo_action("x"))

    def test_core_command_rejects_protocol(self):
        """Core and alias commands never carry a protocol."""
        with pytest.raises(ValueError):
            Command(id="help", scope=CommandScope.CORE, protocol="uniswap",
                    action=echo_action("x"))
        with pytest.raises(ValueError):
            Command(id="cprice", scope=CommandScope.ALIAS, protocol="uniswap",
                    action=echo_action("x"))

    def test_empty_id_rejected(self):
        with pytest.raises(ValueError):
            Command(id="", scope=CommandScope.CORE, action=echo_action("x"))

    def test_aliases_stored_as_tuple(self):
        command = Command(id="help", scope=CommandScope.CORE,
                          action=echo_action("x"), aliases=["h", "?"])
        assert command.aliases == ("h", "?")
        assert command.tokens() == ("help", "h", "?")

    def test_qualified_id(self):
        assert protocol_cmd("uniswap", "swap").qualified_id == "uniswap:swap"


class TestFiberConstruction:
    """Fiber identity and closure checks."""

    def test_new_fiber_has_only_identity(self):
        """A fresh fiber holds exactly its identity command."""
        fiber = create_protocol_fiber("uniswap", "Uniswap")

        assert list(fiber.commands) == [IDENTITY_ID]
        assert fiber.identity.protocol == "uniswap"
        assert fiber.identity.scope == CommandScope.PROTOCOL
        assert fiber.visible_commands() == []

    def test_add_command(self):
        fiber = create_protocol_fiber("uniswap", "Uniswap")
        add_command_to_fiber(fiber, protocol_cmd("uniswap", "swap", ("s",)))

        assert "swap" in fiber
        assert fiber.find("s").id == "swap"

    def test_add_foreign_command_rejected(self):
        """Commands of another protocol violate closure."""
        fiber = create_protocol_fiber("uniswap", "Uniswap")

        with pytest.raises(ClosureViolationError) as exc:
            add_command_to_fiber(fiber, protocol_cmd("1inch", "swap"))
        assert exc.value.error.category == ErrorCategory.CLOSURE_VIOLATION
        assert not exc.value.error.recoverable

    def test_add_core_command_rejected(self):
        fiber = create_protocol_fiber("uniswap", "Uniswap")
        with pytest.raises(ClosureViolationError):
            add_command_to_fiber(fiber, IDENTITY_COMMAND)

    def test_second_identity_rejected(self):
        fiber = create_protocol_fiber("uniswap", "Uniswap")
        with pytest.raises(ClosureViolationError):
            add_command_to_fiber(fiber, protocol_cmd("uniswap", IDENTITY_ID))

    def test_verify_identity(self):
        fiber = make_fiber("uniswap", ("swap", ()))
        assert verify_fiber_identity(fiber).valid

        del fiber.commands[IDENTITY_ID]
        report = verify_fiber_identity(fiber)
        assert not report.valid
        assert "0 identity" in report.reason


class TestComposition:
    """Composition scopes and closure."""

    def test_same_fiber_stays_in_fiber(self):
        f = protocol_cmd("uniswap", "quote")
        g = protocol_cmd("uniswap", "swap")

        composed = compose_commands(f, g)
        assert composed.scope == CommandScope.PROTOCOL
        assert composed.protocol == "uniswap"

    def test_cross_fiber_falls_back_to_core(self):
        composed = compose_commands(protocol_cmd("uniswap", "quote"),
                                    protocol_cmd("1inch", "swap"))
        assert composed.scope == CommandScope.CORE
        assert composed.protocol is None

    def test_two_aliased_commands_stay_aliased(self):
        f = Command(id="a", scope=CommandScope.ALIAS, action=echo_action("a"))
        g = Command(id="b", scope=CommandScope.ALIAS, action=echo_action("b"))
        assert compose_commands(f, g).scope == CommandScope.ALIAS

    def test_compose_in_fiber_checks_operands(self):
        fiber = make_fiber("uniswap", ("quote", ()), ("swap", ()))
        with pytest.raises(ClosureViolationError):
            compose_in_fiber(fiber, fiber.commands["quote"], protocol_cmd("1inch", "swap"))

    def test_custom_compose_that_escapes_is_rejected(self):
        """A command's own composition operator must stay in the fiber."""
        escaped = protocol_cmd("1inch", "escaped")
        f = Command(
            id="quote", scope=CommandScope.PROTOCOL, protocol="uniswap",
            action=echo_action("q"), compose=lambda g: escaped,
        )
        fiber = make_fiber("uniswap", ("swap", ()))
        add_command_to_fiber(fiber, f)

        report = verify_fiber_closure(fiber, f, fiber.commands["swap"])
        assert not report.valid

    def test_verify_closure_returns_composed(self):
        fiber = make_fiber("uniswap", ("quote", ()), ("swap", ()))
        report = verify_fiber_closure(fiber, fiber.commands["quote"], fiber.commands["swap"])

        assert report.valid
        assert report.composed_command.protocol == "uniswap"

    def test_failure_short_circuits(self):
        """g never runs when f fails."""
        ran = []

        async def failing(args, context):
            return CommandResult.fail("boom")

        async def tracked(args, context):
            ran.append(args)
            return CommandResult.ok(args)

        f = Command(id="f", scope=CommandScope.CORE, action=failing)
        g = Command(id="g", scope=CommandScope.CORE, action=tracked)

        result = asyncio.run(compose_commands(f, g).run(1, create_execution_context()))
        assert not result.success
        assert result.error.message == "boom"
        assert ran == []


class TestChains:
    """Pipelines folded into one command."""

    def test_empty_chain_is_identity(self):
        assert chain_commands([]) is IDENTITY_COMMAND

    def test_empty_fiber_chain_is_fiber_identity(self):
        fiber = make_fiber("uniswap", ("swap", ()))
        assert chain_commands([], fiber) is fiber.identity

    def test_single_step_is_step(self):
        fiber = make_fiber("uniswap", ("swap", ()))
        assert chain_commands([fiber.commands["swap"]], fiber) is fiber.commands["swap"]

    def test_chain_threads_values(self):
        add_one = value_command("inc", lambda x: x + 1)
        double = value_command("dbl", lambda x: x * 2)

        chained = chain_commands([add_one, double, add_one])
        result = asyncio.run(chained.run(3, create_execution_context()))

        assert result.value == 9

    def test_fiber_chain_stays_in_fiber(self):
        fiber = make_fiber("uniswap", ("quote", ()), ("approve", ()), ("swap", ()))
        chained = chain_commands(
            [fiber.commands["quote"], fiber.commands["approve"], fiber.commands["swap"]],
            fiber,
        )
        assert chained.protocol == "uniswap"

    def test_fiber_chain_rejects_foreign_step(self):
        fiber = make_fiber("uniswap", ("quote", ()))
        with pytest.raises(ClosureViolationError):
            chain_commands([fiber.commands["quote"], protocol_cmd("1inch", "swap")], fiber)


class TestMonoidLaws:
    """Identity and associativity, checked by execution."""

    def test_laws_hold_globally(self):
        f = value_command("inc", lambda x: x + 1)
        g = value_command("dbl", lambda x: x * 2)
        h = value_command("neg", lambda x: -x)

        report = asyncio.run(verify_monoid_laws(f, 5, create_execution_context(), g, h))
        assert report.holds

    def test_laws_hold_in_fiber(self):
        fiber = create_protocol_fiber("uniswap", "Uniswap")
        f = value_command("inc", lambda x: x + 1, CommandScope.PROTOCOL, "uniswap")

        report = asyncio.run(verify_monoid_laws(
            f, 1, create_execution_context(), identity=fiber.identity
        ))
        assert report.left_identity
        assert report.right_identity
        assert report.associativity

    def test_identity_returns_input(self):
        result = asyncio.run(IDENTITY_COMMAND.run({"a": 1}, create_execution_context()))
        assert result.success
        assert result.value == {"a": 1}

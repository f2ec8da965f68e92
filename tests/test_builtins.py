"""
Built-in Command Tests
----------------------
Tests for the core commands and the aliased-global market commands.
"""

import asyncio

import pytest

from conftest import make_fiber
from commands.builtins import TERMINAL_VERSION, builtin_commands, register_builtins
from commands.market import CPRICE_COMMAND, format_large, format_price
from commands.parser import parse_command_line
from commands.registry import CommandRegistry
from core.context import create_execution_context
from core.executor import CommandExecutor
from core.results import Cleared, Message, Table
from core.types import CommandScope, ResolutionMethod, ResolvedCommand


@pytest.fixture
def terminal_registry():
    registry = CommandRegistry()
    register_builtins(registry)
    registry.register_fiber(make_fiber("uniswap", ("swap", ("s",))))
    return registry


def run_builtin(registry, line, context=None):
    """Parse, resolve against the core partition and execute."""
    parsed = parse_command_line(line)
    commands = {c.id: c for c in builtin_commands(registry)}
    resolved = ResolvedCommand(
        command=commands[parsed.token],
        resolution_method=ResolutionMethod.EXACT,
    )
    return asyncio.run(CommandExecutor().execute(
        resolved, parsed.args, context or create_execution_context()
    ))


class TestRegistration:
    def test_core_and_aliased_partitions(self, terminal_registry):
        core = {c.id for c in terminal_registry.get_commands_by_scope(CommandScope.CORE)}
        aliased = {c.id for c in terminal_registry.get_commands_by_scope(CommandScope.ALIAS)}

        assert core == {"help", "protocols", "use", "history", "clear", "version"}
        assert aliased == {"cprice"}
        assert CPRICE_COMMAND.scope == CommandScope.ALIAS


class TestCoreCommands:
    """Output variants of the built-ins."""

    def test_help_lists_every_scope(self, terminal_registry):
        outcome = run_builtin(terminal_registry, "help")
        value = outcome.result.value

        assert isinstance(value, Table)
        scopes = {row[2] for row in value.rows}
        assert scopes == {"core", "global", "uniswap"}
        assert all(row[0] != "identity" for row in value.rows)

    def test_protocols(self, terminal_registry):
        context = create_execution_context().with_active_protocol("uniswap")
        value = run_builtin(terminal_registry, "protocols", context).result.value

        assert isinstance(value, Table)
        assert value.rows[0][0] == "uniswap*"
        assert value.rows[0][2] == 1

    def test_protocols_empty(self):
        registry = CommandRegistry()
        value = run_builtin(registry, "protocols").result.value
        assert value == Message("No protocols loaded.")

    def test_use_sets_active_protocol(self, terminal_registry):
        outcome = run_builtin(terminal_registry, "use uniswap")

        assert outcome.success
        assert outcome.context.active_protocol == "uniswap"

    def test_use_unknown_protocol(self, terminal_registry):
        outcome = run_builtin(terminal_registry, "use aave")

        assert not outcome.success
        assert "Available protocols: uniswap" in outcome.result.error.message
        assert outcome.context.active_protocol is None

    def test_use_none_clears(self, terminal_registry):
        context = create_execution_context().with_active_protocol("uniswap")
        outcome = run_builtin(terminal_registry, "use none", context)

        assert outcome.context.active_protocol is None

    def test_use_without_args(self, terminal_registry):
        assert not run_builtin(terminal_registry, "use").success

        context = create_execution_context().with_active_protocol("uniswap")
        value = run_builtin(terminal_registry, "use", context).result.value
        assert value == Message("Active protocol: uniswap")

    def test_history(self, terminal_registry):
        first = run_builtin(terminal_registry, "version")
        second = run_builtin(terminal_registry, "use aave", first.context)
        value = run_builtin(terminal_registry, "history", second.context).result.value

        assert isinstance(value, Table)
        assert [row[1] for row in value.rows] == ["version", "use"]
        assert value.rows[1][4].startswith("failed")

    def test_history_limit(self, terminal_registry):
        context = run_builtin(terminal_registry, "version").context
        context = run_builtin(terminal_registry, "clear", context).context

        value = run_builtin(terminal_registry, "history 1", context).result.value
        assert [row[1] for row in value.rows] == ["clear"]

    def test_history_empty(self, terminal_registry):
        value = run_builtin(terminal_registry, "history").result.value
        assert value == Message("No commands executed yet.")

    def test_clear(self, terminal_registry):
        assert run_builtin(terminal_registry, "clear").result.value == Cleared()

    def test_version(self, terminal_registry):
        value = run_builtin(terminal_registry, "version").result.value
        assert TERMINAL_VERSION in value.text


class TestMarketCommands:
    """cprice through the symbol and network collaborators."""

    def run_cprice(self, line, context):
        parsed = parse_command_line(line)
        resolved = ResolvedCommand(
            command=CPRICE_COMMAND,
            resolution_method=ResolutionMethod.ALIAS,
        )
        return asyncio.run(CommandExecutor().execute(resolved, parsed.args, context))

    def test_price_message(self, network, service_context):
        network.respond("coinpaprika", "ticker/btc-bitcoin", {
            "name": "Bitcoin",
            "symbol": "BTC",
            "rank": 1,
            "quotes": {"USD": {
                "price": 65000.5,
                "percent_change_24h": -1.25,
                "market_cap": 1.28e12,
                "volume_24h": 3.2e10,
            }},
        })

        outcome = self.run_cprice("cprice btc", service_context)
        text = outcome.result.value.text

        assert "Bitcoin (BTC)" in text
        assert "$65,000.50" in text
        assert "-1.25%" in text
        assert "$1.28T (Rank #1)" in text
        assert network.calls[0][:2] == ("coinpaprika", "ticker/btc-bitcoin")

    def test_unknown_symbol(self, service_context):
        outcome = self.run_cprice("cprice doge", service_context)
        assert outcome.result.error.message == "Coin 'DOGE' not found"

    def test_usage(self, service_context):
        assert "Usage" in self.run_cprice("cprice", service_context).result.error.message

    def test_without_collaborators(self):
        outcome = self.run_cprice("cprice btc", create_execution_context())
        assert not outcome.success

    def test_upstream_error(self, service_context):
        outcome = self.run_cprice("cprice btc", service_context)
        assert "Failed to fetch price" in outcome.result.error.message

    @pytest.mark.parametrize("value,expected", [
        (1.5e12, "$1.50T"),
        (2.25e9, "$2.25B"),
        (3e6, "$3.00M"),
        (4500, "$4.50K"),
        (12.3, "$12.30"),
    ])
    def test_format_large(self, value, expected):
        assert format_large(value) == expected

    @pytest.mark.parametrize("value,expected", [
        (1234.5, "$1,234.50"),
        (0.5, "$0.5000"),
        (0.00123, "$0.001230"),
    ])
    def test_format_price(self, value, expected):
        assert format_price(value) == expected

"""
Terminal Test Configuration
---------------------------
Shared fixtures and configuration for all tests.

Tests never touch the network: collaborators are in-memory fakes and the
HTTP client runs on httpx.MockTransport.
"""

import sys
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Dict, List, Optional, Tuple

import pytest

# Add project root to path
PROJECT_ROOT = Path(__file__).parent.parent
sys.path.insert(0, str(PROJECT_ROOT))

from api.client import APIResponse, APIStatus
from commands.registry import CommandRegistry
from core.context import ExecutionContext, Services, WalletState, create_execution_context
from core.monoid import add_command_to_fiber, create_protocol_fiber
from core.results import CommandResult, Message
from core.types import Command, CommandScope, ProtocolFiber


# =============================================================================
# Command builders
# =============================================================================

def echo_action(label: str):
    """Action returning a Message naming the command that ran."""
    async def action(args: Any, context: ExecutionContext) -> CommandResult:
        return CommandResult.ok(Message(label))
    return action


def core_command(id: str, aliases: Tuple[str, ...] = ()) -> Command:
    return Command(
        id=id,
        scope=CommandScope.CORE,
        action=echo_action(id),
        aliases=aliases,
        description=f"core {id}",
    )


def aliased_command(id: str, aliases: Tuple[str, ...] = ()) -> Command:
    return Command(
        id=id,
        scope=CommandScope.ALIAS,
        action=echo_action(id),
        aliases=aliases,
        description=f"global {id}",
    )


def protocol_cmd(protocol: str, id: str, aliases: Tuple[str, ...] = ()) -> Command:
    return Command(
        id=id,
        scope=CommandScope.PROTOCOL,
        protocol=protocol,
        action=echo_action(f"{protocol}:{id}"),
        aliases=aliases,
        description=f"{protocol} {id}",
    )


def make_fiber(protocol: str, *commands: Tuple[str, Tuple[str, ...]]) -> ProtocolFiber:
    """Fiber with the given (id, aliases) commands."""
    fiber = create_protocol_fiber(protocol, protocol.title())
    for command_id, aliases in commands:
        add_command_to_fiber(fiber, protocol_cmd(protocol, command_id, aliases))
    return fiber


# =============================================================================
# Collaborator fakes
# =============================================================================

@dataclass
class FakeNetwork:
    """NetworkCapability returning canned responses keyed by (protocol, action)."""
    responses: Dict[Tuple[str, str], APIResponse] = field(default_factory=dict)
    calls: List[Tuple[str, str, Optional[Dict], str]] = field(default_factory=list)

    def respond(self, protocol: str, action: str, data: Any = None,
                status: APIStatus = APIStatus.SUCCESS, error: Optional[str] = None) -> None:
        self.responses[(protocol, action)] = APIResponse(
            status=status, data=data, error=error,
            status_code=200 if status == APIStatus.SUCCESS else 500,
        )

    async def call(self, protocol: str, action: str,
                   params: Optional[Dict[str, Any]] = None, method: str = "POST") -> APIResponse:
        self.calls.append((protocol, action, params, method))
        return self.responses.get(
            (protocol, action),
            APIResponse(status=APIStatus.NOT_FOUND, error="Resource not found", status_code=404),
        )


@dataclass
class FakeSymbols:
    mapping: Dict[str, str] = field(default_factory=dict)

    async def resolve(self, symbol: str, chain_id: Optional[int] = None) -> Optional[str]:
        return self.mapping.get(symbol.lower())


# =============================================================================
# Fixtures
# =============================================================================

@pytest.fixture
def registry() -> CommandRegistry:
    """
    Registry used by the resolution tests:
    - core: help (h, ?)
    - aliased: cprice (coinprice)
    - 1inch: swap (s), price (p)
    - uniswap: swap (s), quote (q)
    """
    reg = CommandRegistry()
    reg.register_core_command(core_command("help", ("h", "?")))
    reg.register_aliased_command(aliased_command("cprice", ("coinprice",)))
    reg.register_fiber(make_fiber("1inch", ("swap", ("s",)), ("price", ("p",))))
    reg.register_fiber(make_fiber("uniswap", ("swap", ("s",)), ("quote", ("q",))))
    return reg


@pytest.fixture
def context() -> ExecutionContext:
    return create_execution_context()


@pytest.fixture
def network() -> FakeNetwork:
    return FakeNetwork()


@pytest.fixture
def symbols() -> FakeSymbols:
    return FakeSymbols({"btc": "btc-bitcoin"})


@pytest.fixture
def wallet() -> WalletState:
    return WalletState(
        address="0x1111111111111111111111111111111111111111",
        chain_id=1,
        is_connected=True,
    )


@pytest.fixture
def service_context(network, symbols, wallet) -> ExecutionContext:
    """Context with a connected wallet and fake collaborators."""
    return create_execution_context(
        wallet=wallet,
        services=Services(network=network, symbols=symbols),
    )

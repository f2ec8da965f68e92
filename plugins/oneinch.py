"""
1inch Plugin
------------
DEX aggregator integration: token prices, gas prices and swaps.

Swaps return an unsigned TransactionRequest; signing is left to the
wallet collaborator. The last quote is kept in the protocol state.
"""

from typing import Any

from core.context import ExecutionContext
from core.results import CommandResult, Message, TransactionRequest, table
from core.types import ProtocolFiber

from .base import Plugin, PluginConfig, PluginMetadata, build_fiber, protocol_command
from .helpers import DEFAULT_CHAIN_ID, parse_swap_args, positional, resolve_token_address


PROTOCOL = "1inch"

DEFAULT_SLIPPAGE = 1.0  # percent

SUPPORTED_CHAINS = [1, 10, 137, 42161, 8453, 56, 43114]


def _network_unavailable() -> CommandResult:
    return CommandResult.fail("Network access is not available in this session")


async def price_action(args: Any, context: ExecutionContext) -> CommandResult:
    words = positional(args)
    if not words:
        return CommandResult.fail("Usage: price <token>\nExample: price eth")

    network = context.services.network
    if network is None:
        return _network_unavailable()

    token = words[0]
    chain_id = context.wallet.chain_id or DEFAULT_CHAIN_ID
    address = resolve_token_address(token, chain_id)
    if address is None:
        return CommandResult.fail(f"Unknown token '{token}' on chain {chain_id}")

    response = await network.call(
        PROTOCOL, "prices/price_by_token",
        {"chainId": chain_id, "token": address},
        method="GET",
    )
    if not response.success:
        return CommandResult.fail(response.error or "Failed to get price")

    price = (response.data or {}).get("price")
    return CommandResult.ok(Message(f"{token.upper()}: ${price} (chain {chain_id})"))


async def gas_action(args: Any, context: ExecutionContext) -> CommandResult:
    network = context.services.network
    if network is None:
        return _network_unavailable()

    chain_id = context.wallet.chain_id or DEFAULT_CHAIN_ID
    response = await network.call(PROTOCOL, "gas", {"chainId": chain_id}, method="GET")
    if not response.success:
        return CommandResult.fail(response.error or "Failed to get gas prices")

    data = response.data or {}
    rows = [
        (speed, data.get(speed, "-"))
        for speed in ("baseFee", "low", "medium", "high", "instant")
    ]
    return table(["Speed", "Gas price"], rows, title=f"Gas prices (chain {chain_id})")


async def swap_action(args: Any, context: ExecutionContext) -> CommandResult:
    wallet = context.wallet
    if not wallet.is_connected or not wallet.address:
        return CommandResult.fail("Wallet not connected. Please connect your wallet first.")

    try:
        swap = parse_swap_args(args, DEFAULT_SLIPPAGE)
    except ValueError as e:
        return CommandResult.fail(str(e))

    network = context.services.network
    if network is None:
        return _network_unavailable()

    chain_id = wallet.chain_id or DEFAULT_CHAIN_ID
    src = resolve_token_address(swap.from_token, chain_id)
    dst = resolve_token_address(swap.to_token, chain_id)
    if src is None or dst is None:
        unknown = swap.from_token if src is None else swap.to_token
        return CommandResult.fail(f"Unknown token '{unknown}' on chain {chain_id}")

    params = {
        "chainId": chain_id,
        "src": src,
        "dst": dst,
        "amount": swap.amount,
        "slippage": swap.slippage,
    }

    quote = await network.call(PROTOCOL, "swap/classic/quote", params, method="GET")
    if not quote.success:
        return CommandResult.fail(quote.error or "Failed to get swap quote")

    built = await network.call(
        PROTOCOL, "swap/classic/swap",
        dict(params, **{"from": wallet.address}),
        method="GET",
    )
    if not built.success:
        return CommandResult.fail(built.error or "Failed to build swap transaction")

    tx = (built.data or {}).get("tx", built.data or {})
    if not tx.get("to"):
        return CommandResult.fail("Swap response did not include a transaction")

    context.get_protocol_state(PROTOCOL)["last_quote"] = {
        "from": swap.from_token,
        "to": swap.to_token,
        "amount_in": swap.amount,
        "amount_out": (quote.data or {}).get("dstAmount"),
        "slippage": swap.slippage,
        "chain_id": chain_id,
    }

    return CommandResult.ok(TransactionRequest(
        to=tx["to"],
        data=tx.get("data", "0x"),
        value=int(tx.get("value", 0) or 0),
        chain_id=chain_id,
        protocol=PROTOCOL,
        description=(
            f"Swap {swap.amount} {swap.from_token.upper()} -> "
            f"{swap.to_token.upper()} via 1inch"
        ),
        metadata={
            "amount_out": (quote.data or {}).get("dstAmount"),
            "gas": (quote.data or {}).get("gas"),
            "slippage": swap.slippage,
        },
    ))


class OneInchPlugin(Plugin):
    """1inch aggregator plugin."""

    metadata = PluginMetadata(
        id=PROTOCOL,
        name="1inch Aggregator",
        version="1.0.0",
        description="DEX aggregator with best swap rates across multiple protocols",
        homepage="https://1inch.io",
        tags=("dex", "aggregator", "swap"),
    )

    @property
    def default_config(self) -> PluginConfig:
        return PluginConfig(config={"supported_chains": list(SUPPORTED_CHAINS)})

    async def initialize(self, context: ExecutionContext) -> ProtocolFiber:
        return build_fiber(self.metadata, [
            protocol_command(PROTOCOL, "price", price_action, ("p",),
                             "Get token price from 1inch"),
            protocol_command(PROTOCOL, "gas", gas_action, ("g",),
                             "Get current gas prices from 1inch"),
            protocol_command(PROTOCOL, "swap", swap_action, ("s",),
                             "Swap tokens using 1inch aggregator"),
        ])

    def validate_config(self, config: PluginConfig) -> bool:
        chains = config.config.get("supported_chains", SUPPORTED_CHAINS)
        return isinstance(chains, list) and all(isinstance(c, int) for c in chains)

    async def health_check(self, context: ExecutionContext) -> bool:
        network = context.services.network
        if network is None:
            return False
        response = await network.call(
            PROTOCOL, "gas", {"chainId": DEFAULT_CHAIN_ID}, method="GET"
        )
        return response.success

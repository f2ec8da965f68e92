"""
Uniswap Plugin
--------------
Uniswap integration: quotes and swaps through the proxy's uniswap routes.
"""

from typing import Any

from core.context import ExecutionContext
from core.results import CommandResult, Message, TransactionRequest
from core.types import ProtocolFiber

from .base import Plugin, PluginMetadata, build_fiber, protocol_command
from .helpers import DEFAULT_CHAIN_ID, SwapArgs, parse_swap_args


PROTOCOL = "uniswap"

DEFAULT_SLIPPAGE = 0.5  # percent


async def _fetch_quote(swap: SwapArgs, chain_id: int, context: ExecutionContext):
    return await context.services.network.call(
        PROTOCOL, "quote",
        {
            "src": swap.from_token,
            "dst": swap.to_token,
            "amount": swap.amount,
            "slippage": swap.slippage,
            "chainId": chain_id,
        },
        method="GET",
    )


async def quote_action(args: Any, context: ExecutionContext) -> CommandResult:
    try:
        swap = parse_swap_args(args, DEFAULT_SLIPPAGE)
    except ValueError as e:
        return CommandResult.fail(str(e).replace("swap", "quote", 1))

    if context.services.network is None:
        return CommandResult.fail("Network access is not available in this session")

    chain_id = context.wallet.chain_id or DEFAULT_CHAIN_ID
    response = await _fetch_quote(swap, chain_id, context)
    if not response.success:
        return CommandResult.fail(response.error or "Failed to get quote")

    data = response.data or {}
    amount_out = data.get("dstAmountFormatted", data.get("dstAmount", "?"))
    lines = [
        f"{swap.amount} {swap.from_token.upper()} -> {amount_out} {swap.to_token.upper()}",
        f"  Route: {data.get('route', 'single-hop')}",
        f"  Price impact: {data.get('priceImpact', '-')}",
        f"  Slippage: {swap.slippage}%",
    ]

    context.get_protocol_state(PROTOCOL)["last_quote"] = dict(data, chain_id=chain_id)
    return CommandResult.ok(Message("\n".join(lines)))


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
        return CommandResult.fail("Network access is not available in this session")

    chain_id = wallet.chain_id or DEFAULT_CHAIN_ID
    quote = await _fetch_quote(swap, chain_id, context)
    if not quote.success:
        return CommandResult.fail(quote.error or "Failed to get quote")

    built = await network.call(
        PROTOCOL, "swap",
        {
            "src": swap.from_token,
            "dst": swap.to_token,
            "amount": swap.amount,
            "slippage": swap.slippage,
            "chainId": chain_id,
            "recipient": wallet.address,
        },
    )
    if not built.success:
        return CommandResult.fail(built.error or "Failed to build swap transaction")

    tx = built.data or {}
    if not tx.get("to"):
        return CommandResult.fail("Swap response did not include a transaction")

    quote_data = quote.data or {}
    context.get_protocol_state(PROTOCOL)["last_quote"] = dict(quote_data, chain_id=chain_id)

    return CommandResult.ok(TransactionRequest(
        to=tx["to"],
        data=tx.get("data", "0x"),
        value=int(tx.get("value", 0) or 0),
        chain_id=chain_id,
        protocol=PROTOCOL,
        description=(
            f"Swap {swap.amount} {swap.from_token.upper()} -> "
            f"{swap.to_token.upper()} on Uniswap"
        ),
        metadata={
            "min_amount_out": quote_data.get("minAmountOut"),
            "route": quote_data.get("route"),
            "slippage": swap.slippage,
        },
    ))


class UniswapPlugin(Plugin):
    """Uniswap plugin."""

    metadata = PluginMetadata(
        id=PROTOCOL,
        name="Uniswap",
        version="1.0.0",
        description="Decentralized exchange with concentrated liquidity",
        homepage="https://uniswap.org",
        tags=("dex", "swap"),
    )

    async def initialize(self, context: ExecutionContext) -> ProtocolFiber:
        return build_fiber(self.metadata, [
            protocol_command(PROTOCOL, "swap", swap_action, ("s",),
                             "Swap tokens on Uniswap"),
            protocol_command(PROTOCOL, "quote", quote_action, ("q",),
                             "Get a swap quote from Uniswap"),
        ])

"""
Market Data Commands
--------------------
Aliased-global commands backed by market data collaborators.

cprice works the same whatever protocol is active: the symbol is
resolved to a coin id via the `symbols` collaborator, then the ticker
is fetched through the `network` collaborator.
"""

from typing import Any

from core.context import ExecutionContext
from core.results import CommandResult, Message
from core.types import Command, CommandScope


def format_large(value: float) -> str:
    """$1.23T / $4.56B / $7.89M / $1.00K / $12.34"""
    for threshold, suffix in ((1e12, "T"), (1e9, "B"), (1e6, "M"), (1e3, "K")):
        if value >= threshold:
            return f"${value / threshold:.2f}{suffix}"
    return f"${value:.2f}"


def format_price(price: float) -> str:
    if price >= 1:
        return f"${price:,.2f}"
    if price >= 0.01:
        return f"${price:.4f}"
    if price >= 0.0001:
        return f"${price:.6f}"
    return f"${price:.4e}"


def _first_word(args: Any) -> str:
    positional = getattr(args, "positional", None)
    if positional is not None:
        return positional[0] if positional else ""
    if isinstance(args, str):
        words = args.split()
        return words[0] if words else ""
    return ""


async def cprice_action(args: Any, context: ExecutionContext) -> CommandResult:
    symbol = _first_word(args)
    if not symbol:
        return CommandResult.fail("Usage: cprice <symbol>\nExample: cprice BTC")

    services = context.services
    if services.symbols is None or services.network is None:
        return CommandResult.fail("Market data is not available in this session")

    coin_id = await services.symbols.resolve(symbol)
    if not coin_id:
        return CommandResult.fail(f"Coin '{symbol.upper()}' not found")

    response = await services.network.call("coinpaprika", f"ticker/{coin_id}", method="GET")
    if not response.success:
        return CommandResult.fail(
            f"Failed to fetch price: {response.error}",
            details={"coin_id": coin_id},
        )

    ticker = response.data or {}
    usd = ticker.get("quotes", {}).get("USD", {})
    price = float(usd.get("price", 0.0))
    change = float(usd.get("percent_change_24h", 0.0))
    market_cap = float(usd.get("market_cap", 0.0))
    volume = float(usd.get("volume_24h", 0.0))
    rank = ticker.get("rank", 0)

    sign = "+" if change >= 0 else ""
    rank_text = f" (Rank #{rank})" if rank else ""
    lines = [
        f"{ticker.get('name', coin_id)} ({ticker.get('symbol', symbol.upper())})",
        "",
        f"  Price: {format_price(price)}",
        f"  24h Change: {sign}{change:.2f}%",
        f"  Market Cap: {format_large(market_cap)}{rank_text}",
        f"  Volume (24h): {format_large(volume)}",
    ]
    return CommandResult.ok(Message("\n".join(lines)))


CPRICE_COMMAND = Command(
    id="cprice",
    scope=CommandScope.ALIAS,
    action=cprice_action,
    aliases=("coinprice",),
    description="Get cryptocurrency price (any protocol)",
)


def market_commands():
    """Aliased-global commands shipped with the terminal."""
    return [CPRICE_COMMAND]

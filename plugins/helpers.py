"""
Plugin Helpers
--------------
Token address lookup and argument parsing shared by the bundled plugins.
"""

from dataclasses import dataclass
from typing import Any, List, Optional


NATIVE_TOKEN = "0xEeeeeEeeeEeEeeEeEeEeeEEEeeeeEeeeeeeeEEeE"

DEFAULT_CHAIN_ID = 1

TOKEN_ADDRESSES = {
    # Ethereum
    1: {
        "eth": NATIVE_TOKEN,
        "weth": "0xC02aaA39b223FE8D0A0e5C4F27eAD9083C756Cc2",
        "usdc": "0xA0b86991c6218b36c1d19D4a2e9Eb0cE3606eB48",
        "usdt": "0xdAC17F958D2ee523a2206206994597C13D831ec7",
        "dai": "0x6B175474E89094C44Da98b954EedeAC495271d0F",
        "wbtc": "0x2260FAC5E5542a773Aa44fBCfeDf7C193bc2C599",
    },
    # Optimism
    10: {
        "eth": NATIVE_TOKEN,
        "weth": "0x4200000000000000000000000000000000000006",
        "usdc": "0x0b2C639c533813f4Aa9D7837CAf62653d097Ff85",
        "usdt": "0x94b008aA00579c1307B0EF2c499aD98a8ce58e58",
        "dai": "0xDA10009cBd5D07dd0CeCc66161FC93D7c9000da1",
        "op": "0x4200000000000000000000000000000000000042",
    },
    # Base
    8453: {
        "eth": NATIVE_TOKEN,
        "weth": "0x4200000000000000000000000000000000000006",
        "usdc": "0x833589fCD6eDb6E08f4c7C32D4f71b54bdA02913",
        "dai": "0x50c5725949A6F0c72E6C4a641F24049A917DB0Cb",
    },
    # Arbitrum
    42161: {
        "eth": NATIVE_TOKEN,
        "weth": "0x82aF49447D8a07e3bd95BD0d56f35241523fBab1",
        "usdc": "0xaf88d065e77c8cC2239327C5EDb3A432268e5831",
        "usdt": "0xFd086bC7CD5C481DCC9C85ebE478A1C0b69FCbb9",
        "dai": "0xDA10009cBd5D07dd0CeCc66161FC93D7c9000da1",
        "arb": "0x912CE59144191C1204E64559FE8253a0e49E6548",
    },
}


def is_address(value: str) -> bool:
    return value.startswith("0x") and len(value) == 42


def resolve_token_address(symbol: str, chain_id: Optional[int] = None) -> Optional[str]:
    """Token symbol -> contract address on a chain. Addresses pass through."""
    if is_address(symbol):
        return symbol
    tokens = TOKEN_ADDRESSES.get(chain_id or DEFAULT_CHAIN_ID, {})
    return tokens.get(symbol.lower())


def positional(args: Any) -> List[str]:
    """Positional words from CommandArgs or a raw string."""
    words = getattr(args, "positional", None)
    if words is not None:
        return list(words)
    if isinstance(args, str):
        return [w for w in args.split() if not w.startswith("--")]
    return []


def flag(args: Any, name: str, default: Any = None) -> Any:
    flags = getattr(args, "flags", None) or {}
    return flags.get(name, default)


@dataclass
class SwapArgs:
    """Parsed `<amount> <from> <to> [--slippage pct]`."""
    amount: str
    from_token: str
    to_token: str
    slippage: float


def parse_swap_args(args: Any, default_slippage: float) -> SwapArgs:
    """
    Parse swap/quote arguments.

    Raises:
        ValueError: With a usage message when arguments are missing or bad
    """
    words = positional(args)
    if len(words) < 3:
        raise ValueError(
            "Usage: swap <amount> <fromToken> <toToken> [--slippage <percent>]\n"
            "Example: swap 0.1 eth usdc --slippage 0.5"
        )

    amount, from_token, to_token = words[0], words[1], words[2]

    try:
        if float(amount) <= 0:
            raise ValueError
    except ValueError:
        raise ValueError(f"Invalid amount: {amount}") from None

    raw_slippage = flag(args, "slippage", default_slippage)
    try:
        slippage = float(raw_slippage)
    except (TypeError, ValueError):
        raise ValueError(f"Invalid slippage: {raw_slippage}") from None

    if not 0 < slippage <= 50:
        raise ValueError("Slippage must be between 0 and 50 percent")

    return SwapArgs(amount=amount, from_token=from_token, to_token=to_token, slippage=slippage)

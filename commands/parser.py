"""
Command-Line Parser
-------------------
Splits one line of input into a command token and its arguments.

Accepted forms:
    swap 1 eth usdc
    swap --protocol uniswap 1 eth usdc
    swap --protocol=uniswap --slippage 0.5
    uniswap:swap 1 eth usdc
"""

from dataclasses import dataclass, field
from typing import Dict, List, Optional, Union
import shlex


FlagValue = Union[str, bool]


@dataclass
class CommandArgs:
    """Arguments handed to a command action."""
    raw: str = ""
    positional: List[str] = field(default_factory=list)
    flags: Dict[str, FlagValue] = field(default_factory=dict)
    protocol: Optional[str] = None

    def get(self, index: int, default: Optional[str] = None) -> Optional[str]:
        """Positional argument by index."""
        if 0 <= index < len(self.positional):
            return self.positional[index]
        return default

    def flag(self, name: str, default: Optional[FlagValue] = None) -> Optional[FlagValue]:
        return self.flags.get(name, default)


@dataclass
class ParsedCommand:
    """A parsed command line."""
    token: str
    args: CommandArgs

    @property
    def is_empty(self) -> bool:
        return not self.token

    def __repr__(self) -> str:
        if self.args.protocol:
            return f"ParsedCommand({self.args.protocol}:{self.token}, args={self.args.positional})"
        return f"ParsedCommand({self.token}, args={self.args.positional})"


def _split(text: str) -> List[str]:
    try:
        return shlex.split(text)
    except ValueError:
        # Unbalanced quotes
        return text.split()


def parse_command_line(text: str) -> ParsedCommand:
    """
    Parse one line of input.

    The first word is the command token. `proto:cmd` and `--protocol X`
    set the explicit protocol. `--key value` and `--key=value` become
    flags; a `--key` followed by another flag or nothing is True.
    """
    stripped = text.strip()
    if not stripped:
        return ParsedCommand(token="", args=CommandArgs())

    words = _split(stripped)
    if not words:
        return ParsedCommand(token="", args=CommandArgs())

    head, rest = words[0], words[1:]
    raw = stripped[len(stripped.split(None, 1)[0]):].strip()

    protocol: Optional[str] = None
    token = head
    if ":" in head:
        prefix, _, suffix = head.partition(":")
        if prefix and suffix:
            protocol, token = prefix, suffix

    positional: List[str] = []
    flags: Dict[str, FlagValue] = {}

    i = 0
    while i < len(rest):
        word = rest[i]
        if word.startswith("--") and len(word) > 2:
            name, sep, value = word[2:].partition("=")
            if sep:
                flags[name] = value
            elif i + 1 < len(rest) and not rest[i + 1].startswith("--"):
                flags[name] = rest[i + 1]
                i += 1
            else:
                flags[name] = True
        else:
            positional.append(word)
        i += 1

    explicit = flags.pop("protocol", None)
    if isinstance(explicit, str) and explicit:
        protocol = explicit

    return ParsedCommand(
        token=token,
        args=CommandArgs(
            raw=raw,
            positional=positional,
            flags=flags,
            protocol=protocol,
        ),
    )

# Commands module - Registry, resolution and command-line handling
# Resolution never performs I/O; only command actions do

from .registry import CommandRegistry
from .parser import CommandArgs, ParsedCommand, parse_command_line
from .autocomplete import AutocompleteConfig, AutocompleteEngine, Completion
from .builtins import builtin_commands, register_builtins
from .market import CPRICE_COMMAND

__all__ = [
    "CommandRegistry",
    "CommandArgs", "ParsedCommand", "parse_command_line",
    "AutocompleteConfig", "AutocompleteEngine", "Completion",
    "builtin_commands", "register_builtins", "CPRICE_COMMAND",
]

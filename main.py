#!/usr/bin/env python3
"""
DeFi Terminal
=============

Main entry point for the command terminal.

Usage:
    python main.py                      # Interactive terminal
    python main.py --config my.yaml     # Custom configuration file
    python main.py --base-url URL       # Override the proxy base URL
    python main.py --help               # Show help
"""

import argparse
import asyncio
import logging
import sys
from pathlib import Path
from typing import Optional

# Ensure project root is in path
sys.path.insert(0, str(Path(__file__).parent))

from rich.console import Console
from rich.panel import Panel
from rich.table import Table as RichTable
from rich.text import Text

from api import APIConfig, ProtocolApiClient, ProxySymbolLookup
from commands.builtins import TERMINAL_NAME, TERMINAL_VERSION
from core import Cleared, Message, Services, Table, TransactionRequest, WalletState
from core.orchestrator import CommandOutcome, Orchestrator, OutcomeKind
from infra import configure_logging
from infra.config import load_settings
from memory import CommandLineHistory, PreferenceStore
from plugins import bundled_plugins


# Setup rich console
console = Console()


def print_banner() -> None:
    """Print the terminal banner."""
    banner = Text()
    banner.append(TERMINAL_NAME, style="bold cyan")
    banner.append(f" v{TERMINAL_VERSION}\n\n", style="dim")

    banner.append("Type ", style="dim")
    banner.append("help", style="bold green")
    banner.append(" for commands | ", style="dim")
    banner.append("quit", style="bold red")
    banner.append(" to exit", style="dim")

    console.print(Panel(banner, title="Welcome", border_style="blue"))


def print_status(orchestrator: Orchestrator) -> None:
    """Print current session status."""
    status = orchestrator.get_status()
    active = status["active_protocol"] or "-"
    protocols = ", ".join(status["protocols"]) or "none"

    console.print(f"[dim]Commands: {status['commands']} | "
                  f"Protocols: {protocols} | "
                  f"Active: {active} | "
                  f"Executed: {status['executions']}[/dim]")


def prompt_for(orchestrator: Orchestrator) -> str:
    active = orchestrator.context.active_protocol
    if active:
        return f"\n[bold magenta]{active}[/bold magenta][bold cyan]@defi>[/bold cyan] "
    return "\n[bold cyan]defi>[/bold cyan] "


def render_outcome(outcome: CommandOutcome) -> None:
    """Render one command outcome by payload variant."""
    if outcome.kind == OutcomeKind.EMPTY:
        return

    if outcome.kind == OutcomeKind.NOT_FOUND:
        console.print(f"[red]{outcome.message}[/red]")
        return

    if outcome.kind == OutcomeKind.AMBIGUOUS:
        console.print(f"[yellow]{outcome.message}[/yellow]")
        return

    result = outcome.result
    if not result.success:
        console.print(f"[bold red]Error:[/bold red] {result.error.message}")
        return

    value = result.value
    if isinstance(value, Cleared):
        console.clear()
    elif isinstance(value, Message):
        console.print(value.text)
    elif isinstance(value, Table):
        table = RichTable(title=value.title or None, show_header=True, header_style="bold")
        for column in value.columns:
            table.add_column(str(column))
        for row in value.rows:
            table.add_row(*(str(cell) for cell in row))
        console.print(table)
    elif isinstance(value, TransactionRequest):
        body = Text()
        if value.description:
            body.append(f"{value.description}\n\n", style="bold")
        body.append(f"to:       {value.to}\n")
        body.append(f"value:    {value.value}\n")
        body.append(f"chain:    {value.chain_id}\n")
        body.append(f"data:     {value.data[:66]}{'...' if len(value.data) > 66 else ''}")
        console.print(Panel(
            body,
            title=f"Transaction ({value.protocol or 'unknown'})",
            border_style="green"
        ))
        console.print("[dim]Sign this request with your wallet to broadcast it.[/dim]")
    elif value is not None:
        console.print(repr(value))


def handle_session_command(orchestrator: Orchestrator, text: str) -> bool:
    """
    Terminal-only commands that configure the session.

    Returns:
        True if the line was handled here
    """
    words = text.split()
    head = words[0].lower()

    if head == "status":
        print_status(orchestrator)
        return True

    if head == "wallet" and len(words) >= 2:
        chain_id = int(words[2]) if len(words) >= 3 and words[2].isdigit() else 1
        orchestrator.set_wallet(WalletState(
            address=words[1], chain_id=chain_id, is_connected=True
        ))
        console.print(f"[green]Wallet set: {words[1]} (chain {chain_id})[/green]")
        return True

    if head == "prefer" and len(words) == 3:
        orchestrator.set_preference(words[1], words[2])
        console.print(f"[green]{words[1]} now prefers {words[2]}[/green]")
        return True

    if head == "priority" and len(words) >= 2:
        orchestrator.set_priority(words[1:])
        console.print(f"[green]Protocol priority: {', '.join(words[1:])}[/green]")
        return True

    if head == "complete" and len(words) >= 2:
        completion = orchestrator.complete(" ".join(words[1:]))
        if completion.is_unique:
            console.print(f"[green]{completion.completed}[/green]")
        for suggestion in completion.suggestions:
            console.print(f"  {suggestion.label}  [dim]{suggestion.description}[/dim]")
        return True

    return False


async def run_terminal(orchestrator: Orchestrator) -> None:
    """Read-eval-print loop."""
    print_banner()
    print_status(orchestrator)

    while True:
        try:
            text = console.input(prompt_for(orchestrator)).strip()
        except (KeyboardInterrupt, EOFError):
            break

        if not text:
            continue

        if text.lower() in ("quit", "exit", "q"):
            break

        if handle_session_command(orchestrator, text):
            continue

        outcome = await orchestrator.handle_input(text)
        render_outcome(outcome)


async def run(args: argparse.Namespace) -> int:
    settings = load_settings(args.config)

    configure_logging(
        level=args.log_level or settings.logging.level,
        log_dir=settings.logging.dir,
        console=settings.logging.console or args.verbose,
        file=settings.logging.file,
    )
    logger = logging.getLogger("terminal.main")

    client = ProtocolApiClient(APIConfig(
        base_url=args.base_url or settings.api.base_url,
        timeout_seconds=settings.api.timeout_seconds,
        api_key_env=settings.api.api_key_env,
    ))
    services = Services(network=client, symbols=ProxySymbolLookup(client))

    orchestrator = Orchestrator(
        settings=settings,
        plugins=bundled_plugins(),
        services=services,
        preferences=PreferenceStore(settings.storage.preferences_path),
        history=CommandLineHistory(
            settings.storage.history_path, settings.storage.history_limit
        ),
    )

    try:
        console.print("[dim]Loading protocols...[/dim]")
        results = await orchestrator.start()
        for result in results:
            if not result.success:
                console.print(f"[yellow]Plugin {result.plugin_id} not loaded: "
                              f"{result.error.message}[/yellow]")

        await run_terminal(orchestrator)
    finally:
        console.print("\n[yellow]Shutting down...[/yellow]")
        await orchestrator.shutdown()
        await client.close()
        logger.info("Terminal closed")

    return 0


def main(argv: Optional[list] = None) -> int:
    """Main entry point."""
    parser = argparse.ArgumentParser(
        description="DeFi Terminal - protocol command terminal"
    )
    parser.add_argument(
        "--config", "-c",
        default=None,
        help="Path to configuration file (default: config/terminal.yaml)"
    )
    parser.add_argument(
        "--log-level", "-l",
        default=None,
        choices=["DEBUG", "INFO", "WARNING", "ERROR"],
        help="Logging level"
    )
    parser.add_argument(
        "--verbose", "-v",
        action="store_true",
        help="Also log to the console"
    )
    parser.add_argument(
        "--base-url",
        default=None,
        help="Base URL of the protocol proxy"
    )

    args = parser.parse_args(argv)

    try:
        return asyncio.run(run(args))
    except KeyboardInterrupt:
        console.print("\n[yellow]Interrupted by user[/yellow]")
        return 130
    except Exception as e:
        logging.getLogger("terminal.main").exception("Fatal error")
        console.print(f"[bold red]Error:[/bold red] {e}")
        return 1


if __name__ == "__main__":
    sys.exit(main())

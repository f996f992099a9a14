# chainstream/logger.py
import logging
import sys
from typing import Iterable

from rich.console import Console
from rich.panel import Panel
from rich.table import Table

from .models import NetworkConfig

ROOT_LOGGER = "chainstream"


def setup_console_logger(name: str = ROOT_LOGGER, level: str = "INFO") -> logging.Logger:
    """
    Sets up the standard Python logger for console output.
    Network loggers are children of this one and inherit its handler.
    """
    logger = logging.getLogger(name)
    logger.setLevel(level.upper())

    if not logger.handlers:
        handler = logging.StreamHandler(sys.stdout)
        formatter = logging.Formatter('%(asctime)s | %(levelname)s | %(name)s | %(message)s')
        handler.setFormatter(formatter)
        logger.addHandler(handler)

    # web3 and aiohttp are chatty at INFO
    logging.getLogger("web3").setLevel(logging.WARNING)
    logging.getLogger("aiohttp").setLevel(logging.WARNING)
    return logger


def network_logger(network: str) -> logging.Logger:
    return logging.getLogger(f"{ROOT_LOGGER}.{network}")


def render_banner(networks: Iterable[NetworkConfig], reference: str, threshold_eth: str,
                  executor: str, dry_run: bool, console: Console = None) -> None:
    """Prints the startup summary of what each engine will connect to."""
    console = console or Console()
    table = Table(title="Configured Networks")
    table.add_column("Network", style="cyan")
    table.add_column("Chain ID", justify="right")
    table.add_column("RPC", justify="right")
    table.add_column("Stream", justify="right")
    table.add_column("Submission", style="magenta")

    for net in networks:
        route = "private relay" if net.uses_relay else "direct"
        table.add_row(net.name, str(net.chain_id), str(len(net.rpc_endpoints)),
                      str(len(net.stream_endpoints)), route)

    mode = "[yellow]DRY RUN[/yellow]" if dry_run else "[bold red]LIVE[/bold red]"
    footer = (f"Mode: {mode} | Gate: {threshold_eth} ETH on {reference} | "
              f"Executor: {executor}")
    console.print(table)
    console.print(Panel(footer, style="white on blue"))

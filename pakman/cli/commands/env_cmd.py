"""``pakman env`` and ``pakman version`` — report configuration."""

from __future__ import annotations

import typer
from rich.panel import Panel
from rich.table import Table

from pakman import __version__
from pakman.cli.common import console, layout_of
from pakman.config import config


def env_cmd(ctx: typer.Context) -> None:
    """Show the effective configuration and store paths."""
    layout = layout_of(ctx)

    table = Table(show_header=True, header_style="bold cyan", expand=True)
    table.add_column("Setting", min_width=18)
    table.add_column("Value")

    table.add_row("root", str(layout.root))
    table.add_row("state dir", str(layout.state_dir))
    table.add_row("cache dir", str(layout.cache_dir))
    table.add_row("keyring dir", str(layout.keyring_dir))
    table.add_row("signing id", config.signing_id or "[dim](unset)[/dim]")
    table.add_row("log level", config.log_level)
    table.add_row("download workers", str(config.download_workers))
    table.add_row("download timeout", f"{config.download_timeout:g}s")
    table.add_row("http timeout", f"{config.http_timeout:g}s")
    table.add_row("lock timeout", f"{config.lock_timeout:g}s")

    console.print(Panel(table, title="[bold]pakman environment[/bold]", border_style="cyan"))


def version_cmd() -> None:
    """Print the pakman version."""
    console.print(f"pakman {__version__}")

"""``pakman remote`` — manage the ordered list of package origins."""

from __future__ import annotations

import typer

from pakman.cli.common import console, layout_of, reported
from pakman.config import config
from pakman.db.remotes import add_remotes, load_remotes, remove_remotes

remote_app = typer.Typer(help="Manage package remotes.", no_args_is_help=True)


@remote_app.command(name="add")
def add_cmd(
    ctx: typer.Context,
    uris: list[str] = typer.Argument(..., help="Remote URIs, highest priority first."),
) -> None:
    """Append remotes to the end of the priority list."""
    layout = layout_of(ctx)
    with reported("remote add"):
        layout.ensure_state_dir()
        add_remotes(layout, uris, timeout=config.lock_timeout)
    console.print(f"[green]Added[/green] {len(uris)} remote(s).")


@remote_app.command(name="rm")
def rm_cmd(
    ctx: typer.Context,
    uris: list[str] = typer.Argument(..., help="Remote URIs to drop."),
) -> None:
    """Remove remotes."""
    with reported("remote rm"):
        remaining = remove_remotes(layout_of(ctx), uris, timeout=config.lock_timeout)
    console.print(f"[yellow]Removed[/yellow]; {len(remaining)} remote(s) left.")


@remote_app.command(name="ls")
def ls_cmd(ctx: typer.Context) -> None:
    """List remotes in priority order."""
    with reported("remote ls"):
        remotes = load_remotes(layout_of(ctx))
    for uri in remotes:
        console.print(uri, highlight=False)

"""Package lifecycle commands: ``pull``, ``available``, ``install``,
``remove``, ``ls`` and ``files``."""

from __future__ import annotations

import typer
from rich.table import Table

from pakman.cli.common import console, keyring_of, layout_of, make_fetcher, reported
from pakman.config import config
from pakman.db.available import load_available
from pakman.db.installed import installed_files, load_installed
from pakman.package.installer import Installer
from pakman.package.remover import Remover
from pakman.remote.pull import pull


def pull_cmd(ctx: typer.Context) -> None:
    """Refresh the available database from every configured remote."""
    layout = layout_of(ctx)
    with reported("pull"):
        layout.ensure_state_dir()
        merged = pull(layout, make_fetcher(), lock_timeout=config.lock_timeout)
    console.print(f"[green]Pulled[/green] {len(merged)} package name(s).")


def available_cmd(ctx: typer.Context) -> None:
    """List every package version offered by the remotes."""
    with reported("list available"):
        metas = load_available(layout_of(ctx)).traverse()
    for meta in metas:
        console.print(f"{meta.name}\t{meta.version}\t{meta.remote}", highlight=False)


def install_cmd(
    ctx: typer.Context,
    specifiers: list[str] = typer.Argument(..., help="Packages as NAME or NAME@VERSION."),
) -> None:
    """Download, verify and install packages."""
    layout = layout_of(ctx)
    with reported("install"):
        layout.ensure_state_dir()
        installer = Installer(
            layout, keyring_of(ctx), make_fetcher(), lock_timeout=config.lock_timeout
        )
        metas = installer.install(specifiers)
    for meta in metas:
        console.print(f"[green]installed[/green] {meta.label}", highlight=False)


def remove_cmd(
    ctx: typer.Context,
    names: list[str] = typer.Argument(..., help="Names of installed packages."),
) -> None:
    """Remove installed packages and every file they own."""
    with reported("remove"):
        metas = Remover(layout_of(ctx), lock_timeout=config.lock_timeout).remove(names)
    for meta in metas:
        console.print(f"[yellow]removed[/yellow] {meta.label}", highlight=False)


def ls_cmd(ctx: typer.Context) -> None:
    """List installed packages."""
    with reported("list installed"):
        metas = load_installed(layout_of(ctx)).traverse()
    if not metas:
        console.print("[dim]No packages installed.[/dim]")
        return

    table = Table(title="Installed Packages")
    table.add_column("Name", style="cyan")
    table.add_column("Version", style="green")
    table.add_column("Description")
    table.add_column("Remote", style="dim")
    for meta in metas:
        table.add_row(meta.name, meta.version, meta.description, meta.remote)
    console.print(table)


def files_cmd(
    ctx: typer.Context,
    names: list[str] = typer.Argument(..., help="Names of installed packages."),
) -> None:
    """List the files owned by installed packages."""
    with reported("list files"):
        files = installed_files(layout_of(ctx), names)
    for name in names:
        for path in files[name]:
            console.print(f"{name}\t{path}", highlight=False)

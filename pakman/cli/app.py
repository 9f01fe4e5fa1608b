"""Main Typer application — imports and registers all CLI commands.

Entry point: ``pakman`` (configured via pyproject.toml project.scripts).
"""

from __future__ import annotations

from pathlib import Path

import typer

from pakman.cli.commands.env_cmd import env_cmd, version_cmd
from pakman.cli.commands.keyring import keyring_app
from pakman.cli.commands.lifecycle import (
    available_cmd,
    files_cmd,
    install_cmd,
    ls_cmd,
    pull_cmd,
    remove_cmd,
)
from pakman.cli.commands.package import package_app
from pakman.cli.commands.remote import remote_app
from pakman.cli.common import setup_logging
from pakman.config import config
from pakman.core.store import StoreLayout

app = typer.Typer(
    name="pakman",
    help="pakman: a minimal package manager with signed archives.",
    no_args_is_help=True,
    rich_markup_mode="rich",
    add_completion=False,
)


@app.callback()
def main_callback(
    ctx: typer.Context,
    root: Path = typer.Option(
        None, "--root", "-r", help="Store root (default: PAKMAN_ROOT or /usr/local)."
    ),
    log_level: str = typer.Option(
        None, "--log-level", help="Log level (default: PAKMAN_LOG_LEVEL or INFO)."
    ),
) -> None:
    setup_logging(log_level or config.log_level)
    ctx.obj = StoreLayout(root or config.root)


# Register subcommands
app.command(name="env", help="Show the effective configuration.")(env_cmd)
app.command(name="version", help="Print the pakman version.")(version_cmd)
app.command(name="pull", help="Refresh the available database from the remotes.")(pull_cmd)
app.command(name="available", help="List available packages.")(available_cmd)
app.command(name="install", help="Install packages.")(install_cmd)
app.command(name="remove", help="Remove installed packages.")(remove_cmd)
app.command(name="ls", help="List installed packages.")(ls_cmd)
app.command(name="files", help="List the files of installed packages.")(files_cmd)
app.add_typer(package_app, name="package")
app.add_typer(remote_app, name="remote")
app.add_typer(keyring_app, name="keyring")


def main() -> None:
    """CLI entry point."""
    app()


if __name__ == "__main__":
    main()

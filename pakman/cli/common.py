"""Helpers shared by every CLI command: console, logging, store access."""

from __future__ import annotations

import logging
from collections.abc import Iterator
from contextlib import contextmanager

import typer
from rich.console import Console
from rich.logging import RichHandler

from pakman.config import config
from pakman.core.errors import PakmanError
from pakman.core.store import StoreLayout
from pakman.keyring.keyring import Keyring
from pakman.remote.fetch import Fetcher

console = Console()
err_console = Console(stderr=True)


def setup_logging(level: str) -> None:
    """Route all ``pakman.*`` loggers through a RichHandler on stderr."""
    root = logging.getLogger("pakman")
    root.handlers.clear()
    root.addHandler(
        RichHandler(console=err_console, show_path=False, rich_tracebacks=True)
    )
    try:
        root.setLevel(level.upper())
    except ValueError:
        raise typer.BadParameter(f"unknown log level {level!r}") from None
    root.propagate = False


def layout_of(ctx: typer.Context) -> StoreLayout:
    """The store layout selected by the top-level ``--root`` option."""
    if isinstance(ctx.obj, StoreLayout):
        return ctx.obj
    return StoreLayout(config.root)


def keyring_of(ctx: typer.Context) -> Keyring:
    return Keyring(layout_of(ctx).keyring_dir)


def make_fetcher() -> Fetcher:
    return Fetcher(
        workers=config.download_workers,
        timeout=config.http_timeout,
        deadline=config.download_timeout,
    )


@contextmanager
def reported(action: str) -> Iterator[None]:
    """Print a pakman failure as ``<action>: <message>`` and exit 1."""
    try:
        yield
    except PakmanError as exc:
        err_console.print(f"[red]{action} failed:[/red] {exc}")
        raise typer.Exit(code=1) from exc

"""``pakman package create`` — build a signed package archive."""

from __future__ import annotations

from pathlib import Path

import typer
from rich.panel import Panel

from pakman.cli.common import console, keyring_of, reported
from pakman.config import config
from pakman.core.errors import ValidationError
from pakman.package.builder import build_package

package_app = typer.Typer(help="Build package archives.", no_args_is_help=True)


@package_app.command(name="create")
def create_cmd(
    ctx: typer.Context,
    directory: Path = typer.Argument(..., help="Staging directory to package."),
    key: str = typer.Option(
        "",
        "--key",
        "-k",
        help="Signing identity (email or key id). Defaults to PAKMAN_SIGNING_ID.",
    ),
) -> None:
    """Validate, checksum, sign and archive a staging directory."""
    with reported("package create"):
        identity = key or config.signing_id
        if not identity:
            raise ValidationError("no signing identity: pass --key or set PAKMAN_SIGNING_ID")
        signer = keyring_of(ctx).find_secret_identity(identity)
        out = build_package(directory, signer)

    console.print(
        Panel(
            "\n".join([
                f"[bold]Archive:[/bold]  {out}",
                f"[bold]Signed by:[/bold] {signer.identity.name} <{signer.identity.email}>"
                f" ({signer.identity.short_id})",
            ]),
            title="[bold green]Package built[/bold green]",
            border_style="green",
        )
    )

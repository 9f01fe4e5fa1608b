"""``pakman keyring`` — manage signing keys and trusted public keys."""

from __future__ import annotations

import sys
from pathlib import Path

import typer
from rich.table import Table

from pakman.cli.common import console, keyring_of, reported
from pakman.core.errors import StoreIOError

keyring_app = typer.Typer(help="Manage signing and trusted keys.", no_args_is_help=True)


def _read_text(path: Path | None) -> str:
    try:
        return path.read_text(encoding="utf-8") if path else sys.stdin.read()
    except OSError as exc:
        raise StoreIOError(f"reading {path}: {exc}") from exc


@keyring_app.command(name="create")
def create_cmd(
    ctx: typer.Context,
    name: str = typer.Argument(..., help="Full name of the key owner."),
    email: str = typer.Argument(..., help="Email address of the key owner."),
) -> None:
    """Generate a signing key; its public half is trusted immediately."""
    with reported("keyring create"):
        identity = keyring_of(ctx).create(name, email)
    console.print(f"[green]Created[/green] {identity.key_id} {name} <{email}>", highlight=False)


@keyring_app.command(name="export")
def export_cmd(
    ctx: typer.Context,
    key: str = typer.Argument(..., help="Email or key id."),
) -> None:
    """Print an armored public key."""
    with reported("keyring export"):
        armored = keyring_of(ctx).export(key)
    console.print(armored, end="", highlight=False, markup=False, soft_wrap=True)


@keyring_app.command(name="import")
def import_cmd(
    ctx: typer.Context,
    path: Path = typer.Argument(None, help="Armored key file (stdin if omitted)."),
) -> None:
    """Trust the public keys in an armored file."""
    with reported("keyring import"):
        ids = keyring_of(ctx).import_key(_read_text(path))
    for key_id in ids:
        console.print(f"[green]imported[/green] {key_id}", highlight=False)


@keyring_app.command(name="ls")
def ls_cmd(ctx: typer.Context) -> None:
    """List secret and trusted public keys."""
    with reported("keyring ls"):
        secret, public = keyring_of(ctx).list_keys()

    table = Table(title="Keyring")
    table.add_column("Kind")
    table.add_column("Key ID", style="cyan")
    table.add_column("Name")
    table.add_column("Email", style="green")
    for kind, identities in (("secret", secret), ("public", public)):
        for identity in sorted(identities, key=lambda k: k.key_id):
            table.add_row(kind, identity.key_id, identity.name, identity.email)
    console.print(table)


@keyring_app.command(name="rm")
def rm_cmd(
    ctx: typer.Context,
    key: str = typer.Argument(..., help="Email or key id."),
) -> None:
    """Stop trusting a public key."""
    with reported("keyring rm"):
        identity = keyring_of(ctx).remove(key)
    console.print(f"[yellow]Removed[/yellow] {identity.key_id}", highlight=False)


@keyring_app.command(name="sign")
def sign_cmd(
    ctx: typer.Context,
    path: Path = typer.Argument(..., help="File to sign."),
    key: str = typer.Option(..., "--key", "-k", help="Email or key id."),
) -> None:
    """Write a detached armored signature to ``<path>.asc``."""
    out = path.with_name(path.name + ".asc")
    with reported("keyring sign"):
        signer = keyring_of(ctx).find_secret_identity(key)
        try:
            out.write_text(signer.sign(path.read_bytes()), encoding="utf-8")
        except OSError as exc:
            raise StoreIOError(f"signing {path}: {exc}") from exc
    console.print(f"[green]Wrote[/green] {out}", highlight=False)


@keyring_app.command(name="verify")
def verify_cmd(
    ctx: typer.Context,
    path: Path = typer.Argument(..., help="Signed file."),
    signature: Path = typer.Argument(None, help="Signature file (default <path>.asc)."),
) -> None:
    """Check a detached signature against the trusted keys."""
    sig_path = signature or path.with_name(path.name + ".asc")
    with reported("keyring verify"):
        try:
            data = path.read_bytes()
        except OSError as exc:
            raise StoreIOError(f"reading {path}: {exc}") from exc
        identity = keyring_of(ctx).verify(data, _read_text(sig_path))
    console.print(
        f"[green]Good signature[/green] from {identity.name} <{identity.email}> ({identity.key_id})",
        highlight=False,
    )

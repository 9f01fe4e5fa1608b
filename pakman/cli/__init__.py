"""pakman CLI — Typer-based command-line interface.

Provides the ``pakman`` command with subcommands for pulling remote
snapshots, installing and removing packages, building archives, and
managing remotes and signing keys.

All output uses Rich for formatted terminal display.
"""

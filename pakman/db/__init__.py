"""Local databases: available packages, installed packages, remote origins."""

from pakman.db.available import AvailableDB, load_available, parse_specifier, save_available
from pakman.db.installed import (
    InstalledDB,
    installed_files,
    load_installed,
    read_bom,
    save_installed,
    update_installed,
)
from pakman.db.remotes import add_remotes, load_remotes, normalize_origin, remove_remotes

__all__ = [
    # available
    "AvailableDB",
    "load_available",
    "save_available",
    "parse_specifier",
    # installed
    "InstalledDB",
    "load_installed",
    "save_installed",
    "update_installed",
    "installed_files",
    "read_bom",
    # remotes
    "add_remotes",
    "remove_remotes",
    "load_remotes",
    "normalize_origin",
]

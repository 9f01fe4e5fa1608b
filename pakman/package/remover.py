"""Package remover — delete the files an installed package owns.

Removal of each package:

1. Run ``pre-remove`` from the private install directory.
2. Delete every path in the package's BOM from under the store root.
   Directories are left in place; other packages may share them.
3. Run ``post-remove``.
4. Drop the package from the installed DB and delete its install directory.
"""

from __future__ import annotations

import logging
import shutil
from collections.abc import Iterable
from pathlib import Path

from pakman.core.errors import StoreIOError
from pakman.core.store import StoreLayout
from pakman.db.installed import load_installed, read_bom, update_installed
from pakman.models.meta import Meta
from pakman.package.archive import safe_relpath
from pakman.package.scripts import run_script

logger = logging.getLogger(__name__)


def remove_files(root: Path, paths: Iterable[str]) -> int:
    """Delete each relative path in *paths* from under *root*.

    Missing files are logged and skipped.  Returns the number deleted.
    """
    removed = 0
    for rel in sorted(paths):
        target = root / safe_relpath(rel)
        try:
            target.unlink()
        except FileNotFoundError:
            logger.warning("%s already gone; skipping.", target)
            continue
        except OSError as exc:
            raise StoreIOError(f"removing {target}: {exc}") from exc
        removed += 1
    return removed


class Remover:
    """Removes installed packages from a store root."""

    def __init__(self, layout: StoreLayout, *, lock_timeout: float = 10.0) -> None:
        self._layout = layout
        self._lock_timeout = lock_timeout

    def remove(self, names: Iterable[str]) -> list[Meta]:
        """Remove every package in *names*, in request order.

        Raises
        ------
        NotFoundError
            If any name is not installed.  Nothing is removed.
        """
        metas = load_installed(self._layout).removable(names)
        for meta in metas:
            self.remove_one(meta)
        logger.info("Removed %d package(s).", len(metas))
        return metas

    def remove_one(self, meta: Meta) -> None:
        package_dir = self._layout.package_dir(meta.name)
        root = self._layout.root

        run_script(package_dir, "pre-remove", root)
        count = remove_files(root, read_bom(package_dir))
        logger.info("Deleted %d file(s) of %s.", count, meta.label)
        run_script(package_dir, "post-remove", root)

        with update_installed(self._layout, self._lock_timeout) as db:
            db.remove(meta.name)
        try:
            shutil.rmtree(package_dir)
        except OSError as exc:
            raise StoreIOError(f"removing install dir of {meta.name}: {exc}") from exc

"""Lifecycle script execution (``bin/pre-install``, ``bin/post-remove``, ...)."""

from __future__ import annotations

import logging
import os
import subprocess
from pathlib import Path

from pakman.core.errors import PakmanError, StoreIOError
from pakman.package.archive import BIN_DIR, SCRIPT_NAMES

logger = logging.getLogger(__name__)


class ScriptError(PakmanError):
    """A lifecycle script exited non-zero."""


def run_script(package_dir: Path, name: str, store_root: Path) -> bool:
    """Run ``bin/<name>`` from *package_dir* if present and executable.

    Scripts run with the store root as working directory and
    ``PAKMAN_ROOT`` in their environment; their output goes straight to
    the terminal.  Returns ``True`` if a script ran.

    Raises
    ------
    ScriptError
        If the script exits non-zero.
    """
    if name not in SCRIPT_NAMES:
        raise ValueError(f"unknown lifecycle script {name!r}")

    script = package_dir / BIN_DIR / name
    if not script.is_file():
        return False
    if not os.access(script, os.X_OK):
        logger.warning("Skipping %s: not executable.", script)
        return False

    logger.info("Running %s for %s.", name, package_dir.name)
    env = {**os.environ, "PAKMAN_ROOT": str(store_root)}
    try:
        result = subprocess.run([str(script)], cwd=store_root, env=env, check=False)
    except OSError as exc:
        raise StoreIOError(f"running {name}: {exc}") from exc
    if result.returncode != 0:
        raise ScriptError(f"{name} for {package_dir.name} exited {result.returncode}")
    return True

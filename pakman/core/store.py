"""Store-root layout and whole-file JSON persistence.

Every database (available, installed, remotes) is read fully into memory,
mutated, and written back.  Writes go to a temp file in the same directory
and are committed with ``os.replace`` so readers never observe a partial
file.  Read-modify-write cycles hold an exclusive lock file for the
duration.

Directory layout::

    {root}/var/lib/pakman/
        available.json
        installed.json
        remotes.json
        installed/{name}/        — BOM, meta.yaml and lifecycle scripts
        keyring/                 — secring.json, pubring.json
    {root}/var/cache/pakman/     — downloaded archives
"""

from __future__ import annotations

import json
import logging
import os
import time
from collections.abc import Iterator
from contextlib import contextmanager
from pathlib import Path
from tempfile import NamedTemporaryFile
from typing import Any

from pakman.core.errors import StoreIOError

logger = logging.getLogger(__name__)

_LOCK_POLL_SECONDS = 0.05


class StoreLayout:
    """Resolves every persisted path beneath a store root.

    Parameters
    ----------
    root:
        The store root.  Installed files are materialized directly under it.
    """

    def __init__(self, root: Path) -> None:
        self.root = Path(root)

    @property
    def state_dir(self) -> Path:
        return self.root / "var" / "lib" / "pakman"

    @property
    def available_path(self) -> Path:
        return self.state_dir / "available.json"

    @property
    def installed_path(self) -> Path:
        return self.state_dir / "installed.json"

    @property
    def remotes_path(self) -> Path:
        return self.state_dir / "remotes.json"

    @property
    def installed_dir(self) -> Path:
        return self.state_dir / "installed"

    @property
    def keyring_dir(self) -> Path:
        return self.state_dir / "keyring"

    @property
    def cache_dir(self) -> Path:
        return self.root / "var" / "cache" / "pakman"

    def package_dir(self, name: str) -> Path:
        """Private install directory for the package *name*."""
        return self.installed_dir / name

    def ensure_state_dir(self) -> None:
        """Create the state directory (mode 0700) if it is missing."""
        try:
            self.state_dir.mkdir(mode=0o700, parents=True, exist_ok=True)
        except OSError as exc:
            raise StoreIOError(f"making pakman state directory: {exc}") from exc

    def __repr__(self) -> str:
        return f"StoreLayout(root={str(self.root)!r})"


# ---------------------------------------------------------------------------
# JSON persistence
# ---------------------------------------------------------------------------


def read_json(path: Path, default: Any) -> Any:
    """Load the JSON document at *path*, or return *default* if it is absent."""
    if not path.exists():
        logger.debug("No database at %s — starting empty.", path)
        return default
    try:
        return json.loads(path.read_text(encoding="utf-8"))
    except OSError as exc:
        raise StoreIOError(f"reading {path}: {exc}") from exc
    except json.JSONDecodeError as exc:
        raise StoreIOError(f"decoding {path}: {exc}") from exc


def write_json_atomic(path: Path, data: Any) -> None:
    """Atomically replace *path* with the JSON rendering of *data*."""
    try:
        path.parent.mkdir(parents=True, exist_ok=True)
        tmp = NamedTemporaryFile(
            mode="w",
            encoding="utf-8",
            dir=path.parent,
            prefix=f".{path.name}.",
            delete=False,
        )
    except OSError as exc:
        raise StoreIOError(f"creating temp file for {path}: {exc}") from exc

    try:
        with tmp:
            json.dump(data, tmp, indent="\t", sort_keys=True)
            tmp.write("\n")
        os.replace(tmp.name, path)
    except (OSError, TypeError, ValueError) as exc:
        Path(tmp.name).unlink(missing_ok=True)
        raise StoreIOError(f"writing {path}: {exc}") from exc
    logger.debug("Wrote %s.", path)


@contextmanager
def locked(path: Path, timeout: float = 10.0) -> Iterator[None]:
    """Hold an exclusive lock for the database at *path*.

    The lock is a sibling ``<name>.lock`` file created with ``O_EXCL``.
    Waits up to *timeout* seconds for a concurrent holder to release it.
    """
    lock_path = path.with_name(path.name + ".lock")
    lock_path.parent.mkdir(parents=True, exist_ok=True)
    deadline = time.monotonic() + timeout
    while True:
        try:
            fd = os.open(lock_path, os.O_CREAT | os.O_EXCL | os.O_WRONLY, 0o600)
            break
        except FileExistsError:
            if time.monotonic() >= deadline:
                raise StoreIOError(
                    f"timed out after {timeout:.1f}s waiting for lock {lock_path}"
                ) from None
            time.sleep(_LOCK_POLL_SECONDS)
        except OSError as exc:
            raise StoreIOError(f"acquiring lock {lock_path}: {exc}") from exc

    try:
        os.write(fd, str(os.getpid()).encode("ascii"))
        os.close(fd)
        yield
    finally:
        lock_path.unlink(missing_ok=True)

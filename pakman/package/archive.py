"""The ``.pkg`` archive format.

A package archive is an uncompressed POSIX tar holding::

    root.tar.bz2            — payload overlay, expanded under the store root
    meta.yaml               — {name, version, description}
    bin/{pre,post}-{install,upgrade,remove}   — optional lifecycle scripts
    bom.sha256              — digest of every regular file in root.tar.bz2
    manifest.sha256         — digest of every other member (signed)
    manifest.sha256.asc     — armored detached signature over the manifest

The last three are generated by the builder and never hand-authored.
"""

from __future__ import annotations

import logging
import tarfile
from collections.abc import Iterator
from contextlib import contextmanager
from pathlib import Path, PurePosixPath
from typing import IO

from pakman.core.errors import NotFoundError, StoreIOError, ValidationError

logger = logging.getLogger(__name__)

PAYLOAD = "root.tar.bz2"
META = "meta.yaml"
BIN_DIR = "bin"
BOM = "bom.sha256"
MANIFEST = "manifest.sha256"
SIGNATURE = "manifest.sha256.asc"

SCRIPT_NAMES: frozenset[str] = frozenset(
    f"{when}-{phase}"
    for when in ("pre", "post")
    for phase in ("install", "upgrade", "remove")
)

ALLOWED_MEMBERS: frozenset[str] = frozenset(
    {PAYLOAD, META} | {f"{BIN_DIR}/{s}" for s in SCRIPT_NAMES}
)
REQUIRED_MEMBERS: frozenset[str] = frozenset({PAYLOAD, META})
GENERATED_MEMBERS: frozenset[str] = frozenset({BOM, MANIFEST, SIGNATURE})

# Members that the install-time apply phase skips (they gate it instead)
INTEGRITY_MEMBERS: frozenset[str] = frozenset({MANIFEST, SIGNATURE})


def open_archive(path: Path) -> tarfile.TarFile:
    """Open a package archive for random-access reading."""
    try:
        return tarfile.open(path, "r:")
    except (OSError, tarfile.TarError) as exc:
        raise StoreIOError(f"opening pkg file {path}: {exc}") from exc


@contextmanager
def member_stream(archive: Path, name: str) -> Iterator[IO[bytes]]:
    """Yield a reader over one regular-file member without extracting the rest.

    Raises
    ------
    NotFoundError
        If *name* is not a regular file in the archive.
    """
    with open_archive(archive) as tf:
        try:
            info = tf.getmember(name)
        except KeyError:
            raise NotFoundError(f"{name!r} not found in {archive.name}") from None
        stream = tf.extractfile(info) if info.isfile() else None
        if stream is None:
            raise NotFoundError(f"{name!r} is not a regular file in {archive.name}")
        with stream:
            yield stream


def read_member(archive: Path, name: str) -> bytes:
    """Read a (small) member's bytes in full."""
    with member_stream(archive, name) as stream:
        return stream.read()


@contextmanager
def payload_entries(archive: Path) -> Iterator[Iterator[tuple[tarfile.TarInfo, IO[bytes] | None]]]:
    """Stream-decompress the payload overlay of a package archive.

    Yields an iterator of ``(info, reader)``; ``reader`` is ``None`` for
    anything but regular files and must be consumed before advancing.
    """
    with member_stream(archive, PAYLOAD) as raw:
        yield iter_tar_stream(raw)


def iter_tar_stream(raw: IO[bytes]) -> Iterator[tuple[tarfile.TarInfo, IO[bytes] | None]]:
    """Iterate a bzip2-compressed tar stream entry by entry."""
    try:
        with tarfile.open(fileobj=raw, mode="r|bz2") as tf:
            for info in tf:
                yield info, (tf.extractfile(info) if info.isfile() else None)
    except (OSError, EOFError, tarfile.TarError) as exc:
        raise ValidationError(f"reading {PAYLOAD}: {exc}") from exc


def safe_relpath(name: str) -> PurePosixPath:
    """Validate a payload entry name as a relative path inside the store root."""
    path = PurePosixPath(name)
    if path.is_absolute() or ".." in path.parts:
        raise ValidationError(f"payload entry {name!r} escapes the store root")
    return path

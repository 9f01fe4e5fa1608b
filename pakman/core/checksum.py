"""Checksum manifest codec and streaming SHA-256 helpers.

BOM and manifest files share one line format::

    <64-hex-char-sha256>\t<relative-path>\n

Parsed files map ``relative_path -> digest``.
"""

from __future__ import annotations

import hashlib
from collections.abc import Iterable, Mapping
from pathlib import Path
from typing import IO

from pakman.core.errors import ValidationError

CHUNK_SIZE = 64 * 1024


def sha256_hex(data: bytes) -> str:
    """Return the SHA-256 hex digest of raw bytes."""
    return hashlib.sha256(data).hexdigest()


def sha256_stream(stream: IO[bytes]) -> str:
    """Hash a binary stream to EOF without holding it in memory."""
    h = hashlib.sha256()
    for chunk in iter(lambda: stream.read(CHUNK_SIZE), b""):
        h.update(chunk)
    return h.hexdigest()


def sha256_file(path: Path) -> str:
    """Return the SHA-256 hex digest of the file at *path*."""
    with open(path, "rb") as f:
        return sha256_stream(f)


def copy_and_hash(src: IO[bytes], dst: IO[bytes] | None = None) -> str:
    """Copy *src* into *dst* (or discard it) and return the digest of the bytes."""
    h = hashlib.sha256()
    for chunk in iter(lambda: src.read(CHUNK_SIZE), b""):
        h.update(chunk)
        if dst is not None:
            dst.write(chunk)
    return h.hexdigest()


def parse_checksums(source: str | IO[str] | IO[bytes]) -> dict[str, str]:
    """Parse a checksum file into a ``{path: digest}`` mapping.

    Parameters
    ----------
    source:
        The file contents as a string, or a text/binary stream.

    Raises
    ------
    ValidationError
        If a non-empty line does not contain exactly two tab-separated fields.
    """
    if not isinstance(source, str):
        raw = source.read()
        source = raw.decode("utf-8") if isinstance(raw, bytes) else raw

    checksums: dict[str, str] = {}
    for lineno, line in enumerate(source.splitlines(), start=1):
        if not line:
            continue
        elems = line.split("\t")
        if len(elems) != 2:
            raise ValidationError(
                f"checksum format error on line {lineno}: "
                f"got {len(elems)} elements, want 2"
            )
        digest, path = elems
        checksums[path] = digest
    return checksums


def format_checksums(entries: Mapping[str, str] | Iterable[tuple[str, str]]) -> str:
    """Render ``(path, digest)`` entries in checksum line format.

    Entries are emitted in the order given; pass a sorted iterable for a
    deterministic file.
    """
    pairs = entries.items() if isinstance(entries, Mapping) else entries
    return "".join(f"{digest}\t{path}\n" for path, digest in pairs)

"""Package builder — turns a staging directory into a signed ``.pkg`` archive.

Staging directory layout::

    {name}/
        root.tar.bz2        — required payload overlay
        meta.yaml           — required {name, version, description}
        bin/pre-install     — optional, must be executable
        ...

The archive is written next to the directory as
``{directory-name}-{version}.pkg``.  Generated integrity members from a
previous build are deleted first, so rebuilding is idempotent.  Not safe
to run twice concurrently on the same directory.
"""

from __future__ import annotations

import logging
import os
import stat
import tarfile
from pathlib import Path

from pakman.core.checksum import copy_and_hash, format_checksums, sha256_file
from pakman.core.errors import NotFoundError, StoreIOError, ValidationError
from pakman.keyring.keyring import Signer
from pakman.models.meta import Meta, load_meta_yaml
from pakman.package.archive import (
    ALLOWED_MEMBERS,
    BIN_DIR,
    BOM,
    GENERATED_MEMBERS,
    MANIFEST,
    META,
    PAYLOAD,
    REQUIRED_MEMBERS,
    SIGNATURE,
    iter_tar_stream,
    safe_relpath,
)

logger = logging.getLogger(__name__)


def collect_members(directory: Path) -> list[str]:
    """Return the sorted relative paths of the staging directory's members.

    Looks one level deep, plus one level into ``bin/``.

    Raises
    ------
    ValidationError
        Listing every disallowed member and every non-executable script,
        or naming missing required members.
    """
    members: list[str] = []
    problems: list[str] = []

    for entry in sorted(directory.iterdir()):
        if entry.name == BIN_DIR and entry.is_dir():
            for script in sorted(entry.iterdir()):
                rel = f"{BIN_DIR}/{script.name}"
                if rel not in ALLOWED_MEMBERS or not script.is_file():
                    problems.append(f"{rel!r} is not an allowed member")
                elif not script.stat().st_mode & (stat.S_IXUSR | stat.S_IXGRP | stat.S_IXOTH):
                    problems.append(f"{rel!r} is not executable")
                else:
                    members.append(rel)
            continue
        if entry.name not in ALLOWED_MEMBERS or not entry.is_file():
            problems.append(f"{entry.name!r} is not an allowed member")
            continue
        members.append(entry.name)

    missing = sorted(REQUIRED_MEMBERS - set(members))
    if missing:
        problems.append(f"missing required member(s): {', '.join(missing)}")
    if problems:
        raise ValidationError(f"invalid package directory {directory}: " + "; ".join(problems))
    return sorted(members)


def compute_bom(payload: Path) -> list[tuple[str, str]]:
    """Digest every regular file in a bzip2 payload tar, in archive order."""
    entries: list[tuple[str, str]] = []
    with open(payload, "rb") as raw:
        for info, reader in iter_tar_stream(raw):
            safe_relpath(info.name)
            if reader is None:
                continue
            try:
                entries.append((info.name, copy_and_hash(reader)))
            except (OSError, EOFError) as exc:
                raise ValidationError(f"reading {info.name} from {PAYLOAD}: {exc}") from exc
    return entries


def _normalize_owner(info: tarfile.TarInfo) -> tarfile.TarInfo:
    info.uid = info.gid = 0
    info.uname = info.gname = ""
    return info


def build_package(directory: Path, signer: Signer) -> Path:
    """Build and sign a package archive from *directory*.

    Parameters
    ----------
    directory:
        The staging directory.
    signer:
        Identity producing the armored detached manifest signature.

    Returns
    -------
    Path
        The written ``.pkg`` archive.

    Raises
    ------
    NotFoundError
        If *directory* does not exist.
    ValidationError
        For a disallowed or missing member, a non-executable script, or
        invalid ``meta.yaml``.  Raised before anything is hashed or signed.
    """
    directory = Path(directory)
    if not directory.is_dir():
        raise NotFoundError(f"package directory not found: {directory}")

    for generated in sorted(GENERATED_MEMBERS):
        stale = directory / generated
        if stale.exists():
            logger.debug("Removing stale %s.", stale)
            stale.unlink()

    members = collect_members(directory)
    meta: Meta = load_meta_yaml(directory / META)
    if meta.name != directory.name:
        logger.warning(
            "Directory %r differs from package name %r; remotes serve %s.",
            directory.name, meta.name, meta.pkg_filename,
        )

    try:
        bom = compute_bom(directory / PAYLOAD)
        (directory / BOM).write_text(format_checksums(bom), encoding="utf-8")

        manifest = [(rel, sha256_file(directory / rel)) for rel in sorted([*members, BOM])]
        manifest_text = format_checksums(manifest)
        (directory / MANIFEST).write_text(manifest_text, encoding="utf-8")
    except OSError as exc:
        raise StoreIOError(f"writing checksums in {directory}: {exc}") from exc

    signature = signer.sign(manifest_text.encode("utf-8"))
    try:
        (directory / SIGNATURE).write_text(signature, encoding="utf-8")
    except OSError as exc:
        raise StoreIOError(f"writing {SIGNATURE}: {exc}") from exc

    out = directory.parent / f"{directory.name}-{meta.version}.pkg"
    part = out.with_name(out.name + ".part")
    try:
        with tarfile.open(part, "w", format=tarfile.PAX_FORMAT) as tf:
            bin_added = False
            for rel in [*members, BOM, MANIFEST, SIGNATURE]:
                if rel.startswith(f"{BIN_DIR}/") and not bin_added:
                    tf.add(directory / BIN_DIR, arcname=BIN_DIR, recursive=False, filter=_normalize_owner)
                    bin_added = True
                tf.add(directory / rel, arcname=rel, recursive=False, filter=_normalize_owner)
        os.replace(part, out)
    except (OSError, tarfile.TarError) as exc:
        part.unlink(missing_ok=True)
        raise StoreIOError(f"writing {out}: {exc}") from exc

    logger.info(
        "Built %s (%d member(s), %d payload file(s)).", out.name, len(members), len(bom)
    )
    return out

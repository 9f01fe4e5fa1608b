"""Package installer — resolve, download, verify and apply package archives.

Install pipeline
----------------
1. Resolve ``name`` / ``name@version`` specifiers against the available DB.
2. Download every archive into the cache concurrently.
3. For each package, sequentially and in request order:

   a. **Integrity gate** — verify ``manifest.sha256.asc`` over
      ``manifest.sha256`` against the trusted keyring.
   b. Populate a private install directory from the archive, checking
      every member against the manifest.  ``root.tar.bz2`` is hashed but
      not copied.  Any failure removes the partial directory.
   c. Run ``pre-install`` (``pre-upgrade`` when replacing an installed
      version).
   d. Expand ``root.tar.bz2`` under the store root, overwriting existing
      files.  Digests are not re-checked here; (b) already gated the
      payload as a whole.
   e. Run ``post-install`` / ``post-upgrade``, drop the cached archive, and
      record the package in the installed DB.

When (c) to (e) fail the new install directory is dropped and the one it
replaced, kept aside as ``<name>.previous``, is put back.  Files already
expanded under the root stay.

There is no cross-package transaction: a failure stops the batch and
packages applied before it stay installed.
"""

from __future__ import annotations

import logging
import os
import shutil
from collections.abc import Iterable
from pathlib import Path

from pakman.core.checksum import copy_and_hash, parse_checksums
from pakman.core.errors import IntegrityError, NotFoundError, StoreIOError, ValidationError
from pakman.core.store import StoreLayout
from pakman.db.available import load_available
from pakman.db.installed import load_installed, read_bom, update_installed
from pakman.keyring.keyring import Keyring
from pakman.models.meta import Meta
from pakman.package.archive import (
    BIN_DIR,
    INTEGRITY_MEMBERS,
    MANIFEST,
    PAYLOAD,
    SIGNATURE,
    open_archive,
    payload_entries,
    read_member,
    safe_relpath,
)
from pakman.package.remover import remove_files
from pakman.package.scripts import run_script
from pakman.remote.fetch import Fetcher

logger = logging.getLogger(__name__)

_STAGING_SUFFIX = ".partial"
_BACKUP_SUFFIX = ".previous"


class Installer:
    """Installs packages from the configured remotes into a store root.

    Parameters
    ----------
    layout:
        The store layout to install into.
    keyring:
        Keyring whose trusted public keys gate every archive.
    fetcher:
        HTTP fetcher used for the download phase.
    lock_timeout:
        Seconds to wait for the installed-database lock.
    """

    def __init__(
        self,
        layout: StoreLayout,
        keyring: Keyring,
        fetcher: Fetcher,
        *,
        lock_timeout: float = 10.0,
    ) -> None:
        self._layout = layout
        self._keyring = keyring
        self._fetcher = fetcher
        self._lock_timeout = lock_timeout

    # -- Public API ---------------------------------------------------------

    def install(self, specifiers: Iterable[str]) -> list[Meta]:
        """Install every package named in *specifiers*.

        Returns the metadata of the installed packages in request order.
        """
        metas = load_available(self._layout).installable(specifiers)
        self.ensure_dirs()
        self.download(metas)
        for meta in metas:
            try:
                self.apply(meta)
            except Exception:
                logger.error("Install of %s failed.", meta.label)
                raise
        logger.info("Installed %d package(s).", len(metas))
        return metas

    def ensure_dirs(self) -> None:
        """Create the cache and install-root directories if they are missing."""
        for d in (self._layout.cache_dir, self._layout.installed_dir):
            try:
                d.mkdir(mode=0o755, parents=True, exist_ok=True)
            except OSError as exc:
                raise StoreIOError(f"creating {d}: {exc}") from exc
            if not d.is_dir():
                raise StoreIOError(f"{d} is not a directory")

    def cached_archive(self, meta: Meta) -> Path:
        return self._layout.cache_dir / meta.pkg_filename

    def download(self, metas: list[Meta]) -> None:
        """Fetch every archive into the cache directory."""
        targets: list[tuple[str, Path]] = []
        for meta in metas:
            if not meta.remote:
                raise NotFoundError(f"{meta.label} has no remote to download from")
            targets.append((meta.url, self.cached_archive(meta)))
        self._fetcher.download_all(targets)

    def apply(self, meta: Meta) -> None:
        """Verify and apply the cached archive of *meta*, then record it.

        The install directory of a replaced version is kept aside until the
        lifecycle scripts and root expansion succeed, and is put back if they
        fail, so the installed DB and the on-disk BOM always agree.
        """
        archive = self.cached_archive(meta)
        manifest = self.verify_archive(meta, archive)

        previous = load_installed(self._layout).get(meta.name)
        final_dir = self._layout.package_dir(meta.name)
        old_bom = read_bom(final_dir) if previous is not None and final_dir.is_dir() else {}

        staging = final_dir.with_name(final_dir.name + _STAGING_SUFFIX)
        backup = final_dir.with_name(final_dir.name + _BACKUP_SUFFIX)
        self.populate_install_dir(archive, manifest, staging)
        try:
            if backup.exists():
                shutil.rmtree(backup)
            if final_dir.exists():
                if previous is not None:
                    final_dir.rename(backup)
                else:
                    shutil.rmtree(final_dir)
            staging.rename(final_dir)
        except OSError as exc:
            shutil.rmtree(staging, ignore_errors=True)
            self._restore(final_dir, backup)
            raise StoreIOError(f"moving install dir for {meta.name} into place: {exc}") from exc

        phase = "upgrade" if previous is not None else "install"
        if previous is not None:
            logger.info("Upgrading %s from %s to %s.", meta.name, previous.version, meta.version)

        try:
            run_script(final_dir, f"pre-{phase}", self._layout.root)
            new_bom = self.expand_root(archive, final_dir)
            stale = sorted(set(old_bom) - set(new_bom))
            if stale:
                logger.info("Removing %d file(s) dropped since %s.", len(stale), previous.label)
                remove_files(self._layout.root, stale)
            run_script(final_dir, f"post-{phase}", self._layout.root)
        except BaseException:
            self._restore(final_dir, backup)
            raise

        try:
            if backup.exists():
                shutil.rmtree(backup)
            archive.unlink()
        except OSError as exc:
            raise StoreIOError(f"cleaning up after {meta.label}: {exc}") from exc

        with update_installed(self._layout, self._lock_timeout) as db:
            db.add(meta)
        logger.info("Installed %s.", meta.label)

    def _restore(self, final_dir: Path, backup: Path) -> None:
        """Drop a half-applied install directory and put back the replaced one."""
        shutil.rmtree(final_dir, ignore_errors=True)
        if backup.exists():
            logger.warning("Restoring previous install dir for %s.", final_dir.name)
            backup.rename(final_dir)

    # -- Pipeline steps -----------------------------------------------------

    def verify_archive(self, meta: Meta, archive: Path) -> dict[str, str]:
        """Check the manifest signature and return the parsed manifest.

        Raises
        ------
        IntegrityError
            If the manifest or its signature is missing or does not verify.
        """
        try:
            manifest_bytes = read_member(archive, MANIFEST)
            signature = read_member(archive, SIGNATURE).decode("utf-8")
        except (NotFoundError, UnicodeDecodeError) as exc:
            raise IntegrityError(f"verifying pkg integrity of {meta.label}: {exc}") from exc

        try:
            signer = self._keyring.verify(manifest_bytes, signature)
        except IntegrityError as exc:
            raise IntegrityError(f"verifying manifest of {meta.label}: {exc}") from exc
        logger.info("Manifest of %s signed by %s <%s>.", meta.label, signer.name, signer.email)

        try:
            return parse_checksums(manifest_bytes.decode("utf-8"))
        except (UnicodeDecodeError, ValidationError) as exc:
            raise IntegrityError(f"parsing manifest of {meta.label}: {exc}") from exc

    def populate_install_dir(self, archive: Path, manifest: dict[str, str], dest: Path) -> None:
        """Copy every non-payload member into *dest*, checking its digest.

        On any failure *dest* is removed before the error propagates.
        """
        if dest.exists():
            shutil.rmtree(dest)
        try:
            dest.mkdir(mode=0o755, parents=True)
            self._populate(archive, manifest, dest)
        except BaseException:
            shutil.rmtree(dest, ignore_errors=True)
            raise

    def _populate(self, archive: Path, manifest: dict[str, str], dest: Path) -> None:
        seen: set[str] = set()
        with open_archive(archive) as tf:
            for info in tf:
                name = info.name
                if name in INTEGRITY_MEMBERS:
                    continue

                if info.isdir():
                    if name != BIN_DIR:
                        raise ValidationError(f"{name!r} is unexpected in {archive.name}")
                    (dest / name).mkdir(mode=info.mode, exist_ok=True)
                    continue
                if not info.isfile():
                    raise ValidationError(f"{name!r} is not a regular file in {archive.name}")

                expected = manifest.get(name)
                if expected is None:
                    raise IntegrityError(f"extra file {name!r} found in {archive.name}")

                reader = tf.extractfile(info)
                try:
                    if name == PAYLOAD:
                        digest = copy_and_hash(reader)
                    else:
                        target = dest / name
                        target.parent.mkdir(parents=True, exist_ok=True)
                        with open(target, "wb") as out:
                            digest = copy_and_hash(reader, out)
                        os.chmod(target, info.mode)
                except OSError as exc:
                    raise StoreIOError(f"copying {name!r} into install dir: {exc}") from exc
                finally:
                    reader.close()

                if digest != expected:
                    raise IntegrityError(f"{name!r} checksum was incorrect")
                logger.debug("Verified %s.", name)
                seen.add(name)

        missing = sorted(set(manifest) - seen)
        if missing:
            raise IntegrityError(
                f"manifest lists member(s) absent from {archive.name}: {', '.join(missing)}"
            )

    def expand_root(self, archive: Path, package_dir: Path) -> dict[str, str]:
        """Materialize the payload overlay under the store root.

        Existing files are overwritten without conflict detection.
        Returns the package's BOM.
        """
        bom = read_bom(package_dir)
        root = self._layout.root
        files = 0
        with payload_entries(archive) as entries:
            for info, reader in entries:
                target = root / safe_relpath(info.name)
                try:
                    if info.isdir():
                        target.mkdir(mode=info.mode, parents=True, exist_ok=True)
                        continue
                    if reader is None:
                        logger.warning("Skipping non-regular payload entry %s.", info.name)
                        continue
                    target.parent.mkdir(parents=True, exist_ok=True)
                    if target.is_symlink() or target.exists():
                        target.unlink()
                    with open(target, "wb") as out:
                        shutil.copyfileobj(reader, out)
                    os.chmod(target, info.mode)
                except OSError as exc:
                    raise StoreIOError(f"writing {target}: {exc}") from exc
                files += 1
        logger.info("Expanded %d file(s) under %s.", files, root)
        return bom


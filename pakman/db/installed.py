"""Installed-package database — at most one installed version per name."""

from __future__ import annotations

import logging
from collections.abc import Iterable, Iterator
from contextlib import contextmanager
from pathlib import Path

from pydantic import ValidationError as PydanticValidationError

from pakman.core.checksum import parse_checksums
from pakman.core.errors import NotFoundError, StoreIOError, ValidationError
from pakman.core.store import StoreLayout, locked, read_json, write_json_atomic
from pakman.models.meta import Meta

logger = logging.getLogger(__name__)

BOM_NAME = "bom.sha256"


class InstalledDB:
    """In-memory mapping of package name to its installed ``Meta``."""

    def __init__(self, metas: Iterable[Meta] = ()) -> None:
        self._packages: dict[str, Meta] = {}
        for meta in metas:
            self.add(meta)

    def __len__(self) -> int:
        return len(self._packages)

    def __contains__(self, name: object) -> bool:
        return name in self._packages

    def add(self, meta: Meta) -> None:
        """Record *meta* as the installed version of its name.

        Raises
        ------
        ValidationError
            If name, version or description is empty.
        """
        self._packages[meta.name] = meta.validate_required()

    def remove(self, name: str) -> None:
        self._packages.pop(name, None)

    def get(self, name: str) -> Meta | None:
        return self._packages.get(name)

    def is_installed(self, name: str) -> bool:
        return name in self._packages

    def traverse(self) -> list[Meta]:
        """Installed entries ordered by name."""
        return [self._packages[name] for name in sorted(self._packages)]

    def removable(self, names: Iterable[str]) -> list[Meta]:
        """Resolve removal requests to installed metadata, in request order.

        Raises
        ------
        NotFoundError
            Listing every requested name that is not installed.
        RuntimeError
            If more entries resolve than were requested.
        """
        requested = list(names)
        missing = [n for n in requested if n not in self._packages]
        if missing:
            raise NotFoundError(f"packages not installed: {', '.join(missing)}")

        found = [self._packages[n] for n in dict.fromkeys(requested)]
        if len(found) > len(requested):
            raise RuntimeError(
                f"found {len(found)} installed entries for {len(requested)} requested names"
            )
        return found

    def to_json(self) -> dict[str, dict[str, str]]:
        return {name: meta.model_dump() for name, meta in self._packages.items()}

    @classmethod
    def from_json(cls, raw: object) -> InstalledDB:
        if not isinstance(raw, dict):
            raise StoreIOError("installed database must be a JSON object")
        try:
            return cls(Meta.model_validate(m) for m in raw.values())
        except (PydanticValidationError, ValidationError) as exc:
            raise StoreIOError(f"decoding installed database: {exc}") from exc


def load_installed(layout: StoreLayout) -> InstalledDB:
    """Read the installed database from the store (empty if absent)."""
    return InstalledDB.from_json(read_json(layout.installed_path, {}))


def save_installed(layout: StoreLayout, db: InstalledDB) -> None:
    write_json_atomic(layout.installed_path, db.to_json())


@contextmanager
def update_installed(layout: StoreLayout, timeout: float = 10.0) -> Iterator[InstalledDB]:
    """Locked read-modify-write of the installed database.

    The database is saved when the block exits without raising.
    """
    with locked(layout.installed_path, timeout):
        db = load_installed(layout)
        yield db
        save_installed(layout, db)


def installed_files(layout: StoreLayout, names: Iterable[str]) -> dict[str, list[str]]:
    """Return the sorted BOM paths of each installed package in *names*.

    Raises
    ------
    NotFoundError
        If any name is not installed.
    """
    requested = list(names)
    load_installed(layout).removable(requested)

    files = {name: sorted(read_bom(layout.package_dir(name))) for name in requested}
    logger.debug("Listed files for %d package(s).", len(files))
    return files


def read_bom(package_dir: Path) -> dict[str, str]:
    """Parse the BOM recorded in a package's private install directory."""
    try:
        return parse_checksums((package_dir / BOM_NAME).read_text(encoding="utf-8"))
    except OSError as exc:
        raise StoreIOError(f"opening {package_dir.name}'s bom: {exc}") from exc

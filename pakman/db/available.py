"""Available-package database — every package that can be installed.

The database nests ``name -> version -> Meta``.  Versions order
lexicographically (plain string comparison, not semver), so an
unversioned lookup resolves to the greatest version string.

The on-disk snapshot (and each remote's ``available.json``) uses the same
nesting::

    {"heat": {"1.1.0": {"name": "heat", "version": "1.1.0", ...}}}
"""

from __future__ import annotations

import logging
from collections.abc import Iterable

from pydantic import ValidationError as PydanticValidationError

from pakman.core.errors import DuplicateError, NotFoundError, StoreIOError, ValidationError
from pakman.core.store import StoreLayout, read_json, write_json_atomic
from pakman.models.meta import Meta

logger = logging.getLogger(__name__)


def parse_specifier(spec: str) -> tuple[str, str]:
    """Split ``name`` or ``name@version`` into ``(name, version)``.

    The version is ``""`` when unspecified.

    Raises
    ------
    ValidationError
        If *spec* holds more than one ``@`` or the name is empty.
    """
    count = spec.count("@")
    if count > 1:
        raise ValidationError(
            f"unexpected number of '@' in {spec!r}: got {count}, want at most 1"
        )
    name, _, version = spec.partition("@")
    if not name:
        raise ValidationError(f"name cannot be empty in {spec!r}")
    return name, version


class AvailableDB:
    """In-memory mapping of package name to its configured versions."""

    def __init__(self, metas: Iterable[Meta] = ()) -> None:
        self._packages: dict[str, dict[str, Meta]] = {}
        for meta in metas:
            self.add(meta)

    def __len__(self) -> int:
        return len(self._packages)

    def __contains__(self, name: object) -> bool:
        return name in self._packages

    def versions(self, name: str) -> list[str]:
        """Sorted versions configured for *name* (empty if unknown)."""
        return sorted(self._packages.get(name, {}))

    # -- Mutation -----------------------------------------------------------

    def add(self, meta: Meta) -> None:
        """Validate *meta* and store it at ``[name][version]``; last write wins."""
        try:
            meta.validate_required()
        except ValidationError as exc:
            raise ValidationError(f"invalid meta: {exc}") from exc
        self._packages.setdefault(meta.name, {})[meta.version] = meta

    def update(self, other: AvailableDB) -> None:
        """Add every entry of *other*; keys absent from *other* are untouched."""
        for meta in other.traverse():
            self.add(meta)

    def set_remote(self, remote: str) -> None:
        """Stamp every current entry with the origin *remote*."""
        for versions in self._packages.values():
            for version, meta in versions.items():
                versions[version] = meta.model_copy(update={"remote": remote})

    # -- Lookup -------------------------------------------------------------

    def get(self, name: str, version: str = "") -> Meta:
        """Exact lookup; an empty *version* resolves to the greatest version.

        Raises
        ------
        NotFoundError
            If the name is unknown, has no versions, or lacks *version*.
        """
        versions = self._packages.get(name)
        if versions is None:
            raise NotFoundError(f"could not find package named {name!r}")
        if not version:
            if not versions:
                raise NotFoundError(f"no configured versions for {name!r}")
            version = max(versions)
        try:
            return versions[version]
        except KeyError:
            raise NotFoundError(f"could not find {name}@{version} in database") from None

    def traverse(self) -> list[Meta]:
        """All entries ordered by name, then version (both lexicographic)."""
        return [
            self._packages[name][version]
            for name in sorted(self._packages)
            for version in sorted(self._packages[name])
        ]

    def installable(self, specifiers: Iterable[str]) -> list[Meta]:
        """Resolve install specifiers to metadata, in request order.

        Raises
        ------
        ValidationError
            A specifier is malformed.
        DuplicateError
            The same name is requested twice.
        NotFoundError
            A name or version is not configured.
        """
        labels = [parse_specifier(s) for s in specifiers]

        seen: set[str] = set()
        for name, _ in labels:
            if name in seen:
                raise DuplicateError(f"can only ask to install {name!r} once")
            seen.add(name)

        resolved: list[Meta] = []
        for name, version in labels:
            try:
                resolved.append(self.get(name, version))
            except NotFoundError as exc:
                label = f"{name}@{version}" if version else name
                raise NotFoundError(f"resolving {label}: {exc}") from exc
        return resolved

    # -- Serialization ------------------------------------------------------

    def to_json(self) -> dict[str, dict[str, dict[str, str]]]:
        return {
            name: {version: meta.model_dump() for version, meta in versions.items()}
            for name, versions in self._packages.items()
        }

    @classmethod
    def from_json(cls, raw: object) -> AvailableDB:
        """Build a database from a decoded snapshot, validating each entry."""
        if not isinstance(raw, dict):
            raise ValidationError("available snapshot must be a JSON object")
        db = cls()
        for name, versions in raw.items():
            if not isinstance(versions, dict):
                raise ValidationError(f"versions for {name!r} must be a JSON object")
            for version, meta_data in versions.items():
                try:
                    meta = Meta.model_validate(meta_data)
                except PydanticValidationError as exc:
                    raise ValidationError(f"decoding {name}@{version}: {exc}") from exc
                db.add(meta)
        return db


def load_available(layout: StoreLayout) -> AvailableDB:
    """Read the available database from the store (empty if absent)."""
    raw = read_json(layout.available_path, {})
    try:
        return AvailableDB.from_json(raw)
    except ValidationError as exc:
        raise StoreIOError(f"decoding {layout.available_path}: {exc}") from exc


def save_available(layout: StoreLayout, db: AvailableDB) -> None:
    """Replace the on-disk available database with *db*."""
    write_json_atomic(layout.available_path, db.to_json())
    logger.info("Saved %d available package name(s).", len(db))

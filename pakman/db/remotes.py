"""Remote registry — the ordered list of origins packages are pulled from.

Priority is list order: index 0 wins when two remotes offer the same
``name@version``.  Origins are stored stripped to scheme, host and path.
"""

from __future__ import annotations

import logging
from collections.abc import Iterable
from urllib.parse import urlsplit, urlunsplit

from pakman.core.errors import DuplicateError, NotFoundError, StoreIOError, ValidationError
from pakman.core.store import StoreLayout, locked, read_json, write_json_atomic

logger = logging.getLogger(__name__)


def normalize_origin(uri: str) -> str:
    """Parse *uri* and strip it to ``scheme://host/path``.

    Raises
    ------
    ValidationError
        If the URI has whitespace or control characters, or lacks a scheme
        or host.
    """
    if any(c.isspace() or ord(c) < 0x20 for c in uri):
        raise ValidationError(f"invalid characters in remote uri {uri!r}")
    try:
        parts = urlsplit(uri)
    except ValueError as exc:
        raise ValidationError(f"parsing remote uri {uri!r}: {exc}") from exc
    if not parts.scheme or not parts.netloc:
        raise ValidationError(f"remote uri {uri!r} needs a scheme and host")
    return urlunsplit((parts.scheme, parts.netloc, parts.path.rstrip("/"), "", ""))


def load_remotes(layout: StoreLayout) -> list[str]:
    """Configured origins in priority order."""
    raw = read_json(layout.remotes_path, [])
    if not isinstance(raw, list) or not all(isinstance(u, str) for u in raw):
        raise StoreIOError(f"{layout.remotes_path} must be a JSON array of strings")
    return raw


def save_remotes(layout: StoreLayout, remotes: list[str]) -> None:
    write_json_atomic(layout.remotes_path, remotes)


def add_remotes(layout: StoreLayout, uris: Iterable[str], timeout: float = 10.0) -> list[str]:
    """Append *uris* (lowest priority last) and return the new list.

    Raises
    ------
    DuplicateError
        If an origin is already configured or repeated in *uris*.
    """
    with locked(layout.remotes_path, timeout):
        remotes = load_remotes(layout)
        for uri in uris:
            origin = normalize_origin(uri)
            if origin in remotes:
                raise DuplicateError(f"{origin!r} already in remote list")
            remotes.append(origin)
        save_remotes(layout, remotes)
    logger.info("Remote list now has %d origin(s).", len(remotes))
    return remotes


def remove_remotes(layout: StoreLayout, uris: Iterable[str], timeout: float = 10.0) -> list[str]:
    """Remove *uris* and return the remaining list.

    Raises
    ------
    NotFoundError
        If none of *uris* is configured.
    """
    victims = {normalize_origin(u) for u in uris}
    with locked(layout.remotes_path, timeout):
        remotes = load_remotes(layout)
        kept = [r for r in remotes if r not in victims]
        if len(kept) == len(remotes):
            raise NotFoundError("found no matching remotes")
        save_remotes(layout, kept)
    logger.info("Removed %d remote(s).", len(remotes) - len(kept))
    return kept

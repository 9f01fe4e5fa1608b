"""Pull — rebuild the available database from every configured remote.

Snapshots are fetched concurrently, then folded from the lowest-priority
remote to the highest so that, for a ``name@version`` offered by several
remotes, the first configured remote's entry is the one that survives.
The result replaces the on-disk database outright.
"""

from __future__ import annotations

import json
import logging

from pakman.core.errors import StoreIOError, ValidationError
from pakman.core.store import StoreLayout, locked
from pakman.db.available import AvailableDB, save_available
from pakman.db.remotes import load_remotes
from pakman.remote.fetch import Fetcher

logger = logging.getLogger(__name__)

SNAPSHOT_NAME = "available.json"


def snapshot_url(remote: str) -> str:
    return f"{remote.rstrip('/')}/{SNAPSHOT_NAME}"


def decode_snapshot(remote: str, body: bytes) -> AvailableDB:
    """Decode one remote's ``available.json`` and stamp it with *remote*."""
    try:
        snapshot = AvailableDB.from_json(json.loads(body))
    except (json.JSONDecodeError, UnicodeDecodeError, ValidationError) as exc:
        raise StoreIOError(f"decode remote available for {remote!r}: {exc}") from exc
    snapshot.set_remote(remote)
    return snapshot


def merge_snapshots(snapshots: list[tuple[str, AvailableDB]]) -> AvailableDB:
    """Fold ``(remote, snapshot)`` pairs given in priority order (index 0 highest).

    Each snapshot must already carry its origin via ``set_remote``.
    """
    merged = AvailableDB()
    for remote, snapshot in reversed(snapshots):
        logger.debug("Merging %d name(s) from %s.", len(snapshot), remote)
        merged.update(snapshot)
    return merged


def pull(layout: StoreLayout, fetcher: Fetcher, lock_timeout: float = 10.0) -> AvailableDB:
    """Fetch and merge every remote's snapshot, then save it as the available DB.

    Returns the merged database.  On any fetch or decode failure the
    on-disk database is left untouched.
    """
    remotes = load_remotes(layout)
    if not remotes:
        logger.warning("No remotes configured — available database will be empty.")

    bodies = fetcher.fetch_all([snapshot_url(r) for r in remotes])
    snapshots = [(r, decode_snapshot(r, body)) for r, body in zip(remotes, bodies)]
    merged = merge_snapshots(snapshots)

    with locked(layout.available_path, lock_timeout):
        save_available(layout, merged)
    logger.info(
        "Pulled %d package name(s) from %d remote(s).", len(merged), len(remotes)
    )
    return merged

"""Remote access: HTTP fetching and the multi-remote pull/merge."""

from pakman.remote.fetch import Fetcher
from pakman.remote.pull import merge_snapshots, pull

__all__ = ["Fetcher", "pull", "merge_snapshots"]

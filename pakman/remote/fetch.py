"""HTTP transport — fetch bytes from URLs with bounded concurrency.

Independent fetches (remote snapshots, package archives) run concurrently
on one ``httpx.AsyncClient``, limited by an ``asyncio.Semaphore``.  A batch
is bounded by an overall deadline and may be aborted from another thread
through a ``threading.Event``; both surface as ``StoreIOError``.

No retries are attempted: a failed fetch fails the whole batch.
"""

from __future__ import annotations

import asyncio
import logging
import os
import threading
from collections.abc import Sequence
from pathlib import Path

import httpx

from pakman.core.errors import NotFoundError, StoreIOError

logger = logging.getLogger(__name__)

USER_AGENT = "pakman/0.1"


class Fetcher:
    """Concurrent HTTP GET helper.

    Parameters
    ----------
    workers:
        Maximum number of requests in flight.
    timeout:
        Per-request timeout in seconds.
    deadline:
        Overall limit in seconds for one batch (``None`` for no limit).
    cancel:
        Optional event; setting it aborts an in-progress batch.
    transport:
        Optional custom transport (``httpx.MockTransport`` in tests).
    """

    def __init__(
        self,
        *,
        workers: int = 4,
        timeout: float = 30.0,
        deadline: float | None = 300.0,
        cancel: threading.Event | None = None,
        transport: httpx.AsyncBaseTransport | None = None,
    ) -> None:
        self._workers = max(1, workers)
        self._timeout = timeout
        self._deadline = deadline
        self._cancel = cancel
        self._transport = transport

    # -- Public API ---------------------------------------------------------

    def fetch_all(self, urls: Sequence[str]) -> list[bytes]:
        """GET every URL and return the bodies in the order of *urls*."""
        return self._run(self._fetch_all(list(urls)))

    def download_all(self, targets: Sequence[tuple[str, Path]]) -> None:
        """Stream each ``(url, destination)`` pair to disk.

        A destination is written via a ``.part`` sibling and renamed into
        place only when its body has been fully received.
        """
        self._run(self._download_all(list(targets)))

    # -- Internals ----------------------------------------------------------

    def _run(self, coro):
        try:
            return asyncio.run(asyncio.wait_for(coro, timeout=self._deadline))
        except asyncio.TimeoutError:
            raise StoreIOError(
                f"fetch batch exceeded its {self._deadline}s deadline"
            ) from None

    def _client(self) -> httpx.AsyncClient:
        return httpx.AsyncClient(
            timeout=self._timeout,
            follow_redirects=True,
            headers={"User-Agent": USER_AGENT},
            transport=self._transport,
        )

    def _check_cancelled(self, url: str) -> None:
        if self._cancel is not None and self._cancel.is_set():
            raise StoreIOError(f"fetch of {url} cancelled")

    async def _fetch_all(self, urls: list[str]) -> list[bytes]:
        sem = asyncio.Semaphore(self._workers)
        async with self._client() as client:

            async def fetch_one(url: str) -> bytes:
                async with sem:
                    self._check_cancelled(url)
                    logger.debug("GET %s", url)
                    try:
                        resp = await client.get(url)
                        _raise_for_status(resp, url)
                        return resp.content
                    except httpx.HTTPError as exc:
                        raise StoreIOError(f"http get {url}: {exc}") from exc

            return list(await asyncio.gather(*(fetch_one(u) for u in urls)))

    async def _download_all(self, targets: list[tuple[str, Path]]) -> None:
        sem = asyncio.Semaphore(self._workers)
        async with self._client() as client:

            async def download_one(url: str, dest: Path) -> None:
                async with sem:
                    await self._stream_to(client, url, dest)

            await asyncio.gather(*(download_one(u, d) for u, d in targets))

    async def _stream_to(self, client: httpx.AsyncClient, url: str, dest: Path) -> None:
        self._check_cancelled(url)
        part = dest.with_name(dest.name + ".part")
        written = 0
        try:
            async with client.stream("GET", url) as resp:
                _raise_for_status(resp, url)
                with open(part, "wb") as f:
                    async for chunk in resp.aiter_bytes():
                        self._check_cancelled(url)
                        f.write(chunk)
                        written += len(chunk)
            os.replace(part, dest)
        except httpx.HTTPError as exc:
            part.unlink(missing_ok=True)
            raise StoreIOError(f"copy {url} to disk after {written} bytes: {exc}") from exc
        except OSError as exc:
            part.unlink(missing_ok=True)
            raise StoreIOError(f"writing {dest}: {exc}") from exc
        except BaseException:
            part.unlink(missing_ok=True)
            raise
        logger.info("Downloaded %s (%d bytes).", url, written)


def _raise_for_status(resp: httpx.Response, url: str) -> None:
    if resp.status_code == 404:
        raise NotFoundError(f"{url} not found on remote (HTTP 404)")
    if resp.is_error:
        raise StoreIOError(f"http get {url}: HTTP {resp.status_code}")

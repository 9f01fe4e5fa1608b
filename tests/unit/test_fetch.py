"""Unit tests for the concurrent HTTP fetcher (httpx.MockTransport backed)."""

from __future__ import annotations

import threading

import httpx
import pytest

from pakman.core.errors import NotFoundError, StoreIOError
from pakman.remote.fetch import Fetcher


def _fetcher(handler, **kwargs) -> Fetcher:
    return Fetcher(transport=httpx.MockTransport(handler), **kwargs)


class TestFetchAll:
    def test_bodies_in_request_order(self):
        fetcher = _fetcher(lambda req: httpx.Response(200, content=req.url.path.encode()))
        assert fetcher.fetch_all(["https://a.test/one", "https://a.test/two"]) == [
            b"/one",
            b"/two",
        ]

    def test_empty_batch(self):
        assert _fetcher(lambda req: httpx.Response(500)).fetch_all([]) == []

    def test_404_is_not_found(self):
        with pytest.raises(NotFoundError, match="HTTP 404"):
            _fetcher(lambda req: httpx.Response(404)).fetch_all(["https://a.test/x"])

    def test_server_error_is_io_error(self):
        with pytest.raises(StoreIOError, match="HTTP 503"):
            _fetcher(lambda req: httpx.Response(503)).fetch_all(["https://a.test/x"])

    def test_transport_error_is_io_error(self):
        def refuse(request):
            raise httpx.ConnectError("connection refused", request=request)

        with pytest.raises(StoreIOError, match="connection refused"):
            _fetcher(refuse).fetch_all(["https://a.test/x"])

    def test_sends_user_agent(self):
        seen = []

        def handler(request):
            seen.append(request.headers["User-Agent"])
            return httpx.Response(200)

        _fetcher(handler).fetch_all(["https://a.test/x"])
        assert seen == ["pakman/0.1"]


class TestDownloadAll:
    def test_writes_destinations(self, tmp_path):
        fetcher = _fetcher(lambda req: httpx.Response(200, content=b"archive" * 1000))
        dest = tmp_path / "heat-1.0.pkg"
        fetcher.download_all([("https://a.test/heat-1.0.pkg", dest)])
        assert dest.read_bytes() == b"archive" * 1000
        assert not (tmp_path / "heat-1.0.pkg.part").exists()

    def test_failed_download_leaves_nothing(self, tmp_path):
        fetcher = _fetcher(lambda req: httpx.Response(404))
        dest = tmp_path / "heat-1.0.pkg"
        with pytest.raises(NotFoundError):
            fetcher.download_all([("https://a.test/heat-1.0.pkg", dest)])
        assert list(tmp_path.iterdir()) == []

    def test_cancelled_batch(self, tmp_path):
        cancel = threading.Event()
        cancel.set()
        fetcher = _fetcher(lambda req: httpx.Response(200, content=b"x"), cancel=cancel)
        with pytest.raises(StoreIOError, match="cancelled"):
            fetcher.download_all([("https://a.test/x", tmp_path / "x")])

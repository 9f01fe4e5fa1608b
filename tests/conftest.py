"""Shared test fixtures for pakman."""

from __future__ import annotations

import io
import json
import tarfile
from collections.abc import Callable
from pathlib import Path

import httpx
import pytest

from pakman.core.store import StoreLayout
from pakman.db.remotes import add_remotes, load_remotes
from pakman.keyring.keyring import Keyring, SigningIdentity
from pakman.models.meta import Meta
from pakman.package.builder import build_package
from pakman.remote.fetch import Fetcher

REMOTE = "https://pkgs.example.com/linux/amd64"

DEFAULT_FILES: dict[str, bytes] = {
    "bin/hello": b"#!/bin/sh\necho hello\n",
    "share/hello/README": b"hello, world\n",
}


def write_payload(path: Path, files: dict[str, bytes]) -> None:
    """Write a bzip2 tar with a directory entry for every parent of *files*."""
    dirs = sorted({str(Path(p).parent) for p in files} - {"."})
    with tarfile.open(path, "w:bz2") as tf:
        for d in dirs:
            info = tarfile.TarInfo(d)
            info.type = tarfile.DIRTYPE
            info.mode = 0o755
            tf.addfile(info)
        for rel, body in files.items():
            info = tarfile.TarInfo(rel)
            info.size = len(body)
            info.mode = 0o755 if rel.startswith("bin/") else 0o644
            tf.addfile(info, io.BytesIO(body))


@pytest.fixture
def layout(tmp_path: Path) -> StoreLayout:
    """Provide a store layout rooted in a fresh temp directory."""
    root = tmp_path / "root"
    root.mkdir()
    return StoreLayout(root)


@pytest.fixture
def keyring(layout: StoreLayout) -> Keyring:
    return Keyring(layout.keyring_dir)


@pytest.fixture
def signer(keyring: Keyring) -> SigningIdentity:
    """A signing identity whose public key the test keyring trusts."""
    keyring.create("Package Builder", "builder@example.com")
    return keyring.find_secret_identity("builder@example.com")


# ---------------------------------------------------------------------------
# Staging directory / package factories
# ---------------------------------------------------------------------------


@pytest.fixture
def make_staging(tmp_path: Path) -> Callable[..., Path]:
    """Factory fixture: build a staging directory ready for ``build_package``."""

    def _factory(
        name: str = "hello",
        version: str = "1.0",
        description: str = "says hello",
        files: dict[str, bytes] | None = None,
        scripts: dict[str, str] | None = None,
    ) -> Path:
        directory = tmp_path / "staging" / name
        directory.mkdir(parents=True, exist_ok=True)
        (directory / "meta.yaml").write_text(
            f"name: {name}\nversion: {version}\ndescription: {description}\n",
            encoding="utf-8",
        )
        write_payload(directory / "root.tar.bz2", DEFAULT_FILES if files is None else files)
        if scripts:
            (directory / "bin").mkdir(exist_ok=True)
            for script, body in scripts.items():
                path = directory / "bin" / script
                path.write_text(body, encoding="utf-8")
                path.chmod(0o755)
        return directory

    return _factory


@pytest.fixture
def make_package(
    make_staging: Callable[..., Path], signer: SigningIdentity
) -> Callable[..., Path]:
    """Factory fixture: stage and build a signed ``.pkg`` archive."""

    def _factory(**kwargs) -> Path:
        return build_package(make_staging(**kwargs), signer)

    return _factory


# ---------------------------------------------------------------------------
# Fake remotes
# ---------------------------------------------------------------------------


class FakeRemotes:
    """In-memory HTTP origin set served through ``httpx.MockTransport``."""

    def __init__(self) -> None:
        self.routes: dict[str, bytes] = {}
        self.requests: list[str] = []
        self.transport = httpx.MockTransport(self._handle)

    def _handle(self, request: httpx.Request) -> httpx.Response:
        url = str(request.url)
        self.requests.append(url)
        body = self.routes.get(url)
        if body is None:
            return httpx.Response(404)
        return httpx.Response(200, content=body)

    def fetcher(self, **kwargs) -> Fetcher:
        return Fetcher(transport=self.transport, **kwargs)

    def publish_snapshot(self, remote: str, metas: list[Meta]) -> None:
        snapshot: dict[str, dict[str, dict]] = {}
        for meta in metas:
            snapshot.setdefault(meta.name, {})[meta.version] = meta.model_dump()
        self.routes[f"{remote}/available.json"] = json.dumps(snapshot).encode("utf-8")

    def publish_package(self, remote: str, archive: Path, meta: Meta) -> None:
        self.routes[f"{remote}/{meta.pkg_filename}"] = archive.read_bytes()


@pytest.fixture
def remotes() -> FakeRemotes:
    return FakeRemotes()


@pytest.fixture
def published(
    layout: StoreLayout,
    remotes: FakeRemotes,
    make_package: Callable[..., Path],
) -> Callable[..., Meta]:
    """Factory fixture: build a package, serve it from ``REMOTE`` and register the remote.

    Every call republishes the snapshot with all packages published so far.
    """
    metas: list[Meta] = []

    def _factory(**kwargs) -> Meta:
        archive = make_package(**kwargs)
        meta = Meta(
            name=kwargs.get("name", "hello"),
            version=kwargs.get("version", "1.0"),
            description=kwargs.get("description", "says hello"),
        )
        metas.append(meta)
        remotes.publish_snapshot(REMOTE, metas)
        remotes.publish_package(REMOTE, archive, meta)
        if REMOTE not in load_remotes(layout):
            add_remotes(layout, [REMOTE])
        return meta

    return _factory

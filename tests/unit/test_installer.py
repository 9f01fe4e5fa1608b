"""Unit tests for the package installer."""

from __future__ import annotations

import pytest

from pakman.core.checksum import parse_checksums, sha256_hex
from pakman.core.errors import DuplicateError, NotFoundError
from pakman.db.installed import BOM_NAME, load_installed, read_bom
from pakman.package.installer import Installer
from pakman.package.remover import Remover
from pakman.package.scripts import ScriptError
from pakman.remote.pull import pull

MARKER_SCRIPT = '#!/bin/sh\necho "$0" >> "$PAKMAN_ROOT/scripts.log"\n'


@pytest.fixture
def installer(layout, keyring, remotes) -> Installer:
    return Installer(layout, keyring, remotes.fetcher())


def _script_log(layout) -> list[str]:
    log = layout.root / "scripts.log"
    if not log.exists():
        return []
    return [line.rsplit("/", 1)[-1] for line in log.read_text().splitlines()]


class TestInstall:
    def test_files_materialized_under_root(self, layout, remotes, published, installer):
        published()
        pull(layout, remotes.fetcher())

        metas = installer.install(["hello"])

        assert [m.label for m in metas] == ["hello@1.0"]
        assert (layout.root / "bin" / "hello").read_bytes() == b"#!/bin/sh\necho hello\n"
        assert (layout.root / "share" / "hello" / "README").exists()

    def test_recorded_with_remote(self, layout, remotes, published, installer):
        published()
        pull(layout, remotes.fetcher())
        installer.install(["hello@1.0"])

        meta = load_installed(layout).get("hello")
        assert meta.version == "1.0"
        assert meta.remote == "https://pkgs.example.com/linux/amd64"

    def test_bom_digests_match_installed_files(self, layout, remotes, published, installer):
        published()
        pull(layout, remotes.fetcher())
        installer.install(["hello"])

        bom = parse_checksums((layout.package_dir("hello") / BOM_NAME).read_text())
        for rel, digest in bom.items():
            assert sha256_hex((layout.root / rel).read_bytes()) == digest

    def test_install_dir_holds_metadata_not_payload(self, layout, remotes, published, installer):
        published(scripts={"post-install": "#!/bin/sh\n"})
        pull(layout, remotes.fetcher())
        installer.install(["hello"])

        pkg_dir = layout.package_dir("hello")
        assert sorted(p.relative_to(pkg_dir).as_posix() for p in pkg_dir.rglob("*")) == [
            "bin",
            "bin/post-install",
            BOM_NAME,
            "meta.yaml",
        ]

    def test_cached_archive_removed(self, layout, remotes, published, installer):
        published()
        pull(layout, remotes.fetcher())
        installer.install(["hello"])
        assert list(layout.cache_dir.iterdir()) == []

    def test_scripts_run_in_order(self, layout, remotes, published, installer):
        published(scripts={"pre-install": MARKER_SCRIPT, "post-install": MARKER_SCRIPT})
        pull(layout, remotes.fetcher())
        installer.install(["hello"])
        assert _script_log(layout) == ["pre-install", "post-install"]

    def test_failing_script_stops_install(self, layout, remotes, published, installer):
        published(scripts={"pre-install": "#!/bin/sh\nexit 3\n"})
        pull(layout, remotes.fetcher())

        with pytest.raises(ScriptError, match="exited 3"):
            installer.install(["hello"])
        assert not load_installed(layout).is_installed("hello")
        assert not (layout.root / "bin" / "hello").exists()
        assert not layout.package_dir("hello").exists()

    def test_unknown_package(self, layout, remotes, published, installer):
        published()
        pull(layout, remotes.fetcher())
        with pytest.raises(NotFoundError, match="resolving nope"):
            installer.install(["nope"])

    def test_duplicate_request(self, layout, remotes, published, installer):
        published()
        pull(layout, remotes.fetcher())
        with pytest.raises(DuplicateError):
            installer.install(["hello", "hello@1.0"])
        assert remotes.requests[-1].endswith("available.json")


class TestUpgrade:
    def test_upgrade_replaces_version_and_drops_stale_files(
        self, layout, remotes, published, installer
    ):
        published(files={"bin/hello": b"v1", "share/old": b"old"})
        pull(layout, remotes.fetcher())
        installer.install(["hello"])

        published(version="2.0", files={"bin/hello": b"v2"})
        pull(layout, remotes.fetcher())
        installer.install(["hello@2.0"])

        assert load_installed(layout).get("hello").version == "2.0"
        assert (layout.root / "bin" / "hello").read_bytes() == b"v2"
        assert not (layout.root / "share" / "old").exists()

    def test_upgrade_scripts(self, layout, remotes, published, installer):
        scripts = {name: MARKER_SCRIPT for name in ("pre-install", "pre-upgrade", "post-upgrade")}
        published(scripts=scripts)
        pull(layout, remotes.fetcher())
        installer.install(["hello"])

        published(version="2.0", scripts=scripts)
        pull(layout, remotes.fetcher())
        installer.install(["hello@2.0"])

        assert _script_log(layout) == ["pre-install", "pre-upgrade", "post-upgrade"]

    @pytest.mark.parametrize("failing", ["pre-upgrade", "post-upgrade"])
    def test_failed_upgrade_keeps_previous_install_dir(
        self, layout, remotes, published, installer, failing
    ):
        published(files={"bin/hello": b"v1", "share/old": b"old"})
        pull(layout, remotes.fetcher())
        installer.install(["hello"])

        published(
            version="2.0",
            files={"bin/hello": b"v2"},
            scripts={failing: "#!/bin/sh\nexit 1\n"},
        )
        pull(layout, remotes.fetcher())
        with pytest.raises(ScriptError):
            installer.install(["hello@2.0"])

        pkg_dir = layout.package_dir("hello")
        assert load_installed(layout).get("hello").version == "1.0"
        assert sorted(read_bom(pkg_dir)) == ["bin/hello", "share/old"]
        assert sorted(p.name for p in pkg_dir.parent.iterdir()) == ["hello"]

    def test_remove_after_failed_upgrade_deletes_old_files(
        self, layout, remotes, published, installer
    ):
        published(files={"bin/hello": b"v1", "share/old": b"old"})
        pull(layout, remotes.fetcher())
        installer.install(["hello"])

        published(
            version="2.0",
            files={"bin/hello": b"v2"},
            scripts={"pre-upgrade": "#!/bin/sh\nexit 1\n"},
        )
        pull(layout, remotes.fetcher())
        with pytest.raises(ScriptError):
            installer.install(["hello@2.0"])

        Remover(layout).remove(["hello"])
        assert not (layout.root / "share" / "old").exists()
        assert not (layout.root / "bin" / "hello").exists()
        assert not layout.package_dir("hello").exists()

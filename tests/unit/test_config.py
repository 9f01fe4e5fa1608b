"""Tests for runtime config — env-driven settings."""

from __future__ import annotations

from pathlib import Path

from pakman.config import PakmanConfig


class TestPakmanConfig:
    def test_defaults(self, monkeypatch):
        monkeypatch.delenv("PAKMAN_ROOT", raising=False)
        monkeypatch.delenv("PAKMAN_LOG_LEVEL", raising=False)
        config = PakmanConfig(_env_file=None)
        assert config.root == Path("/usr/local")
        assert config.log_level == "INFO"
        assert config.download_workers == 4

    def test_env_overrides(self, monkeypatch, tmp_path):
        monkeypatch.setenv("PAKMAN_ROOT", str(tmp_path))
        monkeypatch.setenv("PAKMAN_DOWNLOAD_WORKERS", "9")
        monkeypatch.setenv("PAKMAN_SIGNING_ID", "builder@example.com")
        config = PakmanConfig(_env_file=None)
        assert config.root == tmp_path
        assert config.download_workers == 9
        assert config.signing_id == "builder@example.com"

    def test_timeouts_are_floats(self, monkeypatch):
        monkeypatch.setenv("PAKMAN_LOCK_TIMEOUT", "2.5")
        assert PakmanConfig(_env_file=None).lock_timeout == 2.5

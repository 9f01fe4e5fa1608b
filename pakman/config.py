"""Runtime configuration — env-driven via pydantic-settings.

Reads from a .env file and PAKMAN_* environment variables.
"""

from __future__ import annotations

from pathlib import Path

from pydantic_settings import BaseSettings, SettingsConfigDict


class PakmanConfig(BaseSettings):
    """Package manager configuration with environment variable overrides.

    Examples
    --------
    Override via environment::

        export PAKMAN_ROOT=$HOME/.local
        export PAKMAN_SIGNING_ID=builder@example.com
        export PAKMAN_LOG_LEVEL=DEBUG
    """

    model_config = SettingsConfigDict(
        env_file=".env",
        env_prefix="PAKMAN_",
        env_file_encoding="utf-8",
    )

    # Store root: all state and installed files live beneath it
    root: Path = Path("/usr/local")

    # Identity (email or key id) used to sign built archives
    signing_id: str = ""

    log_level: str = "INFO"

    # Network
    download_workers: int = 4
    download_timeout: float = 300.0  # overall deadline for a download batch
    http_timeout: float = 30.0  # per-request

    # Seconds to wait for another process's database lock
    lock_timeout: float = 10.0


# Module-level singleton: import as `from pakman.config import config`
config = PakmanConfig()

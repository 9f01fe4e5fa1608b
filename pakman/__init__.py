"""pakman: a minimal cross-platform package manager.

  - Signed ``.pkg`` archives (Ed25519 via PyNaCl) with per-file SHA-256 manifests
  - Multi-remote ``available.json`` snapshots merged by remote priority
  - Install, upgrade and remove under a single store root, with lifecycle scripts
  - Env-driven config (pydantic-settings) and a Typer/Rich CLI
"""

__version__ = "0.1.0"
__description__ = "Minimal cross-platform package manager with signed archives"

from pakman.package.builder import build_package
from pakman.package.installer import Installer
from pakman.package.remover import Remover

__all__ = ["build_package", "Installer", "Remover", "__version__"]

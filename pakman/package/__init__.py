"""Package lifecycle: archive format, builder, installer, remover."""

from pakman.package.builder import build_package
from pakman.package.installer import Installer
from pakman.package.remover import Remover, remove_files

__all__ = ["build_package", "Installer", "Remover", "remove_files"]

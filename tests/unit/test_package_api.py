"""Tests for the top-level ``pakman`` package namespace."""

from __future__ import annotations

import subprocess
import sys

import pakman


class TestPackageNamespace:
    def test_library_entry_points_exported(self):
        assert set(pakman.__all__) == {"build_package", "Installer", "Remover", "__version__"}

    def test_import_does_not_load_cli_stack(self):
        code = (
            "import sys, pakman, pakman.db.installed; "
            "print(sorted(m for m in ('typer', 'rich', 'pakman.cli', 'pakman.config') "
            "if m in sys.modules))"
        )
        result = subprocess.run(
            [sys.executable, "-c", code], capture_output=True, text=True, check=True
        )
        assert result.stdout.strip() == "[]"

"""Tests for the single source of the package version."""

from __future__ import annotations

from pathlib import Path

from gentoo_updates import __version__, version_banner

PYPROJECT = Path(__file__).resolve().parent.parent / "pyproject.toml"


def test_banner_uses_package_version() -> None:
    assert version_banner() == f"gentoo-updates {__version__}"


def test_pyproject_reads_version_from_package() -> None:
    text = PYPROJECT.read_text(encoding="utf-8")

    assert 'dynamic = ["version"]' in text
    assert 'version = {attr = "gentoo_updates.__version__"}' in text
    assert not any(line.startswith("version = \"") for line in text.splitlines())

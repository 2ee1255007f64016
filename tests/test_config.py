"""Tests for the configuration loader."""

from __future__ import annotations

import dataclasses
import logging
from pathlib import Path

import pytest

from gentoo_updates.config import RunConfig, load_config, parse_config_text
from gentoo_updates.errors import ConfigError


def _write(tmp_path: Path, text: str) -> str:
    path = tmp_path / "gentoo-updates.conf"
    path.write_text(text, encoding="utf-8")
    return str(path)


class TestDefaults:
    def test_missing_file_yields_defaults(self, tmp_path: Path, caplog) -> None:
        caplog.set_level(logging.INFO)
        config = load_config(str(tmp_path / "absent.conf"))

        assert config.skip_sync is False
        assert config.webrsync_only is False
        assert config.skip_repo_sync is False
        assert config.skip_history_clean is False
        assert config.skip_portage_update is False
        assert config.skip_self_update is False
        assert config.skip_perl_rebuild is False
        assert config.build_kernel is False
        assert config.use_running_kernel_config is True
        assert config.reboot_after is False
        assert config.max_upgrade_attempts == 0
        assert config.self_package == "app-admin/gentoo-updates"
        assert config == RunConfig()
        assert "using default settings" in caplog.text

    def test_run_config_is_immutable(self) -> None:
        config = RunConfig()
        with pytest.raises(dataclasses.FrozenInstanceError):
            config.skip_sync = True  # type: ignore[misc]

    def test_empty_file_yields_defaults(self, tmp_path: Path) -> None:
        assert load_config(_write(tmp_path, "")) == RunConfig()


class TestOverrides:
    def test_shell_style_file(self, tmp_path: Path) -> None:
        path = _write(tmp_path, """\
# host maintenance settings
SKIP_SYNC=yes
export BUILD_KERNEL="true"
reboot-after='1'
use_running_kernel_config=no   # use the saved .config instead
MAX_UPGRADE_ATTEMPTS=5
SELF_PACKAGE=app-admin/gentoo-updates-9999
""")
        config = load_config(path)

        assert config.skip_sync is True
        assert config.build_kernel is True
        assert config.reboot_after is True
        assert config.use_running_kernel_config is False
        assert config.max_upgrade_attempts == 5
        assert config.self_package == "app-admin/gentoo-updates-9999"
        assert config.skip_repo_sync is False

    @pytest.mark.parametrize("raw,expected", [
        ("yes", True), ("YES", True), ("on", True), ("1", True), ("True", True),
        ("no", False), ("off", False), ("0", False), ("FALSE", False),
    ])
    def test_boolean_spellings(self, raw: str, expected: bool) -> None:
        assert parse_config_text(f"skip_sync={raw}") == {"skip_sync": expected}

    def test_unknown_keys_are_ignored(self, tmp_path: Path) -> None:
        config = load_config(_write(tmp_path, "FUTURE_OPTION=whatever\nSKIP_SYNC=yes\n"))

        assert config == RunConfig(skip_sync=True)


class TestMalformed:
    @pytest.mark.parametrize("text", [
        "SKIP_SYNC\n",
        "=yes\n",
        "SKIP_SYNC=\"yes\n",
        "SKIP_SYNC=maybe\n",
        "MAX_UPGRADE_ATTEMPTS=-1\n",
        "MAX_UPGRADE_ATTEMPTS=lots\n",
        "SKIP_SYNC=yes no\n",
        "skip sync=yes\n",
        "SELF_PACKAGE=\n",
        "SELF_PACKAGE=''\n",
    ])
    def test_malformed_content_is_fatal(self, tmp_path: Path, text: str) -> None:
        with pytest.raises(ConfigError):
            load_config(_write(tmp_path, text))

    def test_error_names_file_and_line(self, tmp_path: Path) -> None:
        path = _write(tmp_path, "SKIP_SYNC=yes\n\nbroken line\n")

        with pytest.raises(ConfigError) as excinfo:
            load_config(path)

        assert excinfo.value.line == 3
        assert f"{path}:3:" in str(excinfo.value)

    def test_no_partial_application(self, tmp_path: Path) -> None:
        text = "SKIP_SYNC=yes\nBUILD_KERNEL=perhaps\n"

        with pytest.raises(ConfigError):
            parse_config_text(text)

    def test_directory_is_fatal(self, tmp_path: Path) -> None:
        with pytest.raises(ConfigError):
            load_config(str(tmp_path))

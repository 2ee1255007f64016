"""Tests for the self-update guard and the execution context."""

from __future__ import annotations

import subprocess
import sys
from typing import List

import pytest

from gentoo_updates import version_banner
from gentoo_updates.errors import RestartError
from gentoo_updates.utils import self_update
from gentoo_updates.utils.self_update import (
    RESTART_ENV,
    ExecutionContext,
    SelfUpdateGuard,
    restart,
)


def _fake_version(monkeypatch, stdout: bytes, returncode: int = 0) -> List[List[str]]:
    calls: List[List[str]] = []

    def fake_run(command, **kwargs):
        calls.append(list(command))
        return subprocess.CompletedProcess(command, returncode, stdout=stdout, stderr=b"")

    monkeypatch.setattr(self_update.subprocess, "run", fake_run)
    return calls


class TestExecutionContext:
    def test_console_script(self) -> None:
        context = ExecutionContext.from_argv(["/usr/sbin/gentoo-updates", "-s", "-k"])

        assert context.launch_command == ("/usr/sbin/gentoo-updates",)
        assert context.args == ("-s", "-k")
        assert context.argv == ("/usr/sbin/gentoo-updates", "-s", "-k")

    def test_module_invocation(self) -> None:
        context = ExecutionContext.from_argv(
            ["/usr/lib/python3/site-packages/gentoo_updates/__main__.py", "-p"],
            python="/usr/bin/python3",
        )

        assert context.launch_command == ("/usr/bin/python3", "-m", "gentoo_updates")
        assert context.args == ("-p",)

    def test_empty_argv_falls_back_to_interpreter(self) -> None:
        context = ExecutionContext.from_argv([])

        assert context.launch_command == (sys.executable, "-m", "gentoo_updates")
        assert context.args == ()


class TestSelfUpdateGuard:
    @pytest.fixture
    def context(self) -> ExecutionContext:
        return ExecutionContext(("/usr/sbin/gentoo-updates",), ("-s",))

    def test_same_version_no_restart(self, monkeypatch, context) -> None:
        calls = _fake_version(monkeypatch, (version_banner() + "\n").encode())
        guard = SelfUpdateGuard(context, version_banner(), environ={})

        assert guard.needs_restart() is False
        assert calls == [["/usr/sbin/gentoo-updates", "--version"]]

    def test_different_version_restarts(self, monkeypatch, context) -> None:
        _fake_version(monkeypatch, b"gentoo-updates 9.9.9\n")
        guard = SelfUpdateGuard(context, "gentoo-updates 1.0.0", environ={})

        assert guard.needs_restart() is True

    def test_comparison_is_exact(self, monkeypatch, context) -> None:
        _fake_version(monkeypatch, b"gentoo-updates  1.0.0\n")
        guard = SelfUpdateGuard(context, "gentoo-updates 1.0.0", environ={})

        assert guard.needs_restart() is True

    def test_failed_version_query_does_not_restart(self, monkeypatch, context) -> None:
        _fake_version(monkeypatch, b"", returncode=1)
        guard = SelfUpdateGuard(context, "gentoo-updates 1.0.0", environ={})

        assert guard.needs_restart() is False

    def test_missing_entry_point_does_not_restart(self, monkeypatch, context) -> None:
        def fake_run(command, **kwargs):
            raise FileNotFoundError(command[0])

        monkeypatch.setattr(self_update.subprocess, "run", fake_run)
        guard = SelfUpdateGuard(context, "gentoo-updates 1.0.0", environ={})

        assert guard.needs_restart() is False

    def test_no_second_restart(self, monkeypatch, context) -> None:
        _fake_version(monkeypatch, b"gentoo-updates 9.9.9\n")
        guard = SelfUpdateGuard(context, "gentoo-updates 1.0.0", environ={RESTART_ENV: "1"})

        assert guard.needs_restart() is False


class TestRestart:
    def test_execs_with_original_arguments(self, monkeypatch) -> None:
        recorded = {}

        def fake_execve(path, argv, env):
            recorded.update(path=path, argv=argv, env=env)

        monkeypatch.setattr(self_update.os, "execve", fake_execve)
        context = ExecutionContext(("/usr/sbin/gentoo-updates",), ("-s", "--config", "/etc/x.conf"))

        restart(context)

        assert recorded["path"] == "/usr/sbin/gentoo-updates"
        assert recorded["argv"] == ["/usr/sbin/gentoo-updates", "-s", "--config", "/etc/x.conf"]
        assert recorded["env"][RESTART_ENV] == "1"

    def test_exec_failure_raises_restart_error(self, monkeypatch) -> None:
        def denied(path, argv, env):
            raise PermissionError(13, "Permission denied", path)

        monkeypatch.setattr(self_update.os, "execve", denied)
        context = ExecutionContext(("/usr/sbin/gentoo-updates",), ("-s",))

        with pytest.raises(RestartError) as excinfo:
            restart(context)

        assert "/usr/sbin/gentoo-updates" in str(excinfo.value)
        assert excinfo.value.exit_code == 1

"""
gentoo-updates: Gentoo Update Orchestrator
Copyright (C) 2024 The gentoo-updates Authors

This program is free software: you can redistribute it and/or modify
it under the terms of the GNU General Public License as published by
the Free Software Foundation, either version 3 of the License, or
(at your option) any later version.

This program is distributed in the hope that it will be useful,
but WITHOUT ANY WARRANTY; without even the implied warranty of
MERCHANTABILITY or FITNESS FOR A PARTICULAR PURPOSE.  See the
GNU General Public License for more details.

You should have received a copy of the GNU General Public License
along with this program.  If not, see <https://www.gnu.org/licenses/>.
"""

"""
Self-Update Guard

After the orchestrator's own package has been re-emerged, ask the installed
entry point for its version. If it differs from the version of the running
process, the driver re-executes the orchestrator with the exact original
arguments so the whole pipeline runs again under the new code.

Usage:
    context = ExecutionContext.from_argv(sys.argv)
    guard = SelfUpdateGuard(context, version_banner())

    if guard.needs_restart():
        restart(context)      # does not return
"""

import os
import shutil
import subprocess
import sys
from dataclasses import dataclass
from typing import Mapping, Optional, Sequence, Tuple

from ..errors import RestartError
from .index import log_message

RESTART_ENV = "GENTOO_UPDATES_RESTARTED"
PACKAGE_NAME = "gentoo_updates"
VERSION_CHECK_TIMEOUT = 60


@dataclass(frozen=True)
class ExecutionContext:
    """How this process was launched. Created once at startup, read-only afterwards."""
    launch_command: Tuple[str, ...]
    args: Tuple[str, ...]

    @classmethod
    def from_argv(cls, argv: Sequence[str], python: Optional[str] = None) -> "ExecutionContext":
        """
        Resolve the launch command from argv[0].

        When started with `python -m gentoo_updates`, argv[0] is the path of
        __main__.py, which cannot be exec'd directly; re-launch through the
        interpreter instead.
        """
        program = argv[0] if argv else ""
        arguments = tuple(argv[1:])
        if not program or program == "-m" or program.endswith(".py"):
            interpreter = python or sys.executable
            return cls((interpreter, "-m", PACKAGE_NAME), arguments)

        resolved = shutil.which(program) or program
        return cls((os.path.abspath(resolved),), arguments)

    @property
    def argv(self) -> Tuple[str, ...]:
        return self.launch_command + self.args


def is_restarted(environ: Optional[Mapping[str, str]] = None) -> bool:
    environ = os.environ if environ is None else environ
    return environ.get(RESTART_ENV) == "1"


class SelfUpdateGuard:
    """Compares the installed orchestrator version with the running one."""

    def __init__(self, context: ExecutionContext, current_banner: str,
                 environ: Optional[Mapping[str, str]] = None):
        self.context = context
        self.current_banner = current_banner
        self.environ = os.environ if environ is None else environ

    def installed_banner(self) -> Optional[bytes]:
        """Run the installed entry point with --version; None if it cannot be run."""
        command = list(self.context.launch_command) + ["--version"]
        try:
            result = subprocess.run(
                command,
                capture_output=True,
                timeout=VERSION_CHECK_TIMEOUT,
            )
        except (OSError, subprocess.TimeoutExpired) as e:
            log_message(f"Could not query installed version with '{' '.join(command)}': {e}", "WARNING")
            return None
        if result.returncode != 0:
            log_message(f"Version query exited with status {result.returncode}", "WARNING")
            return None
        return result.stdout.rstrip(b"\r\n")

    def needs_restart(self) -> bool:
        installed = self.installed_banner()
        if installed is None:
            log_message("Continuing with the running orchestrator version", "WARNING")
            return False

        running = self.current_banner.encode()
        if installed == running:
            log_message(f"Orchestrator is up to date: {self.current_banner}")
            return False

        shown = installed.decode(errors="replace")
        if is_restarted(self.environ):
            log_message(
                f"Installed version '{shown}' still differs from running '{self.current_banner}' "
                "after a restart; not restarting again",
                "WARNING",
            )
            return False

        log_message(f"Orchestrator updated: {self.current_banner} -> {shown}")
        return True


def restart(context: ExecutionContext) -> None:
    """Replace the current process with a fresh orchestrator run using the original arguments."""
    env = os.environ.copy()
    env[RESTART_ENV] = "1"
    argv = list(context.argv)
    log_message(f"Restarting orchestrator (exec): {' '.join(argv)}")
    sys.stdout.flush()
    sys.stderr.flush()
    try:
        os.execve(argv[0], argv, env)
    except OSError as e:
        raise RestartError(f"Failed to exec updated orchestrator '{argv[0]}': {e}")

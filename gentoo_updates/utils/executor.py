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
Stage Executor

Runs the external collaborators (emerge, layman, genkernel, ...) and maps
their exit status onto a StageOutcome. Output is streamed to the operator
while the command runs so long builds show progress.

The emerge output phrases in INTERVENTION_PHRASES are the one place where
the text format of an external tool is load-bearing. Keep them behind
requires_operator_action() so the heuristic can be changed in one place.
"""

import os
import subprocess
import sys
from dataclasses import dataclass
from enum import Enum
from typing import List, Optional, TextIO

from .index import log_message

COMMAND_NOT_EXECUTABLE = 126
COMMAND_NOT_FOUND = 127

INTERVENTION_PHRASES = (
    "The following keyword changes are necessary",
    "The following mask changes are necessary",
    "The following USE changes are necessary",
    "The following license changes are necessary",
    # wording used by older portage releases
    "The following unmask changes are necessary",
    "package.keywords",
)


def requires_operator_action(output: str) -> bool:
    """Return True if emerge output says keyword, mask, USE or license changes are needed."""
    return any(phrase in output for phrase in INTERVENTION_PHRASES)


class StageStatus(Enum):
    COMPLETED = "completed"
    SKIPPED = "skipped"
    REQUIRES_INTERVENTION = "requires_intervention"
    FATAL = "fatal"
    RESTART = "restart"


@dataclass(frozen=True)
class StageOutcome:
    status: StageStatus
    returncode: int = 0
    command: Optional[List[str]] = None

    @classmethod
    def completed(cls) -> "StageOutcome":
        return cls(StageStatus.COMPLETED)

    @classmethod
    def skipped(cls) -> "StageOutcome":
        return cls(StageStatus.SKIPPED)

    @classmethod
    def requires_intervention(cls) -> "StageOutcome":
        return cls(StageStatus.REQUIRES_INTERVENTION)

    @classmethod
    def fatal(cls, returncode: int, command: Optional[List[str]] = None) -> "StageOutcome":
        return cls(StageStatus.FATAL, returncode, list(command) if command else None)

    @classmethod
    def restart(cls) -> "StageOutcome":
        return cls(StageStatus.RESTART)


@dataclass(frozen=True)
class CommandResult:
    returncode: int
    output: str = ""

    @property
    def succeeded(self) -> bool:
        return self.returncode == 0


class CommandRunner:
    """
    Runs external commands for the pipeline.

    Non-captured commands inherit the terminal so interactive tools and
    progress bars behave normally. Captured commands merge stderr into
    stdout and echo each line as it arrives while keeping a copy for the
    caller.
    """

    def __init__(self, stream: Optional[TextIO] = None, env: Optional[dict] = None):
        self.stream = stream
        self.env = env

    def _stream(self) -> TextIO:
        return self.stream if self.stream is not None else sys.stdout

    def run(self, command: List[str], capture: bool = False) -> CommandResult:
        """Run `command` to completion. A missing executable is reported as status 127."""
        log_message(f"Running: {' '.join(command)}")
        env = self.env if self.env is not None else os.environ.copy()
        try:
            if not capture:
                completed = subprocess.run(command, env=env)
                return CommandResult(completed.returncode)
            return self._run_captured(command, env)
        except FileNotFoundError:
            log_message(f"Command not found: {command[0]}", "ERROR")
            return CommandResult(COMMAND_NOT_FOUND)
        except PermissionError as e:
            log_message(f"Cannot execute {command[0]}: {e}", "ERROR")
            return CommandResult(COMMAND_NOT_EXECUTABLE)

    def _run_captured(self, command: List[str], env: dict) -> CommandResult:
        out = self._stream()
        lines = []
        with subprocess.Popen(
            command,
            stdout=subprocess.PIPE,
            stderr=subprocess.STDOUT,
            encoding="utf-8",
            errors="replace",
            bufsize=1,
            env=env,
        ) as process:
            for line in process.stdout:
                lines.append(line)
                out.write(line)
                out.flush()
            returncode = process.wait()
        return CommandResult(returncode, "".join(lines))

    def run_stage(self, name: str, command: List[str]) -> StageOutcome:
        """Run a stage's single command and classify the exit status."""
        result = self.run(command)
        if result.succeeded:
            log_message(f"Stage '{name}' completed")
            return StageOutcome.completed()
        log_message(f"Stage '{name}' failed with exit status {result.returncode}", "ERROR")
        return StageOutcome.fatal(result.returncode, command)

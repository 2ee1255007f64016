"""Shared fakes for driving the pipeline without touching the host."""

from __future__ import annotations

from typing import Dict, List, Optional, Sequence, Tuple

import pytest

from gentoo_updates.pipeline import DEFAULT_COMMANDS
from gentoo_updates.utils.executor import CommandResult, CommandRunner
from gentoo_updates.utils.self_update import ExecutionContext

INTERVENTION_OUTPUT = """\
These are the packages that would be merged, in order:

Calculating dependencies... done!

The following keyword changes are necessary to proceed:
 (see "package.accept_keywords" in the portage(5) man page for more details)
# required by @world (argument)
=dev-lang/rust-1.80.0 ~amd64
"""

CLEAN_OUTPUT = """\
These are the packages that would be merged, in order:

Calculating dependencies... done!
[ebuild     U  ] sys-libs/zlib-1.3.1 [1.3]
"""


class FakeRunner(CommandRunner):
    """Records every command instead of running it.

    `failures` maps a command tuple to the exit status it should return.
    `pretend_outputs` is consumed one entry per `emerge --pretend` call; once
    exhausted, pretend runs report a clean plan.
    """

    def __init__(self, failures: Optional[Dict[Tuple[str, ...], int]] = None,
                 pretend_outputs: Optional[Sequence[str]] = None):
        super().__init__()
        self.commands: List[List[str]] = []
        self.failures = dict(failures or {})
        self.pretend_outputs = list(pretend_outputs or [])

    def run(self, command, capture=False):
        self.commands.append(list(command))
        if "--pretend" in command:
            output = self.pretend_outputs.pop(0) if self.pretend_outputs else CLEAN_OUTPUT
            returncode = 1 if "necessary to proceed" in output else 0
            return CommandResult(returncode, output)
        return CommandResult(self.failures.get(tuple(command), 0))

    def count(self, name: str) -> int:
        return self.commands.count(DEFAULT_COMMANDS[name])


class FakeGuard:
    def __init__(self, restart: bool = False):
        self.restart = restart
        self.calls = 0

    def needs_restart(self) -> bool:
        self.calls += 1
        return self.restart


class ScriptedInput:
    """Stand-in for input(): returns queued answers and records prompts."""

    def __init__(self, *answers: str):
        self.answers = list(answers)
        self.prompts: List[str] = []

    def __call__(self, prompt: str) -> str:
        self.prompts.append(prompt)
        if not self.answers:
            raise EOFError
        return self.answers.pop(0)


@pytest.fixture
def runner() -> FakeRunner:
    return FakeRunner()


@pytest.fixture
def context() -> ExecutionContext:
    return ExecutionContext(("/usr/bin/gentoo-updates",), ("--skip-sync",))

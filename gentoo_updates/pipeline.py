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
Pipeline Controller

Owns the fixed stage order and runs each stage once, except full-upgrade,
which repeats from its pre-check until emerge no longer asks for keyword,
mask, USE or license changes.

Stage order:
    sync -> repo-update -> history-clean -> self-update-portage ->
    self-update-self -> full-upgrade -> dependency-cleanup -> perl-rebuild ->
    python-cleanup -> kernel-build -> module-rebuild -> env-refresh ->
    reboot-prompt

The controller is strictly sequential and takes no lock. Running two
orchestrators at once is unsupported; only portage's own locking protects
the package database in that case.
"""

import time
from dataclasses import dataclass, field
from enum import Enum
from typing import Callable, Dict, List, Optional

from . import version_banner
from .config import RunConfig
from .errors import ExternalToolFailure, InterventionLimitError
from .utils.executor import (
    COMMAND_NOT_EXECUTABLE,
    COMMAND_NOT_FOUND,
    CommandRunner,
    StageOutcome,
    StageStatus,
    requires_operator_action,
)
from .utils.index import format_duration, log_message
from .utils.prompts import confirm_reboot, wait_for_operator
from .utils.self_update import ExecutionContext, SelfUpdateGuard

WORLD_UPDATE_OPTIONS = ["--update", "--deep", "--newuse", "--with-bdeps=y"]
RUNNING_KERNEL_CONFIG = "/proc/config.gz"

# emerge itself could not be started; always fatal
UNRUNNABLE_STATUSES = (COMMAND_NOT_FOUND, COMMAND_NOT_EXECUTABLE)

DEFAULT_COMMANDS = {
    "sync": ["emerge", "--sync"],
    "webrsync": ["emerge-webrsync"],
    "repo-update": ["layman", "-S"],
    "history-clean": ["emaint", "--fix", "cleanresume"],
    "self-update-portage": ["emerge", "--oneshot", "--update", "sys-apps/portage"],
    "self-update-self": ["emerge", "--oneshot", "--update"],
    "full-upgrade-pretend": ["emerge", "--pretend", "--verbose"] + WORLD_UPDATE_OPTIONS + ["@world"],
    "full-upgrade": ["emerge"] + WORLD_UPDATE_OPTIONS + ["--keep-going", "@world"],
    "dependency-cleanup": ["emerge", "--depclean"],
    "perl-rebuild": ["perl-cleaner", "--all"],
    "python-cleanup": ["eselect", "python", "cleanup"],
    "kernel-build": ["genkernel"],
    "module-rebuild": ["emerge", "--oneshot", "@module-rebuild"],
    "env-refresh": ["env-update"],
    "reboot": ["shutdown", "-r", "now"],
}

INTERVENTION_DIRECTIVE = (
    "emerge needs keyword, mask, USE or license changes before it can finish the upgrade.\n"
    "Apply them in another terminal (for example with dispatch-conf or by editing\n"
    "/etc/portage/package.*), then acknowledge here. The full upgrade will run again\n"
    "from the pretend check."
)


class PipelineResult(Enum):
    DONE = "done"
    RESTART = "restart"


class PipelinePhase(Enum):
    IDLE = "idle"
    RUNNING = "running"
    AWAITING_OPERATOR = "awaiting_operator"
    DONE = "done"
    ABORTED = "aborted"
    RESTARTING = "restarting"


@dataclass
class Stage:
    """One step of the pipeline: run `action` when `predicate(config)` is true."""
    name: str
    predicate: Callable[[RunConfig], bool]
    action: Callable[[], StageOutcome]
    skip_reason: str = ""


@dataclass
class PipelineState:
    """Mutable run state, owned by Pipeline only."""
    phase: PipelinePhase = PipelinePhase.IDLE
    stage_index: Optional[int] = None
    outcomes: Dict[str, StageStatus] = field(default_factory=dict)
    upgrade_attempts: int = 0
    upgrade_started: Optional[float] = None
    upgrade_finished: Optional[float] = None
    started: Optional[float] = None
    finished: Optional[float] = None

    @property
    def upgrade_elapsed(self) -> Optional[float]:
        if self.upgrade_started is None or self.upgrade_finished is None:
            return None
        return self.upgrade_finished - self.upgrade_started


def always(config: RunConfig) -> bool:
    return True


class Pipeline:
    """
    Runs the maintenance stages against one RunConfig.

    The runner, input function and self-update guard are injectable so the
    controller can be driven without touching the host.
    """

    def __init__(self, config: RunConfig, context: ExecutionContext,
                 runner: Optional[CommandRunner] = None,
                 input_func: Callable[[str], str] = input,
                 guard: Optional[SelfUpdateGuard] = None,
                 clock: Callable[[], float] = time.monotonic):
        self.config = config
        self.context = context
        self.runner = runner or CommandRunner()
        self.input_func = input_func
        self.guard = guard or SelfUpdateGuard(context, version_banner())
        self.clock = clock
        self.state = PipelineState()
        self.stages = self.build_stages()

    def build_stages(self) -> List[Stage]:
        return [
            Stage("sync", lambda c: not c.skip_sync, self.sync_tree,
                  "portage tree sync disabled"),
            Stage("repo-update", lambda c: not c.skip_repo_sync,
                  lambda: self.run_command_stage("repo-update"),
                  "overlay sync disabled"),
            Stage("history-clean", lambda c: not c.skip_history_clean,
                  lambda: self.run_command_stage("history-clean"),
                  "resume history cleanup disabled"),
            Stage("self-update-portage", lambda c: not c.skip_portage_update,
                  lambda: self.run_command_stage("self-update-portage"),
                  "portage self-update disabled"),
            Stage("self-update-self", lambda c: not c.skip_self_update, self.update_self,
                  "orchestrator self-update disabled"),
            Stage("full-upgrade", always, self.full_upgrade),
            Stage("dependency-cleanup", always,
                  lambda: self.run_command_stage("dependency-cleanup")),
            Stage("perl-rebuild", lambda c: not c.skip_perl_rebuild,
                  lambda: self.run_command_stage("perl-rebuild"),
                  "perl rebuild disabled"),
            Stage("python-cleanup", always,
                  lambda: self.run_command_stage("python-cleanup")),
            Stage("kernel-build", lambda c: c.build_kernel, self.build_kernel,
                  "kernel build not requested"),
            Stage("module-rebuild", lambda c: c.build_kernel,
                  lambda: self.run_command_stage("module-rebuild"),
                  "no new kernel built"),
            Stage("env-refresh", always,
                  lambda: self.run_command_stage("env-refresh")),
            Stage("reboot-prompt", lambda c: c.reboot_after, self.reboot_prompt,
                  "reboot not requested"),
        ]

    @property
    def stage_names(self) -> List[str]:
        return [stage.name for stage in self.stages]

    # -- stage actions ---------------------------------------------------

    def run_command_stage(self, name: str, command: Optional[List[str]] = None) -> StageOutcome:
        return self.runner.run_stage(name, command or DEFAULT_COMMANDS[name])

    def sync_tree(self) -> StageOutcome:
        if self.config.webrsync_only:
            return self.run_command_stage("sync", DEFAULT_COMMANDS["webrsync"])
        return self.run_command_stage("sync")

    def update_self(self) -> StageOutcome:
        command = DEFAULT_COMMANDS["self-update-self"] + [self.config.self_package]
        outcome = self.run_command_stage("self-update-self", command)
        if outcome.status is not StageStatus.COMPLETED:
            return outcome
        if self.guard.needs_restart():
            return StageOutcome.restart()
        return outcome

    def build_kernel(self) -> StageOutcome:
        command = list(DEFAULT_COMMANDS["kernel-build"])
        if self.config.use_running_kernel_config:
            command.append(f"--kernel-config={RUNNING_KERNEL_CONFIG}")
        command.append("all")
        return self.run_command_stage("kernel-build", command)

    def reboot_prompt(self) -> StageOutcome:
        if not confirm_reboot(self.input_func):
            log_message("Reboot declined; the new kernel and services take effect on next boot")
            return StageOutcome.completed()
        return self.run_command_stage("reboot", DEFAULT_COMMANDS["reboot"])

    def upgrade_attempt(self) -> StageOutcome:
        """
        One pass of the full upgrade: pretend check, then the real upgrade.

        The real upgrade always runs; emerge applies whatever is not blocked.
        A failing real upgrade is only fatal when the pretend check found
        nothing for the operator to fix, or when emerge could not be started.
        """
        self.state.upgrade_attempts += 1
        log_message(f"Full upgrade attempt {self.state.upgrade_attempts}: checking for required changes")

        pretend = DEFAULT_COMMANDS["full-upgrade-pretend"]
        check = self.runner.run(pretend, capture=True)
        if not check.succeeded:
            log_message(f"Pretend run exited with status {check.returncode}", "WARNING")
        intervention = requires_operator_action(check.output)
        if intervention:
            log_message("emerge requires configuration changes before it can proceed unattended", "WARNING")

        command = DEFAULT_COMMANDS["full-upgrade"]
        result = self.runner.run(command)
        if result.returncode in UNRUNNABLE_STATUSES:
            return StageOutcome.fatal(result.returncode, command)
        if intervention:
            if not result.succeeded:
                log_message(f"Upgrade stopped at blocked packages (exit status {result.returncode})", "WARNING")
            return StageOutcome.requires_intervention()
        if not result.succeeded:
            return StageOutcome.fatal(result.returncode, command)
        return StageOutcome.completed()

    def full_upgrade(self) -> StageOutcome:
        limit = self.config.max_upgrade_attempts
        self.state.upgrade_started = self.clock()
        log_message(f"Full upgrade started at {time.strftime('%Y-%m-%d %H:%M:%S')}")
        try:
            while True:
                outcome = self.upgrade_attempt()
                if outcome.status is not StageStatus.REQUIRES_INTERVENTION:
                    return outcome
                if limit and self.state.upgrade_attempts >= limit:
                    raise InterventionLimitError(self.state.upgrade_attempts)
                self.state.phase = PipelinePhase.AWAITING_OPERATOR
                wait_for_operator(INTERVENTION_DIRECTIVE, self.input_func)
                self.state.phase = PipelinePhase.RUNNING
        finally:
            self.state.upgrade_finished = self.clock()
            log_message(
                f"Full upgrade finished at {time.strftime('%Y-%m-%d %H:%M:%S')} after "
                f"{self.state.upgrade_attempts} attempt(s), elapsed "
                f"{format_duration(self.state.upgrade_elapsed)}"
            )

    # -- control ---------------------------------------------------------

    def _perform(self, stage: Stage) -> StageOutcome:
        outcome = stage.action()
        self.state.outcomes[stage.name] = outcome.status
        if outcome.status is StageStatus.FATAL:
            raise ExternalToolFailure(stage.name, outcome.command or [], outcome.returncode)
        return outcome

    def execute(self, index: int) -> StageOutcome:
        """Run or skip stage `index`, recording the outcome. Raises on a fatal result."""
        stage = self.stages[index]
        self.state.stage_index = index
        if not stage.predicate(self.config):
            log_message(f"Skipping {stage.name}: {stage.skip_reason}")
            self.state.outcomes[stage.name] = StageStatus.SKIPPED
            return StageOutcome.skipped()

        log_message("-" * 60)
        log_message(f"STAGE {index + 1}/{len(self.stages)}: {stage.name}")
        log_message("-" * 60)
        return self._perform(stage)

    def run(self) -> PipelineResult:
        """Run every stage in order. Returns RESTART if the orchestrator must re-exec itself."""
        self.state.phase = PipelinePhase.RUNNING
        self.state.started = self.clock()
        try:
            for index in range(len(self.stages)):
                outcome = self.execute(index)
                if outcome.status is StageStatus.RESTART:
                    self.state.phase = PipelinePhase.RESTARTING
                    log_message("Orchestrator was updated; restarting the pipeline from the beginning")
                    return PipelineResult.RESTART
        except Exception:
            self.state.phase = PipelinePhase.ABORTED
            raise
        finally:
            self.state.finished = self.clock()

        self.state.phase = PipelinePhase.DONE
        self.log_summary()
        return PipelineResult.DONE

    def run_single(self, name: str) -> StageOutcome:
        """Run exactly one stage by name, ignoring its predicate."""
        index = self.stage_names.index(name)
        self.state.phase = PipelinePhase.RUNNING
        self.state.stage_index = index
        try:
            outcome = self._perform(self.stages[index])
        except Exception:
            self.state.phase = PipelinePhase.ABORTED
            raise
        self.state.phase = PipelinePhase.DONE
        return outcome

    def log_summary(self):
        completed = [n for n, s in self.state.outcomes.items() if s is StageStatus.COMPLETED]
        skipped = [n for n, s in self.state.outcomes.items() if s is StageStatus.SKIPPED]
        log_message("Update pipeline completed:")
        log_message(f"  - Stages run: {len(completed)}")
        log_message(f"  - Stages skipped: {len(skipped)}")
        if skipped:
            log_message(f"  - Skipped: {', '.join(skipped)}")
        if self.state.upgrade_attempts > 1:
            log_message(f"  - Full upgrade attempts: {self.state.upgrade_attempts}")
        log_message(f"  - Total time: {format_duration(self.state.finished - self.state.started)}")

#!/usr/bin/env python3
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

import logging
import os
import sys
import traceback
from typing import Callable, List, Optional

from . import version_banner
from .cli import EarlyAction, format_help, parse_arguments
from .config import load_config
from .errors import ArgumentError, PrivilegeError, UpdateError
from .pipeline import Pipeline, PipelineResult
from .utils.executor import CommandRunner
from .utils.index import log_message, setup_logging
from .utils.self_update import ExecutionContext, is_restarted, restart


def log_session_banner(argv: List[str]):
    logging.info("=" * 80)
    logging.info("GENTOO UPDATE SESSION STARTED")
    logging.info(f"Command: {' '.join(argv)}")
    logging.info(f"Working Directory: {os.getcwd()}")
    logging.info(f"Python Version: {sys.version}")
    logging.info("=" * 80)


def require_root():
    if os.geteuid() != 0:
        raise PrivilegeError("gentoo-updates must be run as root")


def run(argv: Optional[List[str]] = None,
        runner: Optional[CommandRunner] = None,
        input_func: Callable[[str], str] = input) -> int:
    """
    Run one invocation and return its exit status.

    Help and version are answered before logging is configured so their
    output is exactly what was asked for; the self-update guard relies on
    `--version` printing nothing but the version banner.
    """
    argv = list(sys.argv if argv is None else argv)
    context = ExecutionContext.from_argv(argv)

    try:
        invocation = parse_arguments(argv[1:])
    except ArgumentError as e:
        print(f"{e.usage}{e.kind}: {e}", file=sys.stderr)
        print("Try 'gentoo-updates --help' for more information.", file=sys.stderr)
        return e.exit_code

    if invocation.early_action is EarlyAction.HELP:
        print(format_help(), end="")
        return 0
    if invocation.early_action is EarlyAction.VERSION:
        print(version_banner())
        return 0

    setup_logging()
    log_session_banner(argv)
    if is_restarted():
        log_message("Orchestrator restart complete; running the pipeline under the new version")

    try:
        require_root()
        config = invocation.apply(load_config(invocation.config_path))
        if invocation.overrides:
            log_message(f"Command line overrides: {', '.join(sorted(invocation.overrides))}")

        pipeline = Pipeline(config, context, runner=runner, input_func=input_func)

        if invocation.early_action is EarlyAction.MODULE_REBUILD:
            log_message("Module rebuild only")
            pipeline.run_single("module-rebuild")
            return 0

        if pipeline.run() is PipelineResult.RESTART:
            restart(context)
        log_message("Update orchestration completed successfully")
        return 0

    except UpdateError as e:
        log_message(f"{e.kind}: {e}", "ERROR")
        return e.exit_code
    except KeyboardInterrupt:
        log_message("Update process interrupted by user", "WARNING")
        return 130
    except Exception as e:
        log_message(f"Unhandled error in update process: {e}", "ERROR")
        traceback.print_exc()
        return 1


def main():
    """Console entry point."""
    sys.exit(run(sys.argv))


if __name__ == "__main__":
    main()

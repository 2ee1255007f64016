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
Command-Line Interpreter

Turns the invocation flags into RunConfig overrides and an optional early
action (help, version, module rebuild only).
"""

import argparse
from dataclasses import dataclass, field, replace
from enum import Enum
from typing import Any, Dict, Optional, Sequence

from .config import DEFAULT_CONFIG_PATH, RunConfig
from .errors import ArgumentError

PROG = "gentoo-updates"


class EarlyAction(Enum):
    HELP = "help"
    VERSION = "version"
    MODULE_REBUILD = "module-rebuild"


# flag destination -> RunConfig field it forces to True
FLAG_OVERRIDES = {
    "skip_sync": "skip_sync",
    "webrsync": "webrsync_only",
    "layman_skip_sync": "skip_repo_sync",
    "skip_portage": "skip_portage_update",
    "kernel_rebuild": "build_kernel",
}


class OrchestratorArgumentParser(argparse.ArgumentParser):
    """ArgumentParser that raises ArgumentError instead of exiting with status 2."""

    def error(self, message):
        raise ArgumentError(message, usage=self.format_usage())


@dataclass(frozen=True)
class Invocation:
    """Result of parsing one argument vector."""
    overrides: Dict[str, Any] = field(default_factory=dict)
    early_action: Optional[EarlyAction] = None
    config_path: str = DEFAULT_CONFIG_PATH

    def apply(self, defaults: RunConfig) -> RunConfig:
        """Layer the command line overrides on top of the loaded configuration."""
        return replace(defaults, **self.overrides)


def build_parser() -> argparse.ArgumentParser:
    parser = OrchestratorArgumentParser(
        prog=PROG,
        add_help=False,
        description="Bring a Gentoo host up to date: sync, upgrade @world, clean up and rebuild.",
        epilog="Concurrent invocations are unsupported; portage's own lock is the only protection.",
    )
    parser.add_argument("-s", "--skip-sync", action="store_true",
                        help="Do not sync the portage tree")
    parser.add_argument("-r", "--webrsync", action="store_true",
                        help="Sync the portage tree with emerge-webrsync only")
    parser.add_argument("-l", "--layman-skip-sync", action="store_true",
                        help="Do not sync layman overlays")
    parser.add_argument("-p", "--skip-portage", action="store_true",
                        help="Do not update portage itself before the world upgrade")
    parser.add_argument("-k", "--kernel-rebuild", action="store_true",
                        help="Build a new kernel and rebuild external modules")
    parser.add_argument("-m", "--module-rebuild", action="store_true",
                        help="Only rebuild kernel modules, then exit")
    parser.add_argument("-v", "--version", action="store_true",
                        help="Print the version and exit")
    parser.add_argument("-h", "--help", action="store_true",
                        help="Show this help message and exit")
    parser.add_argument("--config", default=DEFAULT_CONFIG_PATH, metavar="PATH",
                        help=f"Configuration file (default: {DEFAULT_CONFIG_PATH})")
    return parser


def parse_arguments(argv: Sequence[str]) -> Invocation:
    """
    Parse `argv` (without the program name).

    Raises:
        ArgumentError: unknown flag, stray positional argument or missing
            option value.
    """
    parser = build_parser()
    args = parser.parse_args(list(argv))

    if args.help:
        early_action = EarlyAction.HELP
    elif args.version:
        early_action = EarlyAction.VERSION
    elif args.module_rebuild:
        early_action = EarlyAction.MODULE_REBUILD
    else:
        early_action = None

    overrides = {}
    for dest, config_field in FLAG_OVERRIDES.items():
        if getattr(args, dest):
            overrides[config_field] = True

    return Invocation(overrides=overrides, early_action=early_action, config_path=args.config)


def format_help() -> str:
    return build_parser().format_help()


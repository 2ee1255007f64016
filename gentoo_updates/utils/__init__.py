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
Utilities for the update orchestrator: logging, command execution,
prompts and the self-update guard.
"""

from .index import log_message, setup_logging, format_duration
from .executor import (
    CommandRunner,
    CommandResult,
    StageOutcome,
    StageStatus,
    requires_operator_action
)
from .prompts import confirm_reboot, wait_for_operator
from .self_update import ExecutionContext, SelfUpdateGuard, restart

__all__ = [
    'log_message',
    'setup_logging',
    'format_duration',
    'CommandRunner',
    'CommandResult',
    'StageOutcome',
    'StageStatus',
    'requires_operator_action',
    'confirm_reboot',
    'wait_for_operator',
    'ExecutionContext',
    'SelfUpdateGuard',
    'restart'
]

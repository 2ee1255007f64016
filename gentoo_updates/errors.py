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
Error types raised by the orchestrator.

Every fatal condition is an UpdateError subclass; the driver in index.py
catches them, logs the message and exits with the error's exit code.
"Intervention required" is not an error: it is a StageOutcome status that
drives the full-upgrade retry loop.
"""

from typing import List, Optional


class UpdateError(Exception):
    """Base class for fatal orchestrator errors."""
    exit_code = 1
    kind = "Update error"


class PrivilegeError(UpdateError):
    """Raised when the orchestrator is not running as root."""
    kind = "Privilege error"


class ConfigError(UpdateError):
    """Raised when the configuration file is unreadable or malformed."""
    kind = "Configuration error"

    def __init__(self, message: str, path: Optional[str] = None, line: Optional[int] = None):
        self.path = path
        self.line = line
        location = ""
        if path is not None:
            location = f"{path}:{line}: " if line is not None else f"{path}: "
        super().__init__(f"{location}{message}")


class ArgumentError(UpdateError):
    """Raised for unknown flags or malformed command line arguments."""
    kind = "Argument error"

    def __init__(self, message: str, usage: str = ""):
        self.usage = usage
        super().__init__(message)


class ExternalToolFailure(UpdateError):
    """Raised when an external collaborator exits non-zero."""
    kind = "External tool failure"

    def __init__(self, stage: str, command: List[str], returncode: int):
        self.stage = stage
        self.command = list(command)
        self.returncode = returncode
        super().__init__(
            f"Stage '{stage}' failed: '{' '.join(self.command)}' exited with status {returncode}"
        )


class InputError(UpdateError):
    """Raised for an invalid answer to an interactive prompt."""
    kind = "Input error"


class InterventionLimitError(UpdateError):
    """Raised when the full upgrade still needs intervention after the configured attempts."""
    kind = "Intervention limit reached"

    def __init__(self, attempts: int):
        self.attempts = attempts
        super().__init__(
            f"Full upgrade still requires operator intervention after {attempts} attempts"
        )


class RestartError(UpdateError):
    """Raised when the updated orchestrator cannot be exec'd."""
    kind = "Restart error"

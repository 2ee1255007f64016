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

"""Interactive prompts: operator acknowledgement and the reboot question."""

from typing import Callable

from ..errors import InputError

AFFIRMATIVE = {"y", "yes"}
NEGATIVE = {"n", "no"}

InputFunc = Callable[[str], str]


def _read(prompt: str, input_func: InputFunc) -> str:
    try:
        return input_func(prompt)
    except EOFError:
        raise InputError("No answer received (standard input closed)")


def wait_for_operator(directive: str, input_func: InputFunc = input) -> None:
    """Print `directive` and block until the operator presses Enter."""
    print(directive, flush=True)
    _read("Press Enter once the changes are in place to retry the upgrade... ", input_func)


def confirm_reboot(input_func: InputFunc = input) -> bool:
    """
    Ask whether to reboot now.

    Returns True for y/yes and False for n/no, ignoring case and surrounding
    whitespace. Any other answer raises InputError rather than picking a
    default.
    """
    answer = _read("Reboot now? [y/n] ", input_func).strip().lower()
    if answer in AFFIRMATIVE:
        return True
    if answer in NEGATIVE:
        return False
    raise InputError(f"Invalid answer '{answer}': expected y, yes, n or no")

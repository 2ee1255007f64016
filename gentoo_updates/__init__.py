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
Gentoo update orchestrator.

Drives emerge and friends through a fixed sequence of maintenance stages to
bring a Gentoo host up to date.
"""

__version__ = "1.0.0"


def version_banner() -> str:
    """The exact line printed by `gentoo-updates --version`."""
    return f"gentoo-updates {__version__}"


from .config import RunConfig, load_config  # noqa: E402
from .errors import UpdateError  # noqa: E402
from .pipeline import Pipeline, PipelineResult  # noqa: E402

__all__ = [
    '__version__',
    'version_banner',
    'RunConfig',
    'load_config',
    'UpdateError',
    'Pipeline',
    'PipelineResult',
]

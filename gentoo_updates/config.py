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
Configuration Loader

Reads the flat key=value configuration file and produces an immutable
RunConfig. A missing file is not an error: the documented defaults apply.

Example /etc/gentoo-updates.conf:

    # skip the portage tree sync on this host
    SKIP_SYNC=yes
    BUILD_KERNEL=true
    REBOOT_AFTER="yes"
"""

import os
import shlex
from dataclasses import dataclass, fields, replace
from typing import Any, Dict

from .errors import ConfigError
from .utils.index import log_message

DEFAULT_CONFIG_PATH = "/etc/gentoo-updates.conf"
DEFAULT_SELF_PACKAGE = "app-admin/gentoo-updates"

TRUE_VALUES = {"1", "yes", "true", "on"}
FALSE_VALUES = {"0", "no", "false", "off"}


@dataclass(frozen=True)
class RunConfig:
    """Resolved options for a single invocation. Never mutated after load."""
    skip_sync: bool = False
    webrsync_only: bool = False
    skip_repo_sync: bool = False
    skip_history_clean: bool = False
    skip_portage_update: bool = False
    skip_self_update: bool = False
    skip_perl_rebuild: bool = False
    build_kernel: bool = False
    use_running_kernel_config: bool = True
    reboot_after: bool = False
    max_upgrade_attempts: int = 0
    self_package: str = DEFAULT_SELF_PACKAGE


CONFIG_FIELDS = {f.name: f for f in fields(RunConfig)}


def normalize_key(key: str) -> str:
    return key.strip().lower().replace("-", "_")


def parse_value(name: str, raw: str) -> Any:
    """Convert a raw string to the type of the RunConfig field `name`."""
    field_type = CONFIG_FIELDS[name].type
    if field_type is bool:
        value = raw.strip().lower()
        if value in TRUE_VALUES:
            return True
        if value in FALSE_VALUES:
            return False
        raise ValueError(f"expected a boolean (yes/no/true/false/1/0/on/off), got '{raw}'")
    if field_type is int:
        try:
            number = int(raw.strip())
        except ValueError:
            raise ValueError(f"expected a non-negative integer, got '{raw}'")
        if number < 0:
            raise ValueError(f"expected a non-negative integer, got '{raw}'")
        return number
    if not raw:
        raise ValueError("expected a non-empty value")
    return raw


def parse_config_text(text: str, path: str = DEFAULT_CONFIG_PATH) -> Dict[str, Any]:
    """
    Parse key=value lines into a dict of RunConfig overrides.

    Raises ConfigError on the first malformed line; nothing is returned
    in that case so the caller never applies a partial set of overrides.
    """
    overrides = {}
    for line_number, line in enumerate(text.splitlines(), start=1):
        stripped = line.strip()
        if not stripped or stripped.startswith("#"):
            continue
        if stripped.startswith("export "):
            stripped = stripped[len("export "):].lstrip()
        if "=" not in stripped:
            raise ConfigError(f"expected key=value, got '{stripped}'", path, line_number)

        key, raw_value = stripped.split("=", 1)
        key = normalize_key(key)
        if not key:
            raise ConfigError("empty key", path, line_number)
        if not key.isidentifier():
            raise ConfigError(f"invalid key '{key}'", path, line_number)

        try:
            tokens = shlex.split(raw_value, comments=True)
        except ValueError as e:
            raise ConfigError(f"cannot parse value for '{key}': {e}", path, line_number)
        if len(tokens) > 1:
            raise ConfigError(f"value for '{key}' must be a single word or quoted", path, line_number)
        value = tokens[0] if tokens else ""

        if key not in CONFIG_FIELDS:
            log_message(f"Ignoring unknown configuration key '{key}' ({path}:{line_number})", "DEBUG")
            continue

        try:
            overrides[key] = parse_value(key, value)
        except ValueError as e:
            raise ConfigError(f"invalid value for '{key}': {e}", path, line_number)

    return overrides


def load_config(path: str = DEFAULT_CONFIG_PATH) -> RunConfig:
    """Load the run configuration from `path`, falling back to defaults if it does not exist."""
    defaults = RunConfig()
    if not os.path.exists(path):
        log_message(f"Configuration file {path} not found; using default settings", "WARNING")
        return defaults

    try:
        with open(path, 'r') as f:
            text = f.read()
    except (OSError, UnicodeDecodeError) as e:
        raise ConfigError(f"cannot read configuration: {e}", path)

    overrides = parse_config_text(text, path)
    log_message(f"Loaded configuration from {path} ({len(overrides)} settings)")
    return replace(defaults, **overrides)

# SPDX-FileCopyrightText: 2026 The spawnbox authors
#
# SPDX-License-Identifier: GPL-3.0-or-later

"""Layered configuration.

Configuration is read from (highest to lowest priority):

1. ``$XDG_CONFIG_HOME/spawnbox/config.toml`` (``~/.config`` by default)
2. ``/etc/spawnbox/config.toml``
3. ``/usr/lib/spawnbox/config.toml``

Keys from a higher-priority file replace the same keys from a lower one.
``SPAWN_RUNTIME_DIR`` in the environment overrides ``runtime_dir``.
"""

from __future__ import annotations

import logging
import os
import tomllib
from collections.abc import Mapping
from pathlib import Path
from typing import Any

from pydantic import BaseModel, ConfigDict, ValidationError as PydanticValidationError

from .errors import ValidationError

logger = logging.getLogger(__name__)

SYSTEM_CONFIG_PATHS = (
    Path("/etc/spawnbox/config.toml"),
    Path("/usr/lib/spawnbox/config.toml"),
)

RUNTIME_DIR_ENV = "SPAWN_RUNTIME_DIR"


class SpawnConfig(BaseModel):
    """Validated settings."""

    model_config = ConfigDict(extra="forbid")

    sudo: str = "sudo"
    docker: str = "docker"
    nspawn: str = "systemd-nspawn"
    runtime_dir: str | None = None
    default_shell: str = "/bin/sh"
    backend_args: list[str] = []


def user_config_path(home_dir: str | None = None, env: Mapping[str, str] | None = None) -> Path:
    env = os.environ if env is None else env
    xdg = env.get("XDG_CONFIG_HOME")
    if xdg:
        return Path(xdg) / "spawnbox" / "config.toml"
    home = home_dir or env.get("HOME") or os.path.expanduser("~")
    return Path(home) / ".config" / "spawnbox" / "config.toml"


def _read_toml(path: Path) -> dict[str, Any]:
    try:
        with path.open("rb") as f:
            return tomllib.load(f)
    except FileNotFoundError:
        return {}
    except (OSError, tomllib.TOMLDecodeError) as e:
        raise ValidationError(f"Unable to read config file {path}: {e}") from e


def load_config(
    home_dir: str | None = None,
    env: Mapping[str, str] | None = None,
    paths: list[Path] | None = None,
) -> SpawnConfig:
    """Load and merge the configuration files.

    Args:
        home_dir: Home directory used to locate the user config file.
        env: Environment to consult (defaults to ``os.environ``).
        paths: Files to read, highest priority first.  Defaults to the
            user file followed by :data:`SYSTEM_CONFIG_PATHS`.
    """
    env = os.environ if env is None else env
    if paths is None:
        paths = [user_config_path(home_dir, env), *SYSTEM_CONFIG_PATHS]

    merged: dict[str, Any] = {}
    for path in reversed(paths):
        data = _read_toml(path)
        if data:
            logger.debug("loaded config from %s", path)
        merged.update(data)

    override = env.get(RUNTIME_DIR_ENV)
    if override:
        merged["runtime_dir"] = override

    try:
        return SpawnConfig.model_validate(merged)
    except PydanticValidationError as e:
        raise ValidationError(f"Invalid configuration: {e}") from e

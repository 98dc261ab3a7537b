# SPDX-FileCopyrightText: 2026 The spawnbox authors
#
# SPDX-License-Identifier: GPL-3.0-or-later

"""Tests for layered configuration loading."""

from __future__ import annotations

from pathlib import Path

import pytest

from spawnbox.core.config import SpawnConfig, load_config, user_config_path
from spawnbox.core.errors import ValidationError


def test_defaults_without_files(tmp_path: Path) -> None:
    assert load_config(env={}, paths=[tmp_path / "missing.toml"]) == SpawnConfig()


def test_higher_priority_file_wins(tmp_path: Path) -> None:
    user = tmp_path / "user.toml"
    system = tmp_path / "system.toml"
    user.write_text('docker = "podman"\n')
    system.write_text('docker = "nerdctl"\nsudo = "doas"\nbackend_args = ["--init"]\n')

    config = load_config(env={}, paths=[user, system])

    assert config.docker == "podman"
    assert config.sudo == "doas"
    assert config.backend_args == ["--init"]


def test_runtime_dir_env_override(tmp_path: Path) -> None:
    cfg = tmp_path / "c.toml"
    cfg.write_text('runtime_dir = "/from/file"\n')
    config = load_config(env={"SPAWN_RUNTIME_DIR": "/from/env"}, paths=[cfg])
    assert config.runtime_dir == "/from/env"


@pytest.mark.parametrize("text", ["docker = [", 'unknown_key = 1\n', 'backend_args = "not-a-list"\n'])
def test_invalid_files(tmp_path: Path, text: str) -> None:
    cfg = tmp_path / "bad.toml"
    cfg.write_text(text)
    with pytest.raises(ValidationError):
        load_config(env={}, paths=[cfg])


def test_user_config_location(tmp_path: Path) -> None:
    assert user_config_path(env={"XDG_CONFIG_HOME": "/xdg"}) == Path("/xdg/spawnbox/config.toml")
    assert user_config_path(str(tmp_path), env={}) == tmp_path / ".config" / "spawnbox" / "config.toml"

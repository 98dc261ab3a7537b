# SPDX-FileCopyrightText: 2026 The spawnbox authors
#
# SPDX-License-Identifier: GPL-3.0-or-later

"""Binder: PulseAudio (or PipeWire's pulse server) access."""

from __future__ import annotations

import os
import shutil
import stat
import subprocess

from ..context import PROGRAM_DIR, SpawnContext
from ..errors import ResourceMissingError
from . import binder_pipeline, preflight_pipeline

PULSE_SOCKET_PATH = f"{PROGRAM_DIR}/pulse-native"
PULSE_COOKIE_NAME = "pulse-cookie"


def _cookie_path(ctx: SpawnContext) -> str | None:
    explicit = ctx.env.get("PULSE_COOKIE")
    if explicit:
        return explicit if os.path.isfile(explicit) else None
    home = ctx.env.get("HOME") or os.path.expanduser("~")
    config_home = ctx.env.get("XDG_CONFIG_HOME") or os.path.join(home, ".config")
    for candidate in (os.path.join(config_home, "pulse", "cookie"), os.path.join(home, ".pulse-cookie")):
        if os.path.isfile(candidate):
            return candidate
    return None


def parse_server_string(pactl_info: str) -> str | None:
    """Extract the unix socket path from ``pactl info`` output."""
    for line in pactl_info.splitlines():
        key, sep, value = line.partition(":")
        if sep and key.strip() == "Server String":
            value = value.strip()
            if value.startswith("unix:"):
                value = value[len("unix:"):]
            return value if value.startswith("/") else None
    return None


def _server_socket(ctx: SpawnContext) -> str:
    server = ctx.env.get("PULSE_SERVER", "")
    if server.startswith("unix:"):
        path: str | None = server[len("unix:"):]
    else:
        result = subprocess.run(
            ["pactl", "info"],
            capture_output=True,
            text=True,
            env={**ctx.env, "LC_ALL": "C"},
        )
        if result.returncode != 0:
            raise ResourceMissingError(f"pactl info failed: {result.stderr.strip()}")
        path = parse_server_string(result.stdout)
    if not path:
        raise ResourceMissingError("Could not determine the audio server socket from pactl info")
    try:
        mode = os.stat(path).st_mode
    except FileNotFoundError:
        raise ResourceMissingError(f"Audio server socket {path} does not exist")
    if not stat.S_ISSOCK(mode):
        raise ResourceMissingError(f"Audio server path {path} is not a socket")
    return path


@preflight_pipeline.step(order=600)
async def check_pulseaudio(ctx: SpawnContext) -> None:
    if not ctx.request.pulseaudio:
        return
    if shutil.which("pactl") is None and not ctx.env.get("PULSE_SERVER", "").startswith("unix:"):
        raise ResourceMissingError("pactl is required to locate the audio server but was not found")
    if _cookie_path(ctx) is None:
        raise ResourceMissingError("PulseAudio cookie not found (set PULSE_COOKIE or create ~/.config/pulse/cookie)")
    _server_socket(ctx)


@binder_pipeline.step(order=600)
async def bind_pulseaudio(ctx: SpawnContext) -> None:
    """Copy the cookie and publish the server socket at a fixed path."""
    if not ctx.request.pulseaudio:
        return
    assert ctx.runtime_dir is not None
    socket_path = _server_socket(ctx)
    cookie = _cookie_path(ctx)
    if cookie is None:
        raise ResourceMissingError("PulseAudio cookie disappeared")

    staged = os.path.join(ctx.runtime_dir, PULSE_COOKIE_NAME)
    shutil.copyfile(cookie, staged)
    os.chmod(staged, 0o644 if ctx.uid_differs else 0o600)

    ctx.bind(socket_path, PULSE_SOCKET_PATH, created_by="pulseaudio")
    ctx.setenv("PULSE_SERVER", f"unix:{PULSE_SOCKET_PATH}")
    ctx.setenv("PULSE_COOKIE", f"{ctx.env_runtime_dir}/{PULSE_COOKIE_NAME}")

# SPDX-FileCopyrightText: 2026 The spawnbox authors
#
# SPDX-License-Identifier: GPL-3.0-or-later

"""Binder: X11 display access."""

from __future__ import annotations

import os
import shutil
import subprocess

from ..context import SpawnContext
from ..errors import ResourceMissingError
from . import binder_pipeline, preflight_pipeline

X11_SOCKET_DIR = "/tmp/.X11-unix"
XAUTHORITY_NAME = "Xauthority"

# Address family 0xffff (FamilyWild) matches any hostname.
_WILDCARD_FAMILY = "ffff"


def wildcard_cookies(nlist_output: str) -> str:
    """Rewrite ``xauth nlist`` lines so the cookie is valid for any host.

    The environment's hostname differs from the host's, so a cookie bound
    to the host's address family and name would never match there.
    """
    lines = [line for line in nlist_output.splitlines() if line.strip()]
    return "".join(_WILDCARD_FAMILY + line[4:] + "\n" for line in lines)


@preflight_pipeline.step(order=500)
async def check_x11(ctx: SpawnContext) -> None:
    if not ctx.request.x11:
        return
    if not ctx.env.get("DISPLAY"):
        raise ResourceMissingError("DISPLAY is not set; is an X server running?")
    if not os.path.isdir(X11_SOCKET_DIR):
        raise ResourceMissingError(f"X11 socket directory {X11_SOCKET_DIR} does not exist")
    if shutil.which("xauth") is None:
        raise ResourceMissingError("xauth is required for X11 forwarding but was not found")


@binder_pipeline.step(order=500)
async def bind_x11(ctx: SpawnContext) -> None:
    """Stage a wildcard Xauthority file and share the X socket directory."""
    if not ctx.request.x11:
        return
    display = ctx.env["DISPLAY"]
    assert ctx.runtime_dir is not None

    result = subprocess.run(
        ["xauth", "nlist", display],
        capture_output=True,
        text=True,
    )
    cookies = wildcard_cookies(result.stdout) if result.returncode == 0 else ""
    if not cookies:
        raise ResourceMissingError(f"No X11 authentication cookie found for display {display}")

    xauth_file = os.path.join(ctx.runtime_dir, XAUTHORITY_NAME)
    open(xauth_file, "a").close()
    result = subprocess.run(
        ["xauth", "-f", xauth_file, "nmerge", "-"],
        input=cookies,
        capture_output=True,
        text=True,
    )
    if result.returncode != 0:
        raise ResourceMissingError(f"Unable to write {xauth_file}: {result.stderr.strip()}")
    if ctx.uid_differs:
        os.chmod(xauth_file, 0o644)

    ctx.bind(X11_SOCKET_DIR, X11_SOCKET_DIR, created_by="x11")
    ctx.setenv("DISPLAY", display)
    ctx.setenv("XAUTHORITY", f"{ctx.env_runtime_dir}/{XAUTHORITY_NAME}")

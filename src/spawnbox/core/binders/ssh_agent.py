# SPDX-FileCopyrightText: 2026 The spawnbox authors
#
# SPDX-License-Identifier: GPL-3.0-or-later

"""Binder: forward the host's SSH agent socket."""

from __future__ import annotations

import os
import stat

from ..context import PROGRAM_DIR, SpawnContext
from ..errors import ResourceMissingError
from . import binder_pipeline, preflight_pipeline

SSH_AGENT_PATH = f"{PROGRAM_DIR}/ssh-agent.sock"


def _agent_socket(ctx: SpawnContext) -> str:
    sock = ctx.env.get("SSH_AUTH_SOCK", "")
    if not sock:
        raise ResourceMissingError("SSH_AUTH_SOCK is not set; is an SSH agent running?")
    try:
        mode = os.stat(sock).st_mode
    except FileNotFoundError:
        raise ResourceMissingError(f"SSH agent socket {sock} does not exist")
    if not stat.S_ISSOCK(mode):
        raise ResourceMissingError(f"SSH_AUTH_SOCK ({sock}) is not a socket")
    return sock


@preflight_pipeline.step(order=400)
async def check_ssh_agent(ctx: SpawnContext) -> None:
    if ctx.request.ssh_agent:
        _agent_socket(ctx)


@binder_pipeline.step(order=400)
async def bind_ssh_agent(ctx: SpawnContext) -> None:
    if not ctx.request.ssh_agent:
        return
    sock = _agent_socket(ctx)
    if ctx.uid_differs:
        # Ownership can't follow the socket across the uid mapping.
        ctx.warning(f"Making {sock} accessible to other users so uid {ctx.identity.uid} can use it")
        ctx.runner.run(["chmod", "a+rw", sock])
    ctx.bind(sock, SSH_AGENT_PATH, created_by="ssh-agent")
    ctx.setenv("SSH_AUTH_SOCK", SSH_AGENT_PATH)

# SPDX-FileCopyrightText: 2026 The spawnbox authors
#
# SPDX-License-Identifier: GPL-3.0-or-later

"""Binder: share ``~/.ssh`` read-only."""

from __future__ import annotations

import os

from ..context import SpawnContext
from ..errors import ResourceMissingError, ValidationError
from . import binder_pipeline, preflight_pipeline
from .home import home_destination


def _host_ssh_dir(ctx: SpawnContext) -> str:
    home = ctx.env.get("HOME") or os.path.expanduser("~")
    return os.path.join(home, ".ssh")


@preflight_pipeline.step(order=450)
async def check_ssh_dir(ctx: SpawnContext) -> None:
    if not ctx.request.ssh_dir:
        return
    source = _host_ssh_dir(ctx)
    if not os.path.isdir(source):
        raise ResourceMissingError(f"SSH directory {source} does not exist")
    if home_destination(ctx) is None:
        raise ValidationError(
            f"Cannot place ~/.ssh: home directory of '{ctx.identity.name}' is unknown"
        )


@binder_pipeline.step(order=450)
async def bind_ssh_dir(ctx: SpawnContext) -> None:
    if not ctx.request.ssh_dir:
        return
    home = home_destination(ctx)
    assert home is not None  # checked in preflight
    dest = os.path.join(home, ".ssh")
    ctx.bind(_host_ssh_dir(ctx), dest, ("ro",), created_by="ssh-dir")

# SPDX-FileCopyrightText: 2026 The spawnbox authors
#
# SPDX-License-Identifier: GPL-3.0-or-later

"""Binder: substitute a host directory for the user's home.

Runs before ``--bind-dir`` so that binds below the home directory are
mounted on top of it, not hidden underneath.
"""

from __future__ import annotations

import os

from ..context import SpawnContext
from ..errors import ResourceMissingError, ValidationError
from . import binder_pipeline, preflight_pipeline


def home_destination(ctx: SpawnContext) -> str | None:
    """Where the remapped home lands: explicit dest, else the user's home."""
    home = ctx.request.bind_home
    if home is not None and home.dest:
        return home.dest
    return ctx.identity.home


@preflight_pipeline.step(order=180)
async def check_home(ctx: SpawnContext) -> None:
    home = ctx.request.bind_home
    if home is None:
        return
    if not os.path.isdir(home.source):
        raise ResourceMissingError(f"Home directory source does not exist: {home.source}")
    if home_destination(ctx) is None:
        raise ValidationError(
            f"Cannot determine the home directory of '{ctx.identity.name}' inside "
            f"{ctx.target.identifier}; use --bind-home {home.source}:<dest>"
        )


@binder_pipeline.step(order=180)
async def bind_home(ctx: SpawnContext) -> None:
    home = ctx.request.bind_home
    if home is None:
        return
    dest = home_destination(ctx)
    assert dest is not None  # checked in preflight
    ctx.info(f"Home: {home.source} -> {dest}")
    ctx.bind(home.source, dest, created_by="bind-home")
    ctx.setenv("HOME", dest)

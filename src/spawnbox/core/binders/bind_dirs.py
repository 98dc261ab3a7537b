# SPDX-FileCopyrightText: 2026 The spawnbox authors
#
# SPDX-License-Identifier: GPL-3.0-or-later

"""Binder: arbitrary ``--bind-dir`` mounts."""

from __future__ import annotations

import os

from ..context import SpawnContext
from ..errors import ResourceMissingError
from . import binder_pipeline, preflight_pipeline

WORKDIR_ENV = "SPAWN_WORKDIR"


@preflight_pipeline.step(order=200)
async def check_bind_dirs(ctx: SpawnContext) -> None:
    for spec in ctx.request.bind_dirs:
        if not os.path.exists(spec.source):
            raise ResourceMissingError(f"Bind source does not exist: {spec.source}")


@binder_pipeline.step(order=200)
async def bind_dirs(ctx: SpawnContext) -> None:
    """Mount each ``--bind-dir``; the first one becomes the working directory."""
    for index, spec in enumerate(ctx.request.bind_dirs):
        ctx.info(f"Bind: {spec.source} -> {spec.dest}")
        ctx.bind(spec.source, spec.dest, spec.options, created_by="bind-dir")
        if index == 0:
            ctx.workdir = spec.dest
            ctx.setenv(WORKDIR_ENV, spec.dest)

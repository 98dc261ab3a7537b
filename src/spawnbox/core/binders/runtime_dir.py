# SPDX-FileCopyrightText: 2026 The spawnbox authors
#
# SPDX-License-Identifier: GPL-3.0-or-later

"""Binder: create the per-invocation runtime directory."""

from __future__ import annotations

import os
import tempfile

from ..context import SpawnContext
from ..errors import ResourceMissingError
from . import binder_pipeline, preflight_pipeline


def _base_dir(ctx: SpawnContext) -> str:
    return ctx.config.runtime_dir or ctx.env.get("XDG_RUNTIME_DIR") or tempfile.gettempdir()


@preflight_pipeline.step(order=100)
async def check_runtime_dir(ctx: SpawnContext) -> None:
    base = _base_dir(ctx)
    if not os.path.isdir(base):
        raise ResourceMissingError(f"Runtime directory {base} does not exist")


@binder_pipeline.step(order=100)
async def create_runtime_dir(ctx: SpawnContext) -> None:
    """Create the private directory and publish it as ``XDG_RUNTIME_DIR``.

    The raw chroot backend mounts it itself once the device tree is in
    place; the other backends get a bind spec here.
    """
    path = tempfile.mkdtemp(prefix="spawn.", dir=_base_dir(ctx))
    ctx.ledger.set_temp_dir(path)
    ctx.runtime_dir = path
    ctx.dim(f"Runtime directory: {path}")

    if ctx.uid_differs:
        # The mapped user has to be able to read the staged files.
        os.chmod(path, 0o755)

    ctx.setenv("XDG_RUNTIME_DIR", ctx.env_runtime_dir)
    if ctx.backend.native_binds:
        ctx.bundle.bind(path, ctx.env_runtime_dir)

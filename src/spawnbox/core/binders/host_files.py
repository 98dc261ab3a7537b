# SPDX-FileCopyrightText: 2026 The spawnbox authors
#
# SPDX-License-Identifier: GPL-3.0-or-later

"""Binder: host time zone and DNS configuration for raw chroots.

systemd-nspawn and container engines provide these themselves.
"""

from __future__ import annotations

import os

from ..context import SpawnContext
from ..models import TargetKind
from . import binder_pipeline

HOST_FILES = ("/etc/resolv.conf", "/etc/localtime")


@binder_pipeline.step(order=700)
async def bind_host_files(ctx: SpawnContext) -> None:
    if ctx.target.kind is not TargetKind.CHROOT_ROOT:
        return
    for path in HOST_FILES:
        if not os.path.exists(path):
            continue
        target = ctx.root_path(path)
        if os.path.islink(target):
            # A symlink would be resolved against the host's tree.
            ctx.dim(f"Not sharing {path}: {target} is a symlink")
            continue
        ctx.bind(path, path, ("ro",), created_by="host-files")

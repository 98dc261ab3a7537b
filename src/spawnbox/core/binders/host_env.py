# SPDX-FileCopyrightText: 2026 The spawnbox authors
#
# SPDX-License-Identifier: GPL-3.0-or-later

"""Binder: carry terminal and locale settings into the environment."""

from __future__ import annotations

from ..context import SpawnContext
from . import binder_pipeline

PASSTHROUGH_ENV = ("TERM", "COLORTERM", "LANG", "LANGUAGE")


def _passthrough(key: str) -> bool:
    return key in PASSTHROUGH_ENV or key.startswith("LC_")


@binder_pipeline.step(order=150)
async def propagate_host_env(ctx: SpawnContext) -> None:
    for key in sorted(ctx.env):
        if not _passthrough(key):
            continue
        value = ctx.env[key]
        if "\n" in value or "\x00" in value:
            continue
        ctx.setenv(key, value)

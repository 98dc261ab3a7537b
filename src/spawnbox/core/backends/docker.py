# SPDX-FileCopyrightText: 2026 The spawnbox authors
#
# SPDX-License-Identifier: GPL-3.0-or-later

"""Container engine backend (``docker run``)."""

from __future__ import annotations

from typing import TYPE_CHECKING

from ..assembler import shell_argv
from ..errors import ValidationError
from ..models import BindSpec, EnvAssignment, TargetKind
from .base import Backend

if TYPE_CHECKING:
    from ..context import SpawnContext


class DockerBackend(Backend):
    kind = TargetKind.CONTAINER
    name = "docker"

    def required_tools(self) -> list[str]:
        return [self.config.docker]

    def translate_env(self, entry: EnvAssignment) -> list[str]:
        return ["--env", f"{entry.key}={entry.value}"]

    def translate_bind(self, entry: BindSpec) -> list[str]:
        if ":" in entry.source or ":" in entry.dest:
            raise ValidationError(f"docker cannot bind paths containing ':' ({entry.source} -> {entry.dest})")
        volume = f"{entry.source}:{entry.dest}"
        if entry.options:
            volume += ":" + ",".join(entry.options)
        return ["--volume", volume]

    def build_argv(self, ctx: SpawnContext, script: str) -> list[str]:
        argv = [self.config.docker, "run", "--rm"]
        if not ctx.request.command:
            argv.append("-it")

        identity = ctx.identity
        if identity.userspec is not None:
            argv.extend(["--user", identity.userspec])
        elif identity.name != "root":
            argv.extend(["--user", identity.name])
        if ctx.request.arch:
            argv.extend(["--platform", f"linux/{ctx.request.arch}"])
        if ctx.workdir:
            argv.extend(["--workdir", ctx.workdir])

        argv.extend(self.translate(ctx.bundle))
        argv.extend(self.extra_args(ctx))
        argv.append(self.target.identifier)
        argv.extend(shell_argv(script, self.config.default_shell))
        return argv

    async def run(self, ctx: SpawnContext, script: str) -> int:
        argv = self.build_argv(ctx, script)
        ctx.info(f"Running {self.target.identifier} with {self.config.docker}")
        return ctx.runner.execute(argv)

# SPDX-FileCopyrightText: 2026 The spawnbox authors
#
# SPDX-License-Identifier: GPL-3.0-or-later

"""Namespace-root backend (``systemd-nspawn``).

systemd-nspawn builds the namespaces, ``/dev``, ``/proc`` and the rest
itself; this driver only translates the bundle into its flags.
"""

from __future__ import annotations

from typing import TYPE_CHECKING

from ..assembler import shell_argv
from ..models import BindSpec, EnvAssignment, TargetKind
from .base import Backend

if TYPE_CHECKING:
    from ..context import SpawnContext

_X86_32 = ("i386", "i486", "i586", "i686", "x86")


def _escape(path: str) -> str:
    return path.replace("\\", "\\\\").replace(":", "\\:")


class NspawnBackend(Backend):
    kind = TargetKind.NAMESPACE_ROOT
    name = "nspawn"

    def required_tools(self) -> list[str]:
        return [self.config.nspawn]

    def translate_env(self, entry: EnvAssignment) -> list[str]:
        return [f"--setenv={entry.key}={entry.value}"]

    def translate_bind(self, entry: BindSpec) -> list[str]:
        flag = "--bind-ro" if entry.read_only else "--bind"
        rest = [o for o in entry.options if o != "ro"]
        value = f"{_escape(entry.source)}:{_escape(entry.dest)}"
        if rest:
            value += ":" + ",".join(rest)
        return [f"{flag}={value}"]

    def build_argv(self, ctx: SpawnContext, script: str) -> list[str]:
        argv = [self.config.nspawn, "--quiet", f"--directory={self.target.identifier}"]
        if ctx.identity.uid != 0:
            argv.append(f"--user={ctx.identity.name}")
        if ctx.workdir:
            argv.append(f"--chdir={ctx.workdir}")
        arch = ctx.request.arch
        if arch in _X86_32:
            argv.append("--personality=x86")
        elif arch:
            ctx.warning(f"systemd-nspawn cannot emulate '{arch}'; ignoring --arch")

        argv.extend(self.translate(ctx.bundle))
        argv.extend(self.extra_args(ctx))
        argv.append("--")
        argv.extend(shell_argv(script, self.config.default_shell))
        return argv

    async def run(self, ctx: SpawnContext, script: str) -> int:
        argv = self.build_argv(ctx, script)
        ctx.info(f"Starting {self.target.identifier} with systemd-nspawn")
        return ctx.runner.execute(argv)

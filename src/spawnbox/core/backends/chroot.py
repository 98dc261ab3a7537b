# SPDX-FileCopyrightText: 2026 The spawnbox authors
#
# SPDX-License-Identifier: GPL-3.0-or-later

"""Raw chroot backend.

The fallback when systemd-nspawn isn't installed, and the only driver
that builds the environment by hand: ``/dev`` and ``/sys`` are mounted
under the root (every mount goes through the ledger), then
``unshare`` enters new mount and PID namespaces, mounts a fresh
``/proc`` and chroots as the target user.
"""

from __future__ import annotations

import os
from dataclasses import dataclass
from typing import TYPE_CHECKING

from ..assembler import shell_argv
from ..ledger import missing_paths
from ..models import BindSpec, EnvAssignment, TargetKind
from .base import Backend

if TYPE_CHECKING:
    from ..context import SpawnContext


@dataclass(frozen=True)
class DeviceNode:
    name: str
    major: int
    minor: int
    mode: str


DEVICE_NODES = (
    DeviceNode("null", 1, 3, "666"),
    DeviceNode("zero", 1, 5, "666"),
    DeviceNode("random", 1, 8, "666"),
    DeviceNode("urandom", 1, 9, "666"),
    DeviceNode("tty", 5, 0, "666"),
    DeviceNode("console", 5, 1, "600"),
)

# (link name, link target) inside /dev
DEVICE_LINKS = (
    ("fd", "/proc/self/fd"),
    ("stdin", "/proc/self/fd/0"),
    ("stdout", "/proc/self/fd/1"),
    ("stderr", "/proc/self/fd/2"),
    ("ptmx", "pts/ptmx"),
)

STOPPED_JOB_HINT = (
    "Signals don't cross the namespace boundary cleanly: if the shell "
    "stops in the background, bring it back with 'fg'."
)


class ChrootBackend(Backend):
    kind = TargetKind.CHROOT_ROOT
    name = "chroot"
    native_binds = False

    def required_tools(self) -> list[str]:
        return ["chroot", "unshare", "mount", "umount"]

    def translate_env(self, entry: EnvAssignment) -> list[str]:
        # Arguments to env(1) inside the chroot.
        return [f"{entry.key}={entry.value}"]

    def translate_bind(self, entry: BindSpec) -> list[str]:
        flag = "--rbind" if "rbind" in entry.options else "--bind"
        return ["mount", flag, entry.source, self.root_path(entry.dest)]

    def root_path(self, dest: str) -> str:
        return os.path.join(self.target.identifier, dest.lstrip("/"))

    # -------------------------------------------------------------------------
    # Staging
    # -------------------------------------------------------------------------

    def make_mountpoint(self, ctx: SpawnContext, target: str, directory: bool = True) -> list[str]:
        """Create *target* under the root; returns what had to be created."""
        created = missing_paths(target)
        if directory:
            ctx.runner.run(["mkdir", "-p", target])
        else:
            ctx.runner.run(["mkdir", "-p", os.path.dirname(target)])
            ctx.runner.run(["touch", target])
        return created

    def stage_bind(self, ctx: SpawnContext, spec: BindSpec, created_by: str) -> None:
        target = self.root_path(spec.dest)
        created = self.make_mountpoint(ctx, target, directory=os.path.isdir(spec.source))
        recursive = "rbind" in spec.options
        ctx.ledger.mount(
            ctx.runner, self.translate_bind(spec), target, created_by, recursive=recursive, created=created
        )
        if spec.read_only:
            ctx.runner.run(["mount", "-o", "remount,bind,ro", target])

    def _share_tree(self, ctx: SpawnContext, host_path: str, created_by: str) -> None:
        """Recursively bind a host tree; slave so host mount events don't leak back."""
        target = self.root_path(host_path)
        created = self.make_mountpoint(ctx, target)
        ctx.ledger.mount(
            ctx.runner, ["mount", "--rbind", host_path, target], target, created_by, recursive=True, created=created
        )
        ctx.runner.run(["mount", "--make-rslave", target])

    def build_dev(self, ctx: SpawnContext) -> None:
        """Build a private, minimal ``/dev`` on a tmpfs."""
        dev = self.root_path("/dev")
        run = ctx.runner.run
        created = self.make_mountpoint(ctx, dev)
        ctx.ledger.mount(
            ctx.runner, ["mount", "-t", "tmpfs", "-o", "mode=755,nosuid", "tmpfs", dev], dev, "dev", created=created
        )

        shm = os.path.join(dev, "shm")
        pts = os.path.join(dev, "pts")
        run(["mkdir", "-p", shm, pts])
        ctx.ledger.mount(
            ctx.runner,
            ["mount", "-t", "tmpfs", "-o", "mode=1777,nosuid,nodev", "shm", shm],
            shm,
            "dev",
        )
        ctx.ledger.mount(
            ctx.runner,
            ["mount", "-t", "devpts", "-o", "newinstance,ptmxmode=0666,mode=620", "devpts", pts],
            pts,
            "dev",
        )

        for name, link_target in DEVICE_LINKS:
            run(["ln", "-sfn", link_target, os.path.join(dev, name)])
        for node in DEVICE_NODES:
            run(["mknod", "-m", node.mode, os.path.join(dev, node.name), "c", str(node.major), str(node.minor)])

    def mount_sys(self, ctx: SpawnContext) -> None:
        if ctx.request.share_devices:
            self._share_tree(ctx, "/sys", "sys")
            return
        sys_dir = self.root_path("/sys")
        created = self.make_mountpoint(ctx, sys_dir)
        ctx.ledger.mount(
            ctx.runner,
            ["mount", "-t", "sysfs", "-o", "ro,nosuid,nodev,noexec", "sysfs", sys_dir],
            sys_dir,
            "sys",
            created=created,
        )

    def mount_runtime_dir(self, ctx: SpawnContext) -> None:
        if ctx.runtime_dir is None:
            return
        target = self.root_path(ctx.env_runtime_dir)
        created = self.make_mountpoint(ctx, target)
        ctx.ledger.mount(
            ctx.runner, ["mount", "--bind", ctx.runtime_dir, target], target, "runtime-dir", created=created
        )

    def stage(self, ctx: SpawnContext) -> None:
        if ctx.request.share_devices:
            self._share_tree(ctx, "/dev", "dev")
        else:
            self.build_dev(ctx)
        self.mount_sys(ctx)
        self.mount_runtime_dir(ctx)
        ctx.runner.run(["mkdir", "-p", self.root_path("/proc")])

    # -------------------------------------------------------------------------
    # Execution
    # -------------------------------------------------------------------------

    def build_argv(self, ctx: SpawnContext, script: str) -> list[str]:
        root = self.target.identifier
        argv = [
            "unshare", "--mount", "--pid", "--fork",
            f"--mount-proc={self.root_path('/proc')}",
        ]
        if ctx.request.arch:
            argv.extend(["setarch", ctx.request.arch])
        # Only the primary gid is applied; supplementary groups are not.
        argv.extend(["chroot", f"--userspec={ctx.identity.userspec or '0:0'}", root])
        argv.append("env")
        argv.extend(self.translate(ctx.bundle))
        argv.extend(shell_argv(script, self.config.default_shell))
        return argv

    async def run(self, ctx: SpawnContext, script: str) -> int:
        self.stage(ctx)
        argv = self.build_argv(ctx, script)
        if not ctx.request.command:
            ctx.dim(STOPPED_JOB_HINT)
        ctx.info(f"Entering {self.target.identifier} with chroot")
        return ctx.runner.execute(argv)

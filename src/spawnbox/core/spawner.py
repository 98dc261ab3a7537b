# SPDX-FileCopyrightText: 2026 The spawnbox authors
#
# SPDX-License-Identifier: GPL-3.0-or-later

"""Spawn orchestration.

:meth:`Spawner.spawn` drives one invocation through its phases::

    select backend -> validate tool -> resolve identity -> preflight
    -> lock (directory targets) -> binders -> assemble -> run
    -> (always) drain ledger -> (always) unlock

Everything up to and including preflight only reads host state, so a
failure there leaves nothing behind.  From the lock onward, the ledger
scope drains and unlocks on every exit path.  SIGTERM/SIGHUP unwind
setup and the workload; teardown holds them back until it is done.
"""

from __future__ import annotations

import functools
import logging
import os
import shutil
from collections.abc import Mapping

from .assembler import assemble_command
from .backends import create_backend
from .backends.base import Which
from .backends.selector import select_target
from .binders import binder_pipeline, preflight_pipeline
from .config import SpawnConfig
from .context import Reporter, SpawnContext
from .identity import resolve_identity
from .ledger import MountLedger, cleanup_stale_mounts
from .locking import LockManager
from .options import SpawnRequest
from .runner import CommandRunner
from .signals import raise_on_termination

logger = logging.getLogger(__name__)


class Spawner:
    """Runs spawn, unlock and cleanup operations.

    Args:
        runner: Privilege strategy for every host mutation.
        config: Loaded configuration.
        progress: Optional reporter for user-facing progress.
        env: Host environment (defaults to ``os.environ``).
        which: Executable lookup, injectable for tests.
        program: Program name used in lock file names.
        mounts_file: Mount table consulted by :meth:`cleanup`.
    """

    def __init__(
        self,
        runner: CommandRunner,
        config: SpawnConfig,
        *,
        progress: Reporter | None = None,
        env: Mapping[str, str] | None = None,
        which: Which | None = None,
        program: str = "spawn",
        mounts_file: str = "/proc/self/mounts",
        invoking_uid: int | None = None,
    ):
        self.runner = runner
        self.config = config
        self.progress = progress
        self.env = os.environ if env is None else env
        self.which = which or shutil.which
        self.locks = LockManager(runner, program=program)
        self.mounts_file = mounts_file
        self.invoking_uid = os.getuid() if invoking_uid is None else invoking_uid
        self.last_context: SpawnContext | None = None

    async def spawn(self, request: SpawnRequest) -> int:
        """Run *request* and return the workload's exit status."""
        target = select_target(request, self.config, self.which)
        backend = create_backend(target, self.config)
        backend.validate(self.which)
        identity = resolve_identity(
            request.user,
            target.kind,
            target.identifier if target.kind.is_directory else None,
        )
        logger.debug("identity: %s", identity)

        ledger = MountLedger()
        ctx = SpawnContext(
            target=target,
            backend=backend,
            identity=identity,
            request=request,
            runner=self.runner,
            ledger=ledger,
            config=self.config,
            env=self.env,
            invoking_uid=self.invoking_uid,
            progress=self.progress,
        )
        self.last_context = ctx

        await preflight_pipeline.run(ctx)

        with raise_on_termination():
            release = None
            if backend.uses_lock:
                self.locks.acquire(target.identifier)
                release = functools.partial(self.locks.release, target.identifier)
            with ledger.scope(self.runner, on_exit=release):
                await binder_pipeline.run(ctx)
                script = assemble_command(request.command, ctx.workdir)
                return await backend.run(ctx, script)

    def unlock(self, root: str) -> None:
        """Remove the lock marker for *root* and nothing else."""
        root = os.path.abspath(root)
        self.locks.release(root)
        if self.progress:
            self.progress.info(f"Unlocked {root}")

    def cleanup(self, root: str) -> list[str]:
        """Unmount leftovers of a crashed invocation under *root*, then unlock."""
        root = os.path.abspath(root)
        with raise_on_termination():
            attempted = cleanup_stale_mounts(root, self.runner, self.mounts_file)
            self.locks.release(root)
        if self.progress:
            self.progress.info(f"Cleaned up {root}")
        return attempted

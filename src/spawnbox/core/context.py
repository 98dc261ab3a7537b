# SPDX-FileCopyrightText: 2026 The spawnbox authors
#
# SPDX-License-Identifier: GPL-3.0-or-later

"""Context passed through the binder pipelines and into a backend."""

from __future__ import annotations

import logging
import os
from collections.abc import Mapping
from dataclasses import dataclass, field
from typing import TYPE_CHECKING, Protocol

from .config import SpawnConfig
from .ledger import MountLedger
from .models import BindSpec, EnvironmentBundle, Identity, SpawnTarget
from .options import SpawnRequest
from .runner import CommandRunner

if TYPE_CHECKING:
    from .backends.base import Backend

logger = logging.getLogger(__name__)

PROGRAM_DIR = "/run/spawn"


class Reporter(Protocol):
    def info(self, msg: str) -> None: ...
    def dim(self, msg: str) -> None: ...
    def warning(self, msg: str) -> None: ...


@dataclass
class SpawnContext:
    """Everything one invocation knows about itself.

    Binders append to ``bundle``; on the raw chroot backend they mount
    directly and record the mount in ``ledger`` instead.  Binders should
    guard their own preconditions (e.g. check ``request.x11`` first).
    """

    target: SpawnTarget
    backend: "Backend"
    identity: Identity
    request: SpawnRequest
    runner: CommandRunner
    ledger: MountLedger
    config: SpawnConfig
    env: Mapping[str, str]
    invoking_uid: int
    progress: Reporter | None = None

    bundle: EnvironmentBundle = field(default_factory=EnvironmentBundle)
    # Host path of the per-invocation runtime directory, once created.
    runtime_dir: str | None = None
    # First bind destination; the initial cwd inside the environment.
    workdir: str | None = None

    def info(self, msg: str) -> None:
        logger.info(msg)
        if self.progress:
            self.progress.info(msg)

    def dim(self, msg: str) -> None:
        logger.debug(msg)
        if self.progress:
            self.progress.dim(msg)

    def warning(self, msg: str) -> None:
        logger.warning(msg)
        if self.progress:
            self.progress.warning(msg)

    @property
    def uid_differs(self) -> bool:
        """Whether the workload runs as someone other than the invoker."""
        return self.identity.uid != self.invoking_uid

    @property
    def env_runtime_dir(self) -> str:
        """Where the runtime directory appears inside the environment."""
        if self.identity.uid is None:
            return f"{PROGRAM_DIR}/runtime"
        return f"/run/user/{self.identity.uid}"

    def root_path(self, dest: str) -> str:
        """Host path of *dest* inside a directory target."""
        return os.path.join(self.target.identifier, dest.lstrip("/"))

    def setenv(self, key: str, value: str) -> None:
        self.bundle.setenv(key, value)

    def bind(
        self,
        source: str,
        dest: str,
        options: tuple[str, ...] = (),
        *,
        created_by: str,
    ) -> None:
        """Share *source* at *dest* inside the environment.

        Native-bind backends get a :class:`BindSpec`; the raw chroot
        backend mounts it under the root right away and records the
        mount in the ledger.
        """
        if self.backend.native_binds:
            self.bundle.bind(source, dest, options)
        else:
            self.backend.stage_bind(self, BindSpec(source, dest, options), created_by)

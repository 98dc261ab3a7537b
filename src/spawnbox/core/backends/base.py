# SPDX-FileCopyrightText: 2026 The spawnbox authors
#
# SPDX-License-Identifier: GPL-3.0-or-later

"""Backend driver interface.

A backend turns the generic :class:`EnvironmentBundle` into one isolation
technology's invocation.  ``translate_env`` and ``translate_bind`` map
single entries; :meth:`Backend.translate` walks the bundle in order and
rejects anything that is neither, so a new entry type cannot silently
fall through.
"""

from __future__ import annotations

import shutil
from abc import ABC, abstractmethod
from collections.abc import Callable
from typing import TYPE_CHECKING, ClassVar

from ..config import SpawnConfig
from ..errors import BackendNotFoundError
from ..models import BindSpec, EnvAssignment, EnvironmentBundle, SpawnTarget, TargetKind

if TYPE_CHECKING:
    from ..context import SpawnContext

Which = Callable[[str], "str | None"]


class Backend(ABC):
    """One isolation technology."""

    kind: ClassVar[TargetKind]
    name: ClassVar[str]
    # Whether bind specs can be handed to the tool as arguments.
    native_binds: ClassVar[bool] = True

    def __init__(self, target: SpawnTarget, config: SpawnConfig):
        if target.kind is not self.kind:
            raise ValueError(f"{type(self).__name__} cannot run a {target.kind.value} target")
        self.target = target
        self.config = config

    @property
    def uses_lock(self) -> bool:
        """Directory targets are shared mutable state and need the lock."""
        return self.kind.is_directory

    @abstractmethod
    def required_tools(self) -> list[str]:
        """Executables that must be on PATH, the driving tool first."""

    @property
    def tool(self) -> str:
        return self.required_tools()[0]

    def validate(self, which: Which = shutil.which) -> None:
        """Raise :class:`BackendNotFoundError` if a required tool is missing."""
        for tool in self.required_tools():
            if which(tool) is None:
                raise BackendNotFoundError(tool, self.name)

    @abstractmethod
    def translate_env(self, entry: EnvAssignment) -> list[str]: ...

    @abstractmethod
    def translate_bind(self, entry: BindSpec) -> list[str]: ...

    def translate(self, bundle: EnvironmentBundle) -> list[str]:
        args: list[str] = []
        for entry in bundle:
            if isinstance(entry, EnvAssignment):
                args.extend(self.translate_env(entry))
            elif isinstance(entry, BindSpec):
                args.extend(self.translate_bind(entry))
            else:
                raise TypeError(f"Unsupported bundle entry: {entry!r}")
        return args

    def stage_bind(self, ctx: SpawnContext, spec: BindSpec, created_by: str) -> None:
        """Mount *spec* immediately; only for backends without native binds."""
        raise NotImplementedError(f"{self.name} passes binds as arguments")

    def extra_args(self, ctx: SpawnContext) -> list[str]:
        return [*self.config.backend_args, *ctx.request.backend_args]

    @abstractmethod
    async def run(self, ctx: SpawnContext, script: str) -> int:
        """Stage whatever the backend needs and run *script*.

        Returns:
            The workload's exit status.
        """

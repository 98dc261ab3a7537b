# SPDX-FileCopyrightText: 2026 The spawnbox authors
#
# SPDX-License-Identifier: GPL-3.0-or-later

"""Ordered async steps run against one :class:`SpawnContext`.

spawnbox has two pipelines, both declared in :mod:`spawnbox.core.binders`:
``preflight`` (read-only checks, before the root is locked) and
``binders`` (staging files, environment and binds, after it).  Every
feature module registers one step with each, so adding a feature means
adding a module and importing it there.
"""

from __future__ import annotations

import logging
from collections.abc import Awaitable, Callable, Iterator
from dataclasses import dataclass
from typing import Generic, TypeVar

_Ctx = TypeVar("_Ctx")

_StepFn = Callable[[_Ctx], Awaitable[None]]

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class Step(Generic[_Ctx]):
    order: int
    seq: int
    fn: _StepFn[_Ctx]

    @property
    def name(self) -> str:
        return self.fn.__name__


class Pipeline(Generic[_Ctx]):
    """Steps sorted by ``order``, then by registration.

    The order numbers of the two binder pipelines match per feature
    (``runtime_dir`` is 100, ``home`` 180, ``bind_dirs`` 200 and so on),
    and the chroot backend mounts binds in exactly this sequence, so a
    step whose mounts may contain another step's must come first.
    """

    def __init__(self, name: str) -> None:
        self.name = name
        self._steps: list[Step[_Ctx]] = []

    def step(self, *, order: int) -> Callable[[_StepFn[_Ctx]], _StepFn[_Ctx]]:
        """Decorator registering an async step at *order*."""
        def _register(fn: _StepFn[_Ctx]) -> _StepFn[_Ctx]:
            self._steps.append(Step(order, len(self._steps), fn))
            return fn
        return _register

    def _ordered(self) -> Iterator[Step[_Ctx]]:
        return iter(sorted(self._steps, key=lambda s: (s.order, s.seq)))

    def names(self) -> list[str]:
        return [s.name for s in self._ordered()]

    async def run(self, ctx: _Ctx) -> None:
        """Run every step; the first exception ends the run."""
        for s in self._ordered():
            logger.debug("%s: %s", self.name, s.name)
            await s.fn(ctx)

    def __len__(self) -> int:
        return len(self._steps)

    def __repr__(self) -> str:
        steps = ", ".join(f"{s.name}({s.order})" for s in self._ordered())
        return f"Pipeline({self.name!r}, [{steps}])"

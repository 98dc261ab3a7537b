# SPDX-FileCopyrightText: 2026 The spawnbox authors
#
# SPDX-License-Identifier: GPL-3.0-or-later

"""Typer app that accepts ``async def`` commands."""

from __future__ import annotations

import asyncio
import inspect
from functools import wraps
from typing import Any, Callable

import typer


class AsyncTyper(typer.Typer):
    """Runs coroutine commands to completion with :func:`asyncio.run`."""

    def command(self, *args: Any, **kwargs: Any) -> Callable[[Callable[..., Any]], Callable[..., Any]]:
        decorator = super().command(*args, **kwargs)

        def register(func: Callable[..., Any]) -> Callable[..., Any]:
            if inspect.iscoroutinefunction(func):

                @wraps(func)
                def sync_func(*a: Any, **kw: Any) -> Any:
                    return asyncio.run(func(*a, **kw))

                decorator(sync_func)
            else:
                decorator(func)
            return func

        return register

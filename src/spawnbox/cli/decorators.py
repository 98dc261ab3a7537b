# SPDX-FileCopyrightText: 2026 The spawnbox authors
#
# SPDX-License-Identifier: GPL-3.0-or-later

"""Decorators for CLI commands."""

from functools import wraps
from typing import Callable, Coroutine, TypeVar

import typer

from ..core.errors import SpawnError
from .output import out

R = TypeVar("R")


def handle_errors(func: Callable[..., Coroutine[None, None, R]]) -> Callable[..., Coroutine[None, None, R]]:
    """Decorator that reports SpawnError as one line and exits with its code.

    The message itself carries any remedy (``--cleanup``, another
    backend), so nothing else is printed.
    """
    @wraps(func)
    async def wrapper(*args: object, **kwargs: object) -> R:
        try:
            return await func(*args, **kwargs)
        except SpawnError as e:
            out.error(str(e))
            raise typer.Exit(e.exit_code)
    return wrapper

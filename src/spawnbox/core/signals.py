# SPDX-FileCopyrightText: 2026 The spawnbox authors
#
# SPDX-License-Identifier: GPL-3.0-or-later

"""Signal handling around an invocation.

While mounts are being set up or the workload runs, SIGTERM and SIGHUP
are turned into :class:`Interrupted` so the ``finally`` blocks unwind.
Teardown itself is never cut short: there SIGINT, SIGTERM and SIGHUP
are held back and re-raised once it is done.
"""

from __future__ import annotations

import logging
import signal
import threading
from collections.abc import Iterator
from contextlib import contextmanager
from types import FrameType

from .errors import Interrupted

logger = logging.getLogger(__name__)

TERMINATING_SIGNALS = (signal.SIGTERM, signal.SIGHUP)
DEFERRED_SIGNALS = (signal.SIGINT, signal.SIGTERM, signal.SIGHUP)


def _in_main_thread() -> bool:
    # signal.signal() only works there.
    return threading.current_thread() is threading.main_thread()


@contextmanager
def raise_on_termination() -> Iterator[None]:
    """Turn SIGTERM/SIGHUP into :class:`Interrupted` for the block's duration."""
    if not _in_main_thread():
        yield
        return

    def _handler(signum: int, _frame: FrameType | None) -> None:
        raise Interrupted(signum)

    previous = {sig: signal.signal(sig, _handler) for sig in TERMINATING_SIGNALS}
    try:
        yield
    finally:
        for sig, handler in previous.items():
            signal.signal(sig, handler)


@contextmanager
def defer_termination() -> Iterator[None]:
    """Hold SIGINT/SIGTERM/SIGHUP until the block is done.

    The first signal received is raised as :class:`Interrupted` after
    the block completes normally.  If the block raises, that exception
    wins.
    """
    if not _in_main_thread():
        yield
        return

    received: list[int] = []

    def _handler(signum: int, _frame: FrameType | None) -> None:
        logger.debug("deferring signal %d until teardown is done", signum)
        received.append(signum)

    previous = {sig: signal.signal(sig, _handler) for sig in DEFERRED_SIGNALS}
    try:
        yield
    finally:
        for sig, handler in previous.items():
            signal.signal(sig, handler)
    if received:
        raise Interrupted(received[0])

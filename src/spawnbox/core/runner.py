# SPDX-FileCopyrightText: 2026 The spawnbox authors
#
# SPDX-License-Identifier: GPL-3.0-or-later

"""Privilege strategies for the commands that mutate the host.

Every mount, mknod, chroot or container invocation goes through a
:class:`CommandRunner`.  Which runner is used is decided once by the
caller (see :func:`make_runner`) and injected, so the rest of the core
never inspects the terminal or the effective uid itself.
"""

from __future__ import annotations

import logging
import os
import shlex
import signal
import subprocess
import threading
from abc import ABC, abstractmethod
from collections.abc import Callable, Iterator, Sequence
from contextlib import contextmanager

from .errors import PrivilegedCommandError

logger = logging.getLogger(__name__)


@contextmanager
def _foreground_child() -> Iterator[None]:
    """Leave Ctrl-C and Ctrl-\\ to the foreground child while it runs."""
    if threading.current_thread() is not threading.main_thread():
        yield
        return
    previous = {
        sig: signal.signal(sig, signal.SIG_IGN) for sig in (signal.SIGINT, signal.SIGQUIT)
    }
    try:
        yield
    finally:
        for sig, handler in previous.items():
            signal.signal(sig, handler)


class CommandRunner(ABC):
    """Runs privileged commands."""

    dry_run = False

    @abstractmethod
    def run(
        self,
        argv: Sequence[str],
        *,
        check: bool = True,
        input: str | None = None,
    ) -> subprocess.CompletedProcess[str]:
        """Run *argv* to completion with captured output.

        Raises:
            PrivilegedCommandError: if *check* is set and the command fails.
        """

    @abstractmethod
    def execute(self, argv: Sequence[str]) -> int:
        """Run *argv* in the foreground with inherited stdio; return its status."""


class _ElevatingRunner(CommandRunner):
    """Shared subprocess plumbing; subclasses choose the prefix."""

    def prefix(self) -> list[str]:
        return []

    def run(
        self,
        argv: Sequence[str],
        *,
        check: bool = True,
        input: str | None = None,
    ) -> subprocess.CompletedProcess[str]:
        full = [*self.prefix(), *argv]
        logger.debug("run: %s", shlex.join(full))
        try:
            result = subprocess.run(full, capture_output=True, text=True, input=input)
        except FileNotFoundError as e:
            raise PrivilegedCommandError(full, 127, str(e)) from e
        if check and result.returncode != 0:
            raise PrivilegedCommandError(full, result.returncode, result.stderr)
        return result

    def execute(self, argv: Sequence[str]) -> int:
        full = [*self.prefix(), *argv]
        logger.debug("exec: %s", shlex.join(full))
        try:
            proc = subprocess.Popen(full)
        except FileNotFoundError as e:
            raise PrivilegedCommandError(full, 127, str(e)) from e
        # Ignoring after the fork keeps the child's own dispositions intact.
        with _foreground_child():
            try:
                return proc.wait()
            except BaseException:
                proc.terminate()
                proc.wait()
                raise


class DirectRunner(_ElevatingRunner):
    """For a process that already has the privileges it needs."""


class SudoRunner(_ElevatingRunner):
    """Prefix every command with sudo.

    Args:
        interactive: Whether sudo may prompt for a password.  When false,
            ``-n`` makes sudo fail instead of blocking on a prompt.
        sudo: The sudo executable.
    """

    def __init__(self, interactive: bool, sudo: str = "sudo"):
        self.interactive = interactive
        self.sudo = sudo

    def prefix(self) -> list[str]:
        if self.interactive:
            return [self.sudo]
        return [self.sudo, "-n"]


class DryRunRunner(CommandRunner):
    """Print commands instead of running them.

    Every command is recorded in :attr:`commands` and reported as
    successful, so the caller's control flow and ledger bookkeeping are
    exactly what a real run would do.
    """

    dry_run = True

    def __init__(self, echo: Callable[[str], None] | None = None):
        self.commands: list[list[str]] = []
        self._echo = echo

    def _record(self, argv: Sequence[str]) -> None:
        self.commands.append(list(argv))
        if self._echo is not None:
            self._echo(shlex.join(argv))

    def run(
        self,
        argv: Sequence[str],
        *,
        check: bool = True,
        input: str | None = None,
    ) -> subprocess.CompletedProcess[str]:
        self._record(argv)
        return subprocess.CompletedProcess(list(argv), 0, "", "")

    def execute(self, argv: Sequence[str]) -> int:
        self._record(argv)
        return 0


def make_runner(
    *,
    dry_run: bool,
    interactive: bool,
    sudo: str = "sudo",
    echo: Callable[[str], None] | None = None,
    euid: int | None = None,
) -> CommandRunner:
    """Pick the runner for this invocation."""
    if dry_run:
        return DryRunRunner(echo=echo)
    if (os.geteuid() if euid is None else euid) == 0:
        return DirectRunner()
    return SudoRunner(interactive=interactive, sudo=sudo)

# SPDX-FileCopyrightText: 2026 The spawnbox authors
#
# SPDX-License-Identifier: GPL-3.0-or-later

"""User-facing output for the spawn CLI.

Everything goes to stderr so that the workload owns stdout.  Messages
coming from the core are escaped.
"""

from __future__ import annotations

import os
from typing import TextIO

from rich.console import Console
from rich.markup import escape

PROG_NAME_ENV = "SPAWN_PROG_NAME"


class Output:
    def __init__(self, prog_name: str | None = None):
        self.prog_name = prog_name or os.environ.get(PROG_NAME_ENV, "spawn")
        self.console = Console(stderr=True, soft_wrap=True, highlight=False)

    def use_stream(self, stream: TextIO) -> None:
        """Send all further output to *stream*."""
        self.console = Console(file=stream, soft_wrap=True, highlight=False)

    def use_original_stderr(self) -> None:
        """Write to a duplicate of fd 2 taken now.

        The workload may redirect or close the shared descriptor; the
        duplicate keeps error reporting working until we exit.
        """
        self.use_stream(os.fdopen(os.dup(2), "w", buffering=1, closefd=True))

    def info(self, msg: str) -> None:
        self.console.print(escape(msg))

    def dim(self, msg: str) -> None:
        self.console.print(escape(msg), style="dim")

    def warning(self, msg: str) -> None:
        self.console.print(f"[yellow]{escape(self.prog_name)}: warning:[/yellow] {escape(msg)}")

    def error(self, msg: str) -> None:
        self.console.print(f"[bold red]{escape(self.prog_name)}: error:[/bold red] {escape(msg)}")

    def success(self, msg: str) -> None:
        self.console.print(f"[green]{escape(msg)}[/green]")

    def command(self, cmdline: str) -> None:
        """Echo a command that a dry run would have executed."""
        self.console.print(f"[cyan]+[/cyan] {escape(cmdline)}")


out = Output()

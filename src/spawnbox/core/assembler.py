# SPDX-FileCopyrightText: 2026 The spawnbox authors
#
# SPDX-License-Identifier: GPL-3.0-or-later

"""Build the command line that runs inside the environment.

The result is a ``/bin/sh -c`` script.  Every user-supplied token is
quoted on its own, because the script is parsed once more by the shell
inside the environment after the backend has passed it through.
"""

from __future__ import annotations

import shlex
from collections.abc import Sequence

# Prefer bash when the environment has it; either way a login shell.
LOGIN_SHELL = (
    "if command -v bash >/dev/null 2>&1; then exec bash -l; else exec sh -l; fi"
)


def assemble_command(command: Sequence[str] | None, workdir: str | None = None) -> str:
    """Return the script to run inside the environment.

    Args:
        command: The user's command; empty or ``None`` for a login shell.
        workdir: Directory to change into first.  ``None`` keeps the
            backend's default directory.
    """
    parts: list[str] = []
    if workdir:
        parts.append(f"cd {shlex.quote(workdir)}")
    if command:
        parts.append("exec " + " ".join(shlex.quote(token) for token in command))
    else:
        parts.append(LOGIN_SHELL)
    return " && ".join(parts)


def shell_argv(script: str, shell: str = "/bin/sh") -> list[str]:
    return [shell, "-c", script]

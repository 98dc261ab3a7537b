# SPDX-FileCopyrightText: 2026 The spawnbox authors
#
# SPDX-License-Identifier: GPL-3.0-or-later

"""Error taxonomy for spawn operations.

Every failure the core raises derives from :class:`SpawnError`, which
carries the process exit code the CLI should use.
"""

from __future__ import annotations

from collections.abc import Sequence


class SpawnError(Exception):
    """Base class for all spawn failures."""

    exit_code = 2


class ValidationError(SpawnError):
    """Missing or ambiguous target, bad flag combination, or bad input."""


class BackendNotFoundError(ValidationError):
    """The external tool a backend depends on is not installed."""

    def __init__(self, tool: str, backend: str):
        super().__init__(
            f"{backend} backend requires '{tool}', which was not found in PATH; "
            "install it or pick another backend with --using-*"
        )
        self.tool = tool
        self.backend = backend


class ResourceMissingError(SpawnError):
    """A host socket, file or environment variable a feature needs is absent."""


class LockConflictError(SpawnError):
    """The target root directory is already locked by another invocation."""

    def __init__(self, root: str, lock_file: str):
        super().__init__(
            f"{root} is locked by another invocation "
            f"(if it is stale, run again with --cleanup or --unlock; marker: {lock_file})"
        )
        self.root = root
        self.lock_file = lock_file


class PrivilegedCommandError(SpawnError):
    """An elevated command exited unsuccessfully."""

    def __init__(self, argv: Sequence[str], returncode: int, stderr: str = ""):
        detail = f": {stderr.strip()}" if stderr and stderr.strip() else ""
        super().__init__(f"'{' '.join(argv)}' failed with exit code {returncode}{detail}")
        self.argv = list(argv)
        self.returncode = returncode
        self.stderr = stderr


class Interrupted(SpawnError):
    """The invocation received a termination signal."""

    def __init__(self, signum: int):
        super().__init__(f"interrupted by signal {signum}")
        self.signum = signum

# SPDX-FileCopyrightText: 2026 The spawnbox authors
#
# SPDX-License-Identifier: GPL-3.0-or-later

"""Advisory per-root lock files.

A root directory ``/srv/root`` is locked by the marker file
``/srv/.spawn.root.lock``.  The marker sits next to the root rather
than inside it so that bind-mounting over the root cannot hide it.
The lock is only a convention between spawn invocations; nothing in the
kernel enforces it.
"""

from __future__ import annotations

import logging
import os

from .errors import LockConflictError, PrivilegedCommandError
from .runner import CommandRunner

logger = logging.getLogger(__name__)

DEFAULT_PROGRAM = "spawn"


def lock_path(root: str, program: str = DEFAULT_PROGRAM) -> str:
    """Marker path for *root*: ``<root>/../.<program>.<basename>.lock``."""
    root = os.path.normpath(os.path.abspath(root))
    parent, base = os.path.split(root)
    return os.path.join(parent, f".{program}.{base}.lock")


class LockManager:
    """Create and remove lock markers, elevating only when it has to."""

    def __init__(self, runner: CommandRunner, program: str = DEFAULT_PROGRAM):
        self._runner = runner
        self._program = program

    def path(self, root: str) -> str:
        return lock_path(root, self._program)

    def is_locked(self, root: str) -> bool:
        return os.path.lexists(self.path(root))

    def acquire(self, root: str) -> str:
        """Take the lock for *root*.

        Returns:
            The marker path.

        Raises:
            LockConflictError: if a marker already exists.
        """
        marker = self.path(root)
        if os.path.lexists(marker):
            raise LockConflictError(root, marker)

        if self._runner.dry_run:
            self._create_elevated(root, marker)
            return marker

        try:
            fd = os.open(marker, os.O_WRONLY | os.O_CREAT | os.O_EXCL, 0o644)
        except FileExistsError:
            raise LockConflictError(root, marker)
        except PermissionError:
            self._create_elevated(root, marker)
        else:
            with os.fdopen(fd, "w") as f:
                f.write(f"{os.getpid()}\n")
        logger.debug("locked %s (%s)", root, marker)
        return marker

    def _create_elevated(self, root: str, marker: str) -> None:
        # noclobber turns the redirect into an O_EXCL create.
        script = 'set -C; echo "$2" > "$1"'
        try:
            self._runner.run(["sh", "-c", script, "sh", marker, str(os.getpid())])
        except PrivilegedCommandError:
            if os.path.lexists(marker):
                raise LockConflictError(root, marker)
            raise

    def release(self, root: str) -> None:
        """Remove the marker for *root*; a missing marker is not an error."""
        marker = self.path(root)
        if self._runner.dry_run:
            self._runner.run(["rm", "-f", marker])
            return
        try:
            os.unlink(marker)
        except FileNotFoundError:
            pass
        except PermissionError:
            self._runner.run(["rm", "-f", marker])
        logger.debug("unlocked %s", root)

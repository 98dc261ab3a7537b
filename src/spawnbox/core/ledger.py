# SPDX-FileCopyrightText: 2026 The spawnbox authors
#
# SPDX-License-Identifier: GPL-3.0-or-later

"""Mount ledger and cleanup coordinator.

The ledger is the single source of truth for what has to be undone:
a :class:`MountRecord` is appended only after its mount command has
succeeded, and :meth:`MountLedger.drain` unwinds the records in reverse
order (later mounts may sit inside earlier ones), removing any
mountpoint that was created for a mount right after it, and finally
removes the invocation's temporary runtime directory.
"""

from __future__ import annotations

import logging
import os
import shutil
from collections.abc import Callable, Iterator, Sequence
from contextlib import contextmanager
from pathlib import Path

from .errors import PrivilegedCommandError, SpawnError
from .models import MountRecord
from .runner import CommandRunner
from .signals import defer_termination

logger = logging.getLogger(__name__)

# Relative to a root directory, in the order they have to be unmounted.
CONVENTIONAL_MOUNTPOINTS = (
    "proc",
    "dev/pts",
    "dev/shm",
    "dev",
    "sys",
    "tmp/.X11-unix",
    "etc/resolv.conf",
    "etc/localtime",
)

# Directories whose immediate children may be per-invocation mountpoints.
CONVENTIONAL_MOUNT_PARENTS = (
    "run/spawn",
    "run/user",
)

_NOT_MOUNTED_MARKERS = (
    "not mounted",
    "no mount point specified",
    "no such file or directory",
    "not found",
)


def _is_not_mounted(stderr: str) -> bool:
    lowered = stderr.lower()
    return any(marker in lowered for marker in _NOT_MOUNTED_MARKERS)


def unmount(runner: CommandRunner, path: str, recursive: bool = False) -> bool:
    """Unmount *path*; an already-unmounted path counts as success.

    Returns:
        True if the path is no longer mounted.
    """
    argv = ["umount", "-R", path] if recursive else ["umount", path]
    result = runner.run(argv, check=False)
    if result.returncode == 0:
        return True
    if _is_not_mounted(result.stderr or ""):
        logger.debug("%s was not mounted", path)
        return True
    logger.error("failed to unmount %s: %s", path, (result.stderr or "").strip())
    return False


class MountLedger:
    """Mounts and the temporary runtime directory created by one invocation."""

    def __init__(self) -> None:
        self.records: list[MountRecord] = []
        self.temp_dir: str | None = None
        self._drained = False

    def record(
        self,
        path: str,
        created_by: str,
        recursive: bool = False,
        created: Sequence[str] = (),
    ) -> MountRecord:
        entry = MountRecord(path=path, created_by=created_by, recursive=recursive, created=tuple(created))
        self.records.append(entry)
        return entry

    def mount(
        self,
        runner: CommandRunner,
        argv: Sequence[str],
        target: str,
        created_by: str,
        *,
        recursive: bool = False,
        created: Sequence[str] = (),
    ) -> MountRecord:
        """Run a mount command and record *target* once it succeeded.

        *created* lists mountpoints made for this mount (see
        :func:`missing_paths`).  They are removed again after the
        unmount, or right away if the mount fails.
        """
        try:
            runner.run(argv)
        except BaseException:
            remove_placeholders(runner, created)
            raise
        return self.record(target, created_by, recursive=recursive, created=created)

    def bind(
        self,
        runner: CommandRunner,
        source: str,
        target: str,
        created_by: str,
        *,
        read_only: bool = False,
        recursive: bool = False,
    ) -> MountRecord:
        flag = "--rbind" if recursive else "--bind"
        record = self.mount(runner, ["mount", flag, source, target], target, created_by, recursive=recursive)
        if read_only:
            runner.run(["mount", "-o", "remount,bind,ro", target])
        return record

    def set_temp_dir(self, path: str) -> None:
        self.temp_dir = path

    @property
    def drained(self) -> bool:
        return self._drained

    def drain(self, runner: CommandRunner) -> None:
        """Undo everything recorded, newest first.  Safe to call twice.

        Every record and the temporary directory are processed even when
        an unmount fails or is interrupted; the first interruption is
        re-raised at the end.

        Raises:
            PrivilegedCommandError: if any mount could not be removed.
        """
        if self._drained:
            return
        self._drained = True

        failed: list[str] = []
        interrupted: BaseException | None = None
        while self.records:
            entry = self.records.pop()
            logger.debug("unmounting %s (%s)", entry.path, entry.created_by)
            try:
                if unmount(runner, entry.path, recursive=entry.recursive):
                    remove_placeholders(runner, entry.created)
                else:
                    failed.append(entry.path)
            except BaseException as e:
                logger.error("interrupted while unmounting %s: %s", entry.path, e)
                failed.append(entry.path)
                if interrupted is None:
                    interrupted = e

        leftover: str | None = None
        if self.temp_dir is not None:
            try:
                shutil.rmtree(self.temp_dir)
                logger.debug("removed %s", self.temp_dir)
            except FileNotFoundError:
                pass
            except OSError as e:
                logger.error("failed to remove %s: %s", self.temp_dir, e)
                leftover = self.temp_dir
            self.temp_dir = None

        if interrupted is not None:
            raise interrupted
        if failed:
            raise PrivilegedCommandError(["umount", *failed], 1, "some mounts could not be removed")
        if leftover is not None:
            raise SpawnError(f"Could not remove temporary directory {leftover}")

    @contextmanager
    def scope(
        self,
        runner: CommandRunner,
        on_exit: Callable[[], None] | None = None,
    ) -> Iterator[MountLedger]:
        """Drain on every exit path of the ``with`` block, then call *on_exit*.

        SIGINT, SIGTERM and SIGHUP are held back until both are done.
        """
        try:
            yield self
        finally:
            with defer_termination():
                try:
                    self.drain(runner)
                finally:
                    if on_exit is not None:
                        on_exit()


def _exists(path: str) -> bool:
    try:
        os.lstat(path)
    except FileNotFoundError:
        return False
    except OSError:
        # Unreadable counts as existing, so it is never removed.
        return True
    return True


def missing_paths(path: str) -> list[str]:
    """*path* and its ancestors that don't exist yet, deepest first.

    These are what ``mkdir -p`` (or ``touch``) will create for a
    mountpoint, and what has to be removed again afterwards.
    """
    missing: list[str] = []
    current = os.path.normpath(path)
    while not _exists(current):
        missing.append(current)
        parent = os.path.dirname(current)
        if parent == current:
            break
        current = parent
    return missing


def remove_placeholders(runner: CommandRunner, paths: Sequence[str]) -> None:
    """Remove mountpoints created on demand, deepest first.

    ``rm -d`` only removes empty directories, so anything the workload
    left behind stays.
    """
    if not paths:
        return
    result = runner.run(["rm", "-d", "--", *paths], check=False)
    if result.returncode != 0:
        logger.debug("left placeholders in place: %s", (result.stderr or "").strip())


def _decode_mount_path(raw: str) -> str:
    # /proc/mounts escapes space, tab, newline and backslash as octal.
    return (
        raw.replace("\\040", " ")
        .replace("\\011", "\t")
        .replace("\\012", "\n")
        .replace("\\134", "\\")
    )


def mountpoints_under(root: str, mounts_file: str = "/proc/self/mounts") -> list[str]:
    """Mountpoints strictly below *root*, deepest first."""
    root = os.path.normpath(root)
    prefix = root.rstrip("/") + "/"
    found: list[str] = []
    try:
        with open(mounts_file, encoding="utf-8") as f:
            for line in f:
                fields = line.split()
                if len(fields) < 2:
                    continue
                point = _decode_mount_path(fields[1])
                if point.startswith(prefix) and point not in found:
                    found.append(point)
    except FileNotFoundError:
        logger.debug("%s not available", mounts_file)
    return sorted(found, key=lambda p: (p.count("/"), p), reverse=True)


def cleanup_stale_mounts(
    root: str,
    runner: CommandRunner,
    mounts_file: str = "/proc/self/mounts",
) -> list[str]:
    """Unmount whatever a crashed invocation left under *root*.

    No ledger is needed: everything the mount table lists below *root*
    is removed deepest first, then the conventional mountpoints are
    unmounted in case the mount table was unavailable.

    Returns:
        The paths that were attempted, in order.

    Raises:
        PrivilegedCommandError: if a mounted path could not be removed.
    """
    attempted: list[str] = []
    failed: list[str] = []

    def _try(path: str, recursive: bool) -> None:
        if path in attempted:
            return
        attempted.append(path)
        if not unmount(runner, path, recursive=recursive):
            failed.append(path)

    for point in mountpoints_under(root, mounts_file):
        _try(point, recursive=False)

    base = Path(root)
    for parent in CONVENTIONAL_MOUNT_PARENTS:
        parent_dir = base / parent
        if parent_dir.is_dir():
            for child in sorted(parent_dir.iterdir(), reverse=True):
                _try(str(child), recursive=True)
    for rel in CONVENTIONAL_MOUNTPOINTS:
        _try(str(base / rel), recursive=rel in ("dev", "sys"))

    if failed:
        raise PrivilegedCommandError(["umount", *failed], 1, "stale mounts could not be removed")
    return attempted

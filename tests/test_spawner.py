# SPDX-FileCopyrightText: 2026 The spawnbox authors
#
# SPDX-License-Identifier: GPL-3.0-or-later

"""End-to-end spawn, unlock and cleanup flows with a recording runner."""

from __future__ import annotations

import asyncio
import os
import signal
from pathlib import Path

import pytest

from spawnbox.core import Spawner
from spawnbox.core.config import SpawnConfig
from spawnbox.core.errors import Interrupted, LockConflictError, PrivilegedCommandError, ResourceMissingError
from spawnbox.core.locking import lock_path
from spawnbox.core.models import BindSpec
from spawnbox.core.options import HomeBind, SpawnRequest
from spawnbox.core.runner import CommandRunner, DryRunRunner

from .conftest import RecordingRunner, SilentReporter


def no_nspawn(tool: str) -> str | None:
    return None if tool == "systemd-nspawn" else f"/usr/bin/{tool}"


@pytest.fixture
def make_spawner(runtime_base: Path, reporter: SilentReporter, tmp_path: Path):
    def _make(runner: CommandRunner, **env: str) -> Spawner:
        return Spawner(
            runner,
            SpawnConfig(),
            progress=reporter,
            env={"XDG_RUNTIME_DIR": str(runtime_base), **env},
            which=no_nspawn,
            mounts_file=str(tmp_path / "mounts"),
            invoking_uid=0,
        )

    return _make


def chroot_request(root: Path, *command: str) -> SpawnRequest:
    return SpawnRequest(directory=str(root), user="0", command=list(command))


class TestChrootFallback:
    def test_lock_held_only_while_running(
        self, make_spawner, runner: RecordingRunner, fake_root: Path, runtime_base: Path
    ) -> None:
        marker = lock_path(str(fake_root))
        observed: list[bool] = []
        runner.on_execute = lambda argv: observed.append(os.path.exists(marker))
        spawner = make_spawner(runner)

        status = asyncio.run(spawner.spawn(chroot_request(fake_root, "true")))

        assert status == 0
        assert observed == [True]
        assert not os.path.exists(marker)
        argv = runner.executed[0]
        assert argv[:4] == ["unshare", "--mount", "--pid", "--fork"]
        assert argv[-3:] == ["/bin/sh", "-c", "exec true"]
        assert any(c[0] == "mknod" for c in runner.commands)

    def test_everything_is_undone(self, make_spawner, runner: RecordingRunner, fake_root: Path, runtime_base: Path) -> None:
        spawner = make_spawner(runner)
        asyncio.run(spawner.spawn(chroot_request(fake_root)))

        ctx = spawner.last_context
        assert ctx is not None
        assert ctx.ledger.drained and ctx.ledger.records == []
        assert list(runtime_base.iterdir()) == []
        mounted = [c[-1] for c in runner.commands if c[0] == "mount" and "-o" not in c[1:2]
                   and "--make-rslave" not in c]
        unmounted = [c[-1] for c in runner.commands if c[0] == "umount"]
        assert sorted(mounted) == sorted(unmounted)

    def test_workload_status_is_returned(self, make_spawner, runner: RecordingRunner, fake_root: Path) -> None:
        runner.exit_status = 42
        assert asyncio.run(make_spawner(runner).spawn(chroot_request(fake_root, "false"))) == 42

    def test_failure_midway_still_cleans_up(
        self, make_spawner, runner: RecordingRunner, fake_root: Path, runtime_base: Path
    ) -> None:
        runner.fail(lambda argv: argv[0] == "mknod" and argv[3].endswith("/tty"))
        spawner = make_spawner(runner)

        with pytest.raises(PrivilegedCommandError, match="mknod"):
            asyncio.run(spawner.spawn(chroot_request(fake_root, "true")))

        assert runner.executed == []
        assert spawner.last_context.ledger.records == []
        assert list(runtime_base.iterdir()) == []
        assert not os.path.exists(lock_path(str(fake_root)))

    def test_interrupt_during_workload(self, make_spawner, runner: RecordingRunner, fake_root: Path) -> None:
        def terminated(argv: list[str]) -> None:
            raise Interrupted(signal.SIGTERM)

        runner.on_execute = terminated
        spawner = make_spawner(runner)

        with pytest.raises(Interrupted):
            asyncio.run(spawner.spawn(chroot_request(fake_root, "sleep", "100")))

        assert spawner.last_context.ledger.records == []
        assert not os.path.exists(lock_path(str(fake_root)))


    def test_interrupt_during_teardown_still_undoes_everything(
        self, make_spawner, runner: RecordingRunner, fake_root: Path, runtime_base: Path
    ) -> None:
        runner.raise_once(lambda argv: argv[0] == "umount", Interrupted(signal.SIGTERM))
        spawner = make_spawner(runner)

        with pytest.raises(Interrupted):
            asyncio.run(spawner.spawn(chroot_request(fake_root, "true")))

        ledger = spawner.last_context.ledger
        assert ledger.records == []
        mounts = [c for c in runner.commands if c[0] == "mount" and c[1] in ("-t", "--bind", "--rbind")]
        assert len([c for c in runner.commands if c[0] == "umount"]) == len(mounts)
        assert list(runtime_base.iterdir()) == []
        assert not os.path.exists(lock_path(str(fake_root)))

    def test_bind_inside_remapped_home_stays_visible(
        self, make_spawner, runner: RecordingRunner, fake_root: Path, tmp_path: Path
    ) -> None:
        home = tmp_path / "h"
        project = tmp_path / "project"
        home.mkdir()
        project.mkdir()
        request = SpawnRequest(
            directory=str(fake_root),
            user="alice",
            bind_home=HomeBind(str(home)),
            bind_dirs=[BindSpec(str(project), "/home/alice/src")],
            command=["make"],
        )

        asyncio.run(make_spawner(runner).spawn(request))

        targets = [c[-1] for c in runner.commands if c[:2] == ["mount", "--bind"]]
        assert targets.index(f"{fake_root}/home/alice") < targets.index(f"{fake_root}/home/alice/src")
        assert runner.executed[0][-1] == "cd /home/alice/src && exec make"

    def test_created_mountpoints_are_removed(self, make_spawner, runner: RecordingRunner, fake_root: Path) -> None:
        asyncio.run(make_spawner(runner).spawn(chroot_request(fake_root, "true")))

        removed = [path for c in runner.commands if c[:3] == ["rm", "-d", "--"] for path in c[3:]]
        # fake_root starts out with nothing but etc/passwd and etc/group.
        assert f"{fake_root}/dev" in removed
        assert f"{fake_root}/sys" in removed
        assert f"{fake_root}/etc" not in removed


def test_conflict_leaves_no_trace(make_spawner, runner: RecordingRunner, fake_root: Path) -> None:
    marker = Path(lock_path(str(fake_root)))
    marker.write_text("12345\n")

    with pytest.raises(LockConflictError):
        asyncio.run(make_spawner(runner).spawn(chroot_request(fake_root, "true")))

    assert runner.commands == []
    # Someone else's lock stays put.
    assert marker.read_text() == "12345\n"


def test_preflight_failure_takes_no_lock(make_spawner, runner: RecordingRunner, fake_root: Path) -> None:
    request = chroot_request(fake_root, "xterm")
    request.x11 = True
    with pytest.raises(ResourceMissingError, match="DISPLAY"):
        asyncio.run(make_spawner(runner).spawn(request))
    assert runner.commands == []
    assert not os.path.exists(lock_path(str(fake_root)))


def test_image_runs_without_lock_or_tty(make_spawner, runner: RecordingRunner, runtime_base: Path) -> None:
    request = SpawnRequest(image="alpine:3", user="0", command=["echo", "hi"])
    spawner = make_spawner(runner)

    assert asyncio.run(spawner.spawn(request)) == 0

    argv = runner.executed[0]
    assert argv[:3] == ["docker", "run", "--rm"]
    assert "-it" not in argv
    assert argv[-4:] == ["alpine:3", "/bin/sh", "-c", "exec echo hi"]
    assert runner.commands == runner.executed
    assert list(runtime_base.iterdir()) == []


def test_dry_run_matches_real_run(make_spawner, fake_root: Path) -> None:
    def mount_commands(runner, spawner) -> list[list[str]]:
        placeholder = spawner.last_context.runtime_dir
        return [
            [arg.replace(placeholder, "<runtime>") for arg in argv]
            for argv in runner.commands
            # Lock handling differs: a dry run never touches the marker itself.
            if argv[:2] != ["sh", "-c"] and argv[:2] != ["rm", "-f"]
        ]

    real = RecordingRunner()
    real_spawner = make_spawner(real)
    asyncio.run(real_spawner.spawn(chroot_request(fake_root, "id")))

    dry = DryRunRunner()
    dry_spawner = make_spawner(dry)
    asyncio.run(dry_spawner.spawn(chroot_request(fake_root, "id")))

    assert mount_commands(dry, dry_spawner) == mount_commands(real, real_spawner)
    assert not os.path.exists(lock_path(str(fake_root)))


def test_unlock_only_removes_marker(make_spawner, runner: RecordingRunner, fake_root: Path) -> None:
    marker = Path(lock_path(str(fake_root)))
    marker.write_text("1\n")

    make_spawner(runner).unlock(str(fake_root))

    assert not marker.exists()
    assert runner.commands == []


def test_cleanup_unmounts_then_unlocks(
    make_spawner, runner: RecordingRunner, fake_root: Path, tmp_path: Path
) -> None:
    (tmp_path / "mounts").write_text(f"tmpfs {fake_root}/dev tmpfs rw 0 0\n")
    marker = Path(lock_path(str(fake_root)))
    marker.write_text("1\n")

    attempted = make_spawner(runner).cleanup(str(fake_root))

    assert attempted[0] == f"{fake_root}/dev"
    assert runner.commands[0] == ["umount", f"{fake_root}/dev"]
    assert not marker.exists()


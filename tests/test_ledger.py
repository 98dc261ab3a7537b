# SPDX-FileCopyrightText: 2026 The spawnbox authors
#
# SPDX-License-Identifier: GPL-3.0-or-later

"""Tests for the mount ledger and stale mount cleanup."""

from __future__ import annotations

import signal
from pathlib import Path

import pytest

from spawnbox.core.errors import Interrupted, PrivilegedCommandError
from spawnbox.core.ledger import MountLedger, cleanup_stale_mounts, missing_paths, mountpoints_under
from spawnbox.core.signals import raise_on_termination

from .conftest import RecordingRunner


def _umounts(runner: RecordingRunner) -> list[list[str]]:
    return [c for c in runner.commands if c[0] == "umount"]


class TestDrain:
    def test_unwinds_newest_first(self, runner: RecordingRunner) -> None:
        ledger = MountLedger()
        ledger.bind(runner, "/src", "/root/a", "bind-dir")
        ledger.bind(runner, "/src", "/root/b", "bind-dir")
        ledger.mount(runner, ["mount", "-t", "tmpfs", "tmpfs", "/root/dev"], "/root/dev", "dev")

        ledger.drain(runner)

        assert _umounts(runner) == [
            ["umount", "/root/dev"],
            ["umount", "/root/b"],
            ["umount", "/root/a"],
        ]
        assert ledger.records == []
        assert ledger.drained

    def test_recursive_records_use_recursive_unmount(self, runner: RecordingRunner) -> None:
        ledger = MountLedger()
        ledger.bind(runner, "/dev", "/root/dev", "dev", recursive=True)
        ledger.drain(runner)
        assert _umounts(runner) == [["umount", "-R", "/root/dev"]]

    def test_read_only_bind_is_remounted(self, runner: RecordingRunner) -> None:
        ledger = MountLedger()
        ledger.bind(runner, "/etc/localtime", "/root/etc/localtime", "host-files", read_only=True)
        assert runner.commands[-1] == ["mount", "-o", "remount,bind,ro", "/root/etc/localtime"]

    def test_second_drain_is_a_noop(self, runner: RecordingRunner, tmp_path: Path) -> None:
        ledger = MountLedger()
        ledger.bind(runner, "/src", "/root/a", "bind-dir")
        ledger.drain(runner)
        count = len(runner.commands)
        ledger.drain(runner)
        assert len(runner.commands) == count

    def test_failed_mount_is_not_recorded(self, runner: RecordingRunner) -> None:
        runner.fail(lambda argv: argv[0] == "mount")
        ledger = MountLedger()
        with pytest.raises(PrivilegedCommandError):
            ledger.bind(runner, "/src", "/root/a", "bind-dir")
        assert ledger.records == []

    def test_already_unmounted_counts_as_success(self, runner: RecordingRunner) -> None:
        runner.fail(lambda argv: argv[0] == "umount", 32, "umount: /root/a: not mounted.")
        ledger = MountLedger()
        ledger.bind(runner, "/src", "/root/a", "bind-dir")
        ledger.drain(runner)

    def test_failures_are_collected(self, runner: RecordingRunner, tmp_path: Path) -> None:
        runner.fail(lambda argv: argv == ["umount", "/root/b"], 32, "umount: /root/b: target is busy.")
        temp = tmp_path / "spawn.xyz"
        temp.mkdir()
        (temp / "Xauthority").write_text("cookie")
        ledger = MountLedger()
        ledger.set_temp_dir(str(temp))
        ledger.bind(runner, "/src", "/root/a", "bind-dir")
        ledger.bind(runner, "/src", "/root/b", "bind-dir")

        with pytest.raises(PrivilegedCommandError, match="/root/b"):
            ledger.drain(runner)

        # The drain still went past the failure.
        assert _umounts(runner)[-1] == ["umount", "/root/a"]
        assert ledger.records == []
        assert not temp.exists()

    def test_interrupted_unmount_finishes_the_drain(self, runner: RecordingRunner, tmp_path: Path) -> None:
        temp = tmp_path / "spawn.int"
        temp.mkdir()
        runner.raise_once(lambda argv: argv[0] == "umount", Interrupted(signal.SIGTERM))
        ledger = MountLedger()
        ledger.set_temp_dir(str(temp))
        ledger.bind(runner, "/src", "/root/a", "bind-dir")
        ledger.bind(runner, "/src", "/root/b", "bind-dir")

        with pytest.raises(Interrupted):
            ledger.drain(runner)

        assert _umounts(runner) == [["umount", "/root/b"], ["umount", "/root/a"]]
        assert ledger.records == []
        assert not temp.exists()

    def test_scope_holds_signals_until_teardown_is_done(self, runner: RecordingRunner) -> None:
        steps: list[str] = []

        def release() -> None:
            signal.raise_signal(signal.SIGHUP)
            steps.append("released")

        ledger = MountLedger()
        with pytest.raises(Interrupted) as exc:
            with raise_on_termination():
                with ledger.scope(runner, on_exit=release):
                    ledger.bind(runner, "/src", "/root/a", "bind-dir")

        assert steps == ["released"]
        assert exc.value.signum == signal.SIGHUP
        assert _umounts(runner) == [["umount", "/root/a"]]

    def test_created_mountpoints_follow_their_unmount(self, runner: RecordingRunner) -> None:
        ledger = MountLedger()
        ledger.mount(runner, ["mount", "--bind", "/src", "/root/a/b"], "/root/a/b", "bind-dir",
                     created=["/root/a/b", "/root/a"])
        ledger.drain(runner)
        assert runner.commands[-2:] == [
            ["umount", "/root/a/b"],
            ["rm", "-d", "--", "/root/a/b", "/root/a"],
        ]

    def test_failed_mount_removes_its_mountpoints(self, runner: RecordingRunner) -> None:
        runner.fail(lambda argv: argv[0] == "mount")
        ledger = MountLedger()
        with pytest.raises(PrivilegedCommandError):
            ledger.mount(runner, ["mount", "--bind", "/src", "/root/a"], "/root/a", "bind-dir", created=["/root/a"])
        assert runner.commands[-1] == ["rm", "-d", "--", "/root/a"]
        assert ledger.records == []

    def test_busy_mount_keeps_its_mountpoint(self, runner: RecordingRunner) -> None:
        runner.fail(lambda argv: argv[0] == "umount", 32, "target is busy")
        ledger = MountLedger()
        ledger.mount(runner, ["mount", "--bind", "/src", "/root/a"], "/root/a", "bind-dir", created=["/root/a"])
        with pytest.raises(PrivilegedCommandError):
            ledger.drain(runner)
        assert not any(c[0] == "rm" for c in runner.commands)

    def test_scope_drains_on_error(self, runner: RecordingRunner, tmp_path: Path) -> None:
        temp = tmp_path / "spawn.abc"
        temp.mkdir()
        ledger = MountLedger()
        with pytest.raises(KeyError):
            with ledger.scope(runner):
                ledger.set_temp_dir(str(temp))
                ledger.bind(runner, "/src", "/root/a", "bind-dir")
                raise KeyError("mid-setup")
        assert ledger.records == []
        assert not temp.exists()

    def test_missing_temp_dir_is_fine(self, runner: RecordingRunner, tmp_path: Path) -> None:
        ledger = MountLedger()
        ledger.set_temp_dir(str(tmp_path / "gone"))
        ledger.drain(runner)


MOUNTS = """\
proc /proc proc rw,nosuid 0 0
tmpfs {root}/dev tmpfs rw 0 0
devpts {root}/dev/pts devpts rw 0 0
/dev/sda1 {root}/home/with\\040space ext4 rw 0 0
/dev/sda1 {root}-sibling ext4 rw 0 0
sysfs {root}/sys sysfs ro 0 0
"""


@pytest.fixture
def mounts_file(tmp_path: Path, fake_root: Path) -> Path:
    path = tmp_path / "mounts"
    path.write_text(MOUNTS.format(root=fake_root))
    return path


def test_mountpoints_under_is_deepest_first(fake_root: Path, mounts_file: Path) -> None:
    points = mountpoints_under(str(fake_root), str(mounts_file))
    assert points[:2] == [f"{fake_root}/home/with space", f"{fake_root}/dev/pts"]
    assert set(points) == {
        f"{fake_root}/dev",
        f"{fake_root}/dev/pts",
        f"{fake_root}/home/with space",
        f"{fake_root}/sys",
    }


def test_cleanup_stale_mounts(runner: RecordingRunner, fake_root: Path, mounts_file: Path) -> None:
    (fake_root / "run" / "user" / "1000").mkdir(parents=True)
    (fake_root / "run" / "spawn").mkdir(parents=True)
    (fake_root / "run" / "spawn" / "ssh-agent.sock").touch()

    attempted = cleanup_stale_mounts(str(fake_root), runner, str(mounts_file))

    # Mount table entries first, then conventional locations, each once.
    assert attempted[0] == f"{fake_root}/home/with space"
    assert len(attempted) == len(set(attempted))
    assert f"{fake_root}/run/spawn/ssh-agent.sock" in attempted
    assert f"{fake_root}/run/user/1000" in attempted
    assert f"{fake_root}/proc" in attempted
    assert ["umount", "-R", f"{fake_root}/run/user/1000"] in runner.commands
    assert f"{fake_root}-sibling" not in attempted


def test_cleanup_without_mount_table(runner: RecordingRunner, fake_root: Path, tmp_path: Path) -> None:
    runner.fail(lambda argv: argv[0] == "umount", 32, "umount: not mounted")
    attempted = cleanup_stale_mounts(str(fake_root), runner, str(tmp_path / "no-mounts"))
    assert attempted[0] == f"{fake_root}/proc"
    assert ["umount", "-R", f"{fake_root}/dev"] in runner.commands


def test_cleanup_reports_busy_mounts(runner: RecordingRunner, fake_root: Path, tmp_path: Path) -> None:
    runner.fail(lambda argv: argv[-1].endswith("/sys"), 32, "target is busy")
    with pytest.raises(PrivilegedCommandError):
        cleanup_stale_mounts(str(fake_root), runner, str(tmp_path / "no-mounts"))


def test_missing_paths_stops_at_the_first_existing_ancestor(fake_root: Path) -> None:
    target = fake_root / "etc" / "spawn" / "resolv.conf"
    assert missing_paths(str(target)) == [str(target), str(target.parent)]
    assert missing_paths(str(fake_root / "etc")) == []

# SPDX-FileCopyrightText: 2026 The spawnbox authors
#
# SPDX-License-Identifier: GPL-3.0-or-later

"""Pytest configuration and shared fixtures for spawnbox tests."""

from __future__ import annotations

import subprocess
from collections.abc import Callable, Sequence
from pathlib import Path

import pytest

from spawnbox.core.backends import create_backend
from spawnbox.core.config import SpawnConfig
from spawnbox.core.context import SpawnContext
from spawnbox.core.errors import PrivilegedCommandError
from spawnbox.core.ledger import MountLedger
from spawnbox.core.models import ROOT_IDENTITY, Identity, SpawnTarget, TargetKind
from spawnbox.core.options import SpawnRequest
from spawnbox.core.runner import CommandRunner

Predicate = Callable[[list[str]], bool]


def pytest_configure(config: pytest.Config) -> None:
    """Configure pytest markers."""
    config.addinivalue_line(
        "markers", "slow: marks tests as slow (deselect with '-m \"not slow\"')"
    )


class RecordingRunner(CommandRunner):
    """Records every command and pretends it succeeded, unless told otherwise."""

    def __init__(self) -> None:
        self.commands: list[list[str]] = []
        self.executed: list[list[str]] = []
        self.exit_status = 0
        self.on_execute: Callable[[list[str]], None] | None = None
        self._failures: list[tuple[Predicate, int, str]] = []
        self._raises: list[tuple[Predicate, BaseException]] = []

    def fail(self, predicate: Predicate, returncode: int = 1, stderr: str = "boom") -> None:
        self._failures.append((predicate, returncode, stderr))

    def raise_once(self, predicate: Predicate, exc: BaseException) -> None:
        """Raise *exc* from the first matching command, after recording it."""
        self._raises.append((predicate, exc))

    def _outcome(self, argv: list[str]) -> tuple[int, str]:
        for predicate, returncode, stderr in self._failures:
            if predicate(argv):
                return returncode, stderr
        return 0, ""

    def run(
        self,
        argv: Sequence[str],
        *,
        check: bool = True,
        input: str | None = None,
    ) -> subprocess.CompletedProcess[str]:
        argv = list(argv)
        self.commands.append(argv)
        for entry in self._raises:
            if entry[0](argv):
                self._raises.remove(entry)
                raise entry[1]
        returncode, stderr = self._outcome(argv)
        if check and returncode != 0:
            raise PrivilegedCommandError(argv, returncode, stderr)
        return subprocess.CompletedProcess(argv, returncode, "", stderr)

    def execute(self, argv: Sequence[str]) -> int:
        argv = list(argv)
        self.commands.append(argv)
        self.executed.append(argv)
        if self.on_execute is not None:
            self.on_execute(argv)
        return self.exit_status


class SilentReporter:
    def __init__(self) -> None:
        self.messages: list[tuple[str, str]] = []

    def info(self, msg: str) -> None:
        self.messages.append(("info", msg))

    def dim(self, msg: str) -> None:
        self.messages.append(("dim", msg))

    def warning(self, msg: str) -> None:
        self.messages.append(("warning", msg))

    def warnings(self) -> list[str]:
        return [m for level, m in self.messages if level == "warning"]


PASSWD = """\
root:x:0:0:root:/root:/bin/sh
# comment
alice:x:1000:1000:Alice:/home/alice:/bin/bash
bob:x:1001:100::/home/bob:/bin/sh
broken:x:notanumber:1::/:/bin/sh
"""

GROUP = """\
root:x:0:
wheel:x:10:alice
users:x:100:
alice:x:1000:
"""


@pytest.fixture
def runner() -> RecordingRunner:
    return RecordingRunner()


@pytest.fixture
def reporter() -> SilentReporter:
    return SilentReporter()


@pytest.fixture
def fake_root(tmp_path: Path) -> Path:
    """A minimal root filesystem with its own user database."""
    root = tmp_path / "rootfs"
    (root / "etc").mkdir(parents=True)
    (root / "etc" / "passwd").write_text(PASSWD)
    (root / "etc" / "group").write_text(GROUP)
    return root


@pytest.fixture
def runtime_base(tmp_path: Path) -> Path:
    base = tmp_path / "xdg-runtime"
    base.mkdir()
    return base


@pytest.fixture
def make_ctx(
    runner: RecordingRunner,
    reporter: SilentReporter,
    fake_root: Path,
    runtime_base: Path,
) -> Callable[..., SpawnContext]:
    """Build a :class:`SpawnContext` for driving binders and backends directly."""

    def _make(
        kind: TargetKind = TargetKind.CONTAINER,
        request: SpawnRequest | None = None,
        identity: Identity = ROOT_IDENTITY,
        env: dict[str, str] | None = None,
        invoking_uid: int = 0,
        config: SpawnConfig | None = None,
    ) -> SpawnContext:
        identifier = "alpine" if kind is TargetKind.CONTAINER else str(fake_root)
        target = SpawnTarget(kind, identifier)
        config = config or SpawnConfig()
        return SpawnContext(
            target=target,
            backend=create_backend(target, config),
            identity=identity,
            request=request or SpawnRequest(),
            runner=runner,
            ledger=MountLedger(),
            config=config,
            env={"XDG_RUNTIME_DIR": str(runtime_base)} if env is None else env,
            invoking_uid=invoking_uid,
            progress=reporter,
        )

    return _make

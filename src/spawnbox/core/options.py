# SPDX-FileCopyrightText: 2026 The spawnbox authors
#
# SPDX-License-Identifier: GPL-3.0-or-later

"""Validated spawn request.

The CLI turns its flags into a :class:`SpawnRequest`; bind arguments
are parsed into structured values here, at the boundary, so nothing
further in uses the escaped ``source:dest:options`` strings.
"""

from __future__ import annotations

import os
from collections.abc import Iterable
from dataclasses import dataclass, field

from .errors import ValidationError
from .models import BindSpec, parse_bind_spec, split_escaped

BACKEND_CHOICES = ("docker", "nspawn", "chroot")


@dataclass(frozen=True)
class HomeBind:
    """``--bind-home source[:dest]``; ``dest`` defaults to the user's home."""

    source: str
    dest: str | None = None


@dataclass
class SpawnRequest:
    name: str | None = None
    image: str | None = None
    directory: str | None = None
    using: str | None = None
    user: str | None = None
    arch: str | None = None
    bind_home: HomeBind | None = None
    bind_dirs: list[BindSpec] = field(default_factory=lambda: list[BindSpec]())
    ssh_agent: bool = False
    ssh_dir: bool = False
    x11: bool = False
    pulseaudio: bool = False
    share_devices: bool = False
    backend_args: list[str] = field(default_factory=lambda: list[str]())
    command: list[str] = field(default_factory=lambda: list[str]())


def parse_home_bind(raw: str) -> HomeBind:
    parts = split_escaped(raw)
    if len(parts) > 2 or not parts[0]:
        raise ValidationError(f"Invalid --bind-home value '{raw}': expected source[:dest]")
    dest = parts[1] if len(parts) == 2 and parts[1] else None
    if dest is not None and not dest.startswith("/"):
        raise ValidationError(f"Home destination must be an absolute path: {dest}")
    return HomeBind(source=os.path.abspath(os.path.expanduser(parts[0])), dest=dest)


def parse_bind_dirs(values: Iterable[str]) -> list[BindSpec]:
    specs: list[BindSpec] = []
    for raw in values:
        spec = parse_bind_spec(raw)
        source = os.path.abspath(os.path.expanduser(spec.source))
        dest = spec.dest if spec.dest != spec.source else source
        specs.append(BindSpec(source=source, dest=dest, options=spec.options))
    return specs


def pick_backend_flag(docker: bool, nspawn: bool, chroot: bool) -> str | None:
    """Collapse the ``--using-*`` flags; at most one may be given."""
    chosen = [n for n, flag in zip(BACKEND_CHOICES, (docker, nspawn, chroot)) if flag]
    if len(chosen) > 1:
        raise ValidationError(
            "Only one of " + ", ".join(f"--using-{c}" for c in chosen) + " may be given"
        )
    return chosen[0] if chosen else None

# SPDX-FileCopyrightText: 2026 The spawnbox authors
#
# SPDX-License-Identifier: GPL-3.0-or-later

"""Value types shared by the resolver, binders, ledger and backends."""

from __future__ import annotations

import enum
from collections.abc import Iterator
from dataclasses import dataclass, field
from typing import Union

from .errors import ValidationError


class TargetKind(enum.Enum):
    """What a spawn target is, and therefore which family of backend runs it."""

    CONTAINER = "container"
    NAMESPACE_ROOT = "namespace-root"
    CHROOT_ROOT = "chroot-root"

    @property
    def is_directory(self) -> bool:
        return self is not TargetKind.CONTAINER


@dataclass(frozen=True)
class SpawnTarget:
    kind: TargetKind
    identifier: str


@dataclass(frozen=True)
class Identity:
    """The user the workload runs as.

    ``uid``, ``gid`` and ``home`` are ``None`` when the identity lives only
    in a container image's own user database and cannot be looked up.
    """

    name: str
    uid: int | None
    gid: int | None
    home: str | None

    @property
    def userspec(self) -> str | None:
        if self.uid is None:
            return None
        if self.gid is None:
            return str(self.uid)
        return f"{self.uid}:{self.gid}"


ROOT_IDENTITY = Identity(name="root", uid=0, gid=0, home="/root")


@dataclass(frozen=True)
class EnvAssignment:
    key: str
    value: str


@dataclass(frozen=True)
class BindSpec:
    source: str
    dest: str
    options: tuple[str, ...] = ()

    @property
    def read_only(self) -> bool:
        return "ro" in self.options


Entry = Union[EnvAssignment, BindSpec]


@dataclass
class EnvironmentBundle:
    """Ordered environment assignments and bind specs for one invocation.

    Later entries may refer to paths introduced by earlier ones, so the
    insertion order is preserved all the way through backend translation.
    """

    entries: list[Entry] = field(default_factory=lambda: list[Entry]())

    def setenv(self, key: str, value: str) -> None:
        self.entries.append(EnvAssignment(key, value))

    def bind(self, source: str, dest: str, options: tuple[str, ...] = ()) -> None:
        self.entries.append(BindSpec(source, dest, options))

    def env(self) -> dict[str, str]:
        """Effective environment; a later assignment to a key wins."""
        return {e.key: e.value for e in self.entries if isinstance(e, EnvAssignment)}

    def binds(self) -> list[BindSpec]:
        return [e for e in self.entries if isinstance(e, BindSpec)]

    def __iter__(self) -> Iterator[Entry]:
        return iter(self.entries)

    def __len__(self) -> int:
        return len(self.entries)


@dataclass(frozen=True)
class MountRecord:
    path: str
    created_by: str
    recursive: bool = False
    # Mountpoints made for this mount, deepest first; removed after unmounting.
    created: tuple[str, ...] = ()


def split_escaped(value: str, sep: str = ":") -> list[str]:
    """Split *value* on *sep*, honouring backslash-escaped separators."""
    parts: list[str] = []
    current: list[str] = []
    chars = iter(value)
    for ch in chars:
        if ch == "\\":
            nxt = next(chars, None)
            if nxt is None:
                current.append(ch)
            elif nxt in (sep, "\\"):
                current.append(nxt)
            else:
                current.extend((ch, nxt))
        elif ch == sep:
            parts.append("".join(current))
            current = []
        else:
            current.append(ch)
    parts.append("".join(current))
    return parts


def parse_bind_spec(raw: str, *, default_dest: str | None = None) -> BindSpec:
    """Parse ``source[:dest[:options]]`` into a :class:`BindSpec`.

    Colons inside a path are written as ``\\:``.  Options are a
    comma-separated list (``ro``, ``rbind``...).  When *dest* is omitted it
    defaults to *default_dest*, or to the source path itself.
    """
    parts = split_escaped(raw)
    if len(parts) > 3:
        raise ValidationError(f"Invalid bind specification '{raw}': expected source[:dest[:options]]")
    source = parts[0]
    if not source:
        raise ValidationError(f"Invalid bind specification '{raw}': empty source")
    explicit_dest = parts[1] if len(parts) > 1 and parts[1] else None
    if explicit_dest is not None and not explicit_dest.startswith("/"):
        raise ValidationError(f"Bind destination must be an absolute path: {explicit_dest}")
    options: tuple[str, ...] = ()
    if len(parts) == 3 and parts[2]:
        options = tuple(o for o in parts[2].split(",") if o)
    return BindSpec(source=source, dest=explicit_dest or default_dest or source, options=options)

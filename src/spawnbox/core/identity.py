# SPDX-FileCopyrightText: 2026 The spawnbox authors
#
# SPDX-License-Identifier: GPL-3.0-or-later

"""Resolve ``--user`` into an :class:`Identity`.

Directory targets carry their own ``/etc/passwd``; the identity has to
exist *there*, not on the host.  Container images are opaque, so only
numeric ids and the invoking user's own name can be resolved for them.
"""

from __future__ import annotations

import logging
import os
import pwd
from dataclasses import dataclass
from pathlib import Path

from .errors import ValidationError
from .models import ROOT_IDENTITY, Identity, TargetKind

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class PasswdEntry:
    name: str
    uid: int
    gid: int
    home: str


def read_passwd(path: Path) -> list[PasswdEntry]:
    """Parse a passwd(5) file, skipping malformed lines."""
    entries: list[PasswdEntry] = []
    try:
        text = path.read_text(encoding="utf-8", errors="replace")
    except FileNotFoundError:
        return entries
    for line in text.splitlines():
        if not line or line.startswith("#"):
            continue
        fields = line.split(":")
        if len(fields) < 7:
            continue
        try:
            entries.append(PasswdEntry(fields[0], int(fields[2]), int(fields[3]), fields[5]))
        except ValueError:
            continue
    return entries


def read_group(path: Path) -> dict[str, int]:
    """Parse a group(5) file into a name -> gid map."""
    groups: dict[str, int] = {}
    try:
        text = path.read_text(encoding="utf-8", errors="replace")
    except FileNotFoundError:
        return groups
    for line in text.splitlines():
        fields = line.split(":")
        if len(fields) < 3 or line.startswith("#"):
            continue
        try:
            groups[fields[0]] = int(fields[2])
        except ValueError:
            continue
    return groups


def host_identity(uid: int | None = None) -> Identity:
    """Identity of the invoking user (or *uid*) from the host database."""
    uid = os.getuid() if uid is None else uid
    if uid == 0:
        return ROOT_IDENTITY
    try:
        pw = pwd.getpwuid(uid)
    except KeyError:
        raise ValidationError(f"User with UID {uid} not found")
    return Identity(name=pw.pw_name, uid=pw.pw_uid, gid=pw.pw_gid, home=pw.pw_dir)


def _split_spec(spec: str) -> tuple[str, str | None]:
    user, sep, group = spec.partition(":")
    if not user:
        raise ValidationError(f"Invalid user specification '{spec}'")
    return user, (group if sep else None)


def _is_root(user: str) -> bool:
    return user in ("0", "root")


def _resolve_group(group: str | None, groups: dict[str, int]) -> int | None:
    if group is None:
        return None
    if group.isdigit():
        return int(group)
    if group not in groups:
        raise ValidationError(f"Group '{group}' not found")
    return groups[group]


def _resolve_in_root(user: str, group: str | None, root: str) -> Identity:
    etc = Path(root) / "etc"
    entries = read_passwd(etc / "passwd")
    gid = _resolve_group(group, read_group(etc / "group")) if group is not None else None

    if user.isdigit():
        uid = int(user)
        match = next((e for e in entries if e.uid == uid), None)
    else:
        match = next((e for e in entries if e.name == user), None)
        if match is None:
            raise ValidationError(f"User '{user}' not found in {etc / 'passwd'}")
        uid = match.uid

    if match is not None:
        return Identity(
            name=match.name,
            uid=uid,
            gid=match.gid if gid is None else gid,
            home=match.home,
        )
    if gid is None:
        raise ValidationError(
            f"UID {uid} has no entry in {etc / 'passwd'}; give the group explicitly as {uid}:<gid>"
        )
    return Identity(name=str(uid), uid=uid, gid=gid, home=None)


def _resolve_for_container(user: str, group: str | None) -> Identity:
    me = host_identity()
    gid: int | None
    if group is None:
        gid = None
    elif group.isdigit():
        gid = int(group)
    else:
        raise ValidationError(f"Group '{group}' cannot be resolved for a container image; use a numeric gid")

    if user.isdigit():
        uid = int(user)
        if uid == me.uid:
            return Identity(name=me.name, uid=uid, gid=me.gid if gid is None else gid, home=me.home)
        return Identity(name=user, uid=uid, gid=gid, home=None)

    if user == me.name:
        return Identity(name=me.name, uid=me.uid, gid=me.gid if gid is None else gid, home=me.home)

    # Lives only in the image's own user database.
    logger.debug("trusting container user '%s' as-is", user)
    return Identity(name=user, uid=None, gid=gid, home=None)


def resolve_identity(spec: str | None, kind: TargetKind, root: str | None = None) -> Identity:
    """Resolve a user specifier for a target.

    Args:
        spec: ``name``, ``uid``, ``uid:gid`` or ``name:group``; ``None``
            means the invoking host user.
        kind: Target kind; directory kinds consult ``<root>/etc/passwd``.
        root: Root directory for directory kinds.

    Raises:
        ValidationError: if the user (or a required gid) cannot be resolved.
    """
    if spec is None or spec == "":
        return host_identity()

    user, group = _split_spec(spec)
    if _is_root(user):
        return ROOT_IDENTITY

    if kind.is_directory:
        if root is None:
            raise ValidationError("A root directory is required to resolve users for directory targets")
        return _resolve_in_root(user, group, root)
    return _resolve_for_container(user, group)

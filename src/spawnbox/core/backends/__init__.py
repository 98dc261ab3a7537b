# SPDX-FileCopyrightText: 2026 The spawnbox authors
#
# SPDX-License-Identifier: GPL-3.0-or-later

"""Backend drivers, one per :class:`TargetKind`."""

from ..config import SpawnConfig
from ..models import SpawnTarget, TargetKind
from .base import Backend
from .chroot import ChrootBackend
from .docker import DockerBackend
from .nspawn import NspawnBackend

BACKENDS: dict[TargetKind, type[Backend]] = {
    TargetKind.CONTAINER: DockerBackend,
    TargetKind.NAMESPACE_ROOT: NspawnBackend,
    TargetKind.CHROOT_ROOT: ChrootBackend,
}


def create_backend(target: SpawnTarget, config: SpawnConfig) -> Backend:
    """Instantiate the driver for *target*."""
    try:
        cls = BACKENDS[target.kind]
    except KeyError:
        raise ValueError(f"No backend for target kind {target.kind!r}")
    return cls(target, config)


__all__ = [
    "BACKENDS",
    "Backend",
    "ChrootBackend",
    "DockerBackend",
    "NspawnBackend",
    "create_backend",
]

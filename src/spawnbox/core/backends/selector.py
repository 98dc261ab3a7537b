# SPDX-FileCopyrightText: 2026 The spawnbox authors
#
# SPDX-License-Identifier: GPL-3.0-or-later

"""Decide what the target is and which backend runs it.

Precedence, strongest first:

1. an explicit ``--using-*`` flag;
2. ``--image`` (container) or ``--dir`` (directory backend);
3. the positional name: an existing directory is a directory target,
   anything else is an image name.

A directory target without an explicit driver uses systemd-nspawn when
it is installed, and falls back to a raw chroot otherwise.
"""

from __future__ import annotations

import logging
import os
import shutil

from ..config import SpawnConfig
from ..errors import ValidationError
from ..models import SpawnTarget, TargetKind
from ..options import SpawnRequest
from .base import Which

logger = logging.getLogger(__name__)

USING_KINDS = {
    "docker": TargetKind.CONTAINER,
    "nspawn": TargetKind.NAMESPACE_ROOT,
    "chroot": TargetKind.CHROOT_ROOT,
}


def directory_kind(config: SpawnConfig, which: Which = shutil.which) -> TargetKind:
    if which(config.nspawn) is not None:
        return TargetKind.NAMESPACE_ROOT
    logger.info("%s not found; falling back to chroot", config.nspawn)
    return TargetKind.CHROOT_ROOT


def _resolve_kind_and_identifier(
    request: SpawnRequest,
    config: SpawnConfig,
    which: Which,
) -> tuple[TargetKind, str | None]:
    if request.image and request.directory:
        raise ValidationError("--image and --dir are mutually exclusive")

    if request.using is not None:
        try:
            kind = USING_KINDS[request.using]
        except KeyError:
            raise ValidationError(f"Unknown backend '{request.using}'")
        if kind is TargetKind.CONTAINER:
            if request.directory:
                raise ValidationError("--using-docker runs images, not directories (--dir was given)")
            return kind, request.image or request.name
        if request.image:
            raise ValidationError(f"--using-{request.using} runs directories, not images (--image was given)")
        return kind, request.directory or request.name

    if request.image:
        return TargetKind.CONTAINER, request.image
    if request.directory:
        return directory_kind(config, which), request.directory
    if request.name:
        if os.path.isdir(request.name):
            return directory_kind(config, which), request.name
        return TargetKind.CONTAINER, request.name
    return TargetKind.CONTAINER, None


def select_target(
    request: SpawnRequest,
    config: SpawnConfig,
    which: Which = shutil.which,
) -> SpawnTarget:
    """Resolve the request into a :class:`SpawnTarget`.

    Raises:
        ValidationError: if no image or directory can be determined, or a
            directory target is not a directory.
    """
    kind, identifier = _resolve_kind_and_identifier(request, config, which)
    if not identifier:
        raise ValidationError("No image or directory given")

    if kind.is_directory:
        identifier = os.path.abspath(identifier)
        if not os.path.isdir(identifier):
            raise ValidationError(f"{identifier} is not a directory")
        if identifier == "/":
            raise ValidationError("Refusing to use / as a root directory")

    target = SpawnTarget(kind=kind, identifier=identifier)
    logger.debug("target: %s", target)
    return target

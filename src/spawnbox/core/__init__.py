# SPDX-FileCopyrightText: 2026 The spawnbox authors
#
# SPDX-License-Identifier: GPL-3.0-or-later

"""Spawn core package: public API re-exports."""

from .spawner import Spawner

__all__ = ["Spawner"]

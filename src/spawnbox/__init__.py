# SPDX-FileCopyrightText: 2026 The spawnbox authors
#
# SPDX-License-Identifier: GPL-3.0-or-later

"""spawnbox - ephemeral isolated environments on top of docker, nspawn or chroot."""

__version__ = "0.1.0"

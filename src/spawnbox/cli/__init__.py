# SPDX-FileCopyrightText: 2026 The spawnbox authors
#
# SPDX-License-Identifier: GPL-3.0-or-later

"""Command-line interface for spawnbox."""

from .. import __version__

__all__ = ["__version__"]

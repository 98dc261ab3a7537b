# SPDX-FileCopyrightText: 2026 The spawnbox authors
#
# SPDX-License-Identifier: GPL-3.0-or-later

"""Feature binders: share host resources with the spawned environment.

Each feature registers two steps.  Its ``preflight`` step checks host
state without changing anything, and runs before the root is locked.
Its ``binder`` step stages files into the runtime directory and appends
environment and bind entries.

Importing this package registers all steps with both pipelines.
"""

from ..context import SpawnContext
from ..pipeline import Pipeline

preflight_pipeline = Pipeline[SpawnContext]("preflight")
binder_pipeline = Pipeline[SpawnContext]("binders")

# Import step modules so their decorators register with the pipelines.
from . import runtime_dir as _  # noqa: F401, E402
from . import host_env as _  # noqa: F401, E402
from . import home as _  # noqa: F401, E402
from . import bind_dirs as _  # noqa: F401, E402
from . import ssh_agent as _  # noqa: F401, E402
from . import ssh_dir as _  # noqa: F401, E402
from . import x11 as _  # noqa: F401, E402
from . import pulseaudio as _  # noqa: F401, E402
from . import host_files as _  # noqa: F401, E402

#!/usr/bin/env python3
# SPDX-FileCopyrightText: 2026 The spawnbox authors
#
# SPDX-License-Identifier: GPL-3.0-or-later

"""
Spawn CLI - Main entry point.

Usage:
    spawn [OPTIONS] [TARGET] [COMMAND]...

Run a command (or a login shell) in a throwaway environment built from a
container image or a root directory, sharing only what is asked for.
"""

import logging
import sys
from typing import List, Optional

import typer
from rich.logging import RichHandler

from . import __version__
from ..core import Spawner
from ..core.config import load_config
from ..core.errors import ValidationError
from ..core.options import (
    SpawnRequest,
    parse_bind_dirs,
    parse_home_bind,
    pick_backend_flag,
)
from ..core.runner import make_runner
from .async_typer import AsyncTyper
from .decorators import handle_errors
from .output import out


app = AsyncTyper(
    name="spawn",
    help="Run commands in ephemeral docker, systemd-nspawn or chroot environments",
    add_completion=False,
)


def version_callback(value: bool) -> None:
    """Print version and exit."""
    if value:
        out.info(f"{out.prog_name} version {__version__}")
        raise typer.Exit()


def setup_logging(verbose: bool) -> None:
    logging.basicConfig(
        level=logging.DEBUG if verbose else logging.WARNING,
        format="%(message)s",
        handlers=[RichHandler(console=out.console, show_path=False, show_time=False)],
        force=True,
    )


@app.command(
    context_settings={"allow_extra_args": True, "ignore_unknown_options": True}
)
@handle_errors
async def spawn(
    ctx: typer.Context,
    target: Optional[str] = typer.Argument(
        None,
        help="Image name or root directory. Ignored as a target when --image or --dir is given.",
    ),
    image: Optional[str] = typer.Option(None, "--image", help="Container image to run"),
    directory: Optional[str] = typer.Option(None, "--dir", help="Root directory to run"),
    user: Optional[str] = typer.Option(
        None, "--user", "-u", help="User to run as: name, uid, uid:gid or name:group"
    ),
    arch: Optional[str] = typer.Option(None, "--arch", help="Architecture personality (e.g. i686)"),
    bind_home: Optional[str] = typer.Option(
        None, "--bind-home", help="Use SRC[:DEST] as the home directory"
    ),
    bind_dir: List[str] = typer.Option(
        [], "--bind-dir", help="Bind SRC[:DEST[:OPTS]]; the first one becomes the working directory"
    ),
    with_ssh_agent: bool = typer.Option(False, "--with-ssh-agent", help="Share the SSH agent socket"),
    with_ssh_dir: bool = typer.Option(False, "--with-ssh-dir", help="Share ~/.ssh read-only"),
    with_x11: bool = typer.Option(False, "--with-x11", help="Share the X11 display"),
    with_pulseaudio: bool = typer.Option(False, "--with-pulseaudio", help="Share the PulseAudio server"),
    share_devices: bool = typer.Option(
        False, "--share-devices", help="Share the host /dev and /sys instead of minimal copies"
    ),
    using_docker: bool = typer.Option(False, "--using-docker", help="Force the docker backend"),
    using_nspawn: bool = typer.Option(False, "--using-nspawn", help="Force the systemd-nspawn backend"),
    using_chroot: bool = typer.Option(False, "--using-chroot", help="Force the raw chroot backend"),
    backend_arg: List[str] = typer.Option(
        [], "--backend-arg", help="Pass an argument straight to the backend tool"
    ),
    unlock: bool = typer.Option(False, "--unlock", help="Remove a stale lock and exit"),
    cleanup: bool = typer.Option(
        False, "--cleanup", help="Unmount leftovers of a crashed run, unlock and exit"
    ),
    dry_run: bool = typer.Option(False, "--dry-run", help="Print privileged commands instead of running them"),
    verbose: bool = typer.Option(False, "--verbose", "-v", help="Show debug logging"),
    version: Optional[bool] = typer.Option(
        None,
        "--version",
        "-V",
        help="Show version and exit.",
        callback=version_callback,
        is_eager=True,
    ),
) -> None:
    """Spawn an isolated environment and run COMMAND in it.

    Without a command an interactive login shell is started.  Put the
    command after -- when it has options of its own:

        spawn ./rootfs -- ls -la
        spawn --image alpine --with-x11 xterm
    """
    setup_logging(verbose)

    # With an explicit --image/--dir every positional belongs to the command.
    if image or directory:
        name = None
        command = ([target] if target is not None else []) + list(ctx.args)
    else:
        name = target
        command = list(ctx.args)

    config = load_config()
    runner = make_runner(
        dry_run=dry_run,
        interactive=sys.stdin.isatty(),
        sudo=config.sudo,
        echo=out.command,
    )
    spawner = Spawner(runner, config, progress=out, program=out.prog_name)

    if unlock or cleanup:
        root = directory or name
        if not root:
            raise ValidationError("--unlock and --cleanup need a root directory")
        if cleanup:
            spawner.cleanup(root)
        else:
            spawner.unlock(root)
        return

    request = SpawnRequest(
        name=name,
        image=image,
        directory=directory,
        using=pick_backend_flag(using_docker, using_nspawn, using_chroot),
        user=user,
        arch=arch,
        bind_home=parse_home_bind(bind_home) if bind_home else None,
        bind_dirs=parse_bind_dirs(bind_dir),
        ssh_agent=with_ssh_agent,
        ssh_dir=with_ssh_dir,
        x11=with_x11,
        pulseaudio=with_pulseaudio,
        share_devices=share_devices,
        backend_args=list(backend_arg),
        command=command,
    )
    status = await spawner.spawn(request)
    if status != 0:
        raise typer.Exit(status)


def cli() -> None:
    """CLI entry point for setuptools."""
    out.use_original_stderr()
    app(prog_name=out.prog_name)


if __name__ == "__main__":
    cli()

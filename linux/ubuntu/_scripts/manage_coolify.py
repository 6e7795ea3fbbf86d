#!/usr/bin/env python3
"""
Coolify Management Utility
--------------------------

Thin wrapper around systemctl, docker and docker-compose for a Coolify
instance installed by coolify_setup.py.

Commands:
  • start    - start coolify.service
  • stop     - stop coolify.service
  • restart  - restart coolify.service
  • status   - show coolify.service status
  • logs     - show the coolify container logs
  • update   - pull the latest image and recreate the stack

The same dispatch table renders the manage-coolify.sh helper that the
installer drops next to docker-compose.yml.

Usage:
  manage-coolify {start|stop|restart|status|logs|update}

Version: 1.0.0
"""

import os
import shlex
import subprocess
import sys
from dataclasses import dataclass
from pathlib import Path
from typing import Callable, Dict, List, Optional, Tuple

try:
    import click
    from rich.console import Console
except ImportError:
    print(
        "Required libraries not found. Please install them using:\n"
        "pip install click rich"
    )
    sys.exit(1)


VERSION = "1.0.0"
INSTALL_DIR = Path("/opt/coolify")
SERVICE_NAME = "coolify.service"
CONTAINER_NAME = "coolify"
COMPOSE_BIN = "docker-compose"


class NordColors:
    FROST_2 = "#88C0D0"
    RED = "#BF616A"
    YELLOW = "#EBCB8B"
    GREEN = "#A3BE8C"


console = Console()


@dataclass(frozen=True)
class ManagementCommand:
    """
    A single management subcommand.

    Attributes:
        name: Subcommand name as typed by the user
        message: Banner printed before the steps run
        style: Banner color ("green" or "yellow" in the shell helper)
        steps: Commands run in order, each as an argv list
        cwd: Working directory for the steps, if any
    """

    name: str
    message: str
    style: str
    steps: Tuple[Tuple[str, ...], ...]
    cwd: Optional[Path] = None


def build_commands(install_dir: Path = INSTALL_DIR) -> Dict[str, ManagementCommand]:
    """Return the dispatch table keyed by subcommand name, in usage order."""
    return {
        "start": ManagementCommand(
            "start", "Starting Coolify...", "green",
            (("systemctl", "start", SERVICE_NAME),),
        ),
        "stop": ManagementCommand(
            "stop", "Stopping Coolify...", "yellow",
            (("systemctl", "stop", SERVICE_NAME),),
        ),
        "restart": ManagementCommand(
            "restart", "Restarting Coolify...", "yellow",
            (("systemctl", "restart", SERVICE_NAME),),
        ),
        "status": ManagementCommand(
            "status", "Coolify Status:", "green",
            (("systemctl", "status", SERVICE_NAME),),
        ),
        "logs": ManagementCommand(
            "logs", "Coolify Logs:", "green",
            (("docker", "logs", CONTAINER_NAME),),
        ),
        "update": ManagementCommand(
            "update", "Updating Coolify...", "yellow",
            (
                (COMPOSE_BIN, "pull"),
                (COMPOSE_BIN, "down"),
                (COMPOSE_BIN, "up", "-d"),
            ),
            cwd=install_dir,
        ),
    }


COMMANDS = build_commands()


def usage(prog: str = "manage-coolify") -> str:
    return f"Usage: {prog} {{{'|'.join(COMMANDS)}}}"


def _banner_color(style: str) -> str:
    return NordColors.GREEN if style == "green" else NordColors.YELLOW


def dispatch(
    command: Optional[str],
    prog: str = "manage-coolify",
    commands: Optional[Dict[str, ManagementCommand]] = None,
    runner: Optional[Callable[..., subprocess.CompletedProcess]] = None,
) -> int:
    """
    Run a management subcommand and return its exit code.

    Steps run in order without stopping on failure; the exit code is that of
    the last step. Unknown or missing commands print usage and return 1.
    """
    commands = commands if commands is not None else COMMANDS
    runner = runner or subprocess.run
    entry = commands.get(command) if command else None
    if entry is None:
        console.print(usage(prog), highlight=False)
        return 1

    color = _banner_color(entry.style)
    console.print(f"[{color}]{entry.message}[/{color}]")

    returncode = 0
    for step in entry.steps:
        try:
            result = runner(list(step), cwd=entry.cwd, check=False)
            returncode = result.returncode
        except FileNotFoundError as e:
            console.print(f"[bold {NordColors.RED}]✗ {e}[/]")
            returncode = 127
    return returncode


# ----------------------------------------------------------------
# Shell Helper Rendering
# ----------------------------------------------------------------
SHELL_HEADER = """#!/bin/bash

GREEN='\\033[0;32m'
YELLOW='\\033[1;33m'
RED='\\033[0;31m'
NC='\\033[0m' # No Color

case "$1" in
"""

SHELL_FOOTER = """  *)
    echo -e "Usage: $0 {%s}"
    exit 1
    ;;
esac
"""


def render_shell_script(install_dir: Path = INSTALL_DIR) -> str:
    """Render the manage-coolify.sh helper from the dispatch table."""
    commands = build_commands(install_dir)
    lines: List[str] = [SHELL_HEADER]
    for name, entry in commands.items():
        color = "${GREEN}" if entry.style == "green" else "${YELLOW}"
        lines.append(f"  {name})\n")
        lines.append(f'    echo -e "{color}{entry.message}${{NC}}"\n')
        if entry.cwd is not None:
            lines.append(f"    cd {shlex.quote(str(entry.cwd))}\n")
        for step in entry.steps:
            lines.append(f"    {shlex.join(step)}\n")
        lines.append("    ;;\n")
    lines.append(SHELL_FOOTER % "|".join(commands))
    return "".join(lines)


# ----------------------------------------------------------------
# CLI Entry Point
# ----------------------------------------------------------------
@click.command(context_settings={"ignore_unknown_options": True})
@click.argument("args", nargs=-1)
@click.version_option(version=VERSION)
def main(args: Tuple[str, ...]) -> None:
    """Manage the local Coolify service: start|stop|restart|status|logs|update."""
    # Words after the command are ignored, as in manage-coolify.sh
    prog = os.path.basename(sys.argv[0]) or "manage-coolify"
    sys.exit(dispatch(args[0] if args else None, prog=prog))


if __name__ == "__main__":
    main()

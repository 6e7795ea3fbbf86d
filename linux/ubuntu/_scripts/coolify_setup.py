#!/usr/bin/env python3
"""
Coolify Installation Utility
----------------------------

Installs the self-hosted Coolify platform on an Ubuntu server alongside any
services that are already running there.

Features:
  • Verifies root privileges before touching the system
  • Installs Docker from the official apt repository if it is missing
  • Installs the standalone Docker Compose binary if it is missing
  • Creates /opt/coolify, moving any previous install aside as a timestamped backup
  • Creates the external "coolify" Docker network if it does not exist
  • Generates docker-compose.yml with freshly generated APP_ID and SECRET_KEY values
  • Installs, enables and starts coolify.service under systemd
  • Drops a manage-coolify.sh helper next to the compose file

Note: Run this script with root privileges.

Usage:
  sudo ./coolify_setup.py [--strict] [--debug] [--log-file PATH]

Version: 1.0.0
"""

import atexit
import datetime
import logging
import os
import platform
import secrets
import shutil
import signal
import socket
import string
import subprocess
import sys
from dataclasses import dataclass
from pathlib import Path
from typing import Any, Callable, Dict, List, Optional, Set

try:
    import click
    import pyfiglet
    import requests
    from rich.align import Align
    from rich.console import Console
    from rich.markup import escape
    from rich.panel import Panel
    from rich.progress import (
        BarColumn,
        DownloadColumn,
        Progress,
        SpinnerColumn,
        TaskProgressColumn,
        TextColumn,
        TimeRemainingColumn,
    )
    from rich.style import Style
    from rich.table import Table
    from rich.text import Text
    from rich.theme import Theme
except ImportError:
    print(
        "Required libraries not found. Please install them using:\n"
        "pip install click pyfiglet requests rich"
    )
    sys.exit(1)

import manage_coolify


# ----------------------------------------------------------------
# Configuration & Constants
# ----------------------------------------------------------------
class AppConfig:
    """Application configuration settings."""

    VERSION = "1.0.0"
    APP_NAME = "Coolify Setup"
    APP_SUBTITLE = "Self-hosted PaaS Installer"

    try:
        HOSTNAME = socket.gethostname()
    except OSError:
        HOSTNAME = "Unknown"

    DEFAULT_TIMEOUT = 300  # seconds
    DOWNLOAD_TIMEOUT = 60

    LOG_FILE = "/var/log/coolify_setup.log"

    # Install layout
    INSTALL_DIR = Path("/opt/coolify")
    COMPOSE_FILE_NAME = "docker-compose.yml"
    MANAGE_SCRIPT_NAME = "manage-coolify.sh"
    SERVICE_NAME = manage_coolify.SERVICE_NAME
    SERVICE_PATH = Path("/etc/systemd/system/coolify.service")
    NETWORK_NAME = "coolify"
    WEB_PORT = 8000
    BACKUP_TIMESTAMP_FORMAT = "%Y%m%d%H%M%S"

    # Docker engine
    DOCKER_PREREQUISITES = [
        "apt-transport-https",
        "ca-certificates",
        "curl",
        "gnupg",
        "lsb-release",
        "software-properties-common",
    ]
    DOCKER_PACKAGES = ["docker-ce", "docker-ce-cli", "containerd.io"]
    DOCKER_GPG_URL = "https://download.docker.com/linux/ubuntu/gpg"
    DOCKER_KEYRING = Path("/etc/apt/keyrings/docker.gpg")
    DOCKER_SOURCES_LIST = Path("/etc/apt/sources.list.d/docker.list")
    DOCKER_REPO_URL = "https://download.docker.com/linux/ubuntu"

    # Docker Compose standalone binary
    DOCKER_COMPOSE_VERSION = "2.18.1"
    DOCKER_COMPOSE_BIN = Path("/usr/local/bin/docker-compose")
    DOCKER_COMPOSE_URL = (
        "https://github.com/docker/compose/releases/download/"
        "v{version}/docker-compose-{system}-{machine}"
    )

    # Generated secrets
    SECRET_ALPHABET = string.ascii_letters + string.digits
    APP_ID_LENGTH = 32
    SECRET_KEY_LENGTH = 64
    APP_ID_PLACEHOLDER = "unique-app-id-for-this-instance"
    SECRET_KEY_PLACEHOLDER = "your-secret-key-change-this"

    COMPOSE_TEMPLATE = """version: '3.8'
services:
  coolify:
    image: coollabsio/coolify:latest
    container_name: coolify
    restart: unless-stopped
    volumes:
      - /var/run/docker.sock:/var/run/docker.sock
      - coolify-db:/app/db
      - coolify-logs:/app/logs
      - coolify-backups:/app/backups
      - coolify-ssl:/app/ssl
    ports:
      - "8000:8000"
    networks:
      - coolify
    environment:
      - COOLIFY_DATABASE_URL=file:/app/db/prod.db
      - COOLIFY_APP_ID=unique-app-id-for-this-instance
      - COOLIFY_SECRET_KEY=your-secret-key-change-this
      - COOLIFY_HOSTED=false
      - COOLIFY_WHITE_LABELED=false
      - COOLIFY_WHITE_LABELED_ICON=
      - COOLIFY_USE_HTTPS=false

networks:
  coolify:
    external: true

volumes:
  coolify-db:
  coolify-logs:
  coolify-backups:
  coolify-ssl:
"""

    SERVICE_TEMPLATE = """[Unit]
Description=Coolify Service
After=docker.service
Requires=docker.service

[Service]
WorkingDirectory={install_dir}
ExecStart={compose_bin} up
ExecStop={compose_bin} down
TimeoutStartSec=0
Restart=on-failure
StartLimitIntervalSec=60
StartLimitBurst=3

[Install]
WantedBy=multi-user.target
"""


# ----------------------------------------------------------------
# Nord-Themed Colors
# ----------------------------------------------------------------
class NordColors:
    """Nord color palette used by the console helpers."""

    POLAR_NIGHT_4 = "#4C566A"
    SNOW_STORM_1 = "#D8DEE9"
    SNOW_STORM_2 = "#E5E9F0"
    FROST_1 = "#8FBCBB"
    FROST_2 = "#88C0D0"
    FROST_3 = "#81A1C1"
    FROST_4 = "#5E81AC"
    RED = "#BF616A"
    YELLOW = "#EBCB8B"
    GREEN = "#A3BE8C"


console = Console(
    theme=Theme(
        {
            "info": f"bold {NordColors.FROST_2}",
            "warning": f"bold {NordColors.YELLOW}",
            "error": f"bold {NordColors.RED}",
            "success": f"bold {NordColors.GREEN}",
        }
    )
)

logger = logging.getLogger("coolify_setup")
logger.addHandler(logging.NullHandler())

# Echo every executed command to the console (--debug)
VERBOSE = False

# .part files of downloads still in progress, removed by cleanup()
PARTIAL_DOWNLOADS: Set[Path] = set()


# ----------------------------------------------------------------
# Custom Exception Classes
# ----------------------------------------------------------------
class CoolifySetupError(Exception):
    """Base exception for Coolify setup errors."""

    pass


class CommandError(CoolifySetupError):
    """Raised when a system command fails."""

    pass


class DownloadError(CoolifySetupError):
    """Raised when a file download fails."""

    pass


class TemplateError(CoolifySetupError):
    """Raised when a template is missing an expected placeholder."""

    pass


# ----------------------------------------------------------------
# Data Structures
# ----------------------------------------------------------------
@dataclass
class TaskResult:
    """
    Tracks the result of a setup task.

    Attributes:
        name: The task name
        success: Whether the task was successful
        message: A short description of the outcome
    """

    name: str
    success: bool
    message: str


# ----------------------------------------------------------------
# Logging Setup
# ----------------------------------------------------------------
def setup_logging(log_file: str = AppConfig.LOG_FILE) -> logging.Logger:
    """
    Attach a file handler to the setup logger.

    Console output goes through the rich helpers below, which also log each
    message, so the file ends up with the full transcript of a run.
    """
    log_path = Path(log_file)
    log_path.parent.mkdir(parents=True, exist_ok=True)
    logger.setLevel(logging.DEBUG)
    for h in logger.handlers[:]:
        if isinstance(h, logging.FileHandler):
            logger.removeHandler(h)
            h.close()
    file_handler = logging.FileHandler(log_path)
    file_handler.setLevel(logging.DEBUG)
    file_handler.setFormatter(
        logging.Formatter("[%(asctime)s] [%(levelname)s] %(message)s", "%Y-%m-%d %H:%M:%S")
    )
    logger.addHandler(file_handler)
    try:
        os.chmod(log_path, 0o600)
    except OSError as e:
        logger.warning(f"Could not set permissions on log file {log_path}: {e}")
    return logger


# ----------------------------------------------------------------
# UI Helper Functions
# ----------------------------------------------------------------
def create_header() -> Panel:
    """Create the ASCII art header panel."""
    ascii_art = ""
    for font_name in ["slant", "small", "standard"]:
        try:
            ascii_art = pyfiglet.Figlet(font=font_name, width=60).renderText(AppConfig.APP_NAME)
        except Exception:
            continue
        if ascii_art.strip():
            break

    colors = [NordColors.FROST_1, NordColors.FROST_2, NordColors.FROST_3, NordColors.FROST_4]
    lines = [line for line in ascii_art.split("\n") if line.strip()] or [AppConfig.APP_NAME]
    styled_text = ""
    for i, line in enumerate(lines):
        styled_text += f"[bold {colors[i % len(colors)]}]{escape(line)}[/]\n"

    return Panel(
        Text.from_markup(styled_text.rstrip("\n")),
        border_style=Style(color=NordColors.FROST_1),
        padding=(1, 2),
        title=f"[bold {NordColors.SNOW_STORM_2}]v{AppConfig.VERSION}[/]",
        title_align="right",
        subtitle=f"[bold {NordColors.SNOW_STORM_1}]{AppConfig.APP_SUBTITLE}[/]",
        subtitle_align="center",
    )


def print_message(text: str, style: str = NordColors.FROST_2, prefix: str = "•") -> None:
    console.print(f"[{style}]{prefix} {escape(text)}[/{style}]")


def print_step(message: str) -> None:
    logger.info(message)
    print_message(message, NordColors.FROST_3, "➜")


def print_success(message: str) -> None:
    logger.info(message)
    print_message(message, NordColors.GREEN, "✓")


def print_warning(message: str) -> None:
    logger.warning(message)
    print_message(message, NordColors.YELLOW, "⚠")


def print_error(message: str) -> None:
    logger.error(message)
    print_message(message, NordColors.RED, "✗")


def display_panel(message: str, style: str = NordColors.FROST_2, title: Optional[str] = None) -> None:
    """
    Display a message in a styled panel.

    Args:
        message: The message to display
        style: The color style to use
        title: Optional panel title
    """
    console.print(
        Panel(
            Text.from_markup(f"[{style}]{message}[/]"),
            border_style=Style(color=style),
            padding=(1, 2),
            title=f"[bold {style}]{title}[/]" if title else None,
        )
    )


def create_section_header(title: str) -> Panel:
    logger.info(f"== {title} ==")
    return Panel(
        Text(title, style=f"bold {NordColors.FROST_1}"),
        border_style=Style(color=NordColors.FROST_3),
        padding=(0, 2),
    )


def display_results_table(results: List[TaskResult]) -> None:
    """Display a table summarizing task results."""
    table = Table(
        show_header=True,
        header_style=f"bold {NordColors.FROST_1}",
        expand=True,
        title=f"[bold {NordColors.FROST_2}]Setup Summary[/]",
        border_style=NordColors.FROST_3,
        title_justify="center",
    )
    table.add_column("Task", style=f"bold {NordColors.FROST_4}")
    table.add_column("Status", justify="center")
    table.add_column("Message", style=f"{NordColors.SNOW_STORM_1}")

    for result in results:
        status = (
            Text("✓ Success", style=f"bold {NordColors.GREEN}")
            if result.success
            else Text("✗ Failed", style=f"bold {NordColors.RED}")
        )
        table.add_row(result.name.replace("_", " ").title(), status, result.message)

    console.print(Panel(table, border_style=Style(color=NordColors.FROST_4), padding=(0, 1)))


# ----------------------------------------------------------------
# Command Execution Helpers
# ----------------------------------------------------------------
def run_command(
    cmd: List[str],
    env: Optional[Dict[str, str]] = None,
    check: bool = True,
    capture_output: bool = True,
    timeout: Optional[int] = AppConfig.DEFAULT_TIMEOUT,
    input_text: Optional[str] = None,
) -> subprocess.CompletedProcess:
    """
    Execute a system command and return the CompletedProcess.

    Raises:
        CommandError: If the command is missing or cannot be executed, times
            out, or exits non-zero while check is True
    """
    cmd_str = " ".join(cmd)
    logger.debug(f"Executing command: {cmd_str}")
    if VERBOSE:
        print_message(f"Executing: {cmd_str}", NordColors.POLAR_NIGHT_4, "$")
    try:
        return subprocess.run(
            cmd,
            env=env or os.environ.copy(),
            check=check,
            text=True,
            capture_output=capture_output,
            timeout=timeout,
            input=input_text,
        )
    except subprocess.CalledProcessError as e:
        if e.stderr:
            logger.debug(f"Stderr: {e.stderr.strip()}")
        raise CommandError(f"Command failed ({e.returncode}): {cmd_str}") from e
    except subprocess.TimeoutExpired as e:
        raise CommandError(f"Command timed out after {timeout} seconds: {cmd_str}") from e
    except FileNotFoundError as e:
        raise CommandError(f"Command not found: {cmd[0]}") from e
    except OSError as e:
        raise CommandError(f"Could not execute {cmd[0]}: {e}") from e


def command_exists(cmd: str) -> bool:
    """Check if a command exists in the system's PATH."""
    return shutil.which(cmd) is not None


def check_root() -> bool:
    """Return True when running with root privileges."""
    return os.geteuid() == 0


def download_file(url: str, destination: Path) -> Path:
    """
    Download url to destination with a progress bar.

    Writes to a ``.part`` file and renames it into place once complete.

    Raises:
        DownloadError: On any HTTP or filesystem failure
    """
    destination = Path(destination)
    partial = destination.with_name(destination.name + ".part")
    logger.debug(f"Downloading {url} to {destination}")
    PARTIAL_DOWNLOADS.add(partial)
    try:
        destination.parent.mkdir(parents=True, exist_ok=True)
        with requests.get(url, stream=True, timeout=AppConfig.DOWNLOAD_TIMEOUT) as response:
            response.raise_for_status()
            total_length = int(response.headers.get("content-length", 0)) or None
            with (
                open(partial, "wb") as out_file,
                Progress(
                    TextColumn("[progress.description]{task.description}"),
                    BarColumn(style=NordColors.FROST_4, complete_style=NordColors.FROST_2),
                    DownloadColumn(),
                    TimeRemainingColumn(),
                    console=console,
                ) as progress,
            ):
                task = progress.add_task(f"Downloading {destination.name}", total=total_length)
                for chunk in response.iter_content(chunk_size=8192):
                    if chunk:
                        out_file.write(chunk)
                        progress.update(task, advance=len(chunk))
        partial.replace(destination)
    except (requests.RequestException, OSError) as e:
        partial.unlink(missing_ok=True)
        raise DownloadError(f"Download of {url} failed: {e}") from e
    finally:
        if not partial.exists():
            PARTIAL_DOWNLOADS.discard(partial)
    return destination


# ----------------------------------------------------------------
# Signal Handling and Cleanup
# ----------------------------------------------------------------
def cleanup() -> None:
    """Remove partial downloads left behind by an interrupted run."""
    for partial in list(PARTIAL_DOWNLOADS):
        try:
            partial.unlink(missing_ok=True)
            logger.debug(f"Removed partial download {partial}")
        except OSError as e:
            logger.warning(f"Could not remove partial download {partial}: {e}")
        PARTIAL_DOWNLOADS.discard(partial)


def signal_handler(sig: int, frame: Any) -> None:
    try:
        sig_name = signal.Signals(sig).name
    except ValueError:
        sig_name = str(sig)
    print_warning(f"Process interrupted by signal {sig_name}")
    cleanup()
    sys.exit(128 + sig)


# ----------------------------------------------------------------
# Dependency Installation
# ----------------------------------------------------------------
def add_docker_repository() -> None:
    """Register Docker's apt repository and signing key."""
    try:
        response = requests.get(AppConfig.DOCKER_GPG_URL, timeout=AppConfig.DOWNLOAD_TIMEOUT)
        response.raise_for_status()
    except requests.RequestException as e:
        raise DownloadError(f"Could not fetch Docker GPG key: {e}") from e

    AppConfig.DOCKER_KEYRING.parent.mkdir(parents=True, exist_ok=True)
    run_command(
        ["gpg", "--batch", "--yes", "--dearmor", "-o", str(AppConfig.DOCKER_KEYRING)],
        input_text=response.text,
    )
    os.chmod(AppConfig.DOCKER_KEYRING, 0o644)

    arch = run_command(["dpkg", "--print-architecture"]).stdout.strip()
    codename = run_command(["lsb_release", "-cs"]).stdout.strip()
    AppConfig.DOCKER_SOURCES_LIST.write_text(
        f"deb [arch={arch} signed-by={AppConfig.DOCKER_KEYRING}] "
        f"{AppConfig.DOCKER_REPO_URL} {codename} stable\n"
    )


def install_docker() -> TaskResult:
    """Install Docker Engine from the official repository when it is missing."""
    console.print(create_section_header("Checking Docker"))

    if command_exists("docker"):
        print_success("Docker is already installed.")
        return TaskResult("docker", True, "Docker is already installed")

    print_warning("Docker is not installed. Installing Docker...")
    try:
        with Progress(
            SpinnerColumn(style=f"bold {NordColors.FROST_1}"),
            TextColumn("[progress.description]{task.description}"),
            BarColumn(bar_width=None, style=NordColors.FROST_4, complete_style=NordColors.FROST_2),
            TaskProgressColumn(),
            console=console,
        ) as progress:
            task = progress.add_task("Updating package lists", total=6)
            run_command(["apt-get", "update"])
            progress.advance(task)

            progress.update(task, description="Installing prerequisites")
            run_command(["apt-get", "install", "-y"] + AppConfig.DOCKER_PREREQUISITES)
            progress.advance(task)

            progress.update(task, description="Adding Docker repository")
            add_docker_repository()
            progress.advance(task)

            progress.update(task, description="Refreshing package lists")
            run_command(["apt-get", "update"])
            progress.advance(task)

            progress.update(task, description="Installing Docker packages")
            run_command(["apt-get", "install", "-y"] + AppConfig.DOCKER_PACKAGES)
            progress.advance(task)

            progress.update(task, description="Enabling Docker service")
            run_command(["systemctl", "enable", "docker"])
            run_command(["systemctl", "start", "docker"])
            progress.advance(task)

        if not command_exists("docker"):
            raise CoolifySetupError("docker is still not on PATH after installation")
    except Exception as e:
        print_error(f"Failed to install Docker: {e}")
        return TaskResult("docker", False, f"Failed to install Docker: {e}")

    print_success("Docker installed successfully.")
    return TaskResult("docker", True, "Docker installed successfully")


def docker_compose_url(version: str = AppConfig.DOCKER_COMPOSE_VERSION) -> str:
    """Release URL for this machine, e.g. docker-compose-Linux-x86_64."""
    uname = platform.uname()
    return AppConfig.DOCKER_COMPOSE_URL.format(
        version=version, system=uname.system, machine=uname.machine
    )


def install_docker_compose(destination: Path = AppConfig.DOCKER_COMPOSE_BIN) -> TaskResult:
    """Install the standalone docker-compose binary when it is missing."""
    console.print(create_section_header("Checking Docker Compose"))

    if command_exists("docker-compose"):
        print_success("Docker Compose is already installed.")
        return TaskResult("docker_compose", True, "Docker Compose is already installed")

    print_warning("Docker Compose is not installed. Installing Docker Compose...")
    try:
        print_step(f"Downloading {docker_compose_url()}")
        download_file(docker_compose_url(), destination)
        os.chmod(destination, 0o755)
    except (DownloadError, OSError) as e:
        print_error(f"Failed to install Docker Compose: {e}")
        return TaskResult("docker_compose", False, f"Failed to install Docker Compose: {e}")

    print_success("Docker Compose installed successfully.")
    return TaskResult(
        "docker_compose", True, f"Docker Compose v{AppConfig.DOCKER_COMPOSE_VERSION} installed"
    )


def resolve_compose_binary() -> str:
    """Path used in the systemd unit; falls back to the standalone install location."""
    return shutil.which("docker-compose") or str(AppConfig.DOCKER_COMPOSE_BIN)


# ----------------------------------------------------------------
# Install Directory
# ----------------------------------------------------------------
def backup_path_for(install_dir: Path, now: Optional[datetime.datetime] = None) -> Path:
    timestamp = (now or datetime.datetime.now()).strftime(AppConfig.BACKUP_TIMESTAMP_FORMAT)
    return install_dir.with_name(f"{install_dir.name}_backup_{timestamp}")


def prepare_install_dir(
    install_dir: Path, now: Optional[datetime.datetime] = None
) -> Optional[Path]:
    """
    Move an existing install directory aside and create a fresh one.

    Returns:
        The backup path, or None when there was nothing to back up

    Raises:
        CoolifySetupError: If the backup name is already taken
    """
    install_dir = Path(install_dir)
    backup = None
    if install_dir.exists():
        backup = backup_path_for(install_dir, now)
        if backup.exists():
            raise CoolifySetupError(f"Backup path {backup} already exists")
        install_dir.rename(backup)
        logger.info(f"Moved {install_dir} to {backup}")
    install_dir.mkdir(parents=True, exist_ok=False)
    return backup


def setup_install_directory(install_dir: Path = AppConfig.INSTALL_DIR) -> TaskResult:
    console.print(create_section_header("Setting Up Coolify Directory"))
    try:
        if install_dir.exists():
            print_warning("Coolify directory already exists. Creating backup...")
        backup = prepare_install_dir(install_dir)
    except (CoolifySetupError, OSError) as e:
        print_error(f"Failed to prepare {install_dir}: {e}")
        return TaskResult("install_directory", False, f"Failed to prepare {install_dir}: {e}")

    if backup:
        print_success(f"Backup created at {backup}")
        return TaskResult("install_directory", True, f"Created {install_dir} (backup at {backup})")
    print_success(f"Created {install_dir}")
    return TaskResult("install_directory", True, f"Created {install_dir}")


# ----------------------------------------------------------------
# Docker Network
# ----------------------------------------------------------------
def ensure_docker_network(name: str = AppConfig.NETWORK_NAME) -> bool:
    """
    Create the Docker network unless it already exists.

    Returns:
        True if the network was created, False if it was already present
    """
    inspect = run_command(["docker", "network", "inspect", name], check=False)
    if inspect.returncode == 0:
        return False
    run_command(["docker", "network", "create", name])
    return True


def setup_docker_network(name: str = AppConfig.NETWORK_NAME) -> TaskResult:
    console.print(create_section_header("Setting Up Docker Network"))
    try:
        created = ensure_docker_network(name)
    except CoolifySetupError as e:
        print_error(f"Failed to create Docker network {name}: {e}")
        return TaskResult("docker_network", False, f"Failed to create network {name}: {e}")

    if created:
        print_success(f"Created Docker network: {name}")
        return TaskResult("docker_network", True, f"Created network {name}")
    print_success(f"Docker network '{name}' already exists.")
    return TaskResult("docker_network", True, f"Network {name} already exists")


# ----------------------------------------------------------------
# Compose Manifest
# ----------------------------------------------------------------
def generate_secret(length: int, alphabet: str = AppConfig.SECRET_ALPHABET) -> str:
    """Random string drawn from the OS entropy source."""
    return "".join(secrets.choice(alphabet) for _ in range(length))


def substitute_placeholder(text: str, placeholder: str, value: str) -> str:
    """
    Replace placeholder in text with value.

    Raises:
        TemplateError: If the placeholder does not occur in text
    """
    if placeholder not in text:
        raise TemplateError(f"Placeholder {placeholder!r} not found in template")
    return text.replace(placeholder, value)


def render_compose_manifest(
    app_id: str, secret_key: str, template: str = AppConfig.COMPOSE_TEMPLATE
) -> str:
    text = substitute_placeholder(template, AppConfig.APP_ID_PLACEHOLDER, app_id)
    return substitute_placeholder(text, AppConfig.SECRET_KEY_PLACEHOLDER, secret_key)


def write_compose_file(
    install_dir: Path,
    app_id: Optional[str] = None,
    secret_key: Optional[str] = None,
) -> Path:
    """Write docker-compose.yml with generated secrets and return its path."""
    manifest = render_compose_manifest(
        app_id or generate_secret(AppConfig.APP_ID_LENGTH),
        secret_key or generate_secret(AppConfig.SECRET_KEY_LENGTH),
    )
    compose_path = Path(install_dir) / AppConfig.COMPOSE_FILE_NAME
    # Created 0600; the chmod covers a file that already existed
    fd = os.open(compose_path, os.O_WRONLY | os.O_CREAT | os.O_TRUNC, 0o600)
    with os.fdopen(fd, "w") as f:
        f.write(manifest)
    os.chmod(compose_path, 0o600)
    return compose_path


def create_compose_file(install_dir: Path = AppConfig.INSTALL_DIR) -> TaskResult:
    console.print(create_section_header("Creating docker-compose Configuration"))
    try:
        compose_path = write_compose_file(install_dir)
    except (TemplateError, OSError) as e:
        print_error(f"Failed to write compose file: {e}")
        return TaskResult("compose_file", False, f"Failed to write compose file: {e}")

    print_success(f"Compose file written to {compose_path}")
    return TaskResult("compose_file", True, f"Wrote {compose_path} with generated secrets")


# ----------------------------------------------------------------
# Systemd Service
# ----------------------------------------------------------------
def render_service_unit(install_dir: Path, compose_bin: Optional[str] = None) -> str:
    return AppConfig.SERVICE_TEMPLATE.format(
        install_dir=install_dir, compose_bin=compose_bin or resolve_compose_binary()
    )


def install_service(
    unit_path: Path, content: str, service_name: str = AppConfig.SERVICE_NAME
) -> None:
    """Write the unit file, reload systemd, then enable and start the service."""
    Path(unit_path).write_text(content)
    run_command(["systemctl", "daemon-reload"])
    run_command(["systemctl", "enable", service_name])
    run_command(["systemctl", "start", service_name])


def check_service_active(service_name: str = AppConfig.SERVICE_NAME) -> bool:
    result = run_command(["systemctl", "is-active", service_name], check=False)
    return result.returncode == 0


def setup_systemd_service(
    install_dir: Path = AppConfig.INSTALL_DIR, unit_path: Path = AppConfig.SERVICE_PATH
) -> TaskResult:
    console.print(create_section_header("Creating Systemd Service"))
    try:
        print_step(f"Writing {unit_path} and enabling {AppConfig.SERVICE_NAME}")
        install_service(unit_path, render_service_unit(install_dir))
    except (CoolifySetupError, OSError) as e:
        print_error(f"Failed to install {AppConfig.SERVICE_NAME}: {e}")
        return TaskResult("systemd_service", False, f"Failed to install service: {e}")

    print_success(f"{AppConfig.SERVICE_NAME} enabled and started")
    try:
        if not check_service_active():
            print_warning(f"{AppConfig.SERVICE_NAME} is not active yet; check 'systemctl status'")
    except CoolifySetupError as e:
        print_warning(f"Could not query service state: {e}")
    return TaskResult("systemd_service", True, f"Installed {unit_path}, enabled and started")


# ----------------------------------------------------------------
# Management Script
# ----------------------------------------------------------------
def write_management_script(install_dir: Path) -> Path:
    script_path = Path(install_dir) / AppConfig.MANAGE_SCRIPT_NAME
    script_path.write_text(manage_coolify.render_shell_script(install_dir))
    os.chmod(script_path, 0o755)
    return script_path


def create_management_script(install_dir: Path = AppConfig.INSTALL_DIR) -> TaskResult:
    console.print(create_section_header("Creating Management Script"))
    try:
        script_path = write_management_script(install_dir)
    except OSError as e:
        print_error(f"Failed to write management script: {e}")
        return TaskResult("management_script", False, f"Failed to write management script: {e}")

    print_success(f"Management script written to {script_path}")
    return TaskResult("management_script", True, f"Wrote {script_path}")


# ----------------------------------------------------------------
# Main Execution Flow
# ----------------------------------------------------------------
def run_setup(
    install_dir: Path = AppConfig.INSTALL_DIR,
    unit_path: Path = AppConfig.SERVICE_PATH,
    strict: bool = False,
) -> List[TaskResult]:
    """
    Run every installation step in order and collect the results.

    With strict, the run stops after the first failed step.
    """
    steps: List[Callable[[], TaskResult]] = [
        install_docker,
        install_docker_compose,
        lambda: setup_install_directory(install_dir),
        setup_docker_network,
        lambda: create_compose_file(install_dir),
        lambda: setup_systemd_service(install_dir, unit_path),
        lambda: create_management_script(install_dir),
    ]
    results: List[TaskResult] = []
    for step in steps:
        result = step()
        results.append(result)
        console.print()
        if strict and not result.success:
            print_error(f"Stopping after failed step: {result.name}")
            break
    return results


def display_completion_summary(install_dir: Path = AppConfig.INSTALL_DIR) -> None:
    script = Path(install_dir) / AppConfig.MANAGE_SCRIPT_NAME
    service = AppConfig.SERVICE_NAME
    display_panel(
        "Installation Details:\n"
        f"  • Installation Directory: {install_dir}\n"
        f"  • Web Interface: http://your-server-ip:{AppConfig.WEB_PORT}\n"
        f"  • Management Script: {script}\n\n"
        "Management Commands:\n"
        f"  • Start: systemctl start {service}\n"
        f"  • Stop: systemctl stop {service}\n"
        f"  • Check Status: systemctl status {service}\n"
        f"  • View Logs: docker logs {manage_coolify.CONTAINER_NAME}\n"
        f"  • Quick management: {script} {{{'|'.join(manage_coolify.COMMANDS)}}}\n\n"
        f"Note: You may need to configure your firewall to allow access to port {AppConfig.WEB_PORT}",
        style=NordColors.GREEN,
        title="Coolify installation completed!",
    )


def run_installer(strict: bool, debug: bool, log_file: str) -> None:
    """Root check, logging, the setup steps and the final report."""
    global VERBOSE
    VERBOSE = debug

    console.print(create_header())
    console.print(
        Align.center(
            f"[{NordColors.SNOW_STORM_1}]Hostname: {AppConfig.HOSTNAME}[/] | "
            f"[{NordColors.SNOW_STORM_1}]Time: {datetime.datetime.now().strftime('%Y-%m-%d %H:%M:%S')}[/]"
        )
    )
    console.print()

    if not check_root():
        display_panel(
            "Please run this script as root or with sudo",
            style=NordColors.RED,
            title="Permission Error",
        )
        sys.exit(1)

    signal.signal(signal.SIGINT, signal_handler)
    signal.signal(signal.SIGTERM, signal_handler)
    atexit.register(cleanup)

    try:
        setup_logging(log_file)
        logger.info(f"Logging initialized. Log file: {log_file}")
    except OSError as e:
        print_warning(f"Could not set up logging: {e}")

    results = run_setup(strict=strict)

    display_results_table(results)
    failed = [r for r in results if not r.success]
    if failed and strict:
        display_panel(
            f"Setup stopped at '{failed[0].name}'.\n"
            "Review the errors above, fix the cause and re-run the installer.",
            style=NordColors.RED,
            title="Setup Failed",
        )
        sys.exit(1)
    if failed:
        display_panel(
            f"Setup completed with {len(failed)} issue(s).\n"
            "Review the warnings and errors above for details.",
            style=NordColors.YELLOW,
            title="Setup Complete with Issues",
        )
    display_completion_summary()


# ----------------------------------------------------------------
# Program Entry Point
# ----------------------------------------------------------------
@click.command()
@click.option("--strict", is_flag=True, help="Stop at the first failed step and exit non-zero.")
@click.option("--debug", is_flag=True, help="Echo every executed command.")
@click.option(
    "--log-file",
    default=AppConfig.LOG_FILE,
    show_default=True,
    type=click.Path(dir_okay=False),
    help="Where to write the setup log.",
)
@click.version_option(version=AppConfig.VERSION)
def main(strict: bool, debug: bool, log_file: str) -> None:
    """Install Coolify with Docker, Docker Compose and a systemd service."""
    try:
        run_installer(strict, debug, log_file)
    except KeyboardInterrupt:
        display_panel("Setup interrupted by user", style=NordColors.YELLOW, title="Cancelled")
        cleanup()
        sys.exit(130)
    except Exception as e:
        display_panel(f"Unhandled error: {escape(str(e))}", style=NordColors.RED, title="Error")
        console.print_exception()
        sys.exit(1)


if __name__ == "__main__":
    main()

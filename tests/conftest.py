"""Shared pytest fixtures for the Coolify setup tests."""

from __future__ import annotations

import subprocess
from pathlib import Path
from typing import Any

import pytest
from click.testing import CliRunner

import coolify_setup


class FakeRunner:
    """Stand-in for ``coolify_setup.run_command`` that records every call.

    Commands exit 0 with empty output unless ``returncodes`` or ``stdout``
    say otherwise (keyed by the argv tuple).
    """

    def __init__(self) -> None:
        self.calls: list[list[str]] = []
        self.returncodes: dict[tuple[str, ...], int] = {}
        self.stdout: dict[tuple[str, ...], str] = {}

    def __call__(self, cmd: list[str], check: bool = True, **kwargs: Any) -> subprocess.CompletedProcess:
        self.calls.append(list(cmd))
        key = tuple(cmd)
        returncode = self.returncodes.get(key, 0)
        if check and returncode != 0:
            raise coolify_setup.CommandError(f"Command failed ({returncode}): {' '.join(cmd)}")
        return subprocess.CompletedProcess(cmd, returncode, stdout=self.stdout.get(key, ""), stderr="")


@pytest.fixture
def cli_runner() -> CliRunner:
    """Provide a Click CLI test runner."""
    return CliRunner()


@pytest.fixture
def fake_runner(monkeypatch: pytest.MonkeyPatch) -> FakeRunner:
    """Replace run_command so no system command is executed."""
    runner = FakeRunner()
    monkeypatch.setattr(coolify_setup, "run_command", runner)
    return runner


@pytest.fixture
def install_dir(tmp_path: Path) -> Path:
    """Install directory path under a temp root (not yet created)."""
    root = tmp_path / "opt"
    root.mkdir()
    return root / "coolify"


@pytest.fixture
def tools_present(monkeypatch: pytest.MonkeyPatch) -> None:
    """Pretend docker and docker-compose are already on PATH."""
    monkeypatch.setattr(coolify_setup, "command_exists", lambda name: True)

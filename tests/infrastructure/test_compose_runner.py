"""Tests for the docker compose pass-through runner."""

from __future__ import annotations

import subprocess
from pathlib import Path
from unittest.mock import patch

import pytest

from holectl.infrastructure.compose import (
    ComposeFailedError,
    ComposeNotFoundError,
    ComposeRunner,
)


@pytest.fixture
def runner(tmp_path: Path) -> ComposeRunner:
    return ComposeRunner(project_dir=tmp_path, compose_file=tmp_path / "docker-compose.yml")


class TestArgv:
    def test_up_detached(self, runner: ComposeRunner, tmp_path: Path) -> None:
        argv, output = runner.up("pihole", dry_run=True)
        assert argv == [
            "docker",
            "compose",
            "-f",
            str(tmp_path / "docker-compose.yml"),
            "up",
            "-d",
            "pihole",
        ]
        assert output == ""

    def test_up_foreground(self, runner: ComposeRunner) -> None:
        argv, _ = runner.up(detach=False, dry_run=True)
        assert argv[-1] == "up"

    def test_down_with_volumes(self, runner: ComposeRunner) -> None:
        argv, _ = runner.down(volumes=True, dry_run=True)
        assert argv[-2:] == ["down", "--volumes"]

    def test_ps_asks_for_json(self, runner: ComposeRunner) -> None:
        argv, _ = runner.ps(dry_run=True)
        assert argv[-3:] == ["ps", "--format", "json"]

    def test_project_name_and_binary(self, tmp_path: Path) -> None:
        runner = ComposeRunner(
            project_dir=tmp_path,
            compose_file=tmp_path / "c.yml",
            binary=["podman-compose"],
            project_name="dns",
        )
        argv = runner.command("ps")
        assert argv == ["podman-compose", "-f", str(tmp_path / "c.yml"), "-p", "dns", "ps"]


class TestRun:
    def test_missing_binary(self, runner: ComposeRunner) -> None:
        with (
            patch("holectl.infrastructure.compose.shutil.which", return_value=None),
            pytest.raises(ComposeNotFoundError),
        ):
            runner.up()

    def test_success_returns_stdout(self, runner: ComposeRunner, tmp_path: Path) -> None:
        completed = subprocess.CompletedProcess(args=[], returncode=0, stdout="started\n")
        with (
            patch("holectl.infrastructure.compose.shutil.which", return_value="/usr/bin/docker"),
            patch("holectl.infrastructure.compose.subprocess.run", return_value=completed) as run,
        ):
            argv, output = runner.up()
        assert output == "started\n"
        assert run.call_args.args[0] == argv
        assert run.call_args.kwargs["cwd"] == tmp_path

    def test_failure_carries_stderr(self, runner: ComposeRunner) -> None:
        error = subprocess.CalledProcessError(1, ["docker"], stderr="no such service")
        with (
            patch("holectl.infrastructure.compose.shutil.which", return_value="/usr/bin/docker"),
            patch("holectl.infrastructure.compose.subprocess.run", side_effect=error),
            pytest.raises(ComposeFailedError) as info,
        ):
            runner.down()
        assert info.value.returncode == 1
        assert info.value.stderr == "no such service"
        assert info.value.argv[-1] == "down"

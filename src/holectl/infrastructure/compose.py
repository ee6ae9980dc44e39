"""Pass-through runner for the ``docker compose`` binary.

holectl never supervises containers itself; it only assembles the argv
and hands over to the orchestrator.  Output is captured so services can
put it into a ServiceResult.
"""

from __future__ import annotations

import logging
import shutil
import subprocess
from dataclasses import dataclass, field
from pathlib import Path

logger = logging.getLogger(__name__)


class ComposeNotFoundError(RuntimeError):
    """The configured compose binary is not on PATH."""


class ComposeFailedError(RuntimeError):
    """The compose binary exited non-zero."""

    def __init__(self, argv: list[str], returncode: int, stderr: str) -> None:
        super().__init__(f"{' '.join(argv)} exited with {returncode}")
        self.argv = argv
        self.returncode = returncode
        self.stderr = stderr


@dataclass
class ComposeRunner:
    """Builds and runs ``docker compose -f <file> <verb>`` invocations."""

    project_dir: Path
    compose_file: Path
    binary: list[str] = field(default_factory=lambda: ["docker", "compose"])
    project_name: str | None = None

    def command(self, *parts: str) -> list[str]:
        argv = [*self.binary, "-f", str(self.compose_file)]
        if self.project_name:
            argv += ["-p", self.project_name]
        return [*argv, *parts]

    def up(
        self, *services: str, detach: bool = True, dry_run: bool = False
    ) -> tuple[list[str], str]:
        verb = ["up", "-d"] if detach else ["up"]
        return self._run(self.command(*verb, *services), dry_run=dry_run)

    def down(self, *, volumes: bool = False, dry_run: bool = False) -> tuple[list[str], str]:
        verb = ["down", "--volumes"] if volumes else ["down"]
        return self._run(self.command(*verb), dry_run=dry_run)

    def ps(self, *, dry_run: bool = False) -> tuple[list[str], str]:
        return self._run(self.command("ps", "--format", "json"), dry_run=dry_run)

    def _run(self, argv: list[str], *, dry_run: bool) -> tuple[list[str], str]:
        if dry_run:
            logger.info("Dry-run compose: %s", " ".join(argv))
            return argv, ""
        if shutil.which(argv[0]) is None:
            msg = f"{argv[0]!r} not found on PATH"
            raise ComposeNotFoundError(msg)

        logger.debug("Running %s", " ".join(argv))
        try:
            proc = subprocess.run(
                argv,
                cwd=self.project_dir,
                capture_output=True,
                text=True,
                check=True,
            )
        except subprocess.CalledProcessError as exc:
            raise ComposeFailedError(argv, exc.returncode, exc.stderr or "") from exc
        except OSError as exc:
            raise ComposeNotFoundError(str(exc)) from exc
        return argv, proc.stdout

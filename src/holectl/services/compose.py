"""ComposeService — up / down / ps handed over to ``docker compose``.

holectl does not supervise containers.  These operations only check that
there is a compose file (and that named services exist), then run the
orchestrator and wrap its outcome in a ServiceResult.
"""

from __future__ import annotations

import json
from typing import TYPE_CHECKING, Any

import structlog

from holectl.infrastructure.compose import ComposeFailedError, ComposeNotFoundError
from holectl.services.base import BaseService
from holectl.services.result import ServiceResult
from holectl.services.telemetry import traced

if TYPE_CHECKING:
    from collections.abc import Callable

log = structlog.get_logger(__name__)


class ComposeService(BaseService):
    """Pass-through lifecycle operations."""

    @traced
    def up(
        self, services: tuple[str, ...] = (), *, detach: bool = True, dry_run: bool = False
    ) -> ServiceResult:
        op = "up"
        compose, failure = self._load(op, self._stack.compose)
        if failure is not None:
            return failure
        assert compose is not None

        unknown = [s for s in services if s not in compose.services]
        if unknown:
            return ServiceResult.failure(
                op,
                "UNKNOWN_SERVICE",
                f"Unknown service(s): {', '.join(unknown)}",
                known=sorted(compose.services),
            )
        runner = self._stack.runner()
        return self._run(
            op, lambda: runner.up(*services, detach=detach, dry_run=dry_run), dry_run=dry_run
        )

    @traced
    def down(self, *, volumes: bool = False, dry_run: bool = False) -> ServiceResult:
        op = "down"
        if not self._stack.compose_path.is_file():
            return self._missing(op)
        runner = self._stack.runner()
        return self._run(
            op, lambda: runner.down(volumes=volumes, dry_run=dry_run), dry_run=dry_run
        )

    @traced
    def ps(self, *, dry_run: bool = False) -> ServiceResult:
        op = "ps"
        if not self._stack.compose_path.is_file():
            return self._missing(op)
        runner = self._stack.runner()
        result = self._run(op, lambda: runner.ps(dry_run=dry_run), dry_run=dry_run)
        if not result.ok or dry_run:
            return result

        try:
            containers = parse_ps_output(result.data["output"])
        except json.JSONDecodeError:
            log.debug("compose.ps_unparsed", exc_info=True)
            return result.model_copy(
                update={"warnings": ["Could not parse compose ps output; showing it raw"]}
            )
        data = {**result.data, "containers": containers, "count": len(containers)}
        return result.model_copy(update={"data": data})

    # ------------------------------------------------------------------
    # Helpers
    # ------------------------------------------------------------------

    def _missing(self, op: str) -> ServiceResult:
        path = self._stack.compose_path
        return ServiceResult.failure(
            op, "NOT_FOUND", f"{self._stack.relative(path)} not found", path=str(path)
        )

    @staticmethod
    def _run(
        op: str, call: Callable[[], tuple[list[str], str]], *, dry_run: bool
    ) -> ServiceResult:
        try:
            argv, output = call()
        except ComposeNotFoundError as exc:
            return ServiceResult.failure(op, "COMPOSE_NOT_FOUND", str(exc))
        except ComposeFailedError as exc:
            log.warning("compose.failed", argv=exc.argv, returncode=exc.returncode)
            return ServiceResult.failure(
                op,
                "COMPOSE_FAILED",
                str(exc),
                argv=exc.argv,
                returncode=exc.returncode,
                stderr=exc.stderr.strip(),
            )
        return ServiceResult(
            ok=True,
            op=op,
            data={"argv": argv, "output": output, "dry_run": dry_run},
        )


def parse_ps_output(output: str) -> list[dict[str, Any]]:
    """Parse ``docker compose ps --format json``.

    Older releases print one JSON array, newer ones one object per line.
    """
    text = output.strip()
    if not text:
        return []
    if text.startswith("["):
        rows = json.loads(text)
    else:
        rows = [json.loads(line) for line in text.splitlines() if line.strip()]
    return [
        {
            "service": row.get("Service"),
            "name": row.get("Name"),
            "state": row.get("State"),
            "status": row.get("Status"),
            "health": row.get("Health") or None,
        }
        for row in rows
    ]

"""PlanService — start and stop order from the dependency graph."""

from __future__ import annotations

from holectl.infrastructure.graph import find_cycles, start_order
from holectl.services.base import BaseService
from holectl.services.result import ServiceResult
from holectl.services.telemetry import traced


class PlanService(BaseService):
    """Orders services the way the orchestrator will start them."""

    @traced
    def plan(self) -> ServiceResult:
        """Group services into start waves; a cycle is a failure."""
        op = "plan"
        compose, failure = self._load(op, self._stack.compose)
        if failure is not None:
            return failure
        assert compose is not None

        graph = self._stack.graph
        cycles = find_cycles(graph)
        if cycles:
            return ServiceResult.failure(
                op,
                "CYCLE",
                f"Dependency cycle between {', '.join(cycles[0])}",
                cycles=cycles,
            )

        waves = start_order(graph)
        missing = sorted(n for n, flag in graph.nodes(data="missing") if flag)
        edges = [
            {"from": src, "to": dst, "condition": cond}
            for src, dst, cond in sorted(graph.edges(data="condition"))
        ]
        warnings = [f"Dependency {name!r} is not defined and was skipped" for name in missing]
        return ServiceResult(
            ok=True,
            op=op,
            data={
                "start": waves,
                "stop": list(reversed(waves)),
                "edges": edges,
                "count": len(compose.services),
            },
            warnings=warnings,
        )

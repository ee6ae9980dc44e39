"""Service dependency graph built with NetworkX.

Edges point from prerequisite to dependent, so a topological sort is a
valid start order.  Rebuilt per invocation from the parsed compose file;
the graph for a home stack is a handful of nodes.
"""

from __future__ import annotations

from typing import TYPE_CHECKING

import networkx as nx

if TYPE_CHECKING:
    from holectl.domain.compose import ComposeFile

type _Graph = nx.DiGraph


def build_dependency_graph(compose: ComposeFile) -> _Graph:
    """Build a DiGraph of services.

    Every service is added as a node first so isolated services still
    show up in the start order.  Dependencies on services that are not
    defined become nodes flagged ``missing=True``.
    """
    g: _Graph = nx.DiGraph()
    for name, svc in compose.services.items():
        g.add_node(name, image=svc.image, missing=False)

    for name, needs in compose.dependencies().items():
        for dep in needs:
            if dep not in g:
                g.add_node(dep, image=None, missing=True)
            condition = compose.services[name].depends_on.get(dep, "network_namespace")
            g.add_edge(dep, name, condition=condition)
    return g


def find_cycles(graph: _Graph) -> list[list[str]]:
    """Return each dependency cycle as a path of service names.

    Each path follows the edges (prerequisite first) and starts at its
    alphabetically smallest service, so output is stable between runs.
    """
    cycles: list[list[str]] = []
    for cycle in nx.simple_cycles(graph):
        start = cycle.index(min(cycle))
        cycles.append(cycle[start:] + cycle[:start])
    return sorted(cycles)


def start_order(graph: _Graph) -> list[list[str]]:
    """Group services into start waves.

    Services in the same wave have no dependency on each other and can
    be started together.  Raises ``nx.NetworkXUnfeasible`` on cycles.
    """
    present = graph.subgraph(n for n, missing in graph.nodes(data="missing") if not missing)
    return [sorted(generation) for generation in nx.topological_generations(present)]


def stop_order(graph: _Graph) -> list[list[str]]:
    return list(reversed(start_order(graph)))

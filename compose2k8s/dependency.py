"""
Service start-order analysis.

Builds the depends_on graph and orders it with Kahn's algorithm.
"""

import logging
from collections import deque
from typing import Dict, List, Mapping

from .types import ComposeService, DependencyGraph

logger = logging.getLogger(__name__)

CYCLE_WARNING = "Circular dependency detected"


def reverse_edges(edges: Mapping[str, List[str]]) -> Dict[str, List[str]]:
    """
    Derive the dependency -> dependents index from forward edges.

    Dependents are listed in the insertion order of ``edges``.
    """
    dependents: Dict[str, List[str]] = {node: [] for node in edges}
    for node, deps in edges.items():
        for dep in deps:
            dependents[dep].append(node)
    return dependents


def analyze_dependencies(services: Mapping[str, ComposeService]) -> DependencyGraph:
    """
    Build the dependency graph and a topological start order.

    Edges to services that do not exist are dropped with a warning.
    Nodes on a cycle are left out of ``order`` and ``has_cycles`` is set.

    Args:
        services: Normalized services by name

    Returns:
        DependencyGraph
    """
    warnings: List[str] = []
    edges: Dict[str, List[str]] = {}

    for name, service in services.items():
        deps: List[str] = []
        for dep in service.depends_on:
            if dep not in services:
                message = f'Service "{name}" depends on unknown service "{dep}"; dependency ignored'
                logger.warning(message)
                warnings.append(message)
                continue
            deps.append(dep)
        edges[name] = deps

    dependents = reverse_edges(edges)
    in_degree = {node: len(deps) for node, deps in edges.items()}

    queue = deque(node for node, degree in in_degree.items() if degree == 0)
    order: List[str] = []

    while queue:
        node = queue.popleft()
        order.append(node)
        for dependent in dependents[node]:
            in_degree[dependent] -= 1
            if in_degree[dependent] == 0:
                queue.append(dependent)

    has_cycles = len(order) != len(services)
    if has_cycles:
        ordered = set(order)
        unordered = [node for node in edges if node not in ordered]
        message = f"{CYCLE_WARNING}; services left unordered: {', '.join(unordered)}"
        logger.warning(message)
        warnings.append(message)

    return DependencyGraph(edges=edges, order=order, has_cycles=has_cycles, warnings=warnings)

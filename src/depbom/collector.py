from __future__ import annotations

import logging
from typing import Set

from .types import DependencyKind, Package, ResolvedGraph, Workspace

logger = logging.getLogger(__name__)


def top_level_dependencies(workspace: Workspace, graph: ResolvedGraph) -> Set[Package]:
    """Return the packages workspace members depend on directly.

    Only normal dependencies ship, so build and development edges are
    ignored. Each edge is resolved through ``graph`` with the dependency's
    version specifier, since several versions of one name can coexist.
    """

    dependencies: Set[Package] = set()
    for member in workspace:
        for dependency in member.dependencies:
            if dependency.kind is not DependencyKind.NORMAL:
                logger.debug("%s: skipping %s", member.id, dependency)
                continue
            dependencies.add(graph.find(dependency))

    # Path dependencies between members resolve to members themselves.
    for member in workspace:
        dependencies.discard(member)

    return dependencies


def all_dependencies(workspace: Workspace, graph: ResolvedGraph) -> Set[Package]:
    dependencies: Set[Package] = set()
    for package in graph:
        if workspace.contains(package):
            continue
        dependencies.add(package)
    return dependencies


def collect_dependencies(workspace: Workspace, graph: ResolvedGraph, all_packages: bool = False) -> Set[Package]:
    if all_packages:
        dependencies = all_dependencies(workspace, graph)
    else:
        dependencies = top_level_dependencies(workspace, graph)
    logger.info(
        "selected %d %s dependencies",
        len(dependencies),
        "transitive" if all_packages else "top-level",
    )
    return dependencies

# Copyright 2026 Google LLC
#
# Licensed under the Apache License, Version 2.0 (the "License");
# you may not use this file except in compliance with the License.
# You may obtain a copy of the License at
#
#     http://www.apache.org/licenses/LICENSE-2.0
#
# Unless required by applicable law or agreed to in writing, software
# distributed under the License is distributed on an "AS IS" BASIS,
# WITHOUT WARRANTIES OR CONDITIONS OF ANY KIND, either express or implied.
# See the License for the specific language governing permissions and
# limitations under the License.
#
# SPDX-License-Identifier: Apache-2.0

"""Dependency graph and processing order for workspace members.

Key Concepts (ELI5)::

    ┌─────────────────────────┬─────────────────────────────────────────────┐
    │ Concept                 │ ELI5 Explanation                            │
    ├─────────────────────────┼─────────────────────────────────────────────┤
    │ Dependency graph        │ A map of "who needs what". If package A    │
    │                         │ depends on B, draw an arrow A → B.         │
    ├─────────────────────────┼─────────────────────────────────────────────┤
    │ Processing order        │ Every package comes after everything it    │
    │                         │ depends on, so a new version of B exists   │
    │                         │ before A's requirement on it is rewritten. │
    ├─────────────────────────┼─────────────────────────────────────────────┤
    │ Dependents              │ The reverse view: who requires me, and     │
    │                         │ with which requirement string.             │
    └─────────────────────────┴─────────────────────────────────────────────┘

Edge direction::

    edges["app"]          = ["core", "util"]   app depends on core, util
    reverse_edges["core"] = ["app"]             core is needed by app

Ordering is a depth-first post-order visit starting from each member in
discovery order. A shared dependency (diamond) is emitted once, before
every package that reaches it. The whole graph is ordered even when only
a few packages are released; selection is applied to the result.
"""

from __future__ import annotations

from dataclasses import dataclass, field

from uvrelease.errors import E, UvReleaseError
from uvrelease.logging import get_logger
from uvrelease.workspace import Dependency, Package, Workspace

logger = get_logger(__name__)


@dataclass
class DependencyGraph:
    """A directed graph of workspace member dependencies.

    Attributes:
        packages: Mapping from package name to :class:`Package`, in
            discovery order.
        edges: Dependent → its internal dependencies, in declaration order.
        reverse_edges: Dependency → its dependents, in discovery order.
    """

    packages: dict[str, Package] = field(default_factory=dict)
    edges: dict[str, list[str]] = field(default_factory=dict)
    reverse_edges: dict[str, list[str]] = field(default_factory=dict)

    def __len__(self) -> int:
        """Number of members."""
        return len(self.packages)


def build_graph(workspace: Workspace) -> DependencyGraph:
    """Build the internal dependency graph of a workspace.

    Requirements on distributions outside the workspace are ignored.
    """
    graph = DependencyGraph()
    for pkg in workspace.packages:
        graph.packages[pkg.name] = pkg
        graph.edges[pkg.name] = []
        graph.reverse_edges[pkg.name] = []

    for pkg in workspace.packages:
        for dep_name in workspace.internal_deps(pkg):
            graph.edges[pkg.name].append(dep_name)
            graph.reverse_edges[dep_name].append(pkg.name)

    logger.debug(
        'built_dependency_graph',
        packages=len(graph),
        edges=sum(len(deps) for deps in graph.edges.values()),
    )
    return graph


def detect_cycles(graph: DependencyGraph) -> list[list[str]]:
    """Find dependency cycles by walking each member's requirement chain.

    Returns:
        Each cycle as a list of names that starts and ends with the same
        package, e.g. ``['a', 'b', 'a']``. Empty for an acyclic graph.
    """
    cycles: list[list[str]] = []
    finished: set[str] = set()
    path: list[str] = []

    def _walk(name: str) -> None:
        path.append(name)
        for dep in graph.edges.get(name, []):
            if dep in path:
                cycles.append([*path[path.index(dep) :], dep])
            elif dep not in finished:
                _walk(dep)
        path.pop()
        finished.add(name)

    for name in graph.packages:
        if name not in finished:
            _walk(name)

    if cycles:
        logger.warning('cycles_detected', cycles=[' → '.join(c) for c in cycles])
    return cycles


def sort_workspace(graph: DependencyGraph) -> list[str]:
    """Return every package name with dependencies before dependents.

    Raises:
        UvReleaseError: ``UR-GRAPH-CYCLE-DETECTED``. uv refuses to lock
            cyclic workspaces, so this signals a broken invariant.
    """
    order: list[str] = []
    visited: set[str] = set()
    in_progress: set[str] = set()

    def _visit(name: str) -> None:
        if name in visited:
            return
        if name in in_progress:
            cycle_strs = [' → '.join(c) for c in detect_cycles(graph)]
            raise UvReleaseError(
                code=E.GRAPH_CYCLE_DETECTED,
                message=f'Circular dependencies detected: {cycle_strs}',
                hint='Remove circular dependencies between workspace members.',
            )
        in_progress.add(name)
        for dep in graph.edges.get(name, []):
            _visit(dep)
        in_progress.discard(name)
        visited.add(name)
        order.append(name)

    for name in graph.packages:
        _visit(name)

    logger.debug('sorted_workspace', order=order)
    return order


def find_dependents(workspace: Workspace, name: str) -> list[tuple[Package, Dependency]]:
    """Return every ``(member, requirement)`` that names ``name``.

    A member that lists ``name`` in several sections (say, runtime and a
    dependency group) contributes one pair per declaration.
    """
    return [
        (pkg, dep)
        for pkg in workspace.packages
        if pkg.name != name
        for dep in pkg.dependencies
        if dep.name == name
    ]


__all__ = [
    'DependencyGraph',
    'build_graph',
    'detect_cycles',
    'find_dependents',
    'sort_workspace',
]

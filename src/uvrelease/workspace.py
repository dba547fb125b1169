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

"""Workspace member discovery for uv workspaces.

Reads ``[tool.uv.workspace]`` from the root pyproject.toml, expands the
member globs, and parses each member's ``pyproject.toml`` once into a
read-only :class:`Package` snapshot. Manifest edits made later in the run
happen on disk and are never reflected back into these objects.

Key Concepts (ELI5)::

    ┌─────────────────────────┬────────────────────────────────────────────┐
    │ Concept                 │ ELI5 Explanation                           │
    ├─────────────────────────┼────────────────────────────────────────────┤
    │ Package                 │ One workspace member: name, version,      │
    │                         │ directory and declared requirements.     │
    ├─────────────────────────┼────────────────────────────────────────────┤
    │ Dependency              │ One requirement line, kept verbatim so it │
    │                         │ can be rewritten in place later.         │
    ├─────────────────────────┼────────────────────────────────────────────┤
    │ Internal dep            │ A requirement naming another member of    │
    │                         │ the same workspace.                       │
    ├─────────────────────────┼────────────────────────────────────────────┤
    │ PEP 503 normalization   │ My_Pkg and my-pkg are the same package.   │
    └─────────────────────────┴────────────────────────────────────────────┘

Usage::

    from uvrelease.workspace import discover_workspace, find_workspace_root

    ws = discover_workspace(find_workspace_root(Path.cwd()))
    for pkg in ws.packages:
        print(pkg.name, pkg.version, ws.internal_deps(pkg))
"""

from __future__ import annotations

import difflib
from collections.abc import Iterable
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any

import tomlkit
import tomlkit.exceptions
from packaging.requirements import InvalidRequirement, Requirement
from packaging.utils import canonicalize_name

from uvrelease.errors import E, UvReleaseError
from uvrelease.logging import get_logger
from uvrelease.manifest import is_publishable

logger = get_logger(__name__)


@dataclass(frozen=True)
class Dependency:
    """A declared requirement of a workspace member.

    Attributes:
        name: PEP 503 normalized name of the required distribution.
        requirement: The PEP 508 string exactly as written.
        section: Where it is declared: ``"dependencies"``,
            ``"optional-dependencies.<extra>"`` or
            ``"dependency-groups.<group>"``.
    """

    name: str
    requirement: str
    section: str = 'dependencies'


@dataclass(frozen=True)
class Package:
    """A workspace member as read at startup."""

    name: str
    version: str | None
    path: Path
    manifest_path: Path
    dependencies: tuple[Dependency, ...] = ()
    is_publishable: bool = True


@dataclass(frozen=True)
class Workspace:
    """All members of a uv workspace, in discovery order.

    The root package (if the root ``pyproject.toml`` has a ``[project]``
    table) comes first, then members sorted by path.
    """

    root: Path
    packages: tuple[Package, ...]
    _by_name: dict[str, Package] = field(init=False, repr=False, compare=False)

    def __post_init__(self) -> None:
        """Index packages by name."""
        object.__setattr__(self, '_by_name', {p.name: p for p in self.packages})

    @property
    def names(self) -> list[str]:
        """Member names in discovery order."""
        return [p.name for p in self.packages]

    def get(self, name: str) -> Package:
        """Return the member called ``name`` (any spelling).

        Raises:
            UvReleaseError: ``UR-WORKSPACE-UNKNOWN-PACKAGE``.
        """
        pkg = self._by_name.get(canonicalize_name(name))
        if pkg is None:
            matches = difflib.get_close_matches(canonicalize_name(name), self.names, n=1, cutoff=0.6)
            hint = f"Did you mean '{matches[0]}'?" if matches else 'Members: ' + ', '.join(self.names)
            raise UvReleaseError(
                code=E.WORKSPACE_UNKNOWN_PACKAGE,
                message=f"'{name}' is not a member of the workspace at {self.root}",
                hint=hint,
            )
        return pkg

    def internal_deps(self, package: Package) -> list[str]:
        """Names of workspace members ``package`` depends on, deduplicated."""
        seen: dict[str, None] = {}
        for dep in package.dependencies:
            if dep.name in self._by_name and dep.name != package.name:
                seen.setdefault(dep.name)
        return list(seen)


def find_workspace_root(start: Path) -> Path:
    """Walk up from ``start`` to the root of the enclosing uv workspace.

    Raises:
        UvReleaseError: ``UR-WORKSPACE-NOT-FOUND``.
    """
    start = start.resolve()
    for directory in (start, *start.parents):
        pyproject = directory / 'pyproject.toml'
        if pyproject.is_file() and 'workspace' in _read(pyproject).get('tool', {}).get('uv', {}):
            return directory
    raise UvReleaseError(
        code=E.WORKSPACE_NOT_FOUND,
        message=f'No pyproject.toml with [tool.uv.workspace] found above {start}',
        hint='Run uvrelease from inside a uv workspace.',
    )


def _read(manifest_path: Path) -> dict[str, Any]:
    try:
        text = manifest_path.read_text(encoding='utf-8')
    except OSError as exc:
        raise UvReleaseError(
            code=E.WORKSPACE_PARSE_ERROR,
            message=f'Failed to read {manifest_path}: {exc}',
            hint=f'Check that {manifest_path} exists and is readable.',
        ) from exc
    try:
        return tomlkit.parse(text).unwrap()
    except tomlkit.exceptions.TOMLKitError as exc:
        raise UvReleaseError(
            code=E.WORKSPACE_PARSE_ERROR,
            message=f'Failed to parse {manifest_path}: {exc}',
            hint=f'Check that {manifest_path} contains valid TOML.',
        ) from exc


def _expand_member_globs(workspace_root: Path, members: list[str], excludes: list[str]) -> list[Path]:
    """Expand member globs into package directories, minus the excludes."""
    found: set[Path] = set()
    for pattern in members:
        for candidate in workspace_root.glob(str(pattern)):
            if candidate.is_dir() and (candidate / 'pyproject.toml').is_file():
                found.add(candidate.resolve())

    excluded: set[Path] = set()
    for pattern in excludes:
        excluded.update(candidate.resolve() for candidate in workspace_root.glob(str(pattern)))

    result = sorted(found - excluded)
    logger.debug('expanded_member_globs', members=members, excludes=excludes, count=len(result))
    return result


def _parse_dependencies(manifest_path: Path, specs: Iterable[Any], section: str) -> list[Dependency]:
    deps: list[Dependency] = []
    for spec in specs:
        if not isinstance(spec, str):
            # e.g. {include-group = "test"} inside [dependency-groups]
            continue
        try:
            name = Requirement(spec).name
        except InvalidRequirement as exc:
            raise UvReleaseError(
                code=E.WORKSPACE_PARSE_ERROR,
                message=f"Invalid requirement '{spec}' in {section} of {manifest_path}: {exc}",
            ) from exc
        deps.append(Dependency(name=canonicalize_name(name), requirement=spec, section=section))
    return deps


def parse_package(pkg_dir: Path) -> Package:
    """Parse one member's ``pyproject.toml``.

    Raises:
        UvReleaseError: If the manifest is unreadable or has no name.
    """
    manifest_path = pkg_dir / 'pyproject.toml'
    doc = _read(manifest_path)
    project: dict[str, Any] = doc.get('project', {})
    name = project.get('name', '')
    if not name:
        raise UvReleaseError(
            code=E.WORKSPACE_PARSE_ERROR,
            message=f'No [project].name in {manifest_path}',
            hint='Every workspace member must have a [project] section with a name.',
        )

    deps = _parse_dependencies(manifest_path, project.get('dependencies', []), 'dependencies')
    for extra, specs in project.get('optional-dependencies', {}).items():
        deps.extend(_parse_dependencies(manifest_path, specs, f'optional-dependencies.{extra}'))
    for group, specs in doc.get('dependency-groups', {}).items():
        deps.extend(_parse_dependencies(manifest_path, specs, f'dependency-groups.{group}'))

    return Package(
        name=canonicalize_name(name),
        version=project.get('version'),
        path=pkg_dir.resolve(),
        manifest_path=manifest_path.resolve(),
        dependencies=tuple(deps),
        is_publishable=is_publishable(project),
    )


def discover_workspace(workspace_root: Path) -> Workspace:
    """Discover every member of the uv workspace rooted at ``workspace_root``.

    Raises:
        UvReleaseError: If the workspace is missing, empty, or has two
            members with the same normalized name.
    """
    root_pyproject = workspace_root / 'pyproject.toml'
    if not root_pyproject.is_file():
        raise UvReleaseError(
            code=E.WORKSPACE_NOT_FOUND,
            message=f'No pyproject.toml found at {workspace_root}',
            hint='Run uvrelease from the root of a uv workspace.',
        )
    doc = _read(root_pyproject)
    ws_table: dict[str, Any] = doc.get('tool', {}).get('uv', {}).get('workspace', {})
    members = list(ws_table.get('members', []))
    excludes = list(ws_table.get('exclude', []))

    root = workspace_root.resolve()
    dirs = [d for d in _expand_member_globs(root, members, excludes) if d != root]
    if 'project' in doc:
        dirs.insert(0, root)
    if not dirs:
        raise UvReleaseError(
            code=E.WORKSPACE_NO_MEMBERS,
            message=f'The workspace at {workspace_root} has no members',
            hint='Check the members globs in [tool.uv.workspace].',
        )

    packages: list[Package] = []
    seen: dict[str, Path] = {}
    for pkg_dir in dirs:
        pkg = parse_package(pkg_dir)
        if pkg.name in seen:
            raise UvReleaseError(
                code=E.WORKSPACE_DUPLICATE_PACKAGE,
                message=f"Package '{pkg.name}' is defined in both {seen[pkg.name]} and {pkg.path}",
                hint='Workspace member names must be unique after PEP 503 normalization.',
            )
        seen[pkg.name] = pkg.path
        packages.append(pkg)

    logger.debug('discovered_workspace', root=str(root), packages=[p.name for p in packages])
    return Workspace(root=root, packages=tuple(packages))


def select_packages(
    workspace: Workspace,
    *,
    packages: list[str] | None = None,
    all_packages: bool = False,
    exclude: list[str] | None = None,
    cwd: Path | None = None,
) -> set[str]:
    """Resolve the user's package selection to member names.

    Without ``packages`` or ``all_packages`` the selection is the member
    whose directory contains ``cwd`` (the deepest one), else the root
    package, else every member.

    Returns:
        The selected, normalized member names.
    """
    if packages:
        selected = {workspace.get(name).name for name in packages}
    elif all_packages:
        selected = set(workspace.names)
    else:
        selected = _default_selection(workspace, cwd)
    for name in exclude or []:
        selected.discard(workspace.get(name).name)
    return selected


def _default_selection(workspace: Workspace, cwd: Path | None) -> set[str]:
    if cwd is not None:
        here = cwd.resolve()
        containing = [p for p in workspace.packages if here == p.path or p.path in here.parents]
        if containing:
            deepest = max(containing, key=lambda p: len(p.path.parts))
            if deepest.path != workspace.root:
                return {deepest.name}
    for pkg in workspace.packages:
        if pkg.path == workspace.root:
            return {pkg.name}
    return set(workspace.names)


__all__ = [
    'Dependency',
    'Package',
    'Workspace',
    'discover_workspace',
    'find_workspace_root',
    'parse_package',
    'select_packages',
]

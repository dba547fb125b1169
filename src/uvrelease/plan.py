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

"""Per-package release plans.

A :class:`ReleasePlan` is the immutable decision set for one package:
which version it moves to, which tag marks it, who depends on it and
what development version follows. Plans are built once, in processing
order, and the pipeline only reads them.

Key Concepts (ELI5)::

    ┌─────────────────────┬────────────────────────────────────────────────┐
    │ Concept             │ ELI5 Explanation                               │
    ├─────────────────────┼────────────────────────────────────────────────┤
    │ ReleasePlan         │ One package's checklist: old version, new     │
    │                     │ version, tag, next dev version, dependents.  │
    ├─────────────────────┼────────────────────────────────────────────────┤
    │ prev_tag            │ The tag of the version on disk, used to ask  │
    │                     │ git "what changed since last time?".          │
    ├─────────────────────┼────────────────────────────────────────────────┤
    │ next_version = None │ The package is selected but not released     │
    │                     │ (e.g. "release" on a final version).         │
    ├─────────────────────┼────────────────────────────────────────────────┤
    │ Dependent           │ Another member plus the requirement string   │
    │                     │ it uses for this package.                     │
    └─────────────────────┴────────────────────────────────────────────────┘

Building a plan::

    resolve config ──→ disable-release? ──yes──→ skip (None)
          │ no
          ▼
    prev_version ──→ prev_tag (or --prev-tag-name verbatim)
          │
          ▼
    decide(prev, request) ──→ next_version
          │                        │ set
          │                        ▼
          │                  dependents, post_version
          ▼
    tag_name (unless disable-tag), rendered from next-or-prev
"""

from __future__ import annotations

from dataclasses import dataclass, field
from pathlib import Path

from packaging.version import Version

from uvrelease.config import ReleaseConfig, resolve_config
from uvrelease.errors import E, UvReleaseError
from uvrelease.graph import build_graph, find_dependents, sort_workspace
from uvrelease.logging import get_logger
from uvrelease.templates import Template, render
from uvrelease.versions import BumpLevel, TargetVersion, decide, parse_version, post_release_version
from uvrelease.workspace import Dependency, Package, Workspace

logger = get_logger(__name__)


@dataclass(frozen=True)
class Features:
    """Build features to enable when publishing: none, a list, or all."""

    selected: tuple[str, ...] = ()
    all: bool = False

    @classmethod
    def from_config(cls, config: ReleaseConfig) -> Features:
        """Read ``enable-all-features`` / ``enable-features``."""
        if config.enable_all_features:
            return cls(all=True)
        return cls(selected=tuple(config.enable_features or ()))

    def __str__(self) -> str:
        """Return a short description for logs."""
        if self.all:
            return 'all'
        return ','.join(self.selected) or 'none'


@dataclass(frozen=True)
class Dependent:
    """A workspace member that requires the package being released."""

    package: Package
    dependency: Dependency

    @property
    def requirement(self) -> str:
        """The requirement string as read at startup."""
        return self.dependency.requirement


@dataclass(frozen=True)
class ReleaseOptions:
    """Run-wide inputs to plan building, usually from the command line.

    Attributes:
        target: Requested bump level or absolute version.
        metadata: Local version label for relative bumps (``-m``).
        isolated: Ignore workspace and package config files.
        custom_config: File passed with ``-c/--config``.
        overrides: Config layer built from command-line flags.
        prev_tag_name: Trusted previous tag, skipping tag rendering.
    """

    target: TargetVersion = field(default_factory=lambda: TargetVersion(level=BumpLevel.RELEASE))
    metadata: str | None = None
    isolated: bool = False
    custom_config: Path | None = None
    overrides: ReleaseConfig | None = None
    prev_tag_name: str | None = None


@dataclass(frozen=True)
class ReleasePlan:
    """The release decisions for one package.

    Attributes:
        package: The member as read at startup.
        config: Fully resolved configuration for this package.
        prev_version: Version currently in the manifest.
        prev_tag: Tag that marks ``prev_version``.
        next_version: Version to release, or ``None`` for no release.
        tag_name: Tag to create, or ``None`` when tagging is disabled.
        post_version: Development version to move to after the release.
        dependents: Members requiring this package; empty without a release.
        features: Build features for publishing.
        nested_paths: Directories of members nested inside this package,
            ignored when looking for changes.
    """

    package: Package
    config: ReleaseConfig
    prev_version: Version
    prev_tag: str
    next_version: Version | None = None
    tag_name: str | None = None
    post_version: Version | None = None
    dependents: tuple[Dependent, ...] = ()
    features: Features = Features()
    nested_paths: tuple[Path, ...] = ()

    @property
    def name(self) -> str:
        """Package name."""
        return self.package.name

    @property
    def path(self) -> Path:
        """Package directory."""
        return self.package.path

    @property
    def base_version(self) -> Version:
        """The version being released, or the current one."""
        return self.next_version or self.prev_version

    @property
    def is_prerelease(self) -> bool:
        """Whether the version being released is a pre-release."""
        return self.next_version is not None and self.next_version.is_prerelease


def _render_tag(config: ReleaseConfig, prev: str, version: str, name: str) -> str:
    context = Template(prev_version=prev, version=version, crate_name=name)
    prefix = render(config.tag_prefix or '', context)
    return render(config.tag_name or '', context.with_(prefix=prefix))


def build_release_plan(
    package: Package,
    workspace: Workspace,
    options: ReleaseOptions,
    *,
    git_root: Path,
) -> ReleasePlan | None:
    """Build the plan for one package.

    Args:
        package: The member to plan.
        workspace: The whole workspace, for dependents and nested members.
        options: Run-wide options.
        git_root: Repository top level; a package there gets no tag prefix.

    Returns:
        The plan, or ``None`` when ``disable-release`` is set.

    Raises:
        UvReleaseError: On invalid configuration, a missing or invalid
            version, or an unsupported version request.
    """
    config = resolve_config(
        workspace.root,
        package.path,
        is_root=package.path == git_root,
        isolated=options.isolated,
        custom_config=options.custom_config,
        overrides=options.overrides,
        publish_disabled=not package.is_publishable,
    )
    if config.disable_release:
        logger.debug('release_disabled', package=package.name)
        return None

    if package.version is None:
        raise UvReleaseError(
            code=E.MANIFEST_MISSING_VERSION,
            message=f'{package.name} has no static [project].version in {package.manifest_path}',
            hint='Set [project].version, or disable-release for this package.',
        )
    prev_version = parse_version(package.version)
    prev_str = str(prev_version)

    if options.prev_tag_name is not None:
        prev_tag = options.prev_tag_name
    else:
        prev_tag = _render_tag(config, prev_str, prev_str, package.name)

    next_version = decide(prev_version, options.target, options.metadata)

    dependents: tuple[Dependent, ...] = ()
    post_version: Version | None = None
    if next_version is not None:
        dependents = tuple(Dependent(pkg, dep) for pkg, dep in find_dependents(workspace, package.name))
        if not next_version.is_prerelease and not config.no_dev_version:
            post_version = post_release_version(next_version, config.dev_version_ext or 'dev')

    base = next_version or prev_version
    tag_name = None if config.disable_tag else _render_tag(config, prev_str, str(base), package.name)

    nested = tuple(
        other.path for other in workspace.packages if other.path != package.path and package.path in other.path.parents
    )

    plan = ReleasePlan(
        package=package,
        config=config,
        prev_version=prev_version,
        prev_tag=prev_tag,
        next_version=next_version,
        tag_name=tag_name,
        post_version=post_version,
        dependents=dependents,
        features=Features.from_config(config),
        nested_paths=nested,
    )
    logger.debug(
        'built_plan',
        package=plan.name,
        prev=prev_str,
        next=str(next_version) if next_version else None,
        tag=tag_name,
        post=str(post_version) if post_version else None,
        dependents=[d.package.name for d in dependents],
    )
    return plan


def load_plans(
    workspace: Workspace,
    selected: set[str],
    options: ReleaseOptions,
    *,
    git_root: Path,
) -> list[ReleasePlan]:
    """Build plans for the selected packages, in processing order.

    The order is computed over the whole workspace and then filtered to
    the selection, so dependencies still precede their dependents.
    """
    order = sort_workspace(build_graph(workspace))
    plans: list[ReleasePlan] = []
    for name in order:
        if name not in selected:
            continue
        plan = build_release_plan(workspace.get(name), workspace, options, git_root=git_root)
        if plan is not None:
            plans.append(plan)
    return plans


def format_plan_table(plans: list[ReleasePlan]) -> str:
    """Format plans as a plain-text table.

    Returns:
        A formatted table string.
    """
    if not plans:
        return 'No packages selected.'

    headers = ['Package', 'Current', 'Next', 'Tag', 'Post', 'Dependents']
    rows: list[list[str]] = []
    for plan in plans:
        rows.append([
            plan.name,
            str(plan.prev_version),
            str(plan.next_version) if plan.next_version else '—',
            plan.tag_name or '—',
            str(plan.post_version) if plan.post_version else '—',
            ', '.join(sorted({d.package.name for d in plan.dependents})) or '—',
        ])

    widths = [len(h) for h in headers]
    for row in rows:
        for i, cell in enumerate(row):
            widths[i] = max(widths[i], len(cell))

    fmt = '  '.join(f'{{:<{w}}}' for w in widths)
    lines = [fmt.format(*headers), fmt.format(*('─' * w for w in widths))]
    lines.extend(fmt.format(*row).rstrip() for row in rows)
    releasing = sum(1 for p in plans if p.next_version is not None)
    lines.append('')
    lines.append(f'Total: {len(plans)} packages ({releasing} to release)')
    return '\n'.join(lines)


__all__ = [
    'Dependent',
    'Features',
    'ReleaseOptions',
    'ReleasePlan',
    'build_release_plan',
    'format_plan_table',
    'load_plans',
]

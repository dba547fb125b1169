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

"""Preflight checks before any file is touched.

Key Concepts (ELI5)::

    ┌─────────────────────┬────────────────────────────────────────────────┐
    │ Concept             │ ELI5 Explanation                               │
    ├─────────────────────┼────────────────────────────────────────────────┤
    │ Dirty tree          │ Uncommitted edits. A real release stops; a    │
    │                     │ dry run only warns.                            │
    ├─────────────────────┼────────────────────────────────────────────────┤
    │ Changed since tag   │ Releasing a package nobody touched is allowed │
    │                     │ but probably a mistake, so we warn.           │
    ├─────────────────────┼────────────────────────────────────────────────┤
    │ Behind remote       │ Someone pushed first. We warn so you can pull │
    │                     │ before tagging.                                │
    └─────────────────────┴────────────────────────────────────────────────┘

Check order::

    1. git --version             → fatal UR-VCS-UNAVAILABLE if git is unusable
    2. Clean working tree        → whole workspace (consolidate-commits) or
                                   each selected package
    3. Changes since prev tag    → per package with a pending release
    4. Upstream branch           → fetch, warn if behind; skipped when detached

Only the dirty-tree check can stop a run, and only outside dry-run; the
caller turns :attr:`PreflightResult.dirty` into an exit code.
"""

from __future__ import annotations

import fnmatch
import warnings
from collections.abc import Sequence
from dataclasses import dataclass, field
from pathlib import Path

from uvrelease.backends.vcs import VCS
from uvrelease.config import ReleaseConfig
from uvrelease.errors import E, UvReleaseWarning
from uvrelease.logging import get_logger
from uvrelease.plan import ReleasePlan
from uvrelease.workspace import Workspace

logger = get_logger(__name__)

# Lock file refreshed by every release; changes to it alone don't count.
LOCK_FILENAME = 'uv.lock'


@dataclass
class PreflightResult:
    """Outcome of the preflight checks.

    Attributes:
        git_version: ``git --version`` output.
        dirty: Uncommitted changes were found.
        unchanged: Packages with no changes since their previous tag.
        warnings: Human-readable warnings, in the order they were raised.
    """

    git_version: str = ''
    dirty: bool = False
    unchanged: list[str] = field(default_factory=list)
    warnings: list[str] = field(default_factory=list)

    def add_warning(self, code: E, message: str, *, hint: str = '') -> None:
        """Record a non-blocking warning and emit it as a :class:`UvReleaseWarning`."""
        self.warnings.append(message)
        warnings.warn(UvReleaseWarning(code, message, hint=hint), stacklevel=3)


def is_excluded(path: Path, base: Path, patterns: Sequence[str]) -> bool:
    """Return ``True`` if ``path`` matches one of the gitignore-style ``patterns``.

    Patterns are relative to ``base``. A pattern without a ``/`` matches
    a file or directory name at any depth; a pattern with a ``/`` is
    anchored at ``base``. A match on a directory covers everything in it.
    """
    try:
        rel = path.relative_to(base)
    except ValueError:
        return False
    parts = rel.parts
    prefixes = ['/'.join(parts[: i + 1]) for i in range(len(parts))]
    for pattern in patterns:
        anchored = '/' in pattern.rstrip('/')
        pat = pattern.strip('/')
        if anchored:
            if any(fnmatch.fnmatchcase(prefix, pat) for prefix in prefixes):
                return True
        elif any(fnmatch.fnmatchcase(part, pat) for part in parts):
            return True
    return False


def _relevant_changes(plan: ReleasePlan, changed: list[Path], lock_file: Path) -> list[Path]:
    """Drop nested members, ``exclude-paths`` matches and the lock file."""
    relevant: list[Path] = []
    for path in changed:
        if any(nested == path or nested in path.parents for nested in plan.nested_paths):
            continue
        if is_excluded(path, plan.path, plan.config.exclude_paths or ()):
            continue
        if path == lock_file:
            logger.debug('ignore_lock_change', package=plan.name, path=str(path))
            continue
        relevant.append(path)
    return relevant


async def _check_clean(vcs: VCS, workspace: Workspace, plans: Sequence[ReleasePlan], ws_config: ReleaseConfig) -> bool:
    if ws_config.consolidate_commits:
        return not await vcs.is_dirty(workspace.root)
    clean = True
    for plan in plans:
        if await vcs.is_dirty(plan.path):
            logger.debug('dirty_package', package=plan.name, path=str(plan.path))
            clean = False
    return clean


async def _check_changes(vcs: VCS, workspace: Workspace, plans: Sequence[ReleasePlan], result: PreflightResult) -> None:
    lock_file = workspace.root / LOCK_FILENAME
    for plan in plans:
        if plan.next_version is None:
            continue
        changed = await vcs.changed_files(plan.path, plan.prev_tag)
        if changed is None:
            logger.debug(
                'unknown_changes',
                package=plan.name,
                tag=plan.prev_tag,
                hint='the tag may not exist; pass --prev-tag-name to compare against another tag',
            )
            continue
        if not _relevant_changes(plan, changed, lock_file):
            logger.warning('no_changes_since_tag', package=plan.name, tag=plan.prev_tag, version=str(plan.next_version))
            result.unchanged.append(plan.name)


async def _check_upstream(vcs: VCS, remote: str, result: PreflightResult) -> None:
    branch = await vcs.current_branch()
    if branch is None:
        logger.warning('detached_head', hint='releasing from a detached HEAD; the branch push will fail')
        result.warnings.append('HEAD is detached')
        return
    fetched = await vcs.fetch(remote, branch)
    if not fetched.ok:
        logger.warning('fetch_failed', remote=remote, branch=branch, stderr=fetched.stderr.strip())
        return
    if await vcs.is_behind(remote, branch):
        result.add_warning(
            E.PREFLIGHT_BEHIND_REMOTE,
            f'{branch} is behind {remote}/{branch}',
            hint=f'Run git pull {remote} {branch} before releasing.',
        )


async def run_preflight(
    vcs: VCS,
    workspace: Workspace,
    plans: Sequence[ReleasePlan],
    ws_config: ReleaseConfig,
    *,
    dry_run: bool = False,
) -> PreflightResult:
    """Run the preflight checks.

    Args:
        vcs: Version control backend.
        workspace: The workspace being released.
        plans: Plans in processing order.
        ws_config: Workspace-level configuration.
        dry_run: A dirty tree only warns, and the remaining checks still run.

    Returns:
        A :class:`PreflightResult`. When it is dirty outside dry-run, the
        remaining checks were not run.

    Raises:
        UvReleaseError: ``UR-VCS-UNAVAILABLE`` if git cannot be run.
    """
    result = PreflightResult(git_version=await vcs.version())
    logger.debug('git_version', version=result.git_version)

    if not await _check_clean(vcs, workspace, plans, ws_config):
        result.dirty = True
        result.add_warning(
            E.PREFLIGHT_DIRTY_WORKTREE,
            'Uncommitted changes detected, please commit before release.',
            hint='Commit or stash your changes.' if not dry_run else 'A real run would stop here.',
        )
        logger.warning('dirty_worktree', dry_run=dry_run)
        if not dry_run:
            return result

    await _check_changes(vcs, workspace, plans, result)
    await _check_upstream(vcs, ws_config.push_remote or 'origin', result)
    return result


__all__ = [
    'LOCK_FILENAME',
    'PreflightResult',
    'is_excluded',
    'run_preflight',
]

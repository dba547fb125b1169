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

"""Git VCS backend for uvrelease.

The :class:`GitCLIBackend` implements the :class:`~uvrelease.backends.vcs.VCS`
protocol by delegating to ``git`` via :func:`run_command`.

All methods are async; blocking subprocess calls are dispatched to
``asyncio.to_thread()``. Methods that take a ``path`` run git with that
directory as the working directory so that path-scoped commands (dirty
check, diff since tag) only see that package.
"""

from __future__ import annotations

import asyncio
from pathlib import Path

from uvrelease.backends._run import CommandResult, run_command
from uvrelease.errors import E, UvReleaseError
from uvrelease.logging import get_logger

log = get_logger('uvrelease.backends.git')


class GitCLIBackend:
    """Default :class:`~uvrelease.backends.vcs.VCS` implementation using ``git``.

    Args:
        repo_root: Path to the git repository (or workspace) root.
    """

    def __init__(self, repo_root: Path) -> None:
        """Initialize with the repository root path."""
        self._root = repo_root

    def _git(
        self,
        *args: str,
        cwd: Path | None = None,
        dry_run: bool = False,
    ) -> CommandResult:
        """Run a git command synchronously (called via to_thread)."""
        return run_command(['git', *args], cwd=cwd or self._root, dry_run=dry_run)

    async def _git_checked(self, *args: str, cwd: Path | None = None) -> CommandResult:
        """Run git in a thread, turning a missing executable into ``UR-VCS-UNAVAILABLE``."""
        try:
            return await asyncio.to_thread(self._git, *args, cwd=cwd)
        except OSError as exc:
            raise UvReleaseError(
                code=E.VCS_UNAVAILABLE,
                message=f'git could not be executed: {exc}',
                hint='Install git and make sure it is on PATH.',
            ) from exc

    async def version(self) -> str:
        """Return ``git --version`` output.

        Raises:
            UvReleaseError: ``UR-VCS-UNAVAILABLE`` when git cannot be run.
        """
        result = await self._git_checked('--version')
        if not result.ok:
            raise UvReleaseError(
                code=E.VCS_UNAVAILABLE,
                message=f'git --version exited with {result.return_code}',
                hint='Install git and make sure it is on PATH.',
            )
        return result.stdout.strip()

    async def top_level(self, path: Path | None = None) -> Path:
        """Return the repository top-level directory containing ``path``."""
        result = await self._git_checked('rev-parse', '--show-toplevel', cwd=path)
        if not result.ok:
            raise UvReleaseError(
                code=E.VCS_COMMAND_FAILED,
                message=f'{path or self._root} is not inside a git repository',
                hint='Run uvrelease from inside a git checkout.',
            )
        return Path(result.stdout.strip())

    async def is_dirty(self, path: Path | None = None) -> bool:
        """Return ``True`` if ``path`` has uncommitted or untracked files."""
        tracked = await asyncio.to_thread(self._git, 'diff', 'HEAD', '--exit-code', '--name-only', '--', '.', cwd=path)
        untracked = await asyncio.to_thread(self._git, 'ls-files', '--exclude-standard', '--others', cwd=path)
        return not tracked.ok or bool(untracked.stdout.strip())

    async def changed_files(self, path: Path, since_tag: str) -> list[Path] | None:
        """Return files under ``path`` changed since ``since_tag``.

        Returns:
            Absolute paths of changed files, or ``None`` when the diff
            cannot be computed (typically because the tag does not exist).
        """
        result = await asyncio.to_thread(self._git, 'diff', '--name-only', f'{since_tag}..HEAD', '--', '.', cwd=path)
        if not result.ok:
            return None
        top = await self.top_level(path)
        return [top / line for line in result.stdout.splitlines() if line.strip()]

    async def current_branch(self) -> str | None:
        """Return the checked-out branch name, or ``None`` on a detached HEAD."""
        result = await asyncio.to_thread(self._git, 'branch', '--show-current')
        branch = result.stdout.strip() if result.ok else ''
        return branch or None

    async def fetch(self, remote: str, branch: str) -> CommandResult:
        """Fetch ``branch`` from ``remote``."""
        return await asyncio.to_thread(self._git, 'fetch', remote, branch)

    async def is_behind(self, remote: str, branch: str) -> bool:
        """Return ``True`` if ``remote/branch`` has commits HEAD lacks."""
        result = await asyncio.to_thread(self._git, 'rev-list', '--count', f'HEAD..{remote}/{branch}')
        if not result.ok:
            return False
        return int(result.stdout.strip() or '0') > 0

    async def commit_all(
        self,
        path: Path,
        message: str,
        *,
        sign: bool = False,
        dry_run: bool = False,
    ) -> CommandResult:
        """Commit every modified tracked file (``git commit -am``)."""
        cmd_parts = ['commit']
        if sign:
            cmd_parts.append('-S')
        cmd_parts.extend(['-am', message])
        log.info('commit', path=str(path), message=message[:80])
        return await asyncio.to_thread(self._git, *cmd_parts, cwd=path, dry_run=dry_run)

    async def tag(
        self,
        path: Path,
        tag_name: str,
        message: str,
        *,
        sign: bool = False,
        dry_run: bool = False,
    ) -> CommandResult:
        """Create an annotated (optionally signed) tag."""
        cmd_parts = ['tag', '-a', tag_name, '-m', message]
        if sign:
            cmd_parts.append('-s')
        log.info('tag', tag=tag_name)
        return await asyncio.to_thread(self._git, *cmd_parts, cwd=path, dry_run=dry_run)

    async def push(
        self,
        path: Path,
        remote: str,
        *,
        options: list[str] | None = None,
        dry_run: bool = False,
    ) -> CommandResult:
        """Push the current branch to ``remote`` with optional ``-o`` values."""
        cmd_parts = ['push']
        for option in options or []:
            cmd_parts.extend(['-o', option])
        cmd_parts.append(remote)
        log.info('push', remote=remote)
        return await asyncio.to_thread(self._git, *cmd_parts, cwd=path, dry_run=dry_run)

    async def push_tag(
        self,
        path: Path,
        remote: str,
        tag_name: str,
        *,
        dry_run: bool = False,
    ) -> CommandResult:
        """Push a single tag to ``remote``."""
        log.info('push_tag', remote=remote, tag=tag_name)
        return await asyncio.to_thread(self._git, 'push', remote, tag_name, cwd=path, dry_run=dry_run)


__all__ = [
    'GitCLIBackend',
]

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

"""VCS protocol for uvrelease.

The :class:`VCS` protocol defines the version control operations the
release pipeline needs. Implementation:

- :class:`~uvrelease.backends.vcs.git.GitCLIBackend`: ``git`` CLI
"""

from __future__ import annotations

from pathlib import Path
from typing import Protocol, runtime_checkable

from uvrelease.backends._run import CommandResult
from uvrelease.backends.vcs.git import GitCLIBackend as GitCLIBackend

__all__ = [
    'GitCLIBackend',
    'VCS',
]


@runtime_checkable
class VCS(Protocol):
    """Protocol for version control operations.

    Mutating methods accept ``dry_run`` and return a successful
    :class:`CommandResult` without side effects when it is set.
    """

    async def version(self) -> str:
        """Return the tool version; raise ``UR-VCS-UNAVAILABLE`` if unusable."""
        ...

    async def top_level(self, path: Path | None = None) -> Path:
        """Return the repository root containing ``path``."""
        ...

    async def is_dirty(self, path: Path | None = None) -> bool:
        """Return ``True`` if ``path`` has uncommitted or untracked changes."""
        ...

    async def changed_files(self, path: Path, since_tag: str) -> list[Path] | None:
        """Return files under ``path`` changed since ``since_tag``.

        Returns ``None`` when unknown (e.g. the tag does not exist).
        """
        ...

    async def current_branch(self) -> str | None:
        """Return the current branch, or ``None`` on a detached HEAD."""
        ...

    async def fetch(self, remote: str, branch: str) -> CommandResult:
        """Fetch ``branch`` from ``remote``."""
        ...

    async def is_behind(self, remote: str, branch: str) -> bool:
        """Return ``True`` if the remote branch is ahead of HEAD."""
        ...

    async def commit_all(
        self,
        path: Path,
        message: str,
        *,
        sign: bool = False,
        dry_run: bool = False,
    ) -> CommandResult:
        """Commit all modified tracked files.

        Args:
            path: Directory to run the commit from.
            message: Commit message.
            sign: GPG-sign the commit.
            dry_run: Log the command without executing.
        """
        ...

    async def tag(
        self,
        path: Path,
        tag_name: str,
        message: str,
        *,
        sign: bool = False,
        dry_run: bool = False,
    ) -> CommandResult:
        """Create an annotated tag.

        Args:
            path: Directory to run git from.
            tag_name: Tag name (e.g. ``"core-v1.2.0"``).
            message: Tag message.
            sign: GPG-sign the tag.
            dry_run: Log the command without executing.
        """
        ...

    async def push(
        self,
        path: Path,
        remote: str,
        *,
        options: list[str] | None = None,
        dry_run: bool = False,
    ) -> CommandResult:
        """Push the current branch to ``remote``."""
        ...

    async def push_tag(
        self,
        path: Path,
        remote: str,
        tag_name: str,
        *,
        dry_run: bool = False,
    ) -> CommandResult:
        """Push one tag to ``remote``."""
        ...

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

"""Package manager protocol for uvrelease.

The :class:`PackageManager` protocol defines the async interface for
publishing packages and refreshing the lock file. Implementation:

- :class:`~uvrelease.backends.pm.uv.UvBackend`: ``uv`` CLI
"""

from __future__ import annotations

from collections.abc import Sequence
from typing import Protocol, runtime_checkable

from uvrelease.backends._run import CommandResult
from uvrelease.backends.pm.uv import UvBackend as UvBackend

__all__ = [
    'PackageManager',
    'UvBackend',
]


@runtime_checkable
class PackageManager(Protocol):
    """Protocol for package publish and lock operations."""

    async def publish(
        self,
        package_name: str,
        *,
        registry: str | None = None,
        token: str | None = None,
        features: Sequence[str] = (),
        all_features: bool = False,
        dry_run: bool = False,
    ) -> CommandResult:
        """Build and upload a workspace member.

        Args:
            package_name: Workspace member to publish.
            registry: Named index, or ``None`` for the default (PyPI).
            token: Upload token.
            features: Build features to enable.
            all_features: Enable every build feature.
            dry_run: Log the commands without executing.
        """
        ...

    async def lock(self, *, dry_run: bool = False) -> CommandResult:
        """Refresh the workspace lock file.

        Args:
            dry_run: Log the command without executing.
        """
        ...

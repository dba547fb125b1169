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

"""uv package manager backend for uvrelease.

The :class:`UvBackend` implements the
:class:`~uvrelease.backends.pm.PackageManager` protocol via the ``uv``
CLI (``uv build``, ``uv publish``, ``uv lock``).

All methods are async; blocking subprocess calls are dispatched to
``asyncio.to_thread()``.
"""

from __future__ import annotations

import asyncio
import tempfile
from collections.abc import Sequence
from pathlib import Path

from uvrelease.backends._run import CommandResult, run_command
from uvrelease.logging import get_logger

log = get_logger('uvrelease.backends.pm.uv')

# Build-backend arguments understood by maturin; other backends ignore it.
FEATURES_ENV = 'MATURIN_PEP517_ARGS'


def feature_env(features: Sequence[str] = (), *, all_features: bool = False) -> dict[str, str]:
    """Return the environment that forwards a feature selection to the build."""
    if all_features:
        return {FEATURES_ENV: '--all-features'}
    if features:
        return {FEATURES_ENV: f'--features {",".join(features)}'}
    return {}


class UvBackend:
    """Default :class:`~uvrelease.backends.pm.PackageManager` implementation using ``uv``.

    Args:
        workspace_root: Path to the workspace root (contains ``pyproject.toml``
            with ``[tool.uv.workspace]``).
    """

    def __init__(self, workspace_root: Path) -> None:
        """Initialize with the workspace root path."""
        self._root = workspace_root

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
        """Build a workspace member and upload it with ``uv publish``.

        The distributions are built into a temporary directory so stale
        files in ``dist/`` are never uploaded.

        Args:
            package_name: Workspace member to build.
            registry: Named ``[[tool.uv.index]]`` to publish to; PyPI if unset.
            token: Upload token, passed through ``UV_PUBLISH_TOKEN``.
            features: Build features forwarded to the build backend.
            all_features: Enable every build feature.
            dry_run: Log the commands without executing them.
        """
        with tempfile.TemporaryDirectory(prefix='uvrelease-') as tmp:
            out_dir = Path(tmp)
            build_cmd = ['uv', 'build', '--package', package_name, '--out-dir', str(out_dir)]
            log.info('build', package=package_name)
            build = await asyncio.to_thread(
                run_command,
                build_cmd,
                cwd=self._root,
                env=feature_env(features, all_features=all_features),
                dry_run=dry_run,
            )
            if not build.ok:
                return build

            publish_cmd = ['uv', 'publish']
            if registry:
                publish_cmd.extend(['--index', registry])
            publish_cmd.append(str(out_dir / '*'))
            env = {'UV_PUBLISH_TOKEN': token} if token else None

            log.info('publish', package=package_name, registry=registry or 'pypi')
            return await asyncio.to_thread(run_command, publish_cmd, cwd=self._root, env=env, dry_run=dry_run)

    async def lock(self, *, dry_run: bool = False) -> CommandResult:
        """Refresh ``uv.lock`` after manifest edits using ``uv lock``."""
        log.info('lock', root=str(self._root))
        return await asyncio.to_thread(run_command, ['uv', 'lock'], cwd=self._root, dry_run=dry_run)


__all__ = [
    'FEATURES_ENV',
    'UvBackend',
    'feature_env',
]

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

"""Configured text substitutions in project files.

Each :class:`~uvrelease.config.Replacement` is a regex applied to one
file relative to the package directory. The replacement text is rendered
with the release :class:`~uvrelease.templates.Template` first, so
``"## {{version}} - {{date}}"`` becomes ``"## 1.2.0 - 2026-10-17"``.

The number of matches must fall inside the entry's bounds (``exactly``,
or ``min`` (default 1) and ``max``), otherwise the release stops with
``UR-REPLACE-MISMATCH``. In dry-run the would-be change is logged as a
unified diff and the file is left alone.
"""

from __future__ import annotations

import difflib
import re
from collections.abc import Sequence
from pathlib import Path

from uvrelease.config import Replacement
from uvrelease.errors import E, UvReleaseError
from uvrelease.logging import get_logger
from uvrelease.templates import Template, render

logger = get_logger(__name__)


def _check_count(replacement: Replacement, path: Path, count: int) -> None:
    if replacement.exactly is not None:
        if count != replacement.exactly:
            raise UvReleaseError(
                code=E.REPLACE_MISMATCH,
                message=f"'{replacement.search}' matched {count} times in {path}, expected exactly {replacement.exactly}",
                hint='Adjust "search" or "exactly" for this replacement.',
            )
        return
    minimum = 1 if replacement.min is None else replacement.min
    if count < minimum:
        raise UvReleaseError(
            code=E.REPLACE_MISMATCH,
            message=f"'{replacement.search}' matched {count} times in {path}, expected at least {minimum}",
            hint='Adjust "search" or "min" for this replacement.',
        )
    if replacement.max is not None and count > replacement.max:
        raise UvReleaseError(
            code=E.REPLACE_MISMATCH,
            message=f"'{replacement.search}' matched {count} times in {path}, expected at most {replacement.max}",
            hint='Adjust "search" or "max" for this replacement.',
        )


def do_file_replacements(
    replacements: Sequence[Replacement],
    template: Template,
    cwd: Path,
    *,
    prerelease: bool,
    dry_run: bool = False,
) -> int:
    """Apply ``replacements`` to files under ``cwd``.

    Args:
        replacements: Entries to apply, in order.
        template: Values for placeholders in the replacement text.
        cwd: Package directory that ``file`` paths are relative to.
        prerelease: The version being released is a pre-release; entries
            without ``prerelease = true`` are skipped.
        dry_run: Log a diff instead of writing.

    Returns:
        Number of files changed (or that would change).

    Raises:
        UvReleaseError: ``UR-REPLACE-FILE-ERROR`` on I/O or regex errors,
            ``UR-REPLACE-MISMATCH`` when the match count is out of bounds.
    """
    changed = 0
    for replacement in replacements:
        if prerelease and not replacement.prerelease:
            logger.debug('skip_replacement', file=replacement.file, reason='prerelease')
            continue

        path = cwd / replacement.file
        try:
            original = path.read_text(encoding='utf-8')
        except OSError as exc:
            raise UvReleaseError(
                code=E.REPLACE_FILE_ERROR,
                message=f'Cannot read {path}: {exc}',
                hint='Check the "file" path of this replacement; it is relative to the package directory.',
            ) from exc
        try:
            pattern = re.compile(replacement.search, re.MULTILINE)
            updated, count = pattern.subn(render(replacement.replace, template), original)
        except re.error as exc:
            raise UvReleaseError(
                code=E.REPLACE_FILE_ERROR,
                message=f"Invalid replacement '{replacement.search}' for {path}: {exc}",
            ) from exc

        _check_count(replacement, path, count)
        if updated == original:
            continue
        changed += 1

        if dry_run:
            diff = difflib.unified_diff(
                original.splitlines(keepends=True),
                updated.splitlines(keepends=True),
                fromfile=f'{path} (before)',
                tofile=f'{path} (after)',
            )
            logger.info('replace', file=str(path), matches=count, dry_run=True, diff=''.join(diff))
            continue

        try:
            path.write_text(updated, encoding='utf-8')
        except OSError as exc:
            raise UvReleaseError(
                code=E.REPLACE_FILE_ERROR,
                message=f'Cannot write {path}: {exc}',
            ) from exc
        logger.info('replace', file=str(path), matches=count)
    return changed


__all__ = [
    'do_file_replacements',
]

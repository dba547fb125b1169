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

"""In-place edits of member ``pyproject.toml`` files.

Uses tomlkit so comments, ordering and formatting survive the rewrite.
Both edit functions take ``dry_run``: the decision is logged the same
way, but nothing is written.
"""

from __future__ import annotations

from collections.abc import Mapping
from pathlib import Path
from typing import Any

import tomlkit
import tomlkit.exceptions
from packaging.requirements import InvalidRequirement, Requirement
from packaging.utils import canonicalize_name
from tomlkit import TOMLDocument

from uvrelease.errors import E, UvReleaseError
from uvrelease.logging import get_logger

logger = get_logger(__name__)

# Classifier that tells PyPI (and us) never to upload a package.
PRIVATE_CLASSIFIER = 'Private :: Do Not Upload'


def is_publishable(project: Mapping[str, Any]) -> bool:
    """Return ``False`` if a ``[project]`` table carries the private classifier."""
    return PRIVATE_CLASSIFIER not in list(project.get('classifiers', []))


def read_manifest(path: Path) -> TOMLDocument:
    """Read and parse a ``pyproject.toml``.

    Raises:
        UvReleaseError: ``UR-MANIFEST-READ-ERROR``.
    """
    try:
        text = path.read_text(encoding='utf-8')
    except OSError as exc:
        raise UvReleaseError(
            code=E.MANIFEST_READ_ERROR,
            message=f'Cannot read {path}: {exc}',
            hint=f'Check that {path} exists and is readable.',
        ) from exc
    try:
        return tomlkit.parse(text)
    except tomlkit.exceptions.TOMLKitError as exc:
        raise UvReleaseError(
            code=E.MANIFEST_READ_ERROR,
            message=f'Cannot parse {path}: {exc}',
            hint=f'Check that {path} contains valid TOML.',
        ) from exc


def write_manifest(path: Path, doc: TOMLDocument) -> None:
    """Serialize ``doc`` back to ``path``.

    Raises:
        UvReleaseError: ``UR-MANIFEST-WRITE-ERROR``.
    """
    try:
        path.write_text(tomlkit.dumps(doc), encoding='utf-8')
    except OSError as exc:
        raise UvReleaseError(
            code=E.MANIFEST_WRITE_ERROR,
            message=f'Cannot write {path}: {exc}',
            hint=f'Check file permissions for {path}.',
        ) from exc


def set_package_version(manifest_path: Path, new_version: str, *, dry_run: bool = False) -> str:
    """Set ``[project].version``.

    Returns:
        The version that was (or would be) replaced.

    Raises:
        UvReleaseError: ``UR-MANIFEST-MISSING-VERSION`` if the version is
            dynamic or absent.
    """
    doc = read_manifest(manifest_path)
    project = doc.get('project')
    if not isinstance(project, dict) or 'version' not in project:
        raise UvReleaseError(
            code=E.MANIFEST_MISSING_VERSION,
            message=f'No [project].version key in {manifest_path}',
            hint='uvrelease edits static versions only; set [project].version.',
        )

    old_version = str(project['version'])
    logger.info('update_version', path=str(manifest_path), old=old_version, new=new_version, dry_run=dry_run)
    if not dry_run:
        project['version'] = new_version
        write_manifest(manifest_path, doc)
    return old_version


def _requirement_list(doc: TOMLDocument, section: str) -> Any:  # noqa: ANN401 - tomlkit array
    """Return the tomlkit array holding ``section`` requirements, or ``None``."""
    head, _, key = section.partition('.')
    project = doc.get('project', {})
    if head == 'dependencies':
        return project.get('dependencies')
    if head == 'optional-dependencies':
        return project.get('optional-dependencies', {}).get(key)
    if head == 'dependency-groups':
        return doc.get('dependency-groups', {}).get(key)
    return None


def _same_marker(a: str, b: str) -> bool:
    try:
        return str(Requirement(a).marker) == str(Requirement(b).marker)
    except InvalidRequirement:
        return False


def set_dependency_version(
    manifest_path: Path,
    dep_name: str,
    new_requirement: str,
    *,
    section: str = 'dependencies',
    dry_run: bool = False,
) -> bool:
    """Replace the requirement on ``dep_name`` in one section of a manifest.

    When the section lists ``dep_name`` more than once (different
    markers), the entry with the same marker as ``new_requirement`` is
    replaced.

    Args:
        manifest_path: The dependent's ``pyproject.toml``.
        dep_name: Distribution name being required.
        new_requirement: Full PEP 508 string to write.
        section: ``dependencies``, ``optional-dependencies.<extra>`` or
            ``dependency-groups.<group>``.
        dry_run: Log without writing.

    Returns:
        ``True`` if an entry was found (and, outside dry-run, written).
    """
    doc = read_manifest(manifest_path)
    entries = _requirement_list(doc, section)
    target = canonicalize_name(dep_name)

    matches: list[int] = []
    for i, entry in enumerate(entries or []):
        if not isinstance(entry, str):
            continue
        try:
            name = Requirement(str(entry)).name
        except InvalidRequirement:
            continue
        if canonicalize_name(name) == target:
            matches.append(i)
    if len(matches) > 1:
        matches = [i for i in matches if _same_marker(str(entries[i]), new_requirement)][:1]

    if not matches:
        logger.warning('dependency_not_found', path=str(manifest_path), dep=dep_name, section=section)
        return False

    index = matches[0]
    logger.info(
        'update_dependency',
        path=str(manifest_path),
        dep=dep_name,
        old=str(entries[index]),
        new=new_requirement,
        dry_run=dry_run,
    )
    if not dry_run:
        entries[index] = new_requirement
        write_manifest(manifest_path, doc)
    return True


__all__ = [
    'PRIVATE_CLASSIFIER',
    'is_publishable',
    'read_manifest',
    'set_dependency_version',
    'set_package_version',
    'write_manifest',
]

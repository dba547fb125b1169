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

"""Layered release configuration.

Configuration is a stack of :class:`ReleaseConfig` layers in which every
field is optional. :meth:`ReleaseConfig.merge` lays a higher-priority
layer over a lower one and returns a new object; nothing is mutated.

Precedence, lowest first::

    1. built-in defaults              default_config(is_root=...)
    2. workspace files                <root>/release.toml, then
                                      [tool.uvrelease] in <root>/pyproject.toml
    3. package files                  <pkg>/release.toml, then
                                      [tool.uvrelease] in <pkg>/pyproject.toml
       (2 and 3 are skipped with --isolated)
    4. custom file                    -c/--config PATH
    5. command-line flags
    6. "Private :: Do Not Upload"     forces disable-publish

Example ``release.toml``::

    sign-tag = true
    dependent-version = "upgrade"
    tag-name = "{{prefix}}v{{version}}"

    [[pre-release-replacements]]
    file = "CHANGELOG.md"
    search = "## Unreleased"
    replace = "## {{version}} ({{date}})"

Keys are kebab-case. Unknown keys raise ``UR-CONFIG-INVALID-KEY`` with a
"did you mean" hint; values of the wrong type raise
``UR-CONFIG-INVALID-VALUE``.
"""

from __future__ import annotations

import dataclasses
import difflib
import shlex
from dataclasses import dataclass
from enum import Enum
from pathlib import Path
from typing import Any

import tomlkit
import tomlkit.exceptions

from uvrelease.errors import E, UvReleaseError
from uvrelease.logging import get_logger

logger = get_logger(__name__)

# Standalone config file name, looked up in the workspace and package roots.
CONFIG_FILENAME = 'release.toml'

# Table name under [tool] in pyproject.toml.
TOOL_TABLE = 'uvrelease'


class DependentVersion(str, Enum):
    """How to treat dependents whose requirement excludes a new version."""

    IGNORE = 'ignore'
    WARN = 'warn'
    ERROR = 'error'
    FIX = 'fix'
    UPGRADE = 'upgrade'


@dataclass(frozen=True)
class Replacement:
    """A regex substitution applied to a file during a release.

    Attributes:
        file: Path relative to the package directory.
        search: Regular expression, compiled with ``re.MULTILINE``.
        replace: Replacement text; placeholders are rendered first.
        min: Minimum number of matches (default 1).
        max: Maximum number of matches, if bounded.
        exactly: Exact number of matches; overrides ``min``/``max``.
        prerelease: Also apply when releasing a pre-release version.
    """

    file: str
    search: str
    replace: str
    min: int | None = None
    max: int | None = None
    exactly: int | None = None
    prerelease: bool = False


@dataclass(frozen=True)
class ReleaseConfig:
    """One configuration layer, or the merged result of several.

    ``None`` means "not set in this layer". A config produced by
    :func:`resolve_config` starts from :func:`default_config`, so every
    field of the result is set.
    """

    sign_commit: bool | None = None
    sign_tag: bool | None = None
    push_remote: str | None = None
    registry: str | None = None
    disable_release: bool | None = None
    disable_publish: bool | None = None
    disable_push: bool | None = None
    disable_tag: bool | None = None
    push_options: tuple[str, ...] | None = None
    dev_version_ext: str | None = None
    no_dev_version: bool | None = None
    consolidate_commits: bool | None = None
    consolidate_pushes: bool | None = None
    pre_release_commit_message: str | None = None
    post_release_commit_message: str | None = None
    tag_message: str | None = None
    tag_prefix: str | None = None
    tag_name: str | None = None
    dependent_version: DependentVersion | None = None
    pre_release_replacements: tuple[Replacement, ...] | None = None
    post_release_replacements: tuple[Replacement, ...] | None = None
    pre_release_hook: tuple[str, ...] | None = None
    exclude_paths: tuple[str, ...] | None = None
    enable_features: tuple[str, ...] | None = None
    enable_all_features: bool | None = None

    def merge(self, other: ReleaseConfig | None) -> ReleaseConfig:
        """Return a copy of ``self`` with the set fields of ``other`` on top."""
        if other is None:
            return self
        changes = {
            f.name: getattr(other, f.name) for f in dataclasses.fields(other) if getattr(other, f.name) is not None
        }
        return dataclasses.replace(self, **changes)


def default_config(*, is_root: bool = False) -> ReleaseConfig:
    """Return the built-in defaults.

    Args:
        is_root: Whether the package lives at the repository top level;
            such packages get an empty tag prefix.
    """
    return ReleaseConfig(
        sign_commit=False,
        sign_tag=False,
        push_remote='origin',
        disable_release=False,
        disable_publish=False,
        disable_push=False,
        disable_tag=False,
        push_options=(),
        dev_version_ext='dev',
        no_dev_version=False,
        consolidate_commits=False,
        consolidate_pushes=False,
        pre_release_commit_message='(uvrelease) version {{version}}',
        post_release_commit_message='(uvrelease) start next development iteration {{next_version}}',
        tag_message='(uvrelease) {{crate_name}} version {{version}}',
        tag_prefix='' if is_root else '{{crate_name}}-',
        tag_name='{{prefix}}v{{version}}',
        dependent_version=DependentVersion.FIX,
        pre_release_replacements=(),
        post_release_replacements=(),
        exclude_paths=(),
        enable_features=(),
        enable_all_features=False,
    )


# Kebab-case file key → expected TOML type.
_TYPE_MAP: dict[str, type | tuple[type, ...]] = {
    'sign-commit': bool,
    'sign-tag': bool,
    'push-remote': str,
    'registry': str,
    'disable-release': bool,
    'disable-publish': bool,
    'disable-push': bool,
    'disable-tag': bool,
    'push-options': list,
    'dev-version-ext': str,
    'no-dev-version': bool,
    'consolidate-commits': bool,
    'consolidate-pushes': bool,
    'pre-release-commit-message': str,
    'post-release-commit-message': str,
    'tag-message': str,
    'tag-prefix': str,
    'tag-name': str,
    'dependent-version': str,
    'pre-release-replacements': list,
    'post-release-replacements': list,
    'pre-release-hook': (str, list),
    'exclude-paths': list,
    'enable-features': list,
    'enable-all-features': bool,
}

VALID_KEYS: frozenset[str] = frozenset(_TYPE_MAP)

_REPLACEMENT_TYPE_MAP: dict[str, type | tuple[type, ...]] = {
    'file': str,
    'search': str,
    'replace': str,
    'min': int,
    'max': int,
    'exactly': int,
    'prerelease': bool,
}

_STRING_LIST_KEYS = ('push-options', 'exclude-paths', 'enable-features')


def _suggest(unknown: str, valid: frozenset[str]) -> str:
    matches = difflib.get_close_matches(unknown, valid, n=1, cutoff=0.6)
    if matches:
        return f"Did you mean '{matches[0]}'?"
    if '_' in unknown and unknown.replace('_', '-') in valid:
        return f"Keys are kebab-case: use '{unknown.replace('_', '-')}'."
    return 'Valid keys: ' + ', '.join(sorted(valid))


def _validate_value_type(
    key: str,
    value: Any,  # noqa: ANN401 - dynamic config values
    type_map: dict[str, type | tuple[type, ...]],
    *,
    context: str,
) -> None:
    """Raise if a config value has the wrong type."""
    expected = type_map[key]
    wrong_bool = isinstance(value, bool) and expected is int
    if wrong_bool or not isinstance(value, expected):
        type_name = expected.__name__ if isinstance(expected, type) else ' or '.join(t.__name__ for t in expected)
        raise UvReleaseError(
            code=E.CONFIG_INVALID_VALUE,
            message=f"'{key}' must be {type_name}, got {type(value).__name__}",
            hint=f'Check the value of {key} in {context}.',
        )


def _string_list(key: str, items: list[Any], context: str) -> tuple[str, ...]:
    for item in items:
        if not isinstance(item, str):
            raise UvReleaseError(
                code=E.CONFIG_INVALID_VALUE,
                message=f"'{key}' must be a list of strings, found {type(item).__name__}",
                hint=f'Check the value of {key} in {context}.',
            )
    return tuple(items)


def _parse_replacement(key: str, raw: Any, context: str) -> Replacement:  # noqa: ANN401 - dynamic config
    if not isinstance(raw, dict):
        raise UvReleaseError(
            code=E.CONFIG_INVALID_VALUE,
            message=f"Entries of '{key}' must be tables, got {type(raw).__name__}",
            hint=f'Use [[{key}]] array-of-tables syntax in {context}.',
        )
    for name, value in raw.items():
        if name not in _REPLACEMENT_TYPE_MAP:
            raise UvReleaseError(
                code=E.CONFIG_INVALID_KEY,
                message=f"Unknown key '{name}' in {key} entry in {context}",
                hint=_suggest(name, frozenset(_REPLACEMENT_TYPE_MAP)),
            )
        _validate_value_type(name, value, _REPLACEMENT_TYPE_MAP, context=context)
    missing = [name for name in ('file', 'search', 'replace') if name not in raw]
    if missing:
        raise UvReleaseError(
            code=E.CONFIG_INVALID_VALUE,
            message=f"{key} entry in {context} is missing {', '.join(missing)}",
            hint='Every replacement needs "file", "search" and "replace".',
        )
    return Replacement(**{name.replace('-', '_'): value for name, value in raw.items()})


def parse_config(raw: dict[str, Any], *, context: str) -> ReleaseConfig:
    """Build a config layer from a parsed TOML table.

    Args:
        raw: Plain (unwrapped) TOML table.
        context: Where the table came from, for error messages.

    Raises:
        UvReleaseError: On unknown keys or values of the wrong type.
    """
    for key in raw:
        if key not in VALID_KEYS:
            raise UvReleaseError(
                code=E.CONFIG_INVALID_KEY,
                message=f"Unknown key '{key}' in {context}",
                hint=_suggest(key, VALID_KEYS),
            )

    kwargs: dict[str, Any] = {}
    for key, value in raw.items():
        _validate_value_type(key, value, _TYPE_MAP, context=context)
        field_name = key.replace('-', '_')
        if key in _STRING_LIST_KEYS:
            kwargs[field_name] = _string_list(key, value, context)
        elif key.endswith('-replacements'):
            kwargs[field_name] = tuple(_parse_replacement(key, item, context) for item in value)
        elif key == 'pre-release-hook':
            kwargs[field_name] = tuple(shlex.split(value)) if isinstance(value, str) else _string_list(key, value, context)
        elif key == 'dependent-version':
            try:
                kwargs[field_name] = DependentVersion(value.lower())
            except ValueError as exc:
                allowed = ', '.join(v.value for v in DependentVersion)
                raise UvReleaseError(
                    code=E.CONFIG_INVALID_VALUE,
                    message=f"Invalid dependent-version '{value}' in {context}",
                    hint=f'Use one of: {allowed}.',
                ) from exc
        else:
            kwargs[field_name] = value
    return ReleaseConfig(**kwargs)


def _read_toml(path: Path) -> dict[str, Any]:
    try:
        text = path.read_text(encoding='utf-8')
    except OSError as exc:
        raise UvReleaseError(
            code=E.CONFIG_NOT_FOUND,
            message=f'Failed to read {path}: {exc}',
        ) from exc
    try:
        return tomlkit.parse(text).unwrap()
    except tomlkit.exceptions.TOMLKitError as exc:
        raise UvReleaseError(
            code=E.CONFIG_PARSE_ERROR,
            message=f'Failed to parse {path}: {exc}',
        ) from exc


def load_config_file(path: Path) -> ReleaseConfig | None:
    """Load a standalone ``release.toml``; ``None`` if it does not exist."""
    if not path.is_file():
        logger.debug('no_release_config', path=str(path))
        return None
    return parse_config(_read_toml(path), context=str(path))


def load_pyproject_config(pyproject: Path) -> ReleaseConfig | None:
    """Load ``[tool.uvrelease]`` from a ``pyproject.toml``; ``None`` if absent."""
    if not pyproject.is_file():
        return None
    table = _read_toml(pyproject).get('tool', {}).get(TOOL_TABLE)
    if table is None:
        return None
    if not isinstance(table, dict):
        raise UvReleaseError(
            code=E.CONFIG_INVALID_VALUE,
            message=f'[tool.{TOOL_TABLE}] in {pyproject} must be a table',
        )
    return parse_config(table, context=f'[tool.{TOOL_TABLE}] in {pyproject}')


def load_directory_config(directory: Path) -> ReleaseConfig:
    """Merge ``release.toml`` then ``[tool.uvrelease]`` found in ``directory``."""
    return (
        ReleaseConfig()
        .merge(load_config_file(directory / CONFIG_FILENAME))
        .merge(load_pyproject_config(directory / 'pyproject.toml'))
    )


def load_custom_config(path: Path) -> ReleaseConfig:
    """Load the file given with ``-c/--config``.

    Raises:
        UvReleaseError: ``UR-CONFIG-NOT-FOUND`` if the file does not exist.
    """
    if not path.is_file():
        raise UvReleaseError(
            code=E.CONFIG_NOT_FOUND,
            message=f'Config file {path} does not exist',
            hint='Check the path passed to -c/--config.',
        )
    return parse_config(_read_toml(path), context=str(path))


def resolve_config(
    workspace_root: Path,
    package_dir: Path | None = None,
    *,
    is_root: bool = False,
    isolated: bool = False,
    custom_config: Path | None = None,
    overrides: ReleaseConfig | None = None,
    publish_disabled: bool = False,
) -> ReleaseConfig:
    """Resolve the effective configuration for a package or the workspace.

    Args:
        workspace_root: The uv workspace root.
        package_dir: Package directory, or ``None`` for the workspace-wide
            configuration.
        is_root: Whether the package sits at the repository top level.
        isolated: Skip workspace and package config files.
        custom_config: File passed with ``-c/--config``.
        overrides: Layer built from command-line flags.
        publish_disabled: The manifest forbids uploading.

    Returns:
        A fully populated :class:`ReleaseConfig`.
    """
    config = default_config(is_root=is_root)
    if not isolated:
        config = config.merge(load_directory_config(workspace_root))
        if package_dir is not None:
            config = config.merge(load_directory_config(package_dir))
    if custom_config is not None:
        config = config.merge(load_custom_config(custom_config))
    config = config.merge(overrides)
    if publish_disabled:
        config = config.merge(ReleaseConfig(disable_publish=True))
    return config


__all__ = [
    'CONFIG_FILENAME',
    'DependentVersion',
    'ReleaseConfig',
    'Replacement',
    'TOOL_TABLE',
    'VALID_KEYS',
    'default_config',
    'load_config_file',
    'load_custom_config',
    'load_directory_config',
    'load_pyproject_config',
    'parse_config',
    'resolve_config',
]

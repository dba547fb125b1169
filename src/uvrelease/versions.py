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

"""Version decisions: next version, post-release version, requirement fixes.

All versions are PEP 440 (:class:`packaging.version.Version`) and all
requirements are PEP 508 strings as they appear in ``pyproject.toml``.

Key Concepts (ELI5)::

    ┌─────────────────────┬────────────────────────────────────────────────┐
    │ Concept             │ ELI5 Explanation                               │
    ├─────────────────────┼────────────────────────────────────────────────┤
    │ BumpLevel           │ A named step: major, minor, patch, release,   │
    │                     │ rc, beta, alpha.                              │
    ├─────────────────────┼────────────────────────────────────────────────┤
    │ TargetVersion       │ What the user asked for: a level ("minor")    │
    │                     │ or an exact version ("2.0.0").               │
    ├─────────────────────┼────────────────────────────────────────────────┤
    │ decide()            │ Current version + request → next version, or │
    │                     │ None when nothing needs to change.            │
    ├─────────────────────┼────────────────────────────────────────────────┤
    │ Post-release        │ The development version we move to after a    │
    │                     │ release: 1.2.3 → 1.2.4.dev0.                 │
    ├─────────────────────┼────────────────────────────────────────────────┤
    │ set_requirement()   │ Rewrites "core~=1.0" so it accepts a new      │
    │                     │ version, keeping the operator style.         │
    └─────────────────────┴────────────────────────────────────────────────┘

Bump rules::

    current      major    minor    patch    release  alpha     beta     rc
    1.2.3        2.0.0    1.3.0    1.2.4    (none)   1.2.4a1   1.2.4b1  1.2.4rc1
    1.2.4a1      2.0.0    1.3.0    1.2.4    1.2.4    1.2.4a2   1.2.4b1  1.2.4rc1
    1.2.4rc1     2.0.0    1.3.0    1.2.4    1.2.4    error     error    1.2.4rc2
    1.2.4.dev0   2.0.0    1.3.0    1.2.4    1.2.4    1.2.4a1   1.2.4b1  1.2.4rc1
"""

from __future__ import annotations

import re
from dataclasses import dataclass
from enum import Enum

from packaging.requirements import InvalidRequirement, Requirement
from packaging.specifiers import InvalidSpecifier, Specifier, SpecifierSet
from packaging.version import InvalidVersion, Version

from uvrelease.errors import E, UvReleaseError

# Pre-release stage spelling (PEP 440 normal form) and their ordering.
_STAGE_ORDER: dict[str, int] = {'a': 0, 'b': 1, 'rc': 2}

# Leading "name[extras]" of a PEP 508 string.
_NAME_EXTRAS_RE = re.compile(r'^\s*[A-Za-z0-9][A-Za-z0-9._-]*\s*(\[[^\]]*\])?\s*')


class BumpLevel(str, Enum):
    """Relative version bump requested on the command line."""

    MAJOR = 'major'
    MINOR = 'minor'
    PATCH = 'patch'
    RELEASE = 'release'
    RC = 'rc'
    BETA = 'beta'
    ALPHA = 'alpha'

    @property
    def stage(self) -> str | None:
        """PEP 440 pre-release stage for alpha/beta/rc, else ``None``."""
        return {'alpha': 'a', 'beta': 'b', 'rc': 'rc'}.get(self.value)


def parse_version(text: str) -> Version:
    """Parse a PEP 440 version.

    Raises:
        UvReleaseError: If ``text`` is not a valid version.
    """
    try:
        return Version(text)
    except InvalidVersion as exc:
        raise UvReleaseError(
            code=E.VERSION_INVALID,
            message=f"'{text}' is not a valid PEP 440 version",
            hint='Versions look like 1.2.3, 1.2.3rc1 or 1.2.3.dev0.',
        ) from exc


@dataclass(frozen=True)
class TargetVersion:
    """A relative bump level or an absolute version.

    Exactly one of :attr:`level` and :attr:`version` is set.
    """

    level: BumpLevel | None = None
    version: Version | None = None

    @classmethod
    def parse(cls, text: str) -> TargetVersion:
        """Parse a level name (case-insensitive) or a PEP 440 version."""
        try:
            return cls(level=BumpLevel(text.strip().lower()))
        except ValueError:
            return cls(version=parse_version(text.strip()))

    def __str__(self) -> str:
        """Return the level name or the version string."""
        if self.level is not None:
            return self.level.value
        return str(self.version)


def _release3(version: Version) -> tuple[int, int, int]:
    """Return the first three release components, zero padded."""
    parts = (*version.release, 0, 0, 0)
    return parts[0], parts[1], parts[2]


def _compose(
    epoch: int,
    release: tuple[int, ...],
    *,
    pre: tuple[str, int] | None = None,
    local: str | None = None,
) -> Version:
    text = '.'.join(str(p) for p in release)
    if epoch:
        text = f'{epoch}!{text}'
    if pre is not None:
        text += f'{pre[0]}{pre[1]}'
    if local:
        text += f'+{local}'
    try:
        return Version(text)
    except InvalidVersion as exc:
        raise UvReleaseError(
            code=E.VERSION_INVALID,
            message=f"'{text}' is not a valid PEP 440 version",
            hint='Build metadata (-m) may only contain letters, digits and dots.',
        ) from exc


def bump_version(version: Version, level: BumpLevel, metadata: str | None = None) -> Version | None:
    """Apply a bump level to ``version``.

    Args:
        version: The current version.
        level: The requested bump.
        metadata: Optional local version label appended as ``+metadata``.

    Returns:
        The bumped version, or ``None`` when ``level`` is already satisfied
        (``release`` on a final release).

    Raises:
        UvReleaseError: When asked to move back to an earlier pre-release
            stage (e.g. ``alpha`` on ``1.0.0rc1``).
    """
    major, minor, micro = _release3(version)
    pre: tuple[str, int] | None = None

    if level is BumpLevel.MAJOR:
        release: tuple[int, ...] = (major + 1, 0, 0)
    elif level is BumpLevel.MINOR:
        release = (major, minor + 1, 0)
    elif level is BumpLevel.PATCH:
        release = version.release if version.is_prerelease else (major, minor, micro + 1)
    elif level is BumpLevel.RELEASE:
        if not version.is_prerelease:
            return None
        release = version.release
    else:
        stage = level.stage or ''
        if version.pre is None:
            # A bare dev release (1.2.4.dev0) sorts before 1.2.4a1.
            release = version.release if version.dev is not None else (major, minor, micro + 1)
            pre = (stage, 1)
        else:
            current_stage, number = version.pre
            release = version.release
            if current_stage == stage:
                pre = (stage, number if version.dev is not None else number + 1)
            elif _STAGE_ORDER[stage] > _STAGE_ORDER[current_stage]:
                pre = (stage, 1)
            else:
                raise UvReleaseError(
                    code=E.VERSION_UNSUPPORTED_REQUEST,
                    message=f'Cannot bump {version} to {level.value}: it is already past that stage',
                    hint='Use a later stage, or "release" to finalise the version.',
                )

    return _compose(version.epoch, release, pre=pre, local=metadata)


def decide(current: Version, request: TargetVersion, metadata: str | None = None) -> Version | None:
    """Decide the next version for a package.

    Args:
        current: The version in the package manifest.
        request: A relative level or an absolute version.
        metadata: Optional local version label for relative bumps.

    Returns:
        The next version, or ``None`` when the package needs no release.

    Raises:
        UvReleaseError: ``UR-VERSION-UNSUPPORTED-REQUEST`` when an absolute
            version lower than ``current`` is requested.
    """
    if request.level is not None:
        return bump_version(current, request.level, metadata)

    target = request.version
    if target is None or target == current:
        return None
    if target > current:
        return target
    raise UvReleaseError(
        code=E.VERSION_UNSUPPORTED_REQUEST,
        message=f'Cannot release version {target}: it is smaller than the current version {current}',
        hint='Pass a version greater than the current one.',
    )


def post_release_version(base: Version, ext: str) -> Version | None:
    """Compute the development version that follows a release.

    ``1.2.3`` with ext ``dev`` gives ``1.2.4.dev0``; with ext ``alpha``
    gives ``1.2.4a0``.

    Args:
        base: The version being released.
        ext: Development marker; ``0`` is appended unless it already ends
            in a number.

    Returns:
        The development version, or ``None`` when ``base`` is itself a
        pre-release.

    Raises:
        UvReleaseError: If ``ext`` does not form a PEP 440 pre-release.
    """
    if base.is_prerelease:
        return None
    major, minor, micro = _release3(base)
    suffix = ext if ext[-1:].isdigit() else f'{ext}0'
    text = f'{major}.{minor}.{micro + 1}.{suffix}'
    if base.epoch:
        text = f'{base.epoch}!{text}'
    try:
        post = Version(text)
    except InvalidVersion as exc:
        raise UvReleaseError(
            code=E.CONFIG_INVALID_VALUE,
            message=f"dev-version-ext '{ext}' does not form a valid version ({text})",
            hint='Use "dev", "alpha", "beta" or "rc".',
        ) from exc
    if not post.is_prerelease:
        raise UvReleaseError(
            code=E.CONFIG_INVALID_VALUE,
            message=f"dev-version-ext '{ext}' does not form a pre-release version ({post})",
            hint='Use "dev", "alpha", "beta" or "rc".',
        )
    return post


def parse_requirement(raw: str) -> Requirement:
    """Parse a PEP 508 requirement string.

    Raises:
        UvReleaseError: If ``raw`` is not a valid requirement.
    """
    try:
        return Requirement(raw)
    except InvalidRequirement as exc:
        raise UvReleaseError(
            code=E.VERSION_INVALID_REQUIREMENT,
            message=f"'{raw}' is not a valid PEP 508 requirement",
        ) from exc


def requirement_matches(raw: str, version: Version) -> bool:
    """Return ``True`` if the requirement ``raw`` accepts ``version``.

    Pre-releases are accepted when the specifier allows them by range.
    """
    return parse_requirement(raw).specifier.contains(version, prereleases=True)


def _ordered_specifiers(raw: str, req: Requirement) -> list[Specifier]:
    """Return the requirement's specifiers in their written order."""
    text = raw.split(';', 1)[0]
    text = _NAME_EXTRAS_RE.sub('', text, count=1).strip()
    if text.startswith('(') and text.endswith(')'):
        text = text[1:-1]
    try:
        specs = [Specifier(part.strip()) for part in text.split(',') if part.strip()]
    except InvalidSpecifier:
        specs = []
    if SpecifierSet(','.join(str(s) for s in specs)) != req.specifier:
        return sorted(req.specifier, key=str)
    return specs


def _public(version: Version) -> str:
    return version.public


def _truncate(version: Version, depth: int) -> list[int]:
    return list((*version.release, *([0] * depth))[:depth])


def _join(parts: list[int], epoch: int) -> str:
    text = '.'.join(str(p) for p in parts)
    return f'{epoch}!{text}' if epoch else text


def _accepts(spec: str, version: Version) -> bool:
    return Specifier(spec).contains(version, prereleases=True)


def _rewrite(spec: Specifier, version: Version) -> str | None:
    """Rewrite one specifier so it accepts ``version``; ``None`` drops it."""
    op = spec.operator
    if op == '===':
        return f'==={version}'
    if op == '!=':
        return str(spec) if _accepts(str(spec), version) else None

    wildcard = spec.version.endswith('.*')
    bound = parse_version(spec.version[:-2] if wildcard else spec.version)
    depth = len(bound.release)
    epoch = version.epoch

    if op == '==' and wildcard:
        candidate = f'=={_join(_truncate(version, depth), epoch)}.*'
        return candidate if _accepts(candidate, version) else f'=={_public(version)}'
    if op == '==':
        return f'=={_public(version)}'
    if op == '~=':
        candidate = f'~={_join(_truncate(version, max(depth, 2)), epoch)}'
        return candidate if _accepts(candidate, version) else f'~={_public(version)}'
    if op in ('>=', '>'):
        candidate = f'>={_join(_truncate(version, depth), epoch)}'
        return candidate if _accepts(candidate, version) else f'>={_public(version)}'
    if op == '<=':
        return str(spec) if _accepts(str(spec), version) else f'<={_public(version)}'

    # op == '<': keep when still satisfied, otherwise move the bound past
    # ``version`` at the position of its last non-zero component.
    if _accepts(str(spec), version):
        return str(spec)
    significant = [i for i, part in enumerate(bound.release) if part] or [0]
    index = significant[-1]
    parts = _truncate(version, depth)
    parts[index] += 1
    for i in range(index + 1, depth):
        parts[i] = 0
    return f'<{_join(parts, epoch)}'


def set_requirement(raw: str, version: Version) -> str | None:
    """Rewrite a requirement so that it accepts ``version``.

    Each specifier keeps its operator and precision where possible, e.g.
    ``core~=1.0`` → ``core~=2.0`` and ``core>=1.0,<2`` → ``core>=2.0,<3``
    for ``2.0.0``. Extras and markers are preserved.

    Args:
        raw: PEP 508 requirement string as written in the manifest.
        version: The version the requirement must accept.

    Returns:
        The new requirement string, or ``None`` when nothing changes
        (including requirements with no version specifier).
    """
    req = parse_requirement(raw)
    if req.url or not req.specifier:
        return None

    old_specs = _ordered_specifiers(raw, req)
    new_specs: list[str] = []
    for spec in old_specs:
        text = _rewrite(spec, version)
        if text is not None:
            new_specs.append(text)
    if [str(s) for s in old_specs] == new_specs:
        return None

    result = req.name
    if req.extras:
        result += f'[{",".join(sorted(req.extras))}]'
    result += ','.join(new_specs)
    if req.marker is not None:
        result += f'; {req.marker}'
    return result


__all__ = [
    'BumpLevel',
    'TargetVersion',
    'bump_version',
    'decide',
    'parse_requirement',
    'parse_version',
    'post_release_version',
    'requirement_matches',
    'set_requirement',
]

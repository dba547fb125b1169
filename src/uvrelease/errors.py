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

"""Structured error system for uvrelease.

Every fatal error has a unique ``UR-NAMED-KEY`` code, a human-readable
message, and an optional hint with a suggested fix.

Fatal errors unwind the whole run. Pipeline aborts (dirty tree, failed
commit, failed publish, ...) are *not* errors: they are exit codes returned
by :class:`~uvrelease.pipeline.ReleasePipeline`.

Key Concepts (ELI5)::

    ┌─────────────────────┬────────────────────────────────────────────────┐
    │ Concept             │ ELI5 Explanation                               │
    ├─────────────────────┼────────────────────────────────────────────────┤
    │ ErrorCode           │ The name on the ticket, e.g.                  │
    │                     │ "UR-DEPENDENT-VERSION-CONFLICT".              │
    ├─────────────────────┼────────────────────────────────────────────────┤
    │ ErrorInfo           │ The ticket itself: code, what broke, and how  │
    │                     │ to get the release moving again.              │
    ├─────────────────────┼────────────────────────────────────────────────┤
    │ UvReleaseError      │ Stops the release before the next phase. The  │
    │                     │ CLI prints the ticket and exits 128.          │
    ├─────────────────────┼────────────────────────────────────────────────┤
    │ UvReleaseWarning    │ Same ticket, but the release carries on.      │
    ├─────────────────────┼────────────────────────────────────────────────┤
    │ explain()           │ `uvrelease explain UR-...` reads the ticket.  │
    └─────────────────────┴────────────────────────────────────────────────┘

Code categories::

    UR-CONFIG-*       Configuration errors
    UR-WORKSPACE-*    Workspace discovery errors
    UR-GRAPH-*        Dependency graph errors
    UR-VERSION-*      Version parsing / bump errors
    UR-MANIFEST-*     pyproject.toml editing errors
    UR-REPLACE-*      File replacement errors
    UR-DEPENDENT-*    Dependent version reconciliation errors
    UR-VCS-*          git errors
    UR-PM-*           uv errors
    UR-PREFLIGHT-*    Preflight warnings
    UR-PUBLISH-*      Publish errors

Usage::

    from uvrelease.errors import E, UvReleaseError

    raise UvReleaseError(
        code=E.VERSION_UNSUPPORTED_REQUEST,
        message='Cannot release 1.0.0: current version is 1.2.0',
        hint='Pass a version greater than the current one.',
    )
"""

from __future__ import annotations

import sys
from dataclasses import dataclass
from enum import Enum
from typing import TextIO

from rich.console import Console
from rich.markup import escape as rich_escape


class ErrorCode(str, Enum):
    """Enumeration of all uvrelease diagnostic codes."""

    # Configuration
    CONFIG_NOT_FOUND = 'UR-CONFIG-NOT-FOUND'
    CONFIG_PARSE_ERROR = 'UR-CONFIG-PARSE-ERROR'
    CONFIG_INVALID_KEY = 'UR-CONFIG-INVALID-KEY'
    CONFIG_INVALID_VALUE = 'UR-CONFIG-INVALID-VALUE'

    # Workspace discovery
    WORKSPACE_NOT_FOUND = 'UR-WORKSPACE-NOT-FOUND'
    WORKSPACE_NO_MEMBERS = 'UR-WORKSPACE-NO-MEMBERS'
    WORKSPACE_PARSE_ERROR = 'UR-WORKSPACE-PARSE-ERROR'
    WORKSPACE_DUPLICATE_PACKAGE = 'UR-WORKSPACE-DUPLICATE-PACKAGE'
    WORKSPACE_UNKNOWN_PACKAGE = 'UR-WORKSPACE-UNKNOWN-PACKAGE'

    # Dependency graph
    GRAPH_CYCLE_DETECTED = 'UR-GRAPH-CYCLE-DETECTED'

    # Versioning
    VERSION_INVALID = 'UR-VERSION-INVALID'
    VERSION_UNSUPPORTED_REQUEST = 'UR-VERSION-UNSUPPORTED-REQUEST'
    VERSION_INVALID_REQUIREMENT = 'UR-VERSION-INVALID-REQUIREMENT'

    # Manifest editing
    MANIFEST_READ_ERROR = 'UR-MANIFEST-READ-ERROR'
    MANIFEST_WRITE_ERROR = 'UR-MANIFEST-WRITE-ERROR'
    MANIFEST_MISSING_VERSION = 'UR-MANIFEST-MISSING-VERSION'

    # File replacements
    REPLACE_FILE_ERROR = 'UR-REPLACE-FILE-ERROR'
    REPLACE_MISMATCH = 'UR-REPLACE-MISMATCH'

    # Dependents
    DEPENDENT_VERSION_CONFLICT = 'UR-DEPENDENT-VERSION-CONFLICT'

    # Version control
    VCS_UNAVAILABLE = 'UR-VCS-UNAVAILABLE'
    VCS_COMMAND_FAILED = 'UR-VCS-COMMAND-FAILED'

    # Package manager
    PM_COMMAND_FAILED = 'UR-PM-COMMAND-FAILED'

    # Preflight
    PREFLIGHT_DIRTY_WORKTREE = 'UR-PREFLIGHT-DIRTY-WORKTREE'
    PREFLIGHT_BEHIND_REMOTE = 'UR-PREFLIGHT-BEHIND-REMOTE'

    # Publish
    PUBLISH_TIMEOUT = 'UR-PUBLISH-TIMEOUT'


# Convenience alias for shorter imports.
E = ErrorCode


@dataclass(frozen=True)
class ErrorInfo:
    """Metadata for a single error code.

    Attributes:
        code: The ``UR-NAMED-KEY`` error code.
        message: Human-readable description of what went wrong.
        hint: Optional suggestion for how to fix the error.
    """

    code: ErrorCode
    message: str
    hint: str = ''


class _Coded:
    """Carries an :class:`ErrorInfo` for both errors and warnings."""

    info: ErrorInfo

    def _set_info(self, code: ErrorCode, message: str, hint: str) -> str:
        self.info = ErrorInfo(code=code, message=message, hint=hint)
        return f'[{code.value}] {message}'

    @property
    def code(self) -> ErrorCode:
        """The ``UR-...`` code."""
        return self.info.code

    @property
    def message(self) -> str:
        """What went wrong."""
        return self.info.message

    @property
    def hint(self) -> str:
        """How to fix it, or an empty string."""
        return self.info.hint


class UvReleaseError(_Coded, Exception):
    """A fatal condition: the CLI renders it and exits with 128.

    Args:
        code: The error code from :class:`ErrorCode`.
        message: What went wrong, naming the file or package involved.
        hint: How to fix it.
    """

    def __init__(self, code: ErrorCode, message: str, hint: str = '') -> None:
        """Record the code, message and hint."""
        super().__init__(self._set_info(code, message, hint))


class UvReleaseWarning(_Coded, UserWarning):
    """A non-blocking finding, emitted with :func:`warnings.warn`."""

    def __init__(self, code: ErrorCode, message: str, hint: str = '') -> None:
        """Record the code, message and hint."""
        super().__init__(self._set_info(code, message, hint))


ERRORS: dict[ErrorCode, ErrorInfo] = {
    E.CONFIG_INVALID_KEY: ErrorInfo(
        code=E.CONFIG_INVALID_KEY,
        message='A release configuration file contains an unknown key.',
        hint='Keys are kebab-case, e.g. "sign-commit" or "dependent-version".',
    ),
    E.WORKSPACE_NOT_FOUND: ErrorInfo(
        code=E.WORKSPACE_NOT_FOUND,
        message='No pyproject.toml with a [tool.uv.workspace] section was found.',
        hint='Run uvrelease from inside a uv workspace.',
    ),
    E.GRAPH_CYCLE_DETECTED: ErrorInfo(
        code=E.GRAPH_CYCLE_DETECTED,
        message='Circular dependency detected between workspace members.',
        hint='uv cannot lock a workspace with cyclic member dependencies; check the reported cycle.',
    ),
    E.VERSION_UNSUPPORTED_REQUEST: ErrorInfo(
        code=E.VERSION_UNSUPPORTED_REQUEST,
        message='The requested version is lower than the current version.',
        hint='Pass a bump level (major, minor, patch, release, rc, beta, alpha) or a greater version.',
    ),
    E.DEPENDENT_VERSION_CONFLICT: ErrorInfo(
        code=E.DEPENDENT_VERSION_CONFLICT,
        message='Workspace members depend on a version range that excludes the new version.',
        hint='Update the listed requirements or use --dependent-version fix.',
    ),
    E.VCS_UNAVAILABLE: ErrorInfo(
        code=E.VCS_UNAVAILABLE,
        message='git could not be executed.',
        hint='Install git and make sure it is on PATH.',
    ),
    E.REPLACE_MISMATCH: ErrorInfo(
        code=E.REPLACE_MISMATCH,
        message='A configured replacement matched an unexpected number of times.',
        hint='Adjust the "search" pattern or the min/max/exactly bounds.',
    ),
    E.PREFLIGHT_DIRTY_WORKTREE: ErrorInfo(
        code=E.PREFLIGHT_DIRTY_WORKTREE,
        message='The working tree has uncommitted or untracked changes.',
        hint='Commit or stash your changes before releasing; dry runs only warn.',
    ),
    E.PREFLIGHT_BEHIND_REMOTE: ErrorInfo(
        code=E.PREFLIGHT_BEHIND_REMOTE,
        message='The remote branch has commits that are not in HEAD.',
        hint='Pull before releasing so the release includes upstream changes.',
    ),
    E.PUBLISH_TIMEOUT: ErrorInfo(
        code=E.PUBLISH_TIMEOUT,
        message='The published version did not appear on the index in time.',
        hint='Check the upload on the index; the remaining steps can be run manually.',
    ),
}


def explain(code: str) -> str | None:
    """Return a detailed explanation for an error code.

    Args:
        code: The error code string, e.g. ``"UR-VCS-UNAVAILABLE"``.

    Returns:
        A formatted explanation string, or ``None`` if the code is unknown.
    """
    try:
        error_code = ErrorCode(code)
    except ValueError:
        return None

    info = ERRORS.get(error_code)
    if info is None:
        return f'{code}: No detailed explanation available.'

    lines = [f'{code}: {info.message}']
    if info.hint:
        lines.append(f'  Hint: {info.hint}')
    return '\n'.join(lines)


def _render(kind: str, color: str, info: ErrorInfo, out: TextIO) -> None:
    """Render a diagnostic in compiler style."""
    if out.isatty():
        console = Console(file=out, highlight=False)
        msg = rich_escape(info.message)
        console.print(
            f'[bold {color}]{kind}[/bold {color}][bold {color}]\\[{info.code.value}][/bold {color}][bold]: {msg}[/bold]',
        )
        if info.hint:
            console.print('  [dim]|[/dim]')
            console.print(f'  [dim]=[/dim] [cyan]hint[/cyan]: {rich_escape(info.hint)}')
        console.print()
    else:
        print(f'{kind}[{info.code.value}]: {info.message}', file=out)  # noqa: T201 - CLI output
        if info.hint:
            print('  |', file=out)  # noqa: T201 - CLI output
            print(f'  = hint: {info.hint}', file=out)  # noqa: T201 - CLI output
        print(file=out)  # noqa: T201 - CLI output


def render_error(exc: UvReleaseError, *, file: TextIO | None = None) -> None:
    """Render an error in Rust-compiler style with color.

    Output format::

        error[UR-VCS-UNAVAILABLE]: git could not be executed.
          |
          = hint: Install git and make sure it is on PATH.

    Args:
        exc: The error to render.
        file: Output stream (defaults to ``sys.stderr``).
    """
    _render('error', 'red', exc.info, file or sys.stderr)


def render_warning(exc: UvReleaseWarning, *, file: TextIO | None = None) -> None:
    """Render a warning in Rust-compiler style with color.

    Args:
        exc: The warning to render.
        file: Output stream (defaults to ``sys.stderr``).
    """
    _render('warning', 'yellow', exc.info, file or sys.stderr)


__all__ = [
    'E',
    'ERRORS',
    'ErrorCode',
    'ErrorInfo',
    'UvReleaseError',
    'UvReleaseWarning',
    'explain',
    'render_error',
    'render_warning',
]

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

"""The one place uvrelease starts child processes.

``git``, ``uv`` and the pre-release hook are all launched through
:func:`run_command`. Backends never touch :mod:`subprocess` themselves,
so dry-run handling and logging stay uniform across a release.

Key Concepts (ELI5)::

    ┌─────────────────────┬────────────────────────────────────────────────┐
    │ Concept             │ ELI5 Explanation                               │
    ├─────────────────────┼────────────────────────────────────────────────┤
    │ run_command         │ Start git, uv or a hook and wait for it.      │
    ├─────────────────────┼────────────────────────────────────────────────┤
    │ CommandResult       │ What came back: exit code and captured text.  │
    ├─────────────────────┼────────────────────────────────────────────────┤
    │ dry_run             │ Say what would run, run nothing, report ok.   │
    ├─────────────────────┼────────────────────────────────────────────────┤
    │ env                 │ Variables layered over os.environ. Values of  │
    │                     │ token-like names never reach the log.         │
    └─────────────────────┴────────────────────────────────────────────────┘
"""

from __future__ import annotations

import os
import subprocess  # noqa: S404 - launching git and uv is this module's job
import time
from dataclasses import dataclass, field
from pathlib import Path

from uvrelease.logging import get_logger

log = get_logger('uvrelease.backends.run')

# uv publish uploads every built file; large wheels on slow links need room.
COMMAND_TIMEOUT_SECONDS = 600

# Environment names whose values are masked in log output.
_SECRET_MARKERS = ('TOKEN', 'PASSWORD', 'SECRET')


@dataclass(frozen=True)
class CommandResult:
    """Outcome of one child process.

    Attributes:
        argv: The command line that ran (or would have run).
        return_code: Exit status; 0 means success.
        stdout: Captured output, empty when output was not captured.
        stderr: Captured error output.
        elapsed_ms: Wall-clock time spent waiting.
        dry_run: True when nothing was executed.
        env: The extra variables layered over the inherited environment.
    """

    argv: list[str]
    return_code: int
    stdout: str = ''
    stderr: str = ''
    elapsed_ms: float = 0.0
    dry_run: bool = False
    env: dict[str, str] = field(default_factory=dict)

    @property
    def ok(self) -> bool:
        """True for a zero exit status."""
        return self.return_code == 0


def _loggable_env(env: dict[str, str]) -> dict[str, str]:
    return {
        name: '***' if any(marker in name.upper() for marker in _SECRET_MARKERS) else value
        for name, value in env.items()
    }


def run_command(
    argv: list[str],
    *,
    cwd: Path | str | None = None,
    env: dict[str, str] | None = None,
    dry_run: bool = False,
    capture: bool = True,
    timeout: int = COMMAND_TIMEOUT_SECONDS,
) -> CommandResult:
    """Run ``argv`` to completion.

    A non-zero exit is reported through :attr:`CommandResult.ok`, never
    raised; each phase of the pipeline decides what a failure means.

    Args:
        argv: Executable and arguments.
        cwd: Directory to run in.
        env: Variables added to (or replacing) the inherited environment.
        dry_run: Log instead of executing.
        capture: Collect stdout and stderr. Hooks run with ``False`` so
            their output reaches the terminal.
        timeout: Seconds before the child is killed.

    Raises:
        OSError: The executable is missing or cannot be started.
        subprocess.TimeoutExpired: The child outlived ``timeout``.
    """
    extra = dict(env or {})
    shown = ' '.join(argv)
    if dry_run:
        log.info('dry_run', cmd=shown, cwd=str(cwd or '.'), env=_loggable_env(extra))
        return CommandResult(argv=argv, return_code=0, dry_run=True, env=extra)

    log.debug('run_command', cmd=shown, cwd=str(cwd or '.'), env=_loggable_env(extra))
    started = time.monotonic()
    try:
        proc = subprocess.run(  # noqa: S603 - argv is built by backends and release config
            argv,
            cwd=cwd,
            env={**os.environ, **extra} if extra else None,
            capture_output=capture,
            text=True,
            timeout=timeout,
        )
    except subprocess.TimeoutExpired:
        log.error('command_timeout', cmd=shown, timeout=timeout)
        raise
    elapsed_ms = (time.monotonic() - started) * 1000

    result = CommandResult(
        argv=argv,
        return_code=proc.returncode,
        stdout=proc.stdout or '',
        stderr=proc.stderr or '',
        elapsed_ms=elapsed_ms,
        env=extra,
    )
    if result.ok:
        log.debug('command_ok', cmd=shown, elapsed_ms=round(elapsed_ms))
    else:
        log.warning('command_failed', cmd=shown, return_code=proc.returncode, stderr=result.stderr[-500:])
    return result


__all__ = [
    'COMMAND_TIMEOUT_SECONDS',
    'CommandResult',
    'run_command',
]

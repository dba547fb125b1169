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

"""Tests for uvrelease.backends._run module."""

from __future__ import annotations

import subprocess  # noqa: S404 - asserting on TimeoutExpired
import sys
from pathlib import Path

import pytest
from uvrelease.backends._run import CommandResult, _loggable_env, run_command


class TestCommandResult:
    """Tests for CommandResult."""

    def test_ok(self) -> None:
        """Zero is success."""
        assert CommandResult(argv=['x'], return_code=0).ok
        assert not CommandResult(argv=['x'], return_code=2).ok


class TestLoggableEnv:
    """Tests for the env masking used in log lines."""

    def test_token_masked(self) -> None:
        """Token-like names are hidden, the rest shown."""
        shown = _loggable_env({'UV_PUBLISH_TOKEN': 'pypi-abc', 'UV_INDEX_PASSWORD': 'pw', 'FEATURES': 'fast'})
        assert shown == {'UV_PUBLISH_TOKEN': '***', 'UV_INDEX_PASSWORD': '***', 'FEATURES': 'fast'}


class TestRunCommand:
    """Tests for run_command()."""

    def test_dry_run_does_not_execute(self, tmp_path: Path) -> None:
        """Dry-run returns a synthetic success carrying the env."""
        marker = tmp_path / 'ran'
        result = run_command(
            [sys.executable, '-c', f'open({str(marker)!r}, "w").close()'],
            dry_run=True,
            env={'A': 'b'},
        )
        assert result.ok
        assert result.dry_run
        assert result.env == {'A': 'b'}
        assert not marker.exists()

    def test_captures_output(self) -> None:
        """stdout and stderr are captured as text."""
        result = run_command([sys.executable, '-c', 'import sys; print("out"); print("err", file=sys.stderr)'])
        assert result.ok
        assert result.stdout.strip() == 'out'
        assert result.stderr.strip() == 'err'
        assert result.elapsed_ms >= 0

    def test_env_and_cwd(self, tmp_path: Path) -> None:
        """Extra env is layered over os.environ and cwd is honoured."""
        result = run_command(
            [sys.executable, '-c', 'import os; print(os.environ["UR_TEST"]); print(os.getcwd())'],
            cwd=tmp_path,
            env={'UR_TEST': 'yes'},
        )
        value, cwd = result.stdout.splitlines()
        assert value == 'yes'
        assert Path(cwd).resolve() == tmp_path.resolve()

    def test_uncaptured(self) -> None:
        """capture=False leaves stdout empty."""
        result = run_command([sys.executable, '-c', 'print("hi")'], capture=False)
        assert result.ok
        assert result.stdout == ''

    def test_failure_is_reported(self) -> None:
        """A non-zero exit is returned, not raised."""
        result = run_command([sys.executable, '-c', 'raise SystemExit(4)'])
        assert result.return_code == 4
        assert not result.ok

    def test_timeout(self) -> None:
        """A child outliving the timeout raises TimeoutExpired."""
        with pytest.raises(subprocess.TimeoutExpired):
            run_command([sys.executable, '-c', 'import time; time.sleep(30)'], timeout=1)

    def test_missing_executable(self, tmp_path: Path) -> None:
        """A missing binary raises OSError."""
        with pytest.raises(OSError):
            run_command([str(tmp_path / 'missing')])

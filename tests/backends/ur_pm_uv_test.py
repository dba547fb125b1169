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

"""Tests for uvrelease.backends.pm.uv module."""

from __future__ import annotations

from pathlib import Path

import pytest
from uvrelease.backends.pm.uv import FEATURES_ENV, UvBackend, feature_env


class TestFeatureEnv:
    """Tests for feature_env()."""

    def test_none(self) -> None:
        """No features, no environment."""
        assert feature_env() == {}

    def test_list(self) -> None:
        """Selected features are comma separated."""
        assert feature_env(['fast', 'simd']) == {FEATURES_ENV: '--features fast,simd'}

    def test_all(self) -> None:
        """all_features wins over a list."""
        assert feature_env(['fast'], all_features=True) == {FEATURES_ENV: '--all-features'}


class TestUvBackendDryRun:
    """Dry-run commands are logged, never executed."""

    @pytest.mark.asyncio
    async def test_publish(self, tmp_path: Path) -> None:
        """The upload command targets the named index with the token in the env."""
        result = await UvBackend(tmp_path).publish('core', registry='testpypi', token='pypi-abc', dry_run=True)
        assert result.ok
        assert result.dry_run
        assert result.argv[:4] == ['uv', 'publish', '--index', 'testpypi']
        assert result.env == {'UV_PUBLISH_TOKEN': 'pypi-abc'}

    @pytest.mark.asyncio
    async def test_publish_default_index(self, tmp_path: Path) -> None:
        """Without a registry no --index is passed."""
        result = await UvBackend(tmp_path).publish('core', dry_run=True)
        assert '--index' not in result.argv
        assert result.env == {}

    @pytest.mark.asyncio
    async def test_lock(self, tmp_path: Path) -> None:
        """uv lock runs at the workspace root."""
        result = await UvBackend(tmp_path).lock(dry_run=True)
        assert result.argv == ['uv', 'lock']
        assert result.dry_run

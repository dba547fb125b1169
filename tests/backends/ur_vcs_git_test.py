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

"""Tests for uvrelease.backends.vcs.git against a real repository."""

from __future__ import annotations

import shutil
from pathlib import Path

import pytest
from uvrelease.backends.vcs.git import GitCLIBackend
from uvrelease.errors import E, UvReleaseError

from tests._fakes import git, init_git_repo

pytestmark = pytest.mark.skipif(shutil.which('git') is None, reason='git is not installed')


@pytest.fixture(autouse=True)
def _git_identity(monkeypatch: pytest.MonkeyPatch, tmp_path: Path) -> None:
    """Isolate from the user's git config and provide an identity."""
    empty = tmp_path / 'gitconfig'
    empty.write_text('', encoding='utf-8')
    monkeypatch.setenv('GIT_CONFIG_GLOBAL', str(empty))
    monkeypatch.setenv('GIT_CONFIG_NOSYSTEM', '1')
    for role in ('AUTHOR', 'COMMITTER'):
        monkeypatch.setenv(f'GIT_{role}_NAME', 'Test')
        monkeypatch.setenv(f'GIT_{role}_EMAIL', 'test@example.com')


@pytest.fixture
def repo(tmp_path: Path) -> Path:
    """A repository with one package directory and one commit."""
    root = (tmp_path / 'repo').resolve()
    pkg = root / 'packages' / 'core'
    pkg.mkdir(parents=True)
    (pkg / 'pyproject.toml').write_text('[project]\nname = "core"\nversion = "1.0.0"\n', encoding='utf-8')
    (root / 'README.md').write_text('hello\n', encoding='utf-8')
    init_git_repo(root)
    return root


def _head_count(root: Path) -> int:
    return int(git(root, 'rev-list', '--count', 'HEAD').strip())


class TestQueries:
    """Read-only git queries."""

    @pytest.mark.asyncio
    async def test_version(self, repo: Path) -> None:
        """git --version is returned verbatim."""
        assert (await GitCLIBackend(repo).version()).startswith('git version')

    @pytest.mark.asyncio
    async def test_top_level(self, repo: Path) -> None:
        """The top level is found from a subdirectory."""
        top = await GitCLIBackend(repo).top_level(repo / 'packages' / 'core')
        assert top.resolve() == repo

    @pytest.mark.asyncio
    async def test_top_level_without_git(self, repo: Path, tmp_path: Path, monkeypatch: pytest.MonkeyPatch) -> None:
        """A git executable missing from PATH is UR-VCS-UNAVAILABLE."""
        empty_bin = tmp_path / 'bin'
        empty_bin.mkdir()
        monkeypatch.setenv('PATH', str(empty_bin))
        with pytest.raises(UvReleaseError) as exc_info:
            await GitCLIBackend(repo).top_level(repo)
        assert exc_info.value.code == E.VCS_UNAVAILABLE

    @pytest.mark.asyncio
    async def test_current_branch(self, repo: Path) -> None:
        """The branch created by init is reported."""
        assert await GitCLIBackend(repo).current_branch() == 'main'

    @pytest.mark.asyncio
    async def test_detached_head(self, repo: Path) -> None:
        """A detached HEAD has no branch."""
        git(repo, 'checkout', '-q', '--detach')
        assert await GitCLIBackend(repo).current_branch() is None


class TestIsDirty:
    """Tests for is_dirty()."""

    @pytest.mark.asyncio
    async def test_clean(self, repo: Path) -> None:
        """A fresh commit is clean."""
        assert not await GitCLIBackend(repo).is_dirty(repo)

    @pytest.mark.asyncio
    async def test_modified(self, repo: Path) -> None:
        """A modified tracked file is dirty."""
        (repo / 'README.md').write_text('changed\n', encoding='utf-8')
        assert await GitCLIBackend(repo).is_dirty(repo)

    @pytest.mark.asyncio
    async def test_untracked(self, repo: Path) -> None:
        """An untracked file is dirty."""
        (repo / 'new.txt').write_text('x\n', encoding='utf-8')
        assert await GitCLIBackend(repo).is_dirty(repo)

    @pytest.mark.asyncio
    async def test_scoped_to_path(self, repo: Path) -> None:
        """Changes outside the package do not dirty it."""
        (repo / 'README.md').write_text('changed\n', encoding='utf-8')
        assert not await GitCLIBackend(repo).is_dirty(repo / 'packages' / 'core')


class TestChangedFiles:
    """Tests for changed_files()."""

    @pytest.mark.asyncio
    async def test_since_tag(self, repo: Path) -> None:
        """Files changed after the tag are listed as absolute paths."""
        git(repo, 'tag', 'core-v1.0.0')
        pkg = repo / 'packages' / 'core'
        (pkg / 'mod.py').write_text('x = 1\n', encoding='utf-8')
        (repo / 'README.md').write_text('changed\n', encoding='utf-8')
        git(repo, 'add', '-A')
        git(repo, 'commit', '-q', '-m', 'work')

        changed = await GitCLIBackend(repo).changed_files(pkg, 'core-v1.0.0')
        assert changed is not None
        assert [p.resolve() for p in changed] == [pkg / 'mod.py']

    @pytest.mark.asyncio
    async def test_missing_tag(self, repo: Path) -> None:
        """An unknown tag gives None."""
        assert await GitCLIBackend(repo).changed_files(repo, 'nope-v0') is None


class TestMutations:
    """Commit, tag and push, real and dry-run."""

    @pytest.mark.asyncio
    async def test_commit_all(self, repo: Path) -> None:
        """Modified tracked files are committed."""
        (repo / 'README.md').write_text('changed\n', encoding='utf-8')
        result = await GitCLIBackend(repo).commit_all(repo, '(uvrelease) version 1.1.0')
        assert result.ok
        assert _head_count(repo) == 2
        assert git(repo, 'log', '-1', '--format=%s').strip() == '(uvrelease) version 1.1.0'

    @pytest.mark.asyncio
    async def test_commit_all_dry_run(self, repo: Path) -> None:
        """Dry-run reports success and commits nothing."""
        (repo / 'README.md').write_text('changed\n', encoding='utf-8')
        result = await GitCLIBackend(repo).commit_all(repo, 'msg', dry_run=True)
        assert result.ok
        assert result.dry_run
        assert _head_count(repo) == 1

    @pytest.mark.asyncio
    async def test_tag(self, repo: Path) -> None:
        """An annotated tag is created with the message."""
        result = await GitCLIBackend(repo).tag(repo, 'core-v1.0.0', 'core version 1.0.0')
        assert result.ok
        assert git(repo, 'tag', '-l', '-n1', 'core-v1.0.0').split() == ['core-v1.0.0', 'core', 'version', '1.0.0']

    @pytest.mark.asyncio
    async def test_tag_dry_run(self, repo: Path) -> None:
        """Dry-run creates no tag."""
        await GitCLIBackend(repo).tag(repo, 'core-v1.0.0', 'msg', dry_run=True)
        assert git(repo, 'tag', '-l').strip() == ''

    @pytest.mark.asyncio
    async def test_push_fetch_behind(self, repo: Path, tmp_path: Path) -> None:
        """Pushes reach a bare remote; fetch and behind see it."""
        remote = tmp_path / 'remote.git'
        git(tmp_path, 'init', '-q', '--bare', str(remote))
        git(repo, 'remote', 'add', 'origin', str(remote))
        git(repo, 'push', '-q', '-u', 'origin', 'main')

        backend = GitCLIBackend(repo)
        git(repo, 'tag', '-a', 'core-v1.0.0', '-m', 'release')
        assert (await backend.push_tag(repo, 'origin', 'core-v1.0.0')).ok
        assert 'core-v1.0.0' in git(remote, 'tag', '-l')

        (repo / 'README.md').write_text('changed\n', encoding='utf-8')
        await backend.commit_all(repo, 'next')
        assert (await backend.push(repo, 'origin')).ok

        assert (await backend.fetch('origin', 'main')).ok
        assert not await backend.is_behind('origin', 'main')
        git(repo, 'reset', '-q', '--hard', 'HEAD~1')
        assert await backend.is_behind('origin', 'main')

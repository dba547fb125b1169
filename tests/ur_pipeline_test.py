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

"""Tests for uvrelease.pipeline: the seven phases over fake backends."""

from __future__ import annotations

import logging
import sys
from pathlib import Path
from typing import Any

import pytest
from uvrelease.config import DependentVersion, ReleaseConfig, resolve_config
from uvrelease.errors import E, UvReleaseError
from uvrelease.logging import configure_logging
from uvrelease.pipeline import (
    DEFAULT_GRACE_SLEEP,
    GRACE_SLEEP_ENV,
    ExitCode,
    ReleasePipeline,
    confirmation_prompt,
    grace_sleep_from_env,
)
from uvrelease.plan import ReleaseOptions, ReleasePlan, load_plans
from uvrelease.versions import TargetVersion
from uvrelease.workspace import Workspace, discover_workspace

from tests._fakes import FakePM, FakeRegistry, FakeVCS, write_workspace

_DATE = '2026-10-17'


@pytest.fixture(autouse=True)
def _logging() -> None:
    """Route structlog through stdlib logging so caplog sees events."""
    configure_logging(verbose=1)


class _Run:
    """One pipeline over a two-member workspace, with fakes attached."""

    def __init__(
        self,
        tmp_path: Path,
        *,
        target: str = 'minor',
        selected: tuple[str, ...] = ('core',),
        overrides: ReleaseConfig | None = None,
        root_config: str = '',
        vcs: FakeVCS | None = None,
        pm: FakePM | None = None,
        registry: FakeRegistry | None = None,
    ) -> None:
        root = write_workspace(
            tmp_path,
            {'core': ('1.0.0', []), 'app': ('0.1.0', ['core~=1.0'])},
            root_config=root_config,
        )
        self.ws: Workspace = discover_workspace(root)
        options = ReleaseOptions(target=TargetVersion.parse(target), overrides=overrides)
        self.plans: list[ReleasePlan] = load_plans(self.ws, set(selected), options, git_root=root)
        self.ws_config = resolve_config(root, overrides=overrides)
        self.vcs = vcs or FakeVCS()
        self.pm = pm or FakePM()
        self.registry = registry or FakeRegistry()
        self.sleeps: list[float] = []
        self.questions: list[str] = []

    async def _sleep(self, seconds: float) -> None:
        self.sleeps.append(seconds)

    async def run(self, *, dry_run: bool = False, answer: bool | None = None) -> ExitCode:
        async def _confirm(question: str) -> bool:
            self.questions.append(question)
            return bool(answer)

        pipeline = ReleasePipeline(
            vcs=self.vcs,
            pm=self.pm,
            registry=self.registry,
            workspace=self.ws,
            ws_config=self.ws_config,
            dry_run=dry_run,
            no_confirm=answer is None,
            confirm=_confirm,
            sleep=self._sleep,
            grace_sleep=0,
            date=_DATE,
        )
        return await pipeline.run(self.plans)

    def version(self, name: str) -> str:
        """Read the version currently on disk."""
        text = self.ws.get(name).manifest_path.read_text(encoding='utf-8')
        return text.split('version = "', 1)[1].split('"', 1)[0]

    def manifest(self, name: str) -> str:
        """Read a member manifest."""
        return self.ws.get(name).manifest_path.read_text(encoding='utf-8')


def _events(caplog: pytest.LogCaptureFixture) -> list[tuple[str, str, dict[str, Any]]]:
    return [
        (r.name, r.levelname, {k: v for k, v in r.msg.items() if k != 'timestamp'})
        for r in caplog.records
        if isinstance(r.msg, dict)
    ]


class TestDryRun:
    """Dry-run goes through every phase without side effects."""

    @pytest.mark.asyncio
    async def test_single_package(self, tmp_path: Path) -> None:
        """Manifests stay, and every backend call is marked dry-run."""
        run = _Run(tmp_path)
        assert await run.run(dry_run=True) is ExitCode.SUCCESS

        core = str(run.ws.get('core').path)
        assert run.version('core') == '1.0.0'
        assert run.vcs.called('commit_all') == [
            ('commit_all', core, '(uvrelease) version 1.1.0', 'False', 'True'),
            ('commit_all', core, '(uvrelease) start next development iteration 1.1.1.dev0', 'False', 'True'),
        ]
        assert run.vcs.called('tag') == [('tag', 'core-v1.1.0', '(uvrelease) core version 1.1.0', 'False', 'True')]
        assert run.vcs.called('push_tag') == [('push_tag', 'origin', 'core-v1.1.0', 'True')]
        assert run.vcs.called('push') == [('push', core, 'origin', '', 'True')]
        assert run.pm.published == [('core', None, True)]
        assert run.pm.locks == 2
        assert run.registry.polls == []
        assert run.sleeps == []

    @pytest.mark.asyncio
    async def test_idempotent_decisions(self, tmp_path: Path, caplog: pytest.LogCaptureFixture) -> None:
        """Two dry runs from the same state log the same decisions."""
        run = _Run(tmp_path, selected=('core', 'app'), target='major')
        caplog.set_level(logging.DEBUG)
        caplog.clear()

        assert await run.run(dry_run=True) is ExitCode.SUCCESS
        first = _events(caplog)
        caplog.clear()
        assert await run.run(dry_run=True) is ExitCode.SUCCESS
        second = _events(caplog)

        assert first, 'expected logged decisions'
        assert first == second
        assert any(event['event'] == 'fix_dependent' for _, _, event in first)

    @pytest.mark.asyncio
    async def test_dirty_tree_is_not_fatal(self, tmp_path: Path) -> None:
        """A dry run continues past a dirty tree."""
        run = _Run(tmp_path, vcs=FakeVCS(dirty=True))
        assert await run.run(dry_run=True) is ExitCode.SUCCESS
        assert len(run.vcs.called('commit_all')) == 2


class TestRealRun:
    """Runs that write manifests, with fake git and uv."""

    @pytest.mark.asyncio
    async def test_phase_order(self, tmp_path: Path) -> None:
        """Each phase completes for every package before the next starts."""
        run = _Run(tmp_path, selected=('core', 'app'))
        assert await run.run() is ExitCode.SUCCESS

        assert [call[0] for call in run.vcs.calls] == [
            'fetch',
            'commit_all',
            'commit_all',
            'tag',
            'tag',
            'commit_all',
            'commit_all',
            'push_tag',
            'push',
            'push_tag',
            'push',
        ]
        assert [name for name, _, _ in run.pm.published] == ['core', 'app']
        assert run.registry.polls == [('core', '1.1.0', 300.0, 1.0), ('app', '0.2.0', 300.0, 1.0)]
        assert run.sleeps == [0, 0]
        assert run.version('core') == '1.1.1.dev0'
        assert run.version('app') == '0.2.1.dev0'

    @pytest.mark.asyncio
    async def test_fix_rewrites_dependent(self, tmp_path: Path) -> None:
        """A major bump rewrites the dependent's requirement."""
        run = _Run(tmp_path, target='major')
        assert await run.run() is ExitCode.SUCCESS
        assert '"core~=2.0"' in run.manifest('app')
        assert run.version('core') == '2.0.1.dev0'
        assert run.version('app') == '0.1.0'

    @pytest.mark.asyncio
    async def test_dirty_tree(self, tmp_path: Path) -> None:
        """A dirty tree stops the run before anything happens."""
        run = _Run(tmp_path, vcs=FakeVCS(dirty=True))
        assert await run.run() is ExitCode.DIRTY_TREE
        assert run.vcs.calls == []
        assert run.version('core') == '1.0.0'

    @pytest.mark.asyncio
    async def test_nothing_to_release(self, tmp_path: Path) -> None:
        """'release' on a final version exits cleanly."""
        run = _Run(tmp_path, target='release')
        assert await run.run() is ExitCode.SUCCESS
        assert run.vcs.called('commit_all') == []
        assert run.pm.locks == 0

    @pytest.mark.asyncio
    async def test_declined(self, tmp_path: Path) -> None:
        """Answering no releases nothing."""
        run = _Run(tmp_path)
        assert await run.run(answer=False) is ExitCode.SUCCESS
        assert run.questions == ['Release core 1.1.0?']
        assert run.vcs.called('commit_all') == []
        assert run.version('core') == '1.0.0'

    @pytest.mark.asyncio
    async def test_confirmed(self, tmp_path: Path) -> None:
        """Answering yes goes ahead."""
        run = _Run(tmp_path)
        assert await run.run(answer=True) is ExitCode.SUCCESS
        assert run.version('core') == '1.1.1.dev0'


class TestDependentPolicy:
    """The error policy stops the run before anything is published."""

    @pytest.mark.asyncio
    @pytest.mark.parametrize('dry_run', [True, False])
    async def test_error_policy(self, tmp_path: Path, dry_run: bool) -> None:
        """A conflicting dependent raises UR-DEPENDENT-VERSION-CONFLICT."""
        run = _Run(tmp_path, target='major', overrides=ReleaseConfig(dependent_version=DependentVersion.ERROR))
        with pytest.raises(UvReleaseError) as exc_info:
            await run.run(dry_run=dry_run)
        assert exc_info.value.code is E.DEPENDENT_VERSION_CONFLICT
        assert run.pm.published == []
        assert run.vcs.called('commit_all') == []
        assert '"core~=1.0"' in run.manifest('app')


class TestFailures:
    """Each phase stops with its own exit code."""

    @pytest.mark.asyncio
    async def test_commit_failed(self, tmp_path: Path) -> None:
        """A failed pre-release commit returns 102."""
        run = _Run(tmp_path, vcs=FakeVCS(fail={'commit_all'}))
        assert await run.run() is ExitCode.COMMIT_FAILED
        assert run.pm.published == []

    @pytest.mark.asyncio
    async def test_publish_failed(self, tmp_path: Path) -> None:
        """A failed upload returns 103 and creates no tag."""
        run = _Run(tmp_path, pm=FakePM(publish_ok=False))
        assert await run.run() is ExitCode.PUBLISH_FAILED
        assert run.vcs.called('tag') == []

    @pytest.mark.asyncio
    async def test_publish_timeout(self, tmp_path: Path) -> None:
        """A version that never shows up returns 103."""
        run = _Run(tmp_path, registry=FakeRegistry(available=False))
        assert await run.run() is ExitCode.PUBLISH_FAILED
        assert run.vcs.called('tag') == []
        assert run.sleeps == []

    @pytest.mark.asyncio
    async def test_tag_failed(self, tmp_path: Path) -> None:
        """A failed tag returns 104."""
        run = _Run(tmp_path, vcs=FakeVCS(fail={'tag'}))
        assert await run.run() is ExitCode.TAG_FAILED
        assert run.vcs.called('push') == []

    @pytest.mark.asyncio
    async def test_push_failed(self, tmp_path: Path) -> None:
        """A failed tag push returns 106."""
        run = _Run(tmp_path, vcs=FakeVCS(fail={'push_tag'}))
        assert await run.run() is ExitCode.PUSH_FAILED

    @pytest.mark.asyncio
    async def test_push_head_failed(self, tmp_path: Path) -> None:
        """A failed branch push returns 106 after the tag went out."""
        run = _Run(tmp_path, vcs=FakeVCS(fail={'push'}))
        assert await run.run() is ExitCode.PUSH_FAILED
        assert len(run.vcs.called('push_tag')) == 1
        assert len(run.vcs.called('push')) == 1

    @pytest.mark.asyncio
    async def test_consolidated_push_failed(self, tmp_path: Path) -> None:
        """The single workspace push failing returns 106."""
        run = _Run(
            tmp_path,
            selected=('core', 'app'),
            root_config='[tool.uvrelease]\nconsolidate-pushes = true\n',
            vcs=FakeVCS(fail={'push'}),
        )
        assert await run.run() is ExitCode.PUSH_FAILED
        assert len(run.vcs.called('push_tag')) == 2
        assert run.vcs.called('push') == [('push', str(run.ws.root), 'origin', '', 'False')]

    @pytest.mark.asyncio
    async def test_post_release_commit_failed(self, tmp_path: Path) -> None:
        """The development-version commit failing returns 105 and pushes nothing."""
        run = _Run(tmp_path, vcs=FakeVCS(fail_after={'commit_all': 1}))
        assert await run.run() is ExitCode.POST_COMMIT_FAILED
        assert len(run.vcs.called('tag')) == 1
        assert run.vcs.called('push') == []
        assert run.vcs.called('push_tag') == []
        assert run.version('core') == '1.1.1.dev0'

    @pytest.mark.asyncio
    async def test_shared_commit_failed(self, tmp_path: Path) -> None:
        """The consolidated pre-release commit failing returns 102 before publishing."""
        run = _Run(
            tmp_path,
            selected=('core', 'app'),
            root_config='[tool.uvrelease]\nconsolidate-commits = true\n',
            vcs=FakeVCS(fail={'commit_all'}),
        )
        assert await run.run() is ExitCode.COMMIT_FAILED
        assert [call[1] for call in run.vcs.called('commit_all')] == [str(run.ws.root)]
        assert run.pm.published == []

    @pytest.mark.asyncio
    async def test_shared_post_release_commit_failed(self, tmp_path: Path) -> None:
        """The consolidated post-release commit failing returns 105."""
        run = _Run(
            tmp_path,
            selected=('core', 'app'),
            root_config='[tool.uvrelease]\nconsolidate-commits = true\n',
            vcs=FakeVCS(fail_after={'commit_all': 1}),
        )
        assert await run.run() is ExitCode.POST_COMMIT_FAILED
        assert [call[1] for call in run.vcs.called('commit_all')] == [str(run.ws.root), str(run.ws.root)]
        assert len(run.vcs.called('tag')) == 2
        assert run.vcs.called('push') == []

    @pytest.mark.asyncio
    async def test_lock_failed(self, tmp_path: Path) -> None:
        """uv lock failing is fatal."""
        run = _Run(tmp_path, pm=FakePM(lock_ok=False))
        with pytest.raises(UvReleaseError) as exc_info:
            await run.run()
        assert exc_info.value.code is E.PM_COMMAND_FAILED


class TestHook:
    """The pre-release hook runs in every mode."""

    @pytest.mark.asyncio
    async def test_env(self, tmp_path: Path) -> None:
        """The hook sees the release in its environment, cwd is the package."""
        script = "import os, pathlib; pathlib.Path('hook.txt').write_text(os.environ['NEW_VERSION'] + ' ' + os.environ['DRY_RUN'] + ' ' + os.environ['CRATE_NAME'])"
        run = _Run(tmp_path, overrides=ReleaseConfig(pre_release_hook=(sys.executable, '-c', script)))
        assert await run.run(dry_run=True) is ExitCode.SUCCESS
        hook_out = run.ws.get('core').path / 'hook.txt'
        assert hook_out.read_text(encoding='utf-8') == '1.1.0 true core'

    @pytest.mark.asyncio
    async def test_non_zero(self, tmp_path: Path) -> None:
        """A failing hook returns 107 before the commit."""
        hook = (sys.executable, '-c', 'raise SystemExit(3)')
        run = _Run(tmp_path, overrides=ReleaseConfig(pre_release_hook=hook))
        assert await run.run(dry_run=True) is ExitCode.HOOK_FAILED
        assert run.vcs.called('commit_all') == []

    @pytest.mark.asyncio
    async def test_missing_executable(self, tmp_path: Path) -> None:
        """A hook that cannot start returns 107."""
        run = _Run(tmp_path, overrides=ReleaseConfig(pre_release_hook=(str(tmp_path / 'no-such-hook'),)))
        assert await run.run(dry_run=True) is ExitCode.HOOK_FAILED


class TestOptions:
    """Configuration that changes what the phases do."""

    @pytest.mark.asyncio
    async def test_skip_publish(self, tmp_path: Path) -> None:
        """disable-publish skips the upload and the wait."""
        run = _Run(tmp_path, overrides=ReleaseConfig(disable_publish=True))
        assert await run.run() is ExitCode.SUCCESS
        assert run.pm.published == []
        assert run.registry.polls == []

    @pytest.mark.asyncio
    async def test_custom_registry_skips_wait(self, tmp_path: Path) -> None:
        """Only the default index is polled."""
        run = _Run(tmp_path, overrides=ReleaseConfig(registry='testpypi'))
        assert await run.run() is ExitCode.SUCCESS
        assert run.pm.published == [('core', 'testpypi', False)]
        assert run.registry.polls == []

    @pytest.mark.asyncio
    async def test_skip_tag_and_push(self, tmp_path: Path) -> None:
        """No tag, no push."""
        run = _Run(tmp_path, overrides=ReleaseConfig(disable_tag=True, disable_push=True))
        assert await run.run(dry_run=True) is ExitCode.SUCCESS
        assert run.vcs.called('tag') == []
        assert run.vcs.called('push') == []
        assert run.vcs.called('push_tag') == []

    @pytest.mark.asyncio
    async def test_signing(self, tmp_path: Path) -> None:
        """sign-commit and sign-tag reach the backend."""
        run = _Run(tmp_path, overrides=ReleaseConfig(sign_commit=True, sign_tag=True))
        assert await run.run(dry_run=True) is ExitCode.SUCCESS
        assert {call[3] for call in run.vcs.called('commit_all')} == {'True'}
        assert run.vcs.called('tag')[0][3] == 'True'

    @pytest.mark.asyncio
    async def test_consolidated_commits(self, tmp_path: Path) -> None:
        """One commit per phase, at the workspace root."""
        run = _Run(
            tmp_path,
            selected=('core', 'app'),
            root_config='[tool.uvrelease]\nconsolidate-commits = true\n',
        )
        assert await run.run(dry_run=True) is ExitCode.SUCCESS
        commits = run.vcs.called('commit_all')
        assert [call[1] for call in commits] == [str(run.ws.root), str(run.ws.root)]

    @pytest.mark.asyncio
    async def test_consolidated_pushes(self, tmp_path: Path) -> None:
        """One branch push at the end, tags pushed per package."""
        run = _Run(
            tmp_path,
            selected=('core', 'app'),
            root_config='[tool.uvrelease]\nconsolidate-pushes = true\npush-options = ["ci.skip"]\n',
        )
        assert await run.run(dry_run=True) is ExitCode.SUCCESS
        assert run.vcs.called('push') == [('push', str(run.ws.root), 'origin', 'ci.skip', 'True')]
        assert len(run.vcs.called('push_tag')) == 2

    @pytest.mark.asyncio
    async def test_prerelease_has_no_post_phase(self, tmp_path: Path) -> None:
        """An rc gets one commit and keeps its version."""
        run = _Run(tmp_path, target='rc')
        assert await run.run() is ExitCode.SUCCESS
        assert len(run.vcs.called('commit_all')) == 1
        assert run.version('core') == '1.0.1rc1'


class TestHelpers:
    """Tests for the module-level helpers."""

    def test_grace_sleep_default(self, monkeypatch: pytest.MonkeyPatch) -> None:
        """Unset means the default."""
        monkeypatch.delenv(GRACE_SLEEP_ENV, raising=False)
        assert grace_sleep_from_env() == DEFAULT_GRACE_SLEEP

    def test_grace_sleep_env(self, monkeypatch: pytest.MonkeyPatch) -> None:
        """The variable is read as whole seconds."""
        monkeypatch.setenv(GRACE_SLEEP_ENV, '12')
        assert grace_sleep_from_env() == 12

    def test_grace_sleep_invalid(self, monkeypatch: pytest.MonkeyPatch) -> None:
        """Garbage falls back to the default."""
        monkeypatch.setenv(GRACE_SLEEP_ENV, 'soon')
        assert grace_sleep_from_env() == DEFAULT_GRACE_SLEEP

    def test_prompt_lists_packages(self, tmp_path: Path) -> None:
        """Several plans are listed one per line."""
        run = _Run(tmp_path, selected=('core', 'app'))
        assert confirmation_prompt(run.plans) == 'Release\n  core 1.1.0\n  app 0.2.0\n?'

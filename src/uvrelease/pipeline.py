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

"""The seven-phase release pipeline.

:class:`ReleasePipeline` walks the plans once, phase by phase, in
processing order. A phase finishes for every package before the next
phase starts. Nothing is rolled back: stopping in phase N leaves the
effects of phases 1..N-1 in place.

Phases and their abort codes::

    ┌───┬──────────────┬──────────────────────────────────────┬──────┐
    │ # │ Phase        │ Per package (with a pending release) │ Exit │
    ├───┼──────────────┼──────────────────────────────────────┼──────┤
    │ 1 │ Preflight    │ git usable, clean tree, changes      │ 101  │
    │ 2 │ Confirm      │ show plans, ask y/N                  │ 0    │
    │ 3 │ Pre-release  │ version, dependents, lock, replace,  │ 102  │
    │   │              │ hook, commit                         │ 107  │
    │ 4 │ Publish      │ uv build + uv publish, wait on PyPI  │ 103  │
    │ 5 │ Tag          │ git tag -a                           │ 104  │
    │ 6 │ Post-release │ dev version, replace, commit         │ 105  │
    │ 7 │ Push         │ push tags, push HEAD                 │ 106  │
    └───┴──────────────┴──────────────────────────────────────┴──────┘

Fatal conditions (bad config, unparsable versions, a dependent conflict
under the ``error`` policy, ``uv lock`` failing) raise
:class:`~uvrelease.errors.UvReleaseError` instead; the CLI maps them to
128.

In dry-run every mutating backend call is a logged no-op that reports
success, so the control flow and the logged decisions match a real run.
The pre-release hook is the exception: it always runs and receives
``DRY_RUN=true`` to limit itself.
"""

from __future__ import annotations

import asyncio
import os
from collections.abc import Awaitable, Callable, Sequence
from enum import IntEnum

from uvrelease.backends._run import run_command
from uvrelease.backends.pm import PackageManager
from uvrelease.backends.registry import Registry
from uvrelease.backends.vcs import VCS
from uvrelease.config import ReleaseConfig
from uvrelease.errors import E, UvReleaseError
from uvrelease.logging import get_logger
from uvrelease.manifest import set_package_version
from uvrelease.plan import ReleasePlan, format_plan_table
from uvrelease.preflight import run_preflight
from uvrelease.reconcile import update_dependent_versions
from uvrelease.replace import do_file_replacements
from uvrelease.templates import Template, render, today
from uvrelease.workspace import Workspace

logger = get_logger(__name__)

# Environment variable overriding the post-publish grace delay.
GRACE_SLEEP_ENV = 'PUBLISH_GRACE_SLEEP'
DEFAULT_GRACE_SLEEP = 5

# Waiting for a new version to show up on PyPI.
PUBLISH_WAIT_TIMEOUT = 300.0
PUBLISH_WAIT_INTERVAL = 1.0


class ExitCode(IntEnum):
    """Process exit codes; values are a compatibility surface."""

    SUCCESS = 0
    DIRTY_TREE = 101
    COMMIT_FAILED = 102
    PUBLISH_FAILED = 103
    TAG_FAILED = 104
    POST_COMMIT_FAILED = 105
    PUSH_FAILED = 106
    HOOK_FAILED = 107
    FATAL = 128


Confirm = Callable[[str], Awaitable[bool]]


async def prompt_confirm(question: str) -> bool:
    """Ask ``question`` on the terminal; only ``y``/``yes`` confirm."""
    answer = await asyncio.to_thread(input, f'{question} [y/N] ')
    return answer.strip().lower() in {'y', 'yes'}


def grace_sleep_from_env() -> int:
    """Seconds to wait after PyPI lists a new version."""
    raw = os.environ.get(GRACE_SLEEP_ENV, '')
    try:
        return int(raw) if raw else DEFAULT_GRACE_SLEEP
    except ValueError:
        logger.debug('invalid_grace_sleep', value=raw, default=DEFAULT_GRACE_SLEEP)
        return DEFAULT_GRACE_SLEEP


def confirmation_prompt(plans: Sequence[ReleasePlan]) -> str:
    """Return the confirmation question for ``plans``."""
    if len(plans) == 1:
        plan = plans[0]
        return f'Release {plan.name} {plan.base_version}?'
    lines = ['Release']
    lines.extend(f'  {plan.name} {plan.base_version}' for plan in plans)
    return '\n'.join(lines) + '\n?'


class ReleasePipeline:
    """Run a release over a list of plans.

    Args:
        vcs: Version control backend.
        pm: Package manager backend.
        registry: Registry used to wait for uploads to appear.
        workspace: The workspace being released.
        ws_config: Workspace-level configuration (consolidation, push).
        dry_run: Replace every mutation with a logged no-op.
        no_confirm: Skip the interactive confirmation.
        token: Upload token for ``uv publish``.
        confirm: Confirmation callback; defaults to a terminal prompt.
        sleep: Awaitable sleep used for the grace delay.
        grace_sleep: Grace delay in seconds; read from
            ``PUBLISH_GRACE_SLEEP`` when unset.
        date: Date for templates; captured once when unset.
    """

    def __init__(
        self,
        *,
        vcs: VCS,
        pm: PackageManager,
        registry: Registry,
        workspace: Workspace,
        ws_config: ReleaseConfig,
        dry_run: bool = False,
        no_confirm: bool = False,
        token: str | None = None,
        confirm: Confirm | None = None,
        sleep: Callable[[float], Awaitable[object]] = asyncio.sleep,
        grace_sleep: int | None = None,
        date: str | None = None,
    ) -> None:
        """Store the backends and run-wide options."""
        self._vcs = vcs
        self._pm = pm
        self._registry = registry
        self._workspace = workspace
        self._ws_config = ws_config
        self._dry_run = dry_run
        self._no_confirm = no_confirm
        self._token = token
        self._confirm = confirm or prompt_confirm
        self._sleep = sleep
        self._grace_sleep = grace_sleep_from_env() if grace_sleep is None else grace_sleep
        self._date = date or today()

    async def run(self, plans: Sequence[ReleasePlan]) -> ExitCode:
        """Run all phases over ``plans`` (already in processing order).

        Returns:
            :attr:`ExitCode.SUCCESS`, or the code of the phase that stopped.

        Raises:
            UvReleaseError: On fatal conditions.
        """
        preflight = await run_preflight(self._vcs, self._workspace, plans, self._ws_config, dry_run=self._dry_run)
        if preflight.dirty and not self._dry_run:
            return ExitCode.DIRTY_TREE

        releasing = [plan for plan in plans if plan.next_version is not None]
        if not releasing:
            logger.info('nothing_to_release', packages=[plan.name for plan in plans])
            return ExitCode.SUCCESS

        if not await self._confirmed(releasing):
            logger.info('release_declined')
            return ExitCode.SUCCESS

        phases = (
            self._pre_release,
            self._publish,
            self._tag,
            self._post_release,
            self._push,
        )
        for phase in phases:
            code = await phase(releasing)
            if code is not ExitCode.SUCCESS:
                return code
        logger.info('release_complete', packages=[plan.name for plan in releasing], dry_run=self._dry_run)
        return ExitCode.SUCCESS

    async def _confirmed(self, plans: list[ReleasePlan]) -> bool:
        if self._dry_run or self._no_confirm:
            return True
        print(format_plan_table(plans))  # noqa: T201 - CLI output
        print()  # noqa: T201 - CLI output
        return await self._confirm(confirmation_prompt(plans))

    async def _lock(self) -> None:
        result = await self._pm.lock(dry_run=self._dry_run)
        if not result.ok:
            raise UvReleaseError(
                code=E.PM_COMMAND_FAILED,
                message=f'uv lock failed: {result.stderr.strip() or result.return_code}',
                hint='Run uv lock by hand to see the resolver error.',
            )

    async def _run_hook(self, plan: ReleasePlan) -> bool:
        hook = list(plan.config.pre_release_hook or ())
        if not hook:
            return True
        env = {
            'PREV_VERSION': str(plan.prev_version),
            'NEW_VERSION': str(plan.next_version),
            'DRY_RUN': 'true' if self._dry_run else 'false',
            'CRATE_NAME': plan.name,
            'WORKSPACE_ROOT': str(self._workspace.root),
            'CRATE_ROOT': str(plan.package.manifest_path.parent),
        }
        logger.debug('pre_release_hook', package=plan.name, cmd=hook)
        try:
            result = await asyncio.to_thread(run_command, hook, cwd=plan.path, env=env, capture=False)
        except OSError as exc:
            logger.warning('hook_failed', package=plan.name, cmd=hook, error=str(exc))
            return False
        if not result.ok:
            logger.warning('hook_failed', package=plan.name, cmd=hook, return_code=result.return_code)
            return False
        return True

    async def _shared_commit(self, template: str, code: ExitCode) -> ExitCode:
        message = render(template, Template(date=self._date))
        result = await self._vcs.commit_all(
            self._workspace.root,
            message,
            sign=bool(self._ws_config.sign_commit),
            dry_run=self._dry_run,
        )
        if not result.ok:
            logger.error('commit_failed', path=str(self._workspace.root), stderr=result.stderr.strip())
            return code
        return ExitCode.SUCCESS

    async def _pre_release(self, plans: list[ReleasePlan]) -> ExitCode:
        shared = bool(self._ws_config.consolidate_commits)
        for plan in plans:
            version = plan.next_version
            if version is None:
                continue
            logger.info('update_package', package=plan.name, prev=str(plan.prev_version), version=str(version))
            set_package_version(plan.package.manifest_path, str(version), dry_run=self._dry_run)
            update_dependent_versions(plan, version, dry_run=self._dry_run)
            await self._lock()

            template = Template(
                prev_version=str(plan.prev_version),
                version=str(version),
                crate_name=plan.name,
                date=self._date,
                tag_name=plan.tag_name,
            )
            do_file_replacements(
                plan.config.pre_release_replacements or (),
                template,
                plan.path,
                prerelease=plan.is_prerelease,
                dry_run=self._dry_run,
            )

            if not await self._run_hook(plan):
                logger.warning('release_aborted_by_hook', package=plan.name)
                return ExitCode.HOOK_FAILED

            if shared:
                continue
            message = render(plan.config.pre_release_commit_message or '', template.with_(tag_name=None))
            result = await self._vcs.commit_all(
                plan.path,
                message,
                sign=bool(plan.config.sign_commit),
                dry_run=self._dry_run,
            )
            if not result.ok:
                logger.error('commit_failed', package=plan.name, stderr=result.stderr.strip())
                return ExitCode.COMMIT_FAILED

        if shared:
            return await self._shared_commit(self._ws_config.pre_release_commit_message or '', ExitCode.COMMIT_FAILED)
        return ExitCode.SUCCESS

    async def _publish(self, plans: list[ReleasePlan]) -> ExitCode:
        for plan in plans:
            if plan.config.disable_publish:
                logger.debug('publish_disabled', package=plan.name)
                continue
            version = str(plan.base_version)
            logger.info('publish_package', package=plan.name, version=version, features=str(plan.features))
            result = await self._pm.publish(
                plan.name,
                registry=plan.config.registry,
                token=self._token,
                features=plan.features.selected,
                all_features=plan.features.all,
                dry_run=self._dry_run,
            )
            if not result.ok:
                logger.error('publish_failed', package=plan.name, stderr=result.stderr.strip())
                return ExitCode.PUBLISH_FAILED

            if plan.config.registry is not None:
                logger.debug('skip_publish_wait', package=plan.name, registry=plan.config.registry)
                continue
            if self._dry_run:
                continue
            available = await self._registry.poll_available(
                plan.name,
                version,
                timeout=PUBLISH_WAIT_TIMEOUT,
                interval=PUBLISH_WAIT_INTERVAL,
            )
            if not available:
                logger.error('publish_timeout', code=E.PUBLISH_TIMEOUT.value, package=plan.name, version=version)
                return ExitCode.PUBLISH_FAILED
            logger.info('publish_grace_sleep', seconds=self._grace_sleep)
            await self._sleep(self._grace_sleep)
        return ExitCode.SUCCESS

    async def _tag(self, plans: list[ReleasePlan]) -> ExitCode:
        for plan in plans:
            if plan.tag_name is None:
                continue
            if plan.config.sign_commit and not plan.config.sign_tag:
                logger.info('sign_commit_without_sign_tag', package=plan.name, hint='set sign-tag to sign tags')
            template = Template(
                prev_version=str(plan.prev_version),
                version=str(plan.base_version),
                crate_name=plan.name,
                tag_name=plan.tag_name,
                date=self._date,
            )
            message = render(plan.config.tag_message or '', template)
            logger.debug('create_tag', package=plan.name, tag=plan.tag_name)
            result = await self._vcs.tag(
                plan.path,
                plan.tag_name,
                message,
                sign=bool(plan.config.sign_tag),
                dry_run=self._dry_run,
            )
            if not result.ok:
                logger.error('tag_failed', package=plan.name, tag=plan.tag_name, stderr=result.stderr.strip())
                return ExitCode.TAG_FAILED
        return ExitCode.SUCCESS

    async def _post_release(self, plans: list[ReleasePlan]) -> ExitCode:
        shared = bool(self._ws_config.consolidate_commits)
        bumped = False
        for plan in plans:
            post = plan.post_version
            if post is None:
                continue
            bumped = True
            logger.info('start_next_development_iteration', package=plan.name, version=str(post))
            update_dependent_versions(plan, post, dry_run=self._dry_run)
            set_package_version(plan.package.manifest_path, str(post), dry_run=self._dry_run)
            await self._lock()

            template = Template(
                prev_version=str(plan.prev_version),
                version=str(plan.base_version),
                crate_name=plan.name,
                date=self._date,
                tag_name=plan.tag_name,
                next_version=str(post),
            )
            do_file_replacements(
                plan.config.post_release_replacements or (),
                template,
                plan.path,
                prerelease=False,
                dry_run=self._dry_run,
            )
            if shared:
                continue
            message = render(plan.config.post_release_commit_message or '', template)
            result = await self._vcs.commit_all(
                plan.path,
                message,
                sign=bool(plan.config.sign_commit),
                dry_run=self._dry_run,
            )
            if not result.ok:
                logger.error('commit_failed', package=plan.name, stderr=result.stderr.strip())
                return ExitCode.POST_COMMIT_FAILED

        if shared and bumped:
            return await self._shared_commit(
                self._ws_config.post_release_commit_message or '',
                ExitCode.POST_COMMIT_FAILED,
            )
        return ExitCode.SUCCESS

    async def _push(self, plans: list[ReleasePlan]) -> ExitCode:
        if self._ws_config.disable_push:
            logger.debug('push_disabled')
            return ExitCode.SUCCESS
        remote = self._ws_config.push_remote or 'origin'
        shared = bool(self._ws_config.consolidate_pushes)

        for plan in plans:
            if plan.config.disable_push:
                continue
            if plan.tag_name is not None:
                logger.info('push_tag', package=plan.name, tag=plan.tag_name, remote=remote)
                result = await self._vcs.push_tag(plan.path, remote, plan.tag_name, dry_run=self._dry_run)
                if not result.ok:
                    logger.error('push_failed', tag=plan.tag_name, stderr=result.stderr.strip())
                    return ExitCode.PUSH_FAILED
            if not shared:
                logger.info('push_head', package=plan.name, remote=remote)
                result = await self._vcs.push(
                    plan.path,
                    remote,
                    options=list(plan.config.push_options or ()),
                    dry_run=self._dry_run,
                )
                if not result.ok:
                    logger.error('push_failed', package=plan.name, stderr=result.stderr.strip())
                    return ExitCode.PUSH_FAILED

        if shared:
            logger.info('push_head', remote=remote)
            result = await self._vcs.push(
                self._workspace.root,
                remote,
                options=list(self._ws_config.push_options or ()),
                dry_run=self._dry_run,
            )
            if not result.ok:
                logger.error('push_failed', stderr=result.stderr.strip())
                return ExitCode.PUSH_FAILED
        return ExitCode.SUCCESS


__all__ = [
    'DEFAULT_GRACE_SLEEP',
    'ExitCode',
    'GRACE_SLEEP_ENV',
    'ReleasePipeline',
    'confirmation_prompt',
    'grace_sleep_from_env',
    'prompt_confirm',
]

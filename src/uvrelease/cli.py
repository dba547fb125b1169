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

"""CLI entry point for uvrelease.

Constructs backend instances and injects them into the pipeline.

Subcommands::

    uvrelease release    Release the selected workspace members
    uvrelease explain    Explain an error code

Usage::

    # Preview a minor release of the package in the current directory:
    uvrelease release minor --dry-run

    # Release every member, no prompt:
    uvrelease release --workspace --no-confirm

    # Release one member to an explicit version:
    uvrelease release 2.0.0 -p core

    # Explain an error:
    uvrelease explain UR-DEPENDENT-VERSION-CONFLICT
"""

from __future__ import annotations

import argparse
import asyncio
import sys
import warnings
from pathlib import Path
from typing import TextIO

from rich_argparse import RichHelpFormatter

from uvrelease import __version__
from uvrelease.backends import GitCLIBackend, PyPIBackend, UvBackend
from uvrelease.config import DependentVersion, ReleaseConfig, resolve_config
from uvrelease.errors import UvReleaseError, UvReleaseWarning, explain, render_error, render_warning
from uvrelease.logging import configure_logging, get_logger, release_context
from uvrelease.pipeline import ExitCode, ReleasePipeline
from uvrelease.plan import ReleaseOptions, load_plans
from uvrelease.versions import TargetVersion
from uvrelease.workspace import discover_workspace, find_workspace_root, select_packages

logger = get_logger(__name__)

_default_showwarning = warnings.showwarning


def _show_warning(
    message: Warning | str,
    category: type[Warning],
    filename: str,
    lineno: int,
    file: TextIO | None = None,
    line: str | None = None,
) -> None:
    """Render :class:`UvReleaseWarning` diagnostics; defer everything else."""
    if isinstance(message, UvReleaseWarning):
        render_warning(message, file=file)
        return
    _default_showwarning(message, category, filename, lineno, file, line)


def overrides_from_args(args: argparse.Namespace) -> ReleaseConfig:
    """Build the command-line config layer; unset flags stay ``None``."""
    sign_commit = True if args.sign or args.sign_commit else None
    sign_tag = True if args.sign or args.sign_tag else None
    return ReleaseConfig(
        sign_commit=sign_commit,
        sign_tag=sign_tag,
        push_remote=args.push_remote,
        registry=args.registry,
        disable_publish=True if args.skip_publish else None,
        disable_push=True if args.skip_push else None,
        disable_tag=True if args.skip_tag else None,
        dev_version_ext=args.dev_version_ext,
        no_dev_version=True if args.no_dev_version else None,
        tag_prefix=args.tag_prefix,
        tag_name=args.tag_name,
        dependent_version=DependentVersion(args.dependent_version) if args.dependent_version else None,
        enable_features=tuple(args.features) if args.features else None,
        enable_all_features=True if args.all_features else None,
    )


async def _cmd_release(args: argparse.Namespace) -> int:
    """Handle the ``release`` subcommand."""
    cwd = Path.cwd()
    ws_root = find_workspace_root(cwd)
    workspace = discover_workspace(ws_root)
    vcs = GitCLIBackend(ws_root)
    await vcs.version()
    git_root = (await vcs.top_level(ws_root)).resolve()

    overrides = overrides_from_args(args)
    custom_config = Path(args.config).resolve() if args.config else None
    options = ReleaseOptions(
        target=TargetVersion.parse(args.level_or_version),
        metadata=args.metadata,
        isolated=args.isolated,
        custom_config=custom_config,
        overrides=overrides,
        prev_tag_name=args.prev_tag_name,
    )
    ws_config = resolve_config(
        workspace.root,
        is_root=workspace.root == git_root,
        isolated=args.isolated,
        custom_config=custom_config,
        overrides=overrides,
    )

    selected = select_packages(
        workspace,
        packages=args.package,
        all_packages=args.workspace,
        exclude=args.exclude,
        cwd=cwd,
    )
    plans = load_plans(workspace, selected, options, git_root=git_root)
    if not plans:
        logger.info('no_packages_selected', selected=sorted(selected))
        return ExitCode.SUCCESS

    pipeline = ReleasePipeline(
        vcs=vcs,
        pm=UvBackend(workspace.root),
        registry=PyPIBackend(),
        workspace=workspace,
        ws_config=ws_config,
        dry_run=args.dry_run,
        no_confirm=args.no_confirm,
        token=args.token,
    )
    return await pipeline.run(plans)


def _cmd_explain(args: argparse.Namespace) -> int:
    """Handle the ``explain`` subcommand."""
    result = explain(args.code)
    if result is None:
        print(f'Unknown error code: {args.code}')  # noqa: T201 - CLI output
        return 1
    print(result)  # noqa: T201 - CLI output
    return 0


def _add_release_parser(subparsers: argparse._SubParsersAction) -> None:
    release = subparsers.add_parser(
        'release',
        help='Release the selected workspace members.',
        formatter_class=RichHelpFormatter,
    )
    release.add_argument(
        'level_or_version',
        nargs='?',
        default='release',
        metavar='LEVEL_OR_VERSION',
        help='major, minor, patch, release, rc, beta, alpha, or a PEP 440 version (default: release).',
    )
    release.add_argument(
        '--metadata',
        '-m',
        default=None,
        help='Local version label added to relative bumps (e.g. 1.2.0+build5).',
    )

    selection = release.add_argument_group('package selection')
    selection.add_argument(
        '--package',
        '-p',
        action='append',
        default=[],
        metavar='NAME',
        help='Member to release (repeatable).',
    )
    selection.add_argument(
        '--workspace',
        '--all',
        dest='workspace',
        action='store_true',
        help='Release every workspace member.',
    )
    selection.add_argument(
        '--exclude',
        action='append',
        default=[],
        metavar='NAME',
        help='Member to leave out (repeatable).',
    )

    run = release.add_argument_group('run control')
    run.add_argument('--dry-run', '-n', action='store_true', help='Preview mode: log actions without executing.')
    run.add_argument('--no-confirm', action='store_true', help='Skip the confirmation prompt.')
    run.add_argument('--config', '-c', default=None, metavar='PATH', help='Extra config file layered over the rest.')
    run.add_argument('--isolated', action='store_true', help='Ignore release.toml and [tool.uvrelease] files.')
    run.add_argument(
        '--prev-tag-name',
        default=None,
        metavar='TAG',
        help='Tag of the current version, used as-is to find changes.',
    )
    run.add_argument('--token', default=None, help='Upload token for uv publish.')

    git = release.add_argument_group('git')
    git.add_argument('--sign', action='store_true', help='Sign commits and tags.')
    git.add_argument('--sign-commit', action='store_true', help='Sign commits.')
    git.add_argument('--sign-tag', action='store_true', help='Sign tags.')
    git.add_argument('--push-remote', default=None, metavar='REMOTE', help='Remote to push to (default: origin).')
    git.add_argument('--skip-push', action='store_true', help='Do not push.')
    git.add_argument('--skip-tag', action='store_true', help='Do not tag.')
    git.add_argument('--tag-prefix', default=None, help='Tag prefix template.')
    git.add_argument('--tag-name', default=None, help='Tag name template.')

    publish = release.add_argument_group('publish')
    publish.add_argument('--registry', default=None, metavar='INDEX', help='Named [[tool.uv.index]] to publish to.')
    publish.add_argument('--skip-publish', action='store_true', help='Do not publish.')
    publish.add_argument(
        '--features',
        action='append',
        default=[],
        metavar='FEATURE',
        help='Build feature to enable (repeatable).',
    )
    publish.add_argument('--all-features', action='store_true', help='Enable every build feature.')

    versions = release.add_argument_group('versions')
    versions.add_argument(
        '--dependent-version',
        choices=[policy.value for policy in DependentVersion],
        default=None,
        help='What to do with dependents whose requirement excludes the new version.',
    )
    versions.add_argument('--dev-version-ext', default=None, metavar='EXT', help='Development version label.')
    versions.add_argument('--no-dev-version', action='store_true', help='Skip the post-release development version.')


def build_parser() -> argparse.ArgumentParser:
    """Build the CLI argument parser.

    Returns:
        Configured :class:`argparse.ArgumentParser`.
    """
    RichHelpFormatter.styles['argparse.groups'] = 'bold yellow'
    parser = argparse.ArgumentParser(
        prog='uvrelease',
        description='Release orchestration for uv workspaces.',
        formatter_class=RichHelpFormatter,
    )
    parser.add_argument(
        '--version',
        action='version',
        version=f'%(prog)s {__version__}',
    )
    parser.add_argument('--quiet', '-q', action='count', default=0, help='Less output (repeatable).')
    parser.add_argument('--verbose', '-v', action='count', default=0, help='More output (repeatable).')
    parser.add_argument('--json-log', action='store_true', help='Log JSON lines instead of console output.')

    subparsers = parser.add_subparsers(dest='command')
    _add_release_parser(subparsers)

    explain_parser = subparsers.add_parser(
        'explain',
        help='Explain an error code.',
    )
    explain_parser.add_argument('code', help='Error code, e.g. UR-VCS-UNAVAILABLE.')
    return parser


def main(argv: list[str] | None = None) -> int:
    """CLI entry point.

    Returns:
        Exit code (0 for success, see :class:`~uvrelease.pipeline.ExitCode`).
    """
    parser = build_parser()
    args = parser.parse_args(argv)
    configure_logging(verbose=args.verbose, quiet=args.quiet, json_log=args.json_log)
    warnings.showwarning = _show_warning

    try:
        if args.command == 'release':
            with release_context(dry_run=args.dry_run):
                return int(asyncio.run(_cmd_release(args)))
        if args.command == 'explain':
            return _cmd_explain(args)

        parser.print_help()  # noqa: T201 - CLI output
        print(  # noqa: T201 - CLI output
            f'\n{parser.prog}: error: please provide a command',
            file=sys.stderr,
        )
        return 2

    except UvReleaseError as exc:
        render_error(exc)
        return ExitCode.FATAL
    except KeyboardInterrupt:
        logger.info('interrupted')
        return 130
    except Exception as exc:  # noqa: BLE001 - last-resort exit code
        logger.exception('fatal_error', error=str(exc))
        return ExitCode.FATAL


def _main() -> None:
    """Wrapper for pyproject.toml [project.scripts] entry point."""
    sys.exit(main())


__all__ = [
    'build_parser',
    'main',
    'overrides_from_args',
]

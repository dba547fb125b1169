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

"""Structured logging for uvrelease.

Every module logs through :func:`get_logger`, a `structlog
<https://www.structlog.org/>`_ logger routed into the stdlib
:mod:`logging` tree, so one handler on stderr renders everything:

- console lines (coloured on a TTY) by default;
- one JSON object per line with ``--json-log``, for CI log parsers.

Verbosity comes from the repeatable ``-q``/``-v`` flags::

    verbosity = 2 - quiet + verbose

    <= 0  ERROR
       1  WARNING
       2  INFO     (default)
    >= 3  DEBUG

:func:`release_context` binds run-wide fields (``dry_run`` for now)
onto every event emitted inside it, so a dry-run transcript can never
be mistaken for a real one.

Usage::

    from uvrelease.logging import configure_logging, get_logger, release_context

    configure_logging(verbose=1)
    with release_context(dry_run=True):
        get_logger().info('update_package', package='core', version='1.2.0')
"""

from __future__ import annotations

import logging
import sys
from collections.abc import Iterator
from contextlib import contextmanager

import structlog

# Libraries whose INFO chatter (one line per HTTP request) is only shown with -v.
_NOISY_LOGGERS = ('httpx', 'httpcore')


def level_from_verbosity(*, quiet: int = 0, verbose: int = 0) -> int:
    """Map ``-q``/``-v`` occurrence counts to a stdlib logging level."""
    verbosity = 2 - quiet + verbose
    if verbosity <= 0:
        return logging.ERROR
    if verbosity == 1:
        return logging.WARNING
    if verbosity == 2:
        return logging.INFO
    return logging.DEBUG


def _renderer(json_log: bool) -> structlog.types.Processor:
    if json_log:
        return structlog.processors.JSONRenderer()
    return structlog.dev.ConsoleRenderer(colors=sys.stderr.isatty())


def configure_logging(
    *,
    verbose: int = 0,
    quiet: int = 0,
    json_log: bool = False,
) -> None:
    """Route structlog through a single stderr handler.

    Safe to call more than once; the last call wins.

    Args:
        verbose: Number of ``-v`` flags.
        quiet: Number of ``-q`` flags.
        json_log: Render JSON lines instead of console output.
    """
    level = level_from_verbosity(quiet=quiet, verbose=verbose)
    logging.basicConfig(format='%(message)s', stream=sys.stderr, level=level, force=True)
    for name in _NOISY_LOGGERS:
        logging.getLogger(name).setLevel(level if level <= logging.DEBUG else logging.WARNING)

    structlog.configure(
        processors=[
            structlog.contextvars.merge_contextvars,
            structlog.stdlib.add_log_level,
            structlog.stdlib.add_logger_name,
            structlog.processors.TimeStamper(fmt='iso'),
            structlog.processors.StackInfoRenderer(),
            structlog.processors.UnicodeDecoder(),
            structlog.stdlib.ProcessorFormatter.wrap_for_formatter,
        ],
        logger_factory=structlog.stdlib.LoggerFactory(),
        wrapper_class=structlog.stdlib.BoundLogger,
        cache_logger_on_first_use=True,
    )

    formatter = structlog.stdlib.ProcessorFormatter(
        processors=[structlog.stdlib.ProcessorFormatter.remove_processors_meta, _renderer(json_log)],
    )
    for handler in logging.root.handlers:
        handler.setFormatter(formatter)


@contextmanager
def release_context(*, dry_run: bool) -> Iterator[None]:
    """Attach run-wide fields to every event logged inside the block."""
    with structlog.contextvars.bound_contextvars(dry_run=dry_run):
        yield


def get_logger(name: str = 'uvrelease') -> structlog.stdlib.BoundLogger:
    """Return the structlog logger for ``name``."""
    return structlog.get_logger(name)


__all__ = [
    'configure_logging',
    'get_logger',
    'level_from_verbosity',
    'release_context',
]

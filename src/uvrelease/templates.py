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

"""Placeholder rendering for tag names, commit messages and replacements.

Templates use ``{{placeholder}}`` syntax. The set of placeholders is
closed (:class:`Placeholder`); anything not set in the :class:`Template`
context, or not a known placeholder, is left in the output untouched.

Usage::

    from uvrelease.templates import Template, render

    ctx = Template(version='1.2.0', crate_name='core', prefix='core-')
    render('{{prefix}}v{{version}}', ctx)  # 'core-v1.2.0'
"""

from __future__ import annotations

import datetime
import re
from dataclasses import dataclass, replace
from enum import Enum

_PLACEHOLDER_RE = re.compile(r'\{\{\s*([a-z_]+)\s*\}\}')


class Placeholder(str, Enum):
    """Named placeholders understood by :func:`render`."""

    PREV_VERSION = 'prev_version'
    VERSION = 'version'
    NEXT_VERSION = 'next_version'
    CRATE_NAME = 'crate_name'
    PACKAGE_NAME = 'package_name'
    TAG_NAME = 'tag_name'
    PREFIX = 'prefix'
    DATE = 'date'


@dataclass(frozen=True)
class Template:
    """Values available to a template. ``None`` means "not set"."""

    prev_version: str | None = None
    version: str | None = None
    next_version: str | None = None
    crate_name: str | None = None
    tag_name: str | None = None
    prefix: str | None = None
    date: str | None = None

    def value(self, placeholder: Placeholder) -> str | None:
        """Return the value bound to ``placeholder``, if any."""
        if placeholder is Placeholder.PACKAGE_NAME:
            return self.crate_name
        return getattr(self, placeholder.value)

    def with_(self, **changes: str | None) -> Template:
        """Return a copy with some fields replaced."""
        return replace(self, **changes)


def render(template: str, context: Template) -> str:
    """Substitute known, set placeholders in ``template``.

    Args:
        template: Text containing ``{{placeholder}}`` markers.
        context: Values to substitute.

    Returns:
        The rendered string. Unknown or unset placeholders are kept as-is.
    """

    def _sub(match: re.Match[str]) -> str:
        try:
            placeholder = Placeholder(match.group(1))
        except ValueError:
            return match.group(0)
        value = context.value(placeholder)
        return match.group(0) if value is None else value

    return _PLACEHOLDER_RE.sub(_sub, template)


def today() -> str:
    """Return the local date as ``YYYY-MM-DD``.

    Called once per run; the result is threaded through every template
    context so one release carries one date.
    """
    return datetime.date.today().strftime('%Y-%m-%d')


__all__ = [
    'Placeholder',
    'Template',
    'render',
    'today',
]

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

"""Tests for uvrelease.templates module."""

from __future__ import annotations

import re

from uvrelease.templates import Placeholder, Template, render, today


class TestRender:
    """Tests for render()."""

    def test_tag_name(self) -> None:
        """The default tag template renders with prefix and version."""
        ctx = Template(version='1.2.0', crate_name='core', prefix='core-')
        assert render('{{prefix}}v{{version}}', ctx) == 'core-v1.2.0'

    def test_unset_placeholder_is_literal(self) -> None:
        """A known placeholder without a value stays as written."""
        assert render('{{version}} -> {{next_version}}', Template(version='1.0')) == '1.0 -> {{next_version}}'

    def test_unknown_placeholder_is_literal(self) -> None:
        """Names outside the closed set are left alone."""
        assert render('{{branch}}', Template(version='1.0')) == '{{branch}}'

    def test_package_name_alias(self) -> None:
        """package_name reads crate_name."""
        assert render('{{package_name}}', Template(crate_name='core')) == 'core'

    def test_inner_whitespace(self) -> None:
        """Spaces inside the braces are tolerated."""
        assert render('{{ version }}', Template(version='2.0')) == '2.0'

    def test_every_placeholder_has_a_value_slot(self) -> None:
        """Template.value resolves every Placeholder."""
        ctx = Template(
            prev_version='1',
            version='2',
            next_version='3',
            crate_name='c',
            tag_name='t',
            prefix='p',
            date='d',
        )
        for placeholder in Placeholder:
            assert ctx.value(placeholder) is not None, placeholder


class TestTemplate:
    """Tests for Template helpers."""

    def test_with_returns_copy(self) -> None:
        """with_() leaves the original untouched."""
        base = Template(version='1.0')
        changed = base.with_(prefix='x-')
        assert base.prefix is None
        assert changed.prefix == 'x-'
        assert changed.version == '1.0'


class TestToday:
    """Tests for today()."""

    def test_format(self) -> None:
        """Dates are YYYY-MM-DD."""
        assert re.fullmatch(r'\d{4}-\d{2}-\d{2}', today())

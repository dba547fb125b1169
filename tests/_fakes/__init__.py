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

"""Shared test fakes for uvrelease.

Provides reusable fake implementations of the VCS, PackageManager and
Registry protocols, plus a helper that writes a uv workspace to disk, so
that individual test modules don't need to duplicate boilerplate.

Usage::

    from tests._fakes import OK, FakePM, FakeRegistry, FakeVCS, write_workspace

    vcs = FakeVCS(dirty=True)
    root = write_workspace(tmp_path, {'core': ('1.0.0', []), 'app': ('0.1.0', ['core>=1.0'])})
"""

from tests._fakes._pm import FakePM as FakePM
from tests._fakes._registry import FakeRegistry as FakeRegistry
from tests._fakes._vcs import FAILED as FAILED, OK as OK, FakeVCS as FakeVCS
from tests._fakes._workspace import git as git, init_git_repo as init_git_repo, write_workspace as write_workspace

__all__ = [
    'FAILED',
    'OK',
    'FakePM',
    'FakeRegistry',
    'FakeVCS',
    'git',
    'init_git_repo',
    'write_workspace',
]

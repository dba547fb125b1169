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

"""Protocol-based backend layer for uvrelease.

All external tool calls (git, uv, the PyPI JSON API) go through
injectable Protocol interfaces, so the pipeline can be driven by fakes in
tests.

Protocols (defined in subpackage ``__init__.py`` files):

- :class:`PackageManager`: publish, lock (default: :class:`UvBackend`)
- :class:`VCS`: dirty check, commit, tag, push (default: :class:`GitCLIBackend`)
- :class:`Registry`: index availability (default: :class:`PyPIBackend`)
"""

from uvrelease.backends._run import CommandResult, run_command
from uvrelease.backends.pm import PackageManager, UvBackend
from uvrelease.backends.registry import PyPIBackend, Registry
from uvrelease.backends.vcs import VCS, GitCLIBackend

__all__ = [
    'CommandResult',
    'GitCLIBackend',
    'PackageManager',
    'PyPIBackend',
    'Registry',
    'UvBackend',
    'VCS',
    'run_command',
]

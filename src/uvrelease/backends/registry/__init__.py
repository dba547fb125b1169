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

"""Registry protocol for uvrelease.

The :class:`Registry` protocol is the index query the publish phase
blocks on after an upload. Implementation:

- :class:`~uvrelease.backends.registry.pypi.PyPIBackend`: PyPI JSON API
"""

from __future__ import annotations

from typing import Protocol, runtime_checkable

from uvrelease.backends.registry.pypi import PyPIBackend as PyPIBackend

__all__ = [
    'PyPIBackend',
    'Registry',
]


@runtime_checkable
class Registry(Protocol):
    """Protocol for package index queries."""

    async def check_published(self, package_name: str, version: str) -> bool:
        """Return ``True`` if the exact version is on the index."""
        ...

    async def poll_available(
        self,
        package_name: str,
        version: str,
        *,
        timeout: float = 300.0,
        interval: float = 1.0,
    ) -> bool:
        """Poll until a version becomes available on the index.

        Args:
            package_name: Package name on the index.
            version: Version to wait for.
            timeout: Maximum seconds to wait.
            interval: Seconds between polls.

        Returns:
            ``True`` if the version became available, ``False`` on timeout.
        """
        ...

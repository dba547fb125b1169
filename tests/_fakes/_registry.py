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

"""In-memory stand-in for the package index."""

from __future__ import annotations

from dataclasses import dataclass, field


@dataclass
class FakeRegistry:
    """Answers index queries from a fixed set of releases.

    Attributes:
        available: What every ``poll_available()`` call returns.
        published: ``'name==version'`` entries ``check_published()`` knows.
        polls: ``(name, version, timeout, interval)`` for each wait.
    """

    available: bool = True
    published: set[str] = field(default_factory=set)
    polls: list[tuple[str, str, float, float]] = field(default_factory=list)

    async def check_published(self, package_name: str, version: str) -> bool:
        return f'{package_name}=={version}' in self.published

    async def poll_available(
        self,
        package_name: str,
        version: str,
        *,
        timeout: float = 300.0,
        interval: float = 1.0,
    ) -> bool:
        self.polls.append((package_name, version, timeout, interval))
        return self.available

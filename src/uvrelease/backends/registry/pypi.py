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

"""PyPI availability checks.

After ``uv publish`` returns, the upload is accepted but not always
served yet. :class:`PyPIBackend` asks the PyPI JSON API for the exact
release (``/pypi/<name>/<version>/json``) until it answers 200, so
dependents published next can resolve it.
"""

from __future__ import annotations

import asyncio
import time
from collections.abc import Awaitable, Callable

import httpx
from packaging.utils import canonicalize_name

from uvrelease.logging import get_logger
from uvrelease.net import BACKOFF_SECONDS, REQUEST_TIMEOUT, get_with_retry, index_client

log = get_logger('uvrelease.backends.pypi')

PYPI_URL = 'https://pypi.org'

# Bounds applied to caller-supplied poll settings.
MIN_INTERVAL, MAX_INTERVAL = 1.0, 60.0
MIN_TIMEOUT, MAX_TIMEOUT = 10.0, 3600.0


class PyPIBackend:
    """:class:`~uvrelease.backends.registry.Registry` backed by the PyPI JSON API.

    Args:
        base_url: Index root serving ``/pypi/...`` JSON.
        timeout: Per-request timeout in seconds.
        transport: httpx transport override (tests use a mock).
        sleep: Coroutine used between polls.
        clock: Monotonic clock used for the poll deadline.
        retry_backoff: Base delay between retries of one failing request.
    """

    def __init__(
        self,
        *,
        base_url: str = PYPI_URL,
        timeout: float = REQUEST_TIMEOUT,
        transport: httpx.AsyncBaseTransport | None = None,
        sleep: Callable[[float], Awaitable[None]] = asyncio.sleep,
        clock: Callable[[], float] = time.monotonic,
        retry_backoff: float = BACKOFF_SECONDS,
    ) -> None:
        """Store the index location and timing hooks."""
        self._base_url = base_url.rstrip('/')
        self._timeout = timeout
        self._transport = transport
        self._sleep = sleep
        self._clock = clock
        self._retry_backoff = retry_backoff

    def release_url(self, package_name: str, version: str) -> str:
        """JSON URL for one release, with the name PEP 503 normalised."""
        return f'{self._base_url}/pypi/{canonicalize_name(package_name)}/{version}/json'

    async def _is_served(self, client: httpx.AsyncClient, package_name: str, version: str) -> bool:
        """One availability query. An index that keeps failing counts as not serving."""
        url = self.release_url(package_name, version)
        try:
            response = await get_with_retry(client, url, backoff=self._retry_backoff)
        except httpx.HTTPError as exc:
            log.warning('index_query_failed', url=url, error=str(exc))
            return False
        return response.status_code == 200

    async def check_published(self, package_name: str, version: str) -> bool:
        """Return ``True`` if PyPI serves ``package_name==version``."""
        async with index_client(timeout=self._timeout, transport=self._transport) as client:
            return await self._is_served(client, package_name, version)

    async def poll_available(
        self,
        package_name: str,
        version: str,
        *,
        timeout: float = 300.0,
        interval: float = 1.0,
    ) -> bool:
        """Ask PyPI every ``interval`` seconds until the release is served.

        ``interval`` is clamped to 1-60 s and ``timeout`` to 10-3600 s.
        One client is kept open for the whole wait.

        Returns:
            ``True`` once the release is served, ``False`` at the deadline.
        """
        interval = max(MIN_INTERVAL, min(interval, MAX_INTERVAL))
        timeout = max(MIN_TIMEOUT, min(timeout, MAX_TIMEOUT))
        deadline = self._clock() + timeout
        attempts = 0

        async with index_client(timeout=self._timeout, transport=self._transport) as client:
            while self._clock() < deadline:
                attempts += 1
                if await self._is_served(client, package_name, version):
                    log.info('version_available', package=package_name, version=version, attempts=attempts)
                    return True
                remaining = deadline - self._clock()
                if remaining > 0:
                    log.debug('waiting_for_index', package=package_name, version=version, attempt=attempts)
                    await self._sleep(min(interval, remaining))

        log.warning('poll_timeout', package=package_name, version=version, timeout=timeout, attempts=attempts)
        return False


__all__ = [
    'PYPI_URL',
    'PyPIBackend',
]

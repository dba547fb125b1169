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

"""HTTP access to package indexes.

The publish phase asks the index whether an upload is visible yet.
PyPI serves new versions from a CDN, so the first few answers after an
upload are often 404 or a transient 5xx. This module supplies the
client and the retry rules for those queries:

- :func:`index_client` opens an :class:`httpx.AsyncClient` that
  identifies itself as uvrelease and follows index redirects.
- :func:`get_with_retry` repeats a GET on rate limits, server errors
  and dropped connections, honouring ``Retry-After`` when the index
  sends one.
"""

from __future__ import annotations

import asyncio
from collections.abc import AsyncGenerator
from contextlib import asynccontextmanager
from typing import Final

import httpx

from uvrelease import __version__
from uvrelease.logging import get_logger

log = get_logger('uvrelease.net')

USER_AGENT: Final[str] = f'uvrelease/{__version__}'
REQUEST_TIMEOUT: Final[float] = 30.0
MAX_CONNECTIONS: Final[int] = 4

RETRIES: Final[int] = 3
BACKOFF_SECONDS: Final[float] = 1.0
RETRY_AFTER_CAP: Final[float] = 60.0

RETRY_STATUSES: Final[frozenset[int]] = frozenset({429, 500, 502, 503, 504})
_RETRY_ERRORS = (httpx.ConnectError, httpx.ReadTimeout, httpx.WriteTimeout, httpx.RemoteProtocolError)


@asynccontextmanager
async def index_client(
    *,
    timeout: float = REQUEST_TIMEOUT,
    transport: httpx.AsyncBaseTransport | None = None,
) -> AsyncGenerator[httpx.AsyncClient]:
    """Open a client for index queries.

    Args:
        timeout: Per-request timeout in seconds.
        transport: Replacement transport, e.g. :class:`httpx.MockTransport`.
    """
    async with httpx.AsyncClient(
        headers={'User-Agent': USER_AGENT, 'Accept': 'application/json'},
        timeout=httpx.Timeout(timeout),
        limits=httpx.Limits(max_connections=MAX_CONNECTIONS),
        follow_redirects=True,
        transport=transport,
    ) as client:
        yield client


def _retry_after(response: httpx.Response) -> float | None:
    value = response.headers.get('Retry-After', '')
    if not value.strip().isdigit():
        return None
    return min(float(value), RETRY_AFTER_CAP)


async def get_with_retry(
    client: httpx.AsyncClient,
    url: str,
    *,
    retries: int = RETRIES,
    backoff: float = BACKOFF_SECONDS,
) -> httpx.Response:
    """GET ``url``, retrying transient failures.

    Attempt ``n`` (from 0) waits ``backoff * 2**n`` before the next one,
    unless the response carried a numeric ``Retry-After``.

    Returns:
        The first response whose status is not in :data:`RETRY_STATUSES`.
        A 404 is returned like any other final answer.

    Raises:
        httpx.HTTPStatusError: Every attempt got a retryable status.
        httpx.TransportError: Every attempt failed below HTTP.
    """
    for attempt in range(retries):
        delay = backoff * 2**attempt
        try:
            response = await client.get(url)
        except _RETRY_ERRORS as exc:
            log.warning('index_unreachable', url=url, error=str(exc), attempt=attempt + 1, delay=delay)
        else:
            if response.status_code not in RETRY_STATUSES:
                return response
            delay = _retry_after(response) or delay
            log.warning('index_busy', url=url, status=response.status_code, attempt=attempt + 1, delay=delay)
        await asyncio.sleep(delay)

    response = await client.get(url)
    if response.status_code in RETRY_STATUSES:
        response.raise_for_status()
    return response


__all__ = [
    'REQUEST_TIMEOUT',
    'RETRY_STATUSES',
    'USER_AGENT',
    'get_with_retry',
    'index_client',
]

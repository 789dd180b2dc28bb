"""Reachability probe for a published site.

A single HEAD request bounded by a total timeout. Any HTTP response counts
as reachable, whatever its status; transport errors and timeouts raise
``ProbeInconclusive``. The response body is not inspected.
"""

from __future__ import annotations

import asyncio
import logging

import httpx

from promptfolio.errors import ProbeInconclusive

logger = logging.getLogger(__name__)

DEFAULT_PROBE_TIMEOUT_SECONDS = 10.0


class HttpReachabilityProbe:
    """HEAD-request probe backed by ``httpx.AsyncClient``."""

    def __init__(
        self,
        *,
        timeout_seconds: float = DEFAULT_PROBE_TIMEOUT_SECONDS,
        http_client: httpx.AsyncClient | None = None,
    ) -> None:
        self._timeout = timeout_seconds
        self._client = http_client

    async def probe(self, url: str) -> None:
        try:
            resp = await asyncio.wait_for(self._head(url), timeout=self._timeout)
        except asyncio.TimeoutError as e:
            logger.info('Probe timed out after %.0fs: %s', self._timeout, url)
            raise ProbeInconclusive(f'timed out after {self._timeout:g}s') from e
        except httpx.HTTPError as e:
            logger.info('Probe failed for %s: %s', url, e)
            raise ProbeInconclusive(str(e) or type(e).__name__) from e

        logger.info(
            'Probe answered %d for %s',
            resp.status_code,
            url,
            extra={'status_code': resp.status_code},
        )

    async def _head(self, url: str) -> httpx.Response:
        if self._client is not None:
            return await self._client.head(url, timeout=self._timeout)
        async with httpx.AsyncClient(timeout=self._timeout) as client:
            return await client.head(url)
